from flask import current_app
from flask_login import current_user


def resolve_username(data=None):
    """Who is acting: the logged-in user, else a supplied name, else the anonymous sentinel."""
    if current_user and current_user.is_authenticated:
        return current_user.username
    name = str((data or {}).get('name') or '').strip()[:64]
    return name or anonymous_username()


def anonymous_username():
    return current_app.config.get('ANONYMOUS_USERNAME', 'anon')
