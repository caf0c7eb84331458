from flask import Blueprint, request, jsonify
from .models import db, User, Game
from flask_login import login_user, logout_user, login_required, current_user
from wordchain.services.games.runtime import get_services

main = Blueprint('main', __name__)


def _preflight():
    return jsonify({'status': 'ok'}), 200


def _credentials():
    data = request.get_json(silent=True) or {}
    return (data.get('username') or '').strip(), data.get('password') or ''


def _signed_in(user, status=200):
    return jsonify({"success": True, "user": user.to_dict()}), status


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the word chain server!'})

@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return _preflight()
    username, password = _credentials()
    user = User.query.filter_by(username=username).first()
    if user is None or not user.check_password(password):
        return jsonify({"success": False, "message": "Invalid credentials"}), 401
    login_user(user, remember=True)
    return _signed_in(user)

@main.route('/register', methods=['POST', 'OPTIONS'])
def register():
    if request.method == 'OPTIONS':
        return _preflight()
    username, password = _credentials()
    if not username or not password:
        return jsonify({"success": False, "message": "Missing username or password"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"success": False, "message": "Username already exists"}), 400
    user = User(username=username)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    # Signed-in players are identified by username in every game they join
    login_user(user)
    return _signed_in(user, 201)

@main.route('/check_login', methods=['GET', 'OPTIONS'])
def check_login():
    if request.method == 'OPTIONS':
        return _preflight()
    if not current_user.is_authenticated:
        return jsonify({'error': 'Login required'}), 401
    return _signed_in(current_user)

@main.route('/logout', methods=['POST', 'OPTIONS'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})

@main.route('/games/active')
@login_required
def get_active_games():
    """Unfinished sessions the signed-in user is seated in."""
    store = get_services().store
    seated = []
    for game in Game.query.filter(Game.state != 'ended').order_by(Game.created_at).all():
        snapshot = store.load_snapshot(game.game_code)
        if current_user.username in snapshot.players:
            seated.append({
                'game_code': snapshot.session_id,
                'state': snapshot.state.value,
                'players': list(snapshot.players),
                'current_turn': snapshot.current_turn,
            })
    return jsonify(seated)
