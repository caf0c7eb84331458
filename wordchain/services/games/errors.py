class GameError(Exception):
    """An intent that cannot be applied to the session as it stands."""
    status_code = 400


class NotAllowed(GameError):
    status_code = 403


class NotEnoughPlayers(GameError):
    pass


class WordRejected(GameError):
    pass
