from flask_socketio import join_room, leave_room, emit
from wordchain import socketio
from flask import current_app, request
from wordchain.identity import resolve_username
from wordchain.models import Game
from wordchain.services.games.errors import GameError
from wordchain.services.games.replica import ClientReplica
from wordchain.services.games.runtime import get_services
from typing import Dict


# One live replica per connected socket
_sid_to_replica: Dict[str, ClientReplica] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _state_pusher(sid: str, namespace: str):
    def push(snapshot):
        # Use socketio.emit since this may run from a timer worker
        socketio.emit('state', snapshot.to_dict(), to=sid, namespace=namespace)
    return push


def _drop_replica(sid: str) -> None:
    replica = _sid_to_replica.pop(sid, None)
    if replica:
        replica.detach()


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # A departing host hands authoritative writes to the next attached player
    _drop_replica(_get_sid())


def handle_join_game(data):
    game_code = (data or {}).get('game_code')
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    code = game_code.upper()
    if not Game.query.filter_by(game_code=code).first():
        emit('error', {'message': 'Game not found'})
        return
    room = f"game:{code}"
    join_room(room)
    sid = _get_sid()
    _drop_replica(sid)
    replica = get_services().replica(code, resolve_username(data), on_change=_state_pusher(sid, request.namespace))
    _sid_to_replica[sid] = replica
    replica.attach()
    current_app.logger.info(f"[ws-join] game={code} user={replica.user_id} sid={sid}")
    emit('joined', {'room': room, 'username': replica.user_id})


def handle_leave_game(data):
    game_code = (data or {}).get('game_code')
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = f"game:{game_code.upper()}"
    leave_room(room)
    _drop_replica(_get_sid())
    emit('left', {'room': room})


def _dispatch(action, data=None):
    replica = _sid_to_replica.get(_get_sid())
    if replica is None:
        emit('error', {'message': 'Join a game first'})
        return
    try:
        action(replica, data or {})
    except GameError as exc:
        emit('error', {'message': str(exc)})


def handle_lobby_join(data=None):
    _dispatch(lambda replica, d: replica.join(), data)


def handle_lobby_leave(data=None):
    _dispatch(lambda replica, d: replica.leave(), data)


def handle_start_game(data=None):
    _dispatch(lambda replica, d: replica.start(), data)


def handle_submit_word(data=None):
    def _submit(replica, d):
        timestamp = d.get('timestamp')
        try:
            timestamp = float(timestamp) if timestamp is not None else None
        except (TypeError, ValueError):
            raise GameError('timestamp must be a number')
        replica.submit_word(d.get('word') or '', timestamp=timestamp)
    _dispatch(_submit, data)


def handle_reset_game(data=None):
    _dispatch(lambda replica, d: replica.reset(), data)


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'join_game': handle_join_game,
    'leave_game': handle_leave_game,
    'lobby_join': handle_lobby_join,
    'lobby_leave': handle_lobby_leave,
    'start_game': handle_start_game,
    'submit_word': handle_submit_word,
    'reset_game': handle_reset_game,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
