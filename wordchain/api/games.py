from flask import Blueprint, jsonify, request, current_app
from wordchain import db
from wordchain.identity import resolve_username, anonymous_username
from wordchain.models import Game
from wordchain.services.games.errors import GameError
from wordchain.services.games.lobby import host_of
from wordchain.services.games.runtime import get_services
from wordchain.services.games.state import Snapshot


games = Blueprint('games', __name__)


def _snapshot_payload(snapshot: Snapshot) -> dict:
    services = get_services()
    payload = snapshot.to_dict()
    payload['host'] = host_of(snapshot.players, services.channel.present(snapshot.session_id))
    payload['active_players'] = snapshot.active_players
    # Timer settings so clients can show countdowns
    payload['durations'] = {
        'turn': services.rules.turn_timeout,
        'word_max_age': services.rules.word_max_age,
    }
    job_id = services.store.get_timeout_job(snapshot.session_id)
    payload['turn_deadline'] = services.scheduler.deadline(job_id) if job_id else None
    return payload


def _run_intent(game_code, action):
    """Apply one intent through a short-lived replica of the session.

    The replica hydrates from the store, acts, persists and broadcasts, and
    is dropped without ever subscribing.
    """
    data = request.get_json(silent=True) or {}
    game = Game.query.filter_by(game_code=game_code.upper()).first_or_404()
    replica = get_services().replica(game.game_code, resolve_username(data))
    replica.hydrate()
    try:
        snapshot = action(replica, data)
    except GameError as exc:
        current_app.logger.info(f"[intent-rejected] game={game.game_code} user={replica.user_id} reason={exc}")
        return jsonify({'error': str(exc)}), exc.status_code
    return jsonify(_snapshot_payload(snapshot))


@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    username = resolve_username(data)
    new_game = Game()
    db.session.add(new_game)
    db.session.commit()
    # The creator becomes the host, unless we do not know who they are
    players = [username] if username != anonymous_username() else []
    get_services().store.save_snapshot(new_game.game_code, Snapshot.lobby(new_game.game_code, players=players))
    current_app.logger.info(f"[create] game={new_game.game_code} host={players[0] if players else None}")
    return jsonify({
        'message': 'New game created!',
        'game_code': new_game.game_code,
        'players': players,
    }), 201


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    game = Game.query.filter_by(game_code=game_code.upper()).first_or_404()
    return jsonify(_snapshot_payload(get_services().store.load_snapshot(game.game_code)))


@games.route('/<string:game_code>/join', methods=['POST'])
def join_game(game_code):
    return _run_intent(game_code, lambda replica, data: replica.join())


@games.route('/<string:game_code>/leave', methods=['POST'])
def leave_game(game_code):
    return _run_intent(game_code, lambda replica, data: replica.leave())


@games.route('/<string:game_code>/start', methods=['POST'])
def start_game(game_code):
    return _run_intent(game_code, lambda replica, data: replica.start())


@games.route('/<string:game_code>/words', methods=['POST'])
def submit_word(game_code):
    def _submit(replica, data):
        timestamp = data.get('timestamp')
        try:
            timestamp = float(timestamp) if timestamp is not None else None
        except (TypeError, ValueError):
            raise GameError('timestamp must be a number')
        return replica.submit_word(data.get('word') or '', timestamp=timestamp)
    return _run_intent(game_code, _submit)


@games.route('/<string:game_code>/reset', methods=['POST'])
def reset_game(game_code):
    return _run_intent(game_code, lambda replica, data: replica.reset())
