"""Snapshot stores.

Both stores keep each snapshot field as its own JSON value, the way a
key-value store would, and share the decoding path in ``SnapshotStore``:
a missing session or any field that fails to parse yields a lobby rather
than an error. Writes are fire-and-forget.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .state import Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = ('state', 'players', 'current_turn', 'letter', 'word_log', 'lost_players', 'leaderboard')


def encode_fields(snapshot: Snapshot) -> Dict[str, str]:
    data = snapshot.to_dict()
    return {key: json.dumps(data[key]) for key in SNAPSHOT_FIELDS}


def _salvage_players(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return list(dict.fromkeys(str(p) for p in value if p))


class SnapshotStore:
    """Typed repository over a session's persisted fields."""

    def load_snapshot(self, session_id: str) -> Snapshot:
        raw = self._read(session_id)
        if raw is None:
            return Snapshot.lobby(session_id)
        data: Dict[str, Any] = {}
        broken = []
        for key, text in raw.items():
            if text is None:
                continue
            try:
                data[key] = json.loads(text)
            except (TypeError, ValueError):
                broken.append(key)
        try:
            if broken:
                raise ValueError(f"unparsable fields: {', '.join(broken)}")
            return Snapshot.from_dict(dict(data, session_id=session_id))
        except ValueError as exc:
            logger.warning(f"[snapshot-degraded] game={session_id} reason={exc}")
            return Snapshot.lobby(session_id, players=_salvage_players(data.get('players')))

    def save_snapshot(self, session_id: str, snapshot: Snapshot) -> None:
        raise NotImplementedError

    def get_timeout_job(self, session_id: str) -> Optional[str]:
        raise NotImplementedError

    def set_timeout_job(self, session_id: str, job_id: Optional[str]) -> None:
        raise NotImplementedError

    def _read(self, session_id: str) -> Optional[Dict[str, Optional[str]]]:
        raise NotImplementedError


class MemorySnapshotStore(SnapshotStore):
    """Process-local store; ``documents`` maps session id to its JSON fields."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Optional[str]]] = {}
        self.timeout_jobs: Dict[str, Optional[str]] = {}

    def _read(self, session_id):
        doc = self.documents.get(session_id)
        return dict(doc) if doc is not None else None

    def save_snapshot(self, session_id, snapshot):
        self.documents[session_id] = encode_fields(snapshot)

    def get_timeout_job(self, session_id):
        return self.timeout_jobs.get(session_id)

    def set_timeout_job(self, session_id, job_id):
        self.timeout_jobs[session_id] = job_id


class SqlSnapshotStore(SnapshotStore):
    """Snapshot rows in the ``game`` table, keyed by game code.

    Must be used inside an application context.
    """

    def _row(self, session_id: str, create: bool = False):
        from wordchain import db
        from wordchain.models import Game

        game = Game.query.filter_by(game_code=session_id).first()
        if game is None and create:
            game = Game(game_code=session_id)
            db.session.add(game)
        return game

    def _read(self, session_id):
        game = self._row(session_id)
        if game is None:
            return None
        return {
            'state': json.dumps(game.state) if game.state else None,
            'players': game.players,
            'current_turn': json.dumps(game.current_turn),
            'letter': json.dumps(game.letter),
            'word_log': game.word_log,
            'lost_players': game.lost_players,
            'leaderboard': game.leaderboard,
        }

    def _commit(self, session_id: str, what: str) -> None:
        from wordchain import db

        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning(f"[store-write-failed] game={session_id} what={what} error={exc}")

    def save_snapshot(self, session_id, snapshot):
        fields = encode_fields(snapshot)
        try:
            game = self._row(session_id, create=True)
            game.state = snapshot.state.value
            game.players = fields['players']
            game.current_turn = snapshot.current_turn
            game.letter = snapshot.letter
            game.word_log = fields['word_log']
            game.lost_players = fields['lost_players']
            game.leaderboard = fields['leaderboard']
        except SQLAlchemyError as exc:
            logger.warning(f"[store-write-failed] game={session_id} what=snapshot error={exc}")
            return
        self._commit(session_id, 'snapshot')

    def get_timeout_job(self, session_id):
        game = self._row(session_id)
        return game.timeout_job_id if game else None

    def set_timeout_job(self, session_id, job_id):
        try:
            game = self._row(session_id, create=True)
            game.timeout_job_id = job_id
        except SQLAlchemyError as exc:
            logger.warning(f"[store-write-failed] game={session_id} what=timeout_job error={exc}")
            return
        self._commit(session_id, 'timeout_job')
