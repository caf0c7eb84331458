"""Session snapshot and the rules it is played under.

A ``Snapshot`` is the canonical, JSON-serialisable view of one session.
Replicas hold one in memory; the store persists one per session.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional
import string


class SessionState(Enum):
    LOBBY = 'lobby'
    PLAYING = 'playing'
    ENDED = 'ended'


@dataclass(frozen=True)
class WordEntry:
    author: str
    word: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {'by': self.author, 'word': self.word, 'timestamp': self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WordEntry':
        return cls(author=str(data['by']), word=str(data['word']), timestamp=float(data['timestamp']))


@dataclass(frozen=True)
class Rules:
    """Tunables shared by every replica of a session."""
    turn_timeout: float = 60.0
    word_max_age: float = 5.0
    min_players: int = 2
    allow_reset: bool = True
    enforce_letter: bool = False

    @classmethod
    def from_config(cls, cfg) -> 'Rules':
        return cls(
            turn_timeout=float(cfg.get('TURN_TIMEOUT_SEC', 60)),
            word_max_age=float(cfg.get('WORD_MAX_AGE_SEC', 5)),
            # A game of one can never end, so two is a hard floor
            min_players=max(2, int(cfg.get('MIN_PLAYERS', 2))),
            allow_reset=bool(cfg.get('ALLOW_RESET_TO_LOBBY', True)),
            enforce_letter=bool(cfg.get('ENFORCE_STARTING_LETTER', False)),
        )


@dataclass(frozen=True)
class Snapshot:
    session_id: str
    state: SessionState = SessionState.LOBBY
    players: List[str] = field(default_factory=list)
    current_turn: Optional[str] = None
    letter: Optional[str] = None
    word_log: List[WordEntry] = field(default_factory=list)
    lost_players: List[str] = field(default_factory=list)
    leaderboard: Optional[List[str]] = None

    @classmethod
    def lobby(cls, session_id: str, players: Optional[List[str]] = None) -> 'Snapshot':
        return cls(session_id=session_id, players=list(players or []))

    @property
    def host(self) -> Optional[str]:
        return self.players[0] if self.players else None

    @property
    def active_players(self) -> List[str]:
        return [p for p in self.players if p not in self.lost_players]

    def evolve(self, **changes) -> 'Snapshot':
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'state': self.state.value,
            'players': list(self.players),
            'current_turn': self.current_turn,
            'letter': self.letter,
            'word_log': [w.to_dict() for w in self.word_log],
            'lost_players': list(self.lost_players),
            'leaderboard': list(self.leaderboard) if self.leaderboard is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Snapshot':
        """Build a snapshot from its serialised form.

        Raises ``ValueError`` when the data breaks the model's invariants,
        so callers can fall back to a lobby.
        """
        try:
            state = SessionState(data.get('state', SessionState.LOBBY.value))
            players = [str(p) for p in data.get('players') or []]
            lost = [str(p) for p in data.get('lost_players') or []]
            words = [WordEntry.from_dict(w) for w in data.get('word_log') or []]
        except (KeyError, TypeError) as exc:
            raise ValueError(f'malformed snapshot: {exc}') from exc

        if len(set(players)) != len(players):
            raise ValueError('duplicate players')
        if len(set(lost)) != len(lost) or not set(lost) <= set(players):
            raise ValueError('lost players must be distinct members of players')

        snapshot = cls(
            session_id=str(data.get('session_id') or ''),
            state=state,
            players=players,
            word_log=words,
            lost_players=lost,
        )
        if state is SessionState.PLAYING:
            turn = data.get('current_turn')
            letter = data.get('letter')
            if turn not in snapshot.active_players:
                raise ValueError(f'current turn {turn!r} is not an active player')
            if not isinstance(letter, str) or len(letter) != 1:
                raise ValueError(f'invalid letter {letter!r}')
            return snapshot.evolve(current_turn=turn, letter=letter.upper())
        if state is SessionState.ENDED:
            board = [str(p) for p in data.get('leaderboard') or []]
            if sorted(board) != sorted(players):
                raise ValueError('leaderboard is not a permutation of players')
            return snapshot.evolve(leaderboard=board)
        return snapshot


def is_letter(value: Optional[str]) -> bool:
    return isinstance(value, str) and len(value) == 1 and value.upper() in string.ascii_uppercase
