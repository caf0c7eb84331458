"""Broadcast events and the two topics they travel on.

Every message is a tagged variant: ``{"type": ..., "data": {...}}``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

LIFECYCLE_TOPIC = 'word_chain_post'
GAMEPLAY_TOPIC = 'word_chain_gameplay'


@dataclass(frozen=True)
class JoinEvent:
    type: ClassVar[str] = 'joinGame'
    topic: ClassVar[str] = LIFECYCLE_TOPIC
    username: str


@dataclass(frozen=True)
class LeaveEvent:
    type: ClassVar[str] = 'leaveGame'
    topic: ClassVar[str] = LIFECYCLE_TOPIC
    username: str


@dataclass(frozen=True)
class StartEvent:
    type: ClassVar[str] = 'startGame'
    topic: ClassVar[str] = LIFECYCLE_TOPIC
    letter: str
    current_turn: str


@dataclass(frozen=True)
class ResetEvent:
    type: ClassVar[str] = 'resetGame'
    topic: ClassVar[str] = LIFECYCLE_TOPIC


@dataclass(frozen=True)
class EndedEvent:
    type: ClassVar[str] = 'gameEnded'
    topic: ClassVar[str] = LIFECYCLE_TOPIC
    leaderboard: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AddWordEvent:
    type: ClassVar[str] = 'addWord'
    topic: ClassVar[str] = GAMEPLAY_TOPIC
    author: str
    word: str
    timestamp: float


@dataclass(frozen=True)
class TimeoutEvent:
    # player is whoever held the turn when the job was armed
    type: ClassVar[str] = 'timeout'
    topic: ClassVar[str] = GAMEPLAY_TOPIC
    player: Optional[str] = None
    job_id: Optional[str] = None


Event = Union[JoinEvent, LeaveEvent, StartEvent, ResetEvent, EndedEvent, AddWordEvent, TimeoutEvent]


def event_to_dict(event: Event) -> Dict[str, Any]:
    return {'type': event.type, 'data': asdict(event)}

