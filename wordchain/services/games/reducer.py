"""Reducer - the single place session state changes.

``apply_event(snapshot, event, rules, now)`` returns the next snapshot. It is
used the same way for an intent applied locally and for an event received
from the broadcast channel, so every replica that sees the same events ends
up in the same state.

An event that does not apply (wrong state, stale, duplicate) returns the
very same snapshot object; callers compare with ``is`` to detect a no-op.
"""

from __future__ import annotations

import math
import time
from typing import Callable, Dict, Optional, Sequence

from .events import (
    AddWordEvent, EndedEvent, Event, JoinEvent, LeaveEvent, ResetEvent,
    StartEvent, TimeoutEvent,
)
from .leaderboard import build_leaderboard
from .state import Rules, SessionState, Snapshot, WordEntry, is_letter

DEFAULT_RULES = Rules()


def next_active(players: Sequence[str], lost_players: Sequence[str], current: Optional[str]) -> Optional[str]:
    """Next non-eliminated player after ``current`` in join order, wrapping."""
    if not players:
        return None
    start = players.index(current) if current in players else -1
    for step in range(1, len(players) + 1):
        candidate = players[(start + step) % len(players)]
        if candidate not in lost_players:
            return candidate
    return None


def _on_join(snapshot: Snapshot, event: JoinEvent, rules: Rules, now: float) -> Snapshot:
    if snapshot.state is not SessionState.LOBBY or not event.username:
        return snapshot
    if event.username in snapshot.players:
        return snapshot
    return snapshot.evolve(players=snapshot.players + [event.username])


def _on_leave(snapshot: Snapshot, event: LeaveEvent, rules: Rules, now: float) -> Snapshot:
    # Players are fixed once the game starts
    if snapshot.state is not SessionState.LOBBY or event.username not in snapshot.players:
        return snapshot
    return snapshot.evolve(players=[p for p in snapshot.players if p != event.username])


def _on_start(snapshot: Snapshot, event: StartEvent, rules: Rules, now: float) -> Snapshot:
    if snapshot.state is not SessionState.LOBBY:
        return snapshot
    if len(snapshot.players) < max(2, rules.min_players):
        return snapshot
    if event.current_turn not in snapshot.players or not is_letter(event.letter):
        return snapshot
    return snapshot.evolve(
        state=SessionState.PLAYING,
        letter=event.letter.upper(),
        current_turn=event.current_turn,
        word_log=[],
        lost_players=[],
        leaderboard=None,
    )


def _on_add_word(snapshot: Snapshot, event: AddWordEvent, rules: Rules, now: float) -> Snapshot:
    if snapshot.state is not SessionState.PLAYING:
        return snapshot
    word = (event.word or '').strip()
    if not word:
        return snapshot
    if not math.isfinite(event.timestamp) or now - event.timestamp > rules.word_max_age:
        return snapshot
    # A redelivered word arrives after the turn has moved on
    if event.author != snapshot.current_turn:
        return snapshot
    return snapshot.evolve(
        word_log=snapshot.word_log + [WordEntry(event.author, word, event.timestamp)],
        letter=word[-1].upper(),
        current_turn=next_active(snapshot.players, snapshot.lost_players, snapshot.current_turn),
    )


def _on_timeout(snapshot: Snapshot, event: TimeoutEvent, rules: Rules, now: float) -> Snapshot:
    if snapshot.state is not SessionState.PLAYING:
        return snapshot
    player = event.player or snapshot.current_turn
    if player in snapshot.lost_players or player != snapshot.current_turn:
        return snapshot
    lost = snapshot.lost_players + [player]
    remaining = [p for p in snapshot.players if p not in lost]
    if len(remaining) <= 1:
        return snapshot.evolve(
            state=SessionState.ENDED,
            lost_players=lost,
            leaderboard=build_leaderboard(snapshot.players, lost),
            current_turn=None,
            letter=None,
        )
    return snapshot.evolve(
        lost_players=lost,
        current_turn=next_active(snapshot.players, lost, player),
    )


def _on_reset(snapshot: Snapshot, event: ResetEvent, rules: Rules, now: float) -> Snapshot:
    if not rules.allow_reset or snapshot.state is SessionState.LOBBY:
        return snapshot
    return Snapshot.lobby(snapshot.session_id, players=snapshot.players)


def _on_ended(snapshot: Snapshot, event: EndedEvent, rules: Rules, now: float) -> Snapshot:
    # Only a replica that missed eliminations needs the host's ranking
    if snapshot.state is not SessionState.PLAYING:
        return snapshot
    board = list(event.leaderboard)
    if len(board) != len(snapshot.players) or set(board) != set(snapshot.players):
        return snapshot
    return snapshot.evolve(
        state=SessionState.ENDED,
        lost_players=list(reversed(board[1:])),
        leaderboard=board,
        current_turn=None,
        letter=None,
    )


_HANDLERS: Dict[type, Callable[[Snapshot, Event, Rules, float], Snapshot]] = {
    JoinEvent: _on_join,
    LeaveEvent: _on_leave,
    StartEvent: _on_start,
    AddWordEvent: _on_add_word,
    TimeoutEvent: _on_timeout,
    ResetEvent: _on_reset,
    EndedEvent: _on_ended,
}


def apply_event(snapshot: Snapshot, event: Event, rules: Optional[Rules] = None, now: Optional[float] = None) -> Snapshot:
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f'no handler for event {type(event).__name__}')
    return handler(snapshot, event, rules or DEFAULT_RULES, time.time() if now is None else now)
