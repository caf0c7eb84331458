"""Client replica - one player's live view of a session.

An intent is applied to the local view first, then persisted, then
broadcast. Events from the channel go through the same reducer, so a
replica receiving its own broadcast back is a no-op.

Only the host writes the consequences of a timeout (elimination, the next
timer, the final ranking); everyone else just updates their view. The host
is the earliest joiner still attached to the channel.
"""

from __future__ import annotations

import logging
import math
import random
import time
from typing import Callable, Optional

from .errors import GameError, NotAllowed, NotEnoughPlayers, WordRejected
from .events import (
    GAMEPLAY_TOPIC, AddWordEvent, EndedEvent, Event, JoinEvent, LeaveEvent, ResetEvent,
    StartEvent, TimeoutEvent,
)
from .lobby import draw_opening, host_of
from .reducer import apply_event
from .state import Rules, SessionState, Snapshot

logger = logging.getLogger(__name__)


class ClientReplica:
    def __init__(self, session_id: str, user_id: str, store, channel, keeper,
                 rules: Optional[Rules] = None, clock: Callable[[], float] = time.time,
                 rng: Optional[random.Random] = None,
                 on_change: Optional[Callable[[Snapshot], None]] = None):
        self.session_id = session_id
        self.user_id = user_id
        self.store = store
        self.channel = channel
        self.keeper = keeper
        self.rules = rules or Rules()
        self.clock = clock
        self.rng = rng
        self.on_change = on_change
        self.snapshot = Snapshot.lobby(session_id)
        self._subscription = None

    # ---- lifecycle ----

    def hydrate(self) -> Snapshot:
        self.snapshot = self.store.load_snapshot(self.session_id)
        self._notify()
        return self.snapshot

    def attach(self) -> Snapshot:
        snapshot = self.hydrate()
        if self._subscription is None:
            self._subscription = self.channel.subscribe(self.session_id, self.user_id, self.receive)
        logger.info(f"[replica-attach] game={self.session_id} user={self.user_id} state={snapshot.state.value}")
        return snapshot

    def detach(self) -> None:
        if self._subscription is not None:
            self.channel.unsubscribe(self._subscription)
            self._subscription = None
            logger.info(f"[replica-detach] game={self.session_id} user={self.user_id}")

    @property
    def attached(self) -> bool:
        return self._subscription is not None

    @property
    def is_host(self) -> bool:
        return host_of(self.snapshot.players, self.channel.present(self.session_id)) == self.user_id

    # ---- intents ----

    def join(self) -> Snapshot:
        self._require(SessionState.LOBBY, 'The game is not in the lobby')
        if self.user_id in self.snapshot.players:
            return self.snapshot
        return self._commit(JoinEvent(self.user_id))

    def leave(self) -> Snapshot:
        self._require(SessionState.LOBBY, 'Players cannot leave a game in progress')
        if self.user_id not in self.snapshot.players:
            return self.snapshot
        return self._commit(LeaveEvent(self.user_id))

    def start(self) -> Snapshot:
        self._require(SessionState.LOBBY, 'Game has already started or is finished')
        if self.user_id not in self.snapshot.players:
            raise NotAllowed('You are not a player in this game')
        needed = max(2, self.rules.min_players)
        if len(self.snapshot.players) < needed:
            raise NotEnoughPlayers(f'At least {needed} players are required to start')
        letter, first = draw_opening(self.snapshot.players, self.rng)
        snapshot = self._commit(StartEvent(letter=letter, current_turn=first))
        self.keeper.rearm(self.session_id, snapshot.current_turn)
        return snapshot

    def submit_word(self, word: str, timestamp: Optional[float] = None) -> Snapshot:
        self._require(SessionState.PLAYING, 'The game is not in progress')
        if self.snapshot.current_turn != self.user_id:
            raise NotAllowed('It is not your turn')
        word = (word or '').strip()
        if not word:
            raise WordRejected('A word is required')
        if self.rules.enforce_letter and word[0].upper() != self.snapshot.letter:
            raise WordRejected(f'Your word must start with {self.snapshot.letter}')
        timestamp = self.clock() if timestamp is None else float(timestamp)
        if not math.isfinite(timestamp):
            raise WordRejected('timestamp must be a finite number')
        before = self.snapshot
        event = AddWordEvent(author=self.user_id, word=word, timestamp=timestamp)
        snapshot = self._commit(event)
        if snapshot is before:
            raise WordRejected('Word arrived too late')
        self.keeper.rearm(self.session_id, snapshot.current_turn)
        return snapshot

    def reset(self) -> Snapshot:
        if not self.rules.allow_reset:
            raise NotAllowed('Returning to the lobby is disabled')
        if self.snapshot.state is SessionState.LOBBY:
            return self.snapshot
        snapshot = self._commit(ResetEvent())
        self.keeper.disarm(self.session_id)
        return snapshot

    # ---- inbound ----

    def receive(self, topic: str, event: Event) -> None:
        before = self.snapshot
        updated = apply_event(before, event, self.rules, now=self.clock())
        if updated is before:
            if self._missed_start(before, event):
                logger.warning(f"[replica-diverged] game={self.session_id} user={self.user_id} turn={event.current_turn} players={before.players}")
                self.hydrate()
                return
            logger.debug(f"[replica-noop] game={self.session_id} user={self.user_id} event={event.type}")
            return
        self.snapshot = updated
        self._notify()
        if isinstance(event, TimeoutEvent) and self.is_host:
            self._settle_timeout(updated)

    @staticmethod
    def _missed_start(snapshot: Snapshot, event: Event) -> bool:
        # the starter saved before broadcasting, so the store already holds the full roster
        return isinstance(event, StartEvent) and snapshot.state is SessionState.LOBBY

    def _settle_timeout(self, snapshot: Snapshot) -> None:
        eliminated = snapshot.lost_players[-1] if snapshot.lost_players else None
        logger.info(f"[eliminated] game={self.session_id} player={eliminated} host={self.user_id}")
        self.store.save_snapshot(self.session_id, snapshot)
        if snapshot.state is SessionState.ENDED:
            self.keeper.disarm(self.session_id)
            logger.info(f"[game-ended] game={self.session_id} leaderboard={snapshot.leaderboard}")
            self.channel.publish(self.session_id, EndedEvent.topic, EndedEvent(leaderboard=list(snapshot.leaderboard)))
        else:
            self.keeper.rearm(self.session_id, snapshot.current_turn)

    # ---- helpers ----

    def _require(self, state: SessionState, message: str) -> None:
        if self.snapshot.state is not state:
            raise GameError(message)

    def _commit(self, event: Event) -> Snapshot:
        before = self.snapshot
        updated = apply_event(before, event, self.rules, now=self.clock())
        if updated is before:
            return before
        self.snapshot = updated
        self._notify()
        self.store.save_snapshot(self.session_id, updated)
        self.channel.publish(self.session_id, event.topic, event)
        logger.info(f"[intent] game={self.session_id} user={self.user_id} event={event.type}")
        return updated

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.snapshot)


def settle_unattended(session_id: str, event: TimeoutEvent, store, channel,
                      make_replica: Callable[[str, str], ClientReplica]) -> Optional[Snapshot]:
    """Settle a fired timeout for a session none of whose players is attached.

    Nobody received the event, so a replica for the fallback host is hydrated
    from the store and takes it instead. Returns the settled snapshot, or None
    when an attached player already handled it.
    """
    snapshot = store.load_snapshot(session_id)
    if snapshot.state is not SessionState.PLAYING:
        return None
    present = channel.present(session_id)
    if any(player in present for player in snapshot.players):
        return None
    host = host_of(snapshot.players, present)
    logger.info(f"[timeout-unattended] game={session_id} player={event.player} settled_by={host}")
    replica = make_replica(session_id, host)
    replica.snapshot = snapshot
    replica.receive(GAMEPLAY_TOPIC, event)
    return replica.snapshot
