"""Broadcast channels.

``LocalChannel`` fans events out to in-process subscribers (one per
attached replica). Delivery runs through a single queue: an event published
while another is being delivered, for instance by a replica reacting to a
timeout, waits its turn instead of being delivered re-entrantly.
``SocketIOChannel`` additionally mirrors every event into the session's
Socket.IO room so browser clients see the raw stream.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, List, Tuple

from .events import Event, event_to_dict

logger = logging.getLogger(__name__)

Callback = Callable[[str, Event], None]


class Subscription:
    def __init__(self, session_id: str, user_id: str, callback: Callback):
        self.session_id = session_id
        self.user_id = user_id
        self.callback = callback
        self.active = True


class LocalChannel:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()
        self._queue: Deque[Tuple[str, str, Event]] = deque()
        self._draining = False

    def subscribe(self, session_id: str, user_id: str, callback: Callback) -> Subscription:
        sub = Subscription(session_id, user_id, callback)
        with self._lock:
            self._subscribers[session_id].append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            sub.active = False
            subs = self._subscribers.get(sub.session_id, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscribers.pop(sub.session_id, None)

    def present(self, session_id: str) -> List[str]:
        """User ids attached to the session, in attach order, deduplicated."""
        with self._lock:
            users = [s.user_id for s in self._subscribers.get(session_id, [])]
        return list(dict.fromkeys(users))

    def publish(self, session_id: str, topic: str, event: Event) -> None:
        with self._lock:
            self._queue.append((session_id, topic, event))
            if self._draining:
                return
            self._draining = True
        try:
            self._drain()
        except BaseException:
            with self._lock:
                self._draining = False
            raise

    def _drain(self) -> None:
        while True:
            with self._lock:
                # flag drops under the queue lock, so a racing publish still gets drained
                if not self._queue:
                    self._draining = False
                    return
                session_id, topic, event = self._queue.popleft()
                subs = list(self._subscribers.get(session_id, []))
            self._deliver(session_id, topic, event, subs)

    def _deliver(self, session_id: str, topic: str, event: Event, subs: List[Subscription]) -> None:
        for sub in subs:
            if not sub.active:
                continue
            try:
                sub.callback(topic, event)
            except Exception:
                # One broken replica must not starve the others
                logger.exception(f"[channel-deliver-failed] game={session_id} user={sub.user_id} event={event.type}")


class SocketIOChannel(LocalChannel):
    def __init__(self, socketio, namespace: str = '/ws'):
        super().__init__()
        self.socketio = socketio
        self.namespace = namespace

    def _deliver(self, session_id, topic, event, subs):
        super()._deliver(session_id, topic, event, subs)
        payload = dict(event_to_dict(event), session_id=session_id)
        self.socketio.emit(topic, payload, to=f"game:{session_id}", namespace=self.namespace)
