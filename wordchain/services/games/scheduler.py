"""Turn timers.

``TimeoutScheduler`` owns delayed jobs whose only effect is publishing a
``timeout`` event for a session. ``TimeoutKeeper`` is the debounce on top:
one outstanding job per session, cancelled and rescheduled on every accepted
word.
"""

import logging
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from .events import GAMEPLAY_TOPIC, TimeoutEvent

logger = logging.getLogger(__name__)


class TimeoutScheduler:
    """Delayed ``timeout`` publisher.

    - ``spawn`` starts a background worker per job (``socketio.start_background_task``
      in the app); when None, nothing runs on its own and jobs are fired by
      calling ``fire``
    - workers run inside ``app.app_context()`` when an app is given
    - a cancelled job never fires
    - ``on_fired(session_id, event)`` runs after every delivered timeout
    """

    def __init__(self, channel, spawn: Optional[Callable] = None, app=None,
                 heartbeat: int = 0, clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep):
        self.channel = channel
        self.spawn = spawn
        self.app = app
        self.heartbeat = heartbeat
        self.clock = clock
        self.sleep = sleep
        self.on_fired: Optional[Callable[[str, TimeoutEvent], None]] = None
        self._jobs: Dict[str, Tuple[str, Optional[str], float]] = {}
        self._lock = threading.Lock()

    def schedule_at(self, when: float, session_id: str, player: Optional[str] = None) -> str:
        job_id = uuid.uuid4().hex
        with self._lock:
            self._jobs[job_id] = (session_id, player, when)
        logger.info(f"[timer-set] game={session_id} player={player} job={job_id} deadline={when}")
        if self.spawn is not None:
            self.spawn(self._worker, job_id, max(0.0, when - self.clock()))
        return job_id

    def cancel(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is not None:
            logger.info(f"[timer-cancel] game={job[0]} job={job_id}")
        return job is not None

    def pending(self, session_id: Optional[str] = None) -> List[str]:
        with self._lock:
            return [jid for jid, job in self._jobs.items() if session_id is None or job[0] == session_id]

    def deadline(self, job_id: str) -> Optional[float]:
        with self._lock:
            job = self._jobs.get(job_id)
        return job[2] if job else None

    def fire(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            logger.info(f"[timer-abort] job={job_id} cancelled or already fired")
            return False
        session_id, player, _ = job
        logger.info(f"[timer-fire] game={session_id} player={player} job={job_id}")
        event = TimeoutEvent(player=player, job_id=job_id)
        self.channel.publish(session_id, GAMEPLAY_TOPIC, event)
        if self.on_fired is not None:
            self.on_fired(session_id, event)
        return True

    def _worker(self, job_id: str, delay: float) -> None:
        if self.heartbeat and self.heartbeat > 0:
            slept = 0.0
            while slept < delay:
                step = min(self.heartbeat, delay - slept)
                self.sleep(step)
                slept += step
                if job_id not in self.pending():
                    return
                logger.info(f"[timer-heartbeat] job={job_id} remaining={max(0.0, delay - slept)}s")
        else:
            self.sleep(delay)
        if self.app is not None:
            with self.app.app_context():
                self.fire(job_id)
        else:
            self.fire(job_id)


class TimeoutKeeper:
    """Cancel-and-reschedule over a scheduler, with the job id kept in the store."""

    def __init__(self, store, scheduler: TimeoutScheduler, turn_timeout: float = 60.0,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.scheduler = scheduler
        self.turn_timeout = turn_timeout
        self.clock = clock

    def rearm(self, session_id: str, player: Optional[str]) -> str:
        self.disarm(session_id)
        job_id = self.scheduler.schedule_at(self.clock() + self.turn_timeout, session_id, player)
        self.store.set_timeout_job(session_id, job_id)
        return job_id

    def disarm(self, session_id: str) -> None:
        job_id = self.store.get_timeout_job(session_id)
        if not job_id:
            return
        try:
            self.scheduler.cancel(job_id)
        except Exception as exc:
            # Best effort: a job that still fires is absorbed by the reducer
            logger.warning(f"[timer-cancel-failed] game={session_id} job={job_id} error={exc}")
        self.store.set_timeout_job(session_id, None)
