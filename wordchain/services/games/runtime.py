from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app

from .channel import SocketIOChannel
from .events import TimeoutEvent
from .replica import ClientReplica, settle_unattended
from .scheduler import TimeoutKeeper, TimeoutScheduler
from .state import Rules, Snapshot
from .store import MemorySnapshotStore, SqlSnapshotStore

EXTENSION_KEY = 'wordchain'


@dataclass
class GameServices:
    store: object
    channel: object
    scheduler: TimeoutScheduler
    keeper: TimeoutKeeper
    rules: Rules

    def replica(self, session_id: str, user_id: str,
                on_change: Optional[Callable[[Snapshot], None]] = None) -> ClientReplica:
        return ClientReplica(
            session_id,
            user_id,
            store=self.store,
            channel=self.channel,
            keeper=self.keeper,
            rules=self.rules,
            on_change=on_change,
        )

    def settle_unattended(self, session_id: str, event: TimeoutEvent) -> Optional[Snapshot]:
        return settle_unattended(session_id, event, self.store, self.channel, self.replica)


def init_game_services(app, socketio) -> GameServices:
    """Wire store, channel and timers for the app and stash them on it.

    - The scheduler spawns no workers in TESTING unless ENABLE_SCHEDULER_IN_TESTS
    - SNAPSHOT_BACKEND='memory' keeps snapshots in process (single worker only)
    """
    rules = Rules.from_config(app.config)
    if app.config.get('SNAPSHOT_BACKEND', 'sql') == 'memory':
        store = MemorySnapshotStore()
    else:
        store = SqlSnapshotStore()
    channel = SocketIOChannel(socketio, namespace='/ws')
    manual = app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS')
    scheduler = TimeoutScheduler(
        channel,
        spawn=None if manual else socketio.start_background_task,
        app=app,
        heartbeat=int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0),
    )
    keeper = TimeoutKeeper(store, scheduler, turn_timeout=rules.turn_timeout)
    services = GameServices(store=store, channel=channel, scheduler=scheduler, keeper=keeper, rules=rules)
    scheduler.on_fired = services.settle_unattended
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> GameServices:
    return current_app.extensions[EXTENSION_KEY]
