"""Lobby helpers: who hosts a session and how a game opens."""

import random
import string
from typing import Iterable, Optional, Sequence, Tuple


def draw_opening(players: Sequence[str], rng: Optional[random.Random] = None) -> Tuple[str, str]:
    """Pick the opening letter and the first player, both uniformly."""
    rng = rng or random
    letter = rng.choice(string.ascii_uppercase)
    first = rng.choice(list(players))
    return letter, first


def host_of(players: Sequence[str], present: Optional[Iterable[str]] = None) -> Optional[str]:
    """Return the player responsible for authoritative writes.

    The host is the earliest joiner who is still attached to the session's
    channel. If presence is unknown or nobody is attached, ``players[0]``.
    """
    if not players:
        return None
    if present is not None:
        attached = set(present)
        for player in players:
            if player in attached:
                return player
    return players[0]
