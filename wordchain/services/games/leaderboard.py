from typing import List, Sequence


def build_leaderboard(players: Sequence[str], lost_players: Sequence[str]) -> List[str]:
    """Rank every player once the game is down to a single survivor.

    The survivor comes first, then the eliminated players from the most
    recent elimination back to the earliest.
    """
    remaining = [p for p in players if p not in lost_players]
    if len(remaining) != 1:
        raise ValueError(f'leaderboard needs exactly one remaining player, got {len(remaining)}')
    return remaining + list(reversed(lost_players))
