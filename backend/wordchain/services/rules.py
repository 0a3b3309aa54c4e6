"""Pure turn rules shared by the round engine and the client view model.

Players are anything with ``join_order`` and ``status`` attributes.
"""

import math
from typing import Iterable


def remaining_seconds(timer_duration, start_time, now) -> int:
    """Whole seconds left on a turn that started at ``start_time``."""
    duration = int(timer_duration)
    if start_time is None:
        return duration
    elapsed = math.floor(now - start_time)
    return max(0, min(duration, duration - elapsed))


def next_active_player(players: Iterable, current_join_order: int):
    """Active player with the next-higher join order, wrapping to the lowest."""
    active = sorted((p for p in players if p.status == 'active'), key=lambda p: p.join_order)
    if not active:
        return None
    for p in active:
        if p.join_order > current_join_order:
            return p
    return active[0]


def find_winner(players: Iterable):
    players = list(players)
    active = [p for p in players if p.status == 'active']
    if len(players) >= 2 and len(active) == 1:
        return active[0]
    return None
