"""
Payline construction.

A payline set is straight lines, a handful of fixed shapes for qualifying
dimensions, then random filler lines up to MAX_PAYLINES. Filler lines are
random, so a game's set is built once and pinned in PaylineRegistry; the
renderer overlay and the win calculator must read the same tuple.
"""
import logging
import random
import threading

from spin_engine.models import Payline

logger = logging.getLogger(__name__)

MAX_PAYLINES = 50
STRAIGHT_LINE_COLOR = '#ef4444'

# (id, indices, color, min_rows, min_reels)
SHAPED_LINES = (
    (100, (0, 1, 2), '#eab308', 3, 3),
    (101, (2, 1, 0), '#a855f7', 3, 3),
    (100, (0, 1, 2, 1, 0), '#eab308', 3, 3),
    (101, (2, 1, 0, 1, 2), '#a855f7', 3, 3),
    (102, (0, 1, 2, 3, 2), '#06b6d4', 4, 5),
    (103, (3, 2, 1, 0, 1), '#ec4899', 4, 5),
    (104, (0, 2, 4, 2, 0), '#10b981', 5, 5),
    (105, (4, 2, 0, 2, 4), '#f97316', 5, 5),
)


def build_paylines(rows, reels, rng):
    """
    Builds the payline set for a `reels` x `rows` grid.

    Args:
        rows (int): Row count.
        reels (int): Reel (column) count.
        rng: Random source for the filler lines.

    Returns:
        tuple[Payline, ...]: Exactly MAX_PAYLINES lines.
    """
    lines = [Payline(id=row + 1, indices=(row,) * reels, color=STRAIGHT_LINE_COLOR) for row in range(rows)]

    for line_id, indices, color, min_rows, min_reels in SHAPED_LINES:
        # A shape only applies to grids whose width matches it exactly.
        if rows >= min_rows and reels >= min_reels and len(indices) == reels:
            lines.append(Payline(id=line_id, indices=indices, color=color))

    while len(lines) < MAX_PAYLINES:
        indices = tuple(rng.randrange(rows) for _ in range(reels))
        color = '#{:06x}'.format(rng.randrange(0xFFFFFF))
        lines.append(Payline(id=len(lines) + 1, indices=indices, color=color))

    return tuple(lines)


class PaylineRegistry:
    """Builds each game's payline set once and returns the same tuple afterwards."""
    _cache = {}
    _lock = threading.Lock()

    @classmethod
    def get_paylines(cls, game_config):
        with cls._lock:
            key = (game_config.id, game_config.rows, game_config.reels)
            paylines = cls._cache.get(key)
            if paylines is None:
                # Seeded by game id so every process pins the same set.
                paylines = build_paylines(game_config.rows, game_config.reels, random.Random(game_config.id))
                cls._cache[key] = paylines
                logger.debug(f"Pinned {len(paylines)} paylines for game '{game_config.id}'")
            return paylines

    @classmethod
    def clear_cache(cls):
        with cls._lock:
            cls._cache.clear()
