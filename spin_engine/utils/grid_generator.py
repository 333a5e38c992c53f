"""
Spin grid generation.

A grid is filled from the weight tables and then shaped by scripted features,
in order: third-column softening, jackpot screen, mega match, wild stacks,
symbol stacks and scatter shaping. Later steps may overwrite earlier ones.
Grids are column-major (`grid[col][row]`) and every cell is always filled.
"""
import logging
from collections import namedtuple

from spin_engine.models import GameTheme, HIGH_PAY_SYMBOLS, LOW_PAY_SYMBOLS, Symbol
from spin_engine.utils.symbol_tables import draw_weighted_symbol, get_dynamic_weights

logger = logging.getLogger(__name__)

GridOutcome = namedtuple('GridOutcome', ['grid', 'features'])

JACKPOT_SCREEN_CHANCE = 0.00001
SOFTENING_COLUMN = 2
SOFTENING_CHANCE = 0.5

MEGA_MATCH_CHANCE = 0.16
MEGA_MATCH_CHANCE_FREE_SPIN = 0.24
MEGA_MATCH_SYMBOLS = (Symbol.GRAPE, Symbol.BELL, Symbol.BAR, Symbol.CHERRY, Symbol.SEVEN)
MEGA_MATCH_THROTTLED = (Symbol.BAR, Symbol.CHERRY, Symbol.SEVEN)
MEGA_MATCH_CANCEL_CHANCE = 0.85
MEGA_MATCH_CANCEL_CHANCE_FREE_SPIN = 0.30

FIRST_COLUMN_WILD_REROLL_CHANCE = 0.98
FIRST_COLUMN_WILD_INJECT_CHANCE = 0.005

SYMBOL_STACK_CHANCE = 0.05
SYMBOL_STACK_CHANCE_SMALL_GRID = 0.01
# Cumulative roll thresholds
SYMBOL_STACK_TABLE = (
    (0.40, Symbol.GRAPE),
    (0.60, Symbol.BAR),
    (0.80, Symbol.CHERRY),
    (0.90, Symbol.SEVEN),
)
SYMBOL_STACK_FALLBACK = Symbol.BELL

# Percentile roll (0-100) -> target scatter count, highest first
SCATTER_TIERS = (
    (99.75, 4),
    (99.0, 3),
    (82, 2),
    (60, 1),
)
DRAGON_SCATTER_BONUS_TIER = (99.25, 4)
SCATTER_INJECTION_ATTEMPTS = 200
SCATTER_WILD_OVERWRITE_AFTER = 100


def _wild_stack_chance(reels, col):
    if reels >= 5:
        return {2: 0.12, 3: 0.16, 4: 0.24}.get(col, 0.0)
    if reels <= 3:
        return {1: 0.06, 2: 0.08}.get(col, 0.0)
    return {1: 0.15, 2: 0.20}.get(col, 0.0)


def _mega_match_columns(reels):
    if reels > 3:
        return range(1, min(4, reels))
    return range(reels)


def _base_fill(game_config, weights, rng):
    columns = []
    for col in range(game_config.reels):
        column = []
        for _ in range(game_config.rows):
            symbol = draw_weighted_symbol(weights, rng)
            if col == SOFTENING_COLUMN and symbol in HIGH_PAY_SYMBOLS and rng.random() < SOFTENING_CHANCE:
                symbol = rng.choice(LOW_PAY_SYMBOLS)
            column.append(symbol)
        columns.append(column)
    return columns


def _roll_mega_match(is_free_spin, rng):
    """Returns the mega-match symbol for this spin, or None."""
    if rng.random() >= (MEGA_MATCH_CHANCE_FREE_SPIN if is_free_spin else MEGA_MATCH_CHANCE):
        return None
    symbol = rng.choice(MEGA_MATCH_SYMBOLS)
    if symbol in MEGA_MATCH_THROTTLED:
        cancel_chance = MEGA_MATCH_CANCEL_CHANCE_FREE_SPIN if is_free_spin else MEGA_MATCH_CANCEL_CHANCE
        if rng.random() < cancel_chance:
            return None
    return symbol


def _roll_stack_symbol(rng):
    roll = rng.random()
    for threshold, symbol in SYMBOL_STACK_TABLE:
        if roll < threshold:
            return symbol
    return SYMBOL_STACK_FALLBACK


def roll_scatter_target(theme, reels, rng):
    """
    Rolls how many scatters the finished grid should show.

    Args:
        theme (GameTheme): DRAGON games get an extra 4-scatter tier.
        reels (int): The target never exceeds one scatter per reel.
        rng: Random source.

    Returns:
        int: Target scatter count.
    """
    roll = rng.random() * 100
    target = 0
    for threshold, count in SCATTER_TIERS:
        if roll >= threshold:
            target = count
            break
    if theme == GameTheme.DRAGON and roll >= DRAGON_SCATTER_BONUS_TIER[0]:
        target = max(target, DRAGON_SCATTER_BONUS_TIER[1])
    return min(target, reels)


def _limit_scatters_per_column(columns, rng):
    """Keeps the first scatter in each column and replaces the rest with low-pay symbols."""
    for column in columns:
        seen_scatter = False
        for row, symbol in enumerate(column):
            if symbol != Symbol.SCATTER:
                continue
            if seen_scatter:
                column[row] = rng.choice(LOW_PAY_SYMBOLS)
            seen_scatter = True


def _inject_scatters(columns, target, rng):
    reels = len(columns)
    rows = len(columns[0])
    needed = target - sum(column.count(Symbol.SCATTER) for column in columns)
    attempts = 0
    while needed > 0 and attempts < SCATTER_INJECTION_ATTEMPTS:
        col = rng.randrange(reels)
        row = rng.randrange(rows)
        current = columns[col][row]
        can_overwrite = current != Symbol.SCATTER and (current != Symbol.WILD or attempts > SCATTER_WILD_OVERWRITE_AFTER)
        if can_overwrite and Symbol.SCATTER not in columns[col]:
            columns[col][row] = Symbol.SCATTER
            needed -= 1
        attempts += 1
    if needed > 0:
        logger.debug(f"Scatter injection stopped after {attempts} attempts with {needed} scatter(s) short")


def generate_spin_outcome(game_config, is_free_spin, spins_without_bonus, rng, pity_timer=None):
    """
    Generates one spin's grid together with the features that shaped it.

    Args:
        game_config (GameConfiguration): Active game; supplies reels, rows and theme.
        is_free_spin (bool): Draw from the free-spin table and free-spin feature odds.
        spins_without_bonus (int): Paid spins since the last bonus, for dynamic weighting.
        rng: Random source (random.Random compatible).
        pity_timer (PityTimer | None): Optional scatter boost for long dry spells.

    Returns:
        GridOutcome: `grid` is a tuple of column tuples; `features` describes
        the scripted features that fired.
    """
    weights = get_dynamic_weights(is_free_spin, spins_without_bonus, pity_timer)
    reels, rows = game_config.reels, game_config.rows
    features = {
        'jackpot_screen': False,
        'mega_match': None,
        'wild_stacks': [],
        'symbol_stacks': {},
        'scatter_target': 0,
    }

    columns = _base_fill(game_config, weights, rng)

    if rng.random() < JACKPOT_SCREEN_CHANCE:
        logger.info(f"Jackpot screen on game '{game_config.id}'")
        features['jackpot_screen'] = True
        grid = tuple(tuple(Symbol.WILD for _ in range(rows)) for _ in range(reels))
        return GridOutcome(grid, features)

    mega_symbol = _roll_mega_match(is_free_spin, rng)
    mega_columns = _mega_match_columns(reels) if mega_symbol is not None else ()
    if mega_symbol is not None:
        features['mega_match'] = mega_symbol

    small_grid = game_config.is_small_grid
    for col in range(reels):
        event_triggered = False
        if col in mega_columns:
            columns[col] = [mega_symbol] * rows
            event_triggered = True

        if not event_triggered:
            if col == 0:
                for row in range(rows):
                    if columns[0][row] == Symbol.WILD and rng.random() < FIRST_COLUMN_WILD_REROLL_CHANCE:
                        rerolled = draw_weighted_symbol(weights, rng)
                        columns[0][row] = Symbol.TEN if rerolled == Symbol.WILD else rerolled
                    if rng.random() < FIRST_COLUMN_WILD_INJECT_CHANCE:
                        columns[0][row] = Symbol.WILD
            elif rng.random() < _wild_stack_chance(reels, col):
                columns[col] = [Symbol.WILD] * rows
                features['wild_stacks'].append(col)
                event_triggered = True

        if not event_triggered:
            stack_chance = SYMBOL_STACK_CHANCE_SMALL_GRID if small_grid else SYMBOL_STACK_CHANCE
            if rng.random() < stack_chance:
                stack_symbol = _roll_stack_symbol(rng)
                columns[col] = [stack_symbol] * rows
                features['symbol_stacks'][col] = stack_symbol

    _limit_scatters_per_column(columns, rng)
    target = roll_scatter_target(game_config.theme, reels, rng)
    features['scatter_target'] = target
    _inject_scatters(columns, target, rng)

    return GridOutcome(tuple(tuple(column) for column in columns), features)


def generate_spin_grid(game_config, is_free_spin, spins_without_bonus, rng, pity_timer=None):
    """Generates one spin's grid, discarding the feature report."""
    return generate_spin_outcome(game_config, is_free_spin, spins_without_bonus, rng, pity_timer).grid
