"""
Payline and scatter evaluation for a finished grid.

Everything here is a pure function of (grid, bet, game configuration,
paylines); evaluating the same inputs twice gives identical results.
"""
import logging
import math

from spin_engine.models import LineWin, Symbol, WinResult

logger = logging.getLogger(__name__)

MIN_MATCH_LENGTH = 3
# Neutral symbol read in place of a cell outside the grid.
OUT_OF_RANGE_SYMBOL = Symbol.TEN

# Payout multiple of the bet -> tier label, highest first
WIN_TIERS = (
    (250, 'ULTIMATE WIN'),
    (100, 'MEGA WIN'),
    (50, 'EPIC WIN'),
    (20, 'GREAT WIN'),
    (10, 'BIG WIN'),
)


def get_win_tier(amount, bet):
    """
    Classifies a payout by its multiple of the bet.

    Args:
        amount (int): Total payout.
        bet (int): Bet the payout was won on. A zero bet is treated as 1.

    Returns:
        str | None: The tier label, or None for plain wins and losses.
    """
    multiple = amount / (bet or 1)
    for threshold, label in WIN_TIERS:
        if multiple >= threshold:
            return label
    return None


def length_multiplier(match_length, reels):
    if match_length >= 5:
        return 4.0
    if match_length == 4:
        return 2.0
    if reels == 3:
        return 1.0
    return 0.5


def _symbol_at(grid, col, row):
    if 0 <= col < len(grid) and 0 <= row < len(grid[col]):
        return grid[col][row]
    logger.warning(f"Payline reads cell ({col}, {row}) outside a {len(grid)}-reel grid; substituting {OUT_OF_RANGE_SYMBOL.value}")
    return OUT_OF_RANGE_SYMBOL


def find_line_match(symbols):
    """
    Walks a payline left to right and returns (match_symbol, match_length).

    WILD extends any run; a run that opens with WILD adopts the first
    non-wild symbol it meets. The run breaks on the first symbol that is
    neither WILD nor the current match symbol.
    """
    match_symbol = symbols[0]
    match_length = 1
    for symbol in symbols[1:]:
        if symbol == match_symbol or symbol == Symbol.WILD or match_symbol == Symbol.WILD:
            if match_symbol == Symbol.WILD and symbol != Symbol.WILD:
                match_symbol = symbol
            match_length += 1
        else:
            break
    return match_symbol, match_length


def evaluate_line(grid, payline, bet_amount, game_config):
    """Returns the LineWin for one payline, or None when it pays nothing."""
    symbols = [_symbol_at(grid, col, row) for col, row in enumerate(payline.indices)]
    if not symbols:
        return None
    match_symbol, match_length = find_line_match(symbols)
    if match_length < MIN_MATCH_LENGTH:
        return None

    value = game_config.symbol_value(match_symbol)
    payout = math.floor(bet_amount * (value / 3) * length_multiplier(match_length, game_config.reels))
    if payout <= 0:
        return None

    cells = tuple((col, payline.indices[col]) for col in range(match_length))
    return LineWin(payline_id=payline.id, symbol=match_symbol, count=match_length, payout=payout, cells=cells)


def find_scatter_cells(grid):
    return [(col, row) for col, column in enumerate(grid) for row, symbol in enumerate(column) if symbol == Symbol.SCATTER]


def count_scatters(grid):
    return len(find_scatter_cells(grid))


def calculate_win(grid, bet_amount, game_config, paylines):
    """
    Evaluates a finished grid.

    Args:
        grid: Column-major grid of Symbols.
        bet_amount (int): Bet the spin was played at.
        game_config (GameConfiguration): Supplies reels, symbol values and scatter threshold.
        paylines (Sequence[Payline]): The game's pinned payline set.

    Returns:
        WinResult: Total payout, paying line ids, highlighted cells, scatter
        count and win tier. Scatter cells are highlighted once the trigger
        threshold is reached but never add to the payout.
    """
    result = WinResult()
    for payline in paylines:
        line_win = evaluate_line(grid, payline, bet_amount, game_config)
        if line_win is None:
            continue
        result.payout += line_win.payout
        result.winning_lines.append(line_win.payline_id)
        result.winning_cells.extend(line_win.cells)
        result.line_wins.append(line_win)

    scatter_cells = find_scatter_cells(grid)
    result.scatters_found = len(scatter_cells)
    if result.scatters_found >= game_config.scatters_to_trigger:
        result.winning_cells.extend(scatter_cells)

    result.win_tier = get_win_tier(result.payout, bet_amount)
    return result
