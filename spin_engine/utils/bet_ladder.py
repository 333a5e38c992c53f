"""
Bet ladder and level gating.

The ladder is 30 log-spaced steps between MIN_BET and MAX_BET, rounded to
readable amounts. A player's level unlocks ladder steps one by one; the VIP
(high limit) ladder is the normal ladder times ten.
"""
import math

from spin_engine.exceptions import ValidationException

LADDER_STEPS = 30
MIN_BET = 10_000
MAX_BET = 1_500_000_000_000
VIP_MULTIPLIER = 10
VIP_MIN_BET = 100_000

# (raw value strictly above, rounding unit), first match wins
ROUNDING_UNITS = (
    (100_000_000_000, 100_000_000_000),
    (1_000_000_000, 1_000_000_000),
    (1_000_000, 1_000_000),
    (100_000, 10_000),
)
DEFAULT_ROUNDING_UNIT = 1_000


def _round_half_up(value, unit):
    return int(math.floor(value / unit + 0.5)) * unit


def generate_bet_scales(steps=LADDER_STEPS, min_bet=MIN_BET, max_bet=MAX_BET):
    log_min = math.log(min_bet)
    scale_factor = (math.log(max_bet) - log_min) / (steps - 1)

    bets = []
    for i in range(steps):
        raw_value = math.exp(log_min + i * scale_factor)
        unit = next((u for threshold, u in ROUNDING_UNITS if raw_value > threshold), DEFAULT_ROUNDING_UNIT)
        bets.append(_round_half_up(raw_value, unit))
    # Pin the top step so float error never shifts it.
    bets[-1] = max_bet
    return bets


BET_SCALES = tuple(generate_bet_scales())


def max_bet_by_level(level):
    index = min(int(math.floor(level)), len(BET_SCALES) - 1)
    return BET_SCALES[max(index, 0)]


def available_bets(level, high_limit=False):
    """
    Returns the sorted bets a player at `level` may place.

    Args:
        level (int): Player level.
        high_limit (bool): Use the VIP ladder (x10, never below VIP_MIN_BET).

    Returns:
        list[int]: Never empty.
    """
    max_allowed = max_bet_by_level(level)
    if high_limit:
        allowed = [bet * VIP_MULTIPLIER for bet in BET_SCALES
                   if bet * VIP_MULTIPLIER <= max_allowed * VIP_MULTIPLIER and bet * VIP_MULTIPLIER >= VIP_MIN_BET]
    else:
        allowed = [bet for bet in BET_SCALES if bet <= max_allowed]

    if not allowed:
        allowed = [VIP_MIN_BET if high_limit else MIN_BET]
    return sorted(set(allowed))


def closest_bet(bets, amount):
    """Returns the entry of `bets` nearest to `amount`; ties keep the lower bet."""
    if not bets:
        raise ValidationException("No bets available", details={'amount': amount})
    return min(bets, key=lambda bet: (abs(bet - amount), bet))


def validate_bet(amount, level, high_limit=False):
    """Raises ValidationException unless `amount` is on the player's ladder."""
    bets = available_bets(level, high_limit)
    if amount not in bets:
        raise ValidationException(
            "Bet is not available at this level",
            details={'amount': amount, 'level': level, 'closest_bet': closest_bet(bets, amount)},
        )
    return amount
