"""
Static symbol tables shared by every shipped game.

Weights are relative; tables are ordered because the weighted draw subtracts
weights in table order.
"""
import logging
from collections import namedtuple

from spin_engine.models import Symbol

logger = logging.getLogger(__name__)

SymbolWeight = namedtuple('SymbolWeight', ['symbol', 'weight'])
PityTimer = namedtuple('PityTimer', ['threshold', 'step', 'max_boost'])

SYMBOL_VALUES = {
    Symbol.TEN: 0.5,
    Symbol.JACK: 0.75,
    Symbol.QUEEN: 1,
    Symbol.KING: 1.5,
    Symbol.ACE: 2,
    Symbol.GRAPE: 2.5,
    Symbol.BELL: 4.5,
    Symbol.BAR: 7.5,
    Symbol.CHERRY: 11,
    Symbol.SEVEN: 15.625,
    Symbol.WILD: 15.625,
    Symbol.SCATTER: 0,
}

WEIGHTS = (
    SymbolWeight(Symbol.TEN, 35),
    SymbolWeight(Symbol.JACK, 30),
    SymbolWeight(Symbol.QUEEN, 30),
    SymbolWeight(Symbol.KING, 25),
    SymbolWeight(Symbol.ACE, 15),
    SymbolWeight(Symbol.GRAPE, 10),
    SymbolWeight(Symbol.BELL, 8),
    SymbolWeight(Symbol.BAR, 5),
    SymbolWeight(Symbol.CHERRY, 3.5),
    SymbolWeight(Symbol.SEVEN, 2),
    SymbolWeight(Symbol.WILD, 0.1),
    SymbolWeight(Symbol.SCATTER, 1.5),
)

FREE_SPIN_WEIGHTS = (
    SymbolWeight(Symbol.TEN, 35),
    SymbolWeight(Symbol.JACK, 30),
    SymbolWeight(Symbol.QUEEN, 30),
    SymbolWeight(Symbol.KING, 25),
    SymbolWeight(Symbol.ACE, 15),
    SymbolWeight(Symbol.GRAPE, 10),
    SymbolWeight(Symbol.BELL, 8),
    SymbolWeight(Symbol.BAR, 5),
    SymbolWeight(Symbol.CHERRY, 3.5),
    SymbolWeight(Symbol.SEVEN, 2),
    SymbolWeight(Symbol.WILD, 0.1),
    SymbolWeight(Symbol.SCATTER, 1.5),
)


def pity_timer_from_config(config):
    """Returns the PityTimer described by `config`, or None when disabled."""
    if not getattr(config, 'PITY_TIMER_ENABLED', False):
        return None
    return PityTimer(
        threshold=config.PITY_TIMER_THRESHOLD,
        step=config.PITY_TIMER_STEP,
        max_boost=config.PITY_TIMER_MAX_BOOST,
    )


def get_dynamic_weights(is_free_spin, spins_without_bonus, pity_timer=None):
    """
    Selects the weight table for a spin.

    Free spins always draw from FREE_SPIN_WEIGHTS. Paid spins draw from WEIGHTS;
    when a pity timer is supplied and the player has gone more than
    `threshold` paid spins without a bonus, the SCATTER weight is raised by
    `(spins_without_bonus - threshold) * step`, capped at `max_boost`
    (1.0 doubles the weight).

    Args:
        is_free_spin (bool): Whether the spin is part of a free-spin session.
        spins_without_bonus (int): Paid spins since the last bonus trigger.
        pity_timer (PityTimer | None): Optional scatter boost settings.

    Returns:
        tuple[SymbolWeight, ...]: The table to draw from.
    """
    if is_free_spin:
        return FREE_SPIN_WEIGHTS
    if pity_timer is None or spins_without_bonus <= pity_timer.threshold:
        return WEIGHTS

    boost = min(pity_timer.max_boost, (spins_without_bonus - pity_timer.threshold) * pity_timer.step)
    logger.debug(f"Pity timer active after {spins_without_bonus} spins: scatter weight boost {boost:.2f}")
    return tuple(
        SymbolWeight(entry.symbol, entry.weight * (1 + boost)) if entry.symbol == Symbol.SCATTER else entry
        for entry in WEIGHTS
    )


def draw_weighted_symbol(weights, rng):
    """
    Draws one symbol from an ordered (symbol, weight) table.

    A uniform value in [0, total) is reduced by each weight in table order and
    the first entry whose cumulative weight exceeds the draw is returned.
    Malformed tables (empty, or no positive total) fall back to TEN.
    """
    total_weight = sum(entry.weight for entry in weights)
    if total_weight <= 0:
        logger.warning("Weight table has no positive total; falling back to TEN.")
        return Symbol.TEN

    remaining = rng.random() * total_weight
    for entry in weights:
        if remaining < entry.weight:
            return entry.symbol
        remaining -= entry.weight
    return Symbol.TEN
