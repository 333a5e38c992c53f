import logging
from collections import defaultdict

logger = logging.getLogger(__name__)

SPIN_STARTED = 'spin_started'
GRID_READY = 'grid_ready'
REELS_STOPPING = 'reels_stopping'
WIN_EVALUATED = 'win_evaluated'
STATE_CHANGED = 'state_changed'
FREE_SPINS_WON = 'free_spins_won'
FREE_SPIN_SUMMARY = 'free_spin_summary'
INSUFFICIENT_FUNDS = 'insufficient_funds'
BANKRUPTCY_RESCUE = 'bankruptcy_rescue'
JACKPOT_SCREEN = 'jackpot_screen'

EVENT_NAMES = frozenset([
    SPIN_STARTED, GRID_READY, REELS_STOPPING, WIN_EVALUATED, STATE_CHANGED, FREE_SPINS_WON,
    FREE_SPIN_SUMMARY, INSUFFICIENT_FUNDS, BANKRUPTCY_RESCUE, JACKPOT_SCREEN,
])


class EventBus:
    """
    Synchronous publish/subscribe hub between the engine and its collaborators
    (renderer, progression, notices).

    Handlers run in subscription order. A failing handler is logged and
    skipped; it never interrupts the spin that emitted the event.
    """

    def __init__(self):
        self._handlers = defaultdict(list)

    def subscribe(self, name, handler):
        if name not in EVENT_NAMES:
            raise ValueError(f"Unknown event '{name}'")
        self._handlers[name].append(handler)
        return handler

    def unsubscribe(self, name, handler):
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, name, **payload):
        for handler in list(self._handlers.get(name, ())):
            try:
                handler(**payload)
            except Exception as e:
                logger.error(f"Handler {getattr(handler, '__name__', handler)!r} failed for event '{name}': {e}", exc_info=True)
