"""
Structured game event logging.

Each event is one log line: a fixed prefix followed by a JSON object, so log
shippers can pick spins and balance movements out of the general stream.
"""

import json
import logging
from datetime import datetime, timezone

from spin_engine.logging_setup import current_spin_context

logger = logging.getLogger('spin_engine.events')


class GameEventLogger:
    """Centralized spin and balance event logging"""

    @staticmethod
    def _base_event(event_type: str, sub_type: str, details: dict = None) -> dict:
        event_data = {
            'event_type': event_type,
            'sub_type': sub_type,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'details': details or {},
        }
        event_data.update(current_spin_context())
        return event_data

    @staticmethod
    def log_spin_event(sub_type: str, game_id: str, bet_amount: int = None, win_amount: int = None,
                       is_free_spin: bool = None, details: dict = None):
        """Log spin lifecycle events (started, evaluated, bonus triggered)"""
        event_data = GameEventLogger._base_event('spin', sub_type, details)
        event_data.update({
            'game_id': game_id,
            'bet_amount': bet_amount,
            'win_amount': win_amount,
            'is_free_spin': is_free_spin,
        })
        logger.info(f"SPIN_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_financial_event(sub_type: str, amount: int, balance_before: int = None,
                            balance_after: int = None, details: dict = None):
        """Log wallet debits, credits and piggy-bank accrual"""
        event_data = GameEventLogger._base_event('financial', sub_type, details)
        event_data.update({
            'amount': amount,
            'balance_before': balance_before,
            'balance_after': balance_after,
        })
        logger.info(f"FINANCIAL_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_player_notice(sub_type: str, balance: int, bet_amount: int, details: dict = None):
        """Log spins refused for funds; these surface to the player as notices"""
        event_data = GameEventLogger._base_event('notice', sub_type, details)
        event_data.update({'balance': balance, 'bet_amount': bet_amount})
        logger.warning(f"PLAYER_NOTICE: {json.dumps(event_data, default=str)}")
