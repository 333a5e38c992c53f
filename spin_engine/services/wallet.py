import logging
from typing import Protocol

from spin_engine.config import Config
from spin_engine.exceptions import InsufficientFundsException, ValidationException
from spin_engine.utils.event_logger import GameEventLogger

logger = logging.getLogger(__name__)


class Wallet(Protocol):
    """Balance collaborator the state machine debits and credits."""

    balance: int
    level: int

    def debit(self, amount: int) -> int: ...

    def credit(self, amount: int) -> int: ...

    def accrue_piggy_bank(self, bet_amount: int) -> float: ...


class InMemoryWallet:
    def __init__(self, balance=0, level=1, piggy_bank=0.0, config=Config):
        self.balance = balance
        self.level = level
        self.piggy_bank = piggy_bank
        self.config = config

    def debit(self, amount):
        """
        Removes `amount` from the balance.

        Returns:
            int: The new balance.

        Raises:
            ValidationException: For a negative amount.
            InsufficientFundsException: If the balance does not cover it.
        """
        if amount < 0:
            raise ValidationException("Debit amount must not be negative", details={'amount': amount})
        if amount > self.balance:
            raise InsufficientFundsException(details={'balance': self.balance, 'amount': amount})
        balance_before = self.balance
        self.balance -= amount
        GameEventLogger.log_financial_event('debit', amount, balance_before, self.balance)
        return self.balance

    def credit(self, amount):
        if amount < 0:
            raise ValidationException("Credit amount must not be negative", details={'amount': amount})
        balance_before = self.balance
        self.balance += amount
        GameEventLogger.log_financial_event('credit', amount, balance_before, self.balance)
        return self.balance

    def piggy_bank_cap(self):
        return self.level * self.config.PIGGY_BANK_CAP_PER_LEVEL

    def accrue_piggy_bank(self, bet_amount):
        """
        Saves a share of a paid bet into the piggy bank.

        Only players at PIGGY_BANK_MIN_LEVEL or above save; savings are
        PIGGY_BANK_RATE of the bet and the bank never exceeds `level *
        PIGGY_BANK_CAP_PER_LEVEL`.

        Returns:
            float: Amount actually added.
        """
        if self.level < self.config.PIGGY_BANK_MIN_LEVEL:
            return 0.0
        before = self.piggy_bank
        self.piggy_bank = min(self.piggy_bank + bet_amount * self.config.PIGGY_BANK_RATE, self.piggy_bank_cap())
        added = max(0.0, self.piggy_bank - before)
        if added:
            logger.debug(f"Piggy bank +{added:.2f} (now {self.piggy_bank:.2f})")
        return added
