"""
Headless Monte-Carlo simulator.

Drives a real SpinStateMachine on a virtual clock with autoplay on and every
popup acknowledged automatically, so the numbers include the free-spin flow
exactly as a player would experience it.
"""
import logging
from collections import Counter

import numpy as np

from spin_engine.config import Config
from spin_engine.services import event_bus as events
from spin_engine.services.event_bus import EventBus
from spin_engine.services.spin_state_machine import SpinStateMachine
from spin_engine.services.wallet import InMemoryWallet
from spin_engine.utils.bet_ladder import BET_SCALES
from spin_engine.utils.game_config_manager import GameConfigManager
from spin_engine.utils.rng import create_rng
from spin_engine.utils.scheduler import ManualScheduler
from spin_engine.utils.win_calculator import WIN_TIERS

logger = logging.getLogger(__name__)

# Guards against a machine that keeps scheduling without spinning.
MAX_CALLBACKS_PER_SPIN = 1000


class SlotTester:
    def __init__(self, game_id, num_spins, bet_amount, seed=None, config=Config, game_config=None):
        self.game_id = game_id
        self.num_spins = num_spins
        self.bet_amount = bet_amount
        self.seed = seed
        self.config = config
        self.game_config = game_config or GameConfigManager.get_game_config(game_id)

        self.paid_spins = 0
        self.free_spins_played = 0
        self.total_bet = 0
        self.total_win = 0
        self.base_game_win = 0
        self.bonus_game_win = 0
        self.hit_count = 0
        self.bonus_triggers = 0
        self.retriggers = 0
        self.jackpot_screens = 0
        self.tier_counts = Counter()
        self.win_multipliers = []
        self._current_spin_free = False

    def _on_spin_started(self, is_free_spin, bet):
        self._current_spin_free = is_free_spin
        if is_free_spin:
            self.free_spins_played += 1
        else:
            self.paid_spins += 1
            self.total_bet += bet
            if self.paid_spins >= self.num_spins:
                self.machine.set_autoplay(False)

    def _on_win_evaluated(self, win_amount, is_big_win, win_tier, scatter_count, result):
        self.total_win += win_amount
        if self._current_spin_free:
            self.bonus_game_win += win_amount
        else:
            self.base_game_win += win_amount
            if win_amount > 0:
                self.hit_count += 1
        if win_tier:
            self.tier_counts[win_tier] += 1
        self.win_multipliers.append(win_amount / self.bet_amount)

    def _on_free_spins_won(self, count, total_free_spins, mid_bonus):
        if mid_bonus:
            self.retriggers += 1
        else:
            self.bonus_triggers += 1

    def _on_jackpot_screen(self):
        self.jackpot_screens += 1

    def build_machine(self):
        bus = EventBus()
        bus.subscribe(events.SPIN_STARTED, self._on_spin_started)
        bus.subscribe(events.WIN_EVALUATED, self._on_win_evaluated)
        bus.subscribe(events.FREE_SPINS_WON, self._on_free_spins_won)
        bus.subscribe(events.JACKPOT_SCREEN, self._on_jackpot_screen)

        self.scheduler = ManualScheduler()
        # Enough balance for every paid spin even with zero return.
        self.wallet = InMemoryWallet(balance=self.bet_amount * self.num_spins, level=len(BET_SCALES), config=self.config)
        self.machine = SpinStateMachine(
            self.game_config, self.wallet, self.scheduler,
            rng=create_rng(self.seed), event_bus=bus, config=self.config, headless=True,
        )
        # Simulated bets are not gated by player level.
        self.machine.session.bet_amount = self.bet_amount
        self.machine.set_fast_spin(True)
        return self.machine

    def run_simulation(self):
        """Plays `num_spins` paid spins plus every free spin they award."""
        if self.num_spins <= 0:
            return self.calculate_derived_statistics()
        self.build_machine()
        logger.info(f"Simulating {self.num_spins} spins of '{self.game_id}' at bet {self.bet_amount}")

        self.machine.set_autoplay(True)
        self.machine.request_spin()
        max_callbacks = MAX_CALLBACKS_PER_SPIN * (self.num_spins + 1)
        callbacks = 0
        while self.scheduler.run_next():
            callbacks += 1
            if callbacks >= max_callbacks:
                logger.warning("Simulation stopped on its callback budget before the table went idle")
                break
        self.machine.shutdown()
        return self.calculate_derived_statistics()

    def calculate_derived_statistics(self):
        multipliers = np.array(self.win_multipliers, dtype=float) if self.win_multipliers else np.zeros(1)
        total_spins = self.paid_spins + self.free_spins_played
        return {
            'game_id': self.game_id,
            'paid_spins': self.paid_spins,
            'free_spins': self.free_spins_played,
            'bet_amount': self.bet_amount,
            'total_bet': self.total_bet,
            'total_win': self.total_win,
            'rtp': (self.total_win / self.total_bet * 100) if self.total_bet else 0.0,
            'base_game_rtp': (self.base_game_win / self.total_bet * 100) if self.total_bet else 0.0,
            'bonus_rtp': (self.bonus_game_win / self.total_bet * 100) if self.total_bet else 0.0,
            'hit_frequency': (self.hit_count / self.paid_spins * 100) if self.paid_spins else 0.0,
            'bonus_triggers': self.bonus_triggers,
            'bonus_frequency': (self.bonus_triggers / self.paid_spins * 100) if self.paid_spins else 0.0,
            'retriggers': self.retriggers,
            'jackpot_screens': self.jackpot_screens,
            'tier_counts': {label: self.tier_counts.get(label, 0) for _, label in WIN_TIERS},
            'volatility': float(np.std(multipliers)),
            'max_multiplier': float(np.max(multipliers)),
            'spins_evaluated': total_spins,
        }

    @staticmethod
    def format_report(stats):
        lines = [
            "--- Simulation Summary ---",
            f"Game: {stats['game_id']}",
            f"Paid Spins: {stats['paid_spins']} (+{stats['free_spins']} free)",
            f"Bet Amount Per Spin: {stats['bet_amount']:,}",
            f"Total Wagered: {stats['total_bet']:,}",
            f"Total Won: {stats['total_win']:,}",
            "",
            "--- Detailed Metrics ---",
            f"Overall RTP: {stats['rtp']:.2f}%",
            f"Base Game RTP Contribution: {stats['base_game_rtp']:.2f}%",
            f"Bonus Game RTP Contribution: {stats['bonus_rtp']:.2f}%",
            f"Hit Frequency: {stats['hit_frequency']:.2f}%",
            f"Bonus Trigger Frequency: {stats['bonus_frequency']:.2f}% ({stats['bonus_triggers']} triggers, {stats['retriggers']} retriggers)",
            f"Jackpot Screens: {stats['jackpot_screens']}",
            f"Volatility Index (Win StdDev / Bet): {stats['volatility']:.4f}",
            f"Largest Win: {stats['max_multiplier']:.2f}x bet",
            "",
            "Win Tiers:",
        ]
        lines.extend(f"  {label}: {count}" for label, count in stats['tier_counts'].items())
        return "\n".join(lines)
