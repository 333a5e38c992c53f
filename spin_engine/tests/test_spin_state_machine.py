import itertools
import random
import unittest
from unittest.mock import patch

from spin_engine.config import TestingConfig
from spin_engine.exceptions import (
    BankruptcyException,
    GameLogicException,
    InsufficientFundsException,
    ValidationException,
)
from spin_engine.logging_setup import current_spin_context
from spin_engine.models import GameConfiguration, GameStatus, GameTheme, Symbol
from spin_engine.services import event_bus as events
from spin_engine.services.event_bus import EventBus
from spin_engine.services.spin_state_machine import SpinStateMachine
from spin_engine.services.wallet import InMemoryWallet
from spin_engine.utils.bet_ladder import BET_SCALES
from spin_engine.utils.grid_generator import GridOutcome
from spin_engine.utils.scheduler import ManualScheduler
from spin_engine.utils.symbol_tables import SYMBOL_VALUES

SSM = 'spin_engine.services.spin_state_machine'

T, J, Q, K, A, S = Symbol.TEN, Symbol.JACK, Symbol.QUEEN, Symbol.KING, Symbol.ACE, Symbol.SCATTER
FILLER = (T, J, Q, K, A)


def solid(*symbols, rows=3):
    return tuple((symbol,) * rows for symbol in symbols)


def scatter_grid(count, rows=3):
    """One scatter on the top row of each of the first `count` reels; no line can pay."""
    return tuple(
        (S,) + (FILLER[col],) * (rows - 1) if col < count else (FILLER[col],) * rows
        for col in range(5)
    )


# Solid columns make every payline read the same five symbols.
NO_WIN = solid(T, J, Q, K, A)
SMALL_WIN = solid(T, T, T, J, Q)   # 50 x floor(10000 * 0.5/3 * 0.5) = 41650
BIG_WIN = solid(K, K, K, J, Q)     # 50 x floor(10000 * 1.5/3 * 0.5) = 125000, 12.5x the bet
SMALL_WIN_PAYOUT = 41650
BIG_WIN_PAYOUT = 125000

NO_FEATURES = {
    'jackpot_screen': False,
    'mega_match': None,
    'wild_stacks': [],
    'symbol_stacks': {},
    'scatter_target': 0,
}


def make_game(game_id='machine-test'):
    return GameConfiguration(id=game_id, name='Machine Test', theme=GameTheme.PIGGY, reels=5, rows=3,
                             scatters_to_trigger=3, symbol_values=dict(SYMBOL_VALUES))


class SpinStateMachineTestCase(unittest.TestCase):
    """Drives the machine on a virtual clock with scripted grids."""

    def setUp(self):
        self.game = make_game()
        self.wallet = InMemoryWallet(balance=10_000_000, level=1, config=TestingConfig)
        self.scheduler = ManualScheduler()
        self.bus = EventBus()
        self.events = []
        for name in sorted(events.EVENT_NAMES):
            self.bus.subscribe(name, self._recorder(name))

        self.grids = []
        self.features = dict(NO_FEATURES)
        self.generator_calls = []
        patcher = patch(f'{SSM}.generate_spin_outcome', side_effect=self._next_outcome)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _recorder(self, name):
        def record(**payload):
            self.events.append((name, payload))
        return record

    def _next_outcome(self, game_config, is_free_spin, spins_without_bonus, rng, pity_timer=None):
        self.generator_calls.append({'is_free_spin': is_free_spin, 'spins_without_bonus': spins_without_bonus})
        grid = self.grids.pop(0) if self.grids else NO_WIN
        return GridOutcome(grid, dict(self.features))

    def emitted(self, name):
        return [payload for event_name, payload in self.events if event_name == name]

    def make_machine(self, headless=False, game=None):
        return SpinStateMachine(game or self.game, self.wallet, self.scheduler, event_bus=self.bus,
                                rng=random.Random(0), config=TestingConfig, headless=headless)

    def land(self, machine, order=range(5)):
        machine.request_stop()
        for reel in order:
            machine.reel_stopped(reel)


class TestSpinLifecycle(SpinStateMachineTestCase):

    def test_paid_spin_debits_and_reveals(self):
        machine = self.make_machine()
        self.assertTrue(machine.request_spin())
        self.assertEqual(self.wallet.balance, 10_000_000 - 10000)
        self.assertEqual(machine.status, GameStatus.SPINNING)
        self.assertEqual(machine.grid, NO_WIN)
        self.assertEqual(machine.spin_id, 'machine-test-1')
        self.assertEqual(self.emitted(events.SPIN_STARTED), [{'is_free_spin': False, 'bet': 10000}])
        self.assertEqual(self.emitted(events.GRID_READY)[0]['grid'], NO_WIN)

        self.scheduler.advance(TestingConfig.SPIN_TO_STOP_DELAY[0])
        self.assertEqual(machine.status, GameStatus.STOPPING)
        self.assertEqual(self.emitted(events.REELS_STOPPING),
                         [{'stop_delays': [400, 550, 700, 850, 1000], 'spin_duration': 1000}])

    def test_stop_phase_runs_in_the_spin_context(self):
        contexts = []
        self.bus.subscribe(events.REELS_STOPPING, lambda **payload: contexts.append(current_spin_context()))
        machine = self.make_machine()
        machine.request_spin()
        self.scheduler.advance(TestingConfig.SPIN_TO_STOP_DELAY[0])
        self.assertEqual(contexts, [{'game_id': 'machine-test', 'spin_id': 'machine-test-1'}])
        self.assertEqual(current_spin_context(), {'game_id': 'N/A', 'spin_id': 'N/A'})

    def test_evaluates_once_when_last_reel_reports(self):
        machine = self.make_machine()
        machine.request_spin()
        self.scheduler.advance(500)
        for reel in (3, 0, 3, 4, 1):
            machine.reel_stopped(reel)
        self.assertEqual(self.emitted(events.WIN_EVALUATED), [])
        machine.reel_stopped(2)
        machine.reel_stopped(2)
        self.assertEqual(len(self.emitted(events.WIN_EVALUATED)), 1)

    def test_any_reel_order_evaluates_exactly_once(self):
        machine = self.make_machine()
        for order in itertools.permutations(range(5)):
            machine.request_spin()
            self.land(machine, order)
            self.scheduler.advance(TestingConfig.NO_WIN_RETURN_DELAY[0])
            self.assertEqual(machine.status, GameStatus.IDLE)
        self.assertEqual(len(self.emitted(events.WIN_EVALUATED)), 120)

    def test_stray_reel_signals_are_ignored(self):
        machine = self.make_machine()
        machine.reel_stopped(0)
        machine.request_spin()
        machine.reel_stopped(0)
        machine.request_stop()
        machine.reel_stopped(-1)
        machine.reel_stopped(5)
        for reel in range(4):
            machine.reel_stopped(reel)
        self.assertEqual(self.emitted(events.WIN_EVALUATED), [])
        machine.reel_stopped(4)
        self.assertEqual(len(self.emitted(events.WIN_EVALUATED)), 1)

    def test_busy_table_refuses_spins(self):
        machine = self.make_machine()
        machine.request_spin()
        self.assertFalse(machine.request_spin())
        self.assertEqual(self.wallet.balance, 10_000_000 - 10000)
        self.assertEqual(len(self.generator_calls), 1)

    def test_request_stop_hastens_the_reveal(self):
        machine = self.make_machine()
        machine.request_spin()
        machine.request_stop()
        self.assertEqual(machine.status, GameStatus.STOPPING)
        self.scheduler.advance(500)
        self.assertEqual(len(self.emitted(events.REELS_STOPPING)), 1)

    def test_no_win_returns_to_idle(self):
        machine = self.make_machine()
        machine.request_spin()
        self.land(machine)
        self.assertEqual(machine.last_result.payout, 0)
        self.assertEqual(machine.status, GameStatus.STOPPING)
        self.scheduler.advance(500)
        self.assertEqual(machine.status, GameStatus.IDLE)

    def test_small_win_is_credited_without_popup(self):
        self.grids = [SMALL_WIN]
        machine = self.make_machine()
        machine.request_spin()
        self.land(machine)
        self.assertEqual(self.wallet.balance, 10_000_000 - 10000 + SMALL_WIN_PAYOUT)
        self.assertEqual(machine.status, GameStatus.WIN_ANIMATION)
        self.assertFalse(machine.show_win_popup)
        evaluated = self.emitted(events.WIN_EVALUATED)[0]
        self.assertEqual(evaluated['win_amount'], SMALL_WIN_PAYOUT)
        self.assertFalse(evaluated['is_big_win'])
        self.scheduler.advance(TestingConfig.SMALL_WIN_RETURN_DELAY[0])
        self.assertEqual(machine.status, GameStatus.IDLE)

    def test_big_win_waits_for_popup(self):
        self.grids = [BIG_WIN]
        machine = self.make_machine()
        machine.request_spin()
        self.land(machine)
        self.assertTrue(machine.show_win_popup)
        self.assertEqual(self.emitted(events.WIN_EVALUATED)[0]['win_tier'], 'BIG WIN')
        self.scheduler.advance(60000)
        self.assertEqual(machine.status, GameStatus.WIN_ANIMATION)
        self.assertFalse(machine.request_spin())
        machine.win_popup_complete()
        self.assertEqual(machine.status, GameStatus.IDLE)
        self.assertTrue(machine.can_spin())

    def test_headless_big_win_closes_itself(self):
        self.grids = [BIG_WIN]
        machine = self.make_machine(headless=True)
        machine.request_spin()
        self.scheduler.run_until_idle()
        self.assertFalse(machine.show_win_popup)
        self.assertEqual(machine.status, GameStatus.IDLE)
        self.assertEqual(self.wallet.balance, 10_000_000 - 10000 + BIG_WIN_PAYOUT)

    def test_jackpot_screen_is_announced(self):
        self.features['jackpot_screen'] = True
        machine = self.make_machine()
        machine.request_spin()
        self.assertEqual(self.emitted(events.JACKPOT_SCREEN), [{}])

    def test_state_changes_are_published(self):
        machine = self.make_machine(headless=True)
        machine.request_spin()
        self.scheduler.run_until_idle()
        transitions = [(e['previous'], e['current']) for e in self.emitted(events.STATE_CHANGED)]
        self.assertEqual(transitions, [
            (GameStatus.IDLE, GameStatus.SPINNING),
            (GameStatus.SPINNING, GameStatus.STOPPING),
            (GameStatus.STOPPING, GameStatus.IDLE),
        ])


class TestFunds(SpinStateMachineTestCase):

    def test_bankruptcy_below_low_balance_threshold(self):
        self.wallet.balance = 5000
        machine = self.make_machine()
        machine.autoplay = True
        with self.assertRaises(BankruptcyException):
            machine.request_spin()
        self.assertFalse(machine.autoplay)
        self.assertEqual(self.wallet.balance, 5000)
        self.assertEqual(machine.status, GameStatus.IDLE)
        self.assertEqual(self.generator_calls, [])
        self.assertEqual(self.emitted(events.BANKRUPTCY_RESCUE), [{'balance': 5000, 'bet': 10000}])
        self.assertEqual(self.emitted(events.INSUFFICIENT_FUNDS), [])

    def test_insufficient_funds_above_threshold(self):
        self.wallet.level = 2
        machine = self.make_machine()
        machine.set_bet(BET_SCALES[1])
        self.wallet.balance = BET_SCALES[1] - 1000
        with self.assertRaises(InsufficientFundsException):
            machine.request_spin()
        self.assertEqual(len(self.emitted(events.INSUFFICIENT_FUNDS)), 1)
        self.assertEqual(self.emitted(events.BANKRUPTCY_RESCUE), [])

    def test_autoplay_stops_when_funds_run_out(self):
        self.wallet.balance = 30000
        machine = self.make_machine(headless=True)
        machine.set_autoplay(True)
        with self.assertLogs(SSM, level='INFO'):
            self.scheduler.run_until_idle(max_ms=120000)
        self.assertFalse(machine.autoplay)
        self.assertEqual(len(self.emitted(events.SPIN_STARTED)), 3)
        self.assertEqual(len(self.emitted(events.BANKRUPTCY_RESCUE)), 1)
        self.assertEqual(machine.status, GameStatus.IDLE)

    def test_piggy_bank_accrues_on_paid_spins(self):
        self.wallet.level = 5
        machine = self.make_machine()
        machine.request_spin()
        self.assertEqual(self.wallet.piggy_bank, 100.0)

    def test_dry_spell_counter_counts_paid_spins(self):
        machine = self.make_machine(headless=True)
        for _ in range(3):
            machine.request_spin()
            self.scheduler.run_until_idle()
        self.assertEqual([c['spins_without_bonus'] for c in self.generator_calls], [1, 2, 3])
        self.assertEqual(machine.session.spins_without_bonus, 3)


class TestFreeSpins(SpinStateMachineTestCase):

    def trigger_bonus(self, machine, scatters=3):
        self.grids.insert(0, scatter_grid(scatters))
        machine.request_spin()
        self.land(machine)

    def test_award_table(self):
        machine = self.make_machine()
        self.assertEqual(machine.free_spin_award(3), 10)
        self.assertEqual(machine.free_spin_award(4), 15)
        self.assertEqual(machine.free_spin_award(5), 20)
        self.assertEqual(machine.free_spin_award(6), 20)
        self.assertEqual(machine.free_spin_award(2), 10)

    def test_fresh_trigger_shows_scatters_then_popup(self):
        machine = self.make_machine()
        self.trigger_bonus(machine, scatters=4)
        self.assertEqual(machine.status, GameStatus.SCATTER_SHOWCASE)
        self.assertEqual(machine.session.free_spins_won, 15)
        self.assertEqual(machine.session.total_free_spins, 15)
        self.assertEqual(machine.session.free_spins_remaining, 0)
        self.assertEqual(machine.session.spins_without_bonus, 0)
        self.assertFalse(machine.show_free_spins_popup)
        self.assertFalse(machine.show_win_popup)

        self.scheduler.advance(TestingConfig.SCATTER_SHOWCASE_DELAY)
        self.assertTrue(machine.show_free_spins_popup)
        self.assertEqual(self.emitted(events.FREE_SPINS_WON),
                         [{'count': 15, 'total_free_spins': 15, 'mid_bonus': False}])
        self.assertFalse(machine.can_spin())

        machine.free_spins_popup_complete()
        self.assertEqual(machine.status, GameStatus.IDLE)
        self.assertEqual(machine.session.free_spins_remaining, 15)
        self.assertEqual(machine.session.free_spins_won, 0)

    def test_free_spins_continue_without_debit(self):
        machine = self.make_machine()
        self.trigger_bonus(machine)
        self.scheduler.advance(TestingConfig.SCATTER_SHOWCASE_DELAY)
        machine.free_spins_popup_complete()
        balance = self.wallet.balance

        self.scheduler.advance(TestingConfig.FREE_SPIN_CONTINUE_DELAY[0])
        self.assertEqual(machine.status, GameStatus.SPINNING)
        self.assertEqual(self.emitted(events.SPIN_STARTED)[-1], {'is_free_spin': True, 'bet': 10000})
        self.assertEqual(self.generator_calls[-1]['is_free_spin'], True)
        self.assertEqual(machine.session.free_spins_remaining, 9)
        self.assertEqual(self.wallet.balance, balance)

    def test_full_bonus_round_ends_with_summary(self):
        self.grids = [scatter_grid(3), SMALL_WIN] + [NO_WIN] * 9
        machine = self.make_machine(headless=True)
        machine.request_spin()
        self.scheduler.run_until_idle()

        spins = self.emitted(events.SPIN_STARTED)
        self.assertEqual(len(spins), 11)
        self.assertEqual(sum(1 for s in spins if s['is_free_spin']), 10)
        self.assertEqual(self.emitted(events.FREE_SPIN_SUMMARY), [{'total_win': SMALL_WIN_PAYOUT, 'bet': 10000}])
        self.assertEqual(self.wallet.balance, 10_000_000 - 10000 + SMALL_WIN_PAYOUT)
        self.assertFalse(machine.show_free_spin_summary)
        self.assertFalse(machine.session.bonus_active)
        self.assertEqual(machine.session.free_spin_total_win, 0)
        self.assertEqual(machine.status, GameStatus.IDLE)

    def test_big_bonus_total_gets_its_own_popup(self):
        self.grids = [scatter_grid(3), BIG_WIN, BIG_WIN]
        machine = self.make_machine()
        self.play_bonus_by_hand(machine)
        self.assertTrue(machine.show_free_spin_summary)
        self.assertEqual(self.emitted(events.FREE_SPIN_SUMMARY)[0]['total_win'], 2 * BIG_WIN_PAYOUT)

        machine.close_free_spin_summary()
        self.assertTrue(machine.show_win_popup)
        self.assertEqual(machine.status, GameStatus.WIN_ANIMATION)
        self.assertEqual(machine.last_result.win_tier, 'GREAT WIN')
        machine.win_popup_complete()
        self.assertEqual(machine.status, GameStatus.IDLE)

    def play_bonus_by_hand(self, machine):
        """Plays a whole bonus round by hand, acknowledging every popup as it appears."""
        machine.request_spin()
        for _ in range(200):
            if machine.show_free_spin_summary:
                return
            if machine.show_free_spins_popup:
                machine.free_spins_popup_complete()
            elif machine.show_win_popup:
                machine.win_popup_complete()
            elif machine.status == GameStatus.STOPPING and machine.last_result is None:
                self.land(machine)
            elif not self.scheduler.run_next():
                return
        self.fail('bonus round did not finish')

    def test_bonus_without_winnings_skips_summary(self):
        self.grids = [scatter_grid(3)]
        machine = self.make_machine(headless=True)
        machine.request_spin()
        self.scheduler.run_until_idle()
        self.assertEqual(self.emitted(events.FREE_SPIN_SUMMARY), [])
        self.assertEqual(machine.session.total_free_spins, 0)
        self.assertEqual(len(self.emitted(events.SPIN_STARTED)), 11)

    def test_retrigger_mid_bonus_adds_spins(self):
        self.grids = [scatter_grid(3), scatter_grid(4)]
        machine = self.make_machine(headless=True)
        machine.request_spin()
        self.scheduler.run_until_idle()

        awards = self.emitted(events.FREE_SPINS_WON)
        self.assertEqual(awards[0], {'count': 10, 'total_free_spins': 10, 'mid_bonus': False})
        self.assertEqual(awards[1], {'count': 15, 'total_free_spins': 25, 'mid_bonus': True})
        free_spins = [s for s in self.emitted(events.SPIN_STARTED) if s['is_free_spin']]
        self.assertEqual(len(free_spins), 25)

    def test_retrigger_on_last_free_spin_extends_bonus(self):
        self.grids = [scatter_grid(3)] + [NO_WIN] * 9 + [scatter_grid(3)]
        machine = self.make_machine(headless=True)
        machine.request_spin()
        self.scheduler.run_until_idle()

        awards = self.emitted(events.FREE_SPINS_WON)
        self.assertEqual(len(awards), 2)
        self.assertTrue(awards[1]['mid_bonus'])
        free_spins = [s for s in self.emitted(events.SPIN_STARTED) if s['is_free_spin']]
        self.assertEqual(len(free_spins), 20)
        states = [e['current'] for e in self.emitted(events.STATE_CHANGED)]
        self.assertEqual(states.count(GameStatus.SCATTER_SHOWCASE), 1)

    def test_modal_pauses_free_spins(self):
        machine = self.make_machine()
        self.trigger_bonus(machine)
        self.scheduler.advance(TestingConfig.SCATTER_SHOWCASE_DELAY)
        machine.set_modal_open(True)
        machine.free_spins_popup_complete()
        self.scheduler.advance(10000)
        self.assertEqual(machine.status, GameStatus.IDLE)
        self.assertFalse(machine.request_spin())

        machine.set_modal_open(False)
        self.scheduler.advance(TestingConfig.FREE_SPIN_CONTINUE_DELAY[0])
        self.assertEqual(machine.status, GameStatus.SPINNING)


class TestControls(SpinStateMachineTestCase):

    def test_fast_spin_shortens_paid_spins(self):
        machine = self.make_machine()
        machine.set_fast_spin(True)
        machine.request_spin()
        self.scheduler.advance(TestingConfig.SPIN_TO_STOP_DELAY[1])
        self.assertEqual(machine.status, GameStatus.STOPPING)
        self.assertEqual(self.emitted(events.REELS_STOPPING),
                         [{'stop_delays': [200, 250, 300, 350, 400], 'spin_duration': 200}])

    def test_fast_reel_timings_do_not_apply_to_free_spins(self):
        machine = self.make_machine()
        machine.session.free_spins_remaining = 3
        machine.session.total_free_spins = 3
        machine.set_fast_spin(True)
        machine.request_spin()
        machine.request_stop()
        self.assertEqual(self.emitted(events.REELS_STOPPING),
                         [{'stop_delays': [400, 550, 700, 850, 1000], 'spin_duration': 1000}])

    def test_modal_blocks_spinning(self):
        machine = self.make_machine()
        machine.set_modal_open(True)
        self.assertFalse(machine.request_spin())
        machine.set_modal_open(False)
        self.assertTrue(machine.request_spin())

    def test_bet_changes(self):
        self.wallet.level = 3
        machine = self.make_machine()
        self.assertEqual(machine.bet_amount, BET_SCALES[0])
        self.assertEqual(machine.set_bet(BET_SCALES[3]), BET_SCALES[3])
        with self.assertRaises(ValidationException):
            machine.set_bet(BET_SCALES[4])
        machine.request_spin()
        with self.assertRaises(GameLogicException) as ctx:
            machine.set_bet(BET_SCALES[0])
        self.assertEqual(ctx.exception.status_code, 409)

    def test_high_limit_moves_to_closest_vip_bet(self):
        machine = self.make_machine()
        self.assertEqual(machine.set_high_limit(True), BET_SCALES[0] * 10)
        self.assertEqual(machine.set_high_limit(False), BET_SCALES[1])

    def test_switch_game_keeps_each_session(self):
        other = make_game('other-game')
        machine = self.make_machine()
        self.grids = [scatter_grid(3)]
        machine.request_spin()
        self.land(machine)
        self.scheduler.advance(TestingConfig.SCATTER_SHOWCASE_DELAY)
        machine.free_spins_popup_complete()
        bonus_session = machine.session
        self.assertEqual(machine.pending_timers, 1)

        machine.set_autoplay(True)
        machine.switch_game(other)
        self.assertEqual(machine.game_config.id, 'other-game')
        self.assertFalse(machine.autoplay)
        self.assertEqual(machine.pending_timers, 0)
        self.assertEqual(machine.session.free_spins_remaining, 0)
        self.assertEqual(machine.bet_amount, bonus_session.bet_amount)

        machine.switch_game(self.game)
        self.assertIs(machine.session, bonus_session)
        self.assertEqual(machine.session.free_spins_remaining, 10)
        self.assertEqual(machine.pending_timers, 1)
        self.scheduler.advance(TestingConfig.FREE_SPIN_CONTINUE_DELAY[0])
        self.assertEqual(self.emitted(events.SPIN_STARTED)[-1]['is_free_spin'], True)

    def test_switch_game_refused_mid_spin(self):
        machine = self.make_machine()
        machine.request_spin()
        with self.assertRaises(GameLogicException) as ctx:
            machine.switch_game(make_game('other-game'))
        self.assertEqual(ctx.exception.status_code, 409)

    def test_restoring_the_live_game_drives_the_next_spin(self):
        machine = self.make_machine()
        store = machine.session_store
        machine.restore_session({'game_id': 'machine-test', 'bet_amount': 10000,
                                 'free_spins_remaining': 5, 'total_free_spins': 10})
        self.assertIs(machine.session, store.get('machine-test'))
        self.assertEqual(machine.pending_timers, 1)

        self.assertTrue(machine.request_spin())
        self.assertEqual(self.wallet.balance, 10_000_000)
        self.assertEqual(self.emitted(events.SPIN_STARTED), [{'is_free_spin': True, 'bet': 10000}])
        self.assertEqual(store.snapshot('machine-test')['free_spins_remaining'], 4)

    def test_restoring_another_game_waits_for_the_switch(self):
        other = make_game('other-game')
        machine = self.make_machine()
        machine.restore_session({'game_id': 'other-game', 'bet_amount': 20000, 'free_spins_remaining': 2,
                                 'total_free_spins': 2})
        self.assertEqual(machine.session.free_spins_remaining, 0)
        self.assertEqual(machine.pending_timers, 0)

        machine.switch_game(other)
        self.assertEqual(machine.bet_amount, 20000)
        self.assertTrue(machine.session.is_free_spin)

    def test_restore_refused_mid_spin(self):
        machine = self.make_machine()
        machine.request_spin()
        with self.assertRaises(GameLogicException) as ctx:
            machine.restore_session({'game_id': 'machine-test', 'bet_amount': 10000, 'free_spins_remaining': 5})
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(machine.session.free_spins_remaining, 0)

    def test_shutdown_cancels_pending_work(self):
        machine = self.make_machine(headless=True)
        machine.request_spin()
        self.assertGreater(machine.pending_timers, 0)
        machine.shutdown()
        self.assertEqual(machine.pending_timers, 0)
        self.assertEqual(self.scheduler.run_until_idle(), 0)
        self.assertEqual(machine.status, GameStatus.SPINNING)
        self.assertEqual(self.emitted(events.WIN_EVALUATED), [])


if __name__ == '__main__':
    unittest.main()
