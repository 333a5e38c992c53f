"""
Spin orchestration.

SpinStateMachine owns one game table: it debits the wallet, asks the grid
generator for the spin's grid, paces the reveal reel by reel on a scheduler,
evaluates the grid exactly once after the last reel reports, and runs the
free-spin session that scatters open.

All pacing goes through the injected scheduler. Every callback is tied to the
machine's epoch (bumped on shutdown and game switch) and, where it concerns a
spin, to that spin's id, so a late timer never touches a newer spin.
"""
import logging

from spin_engine.config import Config
from spin_engine.exceptions import BankruptcyException, GameLogicException, InsufficientFundsException
from spin_engine.logging_setup import spin_context
from spin_engine.models import GameStatus, WinResult
from spin_engine.services import event_bus as events
from spin_engine.services.event_bus import EventBus
from spin_engine.services.session_store import SessionStore
from spin_engine.utils.bet_ladder import available_bets, closest_bet, validate_bet
from spin_engine.utils.event_logger import GameEventLogger
from spin_engine.utils.grid_generator import generate_spin_outcome
from spin_engine.utils.paylines import PaylineRegistry
from spin_engine.utils.rng import create_rng
from spin_engine.utils.symbol_tables import pity_timer_from_config
from spin_engine.utils.win_calculator import calculate_win, get_win_tier

logger = logging.getLogger(__name__)

SPIN_READY_STATES = (GameStatus.IDLE, GameStatus.FREE_SPIN_INTRO)


class SpinStateMachine:
    def __init__(self, game_config, wallet, scheduler, session_store=None, rng=None,
                 event_bus=None, config=Config, headless=False):
        self.config = config
        self.wallet = wallet
        self.scheduler = scheduler
        self.session_store = session_store if session_store is not None else SessionStore()
        self.rng = rng if rng is not None else create_rng(config.RNG_SEED)
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.headless = headless
        self.pity_timer = pity_timer_from_config(config)

        self.status = GameStatus.IDLE
        self.autoplay = False
        self.fast_spin = False
        self.high_limit = False
        self.modal_open = False
        self.show_win_popup = False
        self.show_free_spins_popup = False
        self.show_free_spin_summary = False
        self.last_result = None

        self._epoch = 0
        self._timers = set()
        self._idle_handle = None
        self._spin_count = 0
        self._stopped_reels = set()
        self._evaluated = True
        self._spin_is_free = False
        self._spin_bet = 0

        self._load_game(game_config, available_bets(wallet.level)[0])

    # --- Properties ---

    @property
    def spin_id(self):
        return f"{self.game_config.id}-{self._spin_count}"

    @property
    def bet_amount(self):
        return self.session.bet_amount

    @property
    def grid(self):
        return self.session.grid

    @property
    def pending_timers(self):
        return len(self._timers)

    # --- Scheduling ---

    def _schedule(self, delay_ms, callback, *args):
        epoch = self._epoch
        holder = []

        def fire():
            self._timers.discard(holder[0])
            if epoch == self._epoch:
                callback(*args)

        handle = self.scheduler.call_later(delay_ms, fire)
        holder.append(handle)
        self._timers.add(handle)
        return handle

    def _cancel_timers(self):
        self._epoch += 1
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()
        self._idle_handle = None

    def _cancel_idle_action(self):
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._timers.discard(self._idle_handle)
            self._idle_handle = None

    def _pace(self, timings, fast=None):
        fast = self.fast_spin if fast is None else fast
        return timings[1] if fast else timings[0]

    # --- State ---

    def _set_status(self, status):
        previous = self.status
        if previous == status:
            return
        self.status = status
        logger.debug(f"{previous.value} -> {status.value}")
        self.event_bus.emit(events.STATE_CHANGED, previous=previous, current=status)
        if status == GameStatus.IDLE:
            self._on_idle()

    def _on_idle(self):
        """Decides what happens next once the table is idle: free spins, summary or autoplay."""
        self._cancel_idle_action()
        if self.status != GameStatus.IDLE:
            return
        session = self.session

        if session.free_spins_remaining > 0:
            if not self.modal_open and not self.show_free_spins_popup:
                self._idle_handle = self._schedule(self._pace(self.config.FREE_SPIN_CONTINUE_DELAY), self._auto_spin)
            return

        if session.bonus_active and not self.show_free_spins_popup:
            if self.show_free_spin_summary:
                return
            if session.free_spin_total_win > 0:
                self.show_free_spin_summary = True
                self.event_bus.emit(events.FREE_SPIN_SUMMARY, total_win=session.free_spin_total_win, bet=session.bet_amount)
                if self.headless:
                    self._schedule(self.config.FREE_SPIN_SUMMARY_AUTO_CLOSE, self.close_free_spin_summary)
                return
            logger.info(f"Free spins finished on '{self.game_config.id}' without winnings")
            session.reset_bonus()

        if self.autoplay and not self.modal_open:
            self._idle_handle = self._schedule(self._pace(self.config.AUTO_SPIN_DELAY), self._auto_spin)

    def _auto_spin(self):
        self._idle_handle = None
        try:
            self.request_spin()
        except (InsufficientFundsException, BankruptcyException) as e:
            logger.info(f"Automatic spin refused: {e.status_message}")

    # --- Spin lifecycle ---

    def can_spin(self):
        return (
            self.status in SPIN_READY_STATES
            and not self.modal_open
            and not self.show_free_spins_popup
            and not self.show_free_spin_summary
        )

    def request_spin(self):
        """
        Starts a spin if the table allows it.

        A paid spin debits the bet, accrues the piggy bank and counts toward
        the dry-spell counter; a free spin consumes one remaining free spin.
        The grid is generated and all bookkeeping is done before the first
        event goes out.

        Returns:
            bool: False when the table is busy or a popup/modal blocks spinning.

        Raises:
            BankruptcyException: Balance below the bet and below LOW_BALANCE_THRESHOLD.
            InsufficientFundsException: Balance below the bet otherwise.
        """
        if not self.can_spin():
            logger.debug(f"Spin request ignored in state {self.status.value}")
            return False

        session = self.session
        bet = session.bet_amount
        is_free_spin = session.is_free_spin

        if not is_free_spin and self.wallet.balance < bet:
            self._refuse_spin(bet)

        spins_without_bonus = session.spins_without_bonus + (0 if is_free_spin else 1)
        outcome = generate_spin_outcome(self.game_config, is_free_spin, spins_without_bonus, self.rng, self.pity_timer)

        if is_free_spin:
            session.free_spins_remaining -= 1
        else:
            self.wallet.debit(bet)
            self.wallet.accrue_piggy_bank(bet)
        session.spins_without_bonus = spins_without_bonus
        session.grid = outcome.grid

        self._spin_count += 1
        self._spin_is_free = is_free_spin
        self._spin_bet = bet
        self._stopped_reels = set()
        self._evaluated = False
        self.last_result = None
        self._cancel_idle_action()

        with spin_context(self.game_config.id, self.spin_id):
            GameEventLogger.log_spin_event('started', self.game_config.id, bet_amount=0 if is_free_spin else bet,
                                           is_free_spin=is_free_spin, details={'features': outcome.features})
            self._set_status(GameStatus.SPINNING)
            self.event_bus.emit(events.SPIN_STARTED, is_free_spin=is_free_spin, bet=bet)
            self.event_bus.emit(events.GRID_READY, grid=outcome.grid, features=outcome.features)
            if outcome.features['jackpot_screen']:
                self.event_bus.emit(events.JACKPOT_SCREEN)

        self._schedule(self._pace(self.config.SPIN_TO_STOP_DELAY), self._begin_stopping, self._spin_count)
        return True

    def _refuse_spin(self, bet):
        balance = self.wallet.balance
        self.autoplay = False
        self._cancel_idle_action()
        details = {'balance': balance, 'bet_amount': bet}
        if balance < self.config.LOW_BALANCE_THRESHOLD:
            GameEventLogger.log_player_notice('bankruptcy_rescue', balance, bet)
            self.event_bus.emit(events.BANKRUPTCY_RESCUE, balance=balance, bet=bet)
            raise BankruptcyException(details=details)
        GameEventLogger.log_player_notice('insufficient_funds', balance, bet)
        self.event_bus.emit(events.INSUFFICIENT_FUNDS, balance=balance, bet=bet)
        raise InsufficientFundsException(details=details)

    def request_stop(self):
        """Hastens the reveal; the spin itself is never cancelled."""
        if self.status == GameStatus.SPINNING:
            self._begin_stopping(self._spin_count)

    def reel_stop_delays(self):
        # Fast reel timings do not apply to free spins.
        fast = self.fast_spin and not self._spin_is_free
        stagger = self._pace(self.config.REEL_STOP_DELAY, fast)
        landing = self._pace(self.config.REEL_LANDING_DELAY, fast)
        return [reel * stagger + landing for reel in range(self.game_config.reels)]

    def _begin_stopping(self, spin_number):
        if spin_number != self._spin_count or self.status != GameStatus.SPINNING:
            return
        stop_delays = self.reel_stop_delays()
        fast = self.fast_spin and not self._spin_is_free
        with spin_context(self.game_config.id, self.spin_id):
            self._set_status(GameStatus.STOPPING)
            self.event_bus.emit(events.REELS_STOPPING, stop_delays=stop_delays,
                                spin_duration=self._pace(self.config.REEL_SPIN_DURATION, fast))
        if self.headless:
            for reel_index, delay in enumerate(stop_delays):
                self._schedule(delay, self._headless_reel_stop, spin_number, reel_index)

    def _headless_reel_stop(self, spin_number, reel_index):
        if spin_number == self._spin_count:
            self.reel_stopped(reel_index)

    def reel_stopped(self, reel_index):
        """
        Records that the renderer finished one reel.

        Signals outside STOPPING, repeated indices and out-of-range indices
        are ignored. The grid is evaluated once, when the last distinct reel
        reports.
        """
        if self.status != GameStatus.STOPPING or self._evaluated:
            logger.debug(f"Ignoring reel stop {reel_index} in state {self.status.value}")
            return
        if not 0 <= reel_index < self.game_config.reels:
            logger.warning(f"Ignoring reel stop for out-of-range reel {reel_index}")
            return
        if reel_index in self._stopped_reels:
            logger.debug(f"Duplicate reel stop {reel_index}")
            return
        self._stopped_reels.add(reel_index)
        if len(self._stopped_reels) == self.game_config.reels:
            self._evaluated = True
            with spin_context(self.game_config.id, self.spin_id):
                self._finish_spin()

    def free_spin_award(self, scatter_count):
        awards = self.config.FREE_SPIN_AWARDS
        eligible = [count for count in awards if count <= scatter_count]
        return awards[max(eligible)] if eligible else awards[min(awards)]

    def _finish_spin(self):
        session = self.session
        bet = self._spin_bet
        result = calculate_win(session.grid, bet, self.game_config, self.paylines)
        self.last_result = result

        fresh_trigger = False
        if result.scatters_found >= self.game_config.scatters_to_trigger:
            award = self.free_spin_award(result.scatters_found)
            session.free_spins_won = award
            session.total_free_spins += award
            mid_bonus = self._spin_is_free or session.free_spins_remaining > 0
            GameEventLogger.log_spin_event('free_spins_triggered', self.game_config.id, is_free_spin=self._spin_is_free,
                                           details={'scatters': result.scatters_found, 'awarded': award, 'mid_bonus': mid_bonus})
            if mid_bonus:
                self._show_free_spins_popup(mid_bonus=True)
            else:
                fresh_trigger = True
                session.spins_without_bonus = 0

        if result.payout > 0:
            self.wallet.credit(result.payout)
            if self._spin_is_free:
                session.free_spin_total_win += result.payout

        GameEventLogger.log_spin_event('evaluated', self.game_config.id, bet_amount=bet, win_amount=result.payout,
                                       is_free_spin=self._spin_is_free,
                                       details={'lines': result.winning_lines, 'tier': result.win_tier})
        self.event_bus.emit(events.WIN_EVALUATED, win_amount=result.payout, is_big_win=result.is_big_win,
                            win_tier=result.win_tier, scatter_count=result.scatters_found, result=result)

        spin_number = self._spin_count
        if fresh_trigger:
            self._set_status(GameStatus.SCATTER_SHOWCASE)
            self._schedule(self.config.SCATTER_SHOWCASE_DELAY, self._end_scatter_showcase, spin_number)
        elif result.payout > 0:
            if result.win_tier:
                self.show_win_popup = True
                self._set_status(GameStatus.WIN_ANIMATION)
                if self.headless:
                    self._schedule(self.config.WIN_POPUP_AUTO_CLOSE, self.win_popup_complete)
            else:
                self._set_status(GameStatus.WIN_ANIMATION)
                self._schedule(self._pace(self.config.SMALL_WIN_RETURN_DELAY), self._return_to_idle, spin_number)
        else:
            self._schedule(self._pace(self.config.NO_WIN_RETURN_DELAY), self._return_to_idle, spin_number)

    def _return_to_idle(self, spin_number):
        if spin_number != self._spin_count or self.show_win_popup:
            return
        if self.status in (GameStatus.STOPPING, GameStatus.WIN_ANIMATION):
            self._set_status(GameStatus.IDLE)

    def _end_scatter_showcase(self, spin_number):
        if spin_number == self._spin_count and self.status == GameStatus.SCATTER_SHOWCASE:
            self._show_free_spins_popup(mid_bonus=False)

    def _show_free_spins_popup(self, mid_bonus):
        self.show_free_spins_popup = True
        self.event_bus.emit(events.FREE_SPINS_WON, count=self.session.free_spins_won,
                            total_free_spins=self.session.total_free_spins, mid_bonus=mid_bonus)
        if self.headless:
            self._schedule(self.config.FREE_SPINS_POPUP_AUTO_CLOSE, self.free_spins_popup_complete)

    # --- UI acknowledgements ---

    def win_popup_complete(self):
        if not self.show_win_popup:
            return
        self.show_win_popup = False
        if self.status == GameStatus.WIN_ANIMATION:
            self._set_status(GameStatus.IDLE)

    def free_spins_popup_complete(self):
        """Adds the pending award to the remaining free spins and resumes play."""
        if not self.show_free_spins_popup:
            return
        self.show_free_spins_popup = False
        session = self.session
        session.free_spins_remaining += session.free_spins_won
        session.free_spins_won = 0
        if self.status == GameStatus.SCATTER_SHOWCASE:
            self._set_status(GameStatus.IDLE)
        elif self.status == GameStatus.IDLE:
            self._on_idle()

    def close_free_spin_summary(self):
        """
        Closes the free-spin summary. The bonus total is classified against the
        current bet; a tiered total gets its own win popup.
        """
        if not self.show_free_spin_summary:
            return
        self.show_free_spin_summary = False
        session = self.session
        total_win = session.free_spin_total_win
        tier = get_win_tier(total_win, session.bet_amount)
        session.reset_bonus()
        if tier:
            self.last_result = WinResult(payout=total_win, win_tier=tier)
            self.show_win_popup = True
            self._set_status(GameStatus.WIN_ANIMATION)
            if self.headless:
                self._schedule(self.config.WIN_POPUP_AUTO_CLOSE, self.win_popup_complete)
        else:
            self._on_idle()

    # --- Player controls ---

    def set_modal_open(self, is_open):
        self.modal_open = bool(is_open)
        if self.status == GameStatus.IDLE:
            self._on_idle()

    def set_autoplay(self, enabled):
        self.autoplay = bool(enabled)
        if self.status == GameStatus.IDLE:
            self._on_idle()

    def set_fast_spin(self, enabled):
        self.fast_spin = bool(enabled)

    def _check_bet_change_allowed(self):
        if self.status in (GameStatus.SPINNING, GameStatus.STOPPING):
            raise GameLogicException("Bet cannot change while reels are spinning", status_code=409)

    def set_bet(self, amount):
        """
        Raises:
            ValidationException: The amount is not on the player's bet ladder.
            GameLogicException: Reels are spinning.
        """
        self._check_bet_change_allowed()
        self.session.bet_amount = validate_bet(amount, self.wallet.level, self.high_limit)
        return self.session.bet_amount

    def set_high_limit(self, enabled):
        """Switches between the normal and VIP ladders, keeping the nearest bet."""
        self._check_bet_change_allowed()
        self.high_limit = bool(enabled)
        self.session.bet_amount = closest_bet(available_bets(self.wallet.level, self.high_limit), self.session.bet_amount)
        return self.session.bet_amount

    # --- Table lifecycle ---

    def _load_game(self, game_config, default_bet):
        self.game_config = game_config
        self.paylines = PaylineRegistry.get_paylines(game_config)
        self.session = self.session_store.get_or_create(game_config, default_bet)

    def _check_table_idle(self, action):
        if self.status != GameStatus.IDLE or self.show_free_spins_popup or self.show_free_spin_summary:
            raise GameLogicException(f"Cannot {action} while a spin or bonus popup is in progress",
                                     status_code=409, details={'status': self.status.value})

    def switch_game(self, game_config):
        """
        Parks the current game's session and resumes (or starts) the session
        of `game_config`. Only allowed while idle with nothing on screen.
        """
        self._check_table_idle("switch games")
        self._cancel_timers()
        self.autoplay = False
        current_bet = self.session.bet_amount
        logger.info(f"Switching game '{self.game_config.id}' -> '{game_config.id}'")
        self._load_game(game_config, current_bet)
        self._stopped_reels = set()
        self._evaluated = True
        self.last_result = None
        self._on_idle()

    def restore_session(self, data):
        """
        Restores a session snapshot through the store while the table is idle.

        Restoring the game on the table updates the live session in place and
        re-runs the idle decision, so restored free spins resume.

        Raises:
            GameLogicException: A spin or bonus popup is in progress.
            ValidationException: The snapshot does not validate.
        """
        self._check_table_idle("restore a session")
        session = self.session_store.restore(data)
        if session.game_id == self.game_config.id:
            logger.info(f"Restored live session for '{self.game_config.id}'")
            self._on_idle()
        return session

    def shutdown(self):
        """Cancels every pending timer; the machine can be discarded afterwards."""
        self._cancel_timers()
        self.autoplay = False
        logger.debug(f"State machine for '{self.game_config.id}' shut down")
