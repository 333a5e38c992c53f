"""
Engine configuration.

Tunables that may differ per deployment are validated from the environment by
`config_validator`; presentation pacing and feature odds are fixed here.
All durations are milliseconds.
"""
import os
from spin_engine.config_validator import validate_engine_config

DEFAULT_GAME_CONFIG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'public', 'games')


class Config:
    """Engine configuration with fail-fast validation of environment overrides."""

    _validated_config = validate_engine_config(DEFAULT_GAME_CONFIG_DIR)

    DEBUG = _validated_config['DEBUG']

    # RNG - None means secrets.SystemRandom
    RNG_SEED = _validated_config['RNG_SEED']

    # Game registry
    GAME_CONFIG_DIR = _validated_config['GAME_CONFIG_DIR']

    # Wallet
    LOW_BALANCE_THRESHOLD = _validated_config['LOW_BALANCE_THRESHOLD']
    PIGGY_BANK_MIN_LEVEL = 5
    PIGGY_BANK_RATE = 0.01
    PIGGY_BANK_CAP_PER_LEVEL = 2_500_000

    # Dynamic weighting
    PITY_TIMER_ENABLED = _validated_config['PITY_TIMER_ENABLED']
    PITY_TIMER_THRESHOLD = _validated_config['PITY_TIMER_THRESHOLD']
    PITY_TIMER_STEP = 0.01
    PITY_TIMER_MAX_BOOST = 1.0

    # Free spins: scatter count -> spins awarded (5 or more uses the last entry)
    FREE_SPIN_AWARDS = {3: 10, 4: 15, 5: 20}

    # Pacing (normal, fast)
    SPIN_TO_STOP_DELAY = (500, 50)
    REEL_STOP_DELAY = (150, 50)
    REEL_SPIN_DURATION = (1000, 200)
    REEL_LANDING_DELAY = (400, 200)
    NO_WIN_RETURN_DELAY = (500, 50)
    SMALL_WIN_RETURN_DELAY = (1000, 300)
    FREE_SPIN_CONTINUE_DELAY = (1200, 50)
    AUTO_SPIN_DELAY = (1500, 50)
    SCATTER_SHOWCASE_DELAY = 2000

    # Headless mode acknowledges UI popups itself
    WIN_POPUP_AUTO_CLOSE = 3000
    FREE_SPINS_POPUP_AUTO_CLOSE = 2000
    FREE_SPIN_SUMMARY_AUTO_CLOSE = 3000


class TestingConfig(Config):
    TESTING = True
    DEBUG = True
    RNG_SEED = 1234
    GAME_CONFIG_DIR = DEFAULT_GAME_CONFIG_DIR
    LOW_BALANCE_THRESHOLD = 10000
    PITY_TIMER_ENABLED = False
