"""
Configuration validation for the spin engine.

Environment overrides are validated once when `spin_engine.config` is imported.
Invalid values abort startup instead of silently falling back, so a typo in a
deployment never changes the odds of a live game.
"""

import os
import sys
import warnings
from typing import List, Optional


class ConfigValidationError(Exception):
    """Raised when an engine setting is missing or invalid."""
    pass


TRUTHY = ('true', '1', 't', 'yes')


class ConfigValidator:
    """Validates engine settings taken from the environment."""

    def __init__(self, environ: dict = None):
        """
        Initialize the configuration validator.

        Args:
            environ: Mapping to read settings from. Defaults to os.environ.
        """
        self.environ = environ if environ is not None else os.environ
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def _get(self, var_name: str) -> Optional[str]:
        value = self.environ.get(var_name)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    def validate_bool(self, var_name: str, default: bool) -> bool:
        value = self._get(var_name)
        if value is None:
            return default
        return value.lower() in TRUTHY

    def validate_int(self, var_name: str, default: Optional[int], minimum: int = 0) -> Optional[int]:
        """
        Validate an integer setting.

        Args:
            var_name: Name of the environment variable
            default: Value used when the variable is unset
            minimum: Smallest accepted value

        Returns:
            The parsed integer, or the default when unset
        """
        value = self._get(var_name)
        if value is None:
            return default
        try:
            parsed = int(value)
        except ValueError:
            self.errors.append(f"{var_name} must be an integer (got '{value}')")
            return default
        if parsed < minimum:
            self.errors.append(f"{var_name} must be >= {minimum} (got {parsed})")
            return default
        return parsed

    def validate_game_config_dir(self, default_dir: str) -> str:
        """Validate the directory holding per-game gameConfig.json files."""
        value = self._get('SPIN_ENGINE_GAME_CONFIG_DIR')
        if value is None:
            return default_dir
        if not os.path.isdir(value):
            self.errors.append(f"SPIN_ENGINE_GAME_CONFIG_DIR '{value}' is not a directory")
            return default_dir
        return os.path.abspath(value)

    def validate_all(self, default_game_config_dir: str) -> dict:
        """
        Validate all engine settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If any override is invalid
        """
        config = {}
        config['DEBUG'] = self.validate_bool('SPIN_ENGINE_DEBUG', False)
        config['RNG_SEED'] = self.validate_int('SPIN_ENGINE_RNG_SEED', None)
        config['LOW_BALANCE_THRESHOLD'] = self.validate_int('SPIN_ENGINE_LOW_BALANCE_THRESHOLD', 10000)
        config['PITY_TIMER_ENABLED'] = self.validate_bool('SPIN_ENGINE_PITY_TIMER_ENABLED', False)
        config['PITY_TIMER_THRESHOLD'] = self.validate_int('SPIN_ENGINE_PITY_TIMER_THRESHOLD', 150, minimum=1)
        config['GAME_CONFIG_DIR'] = self.validate_game_config_dir(default_game_config_dir)

        if config['RNG_SEED'] is not None and not config['DEBUG']:
            self.warnings.append(
                "SPIN_ENGINE_RNG_SEED is set outside debug mode; spin outcomes are reproducible."
            )

        if self.errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
            raise ConfigValidationError(error_msg)

        for warning in self.warnings:
            warnings.warn(warning, UserWarning)

        return config


def validate_engine_config(default_game_config_dir: str) -> dict:
    """
    Validate engine configuration with fail-fast behavior.

    Returns:
        Dictionary of validated configuration values

    Raises:
        SystemExit: If validation fails
    """
    try:
        return ConfigValidator().validate_all(default_game_config_dir)
    except ConfigValidationError as e:
        print("\nSPIN ENGINE CONFIGURATION INVALID\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        sys.exit(1)
