"""
Game Configuration Manager
Loads per-game gameConfig.json files, validates them and caches the result
"""

import json
import logging
import os
import threading
from typing import Dict, List, Optional

from marshmallow import ValidationError

from spin_engine.config import Config
from spin_engine.exceptions import InvalidConfigurationException, NotFoundException
from spin_engine.models import GameConfiguration
from spin_engine.schemas import GameConfigSchema

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = 'gameConfig.json'


class GameConfigManager:
    """Registry of the shipped games; each configuration is loaded once per process"""

    _config_cache: Dict[str, GameConfiguration] = {}
    _lock = threading.Lock()
    config_dir: Optional[str] = None

    @classmethod
    def _base_dir(cls) -> str:
        return cls.config_dir or Config.GAME_CONFIG_DIR

    @classmethod
    def get_game_config(cls, game_id: str) -> GameConfiguration:
        """
        Get the configuration for a game.

        Raises:
            NotFoundException: No gameConfig.json exists for the id
            InvalidConfigurationException: The file is not valid JSON or fails validation
        """
        with cls._lock:
            cached = cls._config_cache.get(game_id)
            if cached is not None:
                return cached

            config = cls._load(game_id)
            cls._config_cache[game_id] = config
            logger.info(f"Loaded game configuration '{game_id}' ({config.reels}x{config.rows}, {config.theme.value})")
            return config

    @classmethod
    def _load(cls, game_id: str) -> GameConfiguration:
        # Ids double as directory names; refuse anything that could walk out of the base dir.
        if not game_id or os.path.basename(game_id) != game_id or game_id.startswith('.'):
            raise NotFoundException(f"Game '{game_id}' not found", details={'game_id': game_id})

        file_path = os.path.join(cls._base_dir(), game_id, CONFIG_FILE_NAME)
        if not os.path.isfile(file_path):
            logger.error(f"Game configuration file not found: {file_path}")
            raise NotFoundException(f"Game '{game_id}' not found", details={'game_id': game_id})

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Malformed JSON in {file_path}: {e}")
            raise InvalidConfigurationException(f"Malformed configuration for game '{game_id}'", details={'error': str(e)})

        if not isinstance(raw, dict) or not isinstance(raw.get('game'), dict):
            raise InvalidConfigurationException(f"Configuration for game '{game_id}' must contain a 'game' object")

        try:
            config = GameConfigSchema().load(raw['game'])
        except ValidationError as err:
            logger.error(f"Invalid configuration for game '{game_id}': {err.messages}")
            raise InvalidConfigurationException(f"Invalid configuration for game '{game_id}'", details=err.messages)

        if config.id != game_id:
            raise InvalidConfigurationException(
                f"Configuration id '{config.id}' does not match its directory '{game_id}'",
                details={'game_id': game_id, 'config_id': config.id},
            )
        return config

    @classmethod
    def list_games(cls) -> List[str]:
        """Ids of every game with a configuration file, sorted"""
        base_dir = cls._base_dir()
        if not os.path.isdir(base_dir):
            return []
        return sorted(
            entry for entry in os.listdir(base_dir)
            if os.path.isfile(os.path.join(base_dir, entry, CONFIG_FILE_NAME))
        )

    @classmethod
    def get_all_configs(cls) -> List[GameConfiguration]:
        return [cls.get_game_config(game_id) for game_id in cls.list_games()]

    @classmethod
    def clear_cache(cls):
        with cls._lock:
            cls._config_cache.clear()
