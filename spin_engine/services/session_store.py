import logging
import threading
from dataclasses import fields

from marshmallow import ValidationError

from spin_engine.exceptions import NotFoundException, ValidationException
from spin_engine.schemas import SpinSessionSchema

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Keeps one SpinSession per game id for the lifetime of the store.

    Switching away from a game and back resumes its free spins, bonus
    counters and last grid exactly where they were left.
    """

    def __init__(self):
        self._sessions = {}
        self._lock = threading.Lock()
        self._schema = SpinSessionSchema()

    def get(self, game_id):
        return self._sessions.get(game_id)

    def get_or_create(self, game_config, default_bet):
        with self._lock:
            session = self._sessions.get(game_config.id)
            if session is None:
                session = self._schema.load({'game_id': game_config.id, 'bet_amount': default_bet})
                self._sessions[game_config.id] = session
                logger.debug(f"Created spin session for game '{game_config.id}' at bet {default_bet}")
            return session

    def snapshot(self, game_id):
        """Serializes a stored session to plain JSON-compatible data."""
        session = self._sessions.get(game_id)
        if session is None:
            raise NotFoundException(f"No session for game '{game_id}'", details={'game_id': game_id})
        return self._schema.dump(session)

    def restore(self, data):
        """
        Loads a snapshot back into the store.

        When the game already has a session, the snapshot's fields are copied
        onto that object so anyone holding it sees the restored state.

        Raises:
            ValidationException: If the snapshot does not validate.
        """
        try:
            loaded = self._schema.load(data)
        except ValidationError as err:
            raise ValidationException("Invalid session snapshot", details=err.messages)
        with self._lock:
            session = self._sessions.get(loaded.game_id)
            if session is None:
                self._sessions[loaded.game_id] = loaded
                return loaded
            for session_field in fields(loaded):
                setattr(session, session_field.name, getattr(loaded, session_field.name))
        logger.debug(f"Restored spin session for game '{loaded.game_id}' in place")
        return session

    def game_ids(self):
        return sorted(self._sessions)
