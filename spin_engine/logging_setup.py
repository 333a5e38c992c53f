import logging
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger import jsonlogger

_game_id = ContextVar('game_id', default='N/A')
_spin_id = ContextVar('spin_id', default='N/A')

LOG_FORMAT = '%(asctime)s %(levelname)s %(game_id)s %(spin_id)s %(module)s %(funcName)s %(lineno)d %(message)s'


class SpinContextFilter(logging.Filter):
    def filter(self, record):
        record.game_id = _game_id.get()
        record.spin_id = _spin_id.get()
        return True


@contextmanager
def spin_context(game_id, spin_id='N/A'):
    """Tags every log record emitted inside the block with the game and spin."""
    game_token = _game_id.set(game_id)
    spin_token = _spin_id.set(spin_id)
    try:
        yield
    finally:
        _spin_id.reset(spin_token)
        _game_id.reset(game_token)


def current_spin_context():
    return {'game_id': _game_id.get(), 'spin_id': _spin_id.get()}


def configure_logging(debug=False, logger_name='spin_engine'):
    """
    Installs the engine's log handler.

    Non-debug runs log one JSON object per line with the spin context
    attached; debug runs fall back to plain basicConfig output.
    """
    logger = logging.getLogger(logger_name)
    if not debug:
        handler = logging.StreamHandler()
        handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        handler.addFilter(SpinContextFilter())
        if logger.hasHandlers():
            logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    else:
        if not logging.getLogger().handlers:
            logging.basicConfig(level=logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    return logger
