import random
import secrets


def create_rng(seed=None):
    """
    Returns the random source used for spin outcomes.

    Without a seed the engine uses the OS entropy pool through
    secrets.SystemRandom. A seed gives a reproducible random.Random, which is
    what tests and the simulator use.
    """
    if seed is None:
        return secrets.SystemRandom()
    return random.Random(seed)
