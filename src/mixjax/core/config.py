# mixjax/core/config.py

import os
from contextlib import contextmanager

"""
Debug level for precondition checks.
0: only checks that guard corrupted state (e.g. removing from an empty group)
1: also index domain checks (category values, group ids)
2: also buffer length checks (score accumulators, grid outputs)
"""

ENV_VAR = "MIXJAX_DEBUG_LEVEL"
DEFAULT_DEBUG_LEVEL = 1

_debug_level = int(os.environ.get(ENV_VAR, DEFAULT_DEBUG_LEVEL))


def get_debug_level() -> int:
    return _debug_level


def set_debug_level(level: int) -> None:
    global _debug_level
    if level < 0:
        raise ValueError(f"debug level must be non-negative, got {level}")
    _debug_level = int(level)


@contextmanager
def debug_level(level: int):
    """Temporarily run with the given debug level."""
    previous = get_debug_level()
    set_debug_level(level)
    try:
        yield
    finally:
        set_debug_level(previous)
