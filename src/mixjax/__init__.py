import logging

from mixjax.conjugate import dirichlet_discrete, normal_inverse_chi_sq
from mixjax.core.config import debug_level, get_debug_level, set_debug_level
from mixjax.core.errors import PreconditionError
from mixjax.core.random import Rng

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "dirichlet_discrete",
    "normal_inverse_chi_sq",
    "debug_level",
    "get_debug_level",
    "set_debug_level",
    "PreconditionError",
    "Rng",
]
