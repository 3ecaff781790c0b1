# mixjax/core/random.py

from typing import Union

from jax import Array, random
from jax import numpy as jnp
from jax.typing import ArrayLike


class Rng:
    """
    Stateful handle on a jax PRNG key.
    Every draw consumes a fresh subkey, so a sequence of draws is
    deterministic given the seed. Not shared between threads: give each
    worker its own Rng.
    """
    def __init__(self, seed: Union[int, Array] = 0):
        if isinstance(seed, int):
            self.key = random.PRNGKey(seed)
        else:
            self.key = seed

    def split(self) -> Array:
        self.key, subkey = random.split(self.key)
        return subkey

    def spawn(self, num: int) -> list["Rng"]:
        """independent generators, e.g. one per worker"""
        keys = random.split(self.split(), num)
        return [Rng(k) for k in keys]


def sample_normal(rng: Rng, mean: ArrayLike, variance: ArrayLike) -> Array:
    return mean + jnp.sqrt(variance) * random.normal(rng.split())


def sample_chisq(rng: Rng, nu: ArrayLike) -> Array:
    return random.chisquare(rng.split(), nu)


def sample_dirichlet(rng: Rng, alphas: ArrayLike) -> Array:
    return random.dirichlet(rng.split(), jnp.asarray(alphas))


def sample_discrete(rng: Rng, probs: ArrayLike) -> int:
    probs = jnp.asarray(probs)
    value = random.choice(rng.split(), probs.shape[0], p=probs / probs.sum())
    return int(value)


__all__ = [
    "Rng",
    "sample_normal",
    "sample_chisq",
    "sample_dirichlet",
    "sample_discrete",
]
