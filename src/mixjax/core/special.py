from jax import Array
from jax import numpy as jnp
from jax.scipy.special import betaln, gammaln
from jax.typing import ArrayLike

LOG_PI = 1.1447298858493991


def log(x: ArrayLike) -> Array:
    return jnp.log(x)


def log1p(x: ArrayLike) -> Array:
    return jnp.log1p(x)


def lgamma(x: ArrayLike) -> Array:
    # domain: x > 0
    return gammaln(x)


def lgamma_nu(nu: ArrayLike) -> Array:
    """
    log Gamma((nu + 1) / 2) - log Gamma(nu / 2), the Student-t normalizer
    """
    # written via betaln, a difference of two lgammas cancels in float32 for large nu
    return gammaln(0.5) - betaln(0.5, 0.5 * nu)
