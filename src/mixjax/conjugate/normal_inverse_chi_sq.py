from dataclasses import dataclass
import math
from typing import Tuple, Union

from jax import Array
from jax import numpy as jnp
from jax.typing import ArrayLike

from mixjax.conjugate import base
from mixjax.core.errors import dist_assert
from mixjax.core.mixture import GroupScorerMixture
from mixjax.core.packed import PackedArray
from mixjax.core.random import Rng, sample_chisq, sample_normal
from mixjax.core.special import LOG_PI, lgamma, lgamma_nu, log, log1p

"""
Univariate normal observations with unknown mean and variance.
prior on (mu, sigma2) is Normal-Inverse-Chi-Squared
prior_params = (mu, kappa, sigmasq, nu)
    mu: prior mean, kappa: pseudo-count for the mean,
    sigmasq: prior scale of the variance, nu: degrees of freedom
posterior predictive is a Student-t with nu degrees of freedom
"""

Value = float


@dataclass
class Shared(base.Shared):
    mu: Union[float, Array]
    kappa: Union[float, Array]
    sigmasq: Union[float, Array]
    nu: Union[float, Array]

    def __post_init__(self):
        for name in ("kappa", "sigmasq", "nu"):
            value = getattr(self, name)
            if not bool(jnp.all(jnp.asarray(value) > 0)):
                raise ValueError(f"{name} must be positive, got {value}")

    @classmethod
    def example(cls) -> "Shared":
        return cls(mu=0.0, kappa=1.0, sigmasq=1.0, nu=1.0)

    def plus_group(self, group: "Group") -> "Shared":
        n = group.count
        mu_1 = self.mu - group.mean
        kappa_n = self.kappa + n
        mu_n = (self.kappa * self.mu + group.mean * n) / kappa_n
        nu_n = self.nu + n
        sigmasq_n = (
            self.nu * self.sigmasq
            + group.count_times_variance
            + (n * self.kappa * mu_1 * mu_1) / kappa_n
        ) / nu_n
        return Shared(mu=mu_n, kappa=kappa_n, sigmasq=sigmasq_n, nu=nu_n)


@dataclass
class Group(base.Group):
    count: int = 0
    mean: float = 0.0
    count_times_variance: float = 0.0

    def init(self, shared: Shared) -> None:
        self.count = 0
        self.mean = 0.0
        self.count_times_variance = 0.0

    def add_value(self, shared: Shared, value: Value) -> None:
        value = float(value)
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.count_times_variance += delta * (value - self.mean)

    def remove_value(self, shared: Shared, value: Value) -> None:
        dist_assert(self.count > 0, "Can't remove empty group")
        value = float(value)
        total = self.mean * self.count
        delta = value - self.mean

        self.count -= 1
        if self.count == 0:
            self.mean = 0.0
        else:
            self.mean = (total - value) / self.count
        # spread of zero or one point is zero by definition
        if self.count <= 1:
            self.count_times_variance = 0.0
        else:
            self.count_times_variance -= delta * (value - self.mean)

    def merge(self, shared: Shared, source: "Group") -> None:
        total_count = self.count + source.count
        if total_count == 0:
            return
        delta = source.mean - self.mean
        source_part = source.count / total_count
        cross_part = self.count * source_part
        self.count = total_count
        self.mean += source_part * delta
        self.count_times_variance += source.count_times_variance + cross_part * delta ** 2

    def score_value(self, shared: Shared, value: Value) -> Array:
        scorer = Scorer()
        scorer.init(shared, self)
        return scorer.eval(shared, value)

    def score_data(self, shared: Shared) -> Array:
        return score_group(shared, self)


def _student_t_params(post: Shared) -> Tuple[Array, Array, Array, Array]:
    """
    (score, log_coeff, precision, mean) of the posterior predictive Student-t,
    log p(x) = score + log_coeff * log(1 + precision * (x - mean)^2)
    Works elementwise when post holds arrays.
    """
    nu = jnp.asarray(post.nu, dtype=jnp.float32)
    kappa = jnp.asarray(post.kappa, dtype=jnp.float32)
    lam = kappa / ((kappa + 1.0) * post.sigmasq)
    score = lgamma_nu(nu) + 0.5 * log(lam / (math.pi * nu))
    log_coeff = -0.5 * nu - 0.5
    precision = lam / nu
    mean = jnp.asarray(post.mu, dtype=jnp.float32)
    return score, log_coeff, precision, mean


@dataclass
class Scorer(base.Scorer):
    score: Union[float, Array] = 0.0
    log_coeff: Union[float, Array] = 0.0
    precision: Union[float, Array] = 0.0
    mean: Union[float, Array] = 0.0

    def init(self, shared: Shared, group: Group) -> None:
        post = shared.plus_group(group)
        self.score, self.log_coeff, self.precision, self.mean = _student_t_params(post)

    def eval(self, shared: Shared, value: Value) -> Array:
        diff = value - self.mean
        return self.score + self.log_coeff * log1p(self.precision * diff * diff)


@dataclass
class Sampler(base.Sampler):
    mu: Union[float, Array] = 0.0
    sigmasq: Union[float, Array] = 1.0

    def init(self, shared: Shared, group: Group, rng: Rng) -> None:
        post = shared.plus_group(group)
        self.sigmasq = post.nu * post.sigmasq / sample_chisq(rng, post.nu)
        self.mu = sample_normal(rng, post.mu, self.sigmasq / post.kappa)

    def eval(self, shared: Shared, rng: Rng) -> Array:
        return sample_normal(rng, self.mu, self.sigmasq)


def sample_value(shared: Shared, group: Group, rng: Rng) -> Array:
    sampler = Sampler()
    sampler.init(shared, group, rng)
    return sampler.eval(shared, rng)


def score_group(shared: Shared, group: Group) -> Array:
    """
    log marginal likelihood of the group's observations:
        log Gamma(nu_n / 2) - log Gamma(nu / 2) + 1/2 log(kappa / kappa_n)
        + nu / 2 log(nu sigmasq) - nu_n / 2 log(nu_n sigmasq_n) - n / 2 log(pi)
    """
    post = shared.plus_group(group)
    score = lgamma(0.5 * post.nu) - lgamma(0.5 * shared.nu)
    score += 0.5 * log(shared.kappa / post.kappa)
    score += 0.5 * shared.nu * log(shared.nu * shared.sigmasq) - 0.5 * post.nu * log(post.nu * post.sigmasq)
    score += -0.5 * group.count * LOG_PI
    return score


class VectorizedScorer(base.VectorizedScorer):
    """Student-t parameters of every group as four packed arrays."""
    def __init__(self):
        self.score = PackedArray()
        self.log_coeff = PackedArray()
        self.precision = PackedArray()
        self.mean = PackedArray()

    def _arrays(self) -> Tuple[PackedArray, ...]:
        return self.score, self.log_coeff, self.precision, self.mean

    def __len__(self) -> int:
        return len(self.score)

    def resize(self, shared: Shared, size: int) -> None:
        for array in self._arrays():
            array.resize(size)

    def add_group(self, shared: Shared) -> None:
        for array in self._arrays():
            array.packed_add()

    def remove_group(self, shared: Shared, groupid: int) -> None:
        for array in self._arrays():
            array.packed_remove(groupid)

    def update_group(self, shared: Shared, groupid: int, group: Group) -> None:
        scorer = Scorer()
        scorer.init(shared, group)
        self.score[groupid] = scorer.score
        self.log_coeff[groupid] = scorer.log_coeff
        self.precision[groupid] = scorer.precision
        self.mean[groupid] = scorer.mean

    def update_all(self, shared: Shared, slave) -> None:
        if not slave.groups:
            return
        # one pass over all groups: plus_group is elementwise in the statistics
        stats = Group(
            count=jnp.array([g.count for g in slave.groups], dtype=jnp.float32),
            mean=jnp.array([g.mean for g in slave.groups], dtype=jnp.float32),
            count_times_variance=jnp.array([g.count_times_variance for g in slave.groups], dtype=jnp.float32),
        )
        params = _student_t_params(shared.plus_group(stats))
        for array, values in zip(self._arrays(), params):
            array.data = jnp.broadcast_to(values, (len(slave.groups),)).astype(array.dtype)

    def score_value(self, shared: Shared, value: Value, scores_accum: ArrayLike) -> Array:
        diff = value - self.mean.data
        return (
            jnp.asarray(scores_accum)
            + self.score.data
            + self.log_coeff.data * log1p(self.precision.data * diff * diff)
        )


class Mixture(GroupScorerMixture):
    group_cls = Group
    vectorized_scorer_cls = VectorizedScorer
