import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from jax import Array
from jax import numpy as jnp
from jax.typing import ArrayLike

from mixjax.conjugate import base
from mixjax.core.errors import dist_assert, dist_assert_eq
from mixjax.core.mixture import GroupScorerMixture
from mixjax.core.packed import PackedArray
from mixjax.core.random import Rng, sample_dirichlet, sample_discrete
from mixjax.core.special import lgamma, log

"""
Categorical observations in {0, ..., dim - 1}.
prior on the category probabilities theta is Dirichlet(alphas)
prior_params = alphas[dim], dim <= max_dim
posterior predictive of one draw is (alphas[v] + counts[v]) / (sum(alphas) + count_sum)
"""

logger = logging.getLogger(__name__)

MAX_DIM = 256

Value = int


@dataclass
class Shared(base.Shared):
    alphas: ArrayLike
    max_dim: int = MAX_DIM
    alpha_sum: float = field(default=0.0, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.alphas = jnp.asarray(self.alphas, dtype=jnp.float32)
        if self.alphas.ndim != 1:
            raise ValueError(f"alphas must be a vector, got shape {self.alphas.shape}")
        if not 1 <= self.alphas.shape[0] <= self.max_dim:
            raise ValueError(f"dim must be in [1, {self.max_dim}], got {self.alphas.shape[0]}")
        if not bool(jnp.all(self.alphas > 0)):
            raise ValueError(f"alphas must be positive, got {self.alphas}")
        self.alpha_sum = float(jnp.sum(self.alphas))

    @property
    def dim(self) -> int:
        return self.alphas.shape[0]

    @classmethod
    def example(cls, dim: Optional[int] = None, max_dim: int = MAX_DIM) -> "Shared":
        dim = max_dim if dim is None else dim
        return cls(alphas=jnp.full(dim, 0.5), max_dim=max_dim)

    def plus_group(self, group: "Group") -> "Shared":
        return Shared(alphas=self.alphas + group.counts, max_dim=self.max_dim)


def _check_value(shared: Shared, value: Value) -> None:
    dist_assert(0 <= value < shared.dim, f"value out of bounds: {value}", level=1)


@dataclass
class Group(base.Group):
    count_sum: int = 0
    counts: Optional[Array] = None

    def init(self, shared: Shared) -> None:
        self.count_sum = 0
        self.counts = jnp.zeros(shared.dim, dtype=jnp.int32)

    def add_value(self, shared: Shared, value: Value) -> None:
        value = int(value)
        _check_value(shared, value)
        self.count_sum += 1
        self.counts = self.counts.at[value].add(1)

    def remove_value(self, shared: Shared, value: Value) -> None:
        dist_assert(self.count_sum > 0, "Can't remove empty group")
        value = int(value)
        _check_value(shared, value)
        dist_assert(int(self.counts[value]) > 0, f"no observations of value {value} in group", level=1)
        self.count_sum -= 1
        self.counts = self.counts.at[value].add(-1)

    def merge(self, shared: Shared, source: "Group") -> None:
        self.count_sum += source.count_sum
        self.counts = self.counts + source.counts

    def score_value(self, shared: Shared, value: Value) -> Array:
        scorer = Scorer()
        scorer.init(shared, self)
        return scorer.eval(shared, value)

    def score_data(self, shared: Shared) -> Array:
        """
        log Gamma(sum alphas) - log Gamma(sum alphas + n)
            + sum_v [log Gamma(alphas[v] + counts[v]) - log Gamma(alphas[v])]
        """
        score = jnp.sum(lgamma(shared.alphas + self.counts) - lgamma(shared.alphas))
        alpha_sum = shared.alpha_sum
        score += lgamma(alpha_sum) - lgamma(alpha_sum + self.count_sum)
        return score


@dataclass
class Scorer(base.Scorer):
    alpha_sum: float = 0.0
    alphas: Optional[Array] = None

    def init(self, shared: Shared, group: Group) -> None:
        self.alphas = shared.alphas + group.counts
        self.alpha_sum = jnp.sum(self.alphas)

    def eval(self, shared: Shared, value: Value) -> Array:
        _check_value(shared, value)
        return log(self.alphas[value] / self.alpha_sum)


@dataclass
class Sampler(base.Sampler):
    ps: Optional[Array] = None

    def init(self, shared: Shared, group: Group, rng: Rng) -> None:
        self.ps = sample_dirichlet(rng, shared.alphas + group.counts)

    def eval(self, shared: Shared, rng: Rng) -> Value:
        return sample_discrete(rng, self.ps)


def sample_value(shared: Shared, group: Group, rng: Rng) -> Value:
    sampler = Sampler()
    sampler.init(shared, group, rng)
    return sampler.eval(shared, rng)


class CachedDataScorer:
    """
    Log marginal likelihood of a fixed set of groups, patched incrementally
    as single hyperparameters change.

    The score is split into one term per category plus one term for the
    alpha sum, so changing alphas[v] only recomputes term v and the last term.
    init takes a snapshot of the non-empty groups; the groups must not change
    while the cache is in use. One cache per evaluation pass, not shared
    between threads.
    """
    def __init__(self):
        self.alpha_sum = 0.0
        self.counts = None
        self.count_sums = None
        self.shared_part = None
        self.scores = None

    def init(self, shared: Shared, groups: Sequence[Group]) -> None:
        nonempty = [group for group in groups if group.count_sum]
        if nonempty:
            self.counts = jnp.stack([group.counts for group in nonempty])
        else:
            self.counts = jnp.zeros((0, shared.dim), dtype=jnp.int32)
        self.count_sums = jnp.array([group.count_sum for group in nonempty], dtype=jnp.float32)

        self.alpha_sum = shared.alpha_sum
        # lgamma of each alpha, then lgamma of the alpha sum
        self.shared_part = jnp.append(lgamma(shared.alphas), lgamma(self.alpha_sum))

        per_value = jnp.sum(lgamma(shared.alphas + self.counts) - self.shared_part[:-1], axis=0)
        self.scores = jnp.append(per_value, self._sum_term())

    def _sum_term(self) -> Array:
        return jnp.sum(self.shared_part[-1] - lgamma(self.alpha_sum + self.count_sums))

    def eval(self) -> Array:
        return jnp.sum(self.scores)

    def update(self, value: Value, old_alpha: float, new_alpha: float) -> None:
        self.shared_part = self.shared_part.at[value].set(lgamma(new_alpha))
        self.alpha_sum += float(new_alpha) - float(old_alpha)
        self.shared_part = self.shared_part.at[-1].set(lgamma(self.alpha_sum))

        term = jnp.sum(lgamma(new_alpha + self.counts[:, value]) - self.shared_part[value])
        self.scores = self.scores.at[value].set(term)
        self.scores = self.scores.at[-1].set(self._sum_term())


class VectorizedScorer(base.VectorizedScorer):
    """
    Per group: log(alphas[v] + counts[v]) for every category v, and the shift
    log(sum alphas + count_sum). Scoring a value is then a lookup and a
    subtraction; all lgamma/log work happens in the updates.
    """
    def __init__(self):
        self.scores: Optional[PackedArray] = None
        self.shift = PackedArray()

    def __len__(self) -> int:
        return len(self.shift)

    def _ensure_dim(self, shared: Shared) -> None:
        if self.scores is None or self.scores.lead_shape != (shared.dim,):
            self.scores = PackedArray((shared.dim,), size=len(self.shift))

    def resize(self, shared: Shared, size: int) -> None:
        self._ensure_dim(shared)
        self.shift.resize(size)
        self.scores.resize(size)

    def add_group(self, shared: Shared) -> None:
        self._ensure_dim(shared)
        self.shift.packed_add(0)
        self.scores.packed_add(0)

    def remove_group(self, shared: Shared, groupid: int) -> None:
        self.shift.packed_remove(groupid)
        self.scores.packed_remove(groupid)

    def update_group(self, shared: Shared, groupid: int, group: Group) -> None:
        self.scores[groupid] = log(shared.alphas + group.counts)
        self.shift[groupid] = log(shared.alpha_sum + group.count_sum)

    def update_group_value(self, shared: Shared, groupid: int, group: Group, value: Value) -> None:
        value = int(value)
        _check_value(shared, value)
        self.scores.set_entry(value, groupid, log(shared.alphas[value] + group.counts[value]))
        self.shift[groupid] = log(shared.alpha_sum + group.count_sum)

    def update_all(self, shared: Shared, slave) -> None:
        if not slave.groups:
            return
        counts = jnp.stack([group.counts for group in slave.groups], axis=-1)
        count_sums = jnp.array([group.count_sum for group in slave.groups], dtype=jnp.float32)
        self.scores.data = log(shared.alphas[:, None] + counts)
        self.shift.data = log(shared.alpha_sum + count_sums)

    def score_value(self, shared: Shared, value: Value, scores_accum: ArrayLike) -> Array:
        _check_value(shared, value)
        return jnp.asarray(scores_accum) + self.scores.data[value] - self.shift.data

    def score_data(self, shared: Shared, slave, cache: Optional[CachedDataScorer] = None) -> Array:
        cache = CachedDataScorer() if cache is None else cache
        cache.init(shared, slave.groups)
        return cache.eval()

    def score_data_grid(
        self,
        shareds: Sequence[Shared],
        slave,
        cache: Optional[CachedDataScorer] = None,
    ) -> Array:
        """
        score_data at every point of a hyperparameter grid.
        Consecutive grid points usually differ in one alpha; only the changed
        alphas are patched into the cache.
        """
        if not shareds:
            return jnp.zeros(0, dtype=jnp.float32)
        cache = CachedDataScorer() if cache is None else cache
        dim = shareds[0].dim
        for shared in shareds:
            dist_assert_eq(shared.dim, dim, "grid dim", level=1)

        cache.init(shareds[0], slave.groups)
        scores_out = [cache.eval()]
        patches = 0
        for old, new in zip(shareds[:-1], shareds[1:]):
            changed = jnp.nonzero(new.alphas != old.alphas)[0]
            for value in changed.tolist():
                cache.update(value, old.alphas[value], new.alphas[value])
            patches += len(changed)
            scores_out.append(cache.eval())
        logger.debug("scored grid of %d points with %d patches", len(shareds), patches)
        return jnp.array(scores_out, dtype=jnp.float32)


class Mixture(GroupScorerMixture):
    group_cls = Group
    vectorized_scorer_cls = VectorizedScorer
