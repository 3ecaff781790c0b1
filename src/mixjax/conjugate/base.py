# mixjax/conjugate/base.py
from abc import ABC, abstractmethod
from typing import Any, Sequence

from jax import Array
from jax import numpy as jnp
from jax.typing import ArrayLike

from mixjax.core.random import Rng


class Shared(ABC):
    """base class for model hyperparameters (the prior), fixed during inference"""
    @abstractmethod
    def plus_group(self, group: "Group") -> "Shared": ...
    """
    returns an object of the same class with posterior parameters given the group's statistics
    """


class Group(ABC):
    """base class for per-cluster sufficient statistics"""
    @abstractmethod
    def init(self, shared: Shared) -> None: ...
    """
    resets to the empty cluster
    """

    @abstractmethod
    def add_value(self, shared: Shared, value: Any) -> None: ...

    @abstractmethod
    def remove_value(self, shared: Shared, value: Any) -> None: ...
    """
    inverse of add_value; the group must not be empty
    """

    @abstractmethod
    def merge(self, shared: Shared, source: "Group") -> None: ...
    """
    folds the statistics of source into this group
    """

    @abstractmethod
    def score_value(self, shared: Shared, value: Any) -> Array: ...
    """
    posterior predictive log probability of value given this group
    """

    @abstractmethod
    def score_data(self, shared: Shared) -> Array: ...
    """
    log marginal likelihood of the observations in this group
    """


class Scorer(ABC):
    """posterior predictive log density, fixed for one (shared, group) pair"""
    @abstractmethod
    def init(self, shared: Shared, group: Group) -> None: ...

    @abstractmethod
    def eval(self, shared: Shared, value: Any) -> Array: ...


class Sampler(ABC):
    """holds one posterior draw of the latent parameters"""
    @abstractmethod
    def init(self, shared: Shared, group: Group, rng: Rng) -> None: ...

    @abstractmethod
    def eval(self, shared: Shared, rng: Rng) -> Any: ...


class VectorizedScorer(ABC):
    """
    Scoring parameters for every live group, one packed row per group.
    Row k always describes the k-th group of the owning mixture.
    """
    @abstractmethod
    def resize(self, shared: Shared, size: int) -> None: ...

    @abstractmethod
    def add_group(self, shared: Shared) -> None: ...

    @abstractmethod
    def remove_group(self, shared: Shared, groupid: int) -> None: ...
    """
    swap-removes row groupid: the last row moves into its place
    """

    @abstractmethod
    def update_group(self, shared: Shared, groupid: int, group: Group) -> None: ...

    def update_group_value(self, shared: Shared, groupid: int, group: Group, value: Any) -> None:
        """refresh after group changed by value; models may override with a cheaper patch"""
        self.update_group(shared, groupid, group)

    def update_all(self, shared: Shared, slave) -> None:
        for groupid, group in enumerate(slave.groups):
            self.update_group(shared, groupid, group)

    @abstractmethod
    def score_value(self, shared: Shared, value: Any, scores_accum: ArrayLike) -> Array: ...
    """
    returns scores_accum + log p(value | group k) for every group k
    """

    def score_data(self, shared: Shared, slave, cache=None) -> Array:
        return slave.score_data(shared)

    def score_data_grid(self, shareds: Sequence[Shared], slave, cache=None) -> Array:
        """log marginal likelihood of all groups under each hyperparameter set"""
        return jnp.array([self.score_data(shared, slave) for shared in shareds], dtype=jnp.float32)
