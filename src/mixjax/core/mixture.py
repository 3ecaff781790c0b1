# mixjax/core/mixture.py

import logging
from typing import Any, Dict, List, Optional, Sequence

from jax import Array
from jax import numpy as jnp
from jax.typing import ArrayLike

from mixjax.core.errors import dist_assert, dist_assert_eq

logger = logging.getLogger(__name__)


class MixtureSlave:
    """
    Ordered collection of groups.

    Groups are addressed by slot (their position). Removing a slot moves the
    last group into it, so each group also carries a stable id that survives
    removals; slot_of / id_of translate between the two.
    """
    def __init__(self, group_cls: type, groups: Optional[Sequence[Any]] = None):
        self.group_cls = group_cls
        self.groups: List[Any] = list(groups) if groups is not None else []
        self._ids: List[int] = list(range(len(self.groups)))
        self._slots: Dict[int, int] = {i: i for i in self._ids}
        self._next_id = len(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def init(self, shared) -> None:
        # groups supplied at construction are kept as they are
        self._ids = list(range(len(self.groups)))
        self._slots = {i: i for i in self._ids}
        self._next_id = len(self.groups)

    def _check_groupid(self, groupid: int) -> None:
        dist_assert(
            0 <= groupid < len(self.groups),
            f"group id out of bounds: {groupid} (group count {len(self.groups)})",
            level=1,
        )

    def add_group(self, shared) -> int:
        group = self.group_cls()
        group.init(shared)
        self.groups.append(group)
        stable_id = self._next_id
        self._next_id += 1
        self._slots[stable_id] = len(self._ids)
        self._ids.append(stable_id)
        return stable_id

    def remove_group(self, shared, groupid: int) -> None:
        self._check_groupid(groupid)
        last = len(self.groups) - 1
        removed = self._ids[groupid]
        if groupid != last:
            self.groups[groupid] = self.groups[last]
            moved = self._ids[last]
            self._ids[groupid] = moved
            self._slots[moved] = groupid
        self.groups.pop()
        self._ids.pop()
        del self._slots[removed]

    def add_value(self, shared, groupid: int, value) -> None:
        self._check_groupid(groupid)
        self.groups[groupid].add_value(shared, value)

    def remove_value(self, shared, groupid: int, value) -> None:
        self._check_groupid(groupid)
        self.groups[groupid].remove_value(shared, value)

    def score_data(self, shared) -> Array:
        score = jnp.float32(0.0)
        for group in self.groups:
            score = score + group.score_data(shared)
        return score

    def slot_of(self, stable_id: int) -> int:
        return self._slots[stable_id]

    def id_of(self, groupid: int) -> int:
        return self._ids[groupid]


class GroupScorerMixture:
    """
    Groups plus their vectorized scorer, kept index aligned.

    Subclasses set group_cls and vectorized_scorer_cls. Every mutation of a
    group is followed by the matching scorer update, so score_value always
    sees current statistics.
    """
    group_cls: type = None
    vectorized_scorer_cls: type = None

    def __init__(self, groups: Optional[Sequence[Any]] = None):
        self.slave = MixtureSlave(self.group_cls, groups)
        self.scorer = self.vectorized_scorer_cls()

    @property
    def groups(self) -> List[Any]:
        return self.slave.groups

    def __len__(self) -> int:
        return len(self.slave)

    def init(self, shared) -> None:
        self.slave.init(shared)
        self.scorer.resize(shared, len(self.slave))
        self.scorer.update_all(shared, self.slave)
        logger.debug("mixture initialized with %d groups", len(self.slave))

    def add_group(self, shared) -> int:
        groupid = len(self.slave)
        stable_id = self.slave.add_group(shared)
        self.scorer.add_group(shared)
        self.scorer.update_group(shared, groupid, self.groups[groupid])
        logger.debug("added group %d at slot %d", stable_id, groupid)
        return stable_id

    def remove_group(self, shared, groupid: int) -> None:
        stable_id = self.slave.id_of(groupid) if 0 <= groupid < len(self.slave) else None
        self.slave.remove_group(shared, groupid)
        self.scorer.remove_group(shared, groupid)
        logger.debug("removed group %s from slot %d", stable_id, groupid)

    def add_value(self, shared, groupid: int, value) -> None:
        self.slave.add_value(shared, groupid, value)
        self.scorer.update_group_value(shared, groupid, self.groups[groupid], value)

    def remove_value(self, shared, groupid: int, value) -> None:
        self.slave.remove_value(shared, groupid, value)
        self.scorer.update_group_value(shared, groupid, self.groups[groupid], value)

    def score_value(self, shared, value, scores_accum: ArrayLike) -> Array:
        dist_assert_eq(len(scores_accum), len(self.slave), "scores_accum size", level=2)
        return self.scorer.score_value(shared, value, scores_accum)

    def score_data(self, shared, cache=None) -> Array:
        return self.scorer.score_data(shared, self.slave, cache)

    def score_data_grid(self, shareds, cache=None) -> Array:
        return self.scorer.score_data_grid(shareds, self.slave, cache)
