# mixjax/core/packed.py

from typing import Tuple

from jax import Array
from jax import numpy as jnp
from jax.typing import ArrayLike


class PackedArray:
    """
    Dense array whose last axis is indexed by group id.

    Rows are kept packed: removing group i moves the last group into slot i
    and shrinks by one, so ids below i never move and there are no gaps.
    The owner of the parallel group collection must apply the same move.

    Args:
        lead_shape: shape of the per-group entry, () for one scalar per group
        size: initial number of groups
    """
    def __init__(self, lead_shape: Tuple[int, ...] = (), size: int = 0, dtype=jnp.float32):
        self.lead_shape = tuple(lead_shape)
        self.dtype = dtype
        self.data = jnp.zeros(self.lead_shape + (size,), dtype=dtype)

    def __len__(self) -> int:
        return self.data.shape[-1]

    def __getitem__(self, groupid: int) -> Array:
        return self.data[..., groupid]

    def __setitem__(self, groupid: int, value: ArrayLike) -> None:
        self.data = self.data.at[..., groupid].set(value)

    def set_entry(self, index: int, groupid: int, value: ArrayLike) -> None:
        """write one element of a group's entry (first lead axis)"""
        self.data = self.data.at[index, groupid].set(value)

    def resize(self, size: int) -> None:
        # existing entries are kept, new ones are zero
        old = len(self)
        if size <= old:
            self.data = self.data[..., :size]
        else:
            pad = jnp.zeros(self.lead_shape + (size - old,), dtype=self.dtype)
            self.data = jnp.concatenate([self.data, pad], axis=-1)

    def packed_add(self, value: ArrayLike = 0) -> int:
        entry = jnp.broadcast_to(jnp.asarray(value, dtype=self.dtype), self.lead_shape)
        self.data = jnp.concatenate([self.data, entry[..., None]], axis=-1)
        return len(self) - 1

    def packed_remove(self, groupid: int) -> None:
        last = len(self) - 1
        if groupid != last:
            self.data = self.data.at[..., groupid].set(self.data[..., last])
        self.data = self.data[..., :last]
