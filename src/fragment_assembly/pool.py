"""Circulation pool of parent ids still eligible for allocation."""

from __future__ import annotations

import logging
from typing import Iterable

from .contracts import PoolEmpty, PoolInvariantError, require_parent_id
from .entropy import EntropySource


logger = logging.getLogger("fragment_assembly.pool")


class CirculationPool:
    """Unordered set of parent ids with uniform selection and O(1) removal.

    Membership lives in `_eligible`; `_index_of` maps each present id to its
    slot. Order carries no meaning and changes whenever an id is removed.
    """

    def __init__(self, parent_ids: Iterable[int], *, entropy: EntropySource) -> None:
        self.entropy = entropy
        self._eligible: list[int] = []
        self._index_of: dict[int, int] = {}
        for parent_id in parent_ids:
            self.add(parent_id)

    def add(self, parent_id: int) -> bool:
        parent_id = require_parent_id(parent_id)
        if parent_id in self._index_of:
            return False
        self._index_of[parent_id] = len(self._eligible)
        self._eligible.append(parent_id)
        return True

    def select(self, salt: int, caller: str = "") -> int:
        if not self._eligible:
            raise PoolEmpty("no parent ids remain in circulation")
        index = self.entropy.next_index(len(self._eligible), salt, caller)
        return self._eligible[index]

    def remove(self, parent_id: int) -> None:
        position = self._index_of.get(parent_id)
        if position is None:
            raise PoolInvariantError(f"parent {parent_id} is not in circulation")
        last_position = len(self._eligible) - 1
        if position != last_position:
            moved = self._eligible[last_position]
            self._eligible[position] = moved
            self._index_of[moved] = position
        self._eligible.pop()
        del self._index_of[parent_id]
        logger.debug("pool removed parent=%s remaining=%s", parent_id, len(self._eligible))

    def contains(self, parent_id: int) -> bool:
        return parent_id in self._index_of

    def size(self) -> int:
        return len(self._eligible)

    def snapshot(self) -> tuple[int, ...]:
        return tuple(self._eligible)

    def position_of(self, parent_id: int) -> int | None:
        return self._index_of.get(parent_id)

    def check_consistency(self) -> None:
        if len(self._index_of) != len(self._eligible):
            raise PoolInvariantError("reverse index size disagrees with eligible list")
        for parent_id, position in self._index_of.items():
            if self._eligible[position] != parent_id:
                raise PoolInvariantError(
                    f"reverse index points parent {parent_id} at slot {position} holding {self._eligible[position]}"
                )

    def __len__(self) -> int:
        return len(self._eligible)

    def __contains__(self, parent_id: object) -> bool:
        return parent_id in self._index_of
