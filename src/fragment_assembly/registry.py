"""Fragment records and per-parent counters."""

from __future__ import annotations

import logging

from .contracts import (
    INITIAL_LABEL,
    QUOTA,
    FragmentNotFound,
    FragmentRecord,
    QuotaExceeded,
    StateLabel,
)
from .pool import CirculationPool


logger = logging.getLogger("fragment_assembly.registry")


class FragmentRegistry:
    def __init__(self, pool: CirculationPool, *, quota: int = QUOTA) -> None:
        if quota < 1:
            raise ValueError("quota must be >= 1")
        self.pool = pool
        self.quota = quota
        self._minted_count: dict[int, int] = {}
        self._records: dict[int, FragmentRecord] = {}
        self._ordinal_index: dict[tuple[int, int], int] = {}
        self._retired: set[int] = set()
        self._fragment_id_counter = 0

    def allocate(self, salt: int, caller: str = "", label: StateLabel = INITIAL_LABEL) -> int:
        """Issue the next fragment of a randomly selected parent.

        Selection and the quota check run before any field is written, so a
        failed call leaves counters, records and the pool untouched. The parent
        leaves the pool in the same call that mints its last fragment.
        """
        parent_id = self.pool.select(salt, caller)
        ordinal = self._minted_count.get(parent_id, 0) + 1
        if ordinal > self.quota:
            raise QuotaExceeded(f"parent {parent_id} would receive ordinal {ordinal} > quota {self.quota}")

        self._fragment_id_counter += 1
        fragment_id = self._fragment_id_counter
        self._records[fragment_id] = FragmentRecord(
            fragment_id=fragment_id,
            parent_id=parent_id,
            ordinal=ordinal,
            state_label=StateLabel(label),
        )
        self._ordinal_index[(parent_id, ordinal)] = fragment_id
        self._minted_count[parent_id] = ordinal

        if ordinal == self.quota:
            self.pool.remove(parent_id)
            logger.info("parent exhausted parent=%s last_fragment=%s", parent_id, fragment_id)
        logger.debug("fragment allocated id=%s parent=%s ordinal=%s", fragment_id, parent_id, ordinal)
        return fragment_id

    def minted_count(self, parent_id: int) -> int:
        return self._minted_count.get(parent_id, 0)

    def fragments_remaining(self, parent_id: int) -> int:
        # Never-seeded and fully minted parents are indistinguishable here.
        return self.quota - self.minted_count(parent_id)

    def fragment_ids_for_parent(self, parent_id: int) -> list[int]:
        ids: list[int] = []
        for ordinal in range(1, self.minted_count(parent_id) + 1):
            fragment_id = self._ordinal_index[(parent_id, ordinal)]
            if fragment_id not in self._retired:
                ids.append(fragment_id)
        return ids

    def record_of(self, fragment_id: int) -> FragmentRecord:
        record = self._records.get(fragment_id)
        if record is None:
            raise FragmentNotFound(f"fragment {fragment_id} does not exist")
        return record

    def retire(self, fragment_id: int) -> None:
        self.record_of(fragment_id)
        self._retired.add(fragment_id)

    def restore(self, fragment_id: int) -> None:
        self._retired.discard(fragment_id)

    def is_retired(self, fragment_id: int) -> bool:
        return fragment_id in self._retired

    def exhausted_parents(self) -> list[int]:
        return sorted(parent_id for parent_id, count in self._minted_count.items() if count == self.quota)

    @property
    def last_fragment_id(self) -> int:
        return self._fragment_id_counter
