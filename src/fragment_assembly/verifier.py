"""Set-completion verification."""

from __future__ import annotations

from dataclasses import dataclass

from .contracts import (
    FragmentPoolError,
    IncompleteSet,
    NotSoleOwner,
    StateLabel,
    StateMismatch,
    UnknownParent,
)
from .holders import HolderRegistry
from .registry import FragmentRegistry


@dataclass(frozen=True)
class SetVerification:
    verified: bool
    label: StateLabel | None
    reason_code: str | None = None


class SetVerifier:
    def __init__(self, *, registry: FragmentRegistry, holders: HolderRegistry) -> None:
        self.registry = registry
        self.holders = holders

    def verify(self, parent_id: int, claimant: str) -> StateLabel:
        """Return the shared label of a complete set held entirely by `claimant`.

        Checks run in ordinal order and the first failure raises. Nothing is
        written.
        """
        if self.registry.minted_count(parent_id) == 0:
            raise UnknownParent(f"parent {parent_id} has no minted fragments")
        ids = self.registry.fragment_ids_for_parent(parent_id)
        if len(ids) != self.registry.quota:
            raise IncompleteSet(
                f"parent {parent_id} has {len(ids)} of {self.registry.quota} fragments"
            )
        reference = self.registry.record_of(ids[0]).state_label
        for fragment_id in ids:
            if self.holders.holder_of(fragment_id) != claimant:
                raise NotSoleOwner(f"{claimant} does not hold fragment {fragment_id} of parent {parent_id}")
            if self.registry.record_of(fragment_id).state_label != reference:
                raise StateMismatch(f"fragment {fragment_id} label differs from {reference.value}")
        return reference

    def evaluate(self, parent_id: int, claimant: str) -> SetVerification:
        try:
            label = self.verify(parent_id, claimant)
        except FragmentPoolError as exc:
            return SetVerification(verified=False, label=None, reason_code=exc.reason_code)
        return SetVerification(verified=True, label=label)
