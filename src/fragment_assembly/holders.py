"""Holder registry: who currently holds each fragment."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from .contracts import FragmentNotFound, NotHolder


logger = logging.getLogger("fragment_assembly.holders")


class HolderRegistry(Protocol):
    def mint(self, fragment_id: int, holder: str) -> None: ...

    def holder_of(self, fragment_id: int) -> str: ...

    def transfer(self, fragment_id: int, sender: str, recipient: str) -> None: ...

    def destroy(self, fragment_id: int) -> None: ...


class InMemoryHolderRegistry:
    def __init__(self, *, on_destroy: Callable[[int, str], None] | None = None) -> None:
        self._holders: dict[int, str] = {}
        self._on_destroy = on_destroy

    def mint(self, fragment_id: int, holder: str) -> None:
        if fragment_id in self._holders:
            raise ValueError(f"fragment {fragment_id} already minted")
        self._holders[fragment_id] = _non_empty(holder, "holder")

    def holder_of(self, fragment_id: int) -> str:
        holder = self._holders.get(fragment_id)
        if holder is None:
            raise FragmentNotFound(f"fragment {fragment_id} has no holder")
        return holder

    def transfer(self, fragment_id: int, sender: str, recipient: str) -> None:
        if self.holder_of(fragment_id) != sender:
            raise NotHolder(f"{sender} does not hold fragment {fragment_id}")
        self._holders[fragment_id] = _non_empty(recipient, "recipient")
        logger.debug("fragment transferred id=%s from=%s to=%s", fragment_id, sender, recipient)

    def destroy(self, fragment_id: int) -> None:
        holder = self.holder_of(fragment_id)
        # A failing hook leaves the fragment held.
        if self._on_destroy is not None:
            self._on_destroy(fragment_id, holder)
        del self._holders[fragment_id]

    def balance_of(self, holder: str) -> int:
        return sum(1 for value in self._holders.values() if value == holder)

    def exists(self, fragment_id: int) -> bool:
        return fragment_id in self._holders


def _non_empty(value: str, field_name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValueError(f"{field_name} must be a non-empty string")
    return text
