"""Index sources used to pick a parent from the circulation pool.

`HashEntropySource` hashes the current clock, the caller identity and a
caller-supplied salt. Every input is observable by the caller, so the result
is predictable and must not be treated as adversarially unbiased. It is a
placeholder; `SystemEntropySource` can be dropped in without touching the
pool or the registry.
"""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Callable, Protocol

from .contracts import INITIAL_LABEL, StateLabel, parse_state_label


ENTROPY_KINDS: tuple[str, ...] = ("hash", "system")


class EntropySource(Protocol):
    @property
    def label(self) -> StateLabel: ...

    def set_label(self, label: StateLabel | str) -> None: ...

    def next_index(self, bound: int, salt: int, caller: str = "") -> int: ...


class _LabelledSource:
    def __init__(self, label: StateLabel | str = INITIAL_LABEL) -> None:
        self._label = parse_state_label(label)

    @property
    def label(self) -> StateLabel:
        return self._label

    def set_label(self, label: StateLabel | str) -> None:
        self._label = parse_state_label(label)


class HashEntropySource(_LabelledSource):
    def __init__(
        self,
        *,
        clock: Callable[[], int] = time.time_ns,
        label: StateLabel | str = INITIAL_LABEL,
    ) -> None:
        super().__init__(label)
        self._clock = clock

    def next_index(self, bound: int, salt: int, caller: str = "") -> int:
        _require_bound(bound)
        material = f"{int(self._clock())}|{caller}|{int(salt)}"
        digest = hashlib.sha256(material.encode("utf-8")).digest()
        return int.from_bytes(digest, "big") % bound


class SystemEntropySource(_LabelledSource):
    def next_index(self, bound: int, salt: int, caller: str = "") -> int:
        _require_bound(bound)
        return secrets.randbelow(bound)


def build_entropy_source(kind: str, *, label: StateLabel | str = INITIAL_LABEL) -> HashEntropySource | SystemEntropySource:
    normalized = str(kind or "").strip().lower()
    if normalized == "hash":
        return HashEntropySource(label=label)
    if normalized == "system":
        return SystemEntropySource(label=label)
    raise ValueError(f"entropy kind must be one of {list(ENTROPY_KINDS)}, got {kind!r}")


def _require_bound(bound: int) -> None:
    if int(bound) <= 0:
        raise ValueError("bound must be > 0")
