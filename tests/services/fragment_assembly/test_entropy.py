from __future__ import annotations

import hashlib

import pytest

from fragment_assembly.contracts import StateLabel
from fragment_assembly.entropy import (
    HashEntropySource,
    SystemEntropySource,
    build_entropy_source,
)


def test_hash_source_is_reconstructible_from_public_inputs() -> None:
    source = HashEntropySource(clock=lambda: 1_234)
    digest = hashlib.sha256(b"1234|alice|99").digest()
    expected = int.from_bytes(digest, "big") % 7

    assert source.next_index(7, 99, "alice") == expected
    assert source.next_index(7, 99, "alice") == expected


def test_hash_source_varies_with_salt_and_caller() -> None:
    source = HashEntropySource(clock=lambda: 1_234)
    draws = {source.next_index(1_000_003, salt, caller) for salt in range(5) for caller in ("a", "b")}
    assert len(draws) > 1


@pytest.mark.parametrize("bound", [0, -3])
def test_non_positive_bound_is_rejected(bound: int) -> None:
    with pytest.raises(ValueError):
        HashEntropySource().next_index(bound, 1)
    with pytest.raises(ValueError):
        SystemEntropySource().next_index(bound, 1)


def test_system_source_stays_in_range() -> None:
    source = SystemEntropySource()
    assert all(0 <= source.next_index(3, salt) < 3 for salt in range(200))
    assert source.next_index(1, 0) == 0


def test_label_defaults_to_a_and_can_be_changed() -> None:
    source = build_entropy_source("hash")
    assert source.label is StateLabel.A
    source.set_label("c")
    assert source.label is StateLabel.C
    with pytest.raises(ValueError):
        source.set_label("E")


def test_build_entropy_source_kinds() -> None:
    assert isinstance(build_entropy_source("system", label="B"), SystemEntropySource)
    assert build_entropy_source(" HASH ").label is StateLabel.A
    with pytest.raises(ValueError):
        build_entropy_source("dice")
