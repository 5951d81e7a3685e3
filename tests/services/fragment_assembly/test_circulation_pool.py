from __future__ import annotations

import pytest

from fragment_assembly.contracts import PoolEmpty, PoolInvariantError, StateLabel
from fragment_assembly.pool import CirculationPool


class _ModuloEntropy:
    def __init__(self) -> None:
        self.label = StateLabel.A
        self.bounds: list[int] = []

    def set_label(self, label: StateLabel) -> None:
        self.label = label

    def next_index(self, bound: int, salt: int, caller: str = "") -> int:
        self.bounds.append(bound)
        return salt % bound


def test_select_on_empty_pool_raises_pool_empty() -> None:
    pool = CirculationPool([], entropy=_ModuloEntropy())
    with pytest.raises(PoolEmpty):
        pool.select(0)


def test_select_resolves_index_against_current_size() -> None:
    entropy = _ModuloEntropy()
    pool = CirculationPool([10, 20, 30], entropy=entropy)

    assert pool.select(0) == 10
    assert pool.select(4) == 20
    assert entropy.bounds == [3, 3]
    assert pool.snapshot() == (10, 20, 30)


def test_remove_middle_moves_last_into_freed_slot() -> None:
    pool = CirculationPool([1, 2, 3], entropy=_ModuloEntropy())

    pool.remove(1)

    assert pool.snapshot() == (3, 2)
    assert pool.position_of(3) == 0
    assert pool.position_of(1) is None
    assert pool.size() == 2
    pool.check_consistency()


@pytest.mark.parametrize("victim", [1, 2, 3, 4])
def test_remove_any_position_preserves_other_members(victim: int) -> None:
    members = [1, 2, 3, 4]
    pool = CirculationPool(members, entropy=_ModuloEntropy())

    pool.remove(victim)

    assert set(pool.snapshot()) == set(members) - {victim}
    assert not pool.contains(victim)
    for parent_id in pool.snapshot():
        assert pool.snapshot()[pool.position_of(parent_id)] == parent_id
    pool.check_consistency()


def test_remove_last_remaining_member_empties_pool() -> None:
    pool = CirculationPool([7], entropy=_ModuloEntropy())
    pool.remove(7)
    assert len(pool) == 0
    assert 7 not in pool


def test_remove_absent_parent_is_invariant_violation() -> None:
    pool = CirculationPool([1, 2], entropy=_ModuloEntropy())
    with pytest.raises(PoolInvariantError):
        pool.remove(9)
    assert pool.snapshot() == (1, 2)


def test_add_ignores_duplicates_and_rejects_negative_ids() -> None:
    pool = CirculationPool([1], entropy=_ModuloEntropy())

    assert pool.add(1) is False
    assert pool.add(2) is True
    assert pool.snapshot() == (1, 2)
    with pytest.raises(ValueError):
        pool.add(-1)
