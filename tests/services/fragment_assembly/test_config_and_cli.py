from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from fragment_assembly.cli import main
from fragment_assembly.config import (
    FragmentPoolConfigError,
    FragmentPoolProfile,
    build_engine,
    load_profile,
)
from fragment_assembly.contracts import QUOTA, StateLabel
from fragment_assembly.entropy import SystemEntropySource
from fragment_assembly.ledger import InMemoryRedemptionLedger, RedemptionLedgerStore


def _write_profile(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "fragment_pool.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_load_profile_expands_env_tokens(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("FRAGMENT_POOL_ADMIN", "ops-admin")
    monkeypatch.delenv("FRAGMENT_POOL_BASE_URI", raising=False)
    path = _write_profile(
        tmp_path,
        "\n".join(
            [
                "profile_id: local_parity",
                "administrator: ${FRAGMENT_POOL_ADMIN}",
                "base_uri: ${FRAGMENT_POOL_BASE_URI:-https://assets.example/}",
                "initial_parent_ids: [1, 2, 3]",
                "initial_label: b",
                "entropy_kind: System",
            ]
        ),
    )

    profile = load_profile(path)

    assert profile.administrator == "ops-admin"
    assert profile.base_uri == "https://assets.example/"
    assert profile.initial_parent_ids == [1, 2, 3]
    assert profile.initial_label is StateLabel.B
    assert profile.entropy_kind == "system"
    assert profile.quota == QUOTA


def test_load_profile_requires_env_without_default(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("FRAGMENT_POOL_ADMIN", raising=False)
    path = _write_profile(tmp_path, "administrator: ${FRAGMENT_POOL_ADMIN}\n")
    with pytest.raises(ValueError, match="missing environment variable"):
        load_profile(path)


def test_load_profile_rejects_non_mapping(tmp_path: Path) -> None:
    path = _write_profile(tmp_path, "- just\n- a list\n")
    with pytest.raises(FragmentPoolConfigError):
        load_profile(path)


@pytest.mark.parametrize(
    "overrides",
    [
        {"quota": 0},
        {"initial_parent_ids": [1, 1]},
        {"initial_parent_ids": [-2]},
        {"entropy_kind": "dice"},
        {"initial_label": "E"},
        {"administrator": "  "},
    ],
)
def test_profile_validation_rejects_bad_values(overrides: dict[str, object]) -> None:
    payload: dict[str, object] = {"administrator": "admin"}
    payload.update(overrides)
    with pytest.raises(ValidationError):
        FragmentPoolProfile(**payload)


def test_build_engine_wires_profile(tmp_path: Path) -> None:
    profile = FragmentPoolProfile(
        administrator="admin",
        initial_parent_ids=[4, 5],
        entropy_kind="system",
        initial_label="C",
        ledger_locator=str(tmp_path / "ledger.sqlite"),
    )
    engine = build_engine(profile)

    assert isinstance(engine.entropy, SystemEntropySource)
    assert isinstance(engine.ledger, RedemptionLedgerStore)
    assert sorted(engine.remaining_in_pool()) == [4, 5]
    fragment_id = engine.allocate(0, "owner")
    assert engine.record_of(fragment_id).state_label is StateLabel.C

    default_engine = build_engine(FragmentPoolProfile(administrator="admin"))
    assert isinstance(default_engine.ledger, InMemoryRedemptionLedger)
    assert default_engine.remaining_in_pool() == ()


def test_cli_simulate_allocates_and_redeems(tmp_path: Path, capsys) -> None:
    path = _write_profile(
        tmp_path,
        "administrator: admin\ninitial_parent_ids: [1, 2]\nprofile_id: sim\n",
    )

    exit_code = main(
        [
            "simulate",
            "--profile",
            str(path),
            "--allocations",
            "10",
            "--recipient",
            "collector",
            "--redeem",
        ]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["profile_id"] == "sim"
    assert summary["allocated"] == list(range(1, 2 * QUOTA + 1))
    assert summary["pool_exhausted"] is True
    assert summary["remaining_in_pool"] == []
    assert summary["redeemed"] == [1, 2]
    assert summary["redeem_rejected"] == {}
    assert summary["metrics"]["metrics"]["redeem_total"] == 2


def test_cli_simulate_reports_incomplete_sets(tmp_path: Path, capsys) -> None:
    path = _write_profile(tmp_path, "administrator: admin\ninitial_parent_ids: [7]\n")

    main(["simulate", "--profile", str(path), "--allocations", "2", "--recipient", "c", "--redeem"])

    summary = json.loads(capsys.readouterr().out)
    assert summary["fragments_remaining"] == {"7": QUOTA - 2}
    assert summary["redeem_rejected"] == {"7": "INCOMPLETE_SET"}
    assert summary["pool_exhausted"] is False


def test_cli_show_config(tmp_path: Path, capsys) -> None:
    path = _write_profile(tmp_path, "administrator: admin\ninitial_parent_ids: [3]\n")

    assert main(["show-config", "--profile", str(path)]) == 0

    rendered = json.loads(capsys.readouterr().out)
    assert rendered["administrator"] == "admin"
    assert rendered["initial_label"] == "A"
    assert rendered["ledger_locator"] is None
