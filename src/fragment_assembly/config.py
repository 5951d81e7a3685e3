"""Configuration loader for fragment pool profiles."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, field_validator

from .contracts import QUOTA, StateLabel, parse_state_label
from .engine import FragmentEngine
from .entropy import ENTROPY_KINDS, build_entropy_source
from .ledger import build_redemption_ledger

_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class FragmentPoolConfigError(ValueError):
    """Raised when a fragment pool profile cannot be loaded."""


class FragmentPoolProfile(BaseModel):
    profile_id: str = "local"
    quota: int = QUOTA
    administrator: str
    initial_parent_ids: list[int] = []
    base_uri: str = ""
    entropy_kind: str = "hash"
    initial_label: StateLabel = StateLabel.A
    ledger_locator: str | None = None

    @field_validator("quota")
    @classmethod
    def _positive_quota(cls, value: int) -> int:
        if value < 1:
            raise ValueError("quota must be >= 1")
        return value

    @field_validator("administrator")
    @classmethod
    def _non_empty_admin(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("administrator must be non-empty")
        return value.strip()

    @field_validator("initial_parent_ids")
    @classmethod
    def _unique_parent_ids(cls, value: list[int]) -> list[int]:
        if any(item < 0 for item in value):
            raise ValueError("initial_parent_ids must be >= 0")
        if len(set(value)) != len(value):
            raise ValueError("initial_parent_ids must be unique")
        return value

    @field_validator("entropy_kind")
    @classmethod
    def _known_entropy(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ENTROPY_KINDS:
            raise ValueError(f"entropy_kind must be one of {list(ENTROPY_KINDS)}")
        return normalized

    @field_validator("initial_label", mode="before")
    @classmethod
    def _label(cls, value: Any) -> StateLabel:
        return parse_state_label(value)


def _expand_str(value: str) -> str:
    def replacer(match: re.Match[str]) -> str:
        token = match.group(1)
        if ":-" in token:
            key, default = token.split(":-", 1)
            actual = os.getenv(key, "")
            return actual if actual.strip() else default
        actual = os.getenv(token, "")
        if not actual.strip():
            raise ValueError(f"missing environment variable: {token}")
        return actual

    return _VAR_PATTERN.sub(replacer, value)


def _expand_payload(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_str(value)
    if isinstance(value, list):
        return [_expand_payload(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _expand_payload(item) for key, item in value.items()}
    return value


def load_profile(path: Path) -> FragmentPoolProfile:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise FragmentPoolConfigError(f"profile must be a mapping: {path}")
    expanded = _expand_payload(data)
    return FragmentPoolProfile(**expanded)


def build_engine(profile: FragmentPoolProfile) -> FragmentEngine:
    return FragmentEngine(
        parent_ids=profile.initial_parent_ids,
        administrator=profile.administrator,
        entropy=build_entropy_source(profile.entropy_kind, label=profile.initial_label),
        ledger=build_redemption_ledger(profile.ledger_locator),
        quota=profile.quota,
        base_uri=profile.base_uri,
        profile_id=profile.profile_id,
    )
