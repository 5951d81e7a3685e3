"""Fragment pool contracts: labels, records, events and the error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


QUOTA = 4


class StateLabel(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


INITIAL_LABEL = StateLabel.A


class FragmentPoolError(RuntimeError):
    """Base class for recoverable fragment pool failures surfaced to callers."""

    reason_code = "FRAGMENT_POOL_ERROR"


class PoolEmpty(FragmentPoolError):
    reason_code = "POOL_EMPTY"


NoneAvailable = PoolEmpty


class UnknownParent(FragmentPoolError):
    reason_code = "UNKNOWN_PARENT"


class IncompleteSet(FragmentPoolError):
    reason_code = "INCOMPLETE_SET"


class NotSoleOwner(FragmentPoolError):
    reason_code = "NOT_SOLE_OWNER"


class StateMismatch(FragmentPoolError):
    reason_code = "STATE_MISMATCH"


class AlreadyRedeemed(FragmentPoolError):
    reason_code = "ALREADY_REDEEMED"


class VerificationFailed(FragmentPoolError):
    reason_code = "VERIFICATION_FAILED"


class RedemptionAborted(FragmentPoolError):
    """Raised when destroying a verified set fails and the redemption is rolled back."""

    reason_code = "REDEMPTION_ABORTED"


class FragmentNotFound(FragmentPoolError):
    reason_code = "FRAGMENT_NOT_FOUND"


class NotHolder(FragmentPoolError):
    reason_code = "NOT_HOLDER"


class AccessDenied(FragmentPoolError):
    reason_code = "ACCESS_DENIED"


class PoolInvariantError(AssertionError):
    """Raised when pool and registry bookkeeping disagree. Never expected at runtime."""

    reason_code = "POOL_INVARIANT"


class QuotaExceeded(PoolInvariantError):
    reason_code = "QUOTA_EXCEEDED"


@dataclass(frozen=True)
class FragmentRecord:
    fragment_id: int
    parent_id: int
    ordinal: int
    state_label: StateLabel

    def as_dict(self) -> dict[str, Any]:
        return {
            "fragment_id": self.fragment_id,
            "parent_id": self.parent_id,
            "ordinal": self.ordinal,
            "state_label": self.state_label.value,
        }


@dataclass(frozen=True)
class RedemptionEvent:
    claimant: str
    parent_id: int
    label: StateLabel
    fragment_ids: tuple[int, ...]
    redeemed_at_utc: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "claimant": self.claimant,
            "parent_id": self.parent_id,
            "label": self.label.value,
            "fragment_ids": list(self.fragment_ids),
            "redeemed_at_utc": self.redeemed_at_utc,
        }


def parse_state_label(value: Any) -> StateLabel:
    if isinstance(value, StateLabel):
        return value
    text = str(value or "").strip().upper()
    try:
        return StateLabel(text)
    except ValueError as exc:
        raise ValueError(f"state label must be one of {[item.value for item in StateLabel]}") from exc


def require_parent_id(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"parent_id must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError("parent_id must be >= 0")
    return value
