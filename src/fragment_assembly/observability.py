"""Fragment pool run counters and recent-event trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping


_REQUIRED_COUNTERS: tuple[str, ...] = (
    "allocate_total",
    "allocate_rejected_total",
    "parent_exhausted_total",
    "verify_ok_total",
    "verify_failed_total",
    "redeem_total",
    "redeem_rejected_total",
)


class FragmentPoolObservabilityError(ValueError):
    """Raised when observability inputs are invalid."""


@dataclass
class FragmentPoolMetrics:
    profile_id: str
    counters: dict[str, int] = field(default_factory=dict)
    recent_events: list[dict[str, Any]] = field(default_factory=list)
    max_recent_events: int = 25

    def __post_init__(self) -> None:
        if not str(self.profile_id or "").strip():
            raise FragmentPoolObservabilityError("profile_id must be non-empty")
        if self.max_recent_events <= 0:
            raise FragmentPoolObservabilityError("max_recent_events must be > 0")
        for key in _REQUIRED_COUNTERS:
            self.counters.setdefault(key, 0)

    def record_allocation(self, *, fragment_id: int, parent_id: int, exhausted: bool) -> None:
        self.counters["allocate_total"] += 1
        if exhausted:
            self.counters["parent_exhausted_total"] += 1
            self._append_event("parent_exhausted", {"parent_id": parent_id, "fragment_id": fragment_id})

    def record_allocation_rejected(self, *, reason_code: str) -> None:
        self.counters["allocate_rejected_total"] += 1
        self._append_event("allocate_rejected", {"reason_code": reason_code})

    def record_verification(self, *, parent_id: int, verified: bool, reason_code: str | None = None) -> None:
        if verified:
            self.counters["verify_ok_total"] += 1
            return
        self.counters["verify_failed_total"] += 1
        self._append_event("verify_failed", {"parent_id": parent_id, "reason_code": reason_code})

    def record_redemption(self, *, event_payload: Mapping[str, Any]) -> None:
        self.counters["redeem_total"] += 1
        self._append_event("redeemed", event_payload)

    def record_redemption_rejected(self, *, parent_id: int, claimant: str, reason_code: str) -> None:
        self.counters["redeem_rejected_total"] += 1
        self._append_event(
            "redeem_rejected",
            {"parent_id": parent_id, "claimant": claimant, "reason_code": reason_code},
        )

    def snapshot(self, *, generated_at_utc: str | None = None) -> dict[str, Any]:
        return {
            "generated_at_utc": generated_at_utc or utc_now(),
            "profile_id": self.profile_id,
            "metrics": dict(self.counters),
            "recent_events": list(self.recent_events),
        }

    def _append_event(self, kind: str, payload: Mapping[str, Any]) -> None:
        self.recent_events.append({"kind": kind, "payload": dict(payload)})
        if len(self.recent_events) > self.max_recent_events:
            del self.recent_events[: len(self.recent_events) - self.max_recent_events]


def utc_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()
