"""Administrator gate for pool seeding and engine settings."""

from __future__ import annotations

from dataclasses import dataclass

from .contracts import AccessDenied


@dataclass(frozen=True)
class AdminGate:
    administrator: str

    def __post_init__(self) -> None:
        administrator = str(self.administrator or "").strip()
        if not administrator:
            raise ValueError("administrator must be a non-empty string")
        object.__setattr__(self, "administrator", administrator)

    def is_administrator(self, caller: str) -> bool:
        return str(caller or "").strip() == self.administrator

    def require(self, caller: str, *, action: str) -> None:
        if not self.is_administrator(caller):
            raise AccessDenied(f"{caller!r} may not {action}")
