"""Redemption ledger: at most one redemption per (parent, claimant)."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import re
import sqlite3
from typing import Any, Iterator, Protocol

import psycopg

from .contracts import StateLabel


LEDGER_NEW = "NEW"
LEDGER_DUPLICATE = "DUPLICATE"


class RedemptionLedgerStoreError(RuntimeError):
    """Raised when redemption ledger operations fail."""


@dataclass(frozen=True)
class RedemptionLedgerRecord:
    parent_id: int
    claimant: str
    label: StateLabel
    redeemed_at_utc: str


@dataclass(frozen=True)
class LedgerWriteResult:
    status: str
    record: RedemptionLedgerRecord


class RedemptionLedger(Protocol):
    def is_redeemed(self, parent_id: int, claimant: str) -> bool: ...

    def mark_redeemed(
        self,
        *,
        parent_id: int,
        claimant: str,
        label: StateLabel,
        redeemed_at_utc: str,
    ) -> LedgerWriteResult: ...

    def unmark_redeemed(self, parent_id: int, claimant: str) -> None: ...

    def entries(self) -> list[RedemptionLedgerRecord]: ...


class InMemoryRedemptionLedger:
    def __init__(self) -> None:
        self._entries: dict[tuple[int, str], RedemptionLedgerRecord] = {}

    def is_redeemed(self, parent_id: int, claimant: str) -> bool:
        return (parent_id, claimant) in self._entries

    def mark_redeemed(
        self,
        *,
        parent_id: int,
        claimant: str,
        label: StateLabel,
        redeemed_at_utc: str,
    ) -> LedgerWriteResult:
        key = (parent_id, claimant)
        existing = self._entries.get(key)
        if existing is not None:
            return LedgerWriteResult(status=LEDGER_DUPLICATE, record=existing)
        record = RedemptionLedgerRecord(
            parent_id=parent_id,
            claimant=claimant,
            label=label,
            redeemed_at_utc=redeemed_at_utc,
        )
        self._entries[key] = record
        return LedgerWriteResult(status=LEDGER_NEW, record=record)

    def unmark_redeemed(self, parent_id: int, claimant: str) -> None:
        self._entries.pop((parent_id, claimant), None)

    def entries(self) -> list[RedemptionLedgerRecord]:
        return sorted(self._entries.values(), key=lambda item: (item.parent_id, item.claimant))


class RedemptionLedgerStore:
    """Ledger persisted to sqlite (file path or sqlite:// URI) or postgres (DSN).

    `mark_redeemed` is a single conflict-ignoring insert, so two stores racing
    on the same key see exactly one NEW and one DUPLICATE.
    """

    def __init__(self, *, locator: str) -> None:
        self.locator = str(locator or "").strip()
        if not self.locator:
            raise RedemptionLedgerStoreError("ledger locator must be non-empty")
        self.backend = "postgres" if self.locator.startswith(("postgres://", "postgresql://")) else "sqlite"
        if self.backend == "sqlite":
            Path(_sqlite_path(self.locator)).parent.mkdir(parents=True, exist_ok=True)
        with self._session() as conn:
            _run(
                conn,
                self.backend,
                """
                CREATE TABLE IF NOT EXISTS fragment_redemption_ledger (
                    parent_id BIGINT NOT NULL,
                    claimant TEXT NOT NULL,
                    state_label TEXT NOT NULL,
                    redeemed_at_utc TEXT NOT NULL,
                    PRIMARY KEY (parent_id, claimant)
                )
                """,
            )

    def is_redeemed(self, parent_id: int, claimant: str) -> bool:
        return self._read(int(parent_id), str(claimant)) is not None

    def mark_redeemed(
        self,
        *,
        parent_id: int,
        claimant: str,
        label: StateLabel,
        redeemed_at_utc: str,
    ) -> LedgerWriteResult:
        record = RedemptionLedgerRecord(
            parent_id=int(parent_id),
            claimant=str(claimant),
            label=StateLabel(label),
            redeemed_at_utc=str(redeemed_at_utc),
        )
        with self._session() as conn:
            inserted = _run(
                conn,
                self.backend,
                """
                INSERT INTO fragment_redemption_ledger (
                    parent_id, claimant, state_label, redeemed_at_utc
                ) VALUES ({p1}, {p2}, {p3}, {p4})
                ON CONFLICT (parent_id, claimant) DO NOTHING
                """,
                (record.parent_id, record.claimant, record.label.value, record.redeemed_at_utc),
            ).rowcount
        if inserted == 1:
            return LedgerWriteResult(status=LEDGER_NEW, record=record)
        existing = self._read(record.parent_id, record.claimant)
        if existing is None:
            raise RedemptionLedgerStoreError(
                f"ledger insert for parent {parent_id} claimant {claimant} neither applied nor conflicted"
            )
        return LedgerWriteResult(status=LEDGER_DUPLICATE, record=existing)

    def unmark_redeemed(self, parent_id: int, claimant: str) -> None:
        with self._session() as conn:
            _run(
                conn,
                self.backend,
                "DELETE FROM fragment_redemption_ledger WHERE parent_id = {p1} AND claimant = {p2}",
                (int(parent_id), str(claimant)),
            )

    def entries(self) -> list[RedemptionLedgerRecord]:
        with self._session() as conn:
            rows = _run(
                conn,
                self.backend,
                """
                SELECT parent_id, claimant, state_label, redeemed_at_utc
                FROM fragment_redemption_ledger
                ORDER BY parent_id, claimant
                """,
            ).fetchall()
        return [_record_from_row(row) for row in rows]

    def _read(self, parent_id: int, claimant: str) -> RedemptionLedgerRecord | None:
        with self._session() as conn:
            row = _run(
                conn,
                self.backend,
                """
                SELECT parent_id, claimant, state_label, redeemed_at_utc
                FROM fragment_redemption_ledger
                WHERE parent_id = {p1} AND claimant = {p2}
                """,
                (parent_id, claimant),
            ).fetchone()
        return None if row is None else _record_from_row(row)

    @contextmanager
    def _session(self) -> Iterator[Any]:
        if self.backend == "sqlite":
            conn: Any = sqlite3.connect(_sqlite_path(self.locator))
        else:
            conn = psycopg.connect(self.locator)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()


def build_redemption_ledger(locator: str | None) -> InMemoryRedemptionLedger | RedemptionLedgerStore:
    if locator is None or not str(locator).strip():
        return InMemoryRedemptionLedger()
    return RedemptionLedgerStore(locator=str(locator))


def _record_from_row(row: Any) -> RedemptionLedgerRecord:
    return RedemptionLedgerRecord(
        parent_id=int(row[0]),
        claimant=str(row[1]),
        label=StateLabel(str(row[2])),
        redeemed_at_utc=str(row[3]),
    )


def _sqlite_path(locator: str) -> str:
    for prefix in ("sqlite:///", "sqlite://"):
        if locator.startswith(prefix):
            return locator[len(prefix) :]
    return locator


_SQL_PARAM_PATTERN = re.compile(r"\{p(\d+)\}")


def _run(conn: Any, backend: str, sql: str, params: tuple[Any, ...] = ()) -> Any:
    placeholder = "%s" if backend == "postgres" else "?"
    indexes = [int(match) for match in _SQL_PARAM_PATTERN.findall(sql)]
    rendered = _SQL_PARAM_PATTERN.sub(placeholder, sql)
    try:
        return conn.execute(rendered, tuple(params[index - 1] for index in indexes))
    except (sqlite3.Error, psycopg.Error) as exc:
        raise RedemptionLedgerStoreError(f"redemption ledger statement failed: {exc}") from exc
