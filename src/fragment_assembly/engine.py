"""Serialized allocation and redemption over the pool, registry and ledger."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from .access import AdminGate
from .contracts import (
    QUOTA,
    AlreadyRedeemed,
    FragmentPoolError,
    FragmentRecord,
    RedemptionAborted,
    RedemptionEvent,
    StateLabel,
    VerificationFailed,
    parse_state_label,
    require_parent_id,
)
from .entropy import EntropySource, HashEntropySource
from .holders import HolderRegistry, InMemoryHolderRegistry
from .ledger import LEDGER_NEW, InMemoryRedemptionLedger, RedemptionLedger
from .metadata import build_fragment_metadata, encode_token_uri
from .observability import FragmentPoolMetrics, utc_now
from .pool import CirculationPool
from .registry import FragmentRegistry
from .verifier import SetVerification, SetVerifier


logger = logging.getLogger("fragment_assembly.engine")


class FragmentEngine:
    """One allocator/verifier instance and the state it owns.

    Every public method runs under a single re-entrant lock, so mutations are
    never interleaved and reads never observe a half-updated counter/pool pair.
    A redemption re-entered from a destroy hook sees its own ledger entry and
    is rejected.
    """

    def __init__(
        self,
        *,
        parent_ids: Iterable[int],
        administrator: str,
        entropy: EntropySource | None = None,
        holders: HolderRegistry | None = None,
        ledger: RedemptionLedger | None = None,
        quota: int = QUOTA,
        base_uri: str = "",
        profile_id: str = "local",
        clock_utc: Callable[[], str] = utc_now,
    ) -> None:
        self.entropy = entropy or HashEntropySource()
        self.holders = holders or InMemoryHolderRegistry()
        self.ledger = ledger or InMemoryRedemptionLedger()
        self.gate = AdminGate(administrator)
        self.pool = CirculationPool(parent_ids, entropy=self.entropy)
        self.registry = FragmentRegistry(self.pool, quota=quota)
        self.verifier = SetVerifier(registry=self.registry, holders=self.holders)
        self.metrics = FragmentPoolMetrics(profile_id=profile_id)
        self.base_uri = base_uri
        self.redemptions: list[RedemptionEvent] = []
        self._clock_utc = clock_utc
        self._lock = threading.RLock()

    @property
    def quota(self) -> int:
        return self.registry.quota

    def allocate(self, salt: int, recipient: str) -> int:
        recipient = str(recipient or "").strip()
        if not recipient:
            raise ValueError("recipient must be a non-empty string")
        with self._lock:
            try:
                fragment_id = self.registry.allocate(salt, caller=recipient, label=self.entropy.label)
            except FragmentPoolError as exc:
                self.metrics.record_allocation_rejected(reason_code=exc.reason_code)
                logger.warning("allocation rejected reason=%s salt=%s", exc.reason_code, salt)
                raise
            self.holders.mint(fragment_id, recipient)
            record = self.registry.record_of(fragment_id)
            self.metrics.record_allocation(
                fragment_id=fragment_id,
                parent_id=record.parent_id,
                exhausted=not self.pool.contains(record.parent_id),
            )
            return fragment_id

    def verify(self, parent_id: int, claimant: str) -> SetVerification:
        with self._lock:
            result = self.verifier.evaluate(parent_id, claimant)
            self.metrics.record_verification(
                parent_id=parent_id,
                verified=result.verified,
                reason_code=result.reason_code,
            )
            return result

    def redeem(self, parent_id: int, claimant: str) -> bool:
        with self._lock:
            if self.ledger.is_redeemed(parent_id, claimant):
                self._reject_redemption(parent_id, claimant, AlreadyRedeemed.reason_code)
                raise AlreadyRedeemed(f"{claimant} already redeemed parent {parent_id}")
            try:
                label = self.verifier.verify(parent_id, claimant)
            except FragmentPoolError as exc:
                self._reject_redemption(parent_id, claimant, exc.reason_code)
                raise
            if label is None:
                self._reject_redemption(parent_id, claimant, VerificationFailed.reason_code)
                raise VerificationFailed(f"set for parent {parent_id} failed verification")

            fragment_ids = tuple(self.registry.fragment_ids_for_parent(parent_id))
            redeemed_at_utc = self._clock_utc()
            # Ledger entry is committed before any fragment is destroyed.
            write = self.ledger.mark_redeemed(
                parent_id=parent_id,
                claimant=claimant,
                label=label,
                redeemed_at_utc=redeemed_at_utc,
            )
            if write.status != LEDGER_NEW:
                self._reject_redemption(parent_id, claimant, AlreadyRedeemed.reason_code)
                raise AlreadyRedeemed(f"{claimant} already redeemed parent {parent_id}")

            retired: list[int] = []
            destroyed: list[int] = []
            try:
                for fragment_id in fragment_ids:
                    self.registry.retire(fragment_id)
                    retired.append(fragment_id)
                    self.holders.destroy(fragment_id)
                    destroyed.append(fragment_id)
            except Exception as exc:
                self._rollback_redemption(parent_id, claimant, retired=retired, destroyed=destroyed)
                self._reject_redemption(parent_id, claimant, RedemptionAborted.reason_code)
                raise RedemptionAborted(
                    f"redemption of parent {parent_id} by {claimant} rolled back: {exc}"
                ) from exc

            event = RedemptionEvent(
                claimant=claimant,
                parent_id=parent_id,
                label=label,
                fragment_ids=fragment_ids,
                redeemed_at_utc=redeemed_at_utc,
            )
            self.redemptions.append(event)
            self.metrics.record_redemption(event_payload=event.as_dict())
            logger.info("set redeemed parent=%s claimant=%s label=%s", parent_id, claimant, label.value)
            return True

    def remaining_in_pool(self) -> tuple[int, ...]:
        with self._lock:
            return self.pool.snapshot()

    def fragments_remaining(self, parent_id: int) -> int:
        with self._lock:
            return self.registry.fragments_remaining(parent_id)

    def fragment_ids_for_parent(self, parent_id: int) -> list[int]:
        with self._lock:
            return self.registry.fragment_ids_for_parent(parent_id)

    def record_of(self, fragment_id: int) -> FragmentRecord:
        with self._lock:
            return self.registry.record_of(fragment_id)

    def holder_of(self, fragment_id: int) -> str:
        with self._lock:
            return self.holders.holder_of(fragment_id)

    def transfer(self, fragment_id: int, sender: str, recipient: str) -> None:
        with self._lock:
            self.holders.transfer(fragment_id, sender, recipient)

    def token_uri(self, fragment_id: int) -> str:
        with self._lock:
            record = self.registry.record_of(fragment_id)
            document = build_fragment_metadata(record, base_uri=self.base_uri, quota=self.quota)
        return encode_token_uri(document)

    def seed_pool(self, parent_ids: Iterable[int], *, caller: str) -> list[int]:
        self.gate.require(caller, action="seed the pool")
        candidates = [require_parent_id(parent_id) for parent_id in parent_ids]
        with self._lock:
            exhausted = [p for p in candidates if self.registry.minted_count(p) >= self.quota]
            if exhausted:
                raise ValueError(f"parents already exhausted: {sorted(set(exhausted))}")
            added = [p for p in candidates if self.pool.add(p)]
        logger.info("pool seeded added=%s size=%s", len(added), self.pool.size())
        return added

    def set_base_uri(self, base_uri: str, *, caller: str) -> None:
        self.gate.require(caller, action="set the base uri")
        with self._lock:
            self.base_uri = str(base_uri)

    def set_world_label(self, label: StateLabel | str, *, caller: str) -> StateLabel:
        self.gate.require(caller, action="set the world label")
        parsed = parse_state_label(label)
        with self._lock:
            self.entropy.set_label(parsed)
        logger.info("world label set label=%s", parsed.value)
        return parsed

    def metrics_snapshot(self) -> dict[str, object]:
        with self._lock:
            snapshot = self.metrics.snapshot()
            snapshot["pool_size"] = self.pool.size()
            snapshot["fragments_minted"] = self.registry.last_fragment_id
            return snapshot

    def _rollback_redemption(
        self,
        parent_id: int,
        claimant: str,
        *,
        retired: list[int],
        destroyed: list[int],
    ) -> None:
        for fragment_id in destroyed:
            self.holders.mint(fragment_id, claimant)
        for fragment_id in retired:
            self.registry.restore(fragment_id)
        self.ledger.unmark_redeemed(parent_id, claimant)
        logger.warning(
            "redemption rolled back parent=%s claimant=%s destroyed=%s",
            parent_id,
            claimant,
            len(destroyed),
        )

    def _reject_redemption(self, parent_id: int, claimant: str, reason_code: str) -> None:
        self.metrics.record_redemption_rejected(parent_id=parent_id, claimant=claimant, reason_code=reason_code)
        logger.warning("redemption rejected parent=%s claimant=%s reason=%s", parent_id, claimant, reason_code)
