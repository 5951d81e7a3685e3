"""Fragment pool allocation and set-completion engine."""

from .contracts import (
    QUOTA,
    AccessDenied,
    AlreadyRedeemed,
    FragmentNotFound,
    FragmentPoolError,
    FragmentRecord,
    IncompleteSet,
    NoneAvailable,
    NotHolder,
    NotSoleOwner,
    PoolEmpty,
    PoolInvariantError,
    QuotaExceeded,
    RedemptionAborted,
    RedemptionEvent,
    StateLabel,
    StateMismatch,
    UnknownParent,
    VerificationFailed,
)
from .engine import FragmentEngine
from .entropy import EntropySource, HashEntropySource, SystemEntropySource, build_entropy_source
from .holders import HolderRegistry, InMemoryHolderRegistry
from .ledger import (
    InMemoryRedemptionLedger,
    RedemptionLedgerStore,
    RedemptionLedgerStoreError,
    build_redemption_ledger,
)
from .pool import CirculationPool
from .registry import FragmentRegistry
from .verifier import SetVerification, SetVerifier

__all__ = [
    "QUOTA",
    "AccessDenied",
    "AlreadyRedeemed",
    "CirculationPool",
    "EntropySource",
    "FragmentEngine",
    "FragmentNotFound",
    "FragmentPoolError",
    "FragmentRecord",
    "FragmentRegistry",
    "HashEntropySource",
    "HolderRegistry",
    "InMemoryHolderRegistry",
    "InMemoryRedemptionLedger",
    "IncompleteSet",
    "NoneAvailable",
    "NotHolder",
    "NotSoleOwner",
    "PoolEmpty",
    "PoolInvariantError",
    "QuotaExceeded",
    "RedemptionAborted",
    "RedemptionEvent",
    "RedemptionLedgerStore",
    "RedemptionLedgerStoreError",
    "SetVerification",
    "SetVerifier",
    "StateLabel",
    "StateMismatch",
    "SystemEntropySource",
    "UnknownParent",
    "VerificationFailed",
    "build_entropy_source",
    "build_redemption_ledger",
]
