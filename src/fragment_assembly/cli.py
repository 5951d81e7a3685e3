"""CLI for local fragment pool simulation."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Sequence

from .config import build_engine, load_profile
from .contracts import FragmentPoolError, PoolEmpty
from .logging_utils import configure_logging


logger = logging.getLogger("fragment_assembly.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    base = argparse.ArgumentParser(add_help=False)
    base.add_argument("--profile", required=True, help="Path to fragment pool profile YAML")

    parser = argparse.ArgumentParser(description="Fragment pool CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    simulate = subparsers.add_parser("simulate", parents=[base], help="Allocate fragments and redeem complete sets")
    simulate.add_argument("--allocations", type=int, required=True)
    simulate.add_argument("--recipient", required=True)
    simulate.add_argument("--salt-start", type=int, default=0)
    simulate.add_argument("--redeem", action="store_true", help="Redeem every complete set the recipient holds")
    simulate.add_argument("--log-path", default=None)

    subparsers.add_parser("show-config", parents=[base], help="Print the validated profile")
    return parser.parse_args(argv)


def run_simulation(args: argparse.Namespace) -> dict[str, Any]:
    profile = load_profile(Path(args.profile))
    engine = build_engine(profile)
    allocated: list[int] = []
    pool_exhausted = False
    for offset in range(max(0, int(args.allocations))):
        try:
            allocated.append(engine.allocate(args.salt_start + offset, args.recipient))
        except PoolEmpty:
            pool_exhausted = True
            break

    parents = sorted({engine.record_of(fragment_id).parent_id for fragment_id in allocated})
    redeemed: list[int] = []
    rejected: dict[str, str] = {}
    if args.redeem:
        for parent_id in parents:
            try:
                engine.redeem(parent_id, args.recipient)
            except FragmentPoolError as exc:
                rejected[str(parent_id)] = exc.reason_code
                continue
            redeemed.append(parent_id)

    return {
        "profile_id": profile.profile_id,
        "allocated": allocated,
        "pool_exhausted": pool_exhausted,
        "remaining_in_pool": list(engine.remaining_in_pool()),
        "fragments_remaining": {str(p): engine.fragments_remaining(p) for p in parents},
        "redeemed": redeemed,
        "redeem_rejected": rejected,
        "metrics": engine.metrics_snapshot(),
    }


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "show-config":
        profile = load_profile(Path(args.profile))
        print(json.dumps(profile.model_dump(mode="json"), indent=2, sort_keys=True))
        return 0
    configure_logging(log_path=args.log_path)
    summary = run_simulation(args)
    logger.info(
        "simulation complete allocated=%s redeemed=%s",
        len(summary["allocated"]),
        len(summary["redeemed"]),
    )
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
