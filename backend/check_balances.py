#!/usr/bin/env python3
"""
Print a group's balances and settlement plan straight from the database.

Usage:
  python check_balances.py --group-id N [--policy drop|reject|include]

Useful when a client reports balances that do not add up.
"""

import argparse
import sys

from database import SessionLocal
import models
from utils.balances import calculate_group_ledger
from utils.ledger import LedgerError, UntrackedPolicy


def print_ledger(result) -> None:
    print(f"{'Member':<30} {'Paid':>12} {'Share':>12} {'Balance':>12}")
    for b in result.balances:
        print(f"{b.name:<30} {b.total_paid:>12.2f} {b.total_share:>12.2f} {b.balance:>12.2f}")

    total = sum(b.balance for b in result.balances)
    print(f"\nSum of balances: {total:.9f}")

    if result.is_settled:
        print("Group is already settled up.")
        return

    print("\nSettlements:")
    for s in result.settlements:
        print(f"  {s.from_name} -> {s.to_name}: {s.amount:.2f}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Show balances and settlements for a group")
    parser.add_argument("--group-id", type=int, required=True, help="Group to inspect")
    parser.add_argument(
        "--policy",
        choices=[p.value for p in UntrackedPolicy],
        default=None,
        help="Override how references to non-members are handled"
    )
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        group = db.query(models.Group).filter(models.Group.id == args.group_id).first()
        if not group:
            print(f"Group {args.group_id} not found", file=sys.stderr)
            return 1

        print(f"Group {group.id}: {group.name}\n")
        policy = UntrackedPolicy(args.policy) if args.policy else None
        try:
            result = calculate_group_ledger(db, group.id, untracked=policy)
        except LedgerError as e:
            print(f"Could not compute balances: {e}", file=sys.stderr)
            return 1

        print_ledger(result)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
