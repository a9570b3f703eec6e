"""Debt simplification: turn net balances into a short list of transfers."""

import logging
from dataclasses import dataclass
from typing import Hashable, List, Sequence

from utils.ledger import (
    LedgerExpense,
    LedgerMember,
    MemberBalance,
    UntrackedPolicy,
    aggregate_balances,
)


logger = logging.getLogger(__name__)

# Balances within a cent of zero are considered settled
SETTLED_TOLERANCE = 0.01


@dataclass(frozen=True)
class Settlement:
    from_id: Hashable
    from_name: str
    to_id: Hashable
    to_name: str
    amount: float


@dataclass(frozen=True)
class LedgerResult:
    balances: List[MemberBalance]
    settlements: List[Settlement]

    @property
    def is_settled(self) -> bool:
        return not self.settlements


def check_zero_sum(balances: Sequence[MemberBalance]) -> bool:
    """Log a warning if the balances cannot settle each other out."""
    total = sum(b.balance for b in balances)
    if abs(total) >= SETTLED_TOLERANCE:
        logger.warning(f"Ledger balances sum to {total:.6f} instead of zero; settlement plan will be incomplete")
        return False
    return True


def simplify_debts(balances: Sequence[MemberBalance]) -> List[Settlement]:
    """
    Match the largest debtor with the largest creditor until one side runs out.

    Members within a cent of zero are left out. Ties keep input order.
    The input balances are not modified.
    """
    check_zero_sum(balances)

    debtors = []
    creditors = []

    for entry in balances:
        amount = entry.balance
        if amount < -SETTLED_TOLERANCE:
            debtors.append({'id': entry.member_id, 'name': entry.name, 'amount': amount})
        elif amount > SETTLED_TOLERANCE:
            creditors.append({'id': entry.member_id, 'name': entry.name, 'amount': amount})

    # list.sort is stable
    debtors.sort(key=lambda x: x['amount'])
    creditors.sort(key=lambda x: x['amount'], reverse=True)

    settlements = []
    i = 0
    j = 0

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        amount = min(creditor['amount'], abs(debtor['amount']))

        settlements.append(Settlement(
            from_id=debtor['id'],
            from_name=debtor['name'],
            to_id=creditor['id'],
            to_name=creditor['name'],
            amount=round(amount, 2)
        ))

        creditor['amount'] -= amount
        debtor['amount'] += amount

        if creditor['amount'] < SETTLED_TOLERANCE:
            i += 1
        if abs(debtor['amount']) < SETTLED_TOLERANCE:
            j += 1

    return settlements


def compute_ledger(
    members: Sequence[LedgerMember],
    expenses: Sequence[LedgerExpense],
    untracked: UntrackedPolicy = UntrackedPolicy.DROP
) -> LedgerResult:
    """Balances and settlement plan for a group, or a LedgerError."""
    balances = aggregate_balances(members, expenses, untracked=untracked)
    return LedgerResult(balances=balances, settlements=simplify_debts(balances))
