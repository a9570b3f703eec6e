"""Ledger aggregation: per-member totals and net balances for a group."""

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Hashable, Iterable, List, Sequence


logger = logging.getLogger(__name__)

UNKNOWN_MEMBER_NAME = "Unknown Member"


class LedgerError(Exception):
    """Base class for errors raised while computing a group ledger."""


class InvalidLedger(LedgerError):
    pass


class InvalidExpense(LedgerError):
    def __init__(self, expense_id, reason: str):
        self.expense_id = expense_id
        self.reason = reason
        super().__init__(f"Expense {expense_id} is invalid: {reason}")


class UntrackedReference(InvalidExpense):
    def __init__(self, expense_id, member_id):
        self.member_id = member_id
        super().__init__(expense_id, f"references {member_id!r}, who is not a member of the ledger")


class UntrackedPolicy(str, enum.Enum):
    """What to do with a payer or participant missing from the member set."""
    DROP = "drop"
    REJECT = "reject"
    INCLUDE = "include"


@dataclass(frozen=True)
class LedgerMember:
    id: Hashable
    name: str


@dataclass(frozen=True)
class LedgerExpense:
    id: Hashable
    amount: float
    payer_id: Hashable
    participant_ids: Sequence[Hashable] = field(default_factory=tuple)


@dataclass
class MemberBalance:
    member_id: Hashable
    name: str
    total_paid: float = 0.0
    total_share: float = 0.0

    @property
    def balance(self) -> float:
        # Positive: owed money. Negative: owes money.
        return self.total_paid - self.total_share


def _unique(ids: Iterable[Hashable]) -> List[Hashable]:
    seen = set()
    result = []
    for member_id in ids:
        if member_id not in seen:
            seen.add(member_id)
            result.append(member_id)
    return result


def validate_expense(expense: LedgerExpense) -> None:
    """Raise InvalidExpense if the expense cannot be split."""
    amount = expense.amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidExpense(expense.id, "amount must be a number")
    if not math.isfinite(amount):
        raise InvalidExpense(expense.id, "amount must be finite")
    if amount <= 0:
        raise InvalidExpense(expense.id, "amount must be greater than zero")
    if not expense.participant_ids:
        raise InvalidExpense(expense.id, "expense has no participants")


def aggregate_balances(
    members: Sequence[LedgerMember],
    expenses: Iterable[LedgerExpense],
    untracked: UntrackedPolicy = UntrackedPolicy.DROP
) -> List[MemberBalance]:
    """
    Compute totals and net balance for every member of a group.

    Each expense is split equally among its (de-duplicated) participants.
    The payer is credited the full amount and each participant is charged
    one share. Nothing is rounded here.

    Args:
        members: The group's current members, in display order.
        expenses: The group's expense records.
        untracked: Handling for references to people outside ``members``.

    Returns:
        One MemberBalance per member, in input order. Under the INCLUDE
        policy, unknown parties are appended after the members.
    """
    if not members:
        raise InvalidLedger("A ledger needs at least one member")

    untracked = UntrackedPolicy(untracked)
    expenses = list(expenses)

    # Validate everything first so a bad record never yields partial totals
    for expense in expenses:
        validate_expense(expense)

    ledger = {}
    for member in members:
        if member.id not in ledger:
            ledger[member.id] = MemberBalance(member_id=member.id, name=member.name)

    def lookup(expense: LedgerExpense, member_id) -> MemberBalance | None:
        entry = ledger.get(member_id)
        if entry is not None:
            return entry
        if untracked == UntrackedPolicy.REJECT:
            raise UntrackedReference(expense.id, member_id)
        if untracked == UntrackedPolicy.INCLUDE:
            entry = MemberBalance(member_id=member_id, name=UNKNOWN_MEMBER_NAME)
            ledger[member_id] = entry
            return entry
        logger.debug(f"Dropping contribution of untracked member {member_id!r} in expense {expense.id}")
        return None

    for expense in expenses:
        participants = _unique(expense.participant_ids)
        share_per_person = expense.amount / len(participants)

        payer = lookup(expense, expense.payer_id)
        if payer is not None:
            payer.total_paid += expense.amount

        for participant_id in participants:
            participant = lookup(expense, participant_id)
            if participant is not None:
                participant.total_share += share_per_person

    return list(ledger.values())
