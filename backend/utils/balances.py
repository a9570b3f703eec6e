"""Load a group's ledger snapshot from the database and run the settlement engine."""

import os
from collections import defaultdict

from sqlalchemy.orm import Session

import models
import schemas
from utils.display import get_user_display_name
from utils.ledger import LedgerExpense, LedgerMember, UntrackedPolicy
from utils.settlement import LedgerResult, compute_ledger


def parse_untracked_policy(value: str) -> UntrackedPolicy:
    """Read the UNTRACKED_REFERENCE_POLICY setting, naming it if the value is wrong."""
    try:
        return UntrackedPolicy(value.strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in UntrackedPolicy)
        raise ValueError(f"UNTRACKED_REFERENCE_POLICY must be one of {choices}; got {value!r}") from None


# drop | reject | include
UNTRACKED_REFERENCE_POLICY = parse_untracked_policy(os.getenv("UNTRACKED_REFERENCE_POLICY", "drop"))


def load_group_members(db: Session, group_id: int) -> list[LedgerMember]:
    """Current members of a group, in the order they joined."""
    rows = db.query(models.GroupMember, models.User).join(
        models.User, models.GroupMember.user_id == models.User.id
    ).filter(
        models.GroupMember.group_id == group_id
    ).order_by(models.GroupMember.id).all()

    return [LedgerMember(id=user.id, name=get_user_display_name(user)) for _, user in rows]


def load_group_expenses(db: Session, group_id: int) -> list[LedgerExpense]:
    """All expenses of a group with their participants, oldest first."""
    expenses = db.query(models.Expense).filter(
        models.Expense.group_id == group_id
    ).order_by(models.Expense.id).all()
    if not expenses:
        return []

    # Fetch all participants at once instead of per expense
    participants = defaultdict(list)
    rows = db.query(models.ExpenseParticipant).filter(
        models.ExpenseParticipant.expense_id.in_([e.id for e in expenses])
    ).order_by(models.ExpenseParticipant.id).all()
    for row in rows:
        participants[row.expense_id].append(row.user_id)

    return [
        LedgerExpense(
            id=expense.id,
            amount=expense.amount,
            payer_id=expense.payer_id,
            participant_ids=tuple(participants[expense.id])
        )
        for expense in expenses
    ]


def calculate_group_ledger(
    db: Session,
    group_id: int,
    untracked: UntrackedPolicy = None
) -> LedgerResult:
    """
    Compute balances and settlements for a group from its current snapshot.

    Raises:
        LedgerError: if the stored expenses cannot be aggregated.
    """
    members = load_group_members(db, group_id)
    expenses = load_group_expenses(db, group_id)
    return compute_ledger(members, expenses, untracked=untracked or UNTRACKED_REFERENCE_POLICY)


def to_group_ledger_schema(result: LedgerResult) -> schemas.GroupLedger:
    return schemas.GroupLedger(
        balances=[
            schemas.MemberBalance(
                user_id=b.member_id,
                name=b.name,
                balance=b.balance,
                total_paid=b.total_paid,
                total_share=b.total_share
            )
            for b in result.balances
        ],
        settlements=[
            schemas.Settlement(
                from_user_id=s.from_id,
                from_name=s.from_name,
                to_user_id=s.to_id,
                to_name=s.to_name,
                amount=s.amount
            )
            for s in result.settlements
        ]
    )
