"""
Display utilities for user names and expense payloads
"""
from sqlalchemy.orm import Session
import models
import schemas


def get_user_display_name(user: models.User) -> str:
    """Full name if set, otherwise the email address."""
    if not user:
        return "Unknown User"
    return user.full_name or user.email


def get_user_names(db: Session, user_ids) -> dict[int, str]:
    """
    Look up display names for several users in one query.

    Args:
        db: Database session
        user_ids: Iterable of user IDs

    Returns:
        Dictionary mapping user ID to display name. Unknown IDs are absent.
    """
    user_ids = set(user_ids)
    if not user_ids:
        return {}
    users = db.query(models.User).filter(models.User.id.in_(user_ids)).all()
    return {user.id: get_user_display_name(user) for user in users}


def build_expense_response(db: Session, expense: models.Expense) -> schemas.Expense:
    """Expand an expense row with payer and participant names."""
    participant_ids = [
        user_id for (user_id,) in db.query(models.ExpenseParticipant.user_id).filter(
            models.ExpenseParticipant.expense_id == expense.id
        ).order_by(models.ExpenseParticipant.id).all()
    ]
    names = get_user_names(db, participant_ids + [expense.payer_id])

    return schemas.Expense(
        id=expense.id,
        group_id=expense.group_id,
        description=expense.description or "",
        amount=expense.amount,
        paid_by=schemas.UserSummary(id=expense.payer_id, name=names.get(expense.payer_id, "Unknown User")),
        participants=[
            schemas.UserSummary(id=user_id, name=names.get(user_id, "Unknown User"))
            for user_id in participant_ids
        ],
        created_by_id=expense.created_by_id,
        date=expense.date
    )
