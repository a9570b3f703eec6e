"""Validation utilities for group membership, access control, and expense participants."""

from sqlalchemy.orm import Session
from fastapi import HTTPException

import models


def get_user_by_email(db: Session, email: str):
    """Get a user by their email address."""
    return db.query(models.User).filter(models.User.email == email).first()


def get_group_or_404(db: Session, group_id: int):
    """Get a group by ID or raise 404 if not found."""
    group = db.query(models.Group).filter(models.Group.id == group_id).first()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


def get_expense_or_404(db: Session, expense_id: int):
    expense = db.query(models.Expense).filter(models.Expense.id == expense_id).first()
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


def get_membership(db: Session, group_id: int, user_id: int):
    return db.query(models.GroupMember).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.user_id == user_id
    ).first()


def verify_group_membership(db: Session, group_id: int, user_id: int):
    """Verify that a user is a member of a group, raise 403 if not."""
    member = get_membership(db, group_id, user_id)
    if not member:
        raise HTTPException(status_code=403, detail="You are not a member of this group")
    return member


def verify_group_admin(db: Session, group_id: int, user_id: int):
    """Verify that a user is an admin of a group, raise 403 if not."""
    member = verify_group_membership(db, group_id, user_id)
    if member.role != "admin":
        raise HTTPException(status_code=403, detail="Only group admins can perform this action")
    return member


def validate_expense_participants(
    db: Session,
    group_id: int,
    payer_id: int,
    participant_ids: list[int]
) -> None:
    """Validate that the payer and every participant belong to the group."""
    member_ids = {
        user_id for (user_id,) in db.query(models.GroupMember.user_id).filter(
            models.GroupMember.group_id == group_id
        ).all()
    }

    if payer_id not in member_ids:
        raise HTTPException(status_code=400, detail=f"Payer with ID {payer_id} is not a member of this group")

    for user_id in participant_ids:
        if user_id not in member_ids:
            raise HTTPException(status_code=400, detail=f"Participant with ID {user_id} is not a member of this group")
