"""Expenses router: create, read and delete group expenses."""

import logging
from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.balances import calculate_group_ledger, to_group_ledger_schema
from utils.display import build_expense_response
from utils.ledger import LedgerError
from utils.notifications import GroupEventHub, get_hub
from utils.validation import (
    get_expense_or_404,
    get_group_or_404,
    verify_group_membership,
    validate_expense_participants,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["expenses"])


def schedule_group_update(
    background_tasks: BackgroundTasks,
    hub: GroupEventHub,
    db: Session,
    group_id: int,
    event: str,
    data
):
    """Queue the expense event and the recomputed ledger for the group's subscribers."""
    background_tasks.add_task(hub.broadcast, group_id, event, data)

    try:
        ledger = to_group_ledger_schema(calculate_group_ledger(db, group_id))
    except LedgerError as e:
        logger.warning(f"Skipping balance push for group {group_id}: {e}")
        return
    background_tasks.add_task(hub.broadcast, group_id, "balances-updated", ledger)


@router.post("", response_model=schemas.Expense)
def create_expense(
    expense: schemas.ExpenseCreate,
    background_tasks: BackgroundTasks,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    hub: GroupEventHub = Depends(get_hub)
):
    get_group_or_404(db, expense.group_id)
    verify_group_membership(db, expense.group_id, current_user.id)

    # Payer and participants must all be in the group
    validate_expense_participants(
        db=db,
        group_id=expense.group_id,
        payer_id=expense.paid_by,
        participant_ids=expense.participants
    )

    db_expense = models.Expense(
        group_id=expense.group_id,
        description=expense.description,
        amount=expense.amount,
        payer_id=expense.paid_by,
        created_by_id=current_user.id
    )
    # Expense and participants are stored together or not at all
    try:
        db.add(db_expense)
        db.flush()
        for user_id in expense.participants:
            db.add(models.ExpenseParticipant(expense_id=db_expense.id, user_id=user_id))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not save expense in group {expense.group_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not save expense")
    db.refresh(db_expense)

    logger.info(f"User {current_user.id} created expense {db_expense.id} in group {expense.group_id}")

    response = build_expense_response(db, db_expense)
    schedule_group_update(background_tasks, hub, db, expense.group_id, "expense-created", response)
    return response


@router.get("", response_model=list[schemas.Expense])
def read_expenses(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)

    expenses = db.query(models.Expense).filter(
        models.Expense.group_id == group_id
    ).order_by(models.Expense.date, models.Expense.id).all()

    return [build_expense_response(db, e) for e in expenses]


@router.get("/{expense_id}", response_model=schemas.Expense)
def get_expense(
    expense_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    expense = get_expense_or_404(db, expense_id)
    verify_group_membership(db, expense.group_id, current_user.id)
    return build_expense_response(db, expense)


@router.delete("/{expense_id}", response_model=schemas.MessageResponse)
def delete_expense(
    expense_id: int,
    background_tasks: BackgroundTasks,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    hub: GroupEventHub = Depends(get_hub)
):
    expense = get_expense_or_404(db, expense_id)
    membership = verify_group_membership(db, expense.group_id, current_user.id)

    allowed = (
        current_user.id in (expense.created_by_id, expense.payer_id) or
        membership.role == "admin"
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="Only the creator, the payer or a group admin can delete this expense")

    group_id = expense.group_id
    db.query(models.ExpenseParticipant).filter(models.ExpenseParticipant.expense_id == expense_id).delete()
    db.delete(expense)
    db.commit()

    logger.info(f"User {current_user.id} deleted expense {expense_id} from group {group_id}")
    schedule_group_update(background_tasks, hub, db, group_id, "expense-deleted", {"expense_id": expense_id})

    return {"message": "Expense deleted successfully"}
