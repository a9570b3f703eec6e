"""Balances router: net balances and simplified settlements for a group."""

import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.balances import calculate_group_ledger, to_group_ledger_schema
from utils.ledger import InvalidExpense, LedgerError
from utils.validation import get_group_or_404, verify_group_membership


logger = logging.getLogger(__name__)

router = APIRouter(tags=["balances"])


@router.get("/groups/{group_id}/balances", response_model=schemas.GroupLedger)
def get_group_balances(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    """Every member's totals and the transfers that would settle the group."""
    get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)

    try:
        result = calculate_group_ledger(db, group_id)
    except InvalidExpense as e:
        logger.error(f"Could not compute balances for group {group_id}: expense {e.expense_id} {e.reason}")
        raise HTTPException(status_code=500, detail="Could not compute balances")
    except LedgerError as e:
        logger.error(f"Could not compute balances for group {group_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not compute balances")

    return to_group_ledger_schema(result)
