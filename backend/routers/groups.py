"""Groups router: create, list, read, join and delete groups."""

import logging
from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.display import get_user_display_name
from utils.notifications import GroupEventHub, get_hub
from utils.validation import get_group_or_404, get_membership, verify_group_membership, verify_group_admin


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


def build_group_response(db: Session, group: models.Group) -> schemas.GroupWithMembers:
    members_query = db.query(models.GroupMember, models.User).join(
        models.User, models.GroupMember.user_id == models.User.id
    ).filter(models.GroupMember.group_id == group.id).order_by(models.GroupMember.id).all()

    members = [
        schemas.GroupMember(
            id=gm.id,
            user_id=user.id,
            full_name=get_user_display_name(user),
            email=user.email,
            role=gm.role,
            joined_at=gm.joined_at
        )
        for gm, user in members_query
    ]

    return schemas.GroupWithMembers(
        id=group.id,
        name=group.name,
        description=group.description or "",
        created_by_id=group.created_by_id,
        created_at=group.created_at,
        members=members
    )


@router.post("", response_model=schemas.GroupWithMembers)
def create_group(
    group: schemas.GroupCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    db_group = models.Group(
        name=group.name,
        description=group.description,
        created_by_id=current_user.id
    )
    db.add(db_group)
    db.commit()
    db.refresh(db_group)

    # Creator administers the group
    db_member = models.GroupMember(group_id=db_group.id, user_id=current_user.id, role="admin")
    db.add(db_member)
    db.commit()

    logger.info(f"User {current_user.id} created group {db_group.id}")
    return build_group_response(db, db_group)


@router.get("", response_model=list[schemas.Group])
def read_groups(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    # Get groups where user is a member
    user_groups = db.query(models.Group).join(
        models.GroupMember,
        models.Group.id == models.GroupMember.group_id
    ).filter(models.GroupMember.user_id == current_user.id).order_by(models.Group.id).all()
    return user_groups


@router.get("/{group_id}", response_model=schemas.GroupWithMembers)
def get_group(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group = get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)
    return build_group_response(db, group)


@router.post("/{group_id}/join", response_model=schemas.GroupWithMembers)
def join_group(
    group_id: int,
    background_tasks: BackgroundTasks,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    hub: GroupEventHub = Depends(get_hub)
):
    group = get_group_or_404(db, group_id)
    if get_membership(db, group_id, current_user.id):
        raise HTTPException(status_code=400, detail="You are already a member of this group")

    db.add(models.GroupMember(group_id=group_id, user_id=current_user.id, role="member"))
    db.commit()

    logger.info(f"User {current_user.id} joined group {group_id}")
    background_tasks.add_task(hub.broadcast, group_id, "member-joined", {"user_id": current_user.id})
    return build_group_response(db, group)


@router.delete("/{group_id}", response_model=schemas.MessageResponse)
def delete_group(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group = get_group_or_404(db, group_id)
    verify_group_admin(db, group_id, current_user.id)

    expense_ids = [
        expense_id for (expense_id,) in db.query(models.Expense.id).filter(models.Expense.group_id == group_id).all()
    ]
    if expense_ids:
        db.query(models.ExpenseParticipant).filter(
            models.ExpenseParticipant.expense_id.in_(expense_ids)
        ).delete(synchronize_session=False)
        db.query(models.Expense).filter(models.Expense.group_id == group_id).delete(synchronize_session=False)

    db.query(models.GroupMember).filter(models.GroupMember.group_id == group_id).delete()
    db.delete(group)
    db.commit()

    logger.info(f"User {current_user.id} deleted group {group_id}")
    return {"message": "Group deleted successfully"}
