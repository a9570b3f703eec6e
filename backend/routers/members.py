"""Members router: add registered users to a group."""

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
from utils.validation import get_group_or_404, get_membership, verify_group_membership, get_user_by_email


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups/{group_id}", tags=["members"])


@router.post("/members", response_model=schemas.GroupMember)
def add_group_member(
    group_id: int,
    member_add: schemas.GroupMemberAdd,
    background_tasks: BackgroundTasks,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    hub: GroupEventHub = Depends(get_hub)
):
    get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)

    # Find user by email
    user = get_user_by_email(db, member_add.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if get_membership(db, group_id, user.id):
        raise HTTPException(status_code=400, detail="User is already a member of this group")

    new_member = models.GroupMember(group_id=group_id, user_id=user.id, role="member")
    db.add(new_member)
    db.commit()
    db.refresh(new_member)

    logger.info(f"User {current_user.id} added user {user.id} to group {group_id}")
    background_tasks.add_task(hub.broadcast, group_id, "member-joined", {"user_id": user.id})

    return schemas.GroupMember(
        id=new_member.id,
        user_id=user.id,
        full_name=get_user_display_name(user),
        email=user.email,
        role=new_member.role,
        joined_at=new_member.joined_at
    )
