"""Realtime router: WebSocket subscriptions to group events."""

import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_user_from_token
from utils.notifications import GroupEventHub, get_hub
from utils.validation import get_membership


logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def resolve_user_id(db: Session, token: str):
    """User ID for a token, or None. Ends the read transaction before returning."""
    try:
        user = get_user_from_token(db, token)
        return user.id if user else None
    finally:
        db.rollback()


def is_group_member(db: Session, group_id: int, user_id: int) -> bool:
    try:
        return get_membership(db, group_id, user_id) is not None
    finally:
        db.rollback()


def parse_message(message):
    """Return (event, group_id) for a well-formed subscription message, else (None, None)."""
    if not isinstance(message, dict):
        return None, None
    event = message.get("event")
    group_id = message.get("group_id")
    # bool is an int subclass
    if event not in ("join-group", "leave-group") or isinstance(group_id, bool) or not isinstance(group_id, int):
        return None, None
    return event, group_id


@router.websocket("/ws")
async def group_events(
    websocket: WebSocket,
    token: str = "",
    db: Session = Depends(get_db),
    hub: GroupEventHub = Depends(get_hub)
):
    """
    Clients send {"event": "join-group" | "leave-group", "group_id": N}.

    Every message the server pushes has the shape
    {"event": ..., "group_id": ..., "data": ...}.
    """
    # Sync database work runs in the threadpool, never on the event loop
    user_id = await run_in_threadpool(resolve_user_id, db, token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"User {user_id} connected to group events")

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except (ValueError, KeyError):
                # Not JSON, or a binary frame
                message = None
            event, group_id = parse_message(message)

            if event is None:
                await websocket.send_json({"event": "error", "group_id": None, "data": {"detail": "Unsupported message"}})
                continue

            if event == "leave-group":
                hub.leave(group_id, websocket)
                await websocket.send_json({"event": "left", "group_id": group_id, "data": None})
                continue

            if not await run_in_threadpool(is_group_member, db, group_id, user_id):
                await websocket.send_json({"event": "error", "group_id": group_id, "data": {"detail": "You are not a member of this group"}})
                continue

            hub.join(group_id, websocket)
            logger.info(f"User {user_id} subscribed to group {group_id}")
            await websocket.send_json({"event": "joined", "group_id": group_id, "data": None})
    except WebSocketDisconnect:
        logger.info(f"User {user_id} disconnected from group events")
    finally:
        hub.disconnect(websocket)
