"""In-process hub that pushes group events to connected WebSocket clients."""

import logging
from collections import defaultdict
from typing import Any, Dict, Set

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder


logger = logging.getLogger(__name__)


class GroupEventHub:
    """
    Tracks which sockets are subscribed to which group.

    One socket may follow several groups. Sends that fail drop the socket
    from every room instead of failing the broadcast.
    """

    def __init__(self):
        self.rooms: Dict[int, Set[WebSocket]] = defaultdict(set)

    def join(self, group_id: int, websocket: WebSocket):
        self.rooms[group_id].add(websocket)

    def leave(self, group_id: int, websocket: WebSocket):
        room = self.rooms.get(group_id)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            del self.rooms[group_id]

    def disconnect(self, websocket: WebSocket):
        """Remove a socket from every room it joined."""
        for group_id in list(self.rooms.keys()):
            self.leave(group_id, websocket)

    def subscriber_count(self, group_id: int) -> int:
        return len(self.rooms.get(group_id, ()))

    async def broadcast(self, group_id: int, event: str, data: Any = None) -> int:
        """Send an event to every subscriber of a group. Returns the number reached."""
        message = jsonable_encoder({"event": event, "group_id": group_id, "data": data}, by_alias=True)
        delivered = 0
        stale = []

        for websocket in list(self.rooms.get(group_id, ())):
            try:
                await websocket.send_json(message)
                delivered += 1
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.warning(f"Dropping subscriber of group {group_id} after failed send: {e}")
                stale.append(websocket)

        for websocket in stale:
            self.disconnect(websocket)

        return delivered


hub = GroupEventHub()


def get_hub() -> GroupEventHub:
    return hub
