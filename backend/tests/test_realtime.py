import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

import auth
from routers.realtime import is_group_member, resolve_user_id
from utils.notifications import GroupEventHub


def ws_url(user):
    return f"/ws?token={auth.create_access_token(data={'sub': user.email})}"


def fake_socket():
    websocket = MagicMock(spec=WebSocket)
    websocket.send_json = AsyncMock()
    return websocket


@pytest.mark.asyncio
async def test_broadcast_reaches_only_group_subscribers():
    hub = GroupEventHub()
    first, second, elsewhere = fake_socket(), fake_socket(), fake_socket()
    hub.join(1, first)
    hub.join(1, second)
    hub.join(2, elsewhere)

    delivered = await hub.broadcast(1, "expense-created", {"id": 5})

    assert delivered == 2
    first.send_json.assert_awaited_once_with({"event": "expense-created", "group_id": 1, "data": {"id": 5}})
    elsewhere.send_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_send_drops_subscriber():
    hub = GroupEventHub()
    healthy, broken = fake_socket(), fake_socket()
    broken.send_json.side_effect = RuntimeError("socket closed")
    hub.join(1, healthy)
    hub.join(1, broken)
    hub.join(2, broken)

    delivered = await hub.broadcast(1, "member-joined", {"user_id": 3})

    assert delivered == 1
    assert hub.subscriber_count(1) == 1
    assert hub.subscriber_count(2) == 0


def test_leave_removes_empty_rooms():
    hub = GroupEventHub()
    websocket = fake_socket()
    hub.join(1, websocket)
    hub.leave(1, websocket)
    hub.leave(3, websocket)
    assert hub.rooms == {}


def test_rejects_invalid_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?token=garbage"):
            pass


def test_join_requires_membership(client, group_id, make_user):
    outsider = make_user("outsider@example.com")
    with client.websocket_connect(ws_url(outsider)) as ws:
        ws.send_json({"event": "join-group", "group_id": group_id})
        message = ws.receive_json()
    assert message["event"] == "error"


def test_unsupported_message(client, test_user):
    with client.websocket_connect(ws_url(test_user)) as ws:
        ws.send_json({"event": "dance"})
        assert ws.receive_json()["event"] == "error"


def test_expense_events_pushed_to_subscribers(client, auth_headers, test_user, make_user, group_id, hub):
    bob = make_user("bob@example.com", full_name="Bob")
    client.post(f"/groups/{group_id}/members", headers=auth_headers, json={"email": "bob@example.com"})

    with client.websocket_connect(ws_url(bob)) as ws:
        ws.send_json({"event": "join-group", "group_id": group_id})
        assert ws.receive_json() == {"event": "joined", "group_id": group_id, "data": None}
        assert hub.subscriber_count(group_id) == 1

        response = client.post("/expenses", headers=auth_headers, json={
            "group_id": group_id,
            "description": "Groceries",
            "amount": 60,
            "paid_by": test_user.id,
            "participants": [test_user.id, bob.id]
        })
        assert response.status_code == 200

        created = ws.receive_json()
        assert created["event"] == "expense-created"
        assert created["data"]["description"] == "Groceries"

        updated = ws.receive_json()
        assert updated["event"] == "balances-updated"
        assert updated["data"]["settlements"] == [
            {"from": bob.id, "fromName": "Bob", "to": test_user.id, "toName": "Test User", "amount": 30.0}
        ]

        ws.send_json({"event": "leave-group", "group_id": group_id})
        assert ws.receive_json()["event"] == "left"
        assert hub.subscriber_count(group_id) == 0



def test_member_joined_event(client, group_id, test_user, make_user, headers_for):
    joiner = make_user("joiner@example.com")

    with client.websocket_connect(ws_url(test_user)) as ws:
        ws.send_json({"event": "join-group", "group_id": group_id})
        ws.receive_json()

        client.post(f"/groups/{group_id}/join", headers=headers_for(joiner))

        message = ws.receive_json()
        assert message == {"event": "member-joined", "group_id": group_id, "data": {"user_id": joiner.id}}


def test_malformed_frame_keeps_socket_open(client, test_user, group_id):
    with client.websocket_connect(ws_url(test_user)) as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"event": "error", "group_id": None, "data": {"detail": "Unsupported message"}}

        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json()["event"] == "error"

        # Same connection still serves subscriptions
        ws.send_json({"event": "join-group", "group_id": group_id})
        assert ws.receive_json()["event"] == "joined"


def test_boolean_group_id_rejected(client, test_user, hub):
    with client.websocket_connect(ws_url(test_user)) as ws:
        ws.send_json({"event": "join-group", "group_id": True})
        assert ws.receive_json()["event"] == "error"
    assert hub.subscriber_count(1) == 0


def test_lookups_end_their_transaction(db_session, test_user, group_id):
    expected_id = test_user.id
    token = auth.create_access_token(data={"sub": test_user.email})

    user_id = resolve_user_id(db_session, token)
    assert user_id == expected_id
    assert not db_session.in_transaction()

    assert is_group_member(db_session, group_id, user_id)
    assert not is_group_member(db_session, group_id + 1, user_id)
    assert not db_session.in_transaction()

    assert resolve_user_id(db_session, "garbage") is None
