import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from leave_mgmt.auth.jwt_handler import token_for_user
from leave_mgmt.notifications.realtime import NotificationHub, role_room, user_room


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(data)


def test_rooms_and_delivery():
    hub = NotificationHub()
    good, broken = FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        hub.connect(good, 1, "Manager")
        hub.connect(broken, 2, "manager")
        assert hub.connection_count(role_room("manager")) == 2
        sent = await hub.send_to_room(role_room("manager"), "notification", {"id": 5})
        return sent

    assert asyncio.run(scenario()) == 1
    assert good.messages == [{"event": "notification", "data": {"id": 5}}]
    # the broken socket left every room
    assert hub.connection_count(role_room("manager")) == 1
    assert hub.connection_count(user_room(2)) == 0


def test_emit_from_worker_thread():
    hub = NotificationHub()
    ws = FakeSocket()

    async def scenario():
        hub.connect(ws, 3, "employee")
        scheduled = await asyncio.to_thread(hub.emit, user_room(3), "notification", {"id": 9})
        for _ in range(50):
            if ws.messages:
                break
            await asyncio.sleep(0.01)
        return scheduled

    assert asyncio.run(scenario()) is True
    assert ws.messages[0]["data"] == {"id": 9}


def test_emit_without_listeners():
    assert NotificationHub().emit(user_room(1), "notification", {}) is False


def test_socket_requires_token(client, tables):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/notifications"):
            pass


def test_socket_accepts_valid_token(client, team):
    employee = team["employee"]
    with client.websocket_connect(f"/ws/notifications?token={token_for_user(employee)}") as ws:
        message = ws.receive_json()
    assert message == {"event": "connected", "data": {"user_id": employee.id, "role": "employee"}}
