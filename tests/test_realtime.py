from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import auth, make_board, make_task, register, reset_db
from kanban.config import settings
from kanban.db import engine
from kanban.main import app
from kanban.notifier import hub


async def _seed() -> dict:
  await reset_db()
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as c:
    ada = await register(c, "ada")
    eve = await register(c, "eve")
    board = await make_board(c, ada)
    task = await make_task(c, board, ada)
  return {"ada": ada, "eve": eve, "board": board, "task": task}


@pytest.fixture
def live():
  # The socket session and HTTP calls share the TestClient portal loop, so
  # the database is seeded and disposed on that same loop.
  assert settings.is_test_db()
  with TestClient(app, base_url="http://localhost") as tc:
    data = tc.portal.call(_seed)
    yield tc, data
    tc.portal.call(hub.drain)
    tc.portal.call(engine.dispose)


def _ws_url(user: dict) -> str:
  return f"/ws?access_token={user['token']}"


def test_socket_without_valid_token_is_closed(live) -> None:
  tc, _ = live
  for url in ("/ws", "/ws?access_token=bogus"):
    with tc.websocket_connect(url) as ws:
      with pytest.raises(WebSocketDisconnect) as exc:
        ws.receive_json()
    assert exc.value.code == 4001


def test_ping_and_malformed_frames(live) -> None:
  tc, data = live
  with tc.websocket_connect(_ws_url(data["ada"])) as ws:
    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}

    ws.send_text("not json")
    assert ws.receive_json() == {"type": "error", "message": "Unknown message"}

    ws.send_json({"type": "shout"})
    assert ws.receive_json() == {"type": "error", "message": "Unknown message"}

    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


def test_non_member_cannot_join_board(live) -> None:
  tc, data = live
  board_id = data["board"]["id"]
  with tc.websocket_connect(_ws_url(data["eve"])) as ws:
    ws.send_json({"type": "joinBoard", "boardId": board_id})
    reply = ws.receive_json()
    assert reply["type"] == "error"
    assert reply["message"] == "You do not have access to this board"
    assert reply["boardId"] == board_id
    assert hub.members(board_id) == set()


def test_joined_socket_receives_task_deleted(live) -> None:
  tc, data = live
  board_id, task_id = data["board"]["id"], data["task"]["id"]
  with tc.websocket_connect(_ws_url(data["ada"])) as ws:
    ws.send_json({"type": "joinBoard", "boardId": board_id})
    assert ws.receive_json() == {"type": "joinedBoard", "boardId": board_id}

    res = tc.delete(f"/tasks/{task_id}", headers=auth(data["ada"]))
    assert res.status_code == 200, res.text
    assert ws.receive_json() == {"event": "TaskDeleted", "data": {"boardId": board_id, "taskId": task_id}}


def test_leaving_board_stops_delivery(live) -> None:
  tc, data = live
  board_id, task_id = data["board"]["id"], data["task"]["id"]
  with tc.websocket_connect(_ws_url(data["ada"])) as ws:
    ws.send_json({"type": "joinBoard", "boardId": board_id})
    assert ws.receive_json()["type"] == "joinedBoard"
    ws.send_json({"type": "leaveBoard", "boardId": board_id})
    assert ws.receive_json() == {"type": "leftBoard", "boardId": board_id}

    task = data["task"]
    body = {"title": "Renamed", "statusId": task["statusId"], "typeId": task["typeId"]}
    res = tc.put(f"/tasks/{task_id}", json=body, headers=auth(data["ada"]))
    assert res.status_code == 200, res.text
    tc.portal.call(hub.drain)

    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}
