from __future__ import annotations

import pytest

from kanban.notifier import BoardHub, board_group


class FakeSocket:
  def __init__(self, *, fail: bool = False) -> None:
    self.sent: list[dict] = []
    self.fail = fail

  async def send_json(self, data) -> None:
    if self.fail:
      raise RuntimeError("socket closed")
    self.sent.append(data)


def test_group_name() -> None:
  assert board_group("b1") == "board_b1"


@pytest.mark.anyio
async def test_board_event_reaches_only_joined_connections() -> None:
  hub = BoardHub()
  joined, other = FakeSocket(), FakeSocket()
  c1 = hub.connect("u1", joined)
  hub.connect("u2", other)
  hub.join("b1", c1)

  hub.board_event("b1", "TaskCreated", taskId="t1")
  await hub.drain()

  assert joined.sent == [{"event": "TaskCreated", "data": {"boardId": "b1", "taskId": "t1"}}]
  assert other.sent == []


@pytest.mark.anyio
async def test_leave_stops_delivery() -> None:
  hub = BoardHub()
  ws = FakeSocket()
  conn = hub.connect("u1", ws)
  hub.join("b1", conn)
  hub.leave("b1", conn)

  hub.board_event("b1", "TaskUpdated", taskId="t1")
  await hub.drain()

  assert ws.sent == []
  assert hub.stats()["groups"] == 0


@pytest.mark.anyio
async def test_failing_socket_is_dropped_and_others_still_receive() -> None:
  hub = BoardHub()
  bad, good = FakeSocket(fail=True), FakeSocket()
  c_bad = hub.connect("u1", bad)
  c_good = hub.connect("u2", good)
  hub.join("b1", c_bad)
  hub.join("b1", c_good)

  hub.board_event("b1", "ColumnCreated", columnId="c1")
  await hub.drain()

  assert len(good.sent) == 1
  assert hub.members("b1") == {c_good}
  assert hub.stats()["connections"] == 1


@pytest.mark.anyio
async def test_user_event_goes_to_every_connection_of_that_user() -> None:
  hub = BoardHub()
  tab1, tab2, someone_else = FakeSocket(), FakeSocket(), FakeSocket()
  hub.connect("u1", tab1)
  hub.connect("u1", tab2)
  hub.connect("u2", someone_else)

  hub.user_event("u1", "UserMentioned", boardId="b1", taskId="t1")
  await hub.drain()

  assert tab1.sent == tab2.sent == [{"event": "UserMentioned", "data": {"boardId": "b1", "taskId": "t1"}}]
  assert someone_else.sent == []


def test_event_without_running_loop_is_dropped() -> None:
  hub = BoardHub()
  conn = hub.connect("u1", FakeSocket())
  hub.join("b1", conn)
  hub.board_event("b1", "TaskDeleted", taskId="t1")
  assert hub.stats()["pendingDeliveries"] == 0
