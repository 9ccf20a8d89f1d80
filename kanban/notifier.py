"""Best-effort real-time fan-out of board changes.

Events are pushed after the triggering unit of work has committed. Delivery
is scheduled on the running loop and never awaited by the caller: there is no
acknowledgement, retry or persistence, and a failed send only drops that
socket. Group membership lives in memory per process; clients must rejoin
after reconnecting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

logger = logging.getLogger("kanban.notifier")


class Socket(Protocol):
  async def send_json(self, data: Any) -> None: ...


def board_group(board_id: str) -> str:
  return f"board_{board_id}"


class Connection:
  """One client socket. Hashed by identity so it can sit in group sets."""

  def __init__(self, user_id: str, ws: Socket) -> None:
    self.user_id = user_id
    self.ws = ws

  async def send_json(self, data: Any) -> None:
    await self.ws.send_json(data)


class BoardHub:
  def __init__(self) -> None:
    self._groups: dict[str, set[Connection]] = {}
    self._users: dict[str, set[Connection]] = {}
    self._owners: dict[Connection, str] = {}
    self._pending: set[asyncio.Task] = set()

  def connect(self, user_id: str, ws: Socket) -> Connection:
    conn = Connection(user_id, ws)
    self._users.setdefault(user_id, set()).add(conn)
    self._owners[conn] = user_id
    logger.info("Realtime connection opened for user %s", user_id)
    return conn

  def disconnect(self, conn: Connection) -> None:
    user_id = self._owners.pop(conn, None)
    if user_id is not None:
      conns = self._users.get(user_id, set())
      conns.discard(conn)
      if not conns:
        self._users.pop(user_id, None)
    for group in list(self._groups):
      self._groups[group].discard(conn)
      if not self._groups[group]:
        del self._groups[group]
    if user_id is not None:
      logger.info("Realtime connection closed for user %s", user_id)

  def join(self, board_id: str, conn: Connection) -> None:
    self._groups.setdefault(board_group(board_id), set()).add(conn)
    logger.info("User %s joined board %s", self._owners.get(conn, "?"), board_id)

  def leave(self, board_id: str, conn: Connection) -> None:
    group = board_group(board_id)
    conns = self._groups.get(group)
    if conns is not None:
      conns.discard(conn)
      if not conns:
        del self._groups[group]
    logger.info("User %s left board %s", self._owners.get(conn, "?"), board_id)

  def members(self, board_id: str) -> set[Connection]:
    return set(self._groups.get(board_group(board_id), set()))

  def stats(self) -> dict:
    return {
      "connections": len(self._owners),
      "groups": len(self._groups),
      "pendingDeliveries": len(self._pending),
    }

  async def _send(self, targets: set[Connection], message: dict) -> None:
    for conn in targets:
      try:
        await conn.send_json(message)
      except Exception:
        logger.warning("Dropping realtime connection after failed %s delivery", message.get("event"), exc_info=True)
        self.disconnect(conn)

  def _schedule(self, targets: set[Connection], message: dict) -> None:
    if not targets:
      return
    try:
      task = asyncio.get_running_loop().create_task(self._send(targets, message))
    except RuntimeError:
      logger.warning("No running loop; %s notification dropped", message.get("event"))
      return
    self._pending.add(task)
    task.add_done_callback(self._finished)

  def _finished(self, task: asyncio.Task) -> None:
    self._pending.discard(task)
    if task.cancelled():
      return
    exc = task.exception()
    if exc is not None:
      logger.error("Realtime delivery failed", exc_info=exc)

  def board_event(self, board_id: str, event: str, **data: Any) -> None:
    message = {"event": event, "data": {"boardId": board_id, **data}}
    self._schedule(self.members(board_id), message)
    logger.debug("Queued %s for board %s", event, board_id)

  def user_event(self, user_id: str, event: str, **data: Any) -> None:
    message = {"event": event, "data": data}
    self._schedule(set(self._users.get(user_id, set())), message)
    logger.debug("Queued %s for user %s", event, user_id)

  async def drain(self) -> None:
    while self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)


hub = BoardHub()
