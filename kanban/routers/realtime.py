from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from kanban.access import membership
from kanban.db import SessionLocal
from kanban.deps import user_for_token
from kanban.errors import ApiError
from kanban.notifier import hub

router = APIRouter(tags=["realtime"])
logger = logging.getLogger("kanban.realtime")


async def _is_member(board_id: str, user_id: str) -> bool:
  async with SessionLocal() as db:
    return await membership(db, board_id=board_id, user_id=user_id) is not None


@router.websocket("/ws")
async def board_socket(websocket: WebSocket, access_token: str | None = Query(default=None)) -> None:
  try:
    async with SessionLocal() as db:
      user = await user_for_token(db, access_token)
  except ApiError as exc:
    await websocket.accept()
    await websocket.close(code=4001, reason=exc.message)
    logger.info("Rejected realtime connection: %s", exc.message)
    return

  await websocket.accept()
  conn = hub.connect(user.id, websocket)
  try:
    while True:
      try:
        msg = await websocket.receive_json()
      except ValueError:
        await websocket.send_json({"type": "error", "message": "Unknown message"})
        continue
      kind = msg.get("type") if isinstance(msg, dict) else None
      board_id = str(msg.get("boardId") or "") if isinstance(msg, dict) else ""

      if kind == "ping":
        await websocket.send_json({"type": "pong"})
      elif kind == "joinBoard" and board_id:
        if not await _is_member(board_id, user.id):
          await websocket.send_json({"type": "error", "message": "You do not have access to this board", "boardId": board_id})
          continue
        hub.join(board_id, conn)
        await websocket.send_json({"type": "joinedBoard", "boardId": board_id})
      elif kind == "leaveBoard" and board_id:
        hub.leave(board_id, conn)
        await websocket.send_json({"type": "leftBoard", "boardId": board_id})
      else:
        await websocket.send_json({"type": "error", "message": "Unknown message"})
  except WebSocketDisconnect:
    pass
  finally:
    hub.disconnect(conn)
