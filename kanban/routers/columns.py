from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize, authorize_board
from kanban.deps import get_current_user, get_db
from kanban.errors import BadRequestError
from kanban.models import BoardColumn, Status, TaskItem, User
from kanban.notifier import hub
from kanban.schemas import ColumnIn, ColumnOut, ColumnReorderIn
from kanban.views import board_columns, column_out

router = APIRouter(tags=["columns"])
logger = logging.getLogger("kanban.columns")


async def _validate_status(db: AsyncSession, status_id: str | None) -> None:
  if not status_id:
    return
  res = await db.execute(select(Status.id).where(Status.id == status_id))
  if res.scalar_one_or_none() is None:
    raise BadRequestError("Invalid statusId")


@router.get("/boards/{board_id}/columns", response_model=list[ColumnOut])
async def list_columns(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ColumnOut]:
  await authorize_board(db, user, board_id, "board.read")
  return await board_columns(db, board_id)


@router.post("/boards/{board_id}/columns", response_model=ColumnOut)
async def create_column(
  board_id: str,
  payload: ColumnIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  await authorize_board(db, user, board_id, "column.create")
  await _validate_status(db, payload.statusId)
  res = await db.execute(select(func.max(BoardColumn.position)).where(BoardColumn.board_id == board_id))
  max_pos = res.scalar_one()
  pos = (max_pos + 1) if max_pos is not None else 0
  c = BoardColumn(board_id=board_id, name=payload.name.strip(), position=pos, wip_limit=payload.wipLimit, status_id=payload.statusId)
  db.add(c)
  await db.commit()
  hub.board_event(board_id, "ColumnCreated", columnId=c.id)
  logger.info("User %s created column %s on board %s", user.id, c.id, board_id)
  return column_out(c)


@router.put("/columns/{column_id}", response_model=ColumnOut)
async def update_column(
  column_id: str,
  payload: ColumnIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  access = await authorize(db, user, "column", column_id, "column.update")
  await _validate_status(db, payload.statusId)
  c: BoardColumn = access.resource
  c.name = payload.name.strip()
  c.wip_limit = payload.wipLimit
  c.status_id = payload.statusId
  await db.commit()
  hub.board_event(c.board_id, "ColumnUpdated", columnId=c.id)
  return column_out(c)


@router.delete("/columns/{column_id}")
async def delete_column(column_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize(db, user, "column", column_id, "column.delete")
  c: BoardColumn = access.resource
  res = await db.execute(select(func.count(TaskItem.id)).where(TaskItem.column_id == c.id))
  if int(res.scalar_one()) > 0:
    raise BadRequestError("Cannot delete a column that contains tasks. Move or delete the tasks first.")
  await db.delete(c)
  await db.commit()
  hub.board_event(c.board_id, "ColumnDeleted", columnId=c.id)
  logger.info("User %s deleted column %s on board %s", user.id, c.id, c.board_id)
  return {"ok": True}


@router.put("/boards/{board_id}/columns/reorder", response_model=list[ColumnOut])
async def reorder_columns(
  board_id: str,
  payload: ColumnReorderIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ColumnOut]:
  await authorize_board(db, user, board_id, "column.reorder")
  ids = [item.columnId for item in payload.columns]
  positions = [item.position for item in payload.columns]
  if len(set(ids)) != len(ids):
    raise BadRequestError("Duplicate column ids")
  if len(set(positions)) != len(positions):
    raise BadRequestError("Duplicate column positions")

  res = await db.execute(select(BoardColumn).where(BoardColumn.id.in_(ids), BoardColumn.board_id == board_id))
  columns = {c.id: c for c in res.scalars().all()}
  if len(columns) != len(ids):
    raise BadRequestError("All columns must belong to the board")
  for item in payload.columns:
    columns[item.columnId].position = item.position
  await db.commit()
  hub.board_event(board_id, "ColumnsReordered")
  return await board_columns(db, board_id)
