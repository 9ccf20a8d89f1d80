from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize_board
from kanban.deps import get_current_user, get_db
from kanban.models import Board, BoardColumn, BoardMember, User
from kanban.notifier import hub
from kanban.policy import ADMIN
from kanban.reference import DEFAULT_COLUMNS, ensure_reference_data, status_ids_by_name
from kanban.schemas import BoardDetailOut, BoardIn, BoardOut
from kanban.views import board_columns, board_members, board_out

router = APIRouter(prefix="/boards", tags=["boards"])
logger = logging.getLogger("kanban.boards")


@router.get("", response_model=list[BoardOut])
async def list_boards(
  includeArchived: bool = False,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[BoardOut]:
  stmt = (
    select(Board, BoardMember.role)
    .join(BoardMember, BoardMember.board_id == Board.id)
    .where(BoardMember.user_id == user.id)
    .order_by(Board.created_at.desc())
  )
  if not includeArchived:
    stmt = stmt.where(Board.is_archived.is_(False))
  res = await db.execute(stmt)
  return [board_out(b, role) for b, role in res.all()]


@router.post("", response_model=BoardOut)
async def create_board(payload: BoardIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  await ensure_reference_data(db)
  b = Board(name=payload.name.strip(), description=payload.description, background_color=payload.backgroundColor)
  db.add(b)
  await db.flush()
  db.add(BoardMember(board_id=b.id, user_id=user.id, role=ADMIN))

  statuses = await status_ids_by_name(db)
  for idx, (column_name, status_name) in enumerate(DEFAULT_COLUMNS):
    db.add(BoardColumn(board_id=b.id, name=column_name, position=idx, status_id=statuses.get(status_name)))

  await db.commit()
  logger.info("User %s created board %s", user.id, b.id)
  return board_out(b, ADMIN)


@router.get("/{board_id}", response_model=BoardDetailOut)
async def get_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardDetailOut:
  access = await authorize_board(db, user, board_id, "board.read")
  base = board_out(access.board, access.role)
  return BoardDetailOut(
    **base.model_dump(),
    columns=await board_columns(db, board_id),
    members=await board_members(db, board_id),
  )


@router.put("/{board_id}", response_model=BoardOut)
async def update_board(
  board_id: str,
  payload: BoardIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardOut:
  access = await authorize_board(db, user, board_id, "board.update")
  b = access.board
  b.name = payload.name.strip()
  b.description = payload.description
  b.background_color = payload.backgroundColor
  await db.commit()
  hub.board_event(b.id, "BoardUpdated", name=b.name)
  logger.info("User %s updated board %s", user.id, b.id)
  return board_out(b, access.role)


async def _set_archived(board_id: str, archived: bool, user: User, db: AsyncSession) -> BoardOut:
  access = await authorize_board(db, user, board_id, "board.archive")
  b = access.board
  b.is_archived = archived
  await db.commit()
  hub.board_event(b.id, "BoardArchived" if archived else "BoardUnarchived")
  logger.info("User %s %s board %s", user.id, "archived" if archived else "unarchived", b.id)
  return board_out(b, access.role)


@router.post("/{board_id}/archive", response_model=BoardOut)
async def archive_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  return await _set_archived(board_id, True, user, db)


@router.post("/{board_id}/unarchive", response_model=BoardOut)
async def unarchive_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  return await _set_archived(board_id, False, user, db)


@router.delete("/{board_id}")
async def delete_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize_board(db, user, board_id, "board.delete")
  await db.delete(access.board)
  await db.commit()
  hub.board_event(board_id, "BoardDeleted")
  logger.info("User %s deleted board %s", user.id, board_id)
  return {"ok": True}
