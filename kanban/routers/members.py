from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import Access, authorize_board, require
from kanban.deps import get_current_user, get_db
from kanban.errors import BadRequestError, ConflictError, NotFoundError
from kanban.models import BoardMember, User, utcnow
from kanban.notifier import hub
from kanban.policy import ADMIN
from kanban.schemas import MemberAddIn, MemberOut, MemberRoleIn
from kanban.stamper import INCLUDE_DELETED
from kanban.views import board_members, member_out

router = APIRouter(prefix="/boards/{board_id}/members", tags=["members"])
logger = logging.getLogger("kanban.members")


async def _find_user(db: AsyncSession, payload: MemberAddIn) -> User:
  if payload.userId:
    stmt = select(User).where(User.id == payload.userId)
    key = payload.userId
  elif payload.userName:
    stmt = select(User).where(func.lower(User.user_name) == payload.userName.strip().lower())
    key = payload.userName
  else:
    stmt = select(User).where(func.lower(User.email) == (payload.email or "").strip().lower())
    key = payload.email
  res = await db.execute(stmt.where(User.deleted_at.is_(None)))
  u = res.scalar_one_or_none()
  if not u:
    raise NotFoundError("User", key)
  return u


async def _target_member(db: AsyncSession, access: Access, user_id: str) -> BoardMember:
  res = await db.execute(select(BoardMember).where(BoardMember.board_id == access.board.id, BoardMember.user_id == user_id))
  m = res.scalar_one_or_none()
  if not m:
    raise NotFoundError("BoardMember", user_id)
  return m


async def _ensure_other_admin(db: AsyncSession, board_id: str, m: BoardMember) -> None:
  if m.role != ADMIN:
    return
  res = await db.execute(
    select(func.count(BoardMember.id)).where(
      BoardMember.board_id == board_id, BoardMember.role == ADMIN, BoardMember.id != m.id
    )
  )
  if int(res.scalar_one()) == 0:
    raise BadRequestError("A board must keep at least one admin")


@router.get("", response_model=list[MemberOut])
async def list_members(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[MemberOut]:
  await authorize_board(db, user, board_id, "board.read")
  return await board_members(db, board_id)


@router.post("", response_model=MemberOut)
async def add_member(
  board_id: str,
  payload: MemberAddIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MemberOut:
  await authorize_board(db, user, board_id, "member.add")
  target = await _find_user(db, payload)

  # Removed members keep their tombstoned row; adding them again revives it.
  res = await db.execute(
    select(BoardMember)
    .where(BoardMember.board_id == board_id, BoardMember.user_id == target.id)
    .execution_options(**{INCLUDE_DELETED: True})
  )
  m = res.scalar_one_or_none()
  if m is not None and m.deleted_at is None:
    raise ConflictError("User is already a member of this board")
  if m is None:
    m = BoardMember(board_id=board_id, user_id=target.id, role=payload.role)
    db.add(m)
  else:
    m.deleted_at = None
    m.role = payload.role
    m.joined_at = utcnow()
  await db.commit()
  hub.board_event(board_id, "MemberAdded", userId=target.id, role=m.role)
  logger.info("User %s added %s to board %s as %s", user.id, target.id, board_id, m.role)
  return member_out(m, target)


@router.put("/{user_id}", response_model=MemberOut)
async def update_member_role(
  board_id: str,
  user_id: str,
  payload: MemberRoleIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MemberOut:
  access = await authorize_board(db, user, board_id, "member.update_role")
  m = await _target_member(db, access, user_id)
  if m.role == ADMIN and payload.role != ADMIN:
    await _ensure_other_admin(db, board_id, m)
  m.role = payload.role
  await db.commit()
  ures = await db.execute(select(User).where(User.id == m.user_id))
  hub.board_event(board_id, "MemberRoleUpdated", userId=m.user_id, role=m.role)
  logger.info("User %s set role of %s on board %s to %s", user.id, user_id, board_id, m.role)
  return member_out(m, ures.scalar_one())


@router.delete("/{user_id}")
async def remove_member(board_id: str, user_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize_board(db, user, board_id, "board.read")
  require(access, "member.remove", is_owner=user_id == user.id)
  m = await _target_member(db, access, user_id)
  await _ensure_other_admin(db, board_id, m)
  await db.delete(m)
  await db.commit()
  hub.board_event(board_id, "MemberRemoved", userId=user_id)
  logger.info("User %s removed %s from board %s", user.id, user_id, board_id)
  return {"ok": True}
