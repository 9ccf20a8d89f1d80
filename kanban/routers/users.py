from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.deps import get_current_user, get_db, require_superuser
from kanban.errors import BadRequestError, NotFoundError
from kanban.models import Session as DbSession, User
from kanban.routers.auth import ensure_unique_identity, user_out
from kanban.schemas import UserAdminUpdateIn, UserCreateIn, UserOut, UserPageOut
from kanban.security import hash_password

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger("kanban.users")


def _matches(term: str):
  like = f"%{term.strip().lower()}%"
  return or_(
    func.lower(User.user_name).like(like),
    func.lower(User.email).like(like),
    func.lower(User.first_name).like(like),
    func.lower(User.last_name).like(like),
  )


async def _get_user(db: AsyncSession, user_id: str) -> User:
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u:
    raise NotFoundError("User", user_id)
  return u


@router.get("/search", response_model=list[UserOut])
async def search_users(
  q: str | None = Query(default=None, max_length=100),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[UserOut]:
  stmt = select(User).where(User.deleted_at.is_(None))
  if q and q.strip():
    stmt = stmt.where(_matches(q))
  res = await db.execute(stmt.order_by(User.user_name.asc()).limit(20))
  return [user_out(u) for u in res.scalars().all()]


@router.get("", response_model=UserPageOut)
async def list_users(
  search: str | None = Query(default=None, max_length=100),
  role: str | None = Query(default=None),
  includeDeleted: bool = False,
  page: int = Query(default=1, ge=1),
  pageSize: int = Query(default=20, ge=1, le=100),
  admin: User = Depends(require_superuser),
  db: AsyncSession = Depends(get_db),
) -> UserPageOut:
  stmt = select(User)
  if not includeDeleted:
    stmt = stmt.where(User.deleted_at.is_(None))
  if search and search.strip():
    stmt = stmt.where(_matches(search))
  if role:
    stmt = stmt.where(User.role == role)

  total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
  res = await db.execute(stmt.order_by(User.user_name.asc()).offset((page - 1) * pageSize).limit(pageSize))
  return UserPageOut(
    items=[user_out(u) for u in res.scalars().all()],
    page=page,
    pageSize=pageSize,
    totalCount=int(total),
    totalPages=(int(total) + pageSize - 1) // pageSize,
  )


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> UserOut:
  return user_out(await _get_user(db, user_id))


@router.post("", response_model=UserOut)
async def create_user(payload: UserCreateIn, admin: User = Depends(require_superuser), db: AsyncSession = Depends(get_db)) -> UserOut:
  await ensure_unique_identity(db, email=payload.email, user_name=payload.userName)
  u = User(
    email=payload.email,
    user_name=payload.userName.strip(),
    first_name=payload.firstName.strip(),
    last_name=payload.lastName.strip(),
    password_hash=hash_password(payload.password),
    role=payload.role,
  )
  db.add(u)
  await db.commit()
  logger.info("Superuser %s created user %s", admin.id, u.id)
  return user_out(u)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
  user_id: str,
  payload: UserAdminUpdateIn,
  admin: User = Depends(require_superuser),
  db: AsyncSession = Depends(get_db),
) -> UserOut:
  u = await _get_user(db, user_id)
  if payload.email is not None:
    email = payload.email.strip().lower()
    await ensure_unique_identity(db, email=email, user_name=None, exclude_id=u.id)
    u.email = email
  if payload.firstName is not None:
    u.first_name = payload.firstName.strip()
  if payload.lastName is not None:
    u.last_name = payload.lastName.strip()
  if payload.role is not None:
    if u.id == admin.id and payload.role != "superuser":
      raise BadRequestError("You cannot remove your own superuser role")
    u.role = payload.role
  await db.commit()
  logger.info("Superuser %s updated user %s", admin.id, u.id)
  return user_out(u)


@router.post("/{user_id}/disable")
async def disable_user(user_id: str, admin: User = Depends(require_superuser), db: AsyncSession = Depends(get_db)) -> dict:
  if user_id == admin.id:
    raise BadRequestError("You cannot disable your own account")
  u = await _get_user(db, user_id)
  if u.deleted_at is not None:
    raise BadRequestError("User is already disabled")
  u.deleted_at = datetime.now(timezone.utc)
  await db.execute(delete(DbSession).where(DbSession.user_id == u.id))
  await db.commit()
  logger.info("Superuser %s disabled user %s", admin.id, u.id)
  return {"ok": True}


@router.post("/{user_id}/enable")
async def enable_user(user_id: str, admin: User = Depends(require_superuser), db: AsyncSession = Depends(get_db)) -> dict:
  u = await _get_user(db, user_id)
  if u.deleted_at is None:
    raise BadRequestError("User is not disabled")
  u.deleted_at = None
  await db.commit()
  logger.info("Superuser %s enabled user %s", admin.id, u.id)
  return {"ok": True}
