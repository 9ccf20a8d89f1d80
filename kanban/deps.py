from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Cookie, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db import SessionLocal
from kanban.errors import ForbiddenError, UnauthorizedError
from kanban.models import Session as DbSession, User, as_utc
from kanban.security import SESSION_COOKIE_NAME, token_hash
from kanban.stamper import set_actor


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


def _bearer_token(request: Request) -> str | None:
  auth = request.headers.get("authorization")
  if auth and auth.lower().startswith("bearer "):
    return auth.split(" ", 1)[1].strip() or None
  return None


async def user_for_token(db: AsyncSession, token: str | None) -> User:
  if not token:
    raise UnauthorizedError("Not authenticated")
  res = await db.execute(select(DbSession).where(DbSession.token_hash == token_hash(token)))
  s = res.scalar_one_or_none()
  if not s:
    raise UnauthorizedError("Invalid token")
  if as_utc(s.expires_at) < datetime.now(timezone.utc):
    raise UnauthorizedError("Token expired")

  ures = await db.execute(select(User).where(User.id == s.user_id))
  u = ures.scalar_one_or_none()
  if not u:
    raise UnauthorizedError("User not found")
  if u.deleted_at is not None:
    raise ForbiddenError("User disabled")
  return u


async def get_current_user(
  request: Request,
  db: AsyncSession = Depends(get_db),
  session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> User:
  u = await user_for_token(db, _bearer_token(request) or session_token)
  # Everything this request flushes is stamped with the caller's id.
  set_actor(db, u.id)
  return u


async def require_superuser(user: User = Depends(get_current_user)) -> User:
  if user.role != "superuser":
    raise ForbiddenError("Only superusers can manage users")
  return user


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None
