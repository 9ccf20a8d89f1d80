from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.config import settings
from kanban.deps import client_ip, get_current_user, get_db
from kanban.errors import ConflictError, ForbiddenError, UnauthorizedError
from kanban.models import Session as DbSession, User, as_utc
from kanban.rate_limit import limiter
from kanban.schemas import LoginIn, ProfileUpdateIn, RefreshIn, RegisterIn, TokenOut, UserOut
from kanban.security import (
  SESSION_COOKIE_NAME,
  access_expires_at,
  hash_password,
  new_token,
  refresh_expires_at,
  token_hash,
  verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("kanban.auth")


def user_out(u: User) -> UserOut:
  return UserOut(
    id=u.id,
    email=u.email,
    userName=u.user_name,
    firstName=u.first_name,
    lastName=u.last_name,
    fullName=u.full_name,
    avatarUrl=u.avatar_url,
    role=u.role,
    isDisabled=u.deleted_at is not None,
    lastLoginAt=u.last_login_at,
    createdAt=u.created_at,
  )


def _rate_limit_or_429(*, key: str, limit: int, window_seconds: int) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Too many requests",
    headers={"Retry-After": str(retry_after)},
  )


async def ensure_unique_identity(db: AsyncSession, *, email: str | None, user_name: str | None, exclude_id: str | None = None) -> None:
  if email:
    q = select(User.id).where(func.lower(User.email) == email.strip().lower())
    if exclude_id:
      q = q.where(User.id != exclude_id)
    if (await db.execute(q)).scalar_one_or_none():
      raise ConflictError("Email is already registered")
  if user_name:
    q = select(User.id).where(func.lower(User.user_name) == user_name.strip().lower())
    if exclude_id:
      q = q.where(User.id != exclude_id)
    if (await db.execute(q)).scalar_one_or_none():
      raise ConflictError("Username is already taken")


async def _issue_tokens(db: AsyncSession, u: User, request: Request, response: Response) -> TokenOut:
  access, refresh = new_token(), new_token()
  s = DbSession(
    user_id=u.id,
    token_hash=token_hash(access),
    refresh_token_hash=token_hash(refresh),
    expires_at=access_expires_at(),
    refresh_expires_at=refresh_expires_at(),
    created_ip=client_ip(request),
    user_agent=request.headers.get("user-agent"),
  )
  db.add(s)
  await db.commit()

  response.set_cookie(
    key=SESSION_COOKIE_NAME,
    value=access,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(settings.access_token_ttl_minutes) * 60,
    path="/",
  )
  return TokenOut(accessToken=access, refreshToken=refresh, expiresAt=s.expires_at, user=user_out(u))


@router.post("/register", response_model=TokenOut)
async def register(payload: RegisterIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> TokenOut:
  ip = client_ip(request) or "unknown"
  _rate_limit_or_429(key=f"auth:register:ip:{ip}", limit=int(settings.rate_limit_register_ip_per_minute), window_seconds=60)
  await ensure_unique_identity(db, email=payload.email, user_name=payload.userName)
  u = User(
    email=payload.email,
    user_name=payload.userName.strip(),
    first_name=payload.firstName.strip(),
    last_name=payload.lastName.strip(),
    password_hash=hash_password(payload.password),
    role="user",
    last_login_at=datetime.now(timezone.utc),
  )
  db.add(u)
  await db.flush()
  logger.info("Registered user %s (%s)", u.id, u.user_name)
  return await _issue_tokens(db, u, request, response)


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> TokenOut:
  ip = client_ip(request) or "unknown"
  identity = (payload.email or payload.userName or "").strip().lower()
  _rate_limit_or_429(key=f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute), window_seconds=60)
  _rate_limit_or_429(key=f"auth:login:id:{identity}", limit=int(settings.rate_limit_login_email_per_minute), window_seconds=60)

  res = await db.execute(select(User).where(or_(func.lower(User.email) == identity, func.lower(User.user_name) == identity)))
  u = res.scalars().first()
  if not u or not verify_password(payload.password, u.password_hash):
    logger.warning("Failed login for %s from %s", identity, ip)
    raise UnauthorizedError("Invalid credentials")
  if u.deleted_at is not None:
    raise ForbiddenError("User disabled")

  u.last_login_at = datetime.now(timezone.utc)
  logger.info("User %s logged in", u.id)
  return await _issue_tokens(db, u, request, response)


@router.post("/refresh-token", response_model=TokenOut)
async def refresh_token(payload: RefreshIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> TokenOut:
  res = await db.execute(select(DbSession).where(DbSession.refresh_token_hash == token_hash(payload.refreshToken)))
  s = res.scalar_one_or_none()
  if not s or as_utc(s.refresh_expires_at) < datetime.now(timezone.utc):
    raise UnauthorizedError("Invalid refresh token")
  ures = await db.execute(select(User).where(User.id == s.user_id))
  u = ures.scalar_one_or_none()
  if not u or u.deleted_at is not None:
    raise UnauthorizedError("Invalid refresh token")
  # Refresh tokens are single use: rotate the whole session.
  await db.delete(s)
  return await _issue_tokens(db, u, request, response)


@router.post("/logout")
async def logout(response: Response, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await db.execute(delete(DbSession).where(DbSession.user_id == user.id))
  await db.commit()
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  return {"ok": True}


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return user_out(user)


@router.put("/profile", response_model=UserOut)
async def update_profile(payload: ProfileUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> UserOut:
  if payload.email is not None:
    email = payload.email.strip().lower()
    await ensure_unique_identity(db, email=email, user_name=None, exclude_id=user.id)
    user.email = email
  if payload.firstName is not None:
    user.first_name = payload.firstName.strip()
  if payload.lastName is not None:
    user.last_name = payload.lastName.strip()
  if payload.avatarUrl is not None:
    user.avatar_url = payload.avatarUrl.strip() or None
  await db.commit()
  return user_out(user)
