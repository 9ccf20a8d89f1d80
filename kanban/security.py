from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

from kanban.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_COOKIE_NAME = "kanban_session"


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  return pwd_context.verify(password, password_hash)


def new_token() -> str:
  return secrets.token_urlsafe(32)


def token_hash(token: str) -> str:
  # Keyed hash so DB leaks don't allow offline token matching.
  key = (settings.app_secret or "").encode("utf-8")
  msg = (token or "").strip().encode("utf-8")
  return hmac.new(key, msg, hashlib.sha256).hexdigest()


def access_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(minutes=max(1, int(settings.access_token_ttl_minutes)))


def refresh_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(days=max(1, int(settings.refresh_token_ttl_days)))
