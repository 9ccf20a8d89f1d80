from __future__ import annotations

import asyncio
import logging
import os
import secrets
from datetime import timedelta

from sqlalchemy import select

from kanban.db import SessionLocal
from kanban.models import Board, BoardColumn, BoardMember, TaskItem, User, utcnow
from kanban.policy import ADMIN, MEMBER
from kanban.reference import DEFAULT_COLUMNS, default_task_type_id, ensure_reference_data, status_ids_by_name
from kanban.security import hash_password
from kanban.stamper import set_actor

logger = logging.getLogger("kanban.seed")


def _bootstrap_password(env_key: str) -> tuple[str, bool]:
  configured = (os.getenv(env_key) or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def _ensure_user(db, *, email: str, user_name: str, role: str, env_key: str, lines: list[str]) -> User:
  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if u:
    return u
  password, generated = _bootstrap_password(env_key)
  u = User(email=email, user_name=user_name, first_name=user_name.title(), role=role, password_hash=hash_password(password))
  db.add(u)
  lines.append(f"{email}={password} (generated={str(generated).lower()})")
  return u


async def seed() -> None:
  async with SessionLocal() as db:
    await ensure_reference_data(db)
    boot_lines: list[str] = []
    admin = await _ensure_user(
      db, email="admin@kanban.local", user_name="admin", role="superuser", env_key="SEED_ADMIN_PASSWORD", lines=boot_lines
    )
    member = await _ensure_user(
      db, email="member@kanban.local", user_name="member", role="user", env_key="SEED_MEMBER_PASSWORD", lines=boot_lines
    )
    await db.flush()
    set_actor(db, admin.id)

    if os.getenv("SEED_DEMO_BOARD", "").strip().lower() in ("1", "true", "yes", "y"):
      board_name = "Kanban Demo"
      bres = await db.execute(select(Board).where(Board.name == board_name, Board.created_by == admin.id))
      board = bres.scalar_one_or_none()
      if not board:
        board = Board(name=board_name, description="Sample board")
        db.add(board)
        await db.flush()
        db.add(BoardMember(board_id=board.id, user_id=admin.id, role=ADMIN))
        db.add(BoardMember(board_id=board.id, user_id=member.id, role=MEMBER))
        statuses = await status_ids_by_name(db)
        columns = []
        for idx, (column_name, status_name) in enumerate(DEFAULT_COLUMNS):
          c = BoardColumn(board_id=board.id, name=column_name, position=idx, status_id=statuses.get(status_name))
          db.add(c)
          columns.append(c)
        await db.flush()

        type_id = await default_task_type_id(db)
        now = utcnow()
        samples = [
          ("Write onboarding notes", 0, 1, member.id, now + timedelta(days=3)),
          ("Review board permissions", 0, 2, admin.id, now + timedelta(days=1)),
          ("Ship first sprint", 1, 3, member.id, None),
        ]
        positions: dict[str, int] = {}
        for title, col_idx, priority, assignee_id, due in samples:
          c = columns[col_idx]
          pos = positions.get(c.id, 0)
          positions[c.id] = pos + 1
          db.add(
            TaskItem(
              board_id=board.id,
              column_id=c.id,
              status_id=c.status_id,
              type_id=type_id,
              assignee_id=assignee_id,
              title=title,
              position_index=pos,
              priority=priority,
              due_date=due,
            )
          )

    await db.commit()

    if boot_lines:
      out_dir = os.getenv("SEED_OUTPUT_DIR", "data")
      os.makedirs(out_dir, exist_ok=True)
      with open(os.path.join(out_dir, "bootstrap-credentials.txt"), "w", encoding="utf-8") as f:
        f.write("\n".join(boot_lines) + "\n")
      logger.info("Wrote %s bootstrap credential(s) to %s", len(boot_lines), out_dir)


if __name__ == "__main__":
  logging.basicConfig(level=logging.INFO)
  asyncio.run(seed())
