"""Board-scoped authorization gate.

Every board-owned resource reaches exactly one board through a single parent
chain (comment -> task -> board, column -> board, ...). ``authorize`` walks
that chain through the tombstone-filtered session, finds the caller's
membership and applies the role policy. Routers call it once per request
instead of repeating the lookups.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.errors import ForbiddenError, NotFoundError
from kanban.models import Attachment, Board, BoardColumn, BoardMember, Comment, Label, Sprint, SubTask, TaskItem, User
from kanban.policy import decide, rule_for

logger = logging.getLogger("kanban.access")


@dataclass(frozen=True)
class Ownership:
  model: Any
  label: str
  parent: str | None = None
  parent_key: str | None = None
  owner_attr: str | None = None


OWNERSHIP: dict[str, Ownership] = {
  "board": Ownership(Board, "Board"),
  "column": Ownership(BoardColumn, "Column", "board", "board_id"),
  "task": Ownership(TaskItem, "Task", "board", "board_id"),
  "sprint": Ownership(Sprint, "Sprint", "board", "board_id"),
  "label": Ownership(Label, "Label", "board", "board_id"),
  "comment": Ownership(Comment, "Comment", "task", "task_id", owner_attr="user_id"),
  "attachment": Ownership(Attachment, "Attachment", "task", "task_id", owner_attr="created_by"),
  "subtask": Ownership(SubTask, "SubTask", "task", "task_id"),
}


@dataclass
class Access:
  user: User
  board: Board
  member: BoardMember
  resource: Any
  task: TaskItem | None = None

  @property
  def role(self) -> str:
    return self.member.role


async def load_resource(db: AsyncSession, kind: str, key: str) -> Any:
  link = OWNERSHIP[kind]
  res = await db.execute(select(link.model).where(link.model.id == key))
  obj = res.scalar_one_or_none()
  if obj is None:
    raise NotFoundError(link.label, key)
  return obj


async def membership(db: AsyncSession, *, board_id: str, user_id: str) -> BoardMember | None:
  res = await db.execute(select(BoardMember).where(BoardMember.board_id == board_id, BoardMember.user_id == user_id))
  return res.scalar_one_or_none()


def require(access: Access, operation: str, *, is_owner: bool = False) -> None:
  if decide(access.role, operation, is_owner=is_owner):
    return
  logger.warning(
    "User %s (role=%s) denied %s on board %s", access.user.id, access.role, operation, access.board.id
  )
  raise ForbiddenError(rule_for(operation).denied_message)


async def authorize(db: AsyncSession, user: User, kind: str, resource_id: str, operation: str) -> Access:
  resource = await load_resource(db, kind, resource_id)
  chain: dict[str, Any] = {kind: resource}
  current, current_kind = resource, kind
  while OWNERSHIP[current_kind].parent is not None:
    link = OWNERSHIP[current_kind]
    current_kind = link.parent
    current = await load_resource(db, current_kind, getattr(current, link.parent_key))
    chain[current_kind] = current

  board: Board = current
  member = await membership(db, board_id=board.id, user_id=user.id)
  if member is None:
    logger.warning("User %s is not a member of board %s (%s %s)", user.id, board.id, operation, resource_id)
    raise ForbiddenError("You do not have access to this board")

  access = Access(user=user, board=board, member=member, resource=resource, task=chain.get("task"))
  owner_attr = OWNERSHIP[kind].owner_attr
  is_owner = bool(owner_attr) and getattr(resource, owner_attr) == user.id
  require(access, operation, is_owner=is_owner)
  return access


async def authorize_board(db: AsyncSession, user: User, board_id: str, operation: str) -> Access:
  return await authorize(db, user, "board", board_id, operation)
