from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize
from kanban.deps import get_current_user, get_db
from kanban.errors import BadRequestError
from kanban.history import write_history
from kanban.models import BoardMember, Comment, TaskItem, User
from kanban.notifier import hub
from kanban.schemas import CommentIn, CommentOut, CommentUpdateIn

router = APIRouter(tags=["comments"])
logger = logging.getLogger("kanban.comments")

MENTION_RE = re.compile(r"@([a-zA-Z0-9_-]+)")


def comment_out(c: Comment, author: User) -> CommentOut:
  return CommentOut(
    id=c.id,
    taskId=c.task_id,
    userId=c.user_id,
    authorName=author.full_name,
    content=c.content,
    parentCommentId=c.parent_comment_id,
    isEdited=c.updated_at is not None,
    createdAt=c.created_at,
    updatedAt=c.updated_at,
  )


def mentioned_names(content: str) -> set[str]:
  return {m.lower() for m in MENTION_RE.findall(content or "")}


async def _mentioned_members(db: AsyncSession, board_id: str, content: str, author_id: str) -> list[str]:
  names = mentioned_names(content)
  if not names:
    return []
  res = await db.execute(
    select(User.id)
    .join(BoardMember, BoardMember.user_id == User.id)
    .where(BoardMember.board_id == board_id, func.lower(User.user_name).in_(names), User.id != author_id)
  )
  return list(res.scalars().all())


@router.get("/tasks/{task_id}/comments", response_model=list[CommentOut])
async def list_comments(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[CommentOut]:
  await authorize(db, user, "task", task_id, "task.read")
  res = await db.execute(
    select(Comment, User).join(User, User.id == Comment.user_id).where(Comment.task_id == task_id).order_by(Comment.created_at.asc())
  )
  return [comment_out(c, u) for c, u in res.all()]


@router.post("/tasks/{task_id}/comments", response_model=CommentOut)
async def create_comment(
  task_id: str,
  payload: CommentIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  access = await authorize(db, user, "task", task_id, "comment.create")
  t: TaskItem = access.resource
  if payload.parentCommentId:
    pres = await db.execute(select(Comment.task_id).where(Comment.id == payload.parentCommentId))
    if pres.scalar_one_or_none() != t.id:
      raise BadRequestError("Parent comment does not belong to this task")

  c = Comment(task_id=t.id, user_id=user.id, content=payload.content.strip(), parent_comment_id=payload.parentCommentId)
  db.add(c)
  await db.flush()
  write_history(db, task_id=t.id, user_id=user.id, action="Commented", new_value=c.id)
  mentioned = await _mentioned_members(db, t.board_id, c.content, user.id)
  await db.commit()

  hub.board_event(t.board_id, "CommentCreated", taskId=t.id, commentId=c.id)
  for uid in mentioned:
    hub.user_event(uid, "UserMentioned", boardId=t.board_id, taskId=t.id, commentId=c.id, mentionedBy=user.user_name)
  return comment_out(c, user)


@router.put("/comments/{comment_id}", response_model=CommentOut)
async def update_comment(
  comment_id: str,
  payload: CommentUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  access = await authorize(db, user, "comment", comment_id, "comment.update")
  c: Comment = access.resource
  c.content = payload.content.strip()
  await db.commit()
  hub.board_event(access.board.id, "CommentUpdated", taskId=c.task_id, commentId=c.id)
  return comment_out(c, user)


@router.delete("/comments/{comment_id}")
async def delete_comment(comment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize(db, user, "comment", comment_id, "comment.delete")
  c: Comment = access.resource
  task_id = c.task_id
  await db.delete(c)
  await db.commit()
  hub.board_event(access.board.id, "CommentDeleted", taskId=task_id, commentId=comment_id)
  logger.info("User %s deleted comment %s", user.id, comment_id)
  return {"ok": True}
