from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.deps import get_current_user, get_db
from kanban.models import Board, BoardMember, TaskHistory, TaskItem, User
from kanban.schemas import ActivityOut

router = APIRouter(tags=["activity"])


@router.get("/activity", response_model=list[ActivityOut])
async def list_activity(
  boardId: str | None = None,
  actionType: str | None = Query(default=None, max_length=50),
  limit: int = Query(default=50, ge=1, le=200),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ActivityOut]:
  my_boards = select(BoardMember.board_id).where(BoardMember.user_id == user.id)
  stmt = (
    select(TaskHistory, TaskItem.title, Board.id, Board.name, User.user_name)
    .join(TaskItem, TaskItem.id == TaskHistory.task_id)
    .join(Board, Board.id == TaskItem.board_id)
    .outerjoin(User, User.id == TaskHistory.user_id)
    .where(Board.id.in_(my_boards))
  )
  if boardId:
    stmt = stmt.where(Board.id == boardId)
  if actionType:
    stmt = stmt.where(TaskHistory.action == actionType)
  res = await db.execute(stmt.order_by(TaskHistory.created_at.desc()).limit(limit))
  return [
    ActivityOut(
      id=h.id,
      taskId=h.task_id,
      userId=h.user_id,
      userName=user_name,
      action=h.action,
      fieldName=h.field_name,
      oldValue=h.old_value,
      newValue=h.new_value,
      createdAt=h.created_at,
      taskTitle=title,
      boardId=board_id,
      boardName=board_name,
    )
    for h, title, board_id, board_name, user_name in res.all()
  ]
