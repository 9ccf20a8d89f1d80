from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize
from kanban.deps import get_current_user, get_db
from kanban.models import SubTask, User
from kanban.notifier import hub
from kanban.schemas import SubTaskCreateIn, SubTaskOut, SubTaskUpdateIn

router = APIRouter(tags=["subtasks"])


def subtask_out(s: SubTask) -> SubTaskOut:
  return SubTaskOut(id=s.id, taskId=s.task_id, title=s.title, isCompleted=s.is_completed, position=s.position)


@router.get("/tasks/{task_id}/subtasks", response_model=list[SubTaskOut])
async def list_subtasks(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[SubTaskOut]:
  await authorize(db, user, "task", task_id, "task.read")
  res = await db.execute(select(SubTask).where(SubTask.task_id == task_id).order_by(SubTask.position.asc()))
  return [subtask_out(s) for s in res.scalars().all()]


@router.post("/tasks/{task_id}/subtasks", response_model=SubTaskOut)
async def create_subtask(
  task_id: str,
  payload: SubTaskCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubTaskOut:
  access = await authorize(db, user, "task", task_id, "subtask.create")
  res = await db.execute(select(func.max(SubTask.position)).where(SubTask.task_id == task_id))
  max_pos = res.scalar_one()
  s = SubTask(task_id=task_id, title=payload.title.strip(), position=(max_pos + 1) if max_pos is not None else 0)
  db.add(s)
  await db.commit()
  hub.board_event(access.board.id, "TaskUpdated", taskId=task_id)
  return subtask_out(s)


@router.put("/subtasks/{subtask_id}", response_model=SubTaskOut)
async def update_subtask(
  subtask_id: str,
  payload: SubTaskUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubTaskOut:
  access = await authorize(db, user, "subtask", subtask_id, "subtask.update")
  s: SubTask = access.resource
  if payload.title is not None:
    s.title = payload.title.strip()
  if payload.isCompleted is not None:
    s.is_completed = payload.isCompleted
  await db.commit()
  hub.board_event(access.board.id, "TaskUpdated", taskId=s.task_id)
  return subtask_out(s)


@router.post("/subtasks/{subtask_id}/toggle", response_model=SubTaskOut)
async def toggle_subtask(subtask_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SubTaskOut:
  access = await authorize(db, user, "subtask", subtask_id, "subtask.update")
  s: SubTask = access.resource
  s.is_completed = not s.is_completed
  await db.commit()
  hub.board_event(access.board.id, "TaskUpdated", taskId=s.task_id)
  return subtask_out(s)


@router.delete("/subtasks/{subtask_id}")
async def delete_subtask(subtask_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize(db, user, "subtask", subtask_id, "subtask.delete")
  s: SubTask = access.resource
  task_id = s.task_id
  await db.delete(s)
  await db.commit()
  hub.board_event(access.board.id, "TaskUpdated", taskId=task_id)
  return {"ok": True}
