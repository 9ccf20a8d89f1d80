from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize
from kanban.deps import get_current_user, get_db
from kanban.models import TaskWatcher, User
from kanban.schemas import WatcherOut, WatchStateOut

router = APIRouter(tags=["watchers"])


async def _watch_row(db: AsyncSession, task_id: str, user_id: str) -> TaskWatcher | None:
  res = await db.execute(select(TaskWatcher).where(TaskWatcher.task_id == task_id, TaskWatcher.user_id == user_id))
  return res.scalar_one_or_none()


@router.get("/tasks/{task_id}/watchers", response_model=list[WatcherOut])
async def list_watchers(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[WatcherOut]:
  await authorize(db, user, "task", task_id, "task.read")
  res = await db.execute(
    select(TaskWatcher, User)
    .join(User, User.id == TaskWatcher.user_id)
    .where(TaskWatcher.task_id == task_id)
    .order_by(TaskWatcher.created_at.desc())
  )
  return [WatcherOut(userId=u.id, userName=u.user_name, fullName=u.full_name, createdAt=w.created_at) for w, u in res.all()]


@router.post("/tasks/{task_id}/watch", response_model=WatchStateOut)
async def watch_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WatchStateOut:
  await authorize(db, user, "task", task_id, "watcher.toggle")
  if await _watch_row(db, task_id, user.id) is None:
    db.add(TaskWatcher(task_id=task_id, user_id=user.id))
    await db.commit()
  return WatchStateOut(watching=True)


@router.delete("/tasks/{task_id}/watch", response_model=WatchStateOut)
async def unwatch_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WatchStateOut:
  await authorize(db, user, "task", task_id, "watcher.toggle")
  row = await _watch_row(db, task_id, user.id)
  if row is not None:
    await db.delete(row)
    await db.commit()
  return WatchStateOut(watching=False)
