from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.deps import get_current_user, get_db
from kanban.models import Status, TaskType, User
from kanban.reference import STATUS_CATEGORIES, ensure_reference_data
from kanban.schemas import StatusOut, TaskTypeOut

router = APIRouter(tags=["reference"])


def _category_rank(category: str) -> int:
  return STATUS_CATEGORIES.index(category) if category in STATUS_CATEGORIES else len(STATUS_CATEGORIES)


@router.get("/statuses", response_model=list[StatusOut])
async def list_statuses(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[StatusOut]:
  await ensure_reference_data(db)
  res = await db.execute(select(Status))
  statuses = sorted(res.scalars().all(), key=lambda s: (_category_rank(s.category), s.name))
  out = [StatusOut(id=s.id, name=s.name, color=s.color, category=s.category, isGlobal=s.is_global) for s in statuses]
  await db.commit()
  return out


@router.get("/task-types", response_model=list[TaskTypeOut])
async def list_task_types(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskTypeOut]:
  await ensure_reference_data(db)
  res = await db.execute(select(TaskType).order_by(TaskType.name.asc()))
  out = [TaskTypeOut(id=t.id, name=t.name, icon=t.icon, color=t.color) for t in res.scalars().all()]
  await db.commit()
  return out
