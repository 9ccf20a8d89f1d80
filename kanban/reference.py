from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.models import Status, TaskType

logger = logging.getLogger("kanban.reference")

STATUS_CATEGORIES = ("todo", "in_progress", "done")

DEFAULT_TASK_TYPE = "Task"

# Column name -> status name for the columns every new board starts with.
DEFAULT_COLUMNS = (("To Do", "To Do"), ("In Progress", "In Progress"), ("Done", "Done"))


def default_statuses() -> list[dict]:
  return [
    {"name": "To Do", "category": "todo", "color": "#6B7280"},
    {"name": "In Progress", "category": "in_progress", "color": "#3B82F6"},
    {"name": "In Review", "category": "in_progress", "color": "#F59E0B"},
    {"name": "Done", "category": "done", "color": "#10B981"},
  ]


def default_task_types() -> list[dict]:
  return [
    {"name": "Task", "icon": "task", "color": "#6B7280"},
    {"name": "Bug", "icon": "bug", "color": "#EF4444"},
    {"name": "Feature", "icon": "star", "color": "#8B5CF6"},
    {"name": "Improvement", "icon": "arrow-up", "color": "#3B82F6"},
  ]


async def ensure_reference_data(db: AsyncSession) -> None:
  """
  Ensure the global statuses and task types exist.

  Idempotent by name; safe to call on boot, in seeds and before board creation.
  """
  res_s = await db.execute(select(Status.name))
  existing_statuses = set(res_s.scalars().all())
  added = 0
  for item in default_statuses():
    if item["name"] in existing_statuses:
      continue
    db.add(Status(name=item["name"], category=item["category"], color=item["color"], is_global=True))
    added += 1

  res_t = await db.execute(select(TaskType.name))
  existing_types = set(res_t.scalars().all())
  for item in default_task_types():
    if item["name"] in existing_types:
      continue
    db.add(TaskType(name=item["name"], icon=item["icon"], color=item["color"]))
    added += 1

  if added:
    await db.flush()
    logger.info("Seeded %s reference rows", added)


async def status_ids_by_name(db: AsyncSession) -> dict[str, str]:
  res = await db.execute(select(Status.name, Status.id))
  return {name: sid for name, sid in res.all()}


async def default_task_type_id(db: AsyncSession) -> str | None:
  res = await db.execute(select(TaskType.id).where(TaskType.name == DEFAULT_TASK_TYPE))
  return res.scalars().first()
