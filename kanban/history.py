from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from kanban.models import TaskHistory, TaskItem, as_utc

# Fields whose changes are recorded one row per field on task updates.
TRACKED_FIELDS = (
  "title",
  "description",
  "column_id",
  "status_id",
  "type_id",
  "sprint_id",
  "assignee_id",
  "priority",
  "due_date",
)


def _text(value: Any) -> str | None:
  if value is None:
    return None
  if isinstance(value, datetime):
    return as_utc(value).isoformat()
  return str(value)


def write_history(
  db: AsyncSession,
  *,
  task_id: str,
  user_id: str,
  action: str,
  field_name: str | None = None,
  old_value: Any = None,
  new_value: Any = None,
) -> TaskHistory:
  h = TaskHistory(
    task_id=task_id,
    user_id=user_id,
    action=action,
    field_name=field_name,
    old_value=_text(old_value),
    new_value=_text(new_value),
  )
  db.add(h)
  return h


def snapshot(t: TaskItem) -> dict[str, Any]:
  return {f: getattr(t, f) for f in TRACKED_FIELDS}


def write_field_changes(db: AsyncSession, *, task: TaskItem, user_id: str, before: dict[str, Any]) -> int:
  changed = 0
  for field in TRACKED_FIELDS:
    old, new = before.get(field), getattr(task, field)
    if _text(old) == _text(new):
      continue
    write_history(db, task_id=task.id, user_id=user_id, action="Updated", field_name=field, old_value=old, new_value=new)
    changed += 1
  return changed
