from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize, authorize_board, membership
from kanban.deps import get_current_user, get_db
from kanban.errors import BadRequestError
from kanban.history import snapshot, write_field_changes, write_history
from kanban.models import (
  Attachment,
  Board,
  BoardColumn,
  BoardMember,
  Comment,
  Sprint,
  Status,
  TaskHistory,
  TaskItem,
  TaskLabel,
  TaskType,
  TaskWatcher,
  User,
)
from kanban.notifier import hub
from kanban.reference import default_task_type_id
from kanban.schemas import (
  HistoryOut,
  MyTaskOut,
  TaskAssignIn,
  TaskCreateIn,
  TaskDetailOut,
  TaskMoveIn,
  TaskOut,
  TaskUpdateIn,
  WatcherOut,
)
from kanban.views import is_overdue, tasks_out

router = APIRouter(tags=["tasks"])
logger = logging.getLogger("kanban.tasks")


async def _validate_column(db: AsyncSession, board_id: str, column_id: str) -> BoardColumn:
  res = await db.execute(select(BoardColumn).where(BoardColumn.id == column_id))
  c = res.scalar_one_or_none()
  if not c or c.board_id != board_id:
    raise BadRequestError("Column does not belong to this board")
  return c


async def _validate_assignee(db: AsyncSession, board_id: str, assignee_id: str | None) -> None:
  if not assignee_id:
    return
  if await membership(db, board_id=board_id, user_id=assignee_id) is None:
    raise BadRequestError("Assignee must be a member of the board")


async def _validate_sprint(db: AsyncSession, board_id: str, sprint_id: str | None) -> None:
  if not sprint_id:
    return
  res = await db.execute(select(Sprint.board_id).where(Sprint.id == sprint_id))
  if res.scalar_one_or_none() != board_id:
    raise BadRequestError("Sprint does not belong to this board")


async def _validate_reference(db: AsyncSession, *, status_id: str | None, type_id: str | None) -> None:
  if status_id and (await db.execute(select(Status.id).where(Status.id == status_id))).scalar_one_or_none() is None:
    raise BadRequestError("Invalid statusId")
  if type_id and (await db.execute(select(TaskType.id).where(TaskType.id == type_id))).scalar_one_or_none() is None:
    raise BadRequestError("Invalid typeId")


async def _one_out(db: AsyncSession, t: TaskItem) -> TaskOut:
  return (await tasks_out(db, [t]))[0]


@router.get("/boards/{board_id}/tasks", response_model=list[TaskOut])
async def list_board_tasks(
  board_id: str,
  includeArchived: bool = False,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[TaskOut]:
  await authorize_board(db, user, board_id, "task.read")
  stmt = select(TaskItem).where(TaskItem.board_id == board_id)
  if not includeArchived:
    stmt = stmt.where(TaskItem.is_archived.is_(False))
  res = await db.execute(stmt.order_by(TaskItem.column_id.asc(), TaskItem.position_index.asc()))
  return await tasks_out(db, list(res.scalars().all()))


@router.get("/boards/{board_id}/tasks/search", response_model=list[TaskOut])
async def search_tasks(
  board_id: str,
  term: str | None = Query(default=None, max_length=200),
  statusId: str | None = None,
  typeId: str | None = None,
  assigneeId: str | None = None,
  priority: int | None = Query(default=None, ge=0, le=3),
  sprintId: str | None = None,
  isArchived: bool | None = None,
  labelId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[TaskOut]:
  await authorize_board(db, user, board_id, "task.read")
  stmt = select(TaskItem).where(TaskItem.board_id == board_id)
  if term and term.strip():
    like = f"%{term.strip().lower()}%"
    stmt = stmt.where(func.lower(TaskItem.title).like(like) | func.lower(func.coalesce(TaskItem.description, "")).like(like))
  if statusId:
    stmt = stmt.where(TaskItem.status_id == statusId)
  if typeId:
    stmt = stmt.where(TaskItem.type_id == typeId)
  if assigneeId:
    stmt = stmt.where(TaskItem.assignee_id == assigneeId)
  if priority is not None:
    stmt = stmt.where(TaskItem.priority == priority)
  if sprintId:
    stmt = stmt.where(TaskItem.sprint_id == sprintId)
  if isArchived is not None:
    stmt = stmt.where(TaskItem.is_archived.is_(isArchived))
  if labelId:
    stmt = stmt.where(TaskItem.id.in_(select(TaskLabel.task_id).where(TaskLabel.label_id == labelId)))
  res = await db.execute(stmt.order_by(TaskItem.column_id.asc(), TaskItem.position_index.asc()))
  return await tasks_out(db, list(res.scalars().all()))


@router.get("/columns/{column_id}/tasks", response_model=list[TaskOut])
async def list_column_tasks(column_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  await authorize(db, user, "column", column_id, "task.read")
  res = await db.execute(
    select(TaskItem)
    .where(TaskItem.column_id == column_id, TaskItem.is_archived.is_(False))
    .order_by(TaskItem.position_index.asc())
  )
  return await tasks_out(db, list(res.scalars().all()))


@router.get("/tasks/my", response_model=list[MyTaskOut])
async def my_tasks(
  boardId: str | None = None,
  statusId: str | None = None,
  priority: int | None = Query(default=None, ge=0, le=3),
  isOverdue: bool | None = None,
  sortBy: str = Query(default="dueDate", pattern="^(dueDate|priority|createdAt)$"),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[MyTaskOut]:
  my_boards = select(BoardMember.board_id).where(BoardMember.user_id == user.id)
  stmt = (
    select(TaskItem, Board.name)
    .join(Board, Board.id == TaskItem.board_id)
    .where(TaskItem.board_id.in_(my_boards), TaskItem.assignee_id == user.id, TaskItem.is_archived.is_(False))
  )
  if boardId:
    stmt = stmt.where(TaskItem.board_id == boardId)
  if statusId:
    stmt = stmt.where(TaskItem.status_id == statusId)
  if priority is not None:
    stmt = stmt.where(TaskItem.priority == priority)
  rows = (await db.execute(stmt)).all()

  now = datetime.now(timezone.utc)
  if isOverdue:
    rows = [(t, name) for t, name in rows if is_overdue(t, now)]
  tasks = [t for t, _ in rows]
  names = {t.id: name for t, name in rows}
  outs = await tasks_out(db, tasks)
  result = [MyTaskOut(**o.model_dump(), boardName=names[o.id]) for o in outs]

  far = datetime.max.replace(tzinfo=timezone.utc)
  if sortBy == "priority":
    result.sort(key=lambda o: (-o.priority, o.dueDate or far))
  elif sortBy == "createdAt":
    result.sort(key=lambda o: o.createdAt, reverse=True)
  else:
    result.sort(key=lambda o: (o.dueDate is None, o.dueDate or far))
  return result


@router.get("/tasks/{task_id}", response_model=TaskDetailOut)
async def get_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskDetailOut:
  access = await authorize(db, user, "task", task_id, "task.read")
  t: TaskItem = access.resource
  base = await _one_out(db, t)
  wres = await db.execute(
    select(TaskWatcher, User).join(User, User.id == TaskWatcher.user_id).where(TaskWatcher.task_id == t.id).order_by(TaskWatcher.created_at.desc())
  )
  watchers = [WatcherOut(userId=u.id, userName=u.user_name, fullName=u.full_name, createdAt=w.created_at) for w, u in wres.all()]
  comment_count = (await db.execute(select(func.count(Comment.id)).where(Comment.task_id == t.id))).scalar_one()
  attachment_count = (await db.execute(select(func.count(Attachment.id)).where(Attachment.task_id == t.id))).scalar_one()
  return TaskDetailOut(**base.model_dump(), watchers=watchers, commentCount=int(comment_count), attachmentCount=int(attachment_count))


@router.post("/boards/{board_id}/tasks", response_model=TaskOut)
async def create_task(
  board_id: str,
  payload: TaskCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  await authorize_board(db, user, board_id, "task.create")
  column = await _validate_column(db, board_id, payload.columnId)
  await _validate_assignee(db, board_id, payload.assigneeId)
  await _validate_sprint(db, board_id, payload.sprintId)
  await _validate_reference(db, status_id=payload.statusId, type_id=payload.typeId)

  res = await db.execute(select(func.max(TaskItem.position_index)).where(TaskItem.column_id == column.id))
  max_pos = res.scalar_one()
  t = TaskItem(
    board_id=board_id,
    column_id=column.id,
    status_id=payload.statusId or column.status_id,
    type_id=payload.typeId or await default_task_type_id(db),
    sprint_id=payload.sprintId,
    assignee_id=payload.assigneeId,
    title=payload.title.strip(),
    description=payload.description,
    position_index=(max_pos + 1) if max_pos is not None else 0,
    priority=payload.priority,
    due_date=payload.dueDate,
  )
  db.add(t)
  await db.flush()
  write_history(db, task_id=t.id, user_id=user.id, action="Created", new_value=t.title)
  await db.commit()
  hub.board_event(board_id, "TaskCreated", taskId=t.id, columnId=t.column_id)
  logger.info("User %s created task %s on board %s", user.id, t.id, board_id)
  return await _one_out(db, t)


@router.put("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  access = await authorize(db, user, "task", task_id, "task.update")
  t: TaskItem = access.resource
  await _validate_assignee(db, t.board_id, payload.assigneeId)
  await _validate_sprint(db, t.board_id, payload.sprintId)
  await _validate_reference(db, status_id=payload.statusId, type_id=payload.typeId)

  before = snapshot(t)
  t.title = payload.title.strip()
  t.description = payload.description
  t.status_id = payload.statusId
  t.type_id = payload.typeId
  t.sprint_id = payload.sprintId
  t.assignee_id = payload.assigneeId
  t.priority = payload.priority
  t.due_date = payload.dueDate
  write_field_changes(db, task=t, user_id=user.id, before=before)
  await db.commit()
  hub.board_event(t.board_id, "TaskUpdated", taskId=t.id)
  return await _one_out(db, t)


@router.post("/tasks/{task_id}/move", response_model=TaskOut)
async def move_task(task_id: str, payload: TaskMoveIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  access = await authorize(db, user, "task", task_id, "task.move")
  t: TaskItem = access.resource
  target = await _validate_column(db, t.board_id, payload.columnId)

  from_column = t.column_id
  to_idx = payload.positionIndex

  # Reorder in memory, then write contiguous indices for every touched column.
  if from_column == target.id:
    res = await db.execute(select(TaskItem).where(TaskItem.column_id == from_column).order_by(TaskItem.position_index.asc()))
    arr = [x for x in res.scalars().all() if x.id != t.id]
    to_idx = min(to_idx, len(arr))
    arr.insert(to_idx, t)
    for idx, x in enumerate(arr):
      x.position_index = idx
  else:
    f_res = await db.execute(select(TaskItem).where(TaskItem.column_id == from_column).order_by(TaskItem.position_index.asc()))
    t_res = await db.execute(select(TaskItem).where(TaskItem.column_id == target.id).order_by(TaskItem.position_index.asc()))
    from_arr = [x for x in f_res.scalars().all() if x.id != t.id]
    to_arr = list(t_res.scalars().all())
    to_idx = min(to_idx, len(to_arr))
    to_arr.insert(to_idx, t)
    for idx, x in enumerate(from_arr):
      x.position_index = idx
    for idx, x in enumerate(to_arr):
      x.position_index = idx
    t.column_id = target.id
    if target.status_id:
      t.status_id = target.status_id
    write_history(db, task_id=t.id, user_id=user.id, action="Moved", field_name="column_id", old_value=from_column, new_value=target.id)

  await db.commit()
  hub.board_event(t.board_id, "TaskMoved", taskId=t.id, fromColumnId=from_column, toColumnId=target.id, positionIndex=t.position_index)
  return await _one_out(db, t)


@router.post("/tasks/{task_id}/assign", response_model=TaskOut)
async def assign_task(task_id: str, payload: TaskAssignIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  access = await authorize(db, user, "task", task_id, "task.assign")
  t: TaskItem = access.resource
  await _validate_assignee(db, t.board_id, payload.assigneeId)
  previous = t.assignee_id
  t.assignee_id = payload.assigneeId
  if previous != t.assignee_id:
    write_history(db, task_id=t.id, user_id=user.id, action="Assigned", field_name="assignee_id", old_value=previous, new_value=t.assignee_id)
  await db.commit()
  hub.board_event(t.board_id, "TaskAssigned", taskId=t.id, assigneeId=t.assignee_id)
  return await _one_out(db, t)


async def _set_archived(task_id: str, archived: bool, user: User, db: AsyncSession) -> TaskOut:
  access = await authorize(db, user, "task", task_id, "task.archive")
  t: TaskItem = access.resource
  if t.is_archived != archived:
    t.is_archived = archived
    write_history(db, task_id=t.id, user_id=user.id, action="Archived" if archived else "Unarchived")
  await db.commit()
  hub.board_event(t.board_id, "TaskArchived" if archived else "TaskUnarchived", taskId=t.id)
  return await _one_out(db, t)


@router.post("/tasks/{task_id}/archive", response_model=TaskOut)
async def archive_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  return await _set_archived(task_id, True, user, db)


@router.post("/tasks/{task_id}/unarchive", response_model=TaskOut)
async def unarchive_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  return await _set_archived(task_id, False, user, db)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize(db, user, "task", task_id, "task.delete")
  t: TaskItem = access.resource
  board_id = t.board_id
  write_history(db, task_id=t.id, user_id=user.id, action="Deleted", old_value=t.title)
  await db.delete(t)
  await db.commit()
  hub.board_event(board_id, "TaskDeleted", taskId=task_id)
  logger.info("User %s deleted task %s on board %s", user.id, task_id, board_id)
  return {"ok": True}


@router.get("/tasks/{task_id}/history", response_model=list[HistoryOut])
async def task_history(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[HistoryOut]:
  await authorize(db, user, "task", task_id, "task.read")
  res = await db.execute(
    select(TaskHistory, User.user_name)
    .outerjoin(User, User.id == TaskHistory.user_id)
    .where(TaskHistory.task_id == task_id)
    .order_by(TaskHistory.created_at.desc())
  )
  return [
    HistoryOut(
      id=h.id,
      taskId=h.task_id,
      userId=h.user_id,
      userName=name,
      action=h.action,
      fieldName=h.field_name,
      oldValue=h.old_value,
      newValue=h.new_value,
      createdAt=h.created_at,
    )
    for h, name in res.all()
  ]
