from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.models import Board, BoardColumn, BoardMember, Label, SubTask, TaskItem, TaskLabel, User, as_utc
from kanban.schemas import BoardOut, ColumnOut, LabelOut, MemberOut, TaskOut


def board_out(b: Board, role: str | None = None) -> BoardOut:
  return BoardOut(
    id=b.id,
    name=b.name,
    description=b.description,
    backgroundColor=b.background_color,
    isArchived=b.is_archived,
    myRole=role,
    createdAt=b.created_at,
    createdBy=b.created_by,
    updatedAt=b.updated_at,
    updatedBy=b.updated_by,
  )


def member_out(m: BoardMember, u: User) -> MemberOut:
  return MemberOut(
    id=m.id,
    boardId=m.board_id,
    userId=m.user_id,
    userName=u.user_name,
    email=u.email,
    fullName=u.full_name,
    role=m.role,
    joinedAt=m.joined_at,
  )


def label_out(lb: Label) -> LabelOut:
  return LabelOut(id=lb.id, boardId=lb.board_id, name=lb.name, color=lb.color)


def column_out(c: BoardColumn, task_count: int = 0) -> ColumnOut:
  return ColumnOut(
    id=c.id,
    boardId=c.board_id,
    name=c.name,
    position=c.position,
    statusId=c.status_id,
    wipLimit=c.wip_limit,
    taskCount=task_count,
  )


async def board_members(db: AsyncSession, board_id: str) -> list[MemberOut]:
  res = await db.execute(
    select(BoardMember, User)
    .join(User, User.id == BoardMember.user_id)
    .where(BoardMember.board_id == board_id)
    .order_by(BoardMember.joined_at.asc())
  )
  return [member_out(m, u) for m, u in res.all()]


async def board_columns(db: AsyncSession, board_id: str) -> list[ColumnOut]:
  cres = await db.execute(select(BoardColumn).where(BoardColumn.board_id == board_id).order_by(BoardColumn.position.asc()))
  counts_res = await db.execute(
    select(TaskItem.column_id, func.count(TaskItem.id))
    .where(TaskItem.board_id == board_id, TaskItem.is_archived.is_(False))
    .group_by(TaskItem.column_id)
  )
  counts = {cid: int(n) for cid, n in counts_res.all()}
  return [column_out(c, counts.get(c.id, 0)) for c in cres.scalars().all()]


def is_overdue(t: TaskItem, now: datetime | None = None) -> bool:
  due = as_utc(t.due_date)
  return due is not None and due < (now or datetime.now(timezone.utc))


def task_out(t: TaskItem, *, labels: list[LabelOut] | None = None, subtasks: tuple[int, int] = (0, 0)) -> TaskOut:
  return TaskOut(
    id=t.id,
    boardId=t.board_id,
    columnId=t.column_id,
    statusId=t.status_id,
    typeId=t.type_id,
    sprintId=t.sprint_id,
    assigneeId=t.assignee_id,
    title=t.title,
    description=t.description,
    positionIndex=t.position_index,
    priority=t.priority,
    dueDate=as_utc(t.due_date),
    isArchived=t.is_archived,
    isOverdue=is_overdue(t),
    labels=labels or [],
    subTaskCount=subtasks[0],
    completedSubTaskCount=subtasks[1],
    createdAt=as_utc(t.created_at),
    createdBy=t.created_by,
    updatedAt=as_utc(t.updated_at),
    updatedBy=t.updated_by,
  )


async def tasks_out(db: AsyncSession, tasks: list[TaskItem]) -> list[TaskOut]:
  if not tasks:
    return []
  ids = [t.id for t in tasks]
  lres = await db.execute(
    select(TaskLabel.task_id, Label).join(Label, Label.id == TaskLabel.label_id).where(TaskLabel.task_id.in_(ids))
  )
  labels: dict[str, list[LabelOut]] = defaultdict(list)
  for task_id, lb in lres.all():
    labels[task_id].append(label_out(lb))

  sres = await db.execute(select(SubTask.task_id, SubTask.is_completed).where(SubTask.task_id.in_(ids)))
  totals: dict[str, list[int]] = defaultdict(lambda: [0, 0])
  for task_id, done in sres.all():
    totals[task_id][0] += 1
    if done:
      totals[task_id][1] += 1

  return [task_out(t, labels=labels.get(t.id, []), subtasks=tuple(totals.get(t.id, (0, 0)))) for t in tasks]
