from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize, authorize_board
from kanban.deps import get_current_user, get_db
from kanban.errors import BadRequestError, NotFoundError
from kanban.models import Label, TaskItem, TaskLabel, User
from kanban.notifier import hub
from kanban.schemas import LabelIn, LabelOut, TaskOut
from kanban.views import label_out, tasks_out

router = APIRouter(tags=["labels"])
logger = logging.getLogger("kanban.labels")


@router.get("/boards/{board_id}/labels", response_model=list[LabelOut])
async def list_labels(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[LabelOut]:
  await authorize_board(db, user, board_id, "board.read")
  res = await db.execute(select(Label).where(Label.board_id == board_id).order_by(Label.name.asc()))
  return [label_out(lb) for lb in res.scalars().all()]


@router.post("/boards/{board_id}/labels", response_model=LabelOut)
async def create_label(
  board_id: str,
  payload: LabelIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> LabelOut:
  await authorize_board(db, user, board_id, "label.create")
  lb = Label(board_id=board_id, name=payload.name.strip(), color=payload.color)
  db.add(lb)
  await db.commit()
  logger.info("User %s created label %s on board %s", user.id, lb.id, board_id)
  return label_out(lb)


@router.put("/labels/{label_id}", response_model=LabelOut)
async def update_label(
  label_id: str,
  payload: LabelIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> LabelOut:
  access = await authorize(db, user, "label", label_id, "label.update")
  lb: Label = access.resource
  lb.name = payload.name.strip()
  lb.color = payload.color
  await db.commit()
  return label_out(lb)


@router.delete("/labels/{label_id}")
async def delete_label(label_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize(db, user, "label", label_id, "label.delete")
  await db.execute(delete(TaskLabel).where(TaskLabel.label_id == label_id))
  await db.delete(access.resource)
  await db.commit()
  logger.info("User %s deleted label %s", user.id, label_id)
  return {"ok": True}


async def _task_label(db: AsyncSession, task_id: str, label_id: str) -> TaskLabel | None:
  res = await db.execute(select(TaskLabel).where(TaskLabel.task_id == task_id, TaskLabel.label_id == label_id))
  return res.scalar_one_or_none()


@router.post("/tasks/{task_id}/labels/{label_id}", response_model=TaskOut)
async def attach_label(task_id: str, label_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  access = await authorize(db, user, "task", task_id, "label.attach")
  t: TaskItem = access.resource
  res = await db.execute(select(Label).where(Label.id == label_id))
  lb = res.scalar_one_or_none()
  if lb is None:
    raise NotFoundError("Label", label_id)
  if lb.board_id != t.board_id:
    raise BadRequestError("Label does not belong to the task's board")
  if await _task_label(db, t.id, lb.id) is not None:
    raise BadRequestError("Label is already attached to this task")
  db.add(TaskLabel(task_id=t.id, label_id=lb.id))
  await db.commit()
  hub.board_event(t.board_id, "TaskUpdated", taskId=t.id)
  return (await tasks_out(db, [t]))[0]


@router.delete("/tasks/{task_id}/labels/{label_id}", response_model=TaskOut)
async def detach_label(task_id: str, label_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  access = await authorize(db, user, "task", task_id, "label.detach")
  t: TaskItem = access.resource
  link = await _task_label(db, t.id, label_id)
  if link is None:
    raise NotFoundError("TaskLabel", label_id)
  await db.delete(link)
  await db.commit()
  hub.board_event(t.board_id, "TaskUpdated", taskId=t.id)
  return (await tasks_out(db, [t]))[0]
