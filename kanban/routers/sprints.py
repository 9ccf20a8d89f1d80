from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize, authorize_board
from kanban.deps import get_current_user, get_db
from kanban.errors import BadRequestError
from kanban.models import Sprint, TaskItem, User
from kanban.notifier import hub
from kanban.schemas import SprintIn, SprintOut

router = APIRouter(tags=["sprints"])
logger = logging.getLogger("kanban.sprints")

PLANNED = "planned"
ACTIVE = "active"
COMPLETED = "completed"


def sprint_out(s: Sprint, task_count: int = 0) -> SprintOut:
  return SprintOut(
    id=s.id,
    boardId=s.board_id,
    name=s.name,
    goal=s.goal,
    startDate=s.start_date,
    endDate=s.end_date,
    status=s.status,
    taskCount=task_count,
  )


async def _task_count(db: AsyncSession, sprint_id: str) -> int:
  res = await db.execute(select(func.count(TaskItem.id)).where(TaskItem.sprint_id == sprint_id))
  return int(res.scalar_one())


@router.get("/boards/{board_id}/sprints", response_model=list[SprintOut])
async def list_sprints(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[SprintOut]:
  await authorize_board(db, user, board_id, "board.read")
  res = await db.execute(select(Sprint).where(Sprint.board_id == board_id).order_by(Sprint.start_date.asc()))
  sprints = list(res.scalars().all())
  cres = await db.execute(
    select(TaskItem.sprint_id, func.count(TaskItem.id))
    .where(TaskItem.board_id == board_id, TaskItem.sprint_id.is_not(None))
    .group_by(TaskItem.sprint_id)
  )
  counts = {sid: int(n) for sid, n in cres.all()}
  return [sprint_out(s, counts.get(s.id, 0)) for s in sprints]


@router.get("/sprints/{sprint_id}", response_model=SprintOut)
async def get_sprint(sprint_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SprintOut:
  access = await authorize(db, user, "sprint", sprint_id, "board.read")
  return sprint_out(access.resource, await _task_count(db, sprint_id))


@router.post("/boards/{board_id}/sprints", response_model=SprintOut)
async def create_sprint(
  board_id: str,
  payload: SprintIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SprintOut:
  await authorize_board(db, user, board_id, "sprint.create")
  s = Sprint(
    board_id=board_id,
    name=payload.name.strip(),
    goal=payload.goal,
    start_date=payload.startDate,
    end_date=payload.endDate,
    status=PLANNED,
  )
  db.add(s)
  await db.commit()
  logger.info("User %s created sprint %s on board %s", user.id, s.id, board_id)
  return sprint_out(s)


@router.put("/sprints/{sprint_id}", response_model=SprintOut)
async def update_sprint(
  sprint_id: str,
  payload: SprintIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SprintOut:
  access = await authorize(db, user, "sprint", sprint_id, "sprint.update")
  s: Sprint = access.resource
  s.name = payload.name.strip()
  s.goal = payload.goal
  s.start_date = payload.startDate
  s.end_date = payload.endDate
  await db.commit()
  return sprint_out(s, await _task_count(db, s.id))


@router.post("/sprints/{sprint_id}/start", response_model=SprintOut)
async def start_sprint(sprint_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SprintOut:
  access = await authorize(db, user, "sprint", sprint_id, "sprint.start")
  s: Sprint = access.resource
  if s.status != PLANNED:
    raise BadRequestError("Only planned sprints can be started")
  res = await db.execute(
    select(func.count(Sprint.id)).where(Sprint.board_id == s.board_id, Sprint.status == ACTIVE, Sprint.id != s.id)
  )
  if int(res.scalar_one()) > 0:
    raise BadRequestError("Another sprint is already active on this board")
  s.status = ACTIVE
  await db.commit()
  hub.board_event(s.board_id, "SprintStarted", sprintId=s.id)
  logger.info("User %s started sprint %s", user.id, s.id)
  return sprint_out(s, await _task_count(db, s.id))


@router.post("/sprints/{sprint_id}/complete", response_model=SprintOut)
async def complete_sprint(sprint_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SprintOut:
  access = await authorize(db, user, "sprint", sprint_id, "sprint.complete")
  s: Sprint = access.resource
  if s.status != ACTIVE:
    raise BadRequestError("Only active sprints can be completed")
  s.status = COMPLETED
  await db.commit()
  hub.board_event(s.board_id, "SprintCompleted", sprintId=s.id)
  logger.info("User %s completed sprint %s", user.id, s.id)
  return sprint_out(s, await _task_count(db, s.id))


@router.delete("/sprints/{sprint_id}")
async def delete_sprint(sprint_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  access = await authorize(db, user, "sprint", sprint_id, "sprint.delete")
  s: Sprint = access.resource
  # Detach through loaded rows so each task is stamped by the flush.
  res = await db.execute(select(TaskItem).where(TaskItem.sprint_id == s.id))
  for t in res.scalars().all():
    t.sprint_id = None
  await db.delete(s)
  await db.commit()
  logger.info("User %s deleted sprint %s", user.id, sprint_id)
  return {"ok": True}
