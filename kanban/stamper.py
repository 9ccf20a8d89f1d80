"""Audit stamping and soft-delete handling for every unit of work.

Both rules hang off ``KanbanSession``, the sync session class behind
``kanban.db.SessionLocal``:

- ``before_flush`` stamps ``created_*`` on new rows and ``updated_*`` on
  changed rows, keeps ``created_*`` immutable, and turns ``session.delete()``
  of a soft-deletable row into a tombstone (``deleted_at``) update.
- ``do_orm_execute`` adds ``deleted_at IS NULL`` for every soft-deletable
  entity in every ORM SELECT. Pass ``execution_options(include_deleted=True)``
  to see tombstoned rows.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from kanban.models import AuditMixin, SoftDeleteMixin, utcnow

logger = logging.getLogger("kanban.stamper")

SYSTEM_ACTOR = "System"
ACTOR_KEY = "actor_id"
INCLUDE_DELETED = "include_deleted"


class KanbanSession(Session):
  pass


def set_actor(session: Any, actor_id: str | None) -> None:
  # Accepts both AsyncSession and Session; both expose the same info dict.
  session.info[ACTOR_KEY] = actor_id


def current_actor(session: Session) -> str:
  return session.info.get(ACTOR_KEY) or SYSTEM_ACTOR


def _keep_created_stamp(obj: AuditMixin) -> None:
  state = inspect(obj)
  for key in ("created_at", "created_by"):
    hist = state.attrs[key].history
    if hist.added and hist.deleted:
      setattr(obj, key, hist.deleted[0])


@event.listens_for(KanbanSession, "before_flush")
def _stamp_unit_of_work(session: Session, flush_context: Any, instances: Any) -> None:
  now = utcnow()
  actor = current_actor(session)

  for obj in session.new:
    if isinstance(obj, AuditMixin):
      obj.created_at = now
      obj.created_by = actor

  for obj in session.dirty:
    if isinstance(obj, AuditMixin) and session.is_modified(obj, include_collections=False):
      _keep_created_stamp(obj)
      obj.updated_at = now
      obj.updated_by = actor

  for obj in list(session.deleted):
    if not isinstance(obj, SoftDeleteMixin):
      continue
    # Re-adding a pending delete cancels it; the row is updated instead.
    session.add(obj)
    obj.deleted_at = now
    obj.updated_at = now
    obj.updated_by = actor
    logger.debug("Tombstoned %s %s by %s", type(obj).__name__, obj.id, actor)


@event.listens_for(KanbanSession, "do_orm_execute")
def _exclude_tombstones(state: ORMExecuteState) -> None:
  if not state.is_select or state.is_column_load or state.is_relationship_load:
    return
  if state.execution_options.get(INCLUDE_DELETED, False):
    return
  state.statement = state.statement.options(
    with_loader_criteria(SoftDeleteMixin, lambda cls: cls.deleted_at.is_(None), include_aliases=True)
  )
