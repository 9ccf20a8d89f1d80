from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from kanban.config import settings
from kanban.stamper import KanbanSession

engine = create_async_engine(settings.database_url, echo=settings.sql_echo, pool_pre_ping=True)

# Every unit of work goes through KanbanSession so stamping and tombstone filtering always apply.
SessionLocal = async_sessionmaker(
  engine,
  class_=AsyncSession,
  sync_session_class=KanbanSession,
  expire_on_commit=False,
)
