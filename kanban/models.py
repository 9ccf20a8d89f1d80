from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
  # SQLite hands back naive datetimes even for timezone-aware columns.
  if dt is None:
    return None
  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def new_id() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class AuditMixin:
  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
  updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


class SoftDeleteMixin:
  deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
  user_name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
  first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
  last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
  avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
  password_hash: Mapped[str] = mapped_column(String, nullable=False)
  role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
  last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  # Set while the account is disabled.
  deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

  @property
  def full_name(self) -> str:
    return f"{self.first_name} {self.last_name}".strip() or self.user_name


class Session(Base):
  __tablename__ = "sessions"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
  refresh_token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
  created_ip: Mapped[str | None] = mapped_column(String, nullable=True)
  user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  refresh_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Status(AuditMixin, Base):
  __tablename__ = "statuses"

  name: Mapped[str] = mapped_column(String(50), nullable=False)
  color: Mapped[str | None] = mapped_column(String(20), nullable=True)
  category: Mapped[str] = mapped_column(String(20), nullable=False)
  is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TaskType(AuditMixin, Base):
  __tablename__ = "task_types"

  name: Mapped[str] = mapped_column(String(50), nullable=False)
  icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
  color: Mapped[str | None] = mapped_column(String(20), nullable=True)


class Board(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "boards"

  name: Mapped[str] = mapped_column(String(100), nullable=False)
  description: Mapped[str | None] = mapped_column(String(500), nullable=True)
  background_color: Mapped[str | None] = mapped_column(String(20), nullable=True)
  is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class BoardMember(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "board_members"
  __table_args__ = (UniqueConstraint("board_id", "user_id", name="ux_board_member_board_user"),)

  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  role: Mapped[str] = mapped_column(String(20), nullable=False)
  joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class BoardColumn(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "board_columns"

  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String(50), nullable=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  status_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("statuses.id"), nullable=True)
  wip_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Sprint(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "sprints"

  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String(100), nullable=False)
  goal: Mapped[str | None] = mapped_column(String(500), nullable=True)
  start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  status: Mapped[str] = mapped_column(String(20), nullable=False, default="planned")


class TaskItem(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "tasks"

  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  column_id: Mapped[str] = mapped_column(String(36), ForeignKey("board_columns.id"), nullable=False, index=True)
  status_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("statuses.id"), nullable=True)
  type_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("task_types.id"), nullable=True)
  sprint_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("sprints.id"), nullable=True, index=True)
  assignee_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)
  title: Mapped[str] = mapped_column(String(200), nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  position_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
  due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Label(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "labels"

  board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String(50), nullable=False)
  color: Mapped[str] = mapped_column(String(20), nullable=False)


class TaskLabel(Base):
  __tablename__ = "task_labels"

  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), primary_key=True)
  label_id: Mapped[str] = mapped_column(String(36), ForeignKey("labels.id"), primary_key=True)


class Comment(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "comments"

  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  parent_comment_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("comments.id"), nullable=True)


class Attachment(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "attachments"

  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  file_name: Mapped[str] = mapped_column(String(255), nullable=False)
  file_path: Mapped[str] = mapped_column(String, nullable=False)
  content_type: Mapped[str] = mapped_column(String(100), nullable=False)
  file_size: Mapped[int] = mapped_column(Integer, nullable=False)


class SubTask(AuditMixin, SoftDeleteMixin, Base):
  __tablename__ = "subtasks"

  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String(200), nullable=False)
  is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TaskWatcher(Base):
  __tablename__ = "task_watchers"

  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), primary_key=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class TaskHistory(Base):
  __tablename__ = "task_history"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
  action: Mapped[str] = mapped_column(String(50), nullable=False)
  field_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
  old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
  new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
