from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
_USER_NAME = r"^[a-zA-Z0-9_-]+$"

BoardRole = Literal["viewer", "member", "admin"]
SystemRole = Literal["superuser", "user"]


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


# Users / auth


class UserOut(BaseModel):
  id: str
  email: str
  userName: str
  firstName: str
  lastName: str
  fullName: str
  avatarUrl: str | None = None
  role: SystemRole
  isDisabled: bool = False
  lastLoginAt: datetime | None = None
  createdAt: datetime | None = None


class RegisterIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  userName: str = Field(min_length=3, max_length=64, pattern=_USER_NAME)
  password: str = Field(min_length=8, max_length=128)
  firstName: str = Field(default="", max_length=100)
  lastName: str = Field(default="", max_length=100)

  @field_validator("email")
  @classmethod
  def _email_shape(cls, v: str) -> str:
    s = v.strip().lower()
    if "@" not in s or s.startswith("@") or s.endswith("@"):
      raise ValueError("must be a valid email address")
    return s


class LoginIn(BaseModel):
  email: str | None = None
  userName: str | None = None
  password: str = Field(min_length=1, max_length=128)

  @model_validator(mode="after")
  def _identity_required(self) -> "LoginIn":
    if not (self.email or self.userName):
      raise ValueError("email or userName is required")
    return self


class RefreshIn(BaseModel):
  refreshToken: str = Field(min_length=1)


class TokenOut(BaseModel):
  accessToken: str
  refreshToken: str
  expiresAt: datetime
  user: UserOut


class ProfileUpdateIn(BaseModel):
  firstName: str | None = Field(default=None, max_length=100)
  lastName: str | None = Field(default=None, max_length=100)
  email: str | None = Field(default=None, min_length=3, max_length=320)
  avatarUrl: str | None = Field(default=None, max_length=500)


class UserCreateIn(RegisterIn):
  role: SystemRole = "user"


class UserAdminUpdateIn(BaseModel):
  firstName: str | None = Field(default=None, max_length=100)
  lastName: str | None = Field(default=None, max_length=100)
  email: str | None = Field(default=None, min_length=3, max_length=320)
  role: SystemRole | None = None


class UserPageOut(BaseModel):
  items: list[UserOut]
  page: int
  pageSize: int
  totalCount: int
  totalPages: int


# Reference data


class StatusOut(BaseModel):
  id: str
  name: str
  color: str | None = None
  category: str
  isGlobal: bool = True


class TaskTypeOut(BaseModel):
  id: str
  name: str
  icon: str | None = None
  color: str | None = None


# Boards, members, columns


class BoardIn(BaseModel):
  name: str = Field(min_length=1, max_length=100)
  description: str | None = Field(default=None, max_length=500)
  backgroundColor: str | None = Field(default=None, pattern=_HEX_COLOR)


class BoardOut(BaseModel):
  id: str
  name: str
  description: str | None = None
  backgroundColor: str | None = None
  isArchived: bool = False
  myRole: BoardRole | None = None
  createdAt: datetime
  createdBy: str | None = None
  updatedAt: datetime | None = None
  updatedBy: str | None = None


class MemberOut(BaseModel):
  id: str
  boardId: str
  userId: str
  userName: str
  email: str
  fullName: str
  role: BoardRole
  joinedAt: datetime


class MemberAddIn(BaseModel):
  userId: str | None = None
  userName: str | None = None
  email: str | None = None
  role: BoardRole = "member"

  @model_validator(mode="after")
  def _identity_required(self) -> "MemberAddIn":
    if not (self.userId or self.userName or self.email):
      raise ValueError("userId, userName or email is required")
    return self


class MemberRoleIn(BaseModel):
  role: BoardRole


class ColumnOut(BaseModel):
  id: str
  boardId: str
  name: str
  position: int
  statusId: str | None = None
  wipLimit: int | None = None
  taskCount: int = 0


class ColumnIn(BaseModel):
  name: str = Field(min_length=1, max_length=50)
  wipLimit: int | None = Field(default=None, gt=0)
  statusId: str | None = None


class ColumnOrderItem(BaseModel):
  columnId: str
  position: int = Field(ge=0)


class ColumnReorderIn(BaseModel):
  columns: list[ColumnOrderItem] = Field(min_length=1)


class BoardDetailOut(BoardOut):
  columns: list[ColumnOut] = []
  members: list[MemberOut] = []


# Labels


class LabelIn(BaseModel):
  name: str = Field(min_length=1, max_length=50)
  color: str = Field(pattern=_HEX_COLOR)


class LabelOut(BaseModel):
  id: str
  boardId: str
  name: str
  color: str


# Tasks


class TaskCreateIn(BaseModel):
  columnId: str
  title: str = Field(min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=5000)
  statusId: str | None = None
  typeId: str | None = None
  sprintId: str | None = None
  assigneeId: str | None = None
  priority: int = Field(default=1, ge=0, le=3)
  dueDate: datetime | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskUpdateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=5000)
  statusId: str | None = None
  typeId: str | None = None
  sprintId: str | None = None
  assigneeId: str | None = None
  priority: int = Field(default=1, ge=0, le=3)
  dueDate: datetime | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskMoveIn(BaseModel):
  columnId: str
  positionIndex: int = Field(ge=0)


class TaskAssignIn(BaseModel):
  assigneeId: str | None = None


class TaskOut(BaseModel):
  id: str
  boardId: str
  columnId: str
  statusId: str | None = None
  typeId: str | None = None
  sprintId: str | None = None
  assigneeId: str | None = None
  title: str
  description: str | None = None
  positionIndex: int
  priority: int
  dueDate: datetime | None = None
  isArchived: bool = False
  isOverdue: bool = False
  labels: list[LabelOut] = []
  subTaskCount: int = 0
  completedSubTaskCount: int = 0
  createdAt: datetime
  createdBy: str | None = None
  updatedAt: datetime | None = None
  updatedBy: str | None = None


class WatcherOut(BaseModel):
  userId: str
  userName: str
  fullName: str
  createdAt: datetime


class TaskDetailOut(TaskOut):
  watchers: list[WatcherOut] = []
  commentCount: int = 0
  attachmentCount: int = 0


class MyTaskOut(TaskOut):
  boardName: str


class HistoryOut(BaseModel):
  id: str
  taskId: str
  userId: str
  userName: str | None = None
  action: str
  fieldName: str | None = None
  oldValue: str | None = None
  newValue: str | None = None
  createdAt: datetime


class ActivityOut(HistoryOut):
  taskTitle: str
  boardId: str
  boardName: str


# Sprints


class SprintIn(BaseModel):
  name: str = Field(min_length=1, max_length=100)
  goal: str | None = Field(default=None, max_length=500)
  startDate: datetime
  endDate: datetime

  @field_validator("startDate", "endDate", mode="before")
  @classmethod
  def _dates_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)

  @model_validator(mode="after")
  def _end_after_start(self) -> "SprintIn":
    if self.endDate <= self.startDate:
      raise ValueError("endDate must be after startDate")
    return self


class SprintOut(BaseModel):
  id: str
  boardId: str
  name: str
  goal: str | None = None
  startDate: datetime
  endDate: datetime
  status: Literal["planned", "active", "completed"]
  taskCount: int = 0


# Comments, watchers, subtasks, attachments


class CommentIn(BaseModel):
  content: str = Field(min_length=1, max_length=2000)
  parentCommentId: str | None = None


class CommentUpdateIn(BaseModel):
  content: str = Field(min_length=1, max_length=2000)


class CommentOut(BaseModel):
  id: str
  taskId: str
  userId: str
  authorName: str
  content: str
  parentCommentId: str | None = None
  isEdited: bool = False
  createdAt: datetime
  updatedAt: datetime | None = None


class WatchStateOut(BaseModel):
  ok: bool = True
  watching: bool


class SubTaskCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)


class SubTaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  isCompleted: bool | None = None


class SubTaskOut(BaseModel):
  id: str
  taskId: str
  title: str
  isCompleted: bool
  position: int


class AttachmentOut(BaseModel):
  id: str
  taskId: str
  fileName: str
  contentType: str
  fileSize: int
  uploadedBy: str | None = None
  url: str
  createdAt: datetime
