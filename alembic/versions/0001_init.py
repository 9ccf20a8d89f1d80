"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
  return [
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("created_by", sa.String(64), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("updated_by", sa.String(64), nullable=True),
  ]


def _tombstone_column() -> sa.Column:
  return sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("email", sa.String(320), nullable=False),
    sa.Column("user_name", sa.String(64), nullable=False),
    sa.Column("first_name", sa.String(100), nullable=False),
    sa.Column("last_name", sa.String(100), nullable=False),
    sa.Column("avatar_url", sa.String(), nullable=True),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("role", sa.String(20), nullable=False),
    sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)
  op.create_index("ix_users_user_name", "users", ["user_name"], unique=True)

  op.create_table(
    "sessions",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("token_hash", sa.String(64), nullable=False),
    sa.Column("refresh_token_hash", sa.String(64), nullable=False),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("refresh_expires_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_sessions_user_id", "sessions", ["user_id"], unique=False)
  op.create_index("ix_sessions_token_hash", "sessions", ["token_hash"], unique=True)
  op.create_index("ix_sessions_refresh_token_hash", "sessions", ["refresh_token_hash"], unique=True)

  op.create_table(
    "statuses",
    *_audit_columns(),
    sa.Column("name", sa.String(50), nullable=False),
    sa.Column("color", sa.String(20), nullable=True),
    sa.Column("category", sa.String(20), nullable=False),
    sa.Column("is_global", sa.Boolean(), nullable=False),
  )

  op.create_table(
    "task_types",
    *_audit_columns(),
    sa.Column("name", sa.String(50), nullable=False),
    sa.Column("icon", sa.String(50), nullable=True),
    sa.Column("color", sa.String(20), nullable=True),
  )

  op.create_table(
    "boards",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("description", sa.String(500), nullable=True),
    sa.Column("background_color", sa.String(20), nullable=True),
    sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
  )
  op.create_index("ix_boards_deleted_at", "boards", ["deleted_at"], unique=False)

  op.create_table(
    "board_members",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("board_id", sa.String(36), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("role", sa.String(20), nullable=False),
    sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ux_board_member_board_user", "board_members", ["board_id", "user_id"], unique=True)
  op.create_index("ix_board_members_user_id", "board_members", ["user_id"], unique=False)
  op.create_index("ix_board_members_deleted_at", "board_members", ["deleted_at"], unique=False)

  op.create_table(
    "board_columns",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("board_id", sa.String(36), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("name", sa.String(50), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("status_id", sa.String(36), sa.ForeignKey("statuses.id"), nullable=True),
    sa.Column("wip_limit", sa.Integer(), nullable=True),
  )
  op.create_index("ix_board_columns_board_id", "board_columns", ["board_id"], unique=False)
  op.create_index("ix_board_columns_deleted_at", "board_columns", ["deleted_at"], unique=False)

  op.create_table(
    "sprints",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("board_id", sa.String(36), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("goal", sa.String(500), nullable=True),
    sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("status", sa.String(20), nullable=False),
  )
  op.create_index("ix_sprints_board_id", "sprints", ["board_id"], unique=False)
  op.create_index("ix_sprints_deleted_at", "sprints", ["deleted_at"], unique=False)

  op.create_table(
    "tasks",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("board_id", sa.String(36), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("column_id", sa.String(36), sa.ForeignKey("board_columns.id"), nullable=False),
    sa.Column("status_id", sa.String(36), sa.ForeignKey("statuses.id"), nullable=True),
    sa.Column("type_id", sa.String(36), sa.ForeignKey("task_types.id"), nullable=True),
    sa.Column("sprint_id", sa.String(36), sa.ForeignKey("sprints.id"), nullable=True),
    sa.Column("assignee_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("position_index", sa.Integer(), nullable=False),
    sa.Column("priority", sa.Integer(), nullable=False),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
  )
  op.create_index("ix_tasks_board_id", "tasks", ["board_id"], unique=False)
  op.create_index("ix_tasks_column_id", "tasks", ["column_id"], unique=False)
  op.create_index("ix_tasks_sprint_id", "tasks", ["sprint_id"], unique=False)
  op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"], unique=False)
  op.create_index("ix_tasks_deleted_at", "tasks", ["deleted_at"], unique=False)

  op.create_table(
    "labels",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("board_id", sa.String(36), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("name", sa.String(50), nullable=False),
    sa.Column("color", sa.String(20), nullable=False),
  )
  op.create_index("ix_labels_board_id", "labels", ["board_id"], unique=False)
  op.create_index("ix_labels_deleted_at", "labels", ["deleted_at"], unique=False)

  op.create_table(
    "task_labels",
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), primary_key=True),
    sa.Column("label_id", sa.String(36), sa.ForeignKey("labels.id"), primary_key=True),
  )

  op.create_table(
    "comments",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("parent_comment_id", sa.String(36), sa.ForeignKey("comments.id"), nullable=True),
  )
  op.create_index("ix_comments_task_id", "comments", ["task_id"], unique=False)
  op.create_index("ix_comments_deleted_at", "comments", ["deleted_at"], unique=False)

  op.create_table(
    "attachments",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("file_name", sa.String(255), nullable=False),
    sa.Column("file_path", sa.String(), nullable=False),
    sa.Column("content_type", sa.String(100), nullable=False),
    sa.Column("file_size", sa.Integer(), nullable=False),
  )
  op.create_index("ix_attachments_task_id", "attachments", ["task_id"], unique=False)
  op.create_index("ix_attachments_deleted_at", "attachments", ["deleted_at"], unique=False)

  op.create_table(
    "subtasks",
    *_audit_columns(),
    _tombstone_column(),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    sa.Column("position", sa.Integer(), nullable=False),
  )
  op.create_index("ix_subtasks_task_id", "subtasks", ["task_id"], unique=False)
  op.create_index("ix_subtasks_deleted_at", "subtasks", ["deleted_at"], unique=False)

  op.create_table(
    "task_watchers",
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), primary_key=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )

  op.create_table(
    "task_history",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("action", sa.String(50), nullable=False),
    sa.Column("field_name", sa.String(100), nullable=True),
    sa.Column("old_value", sa.Text(), nullable=True),
    sa.Column("new_value", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_task_history_task_id", "task_history", ["task_id"], unique=False)
  op.create_index("ix_task_history_created_at", "task_history", ["created_at"], unique=False)


def downgrade() -> None:
  op.drop_table("task_history")
  op.drop_table("task_watchers")
  op.drop_table("subtasks")
  op.drop_table("attachments")
  op.drop_table("comments")
  op.drop_table("task_labels")
  op.drop_table("labels")
  op.drop_table("tasks")
  op.drop_table("sprints")
  op.drop_table("board_columns")
  op.drop_table("board_members")
  op.drop_table("boards")
  op.drop_table("task_types")
  op.drop_table("statuses")
  op.drop_table("sessions")
  op.drop_table("users")
