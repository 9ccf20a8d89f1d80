from __future__ import annotations

import pytest

from kanban.policy import ADMIN, MEMBER, RULES, VIEWER, decide, role_rank, rule_for


def test_roles_are_ordered() -> None:
  assert role_rank(VIEWER) < role_rank(MEMBER) < role_rank(ADMIN)
  assert role_rank(None) < role_rank(VIEWER)


@pytest.mark.parametrize(
  "role,operation,allowed",
  [
    (VIEWER, "board.read", True),
    (VIEWER, "task.create", False),
    (MEMBER, "task.create", True),
    (MEMBER, "task.move", True),
    (MEMBER, "column.create", False),
    (ADMIN, "column.delete", True),
    (MEMBER, "column.reorder", True),
    (VIEWER, "column.reorder", False),
    (MEMBER, "sprint.start", False),
    (ADMIN, "sprint.complete", True),
    (VIEWER, "label.delete", False),
    (MEMBER, "label.attach", True),
    (VIEWER, "comment.create", True),
    (VIEWER, "watcher.toggle", True),
    (VIEWER, "attachment.upload", False),
    (VIEWER, "attachment.download", True),
  ],
)
def test_role_thresholds(role: str, operation: str, allowed: bool) -> None:
  assert decide(role, operation) is allowed


def test_comment_update_is_author_only() -> None:
  assert decide(ADMIN, "comment.update") is False
  assert decide(VIEWER, "comment.update", is_owner=True) is True


def test_comment_and_attachment_delete_allow_owner_or_admin() -> None:
  for op in ("comment.delete", "attachment.delete"):
    assert decide(ADMIN, op) is True
    assert decide(MEMBER, op) is False
    assert decide(MEMBER, op, is_owner=True) is True


def test_member_removal_allows_self() -> None:
  assert decide(MEMBER, "member.remove") is False
  assert decide(MEMBER, "member.remove", is_owner=True) is True


def test_owner_flag_does_not_widen_plain_rules() -> None:
  assert decide(VIEWER, "task.delete", is_owner=True) is False


def test_non_member_is_denied_everything() -> None:
  assert not any(decide(None, op) for op in RULES)


def test_unknown_operation_raises() -> None:
  with pytest.raises(ValueError):
    rule_for("board.explode")
