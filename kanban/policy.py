from __future__ import annotations

from dataclasses import dataclass

VIEWER = "viewer"
MEMBER = "member"
ADMIN = "admin"

# role order: viewer < member < admin
_RANK = {VIEWER: 0, MEMBER: 1, ADMIN: 2}


@dataclass(frozen=True)
class Rule:
  min_role: str | None
  owner_override: bool = False
  denied_message: str = "You do not have permission to perform this action"


RULES: dict[str, Rule] = {
  "board.read": Rule(VIEWER),
  "board.update": Rule(ADMIN, denied_message="Only board admins can update the board"),
  "board.archive": Rule(ADMIN, denied_message="Only board admins can archive the board"),
  "board.delete": Rule(ADMIN, denied_message="Only board admins can delete the board"),
  "member.add": Rule(ADMIN, denied_message="Only board admins can add members"),
  "member.update_role": Rule(ADMIN, denied_message="Only board admins can change member roles"),
  "member.remove": Rule(ADMIN, owner_override=True, denied_message="Only board admins can remove other members"),
  "column.create": Rule(ADMIN, denied_message="Only board admins can create columns"),
  "column.update": Rule(ADMIN, denied_message="Only board admins can update columns"),
  "column.delete": Rule(ADMIN, denied_message="Only board admins can delete columns"),
  "column.reorder": Rule(MEMBER, denied_message="Viewers cannot reorder columns"),
  "task.read": Rule(VIEWER),
  "task.create": Rule(MEMBER, denied_message="Viewers cannot create tasks"),
  "task.update": Rule(MEMBER, denied_message="Viewers cannot update tasks"),
  "task.move": Rule(MEMBER, denied_message="Viewers cannot move tasks"),
  "task.assign": Rule(MEMBER, denied_message="Viewers cannot assign tasks"),
  "task.archive": Rule(MEMBER, denied_message="Viewers cannot archive tasks"),
  "task.delete": Rule(MEMBER, denied_message="Viewers cannot delete tasks"),
  "sprint.create": Rule(ADMIN, denied_message="Only board admins can create sprints"),
  "sprint.update": Rule(ADMIN, denied_message="Only board admins can update sprints"),
  "sprint.start": Rule(ADMIN, denied_message="Only board admins can start sprints"),
  "sprint.complete": Rule(ADMIN, denied_message="Only board admins can complete sprints"),
  "sprint.delete": Rule(ADMIN, denied_message="Only board admins can delete sprints"),
  "label.create": Rule(ADMIN, denied_message="Only board admins can create labels"),
  "label.update": Rule(ADMIN, denied_message="Only board admins can update labels"),
  "label.delete": Rule(ADMIN, denied_message="Only board admins can delete labels"),
  "label.attach": Rule(MEMBER, denied_message="Viewers cannot add labels to tasks"),
  "label.detach": Rule(MEMBER, denied_message="Viewers cannot remove labels from tasks"),
  "comment.create": Rule(VIEWER),
  # Only the author may edit, whatever their role.
  "comment.update": Rule(None, owner_override=True, denied_message="You can only update your own comments"),
  "comment.delete": Rule(ADMIN, owner_override=True, denied_message="You can only delete your own comments"),
  "watcher.toggle": Rule(VIEWER),
  "subtask.create": Rule(MEMBER, denied_message="Viewers cannot create subtasks"),
  "subtask.update": Rule(MEMBER, denied_message="Viewers cannot update subtasks"),
  "subtask.delete": Rule(MEMBER, denied_message="Viewers cannot delete subtasks"),
  "attachment.upload": Rule(MEMBER, denied_message="Viewers cannot upload attachments"),
  "attachment.download": Rule(VIEWER),
  "attachment.delete": Rule(ADMIN, owner_override=True, denied_message="You can only delete your own attachments"),
}


def role_rank(role: str | None) -> int:
  return _RANK.get(role or "", -1)


def rule_for(operation: str) -> Rule:
  try:
    return RULES[operation]
  except KeyError:
    raise ValueError(f"Unknown operation: {operation}") from None


def decide(role: str | None, operation: str, *, is_owner: bool = False) -> bool:
  rule = rule_for(operation)
  if is_owner and rule.owner_override:
    return True
  if rule.min_role is None:
    return False
  return role_rank(role) >= role_rank(rule.min_role)
