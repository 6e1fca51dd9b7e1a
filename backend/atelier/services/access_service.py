# Overview: Role groups and the task-level self-or-admin rule.

"""
Access rules for the back office.

Two separate checks:
1. Order-level (coarse): is the caller's role allowed on this endpoint at all?
   Enforced by decorators.require_role using the groups below.
2. Task-level (fine): may this caller change this specific production task?
   STAFF may only touch tasks assigned to them; ADMIN and SUPER_ADMIN may
   touch any task. An unassigned task belongs to no STAFF member.
"""

from __future__ import annotations

from ..models.auth import ROLE_ADMIN, ROLE_STAFF, ROLE_SUPER_ADMIN


STAFF_ROLES = (ROLE_STAFF, ROLE_ADMIN, ROLE_SUPER_ADMIN)
ADMIN_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)


def is_admin(user) -> bool:
    return user is not None and user.role in ADMIN_ROLES


def is_staff(user) -> bool:
    return user is not None and user.role in STAFF_ROLES


def can_update_task(user, task) -> bool:
    if is_admin(user):
        return True
    if not is_staff(user):
        return False
    return task.assigned_to_id is not None and task.assigned_to_id == user.id
