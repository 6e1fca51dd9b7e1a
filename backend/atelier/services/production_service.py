# Overview: Production tasks: creation, assignment, sub-status changes and the cross-order board.

"""
Production Task Service

RULES:
1. A task always starts NOT_STARTED with sort_order = max(existing) + 1 for
   its order; caller-sent status/sort_order are ignored. The parent order row
   is locked while the next sort_order is computed.
2. Tasks may be added to an order in any status.
3. Assignees must be STAFF, ADMIN or SUPER_ADMIN.
4. Status changes: STAFF only on tasks assigned to them; ADMIN/SUPER_ADMIN on
   any task. Only admins may also edit the task definition in the same call.
5. completed_at is stamped on entering COMPLETED (kept if already completed)
   and cleared on any other status.
"""

from __future__ import annotations

import math

from sqlalchemy import func

from ..extensions import db
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models import BespokeOrder, ProductionTask, User
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_production_task,
    validate_payload,
)
from atelier.time_utils import utcnow
from . import activity_service
from .access_service import STAFF_ROLES, can_update_task, is_admin
from .bespoke_status import (
    TaskStatus,
    completion_stamp_action,
    parse_task_stage,
    parse_task_status,
)
from .concurrency import lock_for_update


TASK_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "title",
        "description",
        "stage",
        "assigned_to_id",
        "priority",
        "estimated_hours",
        "due_date",
        "notes",
    },
    required_on_create={"title", "stage"},
)

# Fields only ADMIN / SUPER_ADMIN may change through update_task_status
ADMIN_EDITABLE_FIELDS = {
    "title",
    "description",
    "stage",
    "assigned_to_id",
    "priority",
    "estimated_hours",
    "due_date",
}

TASK_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=ADMIN_EDITABLE_FIELDS | {"actual_hours", "notes"},
)

# Ignored on create: the server owns these
_SERVER_OWNED_ON_CREATE = {"status", "sort_order", "bespoke_order_id", "completed_at", "actual_hours"}

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 20


def _check_assignee(assigned_to_id: int | None) -> None:
    if assigned_to_id is None:
        return
    user = db.session.get(User, assigned_to_id)
    if user is None or not user.is_active or user.role not in STAFF_ROLES:
        raise ValidationError(
            "Assignee must be an active staff member",
            {"assigned_to_id": "must reference an active STAFF, ADMIN or SUPER_ADMIN user"},
        )


def _get_task_or_404(task_id: int) -> ProductionTask:
    task = db.session.get(ProductionTask, task_id)
    if not task:
        raise NotFoundError("Production task not found")
    return task


def create_task(order_id: int, payload: dict, acting_user: User) -> ProductionTask:
    payload = {k: v for k, v in (payload or {}).items() if k not in _SERVER_OWNED_ON_CREATE}
    patch = validate_payload(model=ProductionTask, payload=payload, policy=TASK_CREATE_POLICY, partial=False)
    enforce_rules_production_task(patch)
    patch.setdefault("priority", 0)
    _check_assignee(patch.get("assigned_to_id"))

    try:
        order = lock_for_update(db.session.query(BespokeOrder).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("Bespoke order not found")

        max_sort = (
            db.session.query(func.max(ProductionTask.sort_order))
            .filter(ProductionTask.bespoke_order_id == order.id)
            .scalar()
        )
        task = ProductionTask(
            bespoke_order_id=order.id,
            status=TaskStatus.NOT_STARTED.value,
            sort_order=(max_sort or 0) + 1,
            **patch,
        )
        db.session.add(task)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    activity_service.log_activity(
        acting_user.id,
        "CREATE_PRODUCTION_TASK",
        "PRODUCTION_TASK",
        task.id,
        {"title": task.title, "bespoke_order_id": order.id, "order_number": order.order_number},
    )
    return task


def update_task_status(
    task_id: int,
    new_status,
    acting_user: User,
    actual_hours=None,
    notes=None,
    changes: dict | None = None,
) -> ProductionTask:
    """
    Move a task to a new sub-status, merging hours/notes and (admins only)
    definition edits.

    Raises:
        NotFoundError: task does not exist
        ValidationError: unknown status or invalid field values
        ForbiddenError: STAFF caller not assigned to the task, or STAFF
            caller sending admin-only fields
    """
    task = _get_task_or_404(task_id)
    requested = parse_task_status(new_status)

    if not can_update_task(acting_user, task):
        raise ForbiddenError("You can only update tasks assigned to you")

    changes = dict(changes or {})
    restricted = sorted(k for k in changes if k in ADMIN_EDITABLE_FIELDS)
    if restricted and not is_admin(acting_user):
        raise ForbiddenError(f"Only administrators may change: {', '.join(restricted)}")

    if actual_hours is not None:
        changes["actual_hours"] = actual_hours
    if notes is not None:
        changes["notes"] = notes

    patch = validate_payload(model=ProductionTask, payload=changes, policy=TASK_UPDATE_POLICY, partial=True)
    enforce_rules_production_task(patch)
    if "assigned_to_id" in patch:
        _check_assignee(patch["assigned_to_id"])

    previous = task.status
    try:
        for key, value in patch.items():
            setattr(task, key, value)

        task.status = requested.value
        action = completion_stamp_action(previous, requested)
        if action == "set":
            task.completed_at = utcnow()
        elif action == "clear":
            task.completed_at = None

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    activity_service.log_activity(
        acting_user.id,
        "UPDATE_PRODUCTION_TASK",
        "PRODUCTION_TASK",
        task.id,
        {
            "title": task.title,
            "from": previous,
            "to": requested.value,
            "order_number": task.bespoke_order.order_number,
        },
    )
    return task


def delete_task(task_id: int, acting_user: User) -> None:
    if not is_admin(acting_user):
        raise ForbiddenError("Only administrators may delete production tasks")

    try:
        task = _get_task_or_404(task_id)
        title = task.title
        order_number = task.bespoke_order.order_number
        db.session.delete(task)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    activity_service.log_activity(
        acting_user.id,
        "DELETE_PRODUCTION_TASK",
        "PRODUCTION_TASK",
        task_id,
        {"title": title, "order_number": order_number},
    )


def list_order_tasks(order_id: int) -> list[ProductionTask]:
    if db.session.get(BespokeOrder, order_id) is None:
        raise NotFoundError("Bespoke order not found")
    return (
        db.session.query(ProductionTask)
        .filter_by(bespoke_order_id=order_id)
        .order_by(ProductionTask.sort_order.asc(), ProductionTask.created_at.asc(), ProductionTask.id.asc())
        .all()
    )


def list_tasks(
    status: str | None = None,
    stage: str | None = None,
    assignee: int | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """
    Cross-order production board.

    Ordered by priority (urgent first), due date (soonest first, undated
    last), then newest.
    """
    page = max(1, page or 1)
    limit = min(MAX_PAGE_SIZE, max(1, limit or DEFAULT_PAGE_SIZE))

    query = db.session.query(ProductionTask).join(BespokeOrder, ProductionTask.bespoke_order_id == BespokeOrder.id)

    if status and status.strip().upper() != "ALL":
        query = query.filter(ProductionTask.status == parse_task_status(status).value)
    if stage and stage.strip().upper() != "ALL":
        query = query.filter(ProductionTask.stage == parse_task_stage(stage).value)
    if assignee is not None:
        query = query.filter(ProductionTask.assigned_to_id == assignee)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            ProductionTask.title.ilike(pattern),
            BespokeOrder.order_number.ilike(pattern),
            BespokeOrder.customer_name.ilike(pattern),
        ))

    total = query.count()
    tasks = (
        query.order_by(
            ProductionTask.priority.desc(),
            ProductionTask.due_date.is_(None),
            ProductionTask.due_date.asc(),
            ProductionTask.created_at.desc(),
            ProductionTask.id.desc(),
        )
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    status_counts = dict(
        db.session.query(ProductionTask.status, func.count(ProductionTask.id))
        .group_by(ProductionTask.status)
        .all()
    )

    return {
        "tasks": [t.to_dict(include_order=True) for t in tasks],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
        "status_counts": status_counts,
    }
