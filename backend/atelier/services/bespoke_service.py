# Overview: Bespoke order aggregate: create, read, list, edit, status transitions and deletion.

"""
Bespoke Order Service

WHY: A bespoke order moves through a tailoring pipeline and every status it
ever held must be traceable. The status and its audit row are written in one
transaction; customer notifications are side effects of a committed change.

TRANSITION SEQUENCE (transition_status):
1. Parse the requested status (ValidationError on unknown values)
2. Lock the order row (SELECT ... FOR UPDATE; version_id guards SQLite)
3. Reject a no-op (NoOpTransitionError): no log row, no notification
4. Set status, stamp/clear actual_completion_date, append one status log row
5. Commit; any failure rolls back the whole unit and re-raises
6. Activity log (best-effort)
7. Notification + email dispatch, each wrapped; failures are logged only

The transition is never retried: a concurrent writer that loses the race
surfaces StaleDataError to the caller instead of overwriting silently.
"""

from __future__ import annotations

import html
import math
import secrets
import string
import time

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import BespokeOrder, BespokeStatusLog, CustomerMeasurement, ProductionTask, User
from ..validation import (
    MAX_NOTE_TEXT,
    ModelValidationPolicy,
    enforce_rules_bespoke_order,
    validate_payload,
)
from atelier.time_utils import utcnow
from . import activity_service, notification_service
from .access_service import is_admin
from .bespoke_status import (
    BespokeStatus,
    UNDELETABLE_STATUSES,
    humanize_status,
    parse_bespoke_status,
    plan_transition,
    status_message,
)
from .concurrency import lock_for_update, run_with_retry


ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "customer_phone",
        "customer_email",
        "user_id",
        "measurement_id",
        "estimated_price_cents",
        "final_price_cents",
        "deposit_amount_cents",
        "deposit_paid",
        "design_description",
        "fabric_details",
        "customer_notes",
        "internal_notes",
        "estimated_completion_date",
    },
    required_on_create={"customer_name", "customer_phone"},
)

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 20

ORDER_NUMBER_PREFIX = "BSP-"
_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_order_number() -> str:
    """BSP- + base36 millisecond timestamp + 2 random base36 characters."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(2))
    return f"{ORDER_NUMBER_PREFIX}{stamp}{suffix}"


def _check_references(patch: dict) -> None:
    user_id = patch.get("user_id")
    if user_id is not None and db.session.get(User, user_id) is None:
        raise ValidationError("Customer not found", {"user_id": "does not reference an existing user"})

    measurement_id = patch.get("measurement_id")
    if measurement_id is not None:
        measurement = db.session.get(CustomerMeasurement, measurement_id)
        if measurement is None:
            raise ValidationError("Measurement not found", {"measurement_id": "does not reference an existing measurement"})
        if user_id is not None and measurement.user_id != user_id:
            raise ValidationError(
                "Measurement belongs to a different customer",
                {"measurement_id": "belongs to a different customer"},
            )


def _clean_note(note) -> str | None:
    if note is None:
        return None
    if not isinstance(note, str):
        raise ValidationError("note must be a string", {"note": "must be a string"})
    note = note.strip()
    if len(note) > MAX_NOTE_TEXT:
        raise ValidationError(f"note exceeds max length {MAX_NOTE_TEXT}", {"note": f"exceeds max length {MAX_NOTE_TEXT}"})
    return note or None


def append_status_log(order: BespokeOrder, changed_by_user_id: int, old_status: str, new_status: str, note: str | None = None) -> BespokeStatusLog:
    """Stage one audit row in the current transaction (caller commits)."""
    entry = BespokeStatusLog(
        bespoke_order=order,
        changed_by_user_id=changed_by_user_id,
        old_status=old_status,
        new_status=new_status,
        note=note,
    )
    db.session.add(entry)
    return entry


def _get_order_or_404(order_id: int, *, lock: bool = False) -> BespokeOrder:
    query = db.session.query(BespokeOrder).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise NotFoundError("Bespoke order not found")
    return order


# ---------------------------------------------------------------------------
# Create / read / list / edit
# ---------------------------------------------------------------------------

def create_order(payload: dict, acting_user: User) -> BespokeOrder:
    """
    Create an order in INQUIRY together with its initial status log row.

    Order-number collisions are retried (unique constraint); nothing else is.
    """
    patch = validate_payload(model=BespokeOrder, payload=payload, policy=ORDER_POLICY, partial=False)
    enforce_rules_bespoke_order(patch)
    _check_references(patch)

    def _op():
        try:
            order = BespokeOrder(
                order_number=generate_order_number(),
                status=BespokeStatus.INQUIRY.value,
                **patch,
            )
            db.session.add(order)
            append_status_log(order, acting_user.id, "", BespokeStatus.INQUIRY.value, "Order created")
            db.session.commit()
            return order
        except Exception:
            db.session.rollback()
            raise

    order = run_with_retry(_op, retry_on=(IntegrityError,))

    activity_service.log_activity(
        acting_user.id,
        "CREATE_BESPOKE_ORDER",
        "BESPOKE_ORDER",
        order.id,
        {"order_number": order.order_number, "customer_name": order.customer_name},
    )
    return order


def get_order(order_id: int) -> BespokeOrder:
    return _get_order_or_404(order_id)


def order_detail(order: BespokeOrder) -> dict:
    """Full order view: customer, measurement, tasks (board order) and history (newest first)."""
    data = order.to_dict()
    data["user"] = (
        {"id": order.user.id, "name": order.user.name, "email": order.user.email}
        if order.user else None
    )
    data["measurement"] = order.measurement.to_dict() if order.measurement else None
    data["tasks"] = [t.to_dict() for t in order.tasks]
    data["status_logs"] = [log.to_dict() for log in order.status_logs]
    return data


def list_orders(status: str | None = None, search: str | None = None, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
    """Paginated order list with per-status counts for filter tabs."""
    page = max(1, page or 1)
    limit = min(MAX_PAGE_SIZE, max(1, limit or DEFAULT_PAGE_SIZE))

    query = db.session.query(BespokeOrder)

    if status and status.strip().upper() != "ALL":
        query = query.filter(BespokeOrder.status == parse_bespoke_status(status).value)

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            BespokeOrder.order_number.ilike(pattern),
            BespokeOrder.customer_name.ilike(pattern),
            BespokeOrder.customer_email.ilike(pattern),
            BespokeOrder.customer_phone.like(pattern),
        ))

    total = query.count()
    orders = (
        query.order_by(BespokeOrder.created_at.desc(), BespokeOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    task_counts: dict[int, int] = {}
    if orders:
        rows = (
            db.session.query(ProductionTask.bespoke_order_id, func.count(ProductionTask.id))
            .filter(ProductionTask.bespoke_order_id.in_([o.id for o in orders]))
            .group_by(ProductionTask.bespoke_order_id)
            .all()
        )
        task_counts = {order_id: count for order_id, count in rows}

    status_counts = dict(
        db.session.query(BespokeOrder.status, func.count(BespokeOrder.id))
        .group_by(BespokeOrder.status)
        .all()
    )

    results = []
    for order in orders:
        data = order.to_dict()
        data["user"] = (
            {"id": order.user.id, "name": order.user.name, "email": order.user.email}
            if order.user else None
        )
        data["task_count"] = task_counts.get(order.id, 0)
        results.append(data)

    return {
        "orders": results,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
        "status_counts": status_counts,
    }


def update_order(order_id: int, payload: dict, acting_user: User) -> BespokeOrder:
    """Partial update of non-status fields. Status only moves via transition_status."""
    patch = validate_payload(model=BespokeOrder, payload=payload, policy=ORDER_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_bespoke_order(patch)

    try:
        order = _get_order_or_404(order_id, lock=True)
        refs = dict(patch)
        if "measurement_id" in refs and "user_id" not in refs:
            refs["user_id"] = order.user_id
        _check_references(refs)

        for key, value in patch.items():
            setattr(order, key, value)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    activity_service.log_activity(
        acting_user.id,
        "UPDATE_BESPOKE_ORDER",
        "BESPOKE_ORDER",
        order.id,
        {"order_number": order.order_number, "fields": sorted(patch.keys())},
    )
    return order


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

def transition_status(order_id: int, new_status, acting_user: User, note: str | None = None) -> BespokeOrder:
    """
    Move an order to a new status and append its audit row atomically.

    Raises:
        ValidationError: unknown status value or over-long note
        NotFoundError: order does not exist
        NoOpTransitionError: order already has the requested status
    """
    requested = parse_bespoke_status(new_status)
    note = _clean_note(note)

    try:
        order = _get_order_or_404(order_id, lock=True)
        plan = plan_transition(order.status, requested)

        order.status = plan.new_status.value
        if plan.set_completion_date:
            order.actual_completion_date = utcnow()
        elif plan.clear_completion_date:
            order.actual_completion_date = None

        append_status_log(order, acting_user.id, plan.old_status, plan.new_status.value, note)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    activity_service.log_activity(
        acting_user.id,
        "UPDATE_BESPOKE_STATUS",
        "BESPOKE_ORDER",
        order.id,
        {"order_number": order.order_number, "from": plan.old_status, "to": plan.new_status.value, "note": note},
    )

    dispatch_status_notifications(order, plan.new_status, note)
    return order


def _status_email_html(customer_name: str, order_number: str, status: BespokeStatus, message: str, note: str | None) -> str:
    app_url = (current_app.config.get("APP_URL") or "").rstrip("/")
    label = humanize_status(status.value)
    note_html = (
        f'<p style="margin: 10px 0 0 0;"><strong>Note:</strong> {html.escape(note)}</p>'
        if note else ""
    )
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h1 style="color: #C8973E;">Bespoke Order Update</h1>
    <p>Hello {html.escape(customer_name)},</p>
    <p>{html.escape(message)}</p>
    <div style="background-color: #F7F3ED; padding: 20px; border-radius: 4px; margin: 20px 0;">
        <p style="margin: 0;"><strong>Order Number:</strong> {html.escape(order_number)}</p>
        <p style="margin: 10px 0 0 0;"><strong>Status:</strong> {label}</p>
        {note_html}
    </div>
    <p>
        <a href="{app_url}/account/orders"
           style="background-color: #C8973E; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px; display: inline-block;">
            View Your Orders
        </a>
    </p>
    <p style="color: #666; font-size: 14px; margin-top: 30px;">
        If you have any questions about your bespoke order, please contact us.
    </p>
</div>
"""


def dispatch_status_notifications(order: BespokeOrder, status: BespokeStatus, note: str | None = None) -> None:
    """
    Tell the customer about a committed status change.

    In-app notification only for orders linked to a user account. Email goes to
    customer_email, falling back to the linked user's email. Each delivery is
    isolated: a failure is rolled back and logged, never re-raised.
    """
    # The commit expired the order; reloading it (and order.user) must not surface
    try:
        order_id = order.id
        order_number = order.order_number
        user_id = order.user_id
        recipient = order.customer_email or (order.user.email if order.user else None)
        customer_name = order.customer_name or (order.user.name if order.user else "")
    except Exception as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Recipient lookup failed for bespoke order (status %s), nothing sent: %s",
            status.value, exc,
        )
        return
    message = status_message(status, order_number)

    if user_id:
        try:
            notification_service.notify(
                user_id,
                f"Bespoke Order {order_number} Update",
                message,
                "BESPOKE",
                "/account/orders",
            )
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning(
                "In-app notification failed for bespoke order %s (status %s): %s",
                order_id, status.value, exc,
            )

    if recipient:
        try:
            notification_service.send_email(
                recipient,
                f"Bespoke Order {order_number} - {humanize_status(status.value)}",
                _status_email_html(customer_name, order_number, status, message, note),
                template_name="BESPOKE_STATUS",
            )
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Status email failed for bespoke order %s (status %s): %s",
                order_id, status.value, exc,
            )


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------

def delete_order(order_id: int, acting_user: User) -> None:
    """
    Delete an order with its tasks and status history.

    Raises:
        ForbiddenError: caller is not ADMIN or SUPER_ADMIN
        NotFoundError: order does not exist
        ConflictError: order has been delivered
    """
    if not is_admin(acting_user):
        raise ForbiddenError("Only administrators may delete bespoke orders")

    try:
        order = _get_order_or_404(order_id, lock=True)
        if order.status in {s.value for s in UNDELETABLE_STATUSES}:
            raise ConflictError("Cannot delete a delivered bespoke order")

        order_number = order.order_number
        db.session.delete(order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    activity_service.log_activity(
        acting_user.id,
        "DELETE_BESPOKE_ORDER",
        "BESPOKE_ORDER",
        order_id,
        {"order_number": order_number},
    )
