# Overview: Pure status logic for bespoke orders and production tasks; no database access.

"""
Bespoke Order Status Validator

================================================================================
PURPOSE: Decide whether a requested status change is legal and what it implies
================================================================================

ORDER PIPELINE:
    INQUIRY -> CONSULTATION -> MEASUREMENT -> DESIGN -> FABRIC_SELECTION
            -> PRODUCTION -> FITTING -> FINAL_ADJUSTMENTS -> COMPLETED -> DELIVERED

    CANCELLED is reachable from anywhere.

RULES:
1. Status arrives as an untyped string at the HTTP boundary and is parsed into
   a closed enum here; unknown values are a ValidationError.
2. A transition to the current status is rejected (NoOpTransitionError).
3. Any other source/target pair is accepted. The pipeline reads as a sequence
   but stage skipping and moving backward are allowed (corrections, re-opening).
   Whether to enforce forward-only movement is an open product decision.
4. Reaching DELIVERED stamps actual_completion_date; leaving it clears the stamp.

TASK LIFECYCLE:
    NOT_STARTED -> IN_PROGRESS -> COMPLETED | ON_HOLD | CANCELLED
    ON_HOLD -> IN_PROGRESS

    No transition is forbidden. COMPLETED pairs with completed_at.
================================================================================
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from ..errors import NoOpTransitionError, ValidationError


class BespokeStatus(str, enum.Enum):
    INQUIRY = "INQUIRY"
    CONSULTATION = "CONSULTATION"
    MEASUREMENT = "MEASUREMENT"
    DESIGN = "DESIGN"
    FABRIC_SELECTION = "FABRIC_SELECTION"
    PRODUCTION = "PRODUCTION"
    FITTING = "FITTING"
    FINAL_ADJUSTMENTS = "FINAL_ADJUSTMENTS"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class TaskStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"
    CANCELLED = "CANCELLED"


class TaskStage(str, enum.Enum):
    CUTTING = "CUTTING"
    SEWING = "SEWING"
    EMBROIDERY = "EMBROIDERY"
    BEADING = "BEADING"
    FINISHING = "FINISHING"
    QC = "QC"
    PRESSING = "PRESSING"
    OTHER = "OTHER"


# Pipeline order, used for display (progress steppers) only
BESPOKE_PIPELINE: tuple[BespokeStatus, ...] = tuple(
    s for s in BespokeStatus if s is not BespokeStatus.CANCELLED
)

# Orders in these statuses may not be deleted
UNDELETABLE_STATUSES = frozenset({BespokeStatus.DELIVERED})


def _parse(enum_cls, value, field: str):
    if isinstance(value, enum_cls):
        return value
    raw = (value or "").strip().upper() if isinstance(value, str) else value
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {allowed}",
            details={field: f"must be one of: {allowed}"},
        )


def parse_bespoke_status(value) -> BespokeStatus:
    return _parse(BespokeStatus, value, "status")


def parse_task_status(value) -> TaskStatus:
    return _parse(TaskStatus, value, "status")


def parse_task_stage(value) -> TaskStage:
    return _parse(TaskStage, value, "stage")


@dataclass(frozen=True)
class TransitionPlan:
    """Effects implied by a legal order status change."""
    old_status: str
    new_status: BespokeStatus
    set_completion_date: bool
    clear_completion_date: bool


def plan_transition(current_status: str, requested) -> TransitionPlan:
    """
    Validate a requested order status change against the current status.

    Raises:
        ValidationError: requested value is not a known status
        NoOpTransitionError: requested status equals the current one
    """
    new_status = parse_bespoke_status(requested)
    if current_status == new_status.value:
        raise NoOpTransitionError(f"Order is already in status {new_status.value}")

    delivered = BespokeStatus.DELIVERED.value
    return TransitionPlan(
        old_status=current_status,
        new_status=new_status,
        set_completion_date=new_status is BespokeStatus.DELIVERED,
        clear_completion_date=current_status == delivered,
    )


def humanize_status(status: str) -> str:
    return str(status).replace("_", " ")


_STATUS_MESSAGES = {
    BespokeStatus.CONSULTATION.value:
        "Your bespoke order {number} is in the consultation phase. Our team will reach out to discuss your requirements.",
    BespokeStatus.MEASUREMENT.value:
        "Your bespoke order {number} is ready for measurements. Please schedule an appointment with us.",
    BespokeStatus.DESIGN.value:
        "Your bespoke order {number} is being designed by our expert tailors.",
    BespokeStatus.FABRIC_SELECTION.value:
        "It's time to select the perfect fabric for your bespoke order {number}.",
    BespokeStatus.PRODUCTION.value:
        "Your bespoke order {number} is now in production. Our craftsmen are working on your piece.",
    BespokeStatus.FITTING.value:
        "Your bespoke order {number} is ready for fitting. We'll contact you to schedule an appointment.",
    BespokeStatus.FINAL_ADJUSTMENTS.value:
        "Your bespoke order {number} is undergoing final adjustments to ensure a perfect fit.",
    BespokeStatus.COMPLETED.value:
        "Excellent news! Your bespoke order {number} is complete and ready for pickup or delivery.",
    BespokeStatus.DELIVERED.value:
        "Your bespoke order {number} has been delivered. We hope you love your custom piece!",
    BespokeStatus.CANCELLED.value:
        "Your bespoke order {number} has been cancelled. Please contact us if you have any questions.",
}


def status_message(status, order_number: str) -> str:
    """Customer-facing message for an order that just entered `status`."""
    key = status.value if isinstance(status, BespokeStatus) else str(status)
    template = _STATUS_MESSAGES.get(key)
    if template is None:
        return f"Your bespoke order {order_number} is now in the {humanize_status(key).lower()} stage."
    return template.format(number=order_number)


def completion_stamp_action(previous: str, requested: TaskStatus) -> str:
    """
    What to do with a task's completed_at when moving to `requested`.

    Returns "set", "keep" or "clear".
    """
    if requested is TaskStatus.COMPLETED:
        return "keep" if previous == TaskStatus.COMPLETED.value else "set"
    return "clear"
