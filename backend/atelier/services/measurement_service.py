# Overview: Customer measurement sets referenced by bespoke orders.

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import BespokeOrder, CustomerMeasurement, User
from ..validation import (
    MEASUREMENT_FIELDS,
    ModelValidationPolicy,
    enforce_rules_measurement,
    validate_payload,
)
from . import activity_service


MEASUREMENT_POLICY = ModelValidationPolicy(
    writable_fields={"label", "notes", "measured_by", "measured_at", *MEASUREMENT_FIELDS},
    required_on_create=set(),
)


def _get_customer_or_404(customer_id: int) -> User:
    customer = db.session.get(User, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _get_measurement_or_404(customer_id: int, measurement_id: int) -> CustomerMeasurement:
    measurement = db.session.get(CustomerMeasurement, measurement_id)
    if not measurement or measurement.user_id != customer_id:
        raise NotFoundError("Measurement not found")
    return measurement


def list_measurements(customer_id: int) -> list[CustomerMeasurement]:
    _get_customer_or_404(customer_id)
    return (
        db.session.query(CustomerMeasurement)
        .filter_by(user_id=customer_id)
        .order_by(CustomerMeasurement.updated_at.desc(), CustomerMeasurement.id.desc())
        .all()
    )


def create_measurement(customer_id: int, payload: dict, acting_user: User) -> CustomerMeasurement:
    customer = _get_customer_or_404(customer_id)

    patch = validate_payload(model=CustomerMeasurement, payload=payload, policy=MEASUREMENT_POLICY, partial=False)
    enforce_rules_measurement(patch)
    if not patch.get("label"):
        patch["label"] = "Default"

    measurement = CustomerMeasurement(user_id=customer.id, **patch)
    db.session.add(measurement)
    db.session.commit()

    activity_service.log_activity(
        acting_user.id,
        "CREATE_MEASUREMENT",
        "CUSTOMER_MEASUREMENT",
        measurement.id,
        {"customer_id": customer.id, "label": measurement.label},
    )
    return measurement


def update_measurement(customer_id: int, measurement_id: int, payload: dict, acting_user: User) -> CustomerMeasurement:
    measurement = _get_measurement_or_404(customer_id, measurement_id)

    patch = validate_payload(model=CustomerMeasurement, payload=payload, policy=MEASUREMENT_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_measurement(patch)

    for key, value in patch.items():
        setattr(measurement, key, value)
    db.session.commit()

    activity_service.log_activity(
        acting_user.id,
        "UPDATE_MEASUREMENT",
        "CUSTOMER_MEASUREMENT",
        measurement.id,
        {"customer_id": customer_id, "fields": sorted(patch.keys())},
    )
    return measurement


def delete_measurement(customer_id: int, measurement_id: int, acting_user: User) -> None:
    measurement = _get_measurement_or_404(customer_id, measurement_id)

    in_use = db.session.query(BespokeOrder.id).filter_by(measurement_id=measurement.id).first()
    if in_use:
        raise ConflictError("Measurement is referenced by a bespoke order")

    db.session.delete(measurement)
    db.session.commit()

    activity_service.log_activity(
        acting_user.id,
        "DELETE_MEASUREMENT",
        "CUSTOMER_MEASUREMENT",
        measurement_id,
        {"customer_id": customer_id},
    )
