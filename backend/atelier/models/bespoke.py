from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from atelier.time_utils import to_utc_z


class BespokeOrder(db.Model):
    """
    Custom tailoring order, from inquiry through delivery.

    STATUS: changed only through bespoke_service.transition_status, which
    writes the status and its BespokeStatusLog row in one transaction.
    Other fields may be edited independently.

    INVARIANT: actual_completion_date is set iff status == DELIVERED.

    DELETION: DELIVERED orders are never deleted. Deleting any other order
    cascades to its tasks and status log.
    """
    __tablename__ = "bespoke_orders"
    __table_args__ = (
        db.Index("ix_bespoke_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    # Customer linkage (walk-in orders have no user_id)
    customer_name = db.Column(db.String(100), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Commercial (cents; unknown until quoted)
    estimated_price_cents = db.Column(db.Integer, nullable=True)
    final_price_cents = db.Column(db.Integer, nullable=True)
    deposit_amount_cents = db.Column(db.Integer, nullable=True)
    deposit_paid = db.Column(db.Boolean, nullable=False, default=False)

    # Design
    design_description = db.Column(db.Text, nullable=True)
    fabric_details = db.Column(db.Text, nullable=True)
    customer_notes = db.Column(db.Text, nullable=True)
    internal_notes = db.Column(db.Text, nullable=True)  # staff-only
    measurement_id = db.Column(db.Integer, db.ForeignKey("customer_measurements.id"), nullable=True, index=True)

    # Lifecycle
    status = db.Column(db.String(32), nullable=False, default="INQUIRY", index=True)
    estimated_completion_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_completion_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("bespoke_orders", lazy=True))
    measurement = db.relationship("CustomerMeasurement", backref=db.backref("bespoke_orders", lazy=True))
    tasks = db.relationship(
        "ProductionTask",
        back_populates="bespoke_order",
        cascade="all, delete-orphan",
        order_by="(ProductionTask.sort_order, ProductionTask.created_at)",
        lazy=True,
    )
    status_logs = db.relationship(
        "BespokeStatusLog",
        back_populates="bespoke_order",
        cascade="all, delete-orphan",
        order_by="(BespokeStatusLog.created_at.desc(), BespokeStatusLog.id.desc())",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<BespokeOrder id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "user_id": self.user_id,
            "estimated_price_cents": self.estimated_price_cents,
            "final_price_cents": self.final_price_cents,
            "deposit_amount_cents": self.deposit_amount_cents,
            "deposit_paid": self.deposit_paid,
            "design_description": self.design_description,
            "fabric_details": self.fabric_details,
            "customer_notes": self.customer_notes,
            "internal_notes": self.internal_notes,
            "measurement_id": self.measurement_id,
            "status": self.status,
            "estimated_completion_date": to_utc_z(self.estimated_completion_date),
            "actual_completion_date": to_utc_z(self.actual_completion_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BespokeStatusLog(db.Model):
    """
    Status history for a bespoke order.

    IMMUTABLE: Append-only. One row per transition, including creation
    (old_status = "", new_status = "INQUIRY"). Rows disappear only when the
    owning order is deleted.
    """
    __tablename__ = "bespoke_status_logs"
    __table_args__ = (
        db.Index("ix_bespoke_status_logs_order_created", "bespoke_order_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bespoke_order_id = db.Column(db.Integer, db.ForeignKey("bespoke_orders.id"), nullable=False, index=True)
    changed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    old_status = db.Column(db.String(32), nullable=False, default="")
    new_status = db.Column(db.String(32), nullable=False)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bespoke_order = db.relationship("BespokeOrder", back_populates="status_logs")
    changed_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bespoke_order_id": self.bespoke_order_id,
            "changed_by_user_id": self.changed_by_user_id,
            "changed_by": self.changed_by.to_summary() if self.changed_by else None,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(BespokeStatusLog, "before_update")
def _status_log_is_append_only(mapper, connection, target: BespokeStatusLog):
    raise ValueError(f"bespoke_status_logs row {target.id} is immutable")


class ProductionTask(db.Model):
    """
    Discrete fabrication step on a bespoke order (cutting, sewing, fitting...).

    INVARIANT: completed_at is set iff status == COMPLETED.
    ORDERING: sort_order = max(existing for the order) + 1 on creation.
    """
    __tablename__ = "production_tasks"
    __table_args__ = (
        db.Index("ix_production_tasks_order_sort", "bespoke_order_id", "sort_order"),
        db.Index("ix_production_tasks_status_priority", "status", "priority"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bespoke_order_id = db.Column(db.Integer, db.ForeignKey("bespoke_orders.id"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    stage = db.Column(db.String(16), nullable=False)  # CUTTING, SEWING, EMBROIDERY, BEADING, FINISHING, QC, PRESSING, OTHER
    status = db.Column(db.String(16), nullable=False, default="NOT_STARTED", index=True)

    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    priority = db.Column(db.Integer, nullable=False, default=0)  # 0 normal, 1 high, 2 urgent
    sort_order = db.Column(db.Integer, nullable=False, default=1)

    estimated_hours = db.Column(db.Float, nullable=True)
    actual_hours = db.Column(db.Float, nullable=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    bespoke_order = db.relationship("BespokeOrder", back_populates="tasks")
    assigned_to = db.relationship("User")

    def to_dict(self, *, include_order: bool = False) -> dict:
        data = {
            "id": self.id,
            "bespoke_order_id": self.bespoke_order_id,
            "title": self.title,
            "description": self.description,
            "stage": self.stage,
            "status": self.status,
            "assigned_to_id": self.assigned_to_id,
            "assigned_to": self.assigned_to.to_summary() if self.assigned_to else None,
            "priority": self.priority,
            "sort_order": self.sort_order,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "due_date": to_utc_z(self.due_date),
            "completed_at": to_utc_z(self.completed_at),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_order:
            order = self.bespoke_order
            data["bespoke_order"] = {
                "id": order.id,
                "order_number": order.order_number,
                "customer_name": order.customer_name,
                "status": order.status,
            }
        return data
