from __future__ import annotations

from ..extensions import db
from atelier.time_utils import to_utc_z


class CustomerMeasurement(db.Model):
    """
    Body measurements taken for a customer (inches / lbs).

    A customer may hold several labelled sets ("Default", "Wedding suit").
    Bespoke orders reference a set read-only; a referenced set cannot be deleted.
    """
    __tablename__ = "customer_measurements"
    __table_args__ = (
        db.Index("ix_customer_measurements_user_updated", "user_id", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    label = db.Column(db.String(100), nullable=False, default="Default")

    chest = db.Column(db.Float, nullable=True)
    shoulder = db.Column(db.Float, nullable=True)
    sleeve_length = db.Column(db.Float, nullable=True)
    neck = db.Column(db.Float, nullable=True)
    back_length = db.Column(db.Float, nullable=True)
    waist = db.Column(db.Float, nullable=True)
    hip = db.Column(db.Float, nullable=True)
    inseam = db.Column(db.Float, nullable=True)
    outseam = db.Column(db.Float, nullable=True)
    thigh = db.Column(db.Float, nullable=True)
    height = db.Column(db.Float, nullable=True)
    weight = db.Column(db.Float, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    measured_by = db.Column(db.String(100), nullable=True)
    measured_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("measurements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "label": self.label,
            "chest": self.chest,
            "shoulder": self.shoulder,
            "sleeve_length": self.sleeve_length,
            "neck": self.neck,
            "back_length": self.back_length,
            "waist": self.waist,
            "hip": self.hip,
            "inseam": self.inseam,
            "outseam": self.outseam,
            "thigh": self.thigh,
            "height": self.height,
            "weight": self.weight,
            "notes": self.notes,
            "measured_by": self.measured_by,
            "measured_at": to_utc_z(self.measured_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
