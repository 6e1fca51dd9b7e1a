from __future__ import annotations

from ..extensions import db
from atelier.time_utils import to_utc_z


class ActivityLog(db.Model):
    """
    System-wide activity trail for back-office mutations.

    One row per successful mutating operation (CREATE_BESPOKE_ORDER,
    UPDATE_BESPOKE_STATUS, DELETE_PRODUCTION_TASK, ...), written after the
    business transaction commits.

    IMMUTABLE: Never update or delete. Append-only.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_entity", "entity_type", "entity_id"),
        db.Index("ix_activity_logs_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "metadata_json": self.metadata_json,
            "created_at": to_utc_z(self.created_at),
        }
