from __future__ import annotations

from ..extensions import db
from atelier.time_utils import to_utc_z


NOTIFICATION_TYPES = {
    "ORDER_UPDATE", "PAYMENT", "SUPPORT", "PROMOTION", "SYSTEM", "BESPOKE", "PRODUCTION",
}


class Notification(db.Model):
    """
    In-app notification shown in a user's account area.

    Written by the notification dispatcher after a business transaction has
    committed. Owners may mark them read or delete them.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        db.Index("ix_notifications_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(16), nullable=False, default="SYSTEM")
    link_url = db.Column(db.String(512), nullable=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("notifications", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "link_url": self.link_url,
            "is_read": self.is_read,
            "created_at": to_utc_z(self.created_at),
        }


class EmailLog(db.Model):
    """
    Delivery record for every outbound email attempt.

    IMMUTABLE: one row per attempt, SENT or FAILED.
    """
    __tablename__ = "email_logs"
    __table_args__ = (
        db.Index("ix_email_logs_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    to_email = db.Column(db.String(255), nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=False)
    template_name = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False)  # SENT, FAILED
    error_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "to_email": self.to_email,
            "subject": self.subject,
            "template_name": self.template_name,
            "status": self.status,
            "error_message": self.error_message,
            "created_at": to_utc_z(self.created_at),
        }
