# Overview: In-app notifications and outbound email (SMTP) with delivery logging.

"""
Notification Dispatcher

WHY: Customers hear about their orders through two channels, an in-app
notification row and an email. Both are side effects of an already
committed business transaction.

RULES:
1. notify() inserts a Notification row and commits.
2. send_email() sends through SMTP when MAIL_SERVER is configured and raises
   EmailDeliveryError otherwise, or when the transport fails. Every attempt
   records an EmailLog row (SENT or FAILED).
3. Callers decide whether a failure matters. The bespoke workflow wraps each
   call and never lets a delivery failure reach the client.
"""

from __future__ import annotations

import re
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from flask import current_app

from ..extensions import db
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models import EmailLog, Notification
from ..models.communications import NOTIFICATION_TYPES


NOTIFICATIONS_PAGE_SIZE = 20

_TAG_RE = re.compile(r"<[^>]*>?")


class EmailDeliveryError(Exception):
    """Raised when an email cannot be handed to the SMTP server."""
    pass


def notify(
    user_id: int,
    title: str,
    body: str,
    category: str,
    link_url: str | None = None,
) -> Notification:
    """Create one in-app notification for a user."""
    if category not in NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type '{category}'", {"type": "is not a known notification type"})

    notification = Notification(
        user_id=user_id,
        title=title,
        message=body,
        type=category,
        link_url=link_url,
        is_read=False,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def html_to_text(html: str) -> str:
    return _TAG_RE.sub("", html).strip()


def _record_email(to_address: str, subject: str, template_name: str | None, status: str, error: str | None = None) -> None:
    db.session.add(EmailLog(
        to_email=to_address,
        subject=subject,
        template_name=template_name,
        status=status,
        error_message=error,
    ))
    db.session.commit()


def _deliver(message: EmailMessage) -> None:
    cfg = current_app.config
    host = cfg.get("MAIL_SERVER")
    port = cfg.get("MAIL_PORT", 587)
    timeout = cfg.get("MAIL_TIMEOUT", 10)

    if cfg.get("MAIL_USE_SSL"):
        smtp = smtplib.SMTP_SSL(host, port, timeout=timeout)
    else:
        smtp = smtplib.SMTP(host, port, timeout=timeout)

    with smtp:
        if cfg.get("MAIL_USE_TLS") and not cfg.get("MAIL_USE_SSL"):
            smtp.starttls()
        if cfg.get("MAIL_USERNAME"):
            smtp.login(cfg["MAIL_USERNAME"], cfg.get("MAIL_PASSWORD") or "")
        smtp.send_message(message)


def send_email(
    to_address: str,
    subject: str,
    html_body: str,
    text_body: str | None = None,
    template_name: str | None = "CUSTOM",
) -> None:
    """
    Send one email and record the attempt in email_logs.

    Raises EmailDeliveryError when SMTP is not configured or the transport fails.
    """
    cfg = current_app.config

    if not cfg.get("MAIL_SERVER"):
        _record_email(to_address, subject, template_name, "FAILED", "SMTP settings not configured")
        raise EmailDeliveryError("SMTP settings not configured")

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = formataddr((cfg.get("MAIL_FROM_NAME") or "", cfg.get("MAIL_FROM_EMAIL") or ""))
    message["To"] = to_address
    message.set_content(text_body or html_to_text(html_body))
    message.add_alternative(html_body, subtype="html")

    try:
        _deliver(message)
    except (smtplib.SMTPException, OSError) as exc:
        _record_email(to_address, subject, template_name, "FAILED", str(exc))
        raise EmailDeliveryError(str(exc)) from exc

    _record_email(to_address, subject, template_name, "SENT")


# ---------------------------------------------------------------------------
# Account notifications (owner-scoped)
# ---------------------------------------------------------------------------

def list_notifications(user_id: int, page: int = 1) -> dict:
    page = max(page, 1)
    query = db.session.query(Notification).filter_by(user_id=user_id)
    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * NOTIFICATIONS_PAGE_SIZE)
        .limit(NOTIFICATIONS_PAGE_SIZE)
        .all()
    )
    return {
        "notifications": [n.to_dict() for n in items],
        "total": total,
        "page": page,
        "total_pages": max((total + NOTIFICATIONS_PAGE_SIZE - 1) // NOTIFICATIONS_PAGE_SIZE, 1),
        "unread_count": unread_count(user_id),
    }


def unread_count(user_id: int) -> int:
    return db.session.query(Notification).filter_by(user_id=user_id, is_read=False).count()


def mark_all_read(user_id: int) -> int:
    updated = (
        db.session.query(Notification)
        .filter_by(user_id=user_id, is_read=False)
        .update({"is_read": True}, synchronize_session=False)
    )
    db.session.commit()
    return updated


def _get_owned(notification_id: int, user_id: int) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")
    if notification.user_id != user_id:
        raise ForbiddenError("Not your notification")
    return notification


def mark_read(notification_id: int, user_id: int) -> Notification:
    notification = _get_owned(notification_id, user_id)
    notification.is_read = True
    db.session.commit()
    return notification


def delete_notification(notification_id: int, user_id: int) -> None:
    notification = _get_owned(notification_id, user_id)
    db.session.delete(notification)
    db.session.commit()
