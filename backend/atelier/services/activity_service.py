# Overview: Best-effort activity trail written after business transactions commit.

from __future__ import annotations

import json

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog


def log_activity(
    user_id: int | None,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    metadata: dict | None = None,
) -> ActivityLog | None:
    """
    Append one ActivityLog row and commit it.

    Called after the domain transaction has committed, so a failure here
    cannot undo the operation being recorded. Failures are logged and
    rolled back; None is returned.
    """
    metadata_json = None
    if metadata:
        try:
            metadata_json = json.dumps(metadata, default=str)
        except (TypeError, ValueError):
            metadata_json = str(metadata)

    try:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata_json=metadata_json,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Failed to log activity %s on %s %s: %s", action, entity_type, entity_id, exc)
        return None


def list_activity(entity_type: str, entity_id: int, limit: int = 100) -> list[ActivityLog]:
    return (
        db.session.query(ActivityLog)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )
