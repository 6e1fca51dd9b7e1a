"""
Bespoke order service tests.

Verifies:
- Creation writes the initial log row
- Every transition appends exactly one log row, atomically
- Completion date pairs with DELIVERED
- No-op transitions write nothing and notify nobody
- Delivered orders cannot be deleted; others cascade
"""

import json

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from atelier.errors import ConflictError, ForbiddenError, NoOpTransitionError, NotFoundError, ValidationError
from atelier.extensions import db
from atelier.models import ActivityLog, BespokeOrder, BespokeStatusLog, Notification, ProductionTask
from atelier.services import bespoke_service, notification_service, production_service


def _logs(order_id):
    return (
        db.session.query(BespokeStatusLog)
        .filter_by(bespoke_order_id=order_id)
        .order_by(BespokeStatusLog.id)
        .all()
    )


# =============================================================================
# CREATE / UPDATE
# =============================================================================


class TestCreateOrder:

    def test_starts_in_inquiry_with_initial_log(self, order, staff):
        assert order.status == "INQUIRY"
        assert order.order_number.startswith("BSP-")
        assert order.actual_completion_date is None

        logs = _logs(order.id)
        assert len(logs) == 1
        assert logs[0].old_status == ""
        assert logs[0].new_status == "INQUIRY"
        assert logs[0].note == "Order created"
        assert logs[0].changed_by_user_id == staff.id

    def test_records_activity(self, order, staff):
        entry = db.session.query(ActivityLog).filter_by(action="CREATE_BESPOKE_ORDER").one()
        assert entry.user_id == staff.id
        assert entry.entity_id == order.id
        assert json.loads(entry.metadata_json)["order_number"] == order.order_number

    def test_order_numbers_are_unique(self, db_session, staff):
        numbers = {
            bespoke_service.create_order({"customer_name": f"Guest {i}", "customer_phone": "0803000000"}, staff).order_number
            for i in range(5)
        }
        assert len(numbers) == 5

    @pytest.mark.parametrize("payload,field", [
        ({"customer_phone": "08030000001"}, "customer_name"),
        ({"customer_name": "A", "customer_phone": "08030000001"}, "customer_name"),
        ({"customer_name": "Amara", "customer_phone": "123"}, "customer_phone"),
        ({"customer_name": "Amara", "customer_phone": "08030000001", "customer_email": "nope"}, "customer_email"),
        ({"customer_name": "Amara", "customer_phone": "08030000001", "final_price_cents": 0}, "final_price_cents"),
        ({"customer_name": "Amara", "customer_phone": "08030000001", "status": "DELIVERED"}, "status"),
    ])
    def test_rejects_invalid_payload(self, db_session, staff, payload, field):
        with pytest.raises(ValidationError) as exc:
            bespoke_service.create_order(payload, staff)
        assert field in exc.value.details
        assert db.session.query(BespokeOrder).count() == 0

    def test_unknown_customer_is_rejected(self, db_session, staff):
        with pytest.raises(ValidationError) as exc:
            bespoke_service.create_order(
                {"customer_name": "Ghost", "customer_phone": "08030000001", "user_id": 9999}, staff
            )
        assert "user_id" in exc.value.details


class TestUpdateOrder:

    def test_partial_update(self, order, staff):
        updated = bespoke_service.update_order(order.id, {"deposit_paid": True, "fabric_details": "Aso-oke, navy"}, staff)
        assert updated.deposit_paid is True
        assert updated.status == "INQUIRY"
        assert updated.fabric_details == "Aso-oke, navy"

    def test_form_string_false_leaves_deposit_unpaid(self, order, staff):
        updated = bespoke_service.update_order(order.id, {"deposit_paid": "false"}, staff)
        assert updated.deposit_paid is False

    @pytest.mark.parametrize("value", ["no", "paid", "", 2, 1.0])
    def test_non_boolean_deposit_paid_rejected(self, order, staff, value):
        with pytest.raises(ValidationError) as exc:
            bespoke_service.update_order(order.id, {"deposit_paid": value}, staff)
        assert exc.value.details == {"deposit_paid": "must be a boolean"}
        db.session.expire_all()
        assert db.session.get(BespokeOrder, order.id).deposit_paid is False

    @pytest.mark.parametrize("field", ["status", "order_number", "actual_completion_date"])
    def test_status_and_system_fields_are_not_writable(self, order, staff, field):
        with pytest.raises(ValidationError):
            bespoke_service.update_order(order.id, {field: "DELIVERED"}, staff)

    def test_missing_order(self, db_session, staff):
        with pytest.raises(NotFoundError):
            bespoke_service.update_order(424242, {"deposit_paid": True}, staff)


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestTransitionStatus:

    def test_scenario_measurement_with_note(self, order, staff, customer):
        updated = bespoke_service.transition_status(order.id, "MEASUREMENT", staff, "customer measured in-store")

        assert updated.status == "MEASUREMENT"
        logs = _logs(order.id)
        assert len(logs) == 2
        assert (logs[-1].old_status, logs[-1].new_status) == ("INQUIRY", "MEASUREMENT")
        assert logs[-1].note == "customer measured in-store"

        notification = db.session.query(Notification).filter_by(user_id=customer.id).one()
        assert notification.type == "BESPOKE"
        assert notification.title == f"Bespoke Order {order.order_number} Update"
        assert notification.link_url == "/account/orders"
        assert "ready for measurements" in notification.message

    def test_log_completeness_across_many_transitions(self, order, staff):
        path = ["CONSULTATION", "DESIGN", "CONSULTATION", "PRODUCTION", "FITTING", "CANCELLED"]
        for status in path:
            bespoke_service.transition_status(order.id, status, staff)
            db.session.refresh(order)
            assert _logs(order.id)[-1].new_status == order.status

        logs = _logs(order.id)
        assert len(logs) == len(path) + 1
        assert [log.new_status for log in logs] == ["INQUIRY", *path]
        for previous, current in zip(logs, logs[1:]):
            assert current.old_status == previous.new_status

    def test_noop_writes_nothing_and_notifies_nobody(self, order, staff, monkeypatch):
        calls = []
        monkeypatch.setattr(notification_service, "notify", lambda *a, **k: calls.append(a))
        monkeypatch.setattr(notification_service, "send_email", lambda *a, **k: calls.append(a))

        with pytest.raises(NoOpTransitionError):
            bespoke_service.transition_status(order.id, "INQUIRY", staff)

        assert len(_logs(order.id)) == 1
        assert calls == []

    def test_unknown_status(self, order, staff):
        with pytest.raises(ValidationError) as exc:
            bespoke_service.transition_status(order.id, "SHIPPED", staff)
        assert "status" in exc.value.details
        assert len(_logs(order.id)) == 1

    def test_missing_order(self, db_session, staff):
        with pytest.raises(NotFoundError):
            bespoke_service.transition_status(31337, "DESIGN", staff)

    def test_delivered_pairs_with_completion_date(self, order, admin):
        delivered = bespoke_service.transition_status(order.id, "DELIVERED", admin)
        assert delivered.actual_completion_date is not None

        reopened = bespoke_service.transition_status(order.id, "FINAL_ADJUSTMENTS", admin)
        assert reopened.actual_completion_date is None

    def test_completion_date_absent_for_other_statuses(self, order, staff):
        for status in ["CONSULTATION", "COMPLETED", "CANCELLED"]:
            updated = bespoke_service.transition_status(order.id, status, staff)
            assert updated.actual_completion_date is None

    def test_failure_between_status_write_and_log_rolls_back(self, order, staff, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(bespoke_service, "append_status_log", boom)

        with pytest.raises(RuntimeError):
            bespoke_service.transition_status(order.id, "DESIGN", staff)

        db.session.expire_all()
        assert db.session.get(BespokeOrder, order.id).status == "INQUIRY"
        assert len(_logs(order.id)) == 1

    def test_version_id_advances_on_transition(self, order, staff):
        assert order.version_id == 1
        updated = bespoke_service.transition_status(order.id, "DESIGN", staff)
        assert updated.version_id == 2

    def test_stale_write_is_rejected_not_overwritten(self, order, staff, monkeypatch):
        assert order.version_id == 1
        # Another writer bumps the row behind this session's back
        db.session.execute(
            text("UPDATE bespoke_orders SET version_id = version_id + 1 WHERE id = :id"),
            {"id": order.id},
        )
        monkeypatch.setattr(bespoke_service, "_get_order_or_404", lambda order_id, lock=False: order)

        with pytest.raises(StaleDataError):
            bespoke_service.transition_status(order.id, "DESIGN", staff)

        db.session.expire_all()
        assert db.session.get(BespokeOrder, order.id).status == "INQUIRY"
        assert len(_logs(order.id)) == 1

    def test_note_length_is_bounded(self, order, staff):
        with pytest.raises(ValidationError) as exc:
            bespoke_service.transition_status(order.id, "DESIGN", staff, note="x" * 2001)
        assert "note" in exc.value.details

    def test_records_activity(self, order, staff):
        bespoke_service.transition_status(order.id, "DESIGN", staff)
        entry = db.session.query(ActivityLog).filter_by(action="UPDATE_BESPOKE_STATUS").one()
        meta = json.loads(entry.metadata_json)
        assert (meta["from"], meta["to"]) == ("INQUIRY", "DESIGN")


class TestStatusLogImmutable:

    def test_existing_log_rows_cannot_be_updated(self, order):
        log = _logs(order.id)[0]
        log.note = "rewritten history"
        with pytest.raises(ValueError):
            db.session.commit()
        db.session.rollback()
        assert _logs(order.id)[0].note == "Order created"


# =============================================================================
# DELETE
# =============================================================================


class TestDeleteOrder:

    def test_delivered_order_cannot_be_deleted(self, order, admin):
        bespoke_service.transition_status(order.id, "DELIVERED", admin)
        with pytest.raises(ConflictError):
            bespoke_service.delete_order(order.id, admin)
        assert db.session.get(BespokeOrder, order.id) is not None

    def test_cancelled_order_is_deleted_with_children(self, order, admin, staff):
        production_service.create_task(order.id, {"title": "Cut fabric", "stage": "CUTTING"}, staff)
        bespoke_service.transition_status(order.id, "CANCELLED", admin)
        order_id = order.id

        bespoke_service.delete_order(order_id, admin)

        assert db.session.get(BespokeOrder, order_id) is None
        assert db.session.query(ProductionTask).filter_by(bespoke_order_id=order_id).count() == 0
        assert db.session.query(BespokeStatusLog).filter_by(bespoke_order_id=order_id).count() == 0
        assert db.session.query(ActivityLog).filter_by(action="DELETE_BESPOKE_ORDER", entity_id=order_id).count() == 1

    def test_staff_cannot_delete(self, order, staff):
        with pytest.raises(ForbiddenError):
            bespoke_service.delete_order(order.id, staff)

    def test_missing_order(self, db_session, super_admin):
        with pytest.raises(NotFoundError):
            bespoke_service.delete_order(99999, super_admin)


# =============================================================================
# LIST / DETAIL
# =============================================================================


class TestListOrders:

    def test_filters_search_and_counts(self, order, walk_in_order, staff):
        bespoke_service.transition_status(order.id, "DESIGN", staff)
        production_service.create_task(order.id, {"title": "Cut", "stage": "CUTTING"}, staff)

        result = bespoke_service.list_orders(status="DESIGN")
        assert result["total"] == 1
        assert result["orders"][0]["id"] == order.id
        assert result["orders"][0]["task_count"] == 1
        assert result["status_counts"] == {"DESIGN": 1, "INQUIRY": 1}

        assert bespoke_service.list_orders(status="ALL")["total"] == 2
        assert bespoke_service.list_orders(search="walk")["orders"][0]["id"] == walk_in_order.id
        assert bespoke_service.list_orders(search=order.order_number.lower())["total"] == 1

    def test_limit_is_clamped(self, order):
        result = bespoke_service.list_orders(limit=500, page=0)
        assert result["limit"] == 50
        assert result["page"] == 1

    def test_unknown_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            bespoke_service.list_orders(status="LOST")


class TestOrderDetail:

    def test_includes_tasks_and_history(self, order, staff):
        production_service.create_task(order.id, {"title": "Sew", "stage": "SEWING", "assigned_to_id": staff.id}, staff)
        bespoke_service.transition_status(order.id, "PRODUCTION", staff)

        detail = bespoke_service.order_detail(bespoke_service.get_order(order.id))

        assert detail["user"]["email"] == "amara@example.com"
        assert detail["tasks"][0]["assigned_to"] == {"id": staff.id, "name": staff.name}
        assert [log["new_status"] for log in detail["status_logs"]] == ["PRODUCTION", "INQUIRY"]
        assert detail["status_logs"][0]["changed_by"] == {"id": staff.id, "name": staff.name}
