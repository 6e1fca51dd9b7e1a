"""
Notification dispatch and delivery tests.

Verifies:
- Status changes notify linked customers and email the order contact
- Walk-in orders skip the in-app channel
- A failing channel never undoes the committed transition
- Every email attempt is recorded in email_logs
- Users manage only their own notifications
"""

import logging
import smtplib

import pytest

from atelier.errors import ValidationError
from atelier.extensions import db
from atelier.models import BespokeOrder, BespokeStatusLog, EmailLog, Notification
from atelier.services import bespoke_service, notification_service
from atelier.services.bespoke_status import BespokeStatus
from atelier.services.notification_service import EmailDeliveryError


@pytest.fixture
def spies(monkeypatch):
    """Record notify/send_email calls instead of performing them."""
    calls = {"notify": [], "email": []}

    def fake_notify(user_id, title, body, category, link_url=None):
        calls["notify"].append({"user_id": user_id, "title": title, "body": body, "category": category, "link_url": link_url})

    def fake_send_email(to_address, subject, html_body, text_body=None, template_name="CUSTOM"):
        calls["email"].append({"to": to_address, "subject": subject, "html": html_body, "template_name": template_name})

    monkeypatch.setattr(notification_service, "notify", fake_notify)
    monkeypatch.setattr(notification_service, "send_email", fake_send_email)
    return calls


@pytest.fixture
def sent_messages(app, monkeypatch):
    """Configure SMTP and capture outgoing messages at the transport boundary."""
    outbox = []
    monkeypatch.setitem(app.config, "MAIL_SERVER", "smtp.atelier.test")
    monkeypatch.setitem(app.config, "MAIL_FROM_EMAIL", "orders@atelier.test")
    monkeypatch.setattr(notification_service, "_deliver", outbox.append)
    return outbox


# =============================================================================
# DISPATCH ON STATUS CHANGE
# =============================================================================


class TestStatusDispatch:

    def test_linked_order_notifies_customer_and_emails_contact(self, order, staff, customer, spies):
        bespoke_service.transition_status(order.id, "MEASUREMENT", staff, "customer measured in-store")

        assert len(spies["notify"]) == 1
        sent = spies["notify"][0]
        assert sent["user_id"] == customer.id
        assert sent["category"] == "BESPOKE"
        assert sent["link_url"] == "/account/orders"

        assert len(spies["email"]) == 1
        email = spies["email"][0]
        assert email["to"] == "amara.orders@example.com"
        assert email["subject"] == f"Bespoke Order {order.order_number} - MEASUREMENT"
        assert email["template_name"] == "BESPOKE_STATUS"
        assert "customer measured in-store" in email["html"]
        assert "https://atelier.test/account/orders" in email["html"]

    def test_walk_in_without_email_notifies_nobody(self, walk_in_order, admin, spies):
        updated = bespoke_service.transition_status(walk_in_order.id, "PRODUCTION", admin)

        assert updated.status == "PRODUCTION"
        assert db.session.query(BespokeStatusLog).filter_by(bespoke_order_id=walk_in_order.id).count() == 2
        assert spies["notify"] == []
        assert spies["email"] == []

    def test_walk_in_with_email_gets_email_only(self, db_session, staff, admin, spies):
        walk_in = bespoke_service.create_order(
            {"customer_name": "Kemi Walker", "customer_phone": "08031112222", "customer_email": "kemi@example.com"},
            staff,
        )
        bespoke_service.transition_status(walk_in.id, "PRODUCTION", admin)

        assert spies["notify"] == []
        assert [e["to"] for e in spies["email"]] == ["kemi@example.com"]

    def test_email_falls_back_to_account_address(self, customer, staff, spies):
        linked = bespoke_service.create_order(
            {"customer_name": customer.name, "customer_phone": "08030000001", "user_id": customer.id},
            staff,
        )
        bespoke_service.transition_status(linked.id, "DESIGN", staff)
        assert [e["to"] for e in spies["email"]] == ["amara@example.com"]

    def test_note_is_escaped_in_email(self, order, staff, spies):
        bespoke_service.transition_status(order.id, "FITTING", staff, "<b>bring shoes</b>")
        html = spies["email"][0]["html"]
        assert "&lt;b&gt;bring shoes&lt;/b&gt;" in html
        assert "<b>bring shoes</b>" not in html


class TestDispatchFailureIsolation:

    def test_failing_notification_does_not_undo_transition(self, order, staff, monkeypatch, caplog):
        def broken_notify(*args, **kwargs):
            raise RuntimeError("notifications table locked")

        monkeypatch.setattr(notification_service, "notify", broken_notify)

        with caplog.at_level(logging.WARNING):
            updated = bespoke_service.transition_status(order.id, "DESIGN", staff)

        assert updated.status == "DESIGN"
        db.session.expire_all()
        assert db.session.get(BespokeOrder, order.id).status == "DESIGN"
        assert db.session.query(BespokeStatusLog).filter_by(bespoke_order_id=order.id).count() == 2
        assert "In-app notification failed" in caplog.text
        assert "notifications table locked" in caplog.text

    def test_unconfigured_smtp_logs_failure_and_keeps_transition(self, order, staff, customer, caplog):
        with caplog.at_level(logging.WARNING):
            bespoke_service.transition_status(order.id, "COMPLETED", staff)

        db.session.expire_all()
        assert db.session.get(BespokeOrder, order.id).status == "COMPLETED"
        assert db.session.query(Notification).filter_by(user_id=customer.id).count() == 1

        log = db.session.query(EmailLog).one()
        assert log.status == "FAILED"
        assert log.to_email == "amara.orders@example.com"
        assert log.template_name == "BESPOKE_STATUS"
        assert log.error_message == "SMTP settings not configured"
        assert "Status email failed" in caplog.text

    def test_transport_error_logs_failure(self, app, order, staff, monkeypatch):
        monkeypatch.setitem(app.config, "MAIL_SERVER", "smtp.atelier.test")

        def refuse(message):
            raise smtplib.SMTPServerDisconnected("connection dropped")

        monkeypatch.setattr(notification_service, "_deliver", refuse)

        bespoke_service.transition_status(order.id, "CANCELLED", staff)

        log = db.session.query(EmailLog).one()
        assert log.status == "FAILED"
        assert "connection dropped" in log.error_message

    def test_failing_recipient_lookup_is_logged_not_raised(self, db_session, spies, caplog):
        class DetachedOrder:
            id = 77
            order_number = "BSP-20261019-0007"
            user_id = 3
            customer_email = None
            customer_name = None

            @property
            def user(self):
                raise RuntimeError("database is locked")

        with caplog.at_level(logging.WARNING):
            bespoke_service.dispatch_status_notifications(DetachedOrder(), BespokeStatus.FITTING)

        assert spies == {"notify": [], "email": []}
        assert "Recipient lookup failed" in caplog.text
        assert "database is locked" in caplog.text


# =============================================================================
# DELIVERY PRIMITIVES
# =============================================================================


class TestSendEmail:

    def test_sent_email_is_logged(self, db_session, sent_messages):
        notification_service.send_email("kemi@example.com", "Fitting reminder", "<p>See you <b>Friday</b></p>")

        assert len(sent_messages) == 1
        message = sent_messages[0]
        assert message["To"] == "kemi@example.com"
        assert message["Subject"] == "Fitting reminder"
        assert message.get_body(preferencelist=("plain",)).get_content().strip() == "See you Friday"

        log = db.session.query(EmailLog).one()
        assert (log.status, log.template_name, log.error_message) == ("SENT", "CUSTOM", None)

    def test_missing_smtp_raises(self, db_session):
        with pytest.raises(EmailDeliveryError):
            notification_service.send_email("kemi@example.com", "Hi", "<p>Hi</p>")
        assert db.session.query(EmailLog).one().status == "FAILED"

    def test_html_to_text(self):
        assert notification_service.html_to_text("<h1>Hello</h1><p>there</p>") == "Hellothere"


class TestNotify:

    def test_creates_unread_notification(self, customer):
        created = notification_service.notify(customer.id, "Hello", "Welcome back", "SYSTEM")
        assert created.is_read is False
        assert notification_service.unread_count(customer.id) == 1

    def test_unknown_category(self, customer):
        with pytest.raises(ValidationError):
            notification_service.notify(customer.id, "Hello", "Welcome", "GOSSIP")


# =============================================================================
# ACCOUNT ENDPOINTS
# =============================================================================


class TestNotificationEndpoints:

    def test_list_and_unread_count(self, client, customer, customer_headers):
        for i in range(3):
            notification_service.notify(customer.id, f"Update {i}", "body", "BESPOKE")

        response = client.get("/api/notifications", headers=customer_headers)
        assert response.status_code == 200
        data = response.get_json()
        assert data["total"] == 3
        assert data["unread_count"] == 3
        assert data["total_pages"] == 1

        response = client.get("/api/notifications/unread-count", headers=customer_headers)
        assert response.get_json() == {"count": 3}

    def test_mark_one_and_all_read(self, client, customer, customer_headers):
        first = notification_service.notify(customer.id, "One", "body", "BESPOKE")
        notification_service.notify(customer.id, "Two", "body", "BESPOKE")
        first_id = first.id

        response = client.patch(f"/api/notifications/{first_id}", headers=customer_headers)
        assert response.status_code == 200
        assert response.get_json()["notification"]["is_read"] is True

        response = client.patch("/api/notifications", headers=customer_headers)
        assert response.get_json() == {"updated": 1}
        assert notification_service.unread_count(customer.id) == 0

    def test_cannot_touch_someone_elses_notification(self, client, staff, customer_headers):
        foreign = notification_service.notify(staff.id, "Staff only", "body", "PRODUCTION")

        assert client.patch(f"/api/notifications/{foreign.id}", headers=customer_headers).status_code == 403
        assert client.delete(f"/api/notifications/{foreign.id}", headers=customer_headers).status_code == 403
        assert client.delete("/api/notifications/99999", headers=customer_headers).status_code == 404

    def test_delete_own(self, client, customer, customer_headers):
        mine = notification_service.notify(customer.id, "Bye", "body", "SYSTEM")
        mine_id = mine.id
        response = client.delete(f"/api/notifications/{mine_id}", headers=customer_headers)
        assert response.status_code == 200
        assert db.session.get(Notification, mine_id) is None

    def test_requires_auth(self, client, db_session):
        assert client.get("/api/notifications").status_code == 401
