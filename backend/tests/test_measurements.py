"""Customer measurement sets: CRUD over HTTP and the in-use delete guard."""

import pytest

from atelier.errors import ConflictError, ValidationError
from atelier.extensions import db
from atelier.models import CustomerMeasurement
from atelier.services import bespoke_service, measurement_service


def _url(customer_id, measurement_id=None):
    base = f"/api/customers/{customer_id}/measurements"
    return f"{base}/{measurement_id}" if measurement_id else base


class TestMeasurementEndpoints:

    def test_create_and_list(self, client, customer, staff_headers):
        response = client.post(_url(customer.id), json={"chest": 40.5, "waist": "34", "measured_by": "Tunde"}, headers=staff_headers)
        assert response.status_code == 201
        created = response.get_json()["measurement"]
        assert created["label"] == "Default"
        assert created["chest"] == 40.5
        assert created["waist"] == 34.0

        client.post(_url(customer.id), json={"label": "Wedding suit", "inseam": 31}, headers=staff_headers)

        response = client.get(_url(customer.id), headers=staff_headers)
        assert response.status_code == 200
        labels = [m["label"] for m in response.get_json()["measurements"]]
        assert labels == ["Wedding suit", "Default"]

    def test_zero_means_not_measured(self, client, customer, staff_headers):
        response = client.post(_url(customer.id), json={"chest": 0, "hip": 38}, headers=staff_headers)
        created = response.get_json()["measurement"]
        assert created["chest"] is None
        assert created["hip"] == 38.0

    @pytest.mark.parametrize("payload,field", [
        ({"chest": -2}, "chest"),
        ({"neck": "wide"}, "neck"),
        ({"shoe_size": 9}, "shoe_size"),
        ({"neck": "nan"}, "neck"),
        ({"waist": "inf"}, "waist"),
    ])
    def test_rejects_invalid_values(self, client, customer, staff_headers, payload, field):
        response = client.post(_url(customer.id), json=payload, headers=staff_headers)
        assert response.status_code == 422
        assert field in response.get_json()["details"]

    def test_update(self, client, customer, staff, staff_headers):
        measurement = measurement_service.create_measurement(customer.id, {"chest": 40}, staff)
        response = client.patch(_url(customer.id, measurement.id), json={"chest": 41.5, "notes": "after fitting"}, headers=staff_headers)
        assert response.status_code == 200
        body = response.get_json()["measurement"]
        assert body["chest"] == 41.5
        assert body["notes"] == "after fitting"

    def test_empty_update_rejected(self, client, customer, staff, staff_headers):
        measurement = measurement_service.create_measurement(customer.id, {"chest": 40}, staff)
        response = client.patch(_url(customer.id, measurement.id), json={}, headers=staff_headers)
        assert response.status_code == 422

    def test_measurement_scoped_to_customer(self, client, customer, staff, other_staff, staff_headers):
        measurement = measurement_service.create_measurement(customer.id, {"chest": 40}, staff)
        response = client.patch(_url(other_staff.id, measurement.id), json={"chest": 39}, headers=staff_headers)
        assert response.status_code == 404

    def test_unknown_customer(self, client, staff_headers):
        assert client.get(_url(4040), headers=staff_headers).status_code == 404

    def test_customer_role_forbidden(self, client, customer, customer_headers):
        assert client.get(_url(customer.id), headers=customer_headers).status_code == 403

    def test_delete(self, client, customer, staff, staff_headers):
        measurement = measurement_service.create_measurement(customer.id, {"chest": 40}, staff)
        measurement_id = measurement.id
        response = client.delete(_url(customer.id, measurement_id), headers=staff_headers)
        assert response.status_code == 200
        assert db.session.get(CustomerMeasurement, measurement_id) is None


class TestMeasurementOnOrders:

    def test_order_may_reference_customer_measurement(self, customer, staff):
        measurement = measurement_service.create_measurement(customer.id, {"chest": 40}, staff)
        order = bespoke_service.create_order({
            "customer_name": customer.name,
            "customer_phone": "08030000001",
            "user_id": customer.id,
            "measurement_id": measurement.id,
        }, staff)
        detail = bespoke_service.order_detail(order)
        assert detail["measurement"]["chest"] == 40.0

    def test_referenced_measurement_cannot_be_deleted(self, customer, staff):
        measurement = measurement_service.create_measurement(customer.id, {"chest": 40}, staff)
        bespoke_service.create_order({
            "customer_name": customer.name,
            "customer_phone": "08030000001",
            "user_id": customer.id,
            "measurement_id": measurement.id,
        }, staff)
        with pytest.raises(ConflictError):
            measurement_service.delete_measurement(customer.id, measurement.id, staff)

    def test_measurement_of_another_customer_rejected(self, customer, staff, other_staff):
        measurement = measurement_service.create_measurement(other_staff.id, {"chest": 40}, staff)
        with pytest.raises(ValidationError) as exc:
            bespoke_service.create_order({
                "customer_name": customer.name,
                "customer_phone": "08030000001",
                "user_id": customer.id,
                "measurement_id": measurement.id,
            }, staff)
        assert "measurement_id" in exc.value.details
