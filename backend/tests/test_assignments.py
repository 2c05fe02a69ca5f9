"""
Assign-to-business workflow tests.

A request assigns either one in-stock serial number or a quantity of a
non-serialized product. Every check runs before anything is written.
"""

import pytest

from businesshub.models import BusinessProduct, Product, ProductInstance
from businesshub.services import assignment_service, business_product_service
from businesshub.services.assignment_service import (
    AssignmentError,
    SerializedAssignment,
    QuantityAssignment,
    parse_assignment,
)
from businesshub.services.business_product_service import SERIALIZED_PRODUCT_ERROR
from businesshub.validation import ValidationError, NotFoundError
from businesshub.time_utils import parse_iso_datetime


@pytest.fixture
def in_stock_instance(db_session, org_a, serialized_product_a):
    instance = ProductInstance(
        org_id=org_a.id,
        product_id=serialized_product_a.id,
        serial_number="FW-0001",
        status="in-stock",
    )
    db_session.add(instance)
    db_session.commit()
    return instance


class TestParseAssignment:

    def test_product_required(self, db_session, org_a):
        with pytest.raises(AssignmentError, match="Please select a product"):
            parse_assignment({}, org_id=org_a.id)

    def test_serialized_needs_serial(self, db_session, org_a, serialized_product_a):
        with pytest.raises(AssignmentError, match="Please select a serial number for this product"):
            parse_assignment({"product_id": serialized_product_a.id}, org_id=org_a.id)

    def test_serial_must_match_product(self, db_session, org_a, serialized_product_a, in_stock_instance):
        other = Product(org_id=org_a.id, name="Switch", is_serialized=True)
        db_session.add(other)
        db_session.commit()

        with pytest.raises(AssignmentError, match="Serial number mismatch"):
            parse_assignment({"product_id": other.id, "instance_id": in_stock_instance.id}, org_id=org_a.id)

    def test_serial_must_be_in_stock(self, db_session, org_a, serialized_product_a, in_stock_instance, business_a):
        in_stock_instance.status = "on-car"
        in_stock_instance.business_id = business_a.id
        db_session.commit()

        with pytest.raises(AssignmentError, match="Serial number is not available for assignment"):
            parse_assignment(
                {"product_id": serialized_product_a.id, "instance_id": in_stock_instance.id},
                org_id=org_a.id,
            )

    def test_non_serialized_rejects_serial(self, db_session, org_a, plain_product_a, in_stock_instance):
        with pytest.raises(AssignmentError, match="Non-serialized product cannot have a serial number selected."):
            parse_assignment(
                {"product_id": plain_product_a.id, "instance_id": in_stock_instance.id},
                org_id=org_a.id,
            )

    @pytest.mark.parametrize("quantity", [0, -2, "0"])
    def test_quantity_at_least_one(self, db_session, org_a, plain_product_a, quantity):
        with pytest.raises(AssignmentError, match="Quantity must be at least 1"):
            parse_assignment({"product_id": plain_product_a.id, "quantity": quantity}, org_id=org_a.id)

    @pytest.mark.parametrize("quantity", ["lots", "2.5", "+-3", 1.5])
    def test_quantity_must_be_integer(self, db_session, org_a, plain_product_a, quantity):
        with pytest.raises(AssignmentError, match="quantity must be an integer"):
            parse_assignment({"product_id": plain_product_a.id, "quantity": quantity}, org_id=org_a.id)

    @pytest.mark.parametrize("quantity,expected", [("+3", 3), (" 4 ", 4), (7, 7)])
    def test_quantity_accepts_signed_strings(self, db_session, org_a, plain_product_a, quantity, expected):
        parsed = parse_assignment({"product_id": plain_product_a.id, "quantity": quantity}, org_id=org_a.id)
        assert parsed.quantity == expected

    def test_quantity_capped(self, db_session, org_a, plain_product_a):
        with pytest.raises(AssignmentError, match="Quantity cannot exceed 1,000,000"):
            parse_assignment({"product_id": plain_product_a.id, "quantity": 2**63}, org_id=org_a.id)

    def test_product_id_must_be_integer(self, db_session, org_a):
        with pytest.raises(AssignmentError, match="product_id must be an integer"):
            parse_assignment({"product_id": "abc"}, org_id=org_a.id)

    def test_serialized_defaults_to_sold(self, db_session, org_a, serialized_product_a, in_stock_instance):
        parsed = parse_assignment(
            {"product_id": str(serialized_product_a.id), "instance_id": str(in_stock_instance.id)},
            org_id=org_a.id,
        )
        assert isinstance(parsed, SerializedAssignment)
        assert parsed.status == "sold"

    def test_serialized_status_must_leave_stock(self, db_session, org_a, serialized_product_a, in_stock_instance):
        with pytest.raises(AssignmentError, match="status must be one of"):
            parse_assignment(
                {
                    "product_id": serialized_product_a.id,
                    "instance_id": in_stock_instance.id,
                    "status": "returned",
                },
                org_id=org_a.id,
            )

    def test_quantity_defaults_to_one(self, db_session, org_a, plain_product_a):
        parsed = parse_assignment({"product_id": plain_product_a.id}, org_id=org_a.id)
        assert isinstance(parsed, QuantityAssignment)
        assert parsed.quantity == 1

    def test_assignment_error_is_validation_error(self):
        assert issubclass(AssignmentError, ValidationError)


class TestAssignToBusiness:

    def test_serialized_without_serial_changes_nothing(
        self, client, db_session, admin_headers, business_a, serialized_product_a, in_stock_instance
    ):
        resp = client.post(
            f"/api/businesses/{business_a.id}/assignments",
            json={"product_id": serialized_product_a.id},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Please select a serial number for this product"

        db_session.refresh(in_stock_instance)
        assert in_stock_instance.status == "in-stock"
        assert in_stock_instance.business_id is None
        assert db_session.query(BusinessProduct).count() == 0

    def test_serial_assignment_sells_unit(
        self, client, db_session, admin_headers, business_a, serialized_product_a, in_stock_instance
    ):
        resp = client.post(
            f"/api/businesses/{business_a.id}/assignments",
            json={"product_id": serialized_product_a.id, "instance_id": in_stock_instance.id},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["assignment"]["kind"] == "serialized"
        assert data["assignment"]["instance"]["status"] == "sold"
        assert data["assignment"]["instance"]["sold_date"] is not None
        assert data["assignment"]["instance"]["warranty_expiry"] is not None
        assert [i["serial_number"] for i in data["business"]["product_instances"]] == ["FW-0001"]

    def test_quantity_assignment_snapshots_price(
        self, client, db_session, admin_headers, business_a, plain_product_a
    ):
        resp = client.post(
            f"/api/businesses/{business_a.id}/assignments",
            json={"product_id": plain_product_a.id, "quantity": 3},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        row = resp.get_json()["assignment"]["business_product"]
        assert resp.get_json()["assignment"]["created"] is True
        assert row["quantity"] == 3
        assert row["unit_price_cents"] == 5000
        assert row["line_total_cents"] == 15000
        assert row["line_total_display"] == "£150.00"

        rows = db_session.query(BusinessProduct).filter_by(business_id=business_a.id).all()
        assert len(rows) == 1

    def test_repeat_assignment_increments(
        self, db_session, org_a, admin_a, business_a, plain_product_a
    ):
        assignment_service.assign_to_business(
            business_id=business_a.id,
            payload={"product_id": plain_product_a.id, "quantity": 3},
            org_id=org_a.id,
            user_id=admin_a.id,
        )

        # A catalog price change does not touch the snapshot
        plain_product_a.price_cents = 9900
        db_session.commit()

        result = assignment_service.assign_to_business(
            business_id=business_a.id,
            payload={"product_id": plain_product_a.id, "quantity": 2},
            org_id=org_a.id,
            user_id=admin_a.id,
        )
        assert result["assignment"]["created"] is False

        rows = db_session.query(BusinessProduct).filter_by(business_id=business_a.id).all()
        assert len(rows) == 1
        assert rows[0].quantity == 5
        assert rows[0].unit_price_cents == 5000

    def test_taken_serial_is_rejected(
        self, client, db_session, admin_headers, business_a, serialized_product_a, in_stock_instance
    ):
        body = {"product_id": serialized_product_a.id, "instance_id": in_stock_instance.id}
        assert client.post(
            f"/api/businesses/{business_a.id}/assignments", json=body, headers=admin_headers
        ).status_code == 201

        resp = client.post(f"/api/businesses/{business_a.id}/assignments", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Serial number is not available for assignment"

    def test_assignment_options(
        self, client, admin_headers, business_a, plain_product_a, serialized_product_a, in_stock_instance
    ):
        resp = client.get(f"/api/businesses/{business_a.id}/assignment-options", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert [p["id"] for p in data["products"]] == [plain_product_a.id]
        assert [i["id"] for i in data["instances"]] == [in_stock_instance.id]
        assert data["assigned_products"] == []


class TestBusinessProductService:

    def test_serialized_product_rejected(self, db_session, org_a, business_a, serialized_product_a):
        with pytest.raises(ValidationError, match=SERIALIZED_PRODUCT_ERROR):
            business_product_service.assign_product(
                patch={"business_id": business_a.id, "product_id": serialized_product_a.id},
                org_id=org_a.id,
            )

    def test_assign_route_reports_created(self, client, admin_headers, business_a, plain_product_a):
        url = f"/api/businesses/{business_a.id}/products/{plain_product_a.id}"

        first = client.post(url, json={"quantity": 2}, headers=admin_headers)
        assert first.status_code == 201
        assert first.get_json()["created"] is True

        second = client.post(url, json={}, headers=admin_headers)
        assert second.status_code == 200
        assert second.get_json()["business_product"]["quantity"] == 3

    def test_remove_product(self, db_session, org_a, business_a, plain_product_a):
        business_product_service.assign_product(
            patch={"business_id": business_a.id, "product_id": plain_product_a.id},
            org_id=org_a.id,
        )
        assert business_product_service.remove_product_from_business(
            business_id=business_a.id, product_id=plain_product_a.id, org_id=org_a.id
        )
        assert db_session.query(BusinessProduct).count() == 0

        with pytest.raises(NotFoundError, match="Product is not assigned to this business"):
            business_product_service.remove_product_from_business(
                business_id=business_a.id, product_id=plain_product_a.id, org_id=org_a.id
            )

    def test_update_rejects_bad_date_range(self, db_session, org_a, business_a, plain_product_a):
        row, _ = business_product_service.assign_product(
            patch={
                "business_id": business_a.id,
                "product_id": plain_product_a.id,
                "valid_from": parse_iso_datetime("2026-01-01"),
            },
            org_id=org_a.id,
        )
        with pytest.raises(ValidationError):
            business_product_service.update_business_product(
                assignment_id=row["id"],
                patch={"valid_to": parse_iso_datetime("2025-01-01")},
                org_id=org_a.id,
            )

    def test_increment_past_cap_rejected(self, db_session, org_a, business_a, plain_product_a):
        row, _ = business_product_service.assign_product(
            patch={"business_id": business_a.id, "product_id": plain_product_a.id, "quantity": 999_999},
            org_id=org_a.id,
        )
        with pytest.raises(ValidationError, match="Total quantity cannot exceed 1,000,000"):
            business_product_service.assign_product(
                patch={"business_id": business_a.id, "product_id": plain_product_a.id, "quantity": 2},
                org_id=org_a.id,
            )
        db_session.rollback()
        assert db_session.get(BusinessProduct, row["id"]).quantity == 999_999

    def test_update_rejects_huge_quantity(self, client, db_session, org_a, admin_headers, business_a, plain_product_a):
        row, _ = business_product_service.assign_product(
            patch={"business_id": business_a.id, "product_id": plain_product_a.id},
            org_id=org_a.id,
        )
        resp = client.put(f"/api/business-products/{row['id']}", json={"quantity": 2**63}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Quantity cannot exceed 1,000,000"


class TestQuantityLimitRoutes:

    def test_assignment_route_rejects_huge_quantity(self, client, db_session, admin_headers, business_a, plain_product_a):
        resp = client.post(
            f"/api/businesses/{business_a.id}/assignments",
            json={"product_id": plain_product_a.id, "quantity": 2**63},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Quantity cannot exceed 1,000,000"
        assert db_session.query(BusinessProduct).count() == 0

    def test_assign_product_route_rejects_huge_quantity(self, client, admin_headers, business_a, plain_product_a):
        resp = client.post(
            f"/api/businesses/{business_a.id}/products/{plain_product_a.id}",
            json={"quantity": 2**63},
            headers=admin_headers,
        )
        assert resp.status_code == 400
