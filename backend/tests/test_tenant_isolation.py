# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

These tests create two organizations with separate users, businesses and
products, then verify that:
1. An admin of Organization A cannot read or write rows of Organization B
2. Foreign ids inside payloads are rejected
3. Cross-tenant lookups answer "not found" (never revealing existence)
4. Security events are logged for cross-tenant access attempts
"""

import pytest

from businesshub.models import Business, Product, ProductInstance, SecurityEvent, Task
from businesshub.services.tenant_service import (
    require_entity_in_org, TenantAccessError, scoped_query, validate_org_active,
)
from businesshub.services import business_service


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_entity_in_org_valid(self, db_session, org_a, business_a):
        result = require_entity_in_org(Business, business_a.id, org_a.id, "Business")
        assert result.id == business_a.id

    def test_require_entity_in_org_cross_tenant(self, db_session, org_a, business_b):
        with pytest.raises(TenantAccessError, match="Business not found"):
            require_entity_in_org(Business, business_b.id, org_a.id, "Business")

    def test_require_entity_in_org_nonexistent(self, db_session, org_a):
        with pytest.raises(TenantAccessError, match="Business not found"):
            require_entity_in_org(Business, 99999, org_a.id, "Business")

    def test_cross_tenant_access_logs_security_event(self, db_session, app, org_a, business_b):
        """Cross-tenant access attempt is logged."""
        initial_count = db_session.query(SecurityEvent).filter_by(
            event_type="CROSS_TENANT_ACCESS_DENIED"
        ).count()

        with app.test_request_context():
            with pytest.raises(TenantAccessError):
                require_entity_in_org(Business, business_b.id, org_a.id, "Business")

        final_count = db_session.query(SecurityEvent).filter_by(
            event_type="CROSS_TENANT_ACCESS_DENIED"
        ).count()
        assert final_count == initial_count + 1

    def test_unknown_id_is_not_logged_as_cross_tenant(self, db_session, app, org_a):
        with app.test_request_context():
            with pytest.raises(TenantAccessError):
                require_entity_in_org(Business, 424242, org_a.id, "Business")

        assert db_session.query(SecurityEvent).filter_by(
            event_type="CROSS_TENANT_ACCESS_DENIED"
        ).count() == 0

    def test_scoped_query(self, db_session, org_a, org_b, business_a, business_b):
        rows = scoped_query(Business, org_a.id).all()
        assert [b.id for b in rows] == [business_a.id]

    def test_validate_org_active(self, db_session, org_a):
        assert validate_org_active(org_a.id).id == org_a.id

        org_a.is_active = False
        db_session.commit()
        with pytest.raises(TenantAccessError):
            validate_org_active(org_a.id)


class TestBusinessIsolation:

    def test_list_only_own_businesses(self, client, admin_headers, business_a, business_b):
        resp = client.get("/api/businesses", headers=admin_headers)
        assert resp.status_code == 200
        names = [b["name"] for b in resp.get_json()["items"]]
        assert names == ["Harbour Dental"]

    def test_cannot_read_foreign_business(self, client, admin_headers, business_b):
        resp = client.get(f"/api/businesses/{business_b.id}", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Business not found"

    def test_cannot_update_foreign_business(self, client, db_session, admin_headers, business_b):
        resp = client.put(
            f"/api/businesses/{business_b.id}",
            json={"name": "Hijacked"},
            headers=admin_headers,
        )
        assert resp.status_code == 404
        db_session.refresh(business_b)
        assert business_b.name == "Beta Bakery"

    def test_cannot_delete_foreign_business(self, client, db_session, admin_headers, business_b):
        resp = client.delete(f"/api/businesses/{business_b.id}", headers=admin_headers)
        assert resp.status_code == 404
        assert db_session.get(Business, business_b.id) is not None

    def test_cannot_add_contact_to_foreign_business(self, client, admin_headers, business_b):
        resp = client.post(
            f"/api/businesses/{business_b.id}/contacts",
            json={"name": "Intruder"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_foreign_lookup_is_logged_with_caller(self, client, db_session, admin_a, admin_headers, business_b):
        client.get(f"/api/businesses/{business_b.id}", headers=admin_headers)
        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").first()
        assert event is not None
        assert event.user_id == admin_a.id
        assert event.resource == f"/api/businesses/{business_b.id}"

    def test_service_rejects_foreign_business(self, db_session, org_a, business_b):
        with pytest.raises(TenantAccessError):
            business_service.get_business_bundle(business_b.id, org_a.id)


class TestInventoryIsolation:

    def test_cannot_read_foreign_product(self, client, admin_headers, product_b):
        resp = client.get(f"/api/products/{product_b.id}", headers=admin_headers)
        assert resp.status_code == 404

    def test_cannot_create_instance_of_foreign_product(self, client, db_session, admin_headers, product_b):
        resp = client.post(
            "/api/product-instances",
            json={"product_id": product_b.id, "serial_number": "SN-X"},
            headers=admin_headers,
        )
        assert resp.status_code == 404
        assert db_session.query(ProductInstance).count() == 0

    def test_cannot_assign_foreign_product(self, client, db_session, admin_headers, business_a, product_b):
        resp = client.post(
            f"/api/businesses/{business_a.id}/assignments",
            json={"product_id": product_b.id},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_cannot_assign_to_foreign_business(self, client, admin_headers, business_b, plain_product_a):
        resp = client.post(
            f"/api/businesses/{business_b.id}/assignments",
            json={"product_id": plain_product_a.id, "quantity": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_instances_list_is_scoped(self, client, db_session, admin_headers, org_b, product_b):
        db_session.add(ProductInstance(org_id=org_b.id, product_id=product_b.id, serial_number="B-1"))
        db_session.commit()

        resp = client.get("/api/product-instances", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["items"] == []

    def test_same_serial_allowed_in_each_org(self, client, db_session, admin_headers, org_b, product_b, serialized_product_a):
        db_session.add(ProductInstance(org_id=org_b.id, product_id=product_b.id, serial_number="SHARED-1"))
        db_session.commit()

        resp = client.post(
            "/api/product-instances",
            json={"product_id": serialized_product_a.id, "serial_number": "SHARED-1"},
            headers=admin_headers,
        )
        assert resp.status_code == 201


class TestOtherResourceIsolation:

    def test_cannot_quote_foreign_business(self, client, admin_headers, business_b):
        resp = client.post(
            "/api/quotes",
            json={"business_id": business_b.id, "title": "Sneaky"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_cannot_read_foreign_task(self, client, db_session, admin_headers, org_b):
        task = Task(org_id=org_b.id, title="B only")
        db_session.add(task)
        db_session.commit()

        resp = client.get(f"/api/tasks/{task.id}", headers=admin_headers)
        assert resp.status_code == 404

    def test_admin_b_sees_own_data_only(self, client, admin_b_headers, business_a, business_b):
        resp = client.get("/api/businesses", headers=admin_b_headers)
        names = [b["name"] for b in resp.get_json()["items"]]
        assert names == ["Beta Bakery"]

    def test_cannot_manage_foreign_user(self, client, admin_headers, admin_b):
        resp = client.post(f"/api/admin/users/{admin_b.id}/deactivate", headers=admin_headers)
        assert resp.status_code == 404

    def test_products_not_counted_across_orgs(self, db_session, org_a, product_b):
        assert scoped_query(Product, org_a.id).count() == 0
