"""
Business, contact and note tests, including the business bundle and the
cascade rules on delete.
"""

import pytest

from businesshub.models import (
    Business, BusinessProduct, Contact, Document, Note, ProductInstance, Quote, Task,
)
from businesshub.services import business_service
from businesshub.services.instance_service import RETURNED_COMMENT
from businesshub.validation import NotFoundError
from businesshub.time_utils import utcnow


class TestBusinessRoutes:

    def test_create_defaults_to_active(self, client, manager_headers):
        resp = client.post(
            "/api/businesses",
            json={"name": "Northwind Vets", "category": "Veterinary", "support_contract": True},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["status"] == "Active"
        assert data["support_contract"] is True

    def test_create_requires_name(self, client, manager_headers):
        resp = client.post("/api/businesses", json={"category": "Retail"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_unknown_field_rejected(self, client, manager_headers):
        resp = client.post("/api/businesses", json={"name": "X", "org_id": 99}, headers=manager_headers)
        assert resp.status_code == 400

    def test_update(self, client, manager_headers, business_a):
        resp = client.put(
            f"/api/businesses/{business_a.id}",
            json={"location": "Bristol", "support_expiry": "2027-03-31"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["location"] == "Bristol"
        assert resp.get_json()["support_expiry"] == "2027-03-31T00:00:00Z"

    def test_list_filters_ignore_all_placeholder(self, client, db_session, org_a, user_headers, business_a):
        db_session.add(Business(org_id=org_a.id, name="Corner Shop", category="Retail"))
        db_session.commit()

        resp = client.get("/api/businesses?category=All Categories", headers=user_headers)
        assert resp.get_json()["count"] == 2

        resp = client.get("/api/businesses?category=Retail", headers=user_headers)
        assert [b["name"] for b in resp.get_json()["items"]] == ["Corner Shop"]

    def test_search_and_paging(self, client, db_session, org_a, user_headers):
        db_session.add_all([Business(org_id=org_a.id, name=f"Dental {i}") for i in range(5)])
        db_session.commit()

        resp = client.get("/api/businesses?search=dental&page=2&per_page=2", headers=user_headers)
        data = resp.get_json()
        assert data["count"] == 2
        assert data["pagination"]["total"] == 5
        assert data["pagination"]["total_pages"] == 3
        assert data["pagination"]["has_prev"] is True

    def test_bundle(self, client, db_session, org_a, user_headers, business_a, contact_a):
        db_session.add(Note(org_id=org_a.id, business_id=business_a.id, title="Renewal due"))
        db_session.add(Task(org_id=org_a.id, business_id=business_a.id, title="Visit"))
        db_session.commit()

        resp = client.get(f"/api/businesses/{business_a.id}", headers=user_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["name"] == "Harbour Dental"
        assert [c["name"] for c in data["contacts"]] == ["Dana Reed"]
        assert [n["title"] for n in data["notes"]] == ["Renewal due"]
        assert [t["title"] for t in data["tasks"]] == ["Visit"]
        for key in ("quotes", "documents", "products", "product_instances"):
            assert data[key] == []


class TestContactsAndNotes:

    def test_contact_crud(self, client, manager_headers, business_a):
        base = f"/api/businesses/{business_a.id}/contacts"

        resp = client.post(base, json={"name": "Sam Patel", "position": "Practice Manager"}, headers=manager_headers)
        assert resp.status_code == 201
        contact_id = resp.get_json()["id"]

        resp = client.put(f"{base}/{contact_id}", json={"phone": "0117 000 0000"}, headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["phone"] == "0117 000 0000"

        resp = client.get(base, headers=manager_headers)
        assert resp.get_json()["count"] == 1

        resp = client.delete(f"{base}/{contact_id}", headers=manager_headers)
        assert resp.status_code == 200
        assert client.get(base, headers=manager_headers).get_json()["count"] == 0

    def test_contact_of_other_business(self, db_session, org_a, business_a, contact_a):
        other = Business(org_id=org_a.id, name="Other")
        db_session.add(other)
        db_session.commit()

        with pytest.raises(NotFoundError, match="Contact not found"):
            business_service.update_contact(
                business_id=other.id, contact_id=contact_a.id, patch={"name": "x"}, org_id=org_a.id
            )

    def test_deleting_contact_clears_serial_contact(
        self, db_session, org_a, business_a, contact_a, serialized_product_a
    ):
        instance = ProductInstance(
            org_id=org_a.id,
            product_id=serialized_product_a.id,
            serial_number="C-1",
            status="sold",
            business_id=business_a.id,
            contact_id=contact_a.id,
        )
        db_session.add(instance)
        db_session.commit()

        business_service.delete_contact(business_id=business_a.id, contact_id=contact_a.id, org_id=org_a.id)

        db_session.refresh(instance)
        assert instance.contact_id is None
        assert instance.business_id == business_a.id

    def test_note_records_author(self, client, db_session, manager_a, manager_headers, business_a):
        resp = client.post(
            f"/api/businesses/{business_a.id}/notes",
            json={"title": "Called", "content": "Wants a quote for backups"},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        note = db_session.get(Note, resp.get_json()["id"])
        assert note.created_by_user_id == manager_a.id

    def test_note_requires_title(self, client, manager_headers, business_a):
        resp = client.post(f"/api/businesses/{business_a.id}/notes", json={"content": "x"}, headers=manager_headers)
        assert resp.status_code == 400


class TestDeleteBusiness:

    def test_cascade_rules(
        self, client, db_session, org_a, manager_headers, business_a, contact_a,
        serialized_product_a, plain_product_a,
    ):
        instance = ProductInstance(
            org_id=org_a.id,
            product_id=serialized_product_a.id,
            serial_number="D-1",
            status="sold",
            business_id=business_a.id,
            contact_id=contact_a.id,
        )
        task = Task(org_id=org_a.id, business_id=business_a.id, title="Follow up")
        document = Document(org_id=org_a.id, business_id=business_a.id, name="Contract", path="contracts/x.pdf")
        db_session.add_all([
            instance,
            task,
            document,
            Note(org_id=org_a.id, business_id=business_a.id, title="n"),
            Quote(org_id=org_a.id, business_id=business_a.id, title="q"),
        ])
        db_session.commit()
        db_session.add(BusinessProduct(
            org_id=org_a.id,
            business_id=business_a.id,
            product_id=plain_product_a.id,
            quantity=2,
            unit_price_cents=5000,
            valid_from=utcnow(),
        ))
        db_session.commit()

        resp = client.delete(f"/api/businesses/{business_a.id}", headers=manager_headers)
        assert resp.status_code == 200

        assert db_session.get(Business, business_a.id) is None
        assert db_session.query(Contact).count() == 0
        assert db_session.query(Note).count() == 0
        assert db_session.query(Quote).count() == 0
        assert db_session.query(BusinessProduct).count() == 0

        db_session.refresh(instance)
        assert instance.status == "in-stock"
        assert instance.business_id is None
        assert instance.comments == RETURNED_COMMENT

        db_session.refresh(task)
        db_session.refresh(document)
        assert task.business_id is None
        assert document.business_id is None
