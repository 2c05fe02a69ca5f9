"""
Bulk export and import tests (CSV, JSON and Excel).
"""

import csv
import io
import json

import pytest
from openpyxl import Workbook

from businesshub.models import Business, Contact, Product, SecurityEvent
from businesshub.services import data_exchange_service, quote_service
from businesshub.validation import ValidationError


def _post_import(client, headers, filename, body, import_type):
    return client.post(
        "/api/data/import",
        data={"file": (io.BytesIO(body), filename), "type": import_type},
        headers=headers,
        content_type="multipart/form-data",
    )


class TestImportRows:

    def test_businesses_with_loose_headers(self, db_session, org_a):
        result = data_exchange_service.import_rows(
            import_type="businesses",
            rows=[
                {"Name": "Northwind Vets", "Support Contract": "yes", "support-expiry": "2027-01-31"},
                {"Name": "  ", "Category": "Retail"},
            ],
            org_id=org_a.id,
        )
        assert result["type"] == "businesses"
        assert result["total_rows"] == 2
        assert result["created"] == 1
        assert result["errors"] == [{"row": 2, "error": "Missing required fields: name"}]

        business = db_session.query(Business).filter_by(name="Northwind Vets").one()
        assert business.support_contract is True
        assert business.status == "Active"

    def test_contacts_resolve_business_by_name(self, db_session, org_a, business_a, business_b):
        result = data_exchange_service.import_rows(
            import_type="contacts",
            rows=[
                {"name": "Lee Jones", "business": "HARBOUR DENTAL"},
                {"name": "Ana Silva", "business_id": str(business_a.id)},
                {"name": "Wrong Org", "business_id": business_b.id},
                {"name": "Nobody", "customer": "Unknown Ltd"},
                {"name": "No Business"},
            ],
            org_id=org_a.id,
        )
        assert result["created"] == 2
        assert result["errors"] == [
            {"row": 3, "error": "Unknown business"},
            {"row": 4, "error": "Unknown business"},
            {"row": 5, "error": "business is required"},
        ]
        assert db_session.query(Contact).filter_by(business_id=business_a.id).count() == 2

    def test_products_parse_price(self, db_session, org_a, serialized_product_a):
        result = data_exchange_service.import_rows(
            import_type="products",
            rows=[
                {"name": "Wi-Fi Survey", "price": "£1,200.50", "pricing_type": "one-off"},
                {"name": "Cheap", "price": "abc"},
                {"name": "Clash", "sku": "FW-100"},
                {"name": "Bad Type", "pricing_type": "weekly"},
                "not a row",
            ],
            org_id=org_a.id,
        )
        assert result["created"] == 1
        assert result["items"][0]["price_cents"] == 120050
        errors = {e["row"]: e["error"] for e in result["errors"]}
        assert errors[2] == "Invalid price: abc"
        assert errors[3] == "SKU already exists in this organization"
        assert errors[4].startswith("pricing_type must be one of")
        assert errors[5] == "Row must be an object"

    def test_unknown_type(self, db_session, org_a):
        with pytest.raises(ValidationError):
            data_exchange_service.import_rows(import_type="quotes", rows=[], org_id=org_a.id)


class TestReadUploadRows:

    def test_csv_with_bom(self):
        body = "\ufeffName,Category\nAcme,Retail\n".encode("utf-8")
        rows = data_exchange_service.read_upload_rows("b.csv", io.BytesIO(body))
        assert rows == [{"Name": "Acme", "Category": "Retail"}]

    def test_json_rows_key(self):
        body = json.dumps({"rows": [{"name": "Acme"}]}).encode("utf-8")
        assert data_exchange_service.read_upload_rows("b.json", io.BytesIO(body)) == [{"name": "Acme"}]

    def test_xlsx(self):
        wb = Workbook()
        ws = wb.active
        ws.append(["Name", "Price", "Pricing Type"])
        ws.append(["Firewall", 450, "one-off"])
        ws.append([None, None, None])
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)

        rows = data_exchange_service.read_upload_rows("products.xlsx", buf)
        assert rows == [{"Name": "Firewall", "Price": 450, "Pricing Type": "one-off"}]

    def test_unsupported_format(self):
        with pytest.raises(ValidationError, match="Unsupported file format"):
            data_exchange_service.read_upload_rows("notes.txt", io.BytesIO(b"x"))

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="Invalid JSON file"):
            data_exchange_service.read_upload_rows("b.json", io.BytesIO(b"{nope"))


class TestImportRoute:

    def test_csv_upload(self, client, db_session, admin_headers):
        body = b"name,category\nAcme Dental,Healthcare\nBeta Vets,Veterinary\n"
        resp = _post_import(client, admin_headers, "businesses.csv", body, "businesses")
        assert resp.status_code == 201
        assert resp.get_json()["created"] == 2

        event = db_session.query(SecurityEvent).filter_by(event_type="DATA_IMPORTED").one()
        assert event.reason == "2 created, 0 failed"

    def test_xlsx_upload(self, client, db_session, admin_headers):
        wb = Workbook()
        wb.active.append(["Name", "Price"])
        wb.active.append(["Support Hours", "75"])
        buf = io.BytesIO()
        wb.save(buf)

        resp = _post_import(client, admin_headers, "products.xlsx", buf.getvalue(), "products")
        assert resp.status_code == 201
        assert db_session.query(Product).filter_by(name="Support Hours").one().price_cents == 7500

    def test_nothing_created_is_200(self, client, admin_headers):
        resp = _post_import(client, admin_headers, "businesses.json", b"[{\"category\": \"x\"}]", "businesses")
        assert resp.status_code == 200
        assert resp.get_json()["errors"][0]["row"] == 1

    def test_unsupported_format(self, client, admin_headers):
        resp = _post_import(client, admin_headers, "businesses.txt", b"x", "businesses")
        assert resp.status_code == 400

    def test_missing_file(self, client, admin_headers):
        resp = client.post(
            "/api/data/import", data={"type": "businesses"}, headers=admin_headers, content_type="multipart/form-data"
        )
        assert resp.status_code == 400

    def test_manager_cannot_import(self, client, manager_headers):
        resp = _post_import(client, manager_headers, "b.csv", b"name\nx\n", "businesses")
        assert resp.status_code == 403


class TestExport:

    def test_csv_export(self, client, db_session, manager_headers, business_a, contact_a):
        resp = client.get("/api/data/export?type=contacts&format=csv", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert 'filename="contacts-' in resp.headers["Content-Disposition"]

        rows = list(csv.DictReader(io.StringIO(resp.get_data(as_text=True))))
        assert rows[0]["name"] == "Dana Reed"
        assert rows[0]["business"] == "Harbour Dental"

        assert db_session.query(SecurityEvent).filter_by(event_type="DATA_EXPORTED").count() == 1

    def test_json_export_is_tenant_scoped(self, client, manager_headers, business_a, business_b):
        resp = client.get("/api/data/export?type=businesses&format=json", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/json"
        assert [b["name"] for b in json.loads(resp.get_data(as_text=True))] == ["Harbour Dental"]

    def test_users_export_lists_roles(self, db_session, org_a, admin_a, manager_a):
        rows = data_exchange_service.export_rows(export_type="users", org_id=org_a.id)
        by_name = {r["username"]: r for r in rows}
        assert by_name[admin_a.username]["roles"] == "admin"
        assert by_name[manager_a.username]["roles"] == "manager"

    def test_quotes_export_totals(self, db_session, org_a, business_a, plain_product_a):
        quote_service.create_quote(
            patch={"business_id": business_a.id, "title": "Backup"},
            items=[{"product_id": plain_product_a.id, "quantity": 2}],
            org_id=org_a.id,
        )
        rows = data_exchange_service.export_rows(export_type="quotes", org_id=org_a.id)
        assert rows[0]["total_cents"] == 12000
        assert rows[0]["item_count"] == 1

    def test_empty_csv_export(self, db_session, org_a):
        content, filename, mimetype = data_exchange_service.export_data(export_type="products", org_id=org_a.id)
        assert content == ""
        assert filename.endswith(".csv")

    @pytest.mark.parametrize("query", ["type=invoices", "type=businesses&format=xml"])
    def test_bad_parameters(self, client, manager_headers, query):
        resp = client.get(f"/api/data/export?{query}", headers=manager_headers)
        assert resp.status_code == 400

    def test_user_role_cannot_export(self, client, user_headers):
        assert client.get("/api/data/export?type=businesses", headers=user_headers).status_code == 403
