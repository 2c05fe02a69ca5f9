"""
Serial-number sheet export and import tests.
"""

import csv
import io

import pytest

from businesshub.models import ProductInstance
from businesshub.services import instance_service
from businesshub.services.instance_service import CSV_HEADERS, CSV_TICK
from businesshub.validation import ValidationError


HEADER_LINE = ",".join(CSV_HEADERS)


def _rows(text):
    return list(csv.reader(io.StringIO(text)))


class TestExport:

    def test_headers_and_ticks(self, db_session, org_a, serialized_product_a, business_a):
        db_session.add_all([
            ProductInstance(
                org_id=org_a.id, product_id=serialized_product_a.id,
                serial_number="E-1", status="sold", business_id=business_a.id, comments="Reception",
            ),
            ProductInstance(org_id=org_a.id, product_id=serialized_product_a.id, serial_number="E-2"),
        ])
        db_session.commit()

        text, filename = instance_service.export_instances_csv(org_id=org_a.id, product_id=serialized_product_a.id)
        rows = _rows(text)

        assert rows[0] == [
            "Serial Number", "Customer", "Comments", "Sold", "On Car", "Office Use", "Back in Stock", "Swapped",
        ]
        by_serial = {r[0]: r for r in rows[1:]}
        assert by_serial["E-1"] == ["E-1", "Harbour Dental", "Reception", CSV_TICK, "", "", "", ""]
        assert by_serial["E-2"] == ["E-2", "", "", "", "", "", CSV_TICK, ""]
        assert filename.startswith("serial-numbers-")
        assert filename.endswith(".csv")

    def test_export_route(self, client, admin_headers, serialized_product_a):
        resp = client.get("/api/product-instances/export", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "serial-numbers-" in resp.headers["Content-Disposition"]
        assert _rows(resp.get_data(as_text=True))[0] == CSV_HEADERS

    def test_export_requires_manage_permission(self, client, user_headers):
        assert client.get("/api/product-instances/export", headers=user_headers).status_code == 403


class TestImport:

    def test_defaults_from_customer(self, db_session, org_a, serialized_product_a, business_a):
        text = "\n".join([
            HEADER_LINE,
            "I-1,harbour dental,,,,,,",
            "I-2,,Spare,,,,,",
        ])
        result = instance_service.import_instances_csv(text=text, org_id=org_a.id, product_id=serialized_product_a.id)

        assert result["total_rows"] == 2
        assert result["created"] == 2
        assert result["errors"] == []

        sold = db_session.query(ProductInstance).filter_by(serial_number="I-1").one()
        assert sold.status == "sold"
        assert sold.business_id == business_a.id
        assert sold.sold_date is not None

        spare = db_session.query(ProductInstance).filter_by(serial_number="I-2").one()
        assert spare.status == "in-stock"
        assert spare.business_id is None
        assert spare.comments == "Spare"

    def test_ticked_status_wins(self, db_session, org_a, serialized_product_a, business_a):
        text = "\n".join([HEADER_LINE, f"I-3,Harbour Dental,,,{CSV_TICK},,,"])
        result = instance_service.import_instances_csv(text=text, org_id=org_a.id, product_id=serialized_product_a.id)
        assert result["items"][0]["status"] == "on-car"

    def test_product_sku_column(self, db_session, org_a, serialized_product_a):
        text = "Serial Number,Product SKU\nS-1,FW-100\nS-2,NOPE\n"
        result = instance_service.import_instances_csv(text=text, org_id=org_a.id)

        assert result["created"] == 1
        assert result["items"][0]["product_id"] == serialized_product_a.id
        assert result["errors"] == [{"row": 3, "error": "Unknown product SKU: NOPE"}]

    def test_row_errors_are_reported(self, db_session, org_a, serialized_product_a):
        text = "\n".join([
            HEADER_LINE,
            "R-1,Nobody Ltd,,,,,,",
            f"R-2,,,{CSV_TICK},{CSV_TICK},,,",
            ",,,,,,,",
            "R-3,,,,,,,",
            "R-3,,,,,,,",
        ])
        result = instance_service.import_instances_csv(text=text, org_id=org_a.id, product_id=serialized_product_a.id)

        assert result["total_rows"] == 5
        assert result["created"] == 1
        errors = {e["row"]: e["error"] for e in result["errors"]}
        assert errors[2] == "Unknown customer: Nobody Ltd"
        assert errors[3] == "More than one status column is ticked"
        assert errors[4] == "Serial number is required"
        assert "already exists" in errors[6]

    def test_missing_product(self, db_session, org_a):
        result = instance_service.import_instances_csv(text="Serial Number\nX-1\n", org_id=org_a.id)
        assert result["errors"] == [{"row": 2, "error": "No product selected for this row"}]

    def test_missing_serial_column(self, db_session, org_a, serialized_product_a):
        with pytest.raises(ValidationError):
            instance_service.import_instances_csv(
                text="Customer,Comments\nA,B\n", org_id=org_a.id, product_id=serialized_product_a.id
            )

    def test_import_route(self, client, admin_headers, serialized_product_a):
        body = f"{HEADER_LINE}\nU-1,,,,,,,\n".encode("utf-8")
        resp = client.post(
            "/api/product-instances/import",
            data={"file": (io.BytesIO(body), "serials.csv"), "product_id": str(serialized_product_a.id)},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201
        assert resp.get_json()["created"] == 1

    def test_import_route_nothing_created(self, client, admin_headers, serialized_product_a):
        body = f"{HEADER_LINE}\n,,,,,,,\n".encode("utf-8")
        resp = client.post(
            "/api/product-instances/import",
            data={"file": (io.BytesIO(body), "serials.csv"), "product_id": str(serialized_product_a.id)},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        assert resp.get_json()["created"] == 0
        assert resp.get_json()["errors"][0]["row"] == 2

    def test_import_route_requires_file(self, client, admin_headers):
        resp = client.post(
            "/api/product-instances/import",
            data={},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
