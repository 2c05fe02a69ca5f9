"""
Dashboard analytics tests.
"""

from datetime import timedelta

from businesshub.models import BusinessProduct, ProductInstance, Quote, QuoteItem, Task
from businesshub.services import analytics_service
from businesshub.time_utils import utcnow


def _instance(org, product, serial, status="in-stock", business=None):
    return ProductInstance(
        org_id=org.id,
        product_id=product.id,
        serial_number=serial,
        status=status,
        business_id=business.id if business else None,
    )


def test_dashboard(db_session, org_a, admin_a, user_a, business_a, serialized_product_a, plain_product_a, product_b):
    db_session.add_all([
        _instance(org_a, serialized_product_a, "A-1", "sold", business_a),
        _instance(org_a, serialized_product_a, "A-2"),
        Task(org_id=org_a.id, title="Open"),
        Task(org_id=org_a.id, title="Done", status="completed"),
    ])
    db_session.commit()

    data = analytics_service.dashboard(org_id=org_a.id)
    assert data == {
        "total_businesses": 1,
        "active_products": 1,
        "active_tasks": 1,
        "total_users": 2,
    }


def test_inventory_breakdown(db_session, org_a, business_a, serialized_product_a, plain_product_a):
    db_session.add_all([
        _instance(org_a, serialized_product_a, "B-1"),
        _instance(org_a, serialized_product_a, "B-2"),
        _instance(org_a, serialized_product_a, "B-3", "on-car", business_a),
        BusinessProduct(
            org_id=org_a.id,
            business_id=business_a.id,
            product_id=plain_product_a.id,
            quantity=4,
            unit_price_cents=5000,
            valid_from=utcnow(),
        ),
    ])
    db_session.commit()

    data = analytics_service.inventory_breakdown(org_id=org_a.id)
    assert data["instances_by_status"]["in-stock"] == 2
    assert data["instances_by_status"]["on-car"] == 1
    assert data["instances_by_status"]["sold"] == 0
    assert "returned" not in data["instances_by_status"]
    assert data["instance_total"] == 3
    assert data["in_stock_by_product"] == [
        {"product_id": serialized_product_a.id, "name": "Firewall Appliance", "in_stock": 2},
    ]
    assert data["assigned_quantity"] == 4
    assert data["assigned_value_cents"] == 20000
    assert data["assigned_value"] == "£200.00"


def test_quotes_breakdown(db_session, org_a, business_a, plain_product_a):
    draft = Quote(org_id=org_a.id, business_id=business_a.id, title="Draft", status="draft")
    accepted = Quote(org_id=org_a.id, business_id=business_a.id, title="Won", status="accepted")
    db_session.add_all([draft, accepted])
    db_session.commit()
    db_session.add_all([
        QuoteItem(
            quote_id=draft.id, product_id=plain_product_a.id,
            line_category="hardware", price_cents=10000, quantity=1,
        ),
        QuoteItem(
            quote_id=accepted.id, product_id=plain_product_a.id,
            line_category="software", price_cents=2500, quantity=2,
        ),
    ])
    db_session.commit()

    data = analytics_service.quotes_breakdown(org_id=org_a.id)
    assert data["by_status"] == {"draft": 1, "sent": 0, "accepted": 1, "rejected": 0}
    assert data["value_by_status_cents"]["draft"] == 12000
    assert data["value_by_status_cents"]["accepted"] == 6000
    assert data["value_by_status"]["accepted"] == "£60.00"
    assert data["total"] == 2


def test_tasks_breakdown(db_session, org_a):
    now = utcnow()
    db_session.add_all([
        Task(org_id=org_a.id, title="Late", end_date=now - timedelta(days=2), priority="high"),
        Task(org_id=org_a.id, title="Late but done", end_date=now - timedelta(days=2), status="completed"),
        Task(org_id=org_a.id, title="Later", end_date=now + timedelta(days=2), status="in-progress"),
    ])
    db_session.commit()

    data = analytics_service.tasks_breakdown(org_id=org_a.id)
    assert data["by_status"] == {"pending": 1, "in-progress": 1, "completed": 1}
    assert data["by_priority"] == {"low": 0, "medium": 2, "high": 1}
    assert data["overdue"] == 1


def test_analytics_routes(client, manager_headers, business_a, business_b):
    resp = client.get("/api/analytics/dashboard", headers=manager_headers)
    assert resp.status_code == 200
    assert resp.get_json()["total_businesses"] == 1

    for path in ("inventory", "quotes", "tasks"):
        assert client.get(f"/api/analytics/{path}", headers=manager_headers).status_code == 200
