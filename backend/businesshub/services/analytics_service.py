# Overview: Service-layer operations for dashboard analytics; read-only aggregate queries.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Business, Product, ProductInstance, BusinessProduct, Quote, QuoteItem, Task, User
from ..models.inventory import INSTANCE_STATUSES, INSTANCE_IN_STOCK, INSTANCE_RETURNED, ASSIGNMENT_ACTIVE, format_gbp
from ..models.quotes import QUOTE_STATUSES
from ..models.communications import TASK_STATUSES, TASK_PRIORITIES
from .tenant_service import resolve_org_id
from .quote_totals import compute_quote_totals
from businesshub.time_utils import utcnow


def _count_by(column, org_column, org_id: int, keys) -> dict[str, int]:
    counts = {key: 0 for key in keys}
    rows = (
        db.session.query(column, func.count())
        .filter(org_column == org_id)
        .group_by(column)
        .all()
    )
    for key, count in rows:
        counts[key] = count
    return counts


def dashboard(*, org_id: int | None = None) -> dict:
    """
    Headline numbers.

    active_products counts products with an active quantity assignment or at
    least one serial number out of stock.
    """
    org_id = resolve_org_id(org_id)

    total_businesses = db.session.query(func.count(Business.id)).filter(Business.org_id == org_id).scalar()

    assigned_ids = {
        pid for (pid,) in db.session.query(BusinessProduct.product_id)
        .filter(BusinessProduct.org_id == org_id, BusinessProduct.status == ASSIGNMENT_ACTIVE)
        .distinct()
    }
    assigned_ids |= {
        pid for (pid,) in db.session.query(ProductInstance.product_id)
        .filter(ProductInstance.org_id == org_id, ProductInstance.business_id.isnot(None))
        .distinct()
    }

    active_tasks = (
        db.session.query(func.count(Task.id))
        .filter(Task.org_id == org_id, Task.status != "completed")
        .scalar()
    )
    total_users = (
        db.session.query(func.count(User.id))
        .filter(User.org_id == org_id, User.is_active.is_(True))
        .scalar()
    )

    return {
        "total_businesses": total_businesses or 0,
        "active_products": len(assigned_ids),
        "active_tasks": active_tasks or 0,
        "total_users": total_users or 0,
    }


def inventory_breakdown(*, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)

    statuses = [s for s in INSTANCE_STATUSES if s != INSTANCE_RETURNED]
    by_status = _count_by(ProductInstance.status, ProductInstance.org_id, org_id, statuses)

    in_stock_rows = (
        db.session.query(Product.id, Product.name, func.count(ProductInstance.id))
        .join(ProductInstance, ProductInstance.product_id == Product.id)
        .filter(Product.org_id == org_id, ProductInstance.status == INSTANCE_IN_STOCK)
        .group_by(Product.id, Product.name)
        .order_by(Product.name.asc())
        .all()
    )

    assigned = (
        db.session.query(
            func.coalesce(func.sum(BusinessProduct.quantity), 0),
            func.coalesce(func.sum(BusinessProduct.quantity * BusinessProduct.unit_price_cents), 0),
        )
        .filter(BusinessProduct.org_id == org_id, BusinessProduct.status == ASSIGNMENT_ACTIVE)
        .one()
    )

    return {
        "instances_by_status": by_status,
        "instance_total": sum(by_status.values()),
        "in_stock_by_product": [
            {"product_id": pid, "name": name, "in_stock": count}
            for pid, name, count in in_stock_rows
        ],
        "assigned_quantity": int(assigned[0]),
        "assigned_value_cents": int(assigned[1]),
        "assigned_value": format_gbp(int(assigned[1])),
    }


def quotes_breakdown(*, org_id: int | None = None) -> dict:
    """Count and VAT-inclusive value per quote status."""
    org_id = resolve_org_id(org_id)

    counts = _count_by(Quote.status, Quote.org_id, org_id, QUOTE_STATUSES)
    values = {status: 0 for status in QUOTE_STATUSES}

    items_by_quote: dict[int, list] = {}
    rows = (
        db.session.query(QuoteItem, Quote.status)
        .join(Quote, Quote.id == QuoteItem.quote_id)
        .filter(Quote.org_id == org_id)
        .all()
    )
    status_by_quote = {}
    for item, status in rows:
        items_by_quote.setdefault(item.quote_id, []).append(item)
        status_by_quote[item.quote_id] = status

    for quote_id, items in items_by_quote.items():
        status = status_by_quote[quote_id]
        values[status] = values.get(status, 0) + compute_quote_totals(items).total_cents

    return {
        "by_status": counts,
        "value_by_status_cents": values,
        "value_by_status": {k: format_gbp(v) for k, v in values.items()},
        "total": sum(counts.values()),
    }


def tasks_breakdown(*, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)

    overdue = (
        db.session.query(func.count(Task.id))
        .filter(
            Task.org_id == org_id,
            Task.status != "completed",
            Task.end_date.isnot(None),
            Task.end_date < utcnow(),
        )
        .scalar()
    )

    return {
        "by_status": _count_by(Task.status, Task.org_id, org_id, TASK_STATUSES),
        "by_priority": _count_by(Task.priority, Task.org_id, org_id, TASK_PRIORITIES),
        "overdue": overdue or 0,
    }
