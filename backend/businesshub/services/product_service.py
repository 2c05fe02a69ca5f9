# Overview: Service-layer operations for catalog products; encapsulates business logic and database work.

"""
Products Service with Multi-Tenant Support

MULTI-TENANT: Products are scoped to organizations; SKUs are unique within
an organization when set.

is_serialized picks the tracking mode (ProductInstance rows vs
BusinessProduct quantities) and cannot flip while rows of the other mode
reference the product.
"""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Product, ProductInstance, BusinessProduct, QuoteItem
from ..models.inventory import INSTANCE_STATUSES, INSTANCE_RETURNED, ASSIGNMENT_ACTIVE
from ..validation import ModelValidationPolicy, ConflictError
from .tenant_service import require_entity_in_org, resolve_org_id
from .query_helpers import apply_equals_filter, apply_search, paginate

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category", "sku", "price_cents", "pricing_type", "is_serialized"},
    required_on_create={"name"},
)

PRODUCT_MUTABLE_FIELDS = PRODUCT_POLICY.writable_fields


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int, org_id: int) -> Product:
    return require_entity_in_org(Product, product_id, org_id, "Product")


def _ensure_sku_unique(org_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product.id).filter(Product.org_id == org_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists in this organization")


def _product_stats(org_id: int, product_ids: list[int]) -> dict[int, dict]:
    """Instance counts by status and active assigned quantity per product."""
    stats = {
        pid: {
            "instance_counts": {status: 0 for status in INSTANCE_STATUSES if status != INSTANCE_RETURNED},
            "instance_total": 0,
            "assigned_quantity": 0,
        }
        for pid in product_ids
    }
    if not product_ids:
        return stats

    rows = (
        db.session.query(ProductInstance.product_id, ProductInstance.status, func.count(ProductInstance.id))
        .filter(ProductInstance.org_id == org_id, ProductInstance.product_id.in_(product_ids))
        .group_by(ProductInstance.product_id, ProductInstance.status)
        .all()
    )
    for product_id, status, count in rows:
        stats[product_id]["instance_counts"][status] = count
        stats[product_id]["instance_total"] += count

    rows = (
        db.session.query(BusinessProduct.product_id, func.coalesce(func.sum(BusinessProduct.quantity), 0))
        .filter(
            BusinessProduct.org_id == org_id,
            BusinessProduct.product_id.in_(product_ids),
            BusinessProduct.status == ASSIGNMENT_ACTIVE,
        )
        .group_by(BusinessProduct.product_id)
        .all()
    )
    for product_id, quantity in rows:
        stats[product_id]["assigned_quantity"] = int(quantity)

    return stats


def list_products(
    *,
    org_id: int | None = None,
    category: str | None = None,
    pricing_type: str | None = None,
    is_serialized: bool | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing with optional pagination.

    Each item carries instance counts by status and the active assigned
    quantity.
    """
    org_id = resolve_org_id(org_id)

    query = db.session.query(Product).filter(Product.org_id == org_id)
    query = apply_equals_filter(query, Product.category, category)
    query = apply_equals_filter(query, Product.pricing_type, pricing_type)
    if is_serialized is not None:
        query = query.filter(Product.is_serialized.is_(is_serialized))
    query = apply_search(query, [Product.name, Product.description, Product.sku], search)
    query = query.order_by(Product.name.asc(), Product.id.asc())

    result = paginate(query, page=page, per_page=per_page, serialize=lambda p: p)
    products = result["items"]
    stats = _product_stats(org_id, [p.id for p in products])

    items = []
    for p in products:
        row = p.to_dict()
        row.update(stats[p.id])
        items.append(row)
    result["items"] = items
    return result


def get_product_detail(*, product_id: int, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    product = get_product(product_id, org_id)
    row = product.to_dict()
    row.update(_product_stats(org_id, [product.id])[product.id])
    return row


def create_product(*, patch: dict, org_id: int | None = None) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists in the organization
    """
    org_id = resolve_org_id(org_id)
    _ensure_sku_unique(org_id, patch.get("sku"))

    p = Product(org_id=org_id)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    return p.to_dict()


def _check_tracking_mode_change(product: Product, is_serialized: bool) -> None:
    if is_serialized == product.is_serialized:
        return
    if is_serialized:
        in_use = db.session.query(BusinessProduct.id).filter_by(product_id=product.id).first()
        if in_use:
            raise ConflictError("Cannot make product serialized while quantity assignments exist")
    else:
        in_use = db.session.query(ProductInstance.id).filter_by(product_id=product.id).first()
        if in_use:
            raise ConflictError("Cannot make product non-serialized while serial numbers exist")


def update_product(*, product_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    product = get_product(product_id, org_id)

    if "sku" in patch:
        _ensure_sku_unique(org_id, patch["sku"], exclude_id=product.id)
    if patch.get("is_serialized") is not None:
        _check_tracking_mode_change(product, patch["is_serialized"])

    apply_product_patch(product, patch)
    db.session.commit()
    return product.to_dict()


def delete_product(*, product_id: int, org_id: int | None = None) -> bool:
    """
    Delete a product.

    Raises ConflictError while serial numbers, quantity assignments or quote
    lines still reference it.
    """
    org_id = resolve_org_id(org_id)
    product = get_product(product_id, org_id)

    if db.session.query(ProductInstance.id).filter_by(product_id=product.id).first():
        raise ConflictError("Product has serial numbers; delete or move them first")
    if db.session.query(BusinessProduct.id).filter_by(product_id=product.id).first():
        raise ConflictError("Product is assigned to businesses; remove the assignments first")
    if db.session.query(QuoteItem.id).filter_by(product_id=product.id).first():
        raise ConflictError("Product is used on quotes")

    db.session.delete(product)
    db.session.commit()
    return True
