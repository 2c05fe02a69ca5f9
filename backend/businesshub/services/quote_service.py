# Overview: Service-layer operations for quotes; encapsulates business logic and database work.

"""
Quote Service

Quotes belong to a business and carry line items. Each line stores the unit
price at the time it was written (defaulting to the catalog price) and a
line category derived from the product's pricing type. Totals are never
stored; see quote_totals.compute_quote_totals.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Quote, QuoteItem, Product, Business, User
from ..models.quotes import QUOTE_STATUSES
from ..validation import ModelValidationPolicy, ValidationError, MAX_PRICE_CENTS, check_quantity, enforce_choice
from .tenant_service import require_entity_in_org, resolve_org_id
from .query_helpers import apply_equals_filter, apply_search, paginate
from .quote_totals import compute_quote_totals, line_category_for_pricing


QUOTE_POLICY = ModelValidationPolicy(
    writable_fields={"business_id", "title", "description", "status", "owner_user_id"},
    required_on_create={"business_id", "title"},
)


def get_quote(quote_id: int, org_id: int) -> Quote:
    return require_entity_in_org(Quote, quote_id, org_id, "Quote")


def _int_field(raw: dict, field: str, index: int) -> int | None:
    value = raw.get(field)
    if value is None or value == "":
        return None
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"items[{index}].{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"items[{index}].{field} must be an integer")


def normalize_items(items, *, org_id: int) -> list[dict]:
    """
    Validate raw line items into dicts of
    product, product_id, quantity, price_cents, line_category.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        product_id = _int_field(raw, "product_id", index)
        if product_id is None:
            raise ValidationError(f"items[{index}].product_id is required")
        product = require_entity_in_org(Product, product_id, org_id, "Product")

        quantity = _int_field(raw, "quantity", index)
        quantity = 1 if quantity is None else quantity
        check_quantity(quantity)

        price_cents = _int_field(raw, "price_cents", index)
        if price_cents is None:
            price_cents = product.price_cents
        if price_cents < 0 or price_cents > MAX_PRICE_CENTS:
            raise ValidationError(f"items[{index}].price_cents must be between 0 and {MAX_PRICE_CENTS}")

        lines.append({
            "product": product,
            "product_id": product.id,
            "quantity": quantity,
            "price_cents": price_cents,
            "line_category": line_category_for_pricing(product.pricing_type),
        })
    return lines


def _replace_items(quote: Quote, lines: list[dict]) -> None:
    quote.items.clear()
    for line in lines:
        quote.items.append(QuoteItem(
            product_id=line["product_id"],
            quantity=line["quantity"],
            price_cents=line["price_cents"],
            line_category=line["line_category"],
        ))


def _check_refs(patch: dict, org_id: int) -> None:
    enforce_choice(patch, "status", QUOTE_STATUSES)
    if patch.get("business_id") is not None:
        require_entity_in_org(Business, patch["business_id"], org_id, "Business")
    if patch.get("owner_user_id") is not None:
        require_entity_in_org(User, patch["owner_user_id"], org_id, "User")


def list_quotes(
    *,
    org_id: int | None = None,
    status: str | None = None,
    business_id: int | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    org_id = resolve_org_id(org_id)

    query = db.session.query(Quote).filter(Quote.org_id == org_id)
    query = apply_equals_filter(query, Quote.status, status)
    if business_id is not None:
        query = query.filter(Quote.business_id == business_id)
    query = apply_search(query, [Quote.title, Quote.description], search)
    query = query.order_by(Quote.created_at.desc(), Quote.id.desc())

    return paginate(query, page=page, per_page=per_page, serialize=lambda q: q.to_dict())


def create_quote(
    *,
    patch: dict,
    items=None,
    org_id: int | None = None,
    user_id: int | None = None,
) -> dict:
    """
    Create a quote with its line items in one commit.

    owner_user_id defaults to the acting user.
    """
    org_id = resolve_org_id(org_id)
    _check_refs(patch, org_id)
    lines = normalize_items(items, org_id=org_id)

    quote = Quote(org_id=org_id, status="draft", owner_user_id=user_id)
    for k, v in patch.items():
        setattr(quote, k, v)
    _replace_items(quote, lines)

    db.session.add(quote)
    db.session.commit()
    return quote.to_dict()


def update_quote(
    *,
    quote_id: int,
    patch: dict,
    items=None,
    replace_items: bool = False,
    org_id: int | None = None,
) -> dict:
    """Partial update; when replace_items is set the item list is replaced wholesale."""
    org_id = resolve_org_id(org_id)
    quote = get_quote(quote_id, org_id)
    _check_refs(patch, org_id)
    if "business_id" in patch and patch["business_id"] is None:
        raise ValidationError("business_id cannot be null")

    lines = normalize_items(items, org_id=org_id) if replace_items else None

    for k, v in patch.items():
        setattr(quote, k, v)
    if lines is not None:
        _replace_items(quote, lines)

    db.session.commit()
    return quote.to_dict()


def delete_quote(*, quote_id: int, org_id: int | None = None) -> bool:
    org_id = resolve_org_id(org_id)
    quote = get_quote(quote_id, org_id)
    db.session.delete(quote)
    db.session.commit()
    return True


def preview_totals(*, items, org_id: int | None = None) -> dict:
    """Totals for an unsaved item list."""
    org_id = resolve_org_id(org_id)
    lines = normalize_items(items, org_id=org_id)
    totals = compute_quote_totals(lines)
    return {
        "items": [
            {
                "product_id": line["product_id"],
                "product": line["product"].to_summary(),
                "quantity": line["quantity"],
                "price_cents": line["price_cents"],
                "line_category": line["line_category"],
                "line_total_cents": line["price_cents"] * line["quantity"],
            }
            for line in lines
        ],
        "totals": totals.to_dict(),
    }
