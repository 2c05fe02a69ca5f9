# Overview: Service-layer operations for businesses, contacts and notes; encapsulates business logic and database work.

"""
Business Service

MULTI-TENANT: Businesses, contacts and notes are scoped to organizations via
org_id. Every id taken from client input is resolved through
tenant_service.require_entity_in_org before use.

A business "bundle" is the business plus everything hanging off it
(contacts, notes, tasks, quotes, documents, product assignments and assigned
serial numbers). It is what the detail page and the assignment workflow
return.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import (
    Business,
    Contact,
    Note,
    Task,
    Quote,
    Document,
    BusinessProduct,
    ProductInstance,
    User,
)
from ..validation import ModelValidationPolicy, NotFoundError
from .tenant_service import require_entity_in_org, resolve_org_id
from .query_helpers import apply_equals_filter, apply_search, paginate
from .instance_service import return_instance_to_pool

logger = logging.getLogger(__name__)


BUSINESS_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category", "location", "phone", "email",
        "website", "status", "support_contract", "support_expiry", "owner_user_id",
    },
    required_on_create={"name"},
)

CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "position"},
    required_on_create={"name"},
)

NOTE_POLICY = ModelValidationPolicy(
    writable_fields={"title", "content"},
    required_on_create={"title"},
)


def get_business(business_id: int, org_id: int) -> Business:
    return require_entity_in_org(Business, business_id, org_id, "Business")


def _check_owner(patch: dict, org_id: int) -> None:
    if patch.get("owner_user_id") is not None:
        require_entity_in_org(User, patch["owner_user_id"], org_id, "User")


def list_businesses(
    *,
    org_id: int | None = None,
    category: str | None = None,
    status: str | None = None,
    location: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped business listing.

    Filters equal to "All ..." placeholders are ignored; search matches name,
    description and email case-insensitively.
    """
    org_id = resolve_org_id(org_id)

    query = db.session.query(Business).filter(Business.org_id == org_id)
    query = apply_equals_filter(query, Business.category, category)
    query = apply_equals_filter(query, Business.status, status)
    query = apply_equals_filter(query, Business.location, location)
    query = apply_search(query, [Business.name, Business.description, Business.email], search)
    query = query.order_by(Business.name.asc(), Business.id.asc())

    return paginate(query, page=page, per_page=per_page, serialize=lambda b: b.to_dict())


def create_business(*, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    _check_owner(patch, org_id)

    business = Business(org_id=org_id)
    for k, v in patch.items():
        setattr(business, k, v)
    if not business.status:
        business.status = "Active"

    db.session.add(business)
    db.session.commit()
    return business.to_dict()


def update_business(*, business_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)
    _check_owner(patch, org_id)

    for k, v in patch.items():
        setattr(business, k, v)

    db.session.commit()
    return business.to_dict()


def get_business_bundle(business_id: int, org_id: int | None = None) -> dict:
    """Business plus contacts, notes, tasks, quotes, documents and products."""
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)

    contacts = (
        db.session.query(Contact)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(Contact.name.asc(), Contact.id.asc())
        .all()
    )
    notes = (
        db.session.query(Note)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(Note.created_at.desc(), Note.id.desc())
        .all()
    )
    tasks = (
        db.session.query(Task)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(Task.start_date.asc(), Task.id.asc())
        .all()
    )
    quotes = (
        db.session.query(Quote)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(Quote.created_at.desc(), Quote.id.desc())
        .all()
    )
    documents = (
        db.session.query(Document)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )
    products = (
        db.session.query(BusinessProduct)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(BusinessProduct.assigned_at.desc(), BusinessProduct.id.desc())
        .all()
    )
    instances = (
        db.session.query(ProductInstance)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(ProductInstance.updated_at.desc(), ProductInstance.id.desc())
        .all()
    )

    bundle = business.to_dict()
    bundle.update({
        "contacts": [c.to_dict() for c in contacts],
        "notes": [n.to_dict() for n in notes],
        "tasks": [t.to_dict() for t in tasks],
        "quotes": [q.to_dict() for q in quotes],
        "documents": [d.to_dict() for d in documents],
        "products": [bp.to_dict() for bp in products],
        "product_instances": [i.to_dict() for i in instances],
    })
    return bundle


def delete_business(*, business_id: int, org_id: int | None = None, user_id: int | None = None) -> bool:
    """
    Delete a business.

    Contacts, notes, quantity assignments and quotes go with it. Assigned
    serial numbers return to the available pool; tasks and documents are
    kept and detached.
    """
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)

    instances = db.session.query(ProductInstance).filter_by(org_id=org_id, business_id=business.id).all()
    for instance in instances:
        return_instance_to_pool(instance, user_id=user_id)

    db.session.query(Task).filter_by(org_id=org_id, business_id=business.id).update(
        {"business_id": None}, synchronize_session="fetch"
    )
    db.session.query(Document).filter_by(org_id=org_id, business_id=business.id).update(
        {"business_id": None}, synchronize_session="fetch"
    )

    for quote in db.session.query(Quote).filter_by(org_id=org_id, business_id=business.id).all():
        db.session.delete(quote)
    for row in db.session.query(BusinessProduct).filter_by(org_id=org_id, business_id=business.id).all():
        db.session.delete(row)
    for note in db.session.query(Note).filter_by(org_id=org_id, business_id=business.id).all():
        db.session.delete(note)
    db.session.flush()

    for contact in db.session.query(Contact).filter_by(org_id=org_id, business_id=business.id).all():
        db.session.delete(contact)
    db.session.flush()

    db.session.delete(business)
    db.session.commit()

    logger.info(
        "Deleted business %s (org %s); %s serial numbers returned to pool",
        business_id, org_id, len(instances),
    )
    return True


# -- Contacts --

def list_contacts(*, business_id: int, org_id: int | None = None) -> list[dict]:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)
    contacts = (
        db.session.query(Contact)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(Contact.name.asc(), Contact.id.asc())
        .all()
    )
    return [c.to_dict() for c in contacts]


def _get_contact(business: Business, contact_id: int) -> Contact:
    contact = require_entity_in_org(Contact, contact_id, business.org_id, "Contact")
    if contact.business_id != business.id:
        raise NotFoundError("Contact not found")
    return contact


def create_contact(*, business_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)

    contact = Contact(org_id=org_id, business_id=business.id)
    for k, v in patch.items():
        setattr(contact, k, v)

    db.session.add(contact)
    db.session.commit()
    return contact.to_dict()


def update_contact(*, business_id: int, contact_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)
    contact = _get_contact(business, contact_id)

    for k, v in patch.items():
        setattr(contact, k, v)

    db.session.commit()
    return contact.to_dict()


def delete_contact(*, business_id: int, contact_id: int, org_id: int | None = None) -> bool:
    """Delete a contact; serial numbers pointing at it keep their business but lose the contact."""
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)
    contact = _get_contact(business, contact_id)

    db.session.query(ProductInstance).filter_by(org_id=org_id, contact_id=contact.id).update(
        {"contact_id": None}, synchronize_session="fetch"
    )
    db.session.delete(contact)
    db.session.commit()
    return True


# -- Notes --

def list_notes(*, business_id: int, org_id: int | None = None) -> list[dict]:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)
    notes = (
        db.session.query(Note)
        .filter_by(org_id=org_id, business_id=business.id)
        .order_by(Note.created_at.desc(), Note.id.desc())
        .all()
    )
    return [n.to_dict() for n in notes]


def _get_note(business: Business, note_id: int) -> Note:
    note = require_entity_in_org(Note, note_id, business.org_id, "Note")
    if note.business_id != business.id:
        raise NotFoundError("Note not found")
    return note


def create_note(
    *,
    business_id: int,
    patch: dict,
    org_id: int | None = None,
    created_by_user_id: int | None = None,
) -> dict:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)

    note = Note(org_id=org_id, business_id=business.id, created_by_user_id=created_by_user_id)
    for k, v in patch.items():
        setattr(note, k, v)

    db.session.add(note)
    db.session.commit()
    return note.to_dict()


def update_note(*, business_id: int, note_id: int, patch: dict, org_id: int | None = None) -> dict:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)
    note = _get_note(business, note_id)

    for k, v in patch.items():
        setattr(note, k, v)

    db.session.commit()
    return note.to_dict()


def delete_note(*, business_id: int, note_id: int, org_id: int | None = None) -> bool:
    org_id = resolve_org_id(org_id)
    business = get_business(business_id, org_id)
    note = _get_note(business, note_id)

    db.session.delete(note)
    db.session.commit()
    return True
