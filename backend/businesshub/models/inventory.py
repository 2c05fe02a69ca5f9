from __future__ import annotations

from ..extensions import db
from businesshub.time_utils import to_utc_z


# ProductInstance.status
INSTANCE_IN_STOCK = "in-stock"
INSTANCE_SOLD = "sold"
INSTANCE_ON_CAR = "on-car"
INSTANCE_OFFICE_USE = "office-use"
INSTANCE_SWAPPED = "swapped"
INSTANCE_RETURNED = "returned"
INSTANCE_STATUSES = (
    INSTANCE_IN_STOCK,
    INSTANCE_SOLD,
    INSTANCE_ON_CAR,
    INSTANCE_OFFICE_USE,
    INSTANCE_SWAPPED,
    INSTANCE_RETURNED,
)

# BusinessProduct.status
ASSIGNMENT_ACTIVE = "active"
ASSIGNMENT_INACTIVE = "inactive"
ASSIGNMENT_CANCELLED = "cancelled"
ASSIGNMENT_STATUSES = (ASSIGNMENT_ACTIVE, ASSIGNMENT_INACTIVE, ASSIGNMENT_CANCELLED)


def format_gbp(cents: int | None) -> str | None:
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    return f"{sign}£{abs(cents) / 100:,.2f}"


class Product(db.Model):
    """
    Catalog product.

    MULTI-TENANT: Products are scoped to organizations; SKUs are unique within
    an organization.

    is_serialized selects the tracking mode:
    - True: every unit is a ProductInstance with its own serial/license number
    - False: units are assigned to businesses by quantity (BusinessProduct)
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sku", name="uq_products_org_sku"),
        db.Index("ix_products_org_name", "org_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)  # Hardware, Software, Services, Support, ...
    sku = db.Column(db.String(64), nullable=True)

    # Store money as integer pence
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    pricing_type = db.Column(db.String(16), nullable=False, default="one-off")  # one-off, monthly, yearly

    is_serialized = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} serialized={self.is_serialized}>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "is_serialized": self.is_serialized,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "price_display": format_gbp(self.price_cents),
            "pricing_type": self.pricing_type,
            "is_serialized": self.is_serialized,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductInstance(db.Model):
    """
    A single serialized unit (serial number or license number).

    INVARIANT: status == in-stock  <=>  business_id IS NULL AND contact_id IS NULL.
    Enforced by services.instance_service; the model only stores state.
    """
    __tablename__ = "product_instances"
    __table_args__ = (
        db.UniqueConstraint("org_id", "serial_number", name="uq_instances_org_serial"),
        db.UniqueConstraint("org_id", "license_number", name="uq_instances_org_license"),
        db.Index("ix_instances_org_status", "org_id", "status"),
        db.Index("ix_instances_business", "business_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    serial_number = db.Column(db.String(128), nullable=True)
    license_number = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=INSTANCE_IN_STOCK)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=True)

    sold_date = db.Column(db.DateTime(timezone=True), nullable=True)
    warranty_expiry = db.Column(db.DateTime(timezone=True), nullable=True)
    comments = db.Column(db.Text, nullable=True)

    last_updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product", backref=db.backref("instances", lazy=True))
    business = db.relationship("Business", backref=db.backref("product_instances", lazy=True))
    contact = db.relationship("Contact")
    last_updated_by = db.relationship("User")

    def __repr__(self) -> str:
        return f"<ProductInstance id={self.id} serial={self.serial_number!r} status={self.status}>"

    @property
    def identifier(self) -> str | None:
        return self.serial_number or self.license_number

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "serial_number": self.serial_number,
            "license_number": self.license_number,
            "status": self.status,
            "business_id": self.business_id,
            "business": self.business.to_summary() if self.business else None,
            "contact_id": self.contact_id,
            "contact": {"id": self.contact.id, "name": self.contact.name} if self.contact else None,
            "sold_date": to_utc_z(self.sold_date),
            "warranty_expiry": to_utc_z(self.warranty_expiry),
            "comments": self.comments,
            "last_updated_by": self.last_updated_by.display_name if self.last_updated_by else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BusinessProduct(db.Model):
    """
    Quantity-based assignment of a non-serialized product to a business.

    One row per (business, product); assigning again increments quantity.
    unit_price_cents is the catalog price captured on first assignment and is
    not touched by later catalog edits.
    """
    __tablename__ = "business_products"
    __table_args__ = (
        db.UniqueConstraint("business_id", "product_id", name="uq_business_products_pair"),
        db.CheckConstraint("quantity >= 1", name="ck_business_products_quantity"),
        db.Index("ix_business_products_org", "org_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ASSIGNMENT_ACTIVE)

    valid_from = db.Column(db.DateTime(timezone=True), nullable=False)
    valid_to = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    assigned_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("business_products", lazy=True))
    product = db.relationship("Product", backref=db.backref("business_assignments", lazy=True))
    assigned_by = db.relationship("User")

    def __repr__(self) -> str:
        return f"<BusinessProduct business_id={self.business_id} product_id={self.product_id} qty={self.quantity}>"

    def to_dict(self) -> dict:
        line_total = self.unit_price_cents * self.quantity
        return {
            "id": self.id,
            "business_id": self.business_id,
            "business": self.business.to_summary() if self.business else None,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": line_total,
            "line_total_display": format_gbp(line_total),
            "status": self.status,
            "valid_from": to_utc_z(self.valid_from),
            "valid_to": to_utc_z(self.valid_to),
            "notes": self.notes,
            "assigned_by": self.assigned_by.display_name if self.assigned_by else None,
            "assigned_at": to_utc_z(self.assigned_at),
        }
