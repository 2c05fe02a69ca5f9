from __future__ import annotations

from ..extensions import db
from businesshub.time_utils import to_utc_z
from .inventory import format_gbp


QUOTE_STATUSES = ("draft", "sent", "accepted", "rejected")

LINE_HARDWARE = "hardware"
LINE_SOFTWARE = "software"


class Quote(db.Model):
    """
    Sales quote for a business.

    Totals are derived from the items on every read (services.quote_totals);
    nothing aggregated is stored on the row.
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.Index("ix_quotes_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft")

    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("quotes", lazy=True))
    owner = db.relationship("User")
    items = db.relationship(
        "QuoteItem",
        backref="quote",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="QuoteItem.id",
    )

    def __repr__(self) -> str:
        return f"<Quote id={self.id} title={self.title!r} status={self.status}>"

    def to_dict(self) -> dict:
        from ..services.quote_totals import compute_quote_totals

        return {
            "id": self.id,
            "business_id": self.business_id,
            "business": self.business.to_summary() if self.business else None,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "owner": self.owner.to_summary() if self.owner else None,
            "items": [item.to_dict() for item in self.items],
            "totals": compute_quote_totals(self.items).to_dict(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class QuoteItem(db.Model):
    """
    Quote line item.

    price_cents is captured when the line is written (defaults to the catalog
    price). line_category is hardware for one-off products, software otherwise.
    """
    __tablename__ = "quote_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_quote_items_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    line_category = db.Column(db.String(16), nullable=False, default=LINE_HARDWARE)

    product = db.relationship("Product", backref=db.backref("quote_items", lazy=True))

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_category": self.line_category,
            "line_total_cents": self.line_total_cents,
            "line_total_display": format_gbp(self.line_total_cents),
        }
