from __future__ import annotations

from ..extensions import db
from businesshub.time_utils import to_utc_z


def format_size(size_bytes: int | None) -> str | None:
    if size_bytes is None:
        return None
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return None


class Document(db.Model):
    """
    Document metadata.

    Uploaded files live under UPLOAD_FOLDER; `path` is relative to it and
    `is_uploaded` marks rows whose file is managed by the service. Metadata-only
    rows (is_uploaded=False) point at externally hosted paths.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_org_category", "org_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    doc_type = db.Column(db.String(32), nullable=True)  # PDF, DOCX, ...
    size_bytes = db.Column(db.Integer, nullable=True)
    path = db.Column(db.String(512), nullable=False)
    is_uploaded = db.Column(db.Boolean, nullable=False, default=False)
    category = db.Column(db.String(64), nullable=False, default="General")

    uploaded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    uploaded_by = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("documents", lazy=True))

    def __repr__(self) -> str:
        return f"<Document id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "type": self.doc_type,
            "size_bytes": self.size_bytes,
            "size": format_size(self.size_bytes),
            "path": self.path,
            "is_uploaded": self.is_uploaded,
            "category": self.category,
            "uploaded_by": self.uploaded_by,
            "uploaded_by_user_id": self.uploaded_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
