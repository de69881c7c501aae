from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Supplier(db.Model):
    """Supplier contact record. Independent of the ledger."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_user_name", "user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=False)
    address = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)

    # Free-form tags: product categories and item names/ids supplied
    categories = db.Column(db.JSON, nullable=False, default=list)
    items_supplied = db.Column(db.JSON, nullable=False, default=list)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "image_url": self.image_url,
            "categories": list(self.categories or []),
            "items_supplied": list(self.items_supplied or []),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
