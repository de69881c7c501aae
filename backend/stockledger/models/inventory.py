from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Stock-keeping item owned by a single user.

    QUANTITY: count of unsold stock. The ledger decrements it when a sale is
    recorded and restores it when that sale is deleted; direct edits through
    the inventory CRUD are restocking/corrections.

    version_id guards quantity against lost updates: a concurrent write to the
    same row makes the second flush raise StaleDataError.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonnegative"),
        db.Index("ix_inventory_items_user_name", "user_id", "name"),
        db.Index("ix_inventory_items_user_category", "user_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    # Catalog price in cents; sale lines snapshot their own unit price
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "image_url": self.image_url,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
