from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer with a running credit balance.

    balance_cents is signed: positive means the customer owes money.
    total_purchases_cents is the cumulative gross value of recorded sales.
    Both are denormalized aggregates owned by the ledger; contact CRUD never
    writes them.

    opening_balance_cents records the balance the customer was created with so
    the ledger can be re-derived from transactions:
        balance         = opening + sum(sale.amount_due) - sum(payment.amount)
        total_purchases = opening + sum(sale.amount)
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_user_name", "user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    business_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=False)
    address = db.Column(db.Text, nullable=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    total_purchases_cents = db.Column(db.Integer, nullable=False, default=0)
    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} balance_cents={self.balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "business_name": self.business_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "balance_cents": self.balance_cents,
            "total_purchases_cents": self.total_purchases_cents,
            "opening_balance_cents": self.opening_balance_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
