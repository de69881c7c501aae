from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


TRANSACTION_TYPE_SALE = "sale"
TRANSACTION_TYPE_PAYMENT = "payment"

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PENDING = "pending"


class LedgerTransaction(db.Model):
    """
    Sale or payment entry in a customer's ledger.

    IMMUTABLE: rows are created by record_sale/record_payment and removed only
    by delete_transaction, which also reverses their effects. There is no
    update path; corrections are delete + re-record.

    SNAPSHOTS: customer_name and each line's item_name/unit_price_cents are
    copied at creation time and never re-derived, so history stays stable when
    customers are renamed or catalog prices change.

    customer_id and line item_id are deliberately not foreign keys: customers
    and items can be deleted without cascading into history.
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        db.CheckConstraint("type IN ('sale', 'payment')", name="ck_ledger_transactions_type"),
        db.CheckConstraint(
            "payment_status IN ('paid', 'partial', 'pending')",
            name="ck_ledger_transactions_payment_status",
        ),
        db.Index("ix_ledger_transactions_user_created", "user_id", "created_at"),
        db.Index("ix_ledger_transactions_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)

    customer_id = db.Column(db.Integer, nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)  # sale, payment

    # All amounts in cents. amount is the sale total or the payment value.
    amount_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_due_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False)

    payment_method = db.Column(db.String(32), nullable=True)  # payment only
    notes = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    lines = db.relationship(
        "LedgerTransactionLine",
        backref="ledger_transaction",
        order_by="LedgerTransactionLine.line_number",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_sale(self) -> bool:
        return self.type == TRANSACTION_TYPE_SALE

    @property
    def is_payment(self) -> bool:
        return self.type == TRANSACTION_TYPE_PAYMENT

    def __repr__(self) -> str:
        return f"<LedgerTransaction id={self.id} type={self.type} amount_cents={self.amount_cents}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "amount_due_cents": self.amount_due_cents,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if self.is_sale:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class LedgerTransactionLine(db.Model):
    """Ordered line of a sale: quantity of one item at a snapshotted unit price."""
    __tablename__ = "ledger_transaction_lines"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_ledger_lines_txn_line"),
        db.CheckConstraint("quantity > 0", name="ck_ledger_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("ledger_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number = db.Column(db.Integer, nullable=False)

    item_id = db.Column(db.Integer, nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
