"""initial ledger schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete schema from scratch:
- inventory_items: user-owned stock with version_id for optimistic locking
- customers: contact data plus ledger-owned balance aggregates
- suppliers: contact records, no ledger interaction
- ledger_transactions / ledger_transaction_lines: sale and payment entries
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # inventory_items
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_items_quantity_nonnegative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_items_user_id', 'inventory_items', ['user_id'])
    op.create_index('ix_inventory_items_user_name', 'inventory_items', ['user_id', 'name'])
    op.create_index('ix_inventory_items_user_category', 'inventory_items', ['user_id', 'category'])

    # ============================================================================
    # customers
    # ============================================================================
    # balance_cents / total_purchases_cents are written only by the ledger.
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_purchases_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opening_balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_user_id', 'customers', ['user_id'])
    op.create_index('ix_customers_user_name', 'customers', ['user_id', 'name'])

    # ============================================================================
    # suppliers
    # ============================================================================
    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('items_supplied', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_suppliers_user_id', 'suppliers', ['user_id'])
    op.create_index('ix_suppliers_user_name', 'suppliers', ['user_id', 'name'])

    # ============================================================================
    # ledger_transactions: sale/payment entries (immutable, delete reverses)
    # ============================================================================
    # customer_id is not a foreign key: customers can be deleted without
    # cascading into ledger history.
    op.create_table(
        'ledger_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_due_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("type IN ('sale', 'payment')", name='ck_ledger_transactions_type'),
        sa.CheckConstraint(
            "payment_status IN ('paid', 'partial', 'pending')",
            name='ck_ledger_transactions_payment_status',
        ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_transactions_user_id', 'ledger_transactions', ['user_id'])
    op.create_index('ix_ledger_transactions_customer_id', 'ledger_transactions', ['customer_id'])
    op.create_index('ix_ledger_transactions_type', 'ledger_transactions', ['type'])
    op.create_index('ix_ledger_transactions_created_at', 'ledger_transactions', ['created_at'])
    op.create_index('ix_ledger_transactions_user_created', 'ledger_transactions', ['user_id', 'created_at'])
    op.create_index('ix_ledger_transactions_customer_created', 'ledger_transactions', ['customer_id', 'created_at'])

    op.create_table(
        'ledger_transaction_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_ledger_lines_quantity_positive'),
        sa.ForeignKeyConstraint(['transaction_id'], ['ledger_transactions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', 'line_number', name='uq_ledger_lines_txn_line'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_transaction_lines_transaction_id', 'ledger_transaction_lines', ['transaction_id'])
    op.create_index('ix_ledger_transaction_lines_item_id', 'ledger_transaction_lines', ['item_id'])


def downgrade():
    op.drop_table('ledger_transaction_lines')
    op.drop_table('ledger_transactions')
    op.drop_table('suppliers')
    op.drop_table('customers')
    op.drop_table('inventory_items')
