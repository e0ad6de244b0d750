"""
Alembic migration: Print-shop workflow schema.

Creates the reference data tables (companies, currencies, exchange rates,
pricing tiers, products, clients, status catalog), quotations and the order
aggregate (orders, items, attachments, comments, status history).

Enumerated columns are stored as plain strings holding the enum values.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(14, 4)
RATE = sa.Numeric(18, 8)
COMPANY_MONEY = sa.Numeric(26, 12)


def _base_columns(tenant: bool = True) -> list:
    columns = [
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]
    if tenant:
        columns.append(sa.Column('company_id', sa.Uuid(), nullable=False))
    return columns


def _item_columns() -> list:
    return [
        sa.Column(
            'product_id',
            sa.Uuid(),
            sa.ForeignKey('products.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('base_unit_price', MONEY, nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('item_total', MONEY, nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
    ]


def upgrade() -> None:
    """
    Upgrade database schema to the print-shop workflow model.
    """
    # Reference data
    op.create_table(
        'currencies',
        *_base_columns(tenant=False),
        sa.Column('code', sa.String(3), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('symbol', sa.String(10), nullable=True),
        sa.UniqueConstraint('code', name='uq_currencies_code'),
    )

    op.create_table(
        'companies',
        *_base_columns(tenant=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column(
            'currency_id',
            sa.Uuid(),
            sa.ForeignKey('currencies.id', ondelete='SET NULL'),
            nullable=True,
            comment='Base currency of the company',
        ),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
    )

    op.create_table(
        'exchange_rates',
        *_base_columns(),
        sa.Column(
            'currency_id',
            sa.Uuid(),
            sa.ForeignKey('currencies.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('rate_to_company_currency', RATE, nullable=False),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint(
            'rate_to_company_currency > 0', name='check_exchange_rate_positive'
        ),
    )
    op.create_index(
        'ix_exchange_rates_lookup',
        'exchange_rates',
        ['company_id', 'currency_id', 'valid_from'],
    )

    op.create_table(
        'pricing_tiers',
        *_base_columns(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('label', sa.String(100), nullable=True),
        sa.Column('markup_percent', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint('markup_percent >= 0', name='check_markup_non_negative'),
    )

    op.create_table(
        'products',
        *_base_columns(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('category', sa.String(100), nullable=False, server_default='General'),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint('unit_price >= 0', name='check_product_price_non_negative'),
    )

    op.create_table(
        'clients',
        *_base_columns(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column(
            'pricing_tier_id',
            sa.Uuid(),
            sa.ForeignKey('pricing_tiers.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'default_currency_id',
            sa.Uuid(),
            sa.ForeignKey('currencies.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('notes', sa.Text(), nullable=True),
    )

    op.create_table(
        'order_statuses',
        *_base_columns(),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('company_id', 'name', name='uq_order_statuses_company_name'),
    )

    for table in (
        'exchange_rates', 'pricing_tiers', 'products', 'clients', 'order_statuses'
    ):
        op.create_index(f'ix_{table}_company_id', table, ['company_id'])

    # Quotations
    op.create_table(
        'quotations',
        *_base_columns(),
        sa.Column('quotation_number', sa.BigInteger(), nullable=True),
        sa.Column(
            'client_id',
            sa.Uuid(),
            sa.ForeignKey('clients.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('client_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='Draft'),
        sa.Column('valid_until', sa.Date(), nullable=True),
        sa.Column(
            'currency_id',
            sa.Uuid(),
            sa.ForeignKey('currencies.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('exchange_rate', RATE, nullable=False, server_default='1'),
        sa.Column('total_price_foreign', MONEY, nullable=False, server_default='0'),
        sa.Column('total_price_company', COMPANY_MONEY, nullable=False, server_default='0'),
        sa.Column(
            'pricing_tier_id',
            sa.Uuid(),
            sa.ForeignKey('pricing_tiers.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.CheckConstraint(
            'exchange_rate > 0', name='check_quotation_exchange_rate_positive'
        ),
        sa.UniqueConstraint(
            'company_id', 'quotation_number', name='uq_quotations_company_number'
        ),
        comment='Client quotations',
    )
    op.create_index('ix_quotations_company_id', 'quotations', ['company_id'])

    op.create_table(
        'quotation_items',
        *_base_columns(tenant=False),
        sa.Column(
            'quotation_id',
            sa.Uuid(),
            sa.ForeignKey('quotations.id', ondelete='CASCADE'),
            nullable=False,
        ),
        *_item_columns(),
        sa.CheckConstraint('quantity >= 1', name='check_quotation_item_quantity_positive'),
    )
    op.create_index('ix_quotation_items_quotation_id', 'quotation_items', ['quotation_id'])

    # Order aggregate
    op.create_table(
        'orders',
        *_base_columns(),
        sa.Column('order_number', sa.BigInteger(), nullable=True),
        sa.Column(
            'client_id',
            sa.Uuid(),
            sa.ForeignKey('clients.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('client_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('delivery_method', sa.String(50), nullable=True),
        sa.Column('delivery_date', sa.Date(), nullable=True),
        sa.Column('needs_design', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column(
            'currency_id',
            sa.Uuid(),
            sa.ForeignKey('currencies.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('exchange_rate', RATE, nullable=False, server_default='1'),
        sa.Column('total_price_foreign', MONEY, nullable=False, server_default='0'),
        sa.Column('total_price_company', COMPANY_MONEY, nullable=False, server_default='0'),
        sa.Column('paid_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column(
            'pricing_tier_id',
            sa.Uuid(),
            sa.ForeignKey('pricing_tiers.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'quotation_id',
            sa.Uuid(),
            sa.ForeignKey('quotations.id', ondelete='SET NULL'),
            nullable=True,
            comment='Quotation this order was converted from',
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.CheckConstraint('exchange_rate > 0', name='check_order_exchange_rate_positive'),
        sa.CheckConstraint('total_price_foreign >= 0', name='check_order_total_non_negative'),
        sa.CheckConstraint('paid_amount >= 0', name='check_order_paid_non_negative'),
        sa.UniqueConstraint('company_id', 'order_number', name='uq_orders_company_number'),
        comment='Customer orders',
    )
    op.create_index('ix_orders_company_id', 'orders', ['company_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_company_status', 'orders', ['company_id', 'status'])

    op.create_table(
        'order_items',
        *_base_columns(tenant=False),
        sa.Column(
            'order_id',
            sa.Uuid(),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        *_item_columns(),
        sa.CheckConstraint('quantity >= 1', name='check_order_item_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='check_order_item_price_non_negative'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'order_attachments',
        *_base_columns(),
        sa.Column(
            'order_id',
            sa.Uuid(),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('file_type', sa.String(50), nullable=False),
        sa.Column('uploader_id', sa.Uuid(), nullable=True),
    )
    op.create_index('ix_order_attachments_company_id', 'order_attachments', ['company_id'])
    op.create_index(
        'ix_order_attachments_order_type', 'order_attachments', ['order_id', 'file_type']
    )

    op.create_table(
        'order_comments',
        *_base_columns(tenant=False),
        sa.Column(
            'order_id',
            sa.Uuid(),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
    )
    op.create_index('ix_order_comments_order_id', 'order_comments', ['order_id'])

    op.create_table(
        'order_status_history',
        *_base_columns(tenant=False),
        sa.Column(
            'order_id',
            sa.Uuid(),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('previous_status', sa.String(50), nullable=True),
        sa.Column('new_status', sa.String(50), nullable=False),
        sa.Column('changed_by', sa.Uuid(), nullable=True),
        sa.Column('action_details', sa.Text(), nullable=True),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.UniqueConstraint('order_id', 'sequence', name='uq_order_history_sequence'),
    )
    op.create_index(
        'ix_order_history_order_created',
        'order_status_history',
        ['order_id', 'created_at'],
    )


def downgrade() -> None:
    """
    Downgrade database schema by dropping every workflow table.
    """
    op.drop_table('order_status_history')
    op.drop_table('order_comments')
    op.drop_table('order_attachments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('quotation_items')
    op.drop_table('quotations')
    op.drop_table('order_statuses')
    op.drop_table('clients')
    op.drop_table('products')
    op.drop_table('pricing_tiers')
    op.drop_table('exchange_rates')
    op.drop_table('companies')
    op.drop_table('currencies')
