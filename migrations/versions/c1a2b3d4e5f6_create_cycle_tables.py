"""Create tenants, subscription cycle and sync run tables.

Revision ID: c1a2b3d4e5f6
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c1a2b3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create cycle tracking tables."""
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(255), nullable=False),
        sa.Column('shop_slug', sa.String(100), nullable=False),
        sa.Column('shopify_domain', sa.String(255), nullable=True),
        sa.Column('shopify_access_token', sa.Text(), nullable=True),
        sa.Column('webhook_secret', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_slug'),
        sa.UniqueConstraint('shopify_domain'),
    )

    op.create_table(
        'subscription_cycles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subscription_key', sa.String(512), nullable=False),
        sa.Column('shop', sa.String(255), nullable=False),
        sa.Column('customer_id', sa.String(100), nullable=False),
        sa.Column('selling_plan_id', sa.String(255), nullable=True),
        sa.Column('product_id', sa.String(255), nullable=True),
        sa.Column('variant_id', sa.String(255), nullable=True),
        sa.Column('cycle', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_order_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subscription_key'),
        sa.CheckConstraint('cycle >= 1', name='ck_subscription_cycles_cycle_positive'),
    )
    op.create_index(
        'ix_subscription_cycles_shop_customer',
        'subscription_cycles',
        ['shop', 'customer_id']
    )

    op.create_table(
        'subscription_cycle_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(255), nullable=False),
        sa.Column('subscription_key', sa.String(512), nullable=False),
        sa.Column('cycle', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )
    op.create_index(
        'ix_subscription_cycle_orders_subscription_key',
        'subscription_cycle_orders',
        ['subscription_key']
    )

    op.create_table(
        'cycle_sync_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='running'),
        sa.Column('trigger', sa.String(20), server_default='admin'),
        sa.Column('processed_orders', sa.Integer(), server_default='0'),
        sa.Column('error_count', sa.Integer(), server_default='0'),
        sa.Column('errors', sa.JSON(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cycle_sync_runs_shop_status', 'cycle_sync_runs', ['shop', 'status'])


def downgrade():
    """Drop cycle tracking tables."""
    op.drop_index('ix_cycle_sync_runs_shop_status', table_name='cycle_sync_runs')
    op.drop_table('cycle_sync_runs')
    op.drop_index('ix_subscription_cycle_orders_subscription_key', table_name='subscription_cycle_orders')
    op.drop_table('subscription_cycle_orders')
    op.drop_index('ix_subscription_cycles_shop_customer', table_name='subscription_cycles')
    op.drop_table('subscription_cycles')
    op.drop_table('tenants')
