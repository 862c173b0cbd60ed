"""Create users, master data, schemes, scheme history and filter presets

Revision ID: 001_create_scheme_tables
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_create_scheme_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('username', sa.String(50), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='viewer',
                  comment='admin, creator, verifier, viewer'),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=True, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create products table (no unique key: natural key parts are nullable)
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('item_id', sa.String(50), nullable=True),
        sa.Column('style', sa.String(50), nullable=True),
        sa.Column('configuration', sa.String(50), nullable=True),
        sa.Column('item_name', sa.String(255), nullable=True),
        sa.Column('brand_name', sa.String(100), nullable=True),
        sa.Column('flavour_type', sa.String(100), nullable=True),
        sa.Column('pack_type_group_name', sa.String(100), nullable=True),
        sa.Column('pack_type', sa.String(100), nullable=True),
        sa.Column('nob', sa.Integer, nullable=True,
                  comment='Number of bottles per pack'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_products_item_id', 'products', ['item_id'])
    op.create_index('ix_products_natural_key', 'products', ['item_id', 'style', 'configuration'])

    # Create distributors table
    op.create_table(
        'distributors',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('customer_account', sa.String(50), nullable=False),
        sa.Column('sm_code', sa.String(50), nullable=True,
                  comment='Sales hierarchy code'),
        sa.Column('organization_name', sa.String(255), nullable=True),
        sa.Column('address_city', sa.String(100), nullable=True),
        sa.Column('customer_group_id', sa.String(50), nullable=True,
                  comment='Line discount group a group-type scheme can target'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_distributors_customer_account', 'distributors', ['customer_account'], unique=True)
    op.create_index('ix_distributors_customer_group_id', 'distributors', ['customer_group_id'])

    # Create schemes table
    op.create_table(
        'schemes',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('scheme_code', sa.String(40), nullable=False),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=False),
        sa.Column('distributor_type', sa.String(20), nullable=False, server_default='individual'),
        sa.Column('distributors', sa.JSON, nullable=False,
                  comment='Distributor ids (individual) or customer group codes (group)'),
        sa.Column('products', sa.JSON, nullable=False,
                  comment='Product line snapshots with discount_price and custom_fields'),
        sa.Column('status', sa.String(30), nullable=False, server_default='Pending Verification'),
        sa.Column('created_by', sa.Uuid, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('verified_by', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_schemes_scheme_code', 'schemes', ['scheme_code'], unique=True)
    op.create_index('ix_schemes_status', 'schemes', ['status'])
    op.create_index('ix_schemes_created_by', 'schemes', ['created_by'])

    # Create scheme_history table (append-only)
    op.create_table(
        'scheme_history',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('scheme_id', sa.Uuid, sa.ForeignKey('schemes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(20), nullable=False,
                  comment='created, verified, rejected, modified'),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_scheme_history_scheme_id', 'scheme_history', ['scheme_id'])
    op.create_index('ix_scheme_history_timestamp', 'scheme_history', ['timestamp'])

    # Create filter_presets table
    op.create_table(
        'filter_presets',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('filters', sa.JSON, nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_filter_presets_user_id', 'filter_presets', ['user_id'])


def downgrade() -> None:
    op.drop_table('filter_presets')
    op.drop_table('scheme_history')
    op.drop_table('schemes')
    op.drop_table('distributors')
    op.drop_table('products')
    op.drop_table('users')
