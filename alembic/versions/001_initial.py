"""Initial schema: api keys, usage log, profiles, catalog and SMM tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.String(length=36), nullable=False)


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    # Create user_api_keys table
    op.create_table(
        'user_api_keys',
        _id(),
        sa.Column('api_key', sa.String(length=128), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('api_type', sa.String(length=20), nullable=False, server_default='premium'),
        sa.Column('rate_limit_per_minute', sa.Integer(), nullable=True),
        sa.Column('rate_limit_per_day', sa.Integer(), nullable=True),
        sa.Column('ip_whitelist', sa.Text(), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('request_count', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('api_key', name='uq_user_api_keys_api_key')
    )
    op.create_index('ix_user_api_keys_user_id', 'user_api_keys', ['user_id'])
    op.create_index('idx_user_api_keys_lookup', 'user_api_keys', ['api_key', 'is_active', 'status'])

    # Create api_usage_logs table; doubles as the rate-limit window
    op.create_table(
        'api_usage_logs',
        _id(),
        sa.Column('api_key_id', sa.String(length=36), sa.ForeignKey('user_api_keys.id'), nullable=False),
        sa.Column('endpoint', sa.Text(), nullable=False),
        sa.Column('method', sa.Text(), nullable=False),
        sa.Column('status_code', sa.Integer(), nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=False),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_api_usage_logs_created_at', 'api_usage_logs', ['created_at'])
    op.create_index('idx_api_usage_logs_window', 'api_usage_logs', ['api_key_id', 'created_at'])

    op.create_table(
        'profiles',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('balance', sa.Numeric(18, 6), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_profiles_user_id')
    )

    # Catalog
    op.create_table(
        'categories',
        _id(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('name_en', sa.String(length=200), nullable=True),
        sa.Column('slug', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('description_en', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('style', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_categories_slug')
    )
    op.create_index('ix_categories_style', 'categories', ['style'])

    op.create_table(
        'products',
        _id(),
        sa.Column('category_id', sa.String(length=36), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('name_en', sa.String(length=255), nullable=True),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('short_description', sa.Text(), nullable=True),
        sa.Column('short_description_en', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(18, 2), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('style', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_products_slug')
    )
    op.create_index('ix_products_style', 'products', ['style'])

    op.create_table(
        'product_images',
        _id(),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_product_images_product_id', 'product_images', ['product_id'])

    op.create_table(
        'product_packages',
        _id(),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(18, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_product_packages_product_id', 'product_packages', ['product_id'])

    op.create_table(
        'flash_sales',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('banner_url', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'flash_sale_items',
        _id(),
        sa.Column('flash_sale_id', sa.String(length=36), sa.ForeignKey('flash_sales.id'), nullable=False),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('package_id', sa.String(length=36), sa.ForeignKey('product_packages.id'), nullable=True),
        sa.Column('original_price', sa.Numeric(18, 2), nullable=True),
        sa.Column('sale_price', sa.Numeric(18, 2), nullable=False),
        sa.Column('discount_percent', sa.Integer(), nullable=True),
        sa.Column('quantity_limit', sa.Integer(), nullable=True),
        sa.Column('quantity_sold', sa.Integer(), nullable=True, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_flash_sale_items_flash_sale_id', 'flash_sale_items', ['flash_sale_id'])

    op.create_table(
        'game_account_inventory',
        _id(),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('account_data', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='available'),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_game_account_inventory_product_id', 'game_account_inventory', ['product_id'])
    op.create_index('idx_inventory_availability', 'game_account_inventory', ['product_id', 'status'])

    # SMM resale
    op.create_table(
        'smm_config',
        _id(),
        sa.Column('api_domain', sa.String(length=255), nullable=False),
        sa.Column('api_key', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'smm_services',
        _id(),
        sa.Column('external_service_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('rate', sa.Numeric(18, 6), nullable=False),
        sa.Column('markup_percent', sa.Numeric(8, 2), nullable=True, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_service_id', name='uq_smm_services_external_service_id')
    )

    op.create_table(
        'smm_orders',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('service_id', sa.String(length=36), sa.ForeignKey('smm_services.id'), nullable=True),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('external_order_id', sa.String(length=64), nullable=True),
        sa.Column('link', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('charge', sa.Numeric(18, 6), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Pending'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number', name='uq_smm_orders_order_number')
    )
    op.create_index('ix_smm_orders_user_id', 'smm_orders', ['user_id'])

    op.create_table(
        'wallet_transactions',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('amount', sa.Numeric(18, 6), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.String(length=36), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed'),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_wallet_transactions_user_id', 'wallet_transactions', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_wallet_transactions_user_id', table_name='wallet_transactions')
    op.drop_table('wallet_transactions')

    op.drop_index('ix_smm_orders_user_id', table_name='smm_orders')
    op.drop_table('smm_orders')
    op.drop_table('smm_services')
    op.drop_table('smm_config')

    op.drop_index('idx_inventory_availability', table_name='game_account_inventory')
    op.drop_index('ix_game_account_inventory_product_id', table_name='game_account_inventory')
    op.drop_table('game_account_inventory')

    op.drop_index('ix_flash_sale_items_flash_sale_id', table_name='flash_sale_items')
    op.drop_table('flash_sale_items')
    op.drop_table('flash_sales')

    op.drop_index('ix_product_packages_product_id', table_name='product_packages')
    op.drop_table('product_packages')
    op.drop_index('ix_product_images_product_id', table_name='product_images')
    op.drop_table('product_images')
    op.drop_index('ix_products_style', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_categories_style', table_name='categories')
    op.drop_table('categories')

    op.drop_table('profiles')

    # Drop api_usage_logs table
    op.drop_index('idx_api_usage_logs_window', table_name='api_usage_logs')
    op.drop_index('ix_api_usage_logs_created_at', table_name='api_usage_logs')
    op.drop_table('api_usage_logs')

    # Drop user_api_keys table
    op.drop_index('idx_user_api_keys_lookup', table_name='user_api_keys')
    op.drop_index('ix_user_api_keys_user_id', table_name='user_api_keys')
    op.drop_table('user_api_keys')
