"""affiliate attribution schema

Revision ID: a7c1e0d4b9f2
Revises:
Create Date: 2026-10-19 09:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a7c1e0d4b9f2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Partners ---
    op.create_table('partners',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('commission_rate', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_type', sa.String(length=20), nullable=False),
        sa.Column('cookie_duration_days', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_partners_slug'), 'partners', ['slug'], unique=True)

    # --- Products ---
    op.create_table('products',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('commission_override', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_products_partner_id'), 'products', ['partner_id'], unique=False)

    # --- Campaigns ---
    op.create_table('campaigns',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('bonus_commission_rate', sa.Numeric(12, 2), nullable=True),
        sa.Column('target_clicks', sa.Integer(), nullable=True),
        sa.Column('target_conversions', sa.Integer(), nullable=True),
        sa.Column('target_revenue', sa.Numeric(14, 2), nullable=True),
        sa.Column('creatives_urls', sa.Text(), nullable=True),
        sa.Column('notification_emails', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- Links ---
    op.create_table('links',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('short_code', sa.String(length=32), nullable=False),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('campaign_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('destination_url', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attribution_window_days', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_links_short_code'), 'links', ['short_code'], unique=True)
    op.create_index(op.f('ix_links_partner_id'), 'links', ['partner_id'], unique=False)
    op.create_index(op.f('ix_links_campaign_id'), 'links', ['campaign_id'], unique=False)

    # --- API keys ---
    op.create_table('api_keys',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('key_hash', sa.String(length=64), nullable=False),
        sa.Column('key_prefix', sa.String(length=12), nullable=False),
        sa.Column('scope', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_api_keys_key_hash'), 'api_keys', ['key_hash'], unique=True)

    # --- Clicks (append-only) ---
    op.create_table('clicks',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('link_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', sa.String(length=64), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('device_type', sa.String(length=20), nullable=True),
        sa.Column('country_code', sa.String(length=2), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('clicked_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['link_id'], ['links.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clicks_link_clicked', 'clicks', ['link_id', 'clicked_at'], unique=False)

    # --- Conversions ---
    op.create_table('conversions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('link_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('click_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('order_id', sa.String(length=255), nullable=True),
        sa.Column('sale_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('commission_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('attributed', sa.Boolean(), nullable=False),
        sa.Column('counts_toward_targets', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payout_status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('converted_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['link_id'], ['links.id']),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['click_id'], ['clicks.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('partner_id', 'order_id', name='uq_conversions_partner_order'),
    )
    op.create_index('ix_conversions_link_converted', 'conversions', ['link_id', 'converted_at'], unique=False)
    op.create_index(op.f('ix_conversions_partner_id'), 'conversions', ['partner_id'], unique=False)


def downgrade() -> None:
    op.drop_table('conversions')
    op.drop_table('clicks')
    op.drop_table('api_keys')
    op.drop_table('links')
    op.drop_table('campaigns')
    op.drop_table('products')
    op.drop_table('partners')
