"""Add public access tokens table.

Revision ID: 001_public_access_tokens
Revises:
Create Date: 2026-10-19

Capability tokens for emailed storefront links (proof review, order
tracking, invoice payment, design access):
- Token is the primary key (64 hex chars, opaque)
- Bound to exactly one (resource_type, resource_id)
- used_at is written once by a conditional update for one-time tokens
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_public_access_tokens'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create public_access_tokens table."""
    op.create_table(
        'public_access_tokens',
        sa.Column('token', sa.String(64), primary_key=True),
        sa.Column('resource_type', sa.String(20), nullable=False),
        sa.Column('resource_id', sa.String(255), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('one_time_use', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "resource_type IN ('proof', 'order', 'invoice', 'design')",
            name='ck_public_access_tokens_resource_type',
        ),
    )

    # Revoke-by-resource and cleanup lookups
    op.create_index('ix_public_access_tokens_resource', 'public_access_tokens', ['resource_type', 'resource_id'])
    op.create_index('ix_public_access_tokens_expires_at', 'public_access_tokens', ['expires_at'])


def downgrade() -> None:
    """Drop public_access_tokens table."""
    op.drop_index('ix_public_access_tokens_expires_at', table_name='public_access_tokens')
    op.drop_index('ix_public_access_tokens_resource', table_name='public_access_tokens')
    op.drop_table('public_access_tokens')
