"""initial schema: links, analytics, users

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Links ---
    op.create_table('links',
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('link', sa.Text(), nullable=False),
        sa.Column('creator', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('visits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('maxVisits', sa.Integer(), nullable=True),
        sa.Column('expires', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('code'),
    )
    op.create_index('ix_links_creator_created', 'links', ['creator', 'created'])

    # --- Analytics (append-only) ---
    op.create_table('analytics',
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('useragent', sa.Text(), nullable=True),
        sa.Column('referer', sa.Text(), nullable=True),
        sa.Column('geoCountry', sa.String(length=8), nullable=True),
        sa.Column('geoCity', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('timestamp', 'ip'),
    )
    op.create_index('ix_analytics_code', 'analytics', ['code'])

    # --- Users ---
    op.create_table('users',
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('secret', sa.String(length=64), nullable=False),
        sa.Column('admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('name'),
    )


def downgrade() -> None:
    op.drop_table('users')
    op.drop_index('ix_analytics_code', table_name='analytics')
    op.drop_table('analytics')
    op.drop_index('ix_links_creator_created', table_name='links')
    op.drop_table('links')
