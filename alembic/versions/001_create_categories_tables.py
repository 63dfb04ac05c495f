"""Create categories, products and product_categories tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create category hierarchy tables."""
    # Categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, index=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parent_id', sa.String(36), nullable=True),
        sa.Column('level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('path', sa.String(500), nullable=False),
        sa.Column('ancestors', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('level >= 0 AND level <= 2', name='ck_categories_level'),
    )

    # Path is unique among live categories only
    op.create_index(
        'uq_categories_live_path',
        'categories',
        ['path'],
        unique=True,
        postgresql_where=sa.text('deleted_at IS NULL'),
    )

    # Prefix scans for subtree lookups
    op.create_index(
        'ix_categories_path_prefix',
        'categories',
        ['path'],
        postgresql_ops={'path': 'varchar_pattern_ops'},
    )

    op.create_index('ix_categories_parent_sort', 'categories', ['parent_id', 'sort_order'])
    op.create_index('ix_categories_level_active_sort', 'categories', ['level', 'is_active', 'sort_order'])
    op.create_index('ix_categories_ancestors', 'categories', ['ancestors'], postgresql_using='gin')

    # Products table
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('sku', sa.String(100), nullable=False, unique=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Product to category references
    op.create_table(
        'product_categories',
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('category_id', sa.String(36),
                  sa.ForeignKey('categories.id'), primary_key=True, index=True),
    )


def downgrade() -> None:
    """Drop category hierarchy tables."""
    op.drop_table('product_categories')
    op.drop_table('products')
    op.drop_index('ix_categories_ancestors', table_name='categories')
    op.drop_index('ix_categories_level_active_sort', table_name='categories')
    op.drop_index('ix_categories_parent_sort', table_name='categories')
    op.drop_index('ix_categories_path_prefix', table_name='categories')
    op.drop_index('uq_categories_live_path', table_name='categories')
    op.drop_table('categories')
