#
# Alembic migration script
#
"""
Revision ID: 3c41a9e07b52
Revises:
Create Date: 2026-10-19 17:05:41.318204

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c41a9e07b52'
down_revision = None
branch_labels = None
depends_on = None

review_status = sa.Enum('PERFECT', 'GOOD', 'NORMAL', 'BAD', name='review_status')


def upgrade() -> None:
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('embedding_vector', sa.Text(), nullable=True),
    )
    op.create_index('ix_categories_id', 'categories', ['id'])

    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('average_embedding_vector', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_items_id', 'items', ['id'])
    op.create_index('ix_items_name', 'items', ['name'])

    op.create_table(
        'item_categories',
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('items.id'), primary_key=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), primary_key=True),
    )

    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
    )
    op.create_index('ix_members_id', 'members', ['id'])
    op.create_index('ix_members_username', 'members', ['username'], unique=True)

    op.create_table(
        'item_reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('review_status', review_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('items.id'), nullable=False),
    )
    op.create_index('ix_item_reviews_id', 'item_reviews', ['id'])
    op.create_index('ix_item_reviews_member_id', 'item_reviews', ['member_id'])

    op.create_table(
        'member_categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=False),
    )
    op.create_index('ix_member_categories_id', 'member_categories', ['id'])
    op.create_index('ix_member_categories_member_id', 'member_categories', ['member_id'])


def downgrade() -> None:
    op.drop_table('member_categories')
    op.drop_table('item_reviews')
    review_status.drop(op.get_bind(), checkfirst=True)
    op.drop_table('members')
    op.drop_table('item_categories')
    op.drop_table('items')
    op.drop_table('categories')
