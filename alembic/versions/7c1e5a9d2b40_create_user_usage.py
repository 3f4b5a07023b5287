"""create_user_usage

Revision ID: 7c1e5a9d2b40
Revises:
Create Date: 2026-10-19 09:12:04.118273

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e5a9d2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the per-user daily request counter table."""
    from sqlalchemy import inspect

    # Idempotent: the table may already exist from create_all in development
    bind = op.get_bind()
    inspector = inspect(bind)
    if 'user_usage' in inspector.get_table_names():
        return

    op.create_table(
        'user_usage',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('request_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'date', name='uq_user_usage_user_date'),
    )
    op.create_index(op.f('ix_user_usage_id'), 'user_usage', ['id'], unique=False)
    op.create_index(op.f('ix_user_usage_user_id'), 'user_usage', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_usage_date'), 'user_usage', ['date'], unique=False)


def downgrade() -> None:
    """Drop the per-user daily request counter table."""
    op.drop_index(op.f('ix_user_usage_date'), table_name='user_usage')
    op.drop_index(op.f('ix_user_usage_user_id'), table_name='user_usage')
    op.drop_index(op.f('ix_user_usage_id'), table_name='user_usage')
    op.drop_table('user_usage')
