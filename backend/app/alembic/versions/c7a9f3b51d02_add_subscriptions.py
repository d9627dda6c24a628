"""add_subscriptions

Revision ID: c7a9f3b51d02
Revises: b4d1e7a20c31
Create Date: 2026-09-21 16:30:00.000000

Webhook endpoints that receive alarm notifications.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = 'c7a9f3b51d02'
down_revision: Union[str, None] = 'b4d1e7a20c31'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('endpoint', sa.String(1000), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('endpoint', name='uq_subscriptions_endpoint'),
    )


def downgrade() -> None:
    op.drop_table('subscriptions')
