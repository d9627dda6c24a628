"""create_alarms

Revision ID: b4d1e7a20c31
Revises:
Create Date: 2026-09-14 10:00:00.000000

Alarm list: one row per alarm_id with scheduled class changes and
staged after-ack values.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = 'b4d1e7a20c31'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'alarms',
        sa.Column('alarm_id', sa.String(200), nullable=False),
        sa.Column('alarm_class', sa.Integer(), nullable=False),
        sa.Column('alarm_state', sa.String(200), nullable=False),
        sa.Column('raised_time', sa.BigInteger(), nullable=False),
        sa.Column('require_ack', sa.Boolean(), nullable=False),
        sa.Column('delete_time', sa.BigInteger(), nullable=True),
        sa.Column('class_1_time', sa.BigInteger(), nullable=True),
        sa.Column('class_2_time', sa.BigInteger(), nullable=True),
        sa.Column('class_3_time', sa.BigInteger(), nullable=True),
        sa.Column('time_after_ack', sa.BigInteger(), nullable=True),
        sa.Column('class_after_ack', sa.Integer(), nullable=True),
        sa.Column('state_after_ack', sa.String(200), nullable=True),
        sa.PrimaryKeyConstraint('alarm_id', name='pk_alarms'),
    )
    op.create_index('ix_alarms_raised_time', 'alarms', ['raised_time'])
    op.create_index('ix_alarms_delete_time', 'alarms', ['delete_time'])


def downgrade() -> None:
    op.drop_index('ix_alarms_delete_time', table_name='alarms')
    op.drop_index('ix_alarms_raised_time', table_name='alarms')
    op.drop_table('alarms')
