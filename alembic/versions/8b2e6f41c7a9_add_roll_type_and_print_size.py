"""add_roll_type_and_print_size

Revision ID: 8b2e6f41c7a9
Revises: 3f1c9a7d2e40
Create Date: 2026-10-19 14:37:05.201944

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2e6f41c7a9'
down_revision: Union[str, None] = '3f1c9a7d2e40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'roll_type',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('roll_type', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_roll_type_id'), 'roll_type', ['id'], unique=False)

    op.create_table(
        'print_size',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('print_size', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_print_size_id'), 'print_size', ['id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_print_size_id'), table_name='print_size')
    op.drop_table('print_size')
    op.drop_index(op.f('ix_roll_type_id'), table_name='roll_type')
    op.drop_table('roll_type')
