"""Add prospects table.

Revision ID: a3f1c9d2e4b7
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3f1c9d2e4b7'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'prospects',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('business_name', sa.String(), nullable=False),
        sa.Column('contact_name', sa.String(), nullable=True),
        sa.Column('contact_email', sa.String(), nullable=True),
        sa.Column('contact_phone', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='new'),
        # Owning salesperson
        sa.Column('assigned_salesperson_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('estimated_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        # Conversion
        sa.Column('converted_client_id', sa.Integer(), nullable=True),
        sa.Column('conversion_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('converted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_prospects_status', 'prospects', ['status'])
    op.create_index('ix_prospects_assigned_salesperson_id', 'prospects', ['assigned_salesperson_id'])


def downgrade() -> None:
    op.drop_index('ix_prospects_assigned_salesperson_id', table_name='prospects')
    op.drop_index('ix_prospects_status', table_name='prospects')
    op.drop_table('prospects')
