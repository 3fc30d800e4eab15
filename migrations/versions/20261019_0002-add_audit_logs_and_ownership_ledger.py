"""Add audit_logs and prospect_ownership_logs tables.

Both tables are append-only. Also installs log_prospect_ownership_change(),
the database-side form of the ownership ledger insert.

Revision ID: b8e2d4f6a1c3
Revises: a3f1c9d2e4b7
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b8e2d4f6a1c3'
down_revision: Union[str, None] = 'a3f1c9d2e4b7'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


LOG_OWNERSHIP_CHANGE_FUNCTION = """
CREATE OR REPLACE FUNCTION log_prospect_ownership_change(
    p_prospect_id INTEGER,
    p_old_owner_id INTEGER,
    p_new_owner_id INTEGER,
    p_changed_by INTEGER,
    p_reason TEXT,
    p_ip_address VARCHAR DEFAULT NULL,
    p_user_agent TEXT DEFAULT NULL
) RETURNS INTEGER AS $$
DECLARE
    new_id INTEGER;
BEGIN
    INSERT INTO prospect_ownership_logs (
        prospect_id, old_owner_id, new_owner_id, changed_by_user_id,
        reason, ip_address, user_agent
    ) VALUES (
        p_prospect_id, p_old_owner_id, p_new_owner_id, p_changed_by,
        p_reason, p_ip_address, p_user_agent
    )
    RETURNING id INTO new_id;
    RETURN new_id;
END;
$$ LANGUAGE plpgsql;
"""


def upgrade() -> None:
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        # Actor
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('user_email', sa.String(), nullable=True),
        sa.Column('user_name', sa.String(), nullable=True),
        sa.Column('user_role', sa.String(), nullable=True),
        # What changed
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('table_name', sa.String(), nullable=True),
        sa.Column('record_id', sa.Integer(), nullable=True),
        sa.Column('action_description', sa.Text(), nullable=False),
        # Values (JSON text)
        sa.Column('old_values', sa.Text(), nullable=True),
        sa.Column('new_values', sa.Text(), nullable=True),
        sa.Column('changed_fields', sa.JSON(), nullable=True),
        # Provenance
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        # Classification
        sa.Column('business_context', sa.String(), nullable=False, server_default='general'),
        sa.Column('severity_level', sa.String(20), nullable=False, server_default='info'),
        # When
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "severity_level IN ('info', 'warning', 'error', 'critical')",
            name='ck_audit_logs_severity_level',
        ),
        sa.CheckConstraint("action_description <> ''", name='ck_audit_logs_description_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_index('ix_audit_logs_action_type', 'audit_logs', ['action_type'])
    op.create_index('ix_audit_logs_severity_level', 'audit_logs', ['severity_level'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['table_name', 'record_id'])
    op.create_index('ix_audit_logs_user_time', 'audit_logs', ['user_id', 'created_at'])

    op.create_table(
        'prospect_ownership_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('prospect_id', sa.Integer(), nullable=False),
        sa.Column('old_owner_id', sa.Integer(), nullable=True),
        sa.Column('new_owner_id', sa.Integer(), nullable=False),
        sa.Column('changed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_prospect_ownership_logs_prospect_id', 'prospect_ownership_logs', ['prospect_id'])
    op.create_index(
        'ix_prospect_ownership_logs_prospect_time',
        'prospect_ownership_logs',
        ['prospect_id', 'created_at'],
    )

    op.execute(LOG_OWNERSHIP_CHANGE_FUNCTION)


def downgrade() -> None:
    op.execute(
        "DROP FUNCTION IF EXISTS log_prospect_ownership_change("
        "INTEGER, INTEGER, INTEGER, INTEGER, TEXT, VARCHAR, TEXT)"
    )

    op.drop_index('ix_prospect_ownership_logs_prospect_time', table_name='prospect_ownership_logs')
    op.drop_index('ix_prospect_ownership_logs_prospect_id', table_name='prospect_ownership_logs')
    op.drop_table('prospect_ownership_logs')

    op.drop_index('ix_audit_logs_user_time', table_name='audit_logs')
    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_index('ix_audit_logs_created_at', table_name='audit_logs')
    op.drop_index('ix_audit_logs_severity_level', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action_type', table_name='audit_logs')
    op.drop_table('audit_logs')
