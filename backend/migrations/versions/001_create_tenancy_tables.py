"""Create sessions, audit_logs, tenant_accounts, payment_records and students tables

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Server-side sessions, one row per issued JWT
    op.create_table(
        'sessions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('token_id', sa.String(64), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('issued_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('last_active_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('device_type', sa.Text(), nullable=True),
        sa.Column('browser', sa.Text(), nullable=True),
        sa.Column('os', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('ip_hash', sa.String(64), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('revoked_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.Text(), nullable=True),
        sa.Column('revoked_by', sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_id', name='uq_sessions_token_id'),
    )
    op.create_index('ix_sessions_tenant_id', 'sessions', ['tenant_id'])
    op.create_index('ix_sessions_tenant_user_revoked', 'sessions', ['tenant_id', 'user_id', 'is_revoked'])
    op.create_index('ix_sessions_expires_at', 'sessions', ['expires_at'])

    # Append-only audit trail
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('module', sa.Text(), nullable=False),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('actor_id', sa.String(64), nullable=True),
        sa.Column('actor_name', sa.Text(), nullable=True),
        sa.Column('actor_role', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('entity_name', sa.Text(), nullable=True),
        sa.Column('changes', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_tenant_timestamp', 'audit_logs', ['tenant_id', 'timestamp'])
    op.create_index('ix_audit_logs_tenant_module', 'audit_logs', ['tenant_id', 'module'])

    # Billing records read by the plan restriction gate
    op.create_table(
        'tenant_accounts',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('account_id', sa.String(64), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', name='uq_tenant_accounts_tenant_id'),
    )

    op.create_table(
        'payment_records',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('account_id', sa.String(64), nullable=True),
        sa.Column('plan', sa.Text(), nullable=False),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_records_tenant_window', 'payment_records', ['tenant_id', 'start_date', 'end_date'])

    # Usage entity counted against the free plan limit
    op.create_table(
        'students',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_tenant_id', 'students', ['tenant_id'])


def downgrade():
    op.drop_index('ix_students_tenant_id', table_name='students')
    op.drop_table('students')
    op.drop_index('ix_payment_records_tenant_window', table_name='payment_records')
    op.drop_table('payment_records')
    op.drop_table('tenant_accounts')
    op.drop_index('ix_audit_logs_tenant_module', table_name='audit_logs')
    op.drop_index('ix_audit_logs_tenant_timestamp', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_sessions_expires_at', table_name='sessions')
    op.drop_index('ix_sessions_tenant_user_revoked', table_name='sessions')
    op.drop_index('ix_sessions_tenant_id', table_name='sessions')
    op.drop_table('sessions')
