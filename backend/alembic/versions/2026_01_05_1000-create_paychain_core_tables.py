"""create_paychain_core_tables

Revision ID: paychain_core_20260105
Revises:
Create Date: 2026-01-05 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'paychain_core_20260105'
down_revision = None
branch_labels = None
depends_on = None

ACCOUNT_STATUS = ('UNVERIFIED', 'EMAIL_VERIFIED', 'PENDING', 'APPROVED', 'REJECTED', 'SUSPENDED')
COMPLIANCE_STATUS = ('DRAFT', 'PENDING', 'APPROVED', 'REJECTED')
ACTOR_ROLE = ('ADMIN', 'COMPLIANCE', 'OPS', 'READ_ONLY')
PAYMENT_RAIL = ('MPESA', 'AIRTEL', 'CARD')
TRANSACTION_STATUS = ('PENDING', 'SUCCESS', 'FAILED', 'HELD', 'RELEASED', 'REFUNDED')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # accounts
    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('business_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('status', sa.Enum(*ACCOUNT_STATUS, name='account_status'), nullable=False),
        sa.Column('sandbox_api_key', sa.String(length=64), nullable=True),
        sa.Column('live_key_hash', sa.String(length=64), nullable=True),
        sa.Column('live_key_last_four', sa.String(length=4), nullable=True),
        sa.Column('webhook_url', sa.String(length=2048), nullable=True),
        sa.Column('webhook_secret', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_accounts_id'), 'accounts', ['id'], unique=False)
    op.create_index(op.f('ix_accounts_email'), 'accounts', ['email'], unique=True)
    op.create_index(op.f('ix_accounts_status'), 'accounts', ['status'], unique=False)
    # Credential lookups are point lookups on these two
    op.create_index(op.f('ix_accounts_sandbox_api_key'), 'accounts', ['sandbox_api_key'], unique=True)
    op.create_index(op.f('ix_accounts_live_key_hash'), 'accounts', ['live_key_hash'], unique=True)

    # compliance_records
    op.create_table(
        'compliance_records',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('account_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('status', sa.Enum(*COMPLIANCE_STATUS, name='compliance_status'), nullable=False),
        sa.Column('director_name', sa.String(length=255), nullable=True),
        sa.Column('director_id_number', sa.String(length=64), nullable=True),
        sa.Column('physical_address', sa.Text(), nullable=True),
        sa.Column('tax_pin', sa.String(length=64), nullable=True),
        sa.Column('monthly_volume', sa.BigInteger(), nullable=True),
        sa.Column('id_document_ref', sa.String(length=1024), nullable=True),
        sa.Column('registration_document_ref', sa.String(length=1024), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_compliance_records_account_id'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_compliance_records_id'), 'compliance_records', ['id'], unique=False)
    op.create_index(op.f('ix_compliance_records_account_id'), 'compliance_records', ['account_id'], unique=True)
    op.create_index(op.f('ix_compliance_records_status'), 'compliance_records', ['status'], unique=False)

    # audit_logs
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('actor_subject', sa.String(length=255), nullable=True),
        sa.Column('actor_role', sa.Enum(*ACTOR_ROLE, name='actor_role'), nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('before', sa.JSON(), nullable=True),
        sa.Column('after', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_actor_subject'), 'audit_logs', ['actor_subject'], unique=False)
    op.create_index(op.f('ix_audit_logs_actor_role'), 'audit_logs', ['actor_role'], unique=False)
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_type'), 'audit_logs', ['entity_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_id'), 'audit_logs', ['entity_id'], unique=False)

    # transactions
    op.create_table(
        'transactions',
        sa.Column('id', sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.Column('account_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('payment_method', sa.Enum(*PAYMENT_RAIL, name='payment_rail'), nullable=False),
        sa.Column('status', sa.Enum(*TRANSACTION_STATUS, name='transaction_status'), nullable=False),
        sa.Column('fee_amount', sa.BigInteger(), nullable=False),
        sa.Column('fee_rate', sa.Numeric(8, 6), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('external_ref', sa.String(length=255), nullable=True),
        sa.Column('provider_ref', sa.String(length=255), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_transactions_account_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='check_transactions_amount_positive'),
        sa.CheckConstraint('fee_amount >= 0', name='check_transactions_fee_non_negative'),
        sa.UniqueConstraint('account_id', 'external_ref', name='uq_transactions_account_external_ref'),
    )
    op.create_index(op.f('ix_transactions_account_id'), 'transactions', ['account_id'], unique=False)
    op.create_index(op.f('ix_transactions_payment_method'), 'transactions', ['payment_method'], unique=False)
    op.create_index(op.f('ix_transactions_status'), 'transactions', ['status'], unique=False)
    op.create_index(op.f('ix_transactions_external_ref'), 'transactions', ['external_ref'], unique=False)
    # Reconciliation scans PENDING rows by age
    op.create_index('ix_transactions_status_created_at', 'transactions', ['status', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_transactions_status_created_at', table_name='transactions')
    op.drop_index(op.f('ix_transactions_external_ref'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_status'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_payment_method'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_account_id'), table_name='transactions')
    op.drop_table('transactions')

    for index in ('entity_id', 'entity_type', 'action', 'actor_role', 'actor_subject', 'id'):
        op.drop_index(op.f(f'ix_audit_logs_{index}'), table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index(op.f('ix_compliance_records_status'), table_name='compliance_records')
    op.drop_index(op.f('ix_compliance_records_account_id'), table_name='compliance_records')
    op.drop_index(op.f('ix_compliance_records_id'), table_name='compliance_records')
    op.drop_table('compliance_records')

    for index in ('live_key_hash', 'sandbox_api_key', 'status', 'email', 'id'):
        op.drop_index(op.f(f'ix_accounts_{index}'), table_name='accounts')
    op.drop_table('accounts')

    for enum_name in ('transaction_status', 'payment_rail', 'actor_role', 'compliance_status', 'account_status'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
