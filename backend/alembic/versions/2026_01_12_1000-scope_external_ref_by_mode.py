"""scope_external_ref_by_mode

Revision ID: paychain_core_20260112
Revises: paychain_core_20260105
Create Date: 2026-01-12 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'paychain_core_20260112'
down_revision = 'paychain_core_20260105'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('transactions', sa.Column('mode', sa.String(length=10), nullable=True))

    # Mode was previously recorded in metadata only
    op.execute(
        """
        UPDATE transactions
        SET mode = COALESCE(CAST(metadata AS jsonb)->>'mode', 'sandbox')
        WHERE mode IS NULL
        """
    )

    op.alter_column('transactions', 'mode', existing_type=sa.String(length=10), nullable=False)
    op.create_check_constraint('check_transactions_mode', 'transactions', "mode IN ('sandbox', 'live')")

    op.drop_constraint('uq_transactions_account_external_ref', 'transactions', type_='unique')
    op.create_unique_constraint(
        'uq_transactions_account_mode_external_ref',
        'transactions',
        ['account_id', 'mode', 'external_ref'],
    )


def downgrade() -> None:
    # Fails if the same reference was reused across modes since the upgrade
    op.drop_constraint('uq_transactions_account_mode_external_ref', 'transactions', type_='unique')
    op.create_unique_constraint(
        'uq_transactions_account_external_ref',
        'transactions',
        ['account_id', 'external_ref'],
    )

    op.execute(
        """
        UPDATE transactions
        SET metadata = CAST(COALESCE(CAST(metadata AS jsonb), '{}'::jsonb) || jsonb_build_object('mode', mode) AS json)
        """
    )
    op.drop_constraint('check_transactions_mode', 'transactions', type_='check')
    op.drop_column('transactions', 'mode')
