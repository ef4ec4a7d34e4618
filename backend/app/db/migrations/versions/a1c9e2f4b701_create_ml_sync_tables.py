"""create integration, ml cache, sync status and claims queue tables

Revision ID: a1c9e2f4b701
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'a1c9e2f4b701'
down_revision = None
branch_labels = None
depends_on = None


JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    ]


def _cache_table(name: str, id_col: str, data_col: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('integration_account_id', sa.String(36), nullable=False),
        sa.Column(id_col, sa.String(64), nullable=False),
        sa.Column(data_col, JSON, nullable=False),
        sa.Column('normalized', JSON, nullable=True),
        sa.Column('cached_at', sa.DateTime(), nullable=False),
        sa.Column('ttl_expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=f'pk_{name}'),
        sa.UniqueConstraint('organization_id', 'integration_account_id', id_col, name=f'uq_{name}_key'),
    )
    op.create_index(f'ix_{name}_lookup', name, ['organization_id', 'integration_account_id', 'ttl_expires_at'])


def _sync_status_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('integration_account_id', sa.String(36), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(), nullable=True),
        sa.Column('last_sync_status', sa.String(16), nullable=True),
        sa.Column('last_sync_error', sa.Text(), nullable=True),
        sa.Column('records_fetched', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_cached', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('duration_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('organization_id', 'integration_account_id', name=f'pk_{name}'),
    )


def upgrade() -> None:
    op.create_table(
        'integration_accounts',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('organization_id', sa.String(36), nullable=True),
        sa.Column('provider', sa.String(32), nullable=False),
        sa.Column('account_identifier', sa.String(64), nullable=True),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('encrypted_credentials', sa.Text(), nullable=True),
        sa.Column('token_status', sa.String(32), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_integration_accounts'),
        sa.UniqueConstraint('provider', 'account_identifier', name='uq_integration_accounts_provider_identifier'),
    )
    op.create_index('ix_integration_accounts_organization_id', 'integration_accounts', ['organization_id'])
    op.create_index('ix_integration_accounts_active_provider', 'integration_accounts', ['is_active', 'provider'])

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('organization_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_profiles'),
    )
    op.create_index('ix_profiles_organization_id', 'profiles', ['organization_id'])

    _cache_table('ml_orders_cache', 'order_id', 'order_data')
    _cache_table('ml_claims_cache', 'claim_id', 'claim_data')

    op.create_table(
        'ml_claims',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('claim_id', sa.String(64), nullable=False),
        sa.Column('integration_account_id', sa.String(36), nullable=False),
        sa.Column('organization_id', sa.String(36), nullable=True),
        sa.Column('order_id', sa.String(64), nullable=False, server_default=''),
        sa.Column('return_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(64), nullable=True),
        sa.Column('stage', sa.String(64), nullable=True),
        sa.Column('claim_type', sa.String(64), nullable=True),
        sa.Column('reason_id', sa.String(64), nullable=True),
        sa.Column('date_created', sa.DateTime(), nullable=True),
        sa.Column('date_closed', sa.DateTime(), nullable=True),
        sa.Column('last_updated', sa.DateTime(), nullable=True),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('refund_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('currency_id', sa.String(8), nullable=True),
        sa.Column('buyer_id', sa.String(64), nullable=True),
        sa.Column('buyer_nickname', sa.String(255), nullable=True),
        sa.Column('schema_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('claim_data', JSON, nullable=False),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_ml_claims'),
        sa.UniqueConstraint('claim_id', 'integration_account_id', name='uq_ml_claims_claim_account'),
    )
    op.create_index('ix_ml_claims_organization_id', 'ml_claims', ['organization_id'])
    op.create_index('ix_ml_claims_account_created', 'ml_claims', ['integration_account_id', 'date_created'])

    _sync_status_table('ml_sync_status')
    _sync_status_table('ml_claims_sync_status')

    op.create_table(
        'fila_processamento_claims',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('claim_id', sa.String(64), nullable=False),
        sa.Column('order_id', sa.String(64), nullable=True),
        sa.Column('integration_account_id', sa.String(36), nullable=False),
        sa.Column('claim_data', JSON, nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('tentativas', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_tentativas', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('available_at', sa.DateTime(), nullable=True),
        sa.Column('processing_until', sa.DateTime(), nullable=True),
        sa.Column('erro_mensagem', sa.Text(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('atualizado_em', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('processado_em', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_fila_processamento_claims'),
        sa.CheckConstraint(
            "status IN ('pending','processing','completed','failed')",
            name='ck_fila_processamento_claims_status_valid',
        ),
    )
    op.create_index('ix_fila_claims_pick', 'fila_processamento_claims', ['status', 'priority', 'criado_em'])
    op.create_index('ix_fila_claims_account_claim', 'fila_processamento_claims', ['integration_account_id', 'claim_id'])


def downgrade() -> None:
    op.drop_table('fila_processamento_claims')
    op.drop_table('ml_claims_sync_status')
    op.drop_table('ml_sync_status')
    op.drop_table('ml_claims')
    op.drop_table('ml_claims_cache')
    op.drop_table('ml_orders_cache')
    op.drop_table('profiles')
    op.drop_table('integration_accounts')
