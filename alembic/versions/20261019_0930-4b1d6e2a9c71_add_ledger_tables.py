"""add_ledger_tables

Revision ID: 4b1d6e2a9c71
Revises:
Create Date: 2026-10-19 09:30:12.418203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4b1d6e2a9c71'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=True, comment='客户名称'),
        sa.Column('balance', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0', comment='可用余额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='UAH', comment='货币代码 ISO-4217'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_clients')),
    )
    op.create_index('ix_clients_id', 'clients', ['id'], unique=False)

    op.create_table(
        'client_balances',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False, comment='客户ID'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='变动金额'),
        sa.Column('description', sa.String(length=255), nullable=False, comment='流水描述'),
        sa.Column('type', sa.String(length=50), nullable=False, server_default='transaction', comment='流水类型: transaction/invoice'),
        sa.Column('rel_id', sa.Integer(), nullable=True, comment='关联交易/发票ID'),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE', name=op.f('fk_client_balances_client_id_clients')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_client_balances')),
    )
    op.create_index('ix_client_balances_id', 'client_balances', ['id'], unique=False)
    op.create_index('ix_client_balances_client_id', 'client_balances', ['client_id'], unique=False)
    op.create_index('ix_client_balances_rel_id', 'client_balances', ['rel_id'], unique=False)
    op.create_index('ix_client_balances_created_at', 'client_balances', ['created_at'], unique=False)
    op.create_index('ix_client_balances_type_rel', 'client_balances', ['type', 'rel_id'], unique=False)

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('hash', sa.String(length=100), nullable=False, comment='发票哈希（支付 reference）'),
        sa.Column('client_id', sa.Integer(), nullable=False, comment='客户ID'),
        sa.Column('total', sa.Numeric(precision=15, scale=2), nullable=False, comment='应付金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='UAH', comment='货币代码'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='unpaid', comment='发票状态: unpaid/paid'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='支付完成时间'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='RESTRICT', name=op.f('fk_invoices_client_id_clients')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_invoices')),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'], unique=False)
    op.create_index('ix_invoices_hash', 'invoices', ['hash'], unique=False)
    op.create_index('ix_invoices_client_id', 'invoices', ['client_id'], unique=False)
    op.create_index('ix_invoices_status', 'invoices', ['status'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=True, comment='关联发票ID'),
        sa.Column('txn_id', sa.String(length=200), nullable=True, comment='渠道交易ID (invoiceId)'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=True, comment='交易金额（主单位）'),
        sa.Column('currency', sa.String(length=3), nullable=True, comment='货币代码'),
        sa.Column('txn_status', sa.String(length=50), nullable=True, comment='渠道原始状态'),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='pending', comment='交易状态: pending/succeeded/failed/refunded'),
        sa.Column('ip', sa.String(length=64), nullable=True, comment='通知来源IP'),
        sa.Column('type', sa.String(length=50), nullable=False, server_default='Payment', comment='交易类型'),
        sa.Column('failure_reason', sa.Text(), nullable=True, comment='失败原因'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='SET NULL', name=op.f('fk_transactions_invoice_id_invoices')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_transactions')),
    )
    op.create_index('ix_transactions_id', 'transactions', ['id'], unique=False)
    op.create_index('ix_transactions_invoice_id', 'transactions', ['invoice_id'], unique=False)
    op.create_index('ix_transactions_txn_id', 'transactions', ['txn_id'], unique=False)
    op.create_index('ix_transactions_status', 'transactions', ['status'], unique=False)
    op.create_index('ix_transactions_created_at', 'transactions', ['created_at'], unique=False)
    op.create_index('ix_transactions_txn_id_status', 'transactions', ['txn_id', 'status'], unique=False)


def downgrade() -> None:
    op.drop_table('transactions')
    op.drop_table('invoices')
    op.drop_table('client_balances')
    op.drop_table('clients')
