"""create_zyra_core_tables

Revision ID: zyra_core_20261001
Revises:
Create Date: 2026-10-01 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'zyra_core_20261001'
down_revision = None
branch_labels = None
depends_on = None

whatsapp_verification_status = sa.Enum('UNVERIFIED', 'CODE_ISSUED', 'VERIFIED', name='whatsapp_verification_status')
transaction_type = sa.Enum('DEPOSIT', 'SEND', name='transaction_type')
transaction_status = sa.Enum('PENDING', 'SUCCESS', 'FAILED', name='transaction_status')


def upgrade() -> None:
    # users
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('public_key', sa.String(length=56), nullable=False),
        sa.Column('encrypted_secret', sa.Text(), nullable=False),
        sa.Column('balance', sa.Numeric(24, 2), nullable=False, server_default='0'),
        sa.Column('whatsapp_status', whatsapp_verification_status, nullable=False, server_default='UNVERIFIED'),
        sa.Column('whatsapp_verification_code', sa.String(length=6), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_phone'), 'users', ['phone'], unique=True)
    op.create_index(op.f('ix_users_public_key'), 'users', ['public_key'], unique=True)
    op.create_index(op.f('ix_users_whatsapp_verification_code'), 'users', ['whatsapp_verification_code'], unique=False)

    # transactions
    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('type', transaction_type, nullable=False),
        sa.Column('status', transaction_status, nullable=False, server_default='PENDING'),
        sa.Column('amount', sa.Numeric(24, 2), nullable=False),
        sa.Column('counterparty_phone', sa.String(length=32), nullable=True),
        sa.Column('recipient_address', sa.String(length=56), nullable=True),
        sa.Column('merchant_request_id', sa.String(length=100), nullable=True),
        sa.Column('checkout_request_id', sa.String(length=100), nullable=True),
        sa.Column('ledger_tx_hash', sa.String(length=64), nullable=True),
        sa.Column('mpesa_receipt_number', sa.String(length=50), nullable=True),
        sa.Column('result_code', sa.Integer(), nullable=True),
        sa.Column('result_desc', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_transactions_user_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='check_transactions_amount_positive'),
    )
    op.create_index(op.f('ix_transactions_id'), 'transactions', ['id'], unique=False)
    op.create_index(op.f('ix_transactions_user_id'), 'transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_transactions_type'), 'transactions', ['type'], unique=False)
    op.create_index(op.f('ix_transactions_status'), 'transactions', ['status'], unique=False)
    op.create_index(op.f('ix_transactions_merchant_request_id'), 'transactions', ['merchant_request_id'], unique=False)
    op.create_index(op.f('ix_transactions_checkout_request_id'), 'transactions', ['checkout_request_id'], unique=False)

    # inbound_messages
    op.create_table(
        'inbound_messages',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('message_id', sa.String(length=255), nullable=False),
        sa.Column('sender_phone', sa.String(length=32), nullable=False),
        sa.Column('command', sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_inbound_messages_id'), 'inbound_messages', ['id'], unique=False)
    op.create_index(op.f('ix_inbound_messages_message_id'), 'inbound_messages', ['message_id'], unique=True)
    op.create_index(op.f('ix_inbound_messages_sender_phone'), 'inbound_messages', ['sender_phone'], unique=False)

    # audit_logs
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actor', sa.String(length=20), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('before', sa.JSON(), nullable=True),
        sa.Column('after', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], name='fk_audit_logs_actor_user_id'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_actor'), 'audit_logs', ['actor'], unique=False)
    op.create_index(op.f('ix_audit_logs_actor_user_id'), 'audit_logs', ['actor_user_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_type'), 'audit_logs', ['entity_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_id'), 'audit_logs', ['entity_id'], unique=False)


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('inbound_messages')
    op.drop_table('transactions')
    op.drop_table('users')

    bind = op.get_bind()
    transaction_status.drop(bind, checkfirst=True)
    transaction_type.drop(bind, checkfirst=True)
    whatsapp_verification_status.drop(bind, checkfirst=True)
