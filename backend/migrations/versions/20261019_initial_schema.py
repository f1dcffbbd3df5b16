"""Initial custody schema: users, sessions, documents, transactions, notes, inbox

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. users and session_tokens (bcrypt login, hashed bearer tokens)
2. documents (registry + current holder pointer + archive fields)
3. transactions (custody ledger) with the one-pending-per-document partial index
4. document_notes (ARCHIVE / UNARCHIVE / RETURN log)
5. inbox_seen (per-user mark-seen timestamps)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. USERS AND SESSIONS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=255), nullable=True),
        sa.Column('role', sa.Enum('USER', 'ADMIN', name='role', native_enum=False, length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index(batch_op.f('ix_session_tokens_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_is_revoked'), ['is_revoked'], unique=False)
        batch_op.create_index('ix_session_tokens_user_active', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 2. DOCUMENTS
    # ==========================================================================
    op.create_table('documents',
        sa.Column('number', sa.String(length=64), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'ARCHIVED', name='documentstatus', native_enum=False, length=16), nullable=False),
        sa.Column('current_holder_id', sa.String(length=36), nullable=True),
        sa.Column('holder_since', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('archived_by_user_id', sa.String(length=36), nullable=True),
        sa.Column('archive_note', sa.Text(), nullable=True),
        sa.Column('archive_department', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['current_holder_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['archived_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('number')
    )
    with op.batch_alter_table('documents', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_documents_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_documents_current_holder_id'), ['current_holder_id'], unique=False)

    # ==========================================================================
    # 3. CUSTODY TRANSACTIONS
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('from_user_id', sa.String(length=36), nullable=False),
        sa.Column('to_user_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', 'RETURNED', 'CANCELLED', name='transactionstatus', native_enum=False, length=16), nullable=False),
        sa.Column('kind', sa.Enum('NORMAL', 'RETURN_REQUEST', name='transactionkind', native_enum=False, length=16), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('from_user_id <> to_user_id', name='ck_transactions_not_self'),
        sa.ForeignKeyConstraint(['document_number'], ['documents.number'], ),
        sa.ForeignKeyConstraint(['from_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['to_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_transactions_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_transactions_document_created', ['document_number', 'created_at'], unique=False)
        batch_op.create_index('ix_transactions_to_status', ['to_user_id', 'status'], unique=False)
        batch_op.create_index('ix_transactions_from_status', ['from_user_id', 'status'], unique=False)

    # At most one PENDING row per document
    op.create_index(
        'uq_transactions_one_pending_per_document',
        'transactions',
        ['document_number'],
        unique=True,
        sqlite_where=sa.text("status = 'PENDING'"),
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # ==========================================================================
    # 4. DOCUMENT NOTES
    # ==========================================================================
    op.create_table('document_notes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('transaction_id', sa.String(length=36), nullable=True),
        sa.Column('action_type', sa.Enum('ARCHIVE', 'UNARCHIVE', 'RETURN', name='documentactiontype', native_enum=False, length=16), nullable=False),
        sa.Column('note', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_by_user_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['document_number'], ['documents.number'], ),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('document_notes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_notes_document_number'), ['document_number'], unique=False)

    # ==========================================================================
    # 5. INBOX SEEN
    # ==========================================================================
    op.create_table('inbox_seen',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('inbox', sa.Enum('INCOMING', 'IADE', 'RED', name='inbox', native_enum=False, length=16), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'inbox', name='uq_inbox_seen_user_inbox')
    )
    with op.batch_alter_table('inbox_seen', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inbox_seen_user_id'), ['user_id'], unique=False)


def downgrade():
    with op.batch_alter_table('inbox_seen', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_inbox_seen_user_id'))
    op.drop_table('inbox_seen')

    with op.batch_alter_table('document_notes', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_document_notes_document_number'))
    op.drop_table('document_notes')

    op.drop_index('uq_transactions_one_pending_per_document', table_name='transactions')
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.drop_index('ix_transactions_from_status')
        batch_op.drop_index('ix_transactions_to_status')
        batch_op.drop_index('ix_transactions_document_created')
        batch_op.drop_index(batch_op.f('ix_transactions_created_at'))
    op.drop_table('transactions')

    with op.batch_alter_table('documents', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_documents_current_holder_id'))
        batch_op.drop_index(batch_op.f('ix_documents_status'))
    op.drop_table('documents')

    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.drop_index('ix_session_tokens_user_active')
        batch_op.drop_index(batch_op.f('ix_session_tokens_is_revoked'))
        batch_op.drop_index(batch_op.f('ix_session_tokens_expires_at'))
        batch_op.drop_index(batch_op.f('ix_session_tokens_token_hash'))
        batch_op.drop_index(batch_op.f('ix_session_tokens_user_id'))
    op.drop_table('session_tokens')

    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_users_email'))
    op.drop_table('users')
