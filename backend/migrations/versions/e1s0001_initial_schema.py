"""initial schema

Revision ID: e1s0001
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the complete EIS portal schema:
- users, session_tokens: ops staff and their dashboard sessions
- deals: aggregate root, seven-value status
- founders, accountants: portal parties, each holding a magic-link token
- investors: shareholdings per deal
- milestones, documents, notes: append-only records per deal
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e1s0001'
down_revision = None
branch_labels = None
depends_on = None


DEAL_STATUSES = (
    "'AWAITING_ONBOARDING', 'ONBOARDING_COMPLETE', 'AWAITING_SUBMISSION', "
    "'SUBMITTED', 'AWAITING_EIS2', 'EIS2_RECEIVED', 'COMPLETE'"
)


def upgrade():
    # ============================================================================
    # users / session_tokens: ops staff authentication
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('ADMIN', 'OPS', 'VIEWER')", name='ck_users_role'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # deals: aggregate root
    # ============================================================================
    op.create_table(
        'deals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('company_number', sa.String(length=32), nullable=False),
        sa.Column('scheme_type', sa.String(length=8), nullable=False),
        sa.Column('investment_date', sa.Date(), nullable=False),
        sa.Column('investment_amount_pence', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(f"status IN ({DEAL_STATUSES})", name='ck_deals_status'),
        sa.CheckConstraint("scheme_type IN ('SEIS', 'EIS')", name='ck_deals_scheme_type'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_deals_company_number', 'deals', ['company_number'])
    op.create_index('ix_deals_scheme_type', 'deals', ['scheme_type'])
    op.create_index('ix_deals_status', 'deals', ['status'])
    op.create_index('ix_deals_status_created', 'deals', ['status', 'created_at'])

    # ============================================================================
    # founders / accountants: portal parties (one of each per deal at most)
    # ============================================================================
    op.create_table(
        'founders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('magic_token', sa.String(length=128), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_handling_submission', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('deal_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_founders_magic_token', 'founders', ['magic_token'], unique=True)

    op.create_table(
        'accountants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('firm_name', sa.String(length=255), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('magic_token', sa.String(length=128), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('has_been_briefed', sa.Boolean(), nullable=False),
        sa.Column('has_investor_data', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('deal_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accountants_magic_token', 'accountants', ['magic_token'], unique=True)

    # ============================================================================
    # investors
    # ============================================================================
    op.create_table(
        'investors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address_line1', sa.String(length=255), nullable=False),
        sa.Column('address_line2', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('postcode', sa.String(length=32), nullable=False),
        sa.Column('country', sa.String(length=120), nullable=False),
        sa.Column('shares_issued', sa.Integer(), nullable=True),
        sa.Column('amount_subscribed_pence', sa.BigInteger(), nullable=False),
        sa.Column('share_issue_date', sa.Date(), nullable=True),
        sa.Column('share_class', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_investors_deal_id', 'investors', ['deal_id'])

    # ============================================================================
    # milestones / documents / notes: append-only deal records
    # ============================================================================
    op.create_table(
        'milestones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('milestone_type', sa.String(length=32), nullable=False),
        sa.Column('confirmed_by', sa.String(length=16), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint(
            "milestone_type IN ('ONBOARDING_COMPLETE', 'SUBMISSION_CONFIRMED', 'EIS2_RECEIVED', 'EIS2_UPLOADED')",
            name='ck_milestones_type',
        ),
        sa.CheckConstraint("confirmed_by IN ('founder', 'accountant')", name='ck_milestones_confirmed_by'),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_milestones_deal_confirmed', 'milestones', ['deal_id', 'confirmed_at'])

    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('storage_path', sa.String(length=1024), nullable=False),
        sa.Column('uploaded_by', sa.String(length=16), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "document_type IN ('INVESTOR_SCHEDULE', 'INVESTMENT_DECK', 'EIS2', 'EIS3')",
            name='ck_documents_type',
        ),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_documents_deal_id', 'documents', ['deal_id'])

    op.create_table(
        'notes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_notes_deal_id', 'notes', ['deal_id'])


def downgrade():
    op.drop_table('notes')
    op.drop_table('documents')
    op.drop_table('milestones')
    op.drop_table('investors')
    op.drop_table('accountants')
    op.drop_table('founders')
    op.drop_table('deals')
    op.drop_table('session_tokens')
    op.drop_table('users')
