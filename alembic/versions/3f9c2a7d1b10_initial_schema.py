"""Initial back office schema

Revision ID: 3f9c2a7d1b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a7d1b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names, matching SQLAlchemy's default for Enum classes
user_role = sa.Enum('ADMIN', 'AGENT', 'VIEWER', name='userrole')
service_type = sa.Enum(
    'US_LOTTERY', 'CANADA_IMMIGRATION', 'WORK_VISA', 'STUDY_ABROAD', 'FAMILY_REUNION', 'FOOTBALL_TALENT',
    name='servicetype'
)
submission_source = sa.Enum('WEBSITE', 'MANUAL', name='submissionsource')
submission_status = sa.Enum('NEW', 'IN_REVIEW', 'COMPLETED', 'REJECTED', name='submissionstatus')
workflow_status = sa.Enum(
    'PENDING_VALIDATION', 'VALIDATED', 'CALL_CONFIRMED', 'DOCUMENTS_REQUESTED',
    'DOCUMENTS_UPLOADED', 'DOCUMENTS_VERIFIED', 'CONVERTED_TO_CLIENT',
    name='workflowstatus'
)
client_status = sa.Enum('NEW', 'IN_REVIEW', 'COMPLETED', 'REJECTED', name='clientstatus')
link_kind = sa.Enum('DOCUMENT', 'PAYMENT', name='linkkind')
payment_status = sa.Enum('PENDING', 'RECEIPT_UPLOADED', 'CONFIRMED', 'REJECTED', name='paymentstatus')
document_type = sa.Enum(
    'PASSPORT', 'NATIONAL_ID', 'BIRTH_CERTIFICATE', 'DIPLOMA', 'WORK_CONTRACT', 'BANK_STATEMENT',
    'PROOF_OF_ADDRESS', 'MARRIAGE_CERTIFICATE', 'POLICE_CLEARANCE', 'MEDICAL_REPORT', 'OTHER',
    name='documenttype'
)
document_status = sa.Enum('UNVERIFIED', 'VERIFIED', 'REJECTED', 'NEEDS_REPLACEMENT', name='documentstatus')
receipt_status = sa.Enum('PENDING', 'CONFIRMED', 'REJECTED', name='receiptstatus')
notification_type = sa.Enum(
    'NEW_SUBMISSION', 'SUBMISSION_VALIDATED', 'CALL_CONFIRMED', 'DOCUMENTS_REQUESTED', 'DOCUMENTS_UPLOADED',
    'DOCUMENTS_VERIFIED', 'CONVERTED_TO_CLIENT', 'CLIENT_CREATED', 'PAYMENT_RECEIPT_UPLOADED',
    'SUBMISSION_REJECTED',
    name='notificationtype'
)
action_type = sa.Enum(
    'USER_LOGIN', 'USER_CREATED', 'USER_UPDATED', 'SUBMISSION_CREATED', 'SUBMISSION_UPDATED',
    'SUBMISSION_DELETED', 'SUBMISSION_NOTE_ADDED', 'SUBMISSION_VALIDATED', 'CALL_CONFIRMED',
    'DOCUMENTS_VERIFIED', 'SUBMISSION_REJECTED', 'CLIENT_CREATED', 'CLIENT_UPDATED',
    'DOCUMENT_LINK_GENERATED', 'DOCUMENT_LINK_DEACTIVATED', 'DOCUMENT_UPLOADED', 'DOCUMENT_VERIFIED',
    'DOCUMENT_REJECTED', 'DOCUMENT_DOWNLOADED', 'DOCUMENT_DELETED', 'PAYMENT_LINK_GENERATED',
    'PAYMENT_LINK_DEACTIVATED', 'PAYMENT_RECEIPT_UPLOADED', 'PAYMENT_CONFIRMED', 'PAYMENT_REJECTED',
    'PERMISSION_DENIED',
    name='actiontype'
)
user_type = sa.Enum('USER', 'LINK', 'SYSTEM', name='usertype')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=False),
        sa.Column('service', service_type, nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', client_status, nullable=False),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_clients_id'), 'clients', ['id'], unique=False)
    op.create_index(op.f('ix_clients_email'), 'clients', ['email'], unique=False)
    op.create_index(op.f('ix_clients_phone'), 'clients', ['phone'], unique=False)
    op.create_index(op.f('ix_clients_service'), 'clients', ['service'], unique=False)
    op.create_index(op.f('ix_clients_status'), 'clients', ['status'], unique=False)

    op.create_table(
        'submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=False),
        sa.Column('service', service_type, nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('source', submission_source, nullable=False),
        sa.Column('status', submission_status, nullable=False),
        sa.Column('workflow_status', workflow_status, nullable=True),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('validated_by', sa.Integer(), nullable=True),
        sa.Column('validated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('call_confirmed_by', sa.Integer(), nullable=True),
        sa.Column('call_confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('call_notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('converted_to_client', sa.Boolean(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id']),
        sa.ForeignKeyConstraint(['validated_by'], ['users.id']),
        sa.ForeignKeyConstraint(['call_confirmed_by'], ['users.id']),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id']),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_submissions_id'), 'submissions', ['id'], unique=False)
    op.create_index(op.f('ix_submissions_email'), 'submissions', ['email'], unique=False)
    op.create_index(op.f('ix_submissions_phone'), 'submissions', ['phone'], unique=False)
    op.create_index(op.f('ix_submissions_service'), 'submissions', ['service'], unique=False)
    op.create_index(op.f('ix_submissions_status'), 'submissions', ['status'], unique=False)
    op.create_index(op.f('ix_submissions_workflow_status'), 'submissions', ['workflow_status'], unique=False)
    op.create_index(op.f('ix_submissions_assigned_to'), 'submissions', ['assigned_to'], unique=False)
    op.create_index(op.f('ix_submissions_created_at'), 'submissions', ['created_at'], unique=False)

    op.create_table(
        'submission_notes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('author_id', sa.Integer(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_submission_notes_id'), 'submission_notes', ['id'], unique=False)
    op.create_index(op.f('ix_submission_notes_submission_id'), 'submission_notes', ['submission_id'], unique=False)

    op.create_table(
        'access_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('kind', link_kind, nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('max_uses', sa.Integer(), nullable=False),
        sa.Column('uses_remaining', sa.Integer(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('bank_details', sa.JSON(), nullable=True),
        sa.Column('payment_status', payment_status, nullable=True),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_access_links_id'), 'access_links', ['id'], unique=False)
    op.create_index(op.f('ix_access_links_submission_id'), 'access_links', ['submission_id'], unique=False)
    op.create_index(op.f('ix_access_links_kind'), 'access_links', ['kind'], unique=False)
    op.create_index(op.f('ix_access_links_token'), 'access_links', ['token'], unique=True)

    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('access_link_id', sa.Integer(), nullable=True),
        sa.Column('document_type', document_type, nullable=False),
        sa.Column('original_name', sa.String(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('storage_key', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(), nullable=False),
        sa.Column('status', document_status, nullable=False),
        sa.Column('verified_by', sa.Integer(), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['access_link_id'], ['access_links.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['verified_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_documents_id'), 'documents', ['id'], unique=False)
    op.create_index(op.f('ix_documents_submission_id'), 'documents', ['submission_id'], unique=False)
    op.create_index(op.f('ix_documents_access_link_id'), 'documents', ['access_link_id'], unique=False)
    op.create_index(op.f('ix_documents_status'), 'documents', ['status'], unique=False)

    op.create_table(
        'payment_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('access_link_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('original_name', sa.String(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('storage_key', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(), nullable=False),
        sa.Column('status', receipt_status, nullable=False),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['access_link_id'], ['access_links.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payment_receipts_id'), 'payment_receipts', ['id'], unique=False)
    op.create_index(op.f('ix_payment_receipts_submission_id'), 'payment_receipts', ['submission_id'], unique=False)
    op.create_index(op.f('ix_payment_receipts_access_link_id'), 'payment_receipts', ['access_link_id'], unique=False)
    op.create_index(op.f('ix_payment_receipts_status'), 'payment_receipts', ['status'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.String(), nullable=False),
        sa.Column('link', sa.String(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['recipient_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_recipient_id'), 'notifications', ['recipient_id'], unique=False)
    op.create_index(op.f('ix_notifications_type'), 'notifications', ['type'], unique=False)
    op.create_index(op.f('ix_notifications_is_read'), 'notifications', ['is_read'], unique=False)
    op.create_index(op.f('ix_notifications_created_at'), 'notifications', ['created_at'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action_type', action_type, nullable=False),
        sa.Column('user_type', user_type, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('resource_type', sa.String(), nullable=True),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('request_data', sa.JSON(), nullable=True),
        sa.Column('response_data', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('request_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    for column in ('id', 'action_type', 'user_type', 'user_id', 'resource_type', 'resource_id',
                   'status', 'request_id', 'created_at'):
        op.create_index(op.f(f'ix_audit_logs_{column}'), 'audit_logs', [column], unique=False)


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('notifications')
    op.drop_table('payment_receipts')
    op.drop_table('documents')
    op.drop_table('access_links')
    op.drop_table('submission_notes')
    op.drop_table('submissions')
    op.drop_table('clients')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (
        user_type, action_type, notification_type, receipt_status, document_status, document_type,
        payment_status, link_kind, client_status, workflow_status, submission_status,
        submission_source, service_type, user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
