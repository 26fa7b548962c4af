"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users: admins, the super-admin and the people who submit forms
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255)),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('admin_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('avatar_url', sa.String(500)),
        sa.Column('avatar_path', sa.String(500)),
        sa.Column('telegram_chat_id', sa.String(100)),
        sa.Column('telegram_notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notification_preferences', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_users_admin_id', 'users', ['admin_id'])
    op.create_index('ix_users_pending', 'users', ['is_admin', 'is_approved'])

    # Forms and their fields
    op.create_table(
        'forms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'form_fields',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('form_id', sa.String(36), sa.ForeignKey('forms.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('field_type', sa.String(50), nullable=False),
        sa.Column('label', sa.String(500), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('options', sa.Text()),
        sa.Column('placeholder', sa.String(500)),
    )

    # Submissions
    op.create_table(
        'submissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('form_id', sa.String(36), sa.ForeignKey('forms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_submissions_form_submitted', 'submissions', ['form_id', 'submitted_at'])

    op.create_table(
        'field_values',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('submission_id', sa.String(36), sa.ForeignKey('submissions.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('field_id', sa.String(36), nullable=False, index=True),
        sa.Column('value', sa.Text()),
    )

    op.create_table(
        'submission_files',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('submission_id', sa.String(36), sa.ForeignKey('submissions.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('field_id', sa.String(36), index=True),
        sa.Column('original_filename', sa.String(255), nullable=False),
        sa.Column('storage_path', sa.String(500), nullable=False),
        sa.Column('blob_url', sa.String(500), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('content_type', sa.String(100)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table('submission_files')
    op.drop_table('field_values')
    op.drop_index('ix_submissions_form_submitted', table_name='submissions')
    op.drop_table('submissions')
    op.drop_table('form_fields')
    op.drop_table('forms')
    op.drop_index('ix_users_pending', table_name='users')
    op.drop_index('ix_users_admin_id', table_name='users')
    op.drop_table('users')
