"""Initial schema - thesis portal

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SINGLE_OWNER = (
    "(student_id IS NOT NULL AND group_id IS NULL) OR (student_id IS NULL AND group_id IS NOT NULL)"
)
ACTIVE_WHERE = sa.text("status IN ('pending', 'approved')")


def upgrade() -> None:
    # Users: identity, supervisor link and seat capacity
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, default='student'),
        sa.Column('department', sa.String(255), nullable=True),
        sa.Column('student_number', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('supervisor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('seat_capacity', sa.Integer(), nullable=False, default=9),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('seat_capacity >= 0', name='ck_users_seat_capacity_non_negative'),
    )

    op.create_table(
        'seat_increase_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('faculty_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('requested_seats', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, default='pending'),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.CheckConstraint('requested_seats >= 1', name='ck_seat_increase_requests_positive'),
    )

    # Groups
    op.create_table(
        'groups',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('supervisor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('status', sa.String(50), nullable=False, default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'group_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'group_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('from_student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('to_student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('status', sa.String(50), nullable=False, default='pending'),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('from_student_id', 'to_student_id', name='uq_group_requests_pair'),
    )
    op.create_index('ix_group_requests_to_status', 'group_requests', ['to_student_id', 'status'])

    # Thesis registrations (one per student or group)
    op.create_table(
        'thesis_registrations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_kind', sa.String(20), nullable=False),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True, unique=True),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=True, unique=True),
        sa.Column('status', sa.String(50), nullable=False, default='not_submitted'),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(SINGLE_OWNER, name='ck_thesis_registrations_single_owner'),
    )

    # Supervision
    op.create_table(
        'supervisor_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('faculty_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_kind', sa.String(20), nullable=False),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=True),
        sa.Column('requested_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, default='pending'),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(SINGLE_OWNER, name='ck_supervisor_requests_single_owner'),
        sa.UniqueConstraint('faculty_id', 'student_id', name='uq_supervisor_requests_faculty_student'),
        sa.UniqueConstraint('faculty_id', 'group_id', name='uq_supervisor_requests_faculty_group'),
    )
    op.create_index('ix_supervisor_requests_faculty_status', 'supervisor_requests', ['faculty_id', 'status'])

    op.create_table(
        'supervisees',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('faculty_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('owner_kind', sa.String(20), nullable=False),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True, unique=True),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=True, unique=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(SINGLE_OWNER, name='ck_supervisees_single_owner'),
    )

    # Thesis submissions
    op.create_table(
        'thesis_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('abstract', sa.Text(), nullable=False),
        sa.Column('keywords', sa.JSON(), nullable=True),
        sa.Column('department', sa.String(255), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('semester', sa.String(20), nullable=False),
        sa.Column('file_url', sa.String(1000), nullable=False),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('author_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('owner_kind', sa.String(20), nullable=False),
        sa.Column('group_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('owner_key', sa.String(64), nullable=False, index=True),
        sa.Column('supervisor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('submission_type', sa.String(10), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, default='pending'),
        sa.Column('can_resubmit', sa.Boolean(), nullable=False, default=False),
        sa.Column('original_submission_id', sa.Uuid(), sa.ForeignKey('thesis_submissions.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "(owner_kind = 'group' AND group_id IS NOT NULL) OR (owner_kind = 'individual' AND group_id IS NULL)",
            name='ck_thesis_submissions_owner',
        ),
    )
    # At most one pending or approved submission per owner and phase
    op.create_index(
        'uq_thesis_submissions_active_phase',
        'thesis_submissions',
        ['owner_key', 'submission_type'],
        unique=True,
        sqlite_where=ACTIVE_WHERE,
        postgresql_where=ACTIVE_WHERE,
    )
    op.create_index(
        'ix_thesis_submissions_owner_phase',
        'thesis_submissions',
        ['owner_key', 'submission_type', 'status'],
    )

    op.create_table(
        'member_phase_progress',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('submission_type', sa.String(10), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('submission_id', sa.Uuid(), sa.ForeignKey('thesis_submissions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('file_url', sa.String(1000), nullable=True),
        sa.Column('file_name', sa.String(500), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('student_id', 'submission_type', name='uq_member_phase_progress_student_phase'),
    )

    op.create_table(
        'submission_comments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('submission_id', sa.Uuid(), sa.ForeignKey('thesis_submissions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('author_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('recipient_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_type', sa.String(50), nullable=True),
        sa.Column('related_id', sa.Uuid(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, default=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_notifications_recipient_read', 'notifications', ['recipient_id', 'is_read'])

    # Event log (append-only)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('request_id', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_user_time', 'event_logs', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('notifications')
    op.drop_table('submission_comments')
    op.drop_table('member_phase_progress')
    op.drop_table('thesis_submissions')
    op.drop_table('supervisees')
    op.drop_table('supervisor_requests')
    op.drop_table('thesis_registrations')
    op.drop_table('group_requests')
    op.drop_table('group_members')
    op.drop_table('groups')
    op.drop_table('seat_increase_requests')
    op.drop_table('users')
