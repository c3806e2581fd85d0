"""Initial clearance schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create clearance_requests table
    op.create_table(
        'clearance_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('current_step_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('nysc_accessed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_clearance_requests_student_id', 'clearance_requests', ['student_id'])
    op.create_index('ix_clearance_requests_status', 'clearance_requests', ['status'])
    op.create_index('ix_clearance_requests_created_at', 'clearance_requests', ['created_at'])
    # At most one active request per student
    op.create_index(
        'uq_clearance_requests_active_student',
        'clearance_requests',
        ['student_id'],
        unique=True,
        sqlite_where=sa.text('is_deleted = 0'),
        postgresql_where=sa.text('NOT is_deleted'),
    )

    # Create clearance_submissions table
    op.create_table(
        'clearance_submissions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('request_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.String(64), nullable=False),
        sa.Column('student_name', sa.String(255), nullable=False),
        sa.Column('student_matric', sa.String(50), nullable=False),
        sa.Column('student_department_id', sa.String(64), nullable=True),
        sa.Column('student_faculty_id', sa.String(64), nullable=True),
        sa.Column('office_id', sa.String(64), nullable=False),
        sa.Column('step_number', sa.Integer(), nullable=False),
        sa.Column('attempt', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('assignment_mode', sa.String(20), nullable=False, server_default='pooled'),
        sa.Column('officer_id', sa.String(64), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('actioned_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['request_id'], ['clearance_requests.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'office_id', 'attempt', name='uq_clearance_submissions_attempt')
    )
    op.create_index('ix_clearance_submissions_request_id', 'clearance_submissions', ['request_id'])
    op.create_index('ix_clearance_submissions_student_id', 'clearance_submissions', ['student_id'])
    op.create_index('ix_clearance_submissions_student_department_id', 'clearance_submissions', ['student_department_id'])
    op.create_index('ix_clearance_submissions_student_faculty_id', 'clearance_submissions', ['student_faculty_id'])
    op.create_index('ix_clearance_submissions_office_id', 'clearance_submissions', ['office_id'])
    op.create_index('ix_clearance_submissions_officer_id', 'clearance_submissions', ['officer_id'])
    op.create_index('ix_clearance_submissions_status', 'clearance_submissions', ['status'])
    op.create_index('ix_clearance_submissions_created_at', 'clearance_submissions', ['created_at'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False, server_default='info'),
        sa.Column('event_type', sa.String(50), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('extra_data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_notifications_created_at', table_name='notifications')
    op.drop_index('ix_notifications_is_read', table_name='notifications')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('ix_clearance_submissions_created_at', table_name='clearance_submissions')
    op.drop_index('ix_clearance_submissions_status', table_name='clearance_submissions')
    op.drop_index('ix_clearance_submissions_officer_id', table_name='clearance_submissions')
    op.drop_index('ix_clearance_submissions_office_id', table_name='clearance_submissions')
    op.drop_index('ix_clearance_submissions_student_faculty_id', table_name='clearance_submissions')
    op.drop_index('ix_clearance_submissions_student_department_id', table_name='clearance_submissions')
    op.drop_index('ix_clearance_submissions_student_id', table_name='clearance_submissions')
    op.drop_index('ix_clearance_submissions_request_id', table_name='clearance_submissions')
    op.drop_table('clearance_submissions')

    op.drop_index('uq_clearance_requests_active_student', table_name='clearance_requests')
    op.drop_index('ix_clearance_requests_created_at', table_name='clearance_requests')
    op.drop_index('ix_clearance_requests_status', table_name='clearance_requests')
    op.drop_index('ix_clearance_requests_student_id', table_name='clearance_requests')
    op.drop_table('clearance_requests')
