"""roster, request board, applications, teacher rates and engagement tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = '20261017_0001'
down_revision = None
branch_labels = None
depends_on = None


user_type_enum = sa.Enum('student', 'parent', 'teacher', 'admin', name='user_type_enum')
request_status_enum = sa.Enum('open', 'fulfilled', name='request_status_enum')
application_status_enum = sa.Enum('pending', 'accepted', 'rejected', name='application_status_enum')
parent_request_status_enum = sa.Enum('pending', 'accepted', 'rejected', name='parent_request_status_enum')


def upgrade() -> None:
    # ── Roster ────────────────────────────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('profile_image', sa.Text, nullable=True),
        sa.Column('user_type', user_type_enum, nullable=False, server_default='student'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_city', 'users', ['city'])

    op.create_table(
        'parents_children',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('profile_image', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_parents_children_parent_id', 'parents_children', ['parent_id'])

    # ── Teacher rates ─────────────────────────────────────────────────────────
    op.create_table(
        'teacher_rates',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('teacher_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject', sa.String(100), nullable=False),
        sa.Column('level', sa.String(100), nullable=False),
        sa.Column('rate', sa.Float, nullable=False),
    )
    op.create_index('ix_teacher_rates_teacher_id', 'teacher_rates', ['teacher_id'])
    op.create_index('ix_teacher_rates_subject', 'teacher_rates', ['subject'])

    # ── Request board ─────────────────────────────────────────────────────────
    op.create_table(
        'requests',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('requester_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('child_id', sa.String(36), sa.ForeignKey('parents_children.id', ondelete='SET NULL'), nullable=True),
        sa.Column('text', sa.Text, nullable=False),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('status', request_status_enum, nullable=False, server_default='open'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_requests_requester_id', 'requests', ['requester_id'])
    op.create_index('ix_requests_status', 'requests', ['status'])
    op.create_index('ix_requests_created_at', 'requests', ['created_at'])

    op.create_table(
        'request_applications',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('teacher_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('monthly_rate', sa.Float, nullable=False),
        sa.Column('status', application_status_enum, nullable=False, server_default='pending'),
        sa.Column('date_applied', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_request_applications_request_id', 'request_applications', ['request_id'])
    op.create_index('ix_request_applications_teacher_id', 'request_applications', ['teacher_id'])

    # ── Engagements ───────────────────────────────────────────────────────────
    op.create_table(
        'teacher_students',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('teacher_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject', sa.Text, nullable=True),
        sa.Column('level', sa.String(100), nullable=True),
        sa.Column('date_added', sa.Date, nullable=False),
        sa.Column('expiry_date', sa.Date, nullable=False),
    )
    op.create_index('ix_teacher_students_teacher_id', 'teacher_students', ['teacher_id'])
    op.create_index('ix_teacher_students_student_id', 'teacher_students', ['student_id'])

    op.create_table(
        'parent_child_teachers',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('teacher_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('child_id', sa.String(36), sa.ForeignKey('parents_children.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject', sa.Text, nullable=True),
        sa.Column('level', sa.String(100), nullable=True),
        sa.Column('date_added', sa.Date, nullable=False),
        sa.Column('expiry_date', sa.Date, nullable=False),
    )
    op.create_index('ix_parent_child_teachers_teacher_id', 'parent_child_teachers', ['teacher_id'])
    op.create_index('ix_parent_child_teachers_parent_id', 'parent_child_teachers', ['parent_id'])
    op.create_index('ix_parent_child_teachers_child_id', 'parent_child_teachers', ['child_id'])

    op.create_table(
        'parent_request_teacher_child',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('requests.id', ondelete='SET NULL'), nullable=True),
        sa.Column('teacher_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('child_id', sa.String(36), sa.ForeignKey('parents_children.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', parent_request_status_enum, nullable=False, server_default='accepted'),
        sa.Column('date_added', sa.Date, nullable=False),
        sa.Column('expiry_date', sa.Date, nullable=False),
    )
    op.create_index('ix_parent_request_teacher_child_request_id', 'parent_request_teacher_child', ['request_id'])
    op.create_index('ix_parent_request_teacher_child_teacher_id', 'parent_request_teacher_child', ['teacher_id'])
    op.create_index('ix_parent_request_teacher_child_parent_id', 'parent_request_teacher_child', ['parent_id'])
    op.create_index('ix_parent_request_teacher_child_status', 'parent_request_teacher_child', ['status'])


def downgrade() -> None:
    op.drop_table('parent_request_teacher_child')
    op.drop_table('parent_child_teachers')
    op.drop_table('teacher_students')
    op.drop_table('request_applications')
    op.drop_table('requests')
    op.drop_table('teacher_rates')
    op.drop_table('parents_children')
    op.drop_table('users')

    bind = op.get_bind()
    for enum in (
        parent_request_status_enum,
        application_status_enum,
        request_status_enum,
        user_type_enum,
    ):
        enum.drop(bind, checkfirst=True)
