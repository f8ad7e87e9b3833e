"""initial booking schema

Revision ID: a3c91e5d7b20
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a3c91e5d7b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    # Catalog and roster
    op.create_table('tutoring_services',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('online_available', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('in_person_available', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name')
    )
    op.create_index('idx_services_active', 'tutoring_services', ['is_active'], unique=False)

    op.create_table('tutors',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('email', sa.String(length=320), nullable=False),
    sa.Column('subjects', sa.JSON(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='approved'),
    *_timestamps(),
    sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_tutors_status'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_index('idx_tutors_status', 'tutors', ['status'], unique=False)

    op.create_table('tutor_availability',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('tutor_id', sa.Uuid(), nullable=False),
    sa.Column('day_of_week', sa.Integer(), nullable=False),
    sa.Column('start_time', sa.Time(), nullable=False),
    sa.Column('end_time', sa.Time(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_availability_day'),
    sa.CheckConstraint('start_time < end_time', name='ck_availability_window'),
    sa.ForeignKeyConstraint(['tutor_id'], ['tutors.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_availability_tutor_day', 'tutor_availability', ['tutor_id', 'day_of_week'], unique=False)

    # Group sessions
    op.create_table('group_sessions',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('service_id', sa.Uuid(), nullable=False),
    sa.Column('subject', sa.String(length=200), nullable=False),
    sa.Column('session_type', sa.String(length=20), nullable=False, server_default='online'),
    sa.Column('preferred_date', sa.Date(), nullable=False),
    sa.Column('preferred_time', sa.Time(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='forming'),
    sa.Column('min_students', sa.Integer(), nullable=False, server_default='3'),
    sa.Column('max_students', sa.Integer(), nullable=False, server_default='40'),
    sa.Column('current_count', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('open_slot', sa.String(length=255), nullable=True),
    sa.Column('meeting_link', sa.String(length=500), nullable=True),
    *_timestamps(),
    sa.CheckConstraint(
        "status IN ('forming', 'ready', 'assigned', 'approved', 'completed', 'cancelled', 'full')",
        name='ck_group_sessions_status'
    ),
    sa.CheckConstraint('current_count >= 0 AND current_count <= max_students', name='ck_group_sessions_count'),
    sa.CheckConstraint('min_students >= 1 AND min_students <= max_students', name='ck_group_sessions_quorum'),
    sa.ForeignKeyConstraint(['service_id'], ['tutoring_services.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('open_slot', name='uq_group_sessions_open_slot')
    )
    op.create_index('idx_group_sessions_slot', 'group_sessions', ['service_id', 'session_type', 'preferred_date'], unique=False)
    op.create_index('idx_group_sessions_status', 'group_sessions', ['status'], unique=False)

    op.create_table('group_session_participants',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('group_session_id', sa.Uuid(), nullable=False),
    sa.Column('student_id', sa.Uuid(), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    sa.ForeignKeyConstraint(['group_session_id'], ['group_sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('group_session_id', 'student_id', name='uq_group_session_participant')
    )
    op.create_index('idx_participants_student', 'group_session_participants', ['student_id'], unique=False)

    op.create_table('group_session_tutors',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('group_session_id', sa.Uuid(), nullable=False),
    sa.Column('tutor_id', sa.Uuid(), nullable=False),
    sa.Column('assignment_order', sa.Integer(), nullable=False),
    sa.Column('assigned_by', sa.Uuid(), nullable=False),
    sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    sa.CheckConstraint('assignment_order >= 1 AND assignment_order <= 5', name='ck_group_session_tutors_order'),
    sa.ForeignKeyConstraint(['group_session_id'], ['group_sessions.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['tutor_id'], ['tutors.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('group_session_id', 'assignment_order', name='uq_group_session_tutor_order'),
    sa.UniqueConstraint('group_session_id', 'tutor_id', name='uq_group_session_tutor')
    )
    op.create_index('idx_group_session_tutors_tutor', 'group_session_tutors', ['tutor_id'], unique=False)

    # Bookings
    op.create_table('bookings',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('student_id', sa.Uuid(), nullable=False),
    sa.Column('service_id', sa.Uuid(), nullable=False),
    sa.Column('subject', sa.String(length=200), nullable=False),
    sa.Column('session_type', sa.String(length=20), nullable=False),
    sa.Column('delivery_mode', sa.String(length=20), nullable=False),
    sa.Column('class_type', sa.String(length=20), nullable=False),
    sa.Column('preferred_date', sa.Date(), nullable=False),
    sa.Column('preferred_time', sa.Time(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('curriculum', sa.String(length=100), nullable=True),
    sa.Column('duration_minutes', sa.Integer(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
    sa.Column('group_session_id', sa.Uuid(), nullable=True),
    sa.Column('meeting_link', sa.String(length=500), nullable=True),
    sa.Column('tutor_assigned_at', sa.DateTime(timezone=True), nullable=True),
    *_timestamps(),
    sa.CheckConstraint(
        "status IN ('pending', 'approved', 'assigned', 'completed', 'cancelled', 'rejected')",
        name='ck_bookings_status'
    ),
    sa.CheckConstraint(
        "(class_type = 'group' AND group_session_id IS NOT NULL) OR "
        "(class_type = 'one-on-one' AND group_session_id IS NULL)",
        name='ck_bookings_group_link'
    ),
    sa.ForeignKeyConstraint(['service_id'], ['tutoring_services.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['group_session_id'], ['group_sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_bookings_student', 'bookings', ['student_id'], unique=False)
    op.create_index('idx_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('idx_bookings_group_session', 'bookings', ['group_session_id'], unique=False)

    op.create_table('booking_subjects',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('booking_id', sa.Uuid(), nullable=False),
    sa.Column('service_id', sa.Uuid(), nullable=False),
    sa.Column('subject_order', sa.Integer(), nullable=False),
    sa.Column('duration_minutes', sa.Integer(), nullable=True),
    sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['service_id'], ['tutoring_services.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('booking_id', 'subject_order', name='uq_booking_subject_order')
    )

    op.create_table('booking_tutors',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('booking_id', sa.Uuid(), nullable=False),
    sa.Column('tutor_id', sa.Uuid(), nullable=False),
    sa.Column('assignment_order', sa.Integer(), nullable=False),
    sa.Column('assigned_by', sa.Uuid(), nullable=False),
    sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    sa.CheckConstraint('assignment_order >= 1 AND assignment_order <= 5', name='ck_booking_tutors_order'),
    sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['tutor_id'], ['tutors.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('booking_id', 'assignment_order', name='uq_booking_tutor_order'),
    sa.UniqueConstraint('booking_id', 'tutor_id', name='uq_booking_tutor')
    )
    op.create_index('idx_booking_tutors_tutor', 'booking_tutors', ['tutor_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_booking_tutors_tutor', table_name='booking_tutors')
    op.drop_table('booking_tutors')
    op.drop_table('booking_subjects')
    op.drop_index('idx_bookings_group_session', table_name='bookings')
    op.drop_index('idx_bookings_status', table_name='bookings')
    op.drop_index('idx_bookings_student', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('idx_group_session_tutors_tutor', table_name='group_session_tutors')
    op.drop_table('group_session_tutors')
    op.drop_index('idx_participants_student', table_name='group_session_participants')
    op.drop_table('group_session_participants')
    op.drop_index('idx_group_sessions_status', table_name='group_sessions')
    op.drop_index('idx_group_sessions_slot', table_name='group_sessions')
    op.drop_table('group_sessions')
    op.drop_index('idx_availability_tutor_day', table_name='tutor_availability')
    op.drop_table('tutor_availability')
    op.drop_index('idx_tutors_status', table_name='tutors')
    op.drop_table('tutors')
    op.drop_index('idx_services_active', table_name='tutoring_services')
    op.drop_table('tutoring_services')
