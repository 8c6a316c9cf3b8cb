"""create profiles, slots, availability and bookings

Revision ID: 4c2d9a7e1b30
Revises:
Create Date: 2026-10-19 09:12:44.501233

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4c2d9a7e1b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # 1. Profiles
    op.create_table(
        'profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('role', sa.Enum('student', 'tutor', name='userrole'), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('avatar_url', sa.String(1024), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=True),
        sa.Column('hourly_rate_cents', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)
    )
    op.create_index('ix_profiles_role', 'profiles', ['role'])

    # 2. Lesson slots
    op.create_table(
        'lesson_slots',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tutor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('price_cents', sa.Integer, nullable=False, server_default='0'),
        sa.Column('status', sa.String(16), nullable=False, server_default='available'),
        sa.Column('held_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('hold_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('room', sa.String(255), nullable=True),
        sa.Column('source', sa.String(16), nullable=False, server_default='manual'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('ends_at IS NULL OR ends_at > starts_at', name='ck_lesson_slots_ends_after_start'),
        sa.CheckConstraint('price_cents >= 0', name='ck_lesson_slots_price_non_negative')
    )
    op.create_index('ix_lesson_slots_tutor_starts_at', 'lesson_slots', ['tutor_id', 'starts_at'])
    op.create_index('ix_lesson_slots_status', 'lesson_slots', ['status'])

    # 3. Weekly availability pattern, one row per tutor
    op.create_table(
        'tutor_availability_patterns',
        sa.Column('tutor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('timezone', sa.String(64), nullable=False),
        sa.Column('hours_by_dow', sa.JSON, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)
    )

    # 4. Time off
    op.create_table(
        'tutor_time_off',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tutor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.String, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('ends_at > starts_at', name='ck_tutor_time_off_ends_after_start')
    )
    op.create_index('ix_tutor_time_off_tutor_window', 'tutor_time_off', ['tutor_id', 'starts_at', 'ends_at'])

    # 5. Bookings
    op.create_table(
        'bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tutor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('slot_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('lesson_slots.id', ondelete='SET NULL'), nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('price_cents', sa.Integer, nullable=False, server_default='0'),
        sa.Column('status', sa.String(16), nullable=False, server_default='booked'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)
    )
    op.create_index('ix_bookings_tutor_id', 'bookings', ['tutor_id'])
    op.create_index('ix_bookings_student_id', 'bookings', ['student_id'])

    # At most one live booking per slot
    op.create_index(
        'uq_bookings_live_slot',
        'bookings',
        ['slot_id'],
        unique=True,
        postgresql_where=sa.text("status <> 'canceled' AND slot_id IS NOT NULL")
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_bookings_live_slot', table_name='bookings')
    op.drop_index('ix_bookings_student_id', table_name='bookings')
    op.drop_index('ix_bookings_tutor_id', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_tutor_time_off_tutor_window', table_name='tutor_time_off')
    op.drop_table('tutor_time_off')

    op.drop_table('tutor_availability_patterns')

    op.drop_index('ix_lesson_slots_status', table_name='lesson_slots')
    op.drop_index('ix_lesson_slots_tutor_starts_at', table_name='lesson_slots')
    op.drop_table('lesson_slots')

    op.drop_index('ix_profiles_role', table_name='profiles')
    op.drop_table('profiles')

    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
