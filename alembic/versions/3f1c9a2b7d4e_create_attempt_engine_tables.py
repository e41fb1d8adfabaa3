"""create_attempt_engine_tables

Revision ID: 3f1c9a2b7d4e
Revises:
Create Date: 2026-10-19 10:12:31.408113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d4e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table('enrollments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('test_series_id', sa.String(64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'test_series_id', name='uq_user_test_series')
    )
    op.create_index('ix_enrollments_id', 'enrollments', ['id'])
    op.create_index('ix_enrollments_user_id', 'enrollments', ['user_id'])
    op.create_index('ix_enrollments_test_series_id', 'enrollments', ['test_series_id'])

    op.create_table('exam_attempts',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.String(64), nullable=False),
        sa.Column('test_series_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='in_progress'),
        sa.Column('submitted_by', sa.String(10), nullable=True),
        sa.Column('language', sa.String(5), nullable=False, server_default='en'),
        sa.Column('current_section_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_question_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('client_section_index', sa.Integer(), nullable=True),
        sa.Column('client_question_index', sa.Integer(), nullable=True),
        sa.Column('client_time_remaining', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_active_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('total_time_taken', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('question_order_json', sa.Text(), nullable=True),
        sa.Column('option_orders_json', sa.Text(), nullable=True),
        sa.Column('settings_json', sa.Text(), nullable=True),
        sa.Column('section_progress_json', sa.Text(), nullable=True),
        sa.Column('total_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('attempted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wrong', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('partially_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('max_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('grade', sa.String(1), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('percentile', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index('ix_exam_attempts_id', 'exam_attempts', ['id'])
    op.create_index('ix_exam_attempts_user_id', 'exam_attempts', ['user_id'])
    op.create_index('ix_exam_attempts_exam_id', 'exam_attempts', ['exam_id'])
    op.create_index(
        'ix_exam_attempts_exam_status_score', 'exam_attempts', ['exam_id', 'status', 'score']
    )
    op.create_index(
        'uq_attempt_user_exam_in_progress',
        'exam_attempts',
        ['user_id', 'exam_id'],
        unique=True,
        sqlite_where=sa.text("status = 'in_progress'"),
        postgresql_where=sa.text("status = 'in_progress'"),
    )

    op.create_table('attempt_answers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.String(64), nullable=False),
        sa.Column('question_id', sa.String(64), nullable=False),
        sa.Column('section_id', sa.String(64), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('selected_options_json', sa.Text(), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_partially_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('marks_obtained', sa.Float(), nullable=False, server_default='0'),
        sa.Column('time_taken', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('marked_for_review', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('visited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('question_type', sa.String(20), nullable=False),
        sa.Column('scoring_type', sa.String(20), nullable=False),
        sa.Column('option_ids_json', sa.Text(), nullable=False),
        sa.Column('correct_answers_json', sa.Text(), nullable=False),
        sa.Column('positive_marks', sa.Float(), nullable=False),
        sa.Column('negative_marks', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['attempt_id'], ['exam_attempts.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question')
    )
    op.create_index('ix_attempt_answers_id', 'attempt_answers', ['id'])
    op.create_index('ix_attempt_answers_attempt_id', 'attempt_answers', ['attempt_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_attempt_answers_attempt_id', table_name='attempt_answers')
    op.drop_index('ix_attempt_answers_id', table_name='attempt_answers')
    op.drop_table('attempt_answers')
    op.drop_index('uq_attempt_user_exam_in_progress', table_name='exam_attempts')
    op.drop_index('ix_exam_attempts_exam_status_score', table_name='exam_attempts')
    op.drop_index('ix_exam_attempts_exam_id', table_name='exam_attempts')
    op.drop_index('ix_exam_attempts_user_id', table_name='exam_attempts')
    op.drop_index('ix_exam_attempts_id', table_name='exam_attempts')
    op.drop_table('exam_attempts')
    op.drop_index('ix_enrollments_test_series_id', table_name='enrollments')
    op.drop_index('ix_enrollments_user_id', table_name='enrollments')
    op.drop_index('ix_enrollments_id', table_name='enrollments')
    op.drop_table('enrollments')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
