"""create video assessment tables

Revision ID: 0001_video_assessment_tables
Revises: None
Create Date: 2026-01-16 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = '0001_video_assessment_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'video_assessments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('assessment_id', sa.String(64), nullable=False),
        sa.Column('candidate_id', sa.String(64), nullable=False),
        sa.Column('video_url', sa.Text(), nullable=False),
        sa.Column('task_description', sa.Text(), nullable=True),
        sa.Column('video_duration_minutes', sa.Float(), nullable=True),
        sa.Column('expected_outcomes', sa.JSON(), nullable=True),
        sa.Column('role_family_slug', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_failure_reason', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('assessment_id', name='uq_video_assessments_assessment_id'),
    )
    op.create_index('ix_video_assessments_candidate_id', 'video_assessments', ['candidate_id'])
    op.create_index('ix_video_assessments_status', 'video_assessments', ['status'])

    op.create_table(
        'dimension_scores',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('video_assessment_id', sa.String(36), sa.ForeignKey('video_assessments.id'), nullable=False),
        sa.Column('dimension', sa.String(64), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('confidence', sa.String(10), nullable=False, server_default='medium'),
        sa.Column('rationale', sa.Text(), nullable=False, server_default=''),
        sa.Column('observable_behaviors', sa.JSON(), nullable=False),
        sa.Column('timestamps', sa.JSON(), nullable=False),
        sa.Column('trainable_gap', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('green_flags', sa.JSON(), nullable=False),
        sa.Column('red_flags', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('video_assessment_id', 'dimension', name='uq_dimension_scores_assessment_dimension'),
    )

    op.create_table(
        'video_assessment_summaries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('video_assessment_id', sa.String(36), sa.ForeignKey('video_assessments.id'), nullable=False),
        sa.Column('overall_summary', sa.Text(), nullable=False, server_default=''),
        sa.Column('raw_ai_response', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('video_assessment_id', name='uq_video_assessment_summaries_video_assessment_id'),
    )

    op.create_table(
        'video_assessment_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('video_assessment_id', sa.String(36), sa.ForeignKey('video_assessments.id'), nullable=False),
        sa.Column('event_type', sa.String(32), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
    )
    op.create_index('ix_video_assessment_logs_video_assessment_id', 'video_assessment_logs', ['video_assessment_id'])

    op.create_table(
        'video_assessment_api_calls',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('video_assessment_id', sa.String(36), sa.ForeignKey('video_assessments.id'), nullable=False),
        sa.Column('request_timestamp', sa.DateTime(), nullable=False),
        sa.Column('response_timestamp', sa.DateTime(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('model_version', sa.String(64), nullable=False),
        sa.Column('prompt_text', sa.Text(), nullable=True),
        sa.Column('response_text', sa.Text(), nullable=True),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('stack_trace', sa.Text(), nullable=True),
        sa.Column('prompt_tokens', sa.Integer(), nullable=True),
        sa.Column('response_tokens', sa.Integer(), nullable=True),
    )
    op.create_index('ix_video_assessment_api_calls_video_assessment_id', 'video_assessment_api_calls',
                    ['video_assessment_id'])


def downgrade() -> None:
    op.drop_index('ix_video_assessment_api_calls_video_assessment_id', table_name='video_assessment_api_calls')
    op.drop_table('video_assessment_api_calls')
    op.drop_index('ix_video_assessment_logs_video_assessment_id', table_name='video_assessment_logs')
    op.drop_table('video_assessment_logs')
    op.drop_table('video_assessment_summaries')
    op.drop_table('dimension_scores')
    op.drop_index('ix_video_assessments_status', table_name='video_assessments')
    op.drop_index('ix_video_assessments_candidate_id', table_name='video_assessments')
    op.drop_table('video_assessments')
