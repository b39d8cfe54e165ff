"""candidates, opportunities and matching_results

Revision ID: d1e2f3a4b5c6
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'd1e2f3a4b5c6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCORE = sa.Numeric(7, 6)


def upgrade() -> None:
    # --- candidates ---
    op.create_table(
        'candidates',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('preferred_work_mode', sa.String(30), nullable=True),
        sa.Column('skill_ids', postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('interest_ids', postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # --- opportunities ---
    op.create_table(
        'opportunities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False, server_default=''),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('work_mode', sa.String(30), nullable=True),
        sa.Column('required_skill_ids', postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('tag_ids', postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('min_seats', sa.Integer, nullable=False, server_default='1'),
        sa.Column('max_seats', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('max_seats >= 1', name='ck_opportunities_max_seats_positive'),
        sa.CheckConstraint('min_seats >= 0', name='ck_opportunities_min_seats_non_negative'),
    )

    # --- matching_results ---
    op.create_table(
        'matching_results',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('session_id', sa.String(50), nullable=False),
        sa.Column('candidate_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('candidates.id', ondelete='CASCADE'), nullable=False),
        sa.Column('opportunity_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('opportunities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('global_score', SCORE, nullable=False),
        sa.Column('skills_score', SCORE, nullable=False),
        sa.Column('interests_score', SCORE, nullable=False),
        sa.Column('work_mode_score', SCORE, nullable=False),
        sa.Column('skills_weight', SCORE, nullable=False),
        sa.Column('interests_weight', SCORE, nullable=False),
        sa.Column('work_mode_weight', SCORE, nullable=False),
        sa.Column('skills_details', sa.String(500), nullable=True),
        sa.Column('interests_details', sa.String(500), nullable=True),
        sa.Column('recommendation_rank', sa.Integer, nullable=True),
        sa.Column('above_threshold', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('threshold_used', SCORE, nullable=False),
        sa.Column('algorithm_used', sa.String(50), nullable=False, server_default='WEIGHTED'),
        sa.Column('calculated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            'candidate_id', 'opportunity_id', 'session_id', 'algorithm_used',
            name='uq_result_candidate_opportunity_session_algorithm',
        ),
    )
    op.create_index('ix_matching_results_session_id', 'matching_results', ['session_id'])
    op.create_index('ix_matching_results_candidate_id', 'matching_results', ['candidate_id'])
    op.create_index('ix_matching_results_opportunity_id', 'matching_results', ['opportunity_id'])
    op.create_index('ix_matching_results_global_score', 'matching_results', ['global_score'])


def downgrade() -> None:
    op.drop_index('ix_matching_results_global_score', table_name='matching_results')
    op.drop_index('ix_matching_results_opportunity_id', table_name='matching_results')
    op.drop_index('ix_matching_results_candidate_id', table_name='matching_results')
    op.drop_index('ix_matching_results_session_id', table_name='matching_results')
    op.drop_table('matching_results')
    op.drop_table('opportunities')
    op.drop_table('candidates')
