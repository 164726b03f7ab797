"""initial gym analytics schema

Revision ID: 001
Revises:
Create Date: 2025-01-06 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _gym_fk(nullable=False):
    return sa.Column('gym_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('gym.id'), nullable=nullable)


def _now():
    return sa.text('now()')


def upgrade() -> None:
    op.create_table(
        'gym',
        _id(),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('location', sa.Text(), nullable=True),
    )

    # Roster
    op.create_table(
        'member',
        _id(),
        _gym_fk(),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='active', nullable=False),
        sa.Column('join_date', sa.Date(), nullable=False),
        sa.Column('cancel_date', sa.Date(), nullable=True),
        sa.Column('monthly_rate', sa.Numeric(10, 2), server_default='0', nullable=False),
        sa.Column('source', sa.Text(), server_default='csv', nullable=False),
        sa.UniqueConstraint('gym_id', 'email', name='uq_member_gym_email'),
    )
    op.create_index('ix_member_gym_id', 'member', ['gym_id'])
    op.create_index('ix_member_gym_status', 'member', ['gym_id', 'status'])

    op.create_table(
        'member_contact',
        _id(),
        sa.Column('member_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('member.id'), nullable=False),
        _gym_fk(),
        sa.Column('contacted_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
    )
    op.create_index('ix_member_contact_member_id', 'member_contact', ['member_id'])
    op.create_index('ix_member_contact_gym_id', 'member_contact', ['gym_id'])

    # Derived monthly metrics
    op.create_table(
        'gym_monthly_metrics',
        _id(),
        _gym_fk(),
        sa.Column('month_start', sa.Date(), nullable=False),
        sa.Column('computed_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('active_members', sa.Integer(), server_default='0', nullable=False),
        sa.Column('active_start_of_month', sa.Integer(), server_default='0', nullable=False),
        sa.Column('new_members', sa.Integer(), server_default='0', nullable=False),
        sa.Column('cancels', sa.Integer(), server_default='0', nullable=False),
        sa.Column('churn_rate', sa.Numeric(6, 2), server_default='0', nullable=False),
        sa.Column('rolling_churn_3m', sa.Numeric(6, 2), nullable=True),
        sa.Column('mrr', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('arm', sa.Numeric(10, 2), server_default='0', nullable=False),
        sa.Column('ltv', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('rsi', sa.Integer(), server_default='0', nullable=False),
        sa.Column('res', sa.Numeric(5, 1), server_default='0', nullable=False),
        sa.Column('ltve_impact', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('member_risk_count', sa.Integer(), server_default='0', nullable=False),
        sa.UniqueConstraint('gym_id', 'month_start', name='uq_gym_monthly_metrics_gym_month'),
    )
    op.create_index('ix_gym_monthly_metrics_gym_id', 'gym_monthly_metrics', ['gym_id'])

    # Import history
    op.create_table(
        'member_import',
        _id(),
        _gym_fk(),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('filename', sa.Text(), nullable=True),
        sa.Column('file_hash', sa.Text(), nullable=False),
        sa.Column('total_rows', sa.Integer(), server_default='0', nullable=False),
        sa.Column('imported', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated', sa.Integer(), server_default='0', nullable=False),
        sa.Column('skipped', sa.Integer(), server_default='0', nullable=False),
        sa.Column('error_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('errors', postgresql.JSONB(), server_default='[]', nullable=False),
        sa.Column('column_mapping', postgresql.JSONB(), server_default='{}', nullable=False),
    )
    op.create_index('ix_member_import_gym_id', 'member_import', ['gym_id'])
    op.create_index('ix_member_import_created_at', 'member_import', ['created_at'])
    op.create_index('ix_member_import_file_hash', 'member_import', ['file_hash'])

    # Recommendation execution and learning
    op.create_table(
        'recommendation_card',
        _id(),
        _gym_fk(),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('recommendation_type', sa.Text(), nullable=False),
        sa.Column('pillar', sa.Text(), nullable=True),
        sa.Column('headline', sa.Text(), nullable=False),
        sa.Column('checklist_items', postgresql.JSONB(), server_default='[]', nullable=False),
        sa.Column('baseline_forecast', postgresql.JSONB(), nullable=True),
        sa.Column('execution_strength_threshold', sa.Numeric(4, 2), server_default='0.6', nullable=False),
    )
    op.create_index('ix_recommendation_card_gym_id', 'recommendation_card', ['gym_id'])
    op.create_index('ix_recommendation_card_gym_period', 'recommendation_card', ['gym_id', 'period_start'])

    op.create_table(
        'checklist_item_completion',
        _id(),
        sa.Column('recommendation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('recommendation_card.id'), nullable=False),
        sa.Column('item_id', sa.Text(), nullable=False),
        sa.Column('checked', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('checked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.UniqueConstraint('recommendation_id', 'item_id', name='uq_checklist_item_completion'),
    )
    op.create_index('ix_checklist_item_completion_recommendation_id', 'checklist_item_completion', ['recommendation_id'])

    op.create_table(
        'recommendation_learning_event',
        _id(),
        sa.Column('recommendation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('recommendation_card.id'), nullable=False),
        sa.Column('recommendation_type', sa.Text(), nullable=False),
        _gym_fk(),
        sa.Column('evaluation_window_days', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('execution_strength', sa.Numeric(4, 3), nullable=False),
        sa.Column('overlap_weight', sa.Numeric(4, 2), nullable=False),
        sa.Column('impact_score', sa.Numeric(14, 4), nullable=False),
        sa.Column('delta_members', sa.Integer(), nullable=False),
        sa.Column('delta_mrr', sa.Numeric(12, 2), nullable=False),
        sa.Column('delta_churn', sa.Numeric(6, 2), nullable=False),
        sa.UniqueConstraint('recommendation_id', 'evaluation_window_days', name='uq_learning_event_card_window'),
    )
    op.create_index('ix_recommendation_learning_event_recommendation_id', 'recommendation_learning_event', ['recommendation_id'])
    op.create_index('ix_recommendation_learning_event_gym_id', 'recommendation_learning_event', ['gym_id'])

    op.create_table(
        'recommendation_learning_stat',
        _id(),
        sa.Column('recommendation_type', sa.Text(), nullable=False),
        _gym_fk(nullable=True),
        sa.Column('expected_impact', sa.Numeric(14, 4), server_default='0', nullable=False),
        sa.Column('confidence', sa.Numeric(4, 3), server_default='0', nullable=False),
        sa.Column('sample_size', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.UniqueConstraint('recommendation_type', 'gym_id', name='uq_learning_stat_type_gym'),
    )
    op.create_index('ix_recommendation_learning_stat_recommendation_type', 'recommendation_learning_stat', ['recommendation_type'])
    op.create_index('ix_recommendation_learning_stat_gym_id', 'recommendation_learning_stat', ['gym_id'])

    op.create_table(
        'owner_additional_action',
        _id(),
        _gym_fk(),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('classification_type', sa.Text(), nullable=True),
        sa.Column('classification_confidence', sa.Numeric(4, 3), server_default='0', nullable=False),
        sa.Column('classification_status', sa.Text(), nullable=False),
    )
    op.create_index('ix_owner_additional_action_gym_id', 'owner_additional_action', ['gym_id'])

    # Wodify integration
    op.create_table(
        'wodify_connection',
        _id(),
        _gym_fk(),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('api_key_encrypted', sa.Text(), nullable=False),
        sa.Column('api_key_fingerprint', sa.Text(), nullable=False),
        sa.Column('location_name', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='connected', nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_success_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error_message', sa.Text(), nullable=True),
        sa.UniqueConstraint('gym_id', name='uq_wodify_connection_gym_id'),
    )

    op.create_table(
        'wodify_sync_run',
        _id(),
        _gym_fk(),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.Text(), server_default='running', nullable=False),
        sa.Column('clients_fetched', sa.Integer(), server_default='0', nullable=False),
        sa.Column('imported', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated', sa.Integer(), server_default='0', nullable=False),
        sa.Column('skipped', sa.Integer(), server_default='0', nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
    )
    op.create_index('ix_wodify_sync_run_gym_id', 'wodify_sync_run', ['gym_id'])


def downgrade() -> None:
    op.drop_table('wodify_sync_run')
    op.drop_table('wodify_connection')
    op.drop_table('owner_additional_action')
    op.drop_table('recommendation_learning_stat')
    op.drop_table('recommendation_learning_event')
    op.drop_table('checklist_item_completion')
    op.drop_table('recommendation_card')
    op.drop_table('member_import')
    op.drop_table('gym_monthly_metrics')
    op.drop_table('member_contact')
    op.drop_table('member')
    op.drop_table('gym')
