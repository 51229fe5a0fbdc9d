"""Initial outreach schema: prospects, agent tasks, follow-ups, notifications

Revision ID: 3f1a9c07d2e4
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c07d2e4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('prospects',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('business_name', sa.Text(), nullable=False),
        sa.Column('contact_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('website', sa.Text(), nullable=True),
        sa.Column('city', sa.Text(), nullable=True),
        sa.Column('category', sa.Text(), nullable=True),
        sa.Column('stage', sa.Text(), nullable=False, server_default='new'),
        sa.Column('automation_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_prospects_stage', 'prospects', ['stage'])

    op.create_table('agent_tasks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('agent_type', sa.Text(), nullable=False),
        sa.Column('prospect_id', sa.Integer(), sa.ForeignKey('prospects.id'), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('scheduled_for', sa.DateTime(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_agent_tasks_status_scheduled', 'agent_tasks', ['status', 'scheduled_for'])

    op.create_table('follow_up_sequences',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('prospect_id', sa.Integer(), sa.ForeignKey('prospects.id'), nullable=False),
        sa.Column('sequence_step', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_steps', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('days_between', sa.Text(), nullable=True),
        sa.Column('is_paused', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_sent_at', sa.DateTime(), nullable=True),
        sa.Column('next_send_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('prospect_id'),
    )

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('prospect_id', sa.Integer(), sa.ForeignKey('prospects.id'), nullable=True),
        sa.Column('priority', sa.Text(), nullable=False, server_default='normal'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('action_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table('activities',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('prospect_id', sa.Integer(), sa.ForeignKey('prospects.id'), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activities_prospect_id', 'activities', ['prospect_id'])

    op.create_table('campaigns',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('prospect_id', sa.Integer(), sa.ForeignKey('prospects.id'), nullable=False),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('follow_up_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('message_id', sa.Text(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_campaigns_prospect_id', 'campaigns', ['prospect_id'])

    agent_config = op.create_table('agent_config',
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )
    op.bulk_insert(agent_config, [
        {'key': 'llm_provider', 'value': 'openai'},
        {'key': 'follow_up_days', 'value': '3,7,14'},
        {'key': 'max_follow_ups', 'value': '3'},
        {'key': 'auto_outreach', 'value': 'true'},
        {'key': 'auto_classify', 'value': 'true'},
    ])


def downgrade() -> None:
    op.drop_table('agent_config')
    op.drop_index('ix_campaigns_prospect_id', table_name='campaigns')
    op.drop_table('campaigns')
    op.drop_index('ix_activities_prospect_id', table_name='activities')
    op.drop_table('activities')
    op.drop_index('ix_notifications_created_at', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('follow_up_sequences')
    op.drop_index('ix_agent_tasks_status_scheduled', table_name='agent_tasks')
    op.drop_table('agent_tasks')
    op.drop_index('ix_prospects_stage', table_name='prospects')
    op.drop_table('prospects')
