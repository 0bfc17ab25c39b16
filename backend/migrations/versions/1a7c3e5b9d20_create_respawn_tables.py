"""create boss, spawn_event, contribution and notification tables

Revision ID: 1a7c3e5b9d20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e5b9d20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'guild',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
    )
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('guild_id', sa.Integer(), sa.ForeignKey('guild.id'), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='member'),
        sa.Column('push_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notification_timing', sa.Text(), nullable=True),
        sa.Column('favorite_bosses', sa.Text(), nullable=True),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)
    op.create_table(
        'boss',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('location', sa.String(length=128), nullable=True),
        sa.Column('server', sa.String(length=64), nullable=True),
        sa.Column('respawn_interval', sa.Integer(), nullable=False),
        sa.Column('last_spawn', sa.DateTime(), nullable=True),
        sa.Column('next_spawn', sa.DateTime(), nullable=True),
        sa.Column('difficulty', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.CheckConstraint('respawn_interval >= 1 AND respawn_interval <= 10080', name='ck_boss_respawn_interval'),
    )
    op.create_table(
        'spawn_event',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('boss_id', sa.Integer(), sa.ForeignKey('boss.id'), nullable=False),
        sa.Column('spawn_time', sa.DateTime(), nullable=False),
        sa.Column('kill_time', sa.DateTime(), nullable=True),
        sa.Column('reported_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('server', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('participants', sa.Text(), nullable=True),
        sa.Column('x', sa.Float(), nullable=True),
        sa.Column('y', sa.Float(), nullable=True),
        sa.Column('z', sa.Float(), nullable=True),
    )
    op.create_index('ix_spawn_event_boss_id', 'spawn_event', ['boss_id'])
    op.create_index('ix_spawn_event_spawn_time', 'spawn_event', ['spawn_time'])
    op.create_table(
        'contribution',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('guild_id', sa.Integer(), sa.ForeignKey('guild.id'), nullable=False),
        sa.Column('member_name', sa.String(length=64), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('contribution_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_event_date', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('guild_id', 'member_name', name='uq_contribution_guild_member'),
        sa.CheckConstraint('contribution_score >= 0', name='ck_contribution_score'),
    )
    op.create_index('ix_contribution_guild_id', 'contribution', ['guild_id'])
    op.create_table(
        'notification_receipt',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('boss_id', sa.Integer(), sa.ForeignKey('boss.id'), nullable=False),
        sa.Column('lead_key', sa.String(length=32), nullable=False),
        sa.Column('cycle', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'boss_id', 'lead_key', name='uq_receipt_user_boss_lead'),
    )
    op.create_index('ix_notification_receipt_boss_id', 'notification_receipt', ['boss_id'])


def downgrade():
    op.drop_index('ix_notification_receipt_boss_id', table_name='notification_receipt')
    op.drop_table('notification_receipt')
    op.drop_index('ix_contribution_guild_id', table_name='contribution')
    op.drop_table('contribution')
    op.drop_index('ix_spawn_event_spawn_time', table_name='spawn_event')
    op.drop_index('ix_spawn_event_boss_id', table_name='spawn_event')
    op.drop_table('spawn_event')
    op.drop_table('boss')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
    op.drop_table('guild')
