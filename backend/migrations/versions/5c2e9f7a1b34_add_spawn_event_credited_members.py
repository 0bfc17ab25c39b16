"""add credited_members to spawn_event

Revision ID: 5c2e9f7a1b34
Revises: 1a7c3e5b9d20
Create Date: 2026-10-18 15:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9f7a1b34'
down_revision = '1a7c3e5b9d20'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('spawn_event')}
    if 'credited_members' not in cols:
        # JSON list of [guild_id, member_name] pairs already credited for the event
        op.add_column('spawn_event', sa.Column('credited_members', sa.Text(), nullable=True))


def downgrade():
    with op.batch_alter_table('spawn_event') as batch_op:
        batch_op.drop_column('credited_members')
