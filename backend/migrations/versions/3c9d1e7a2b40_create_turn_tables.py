"""create room, member, prompt and turn tables

Revision ID: 3c9d1e7a2b40
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9d1e7a2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=8), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=True),
        sa.Column('kind', sa.String(length=16), nullable=False, server_default='group'),
        sa.Column('prompt_mode', sa.String(length=32), nullable=False, server_default='fun'),
        sa.Column('cooldown_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_room_code', 'room', ['code'], unique=True)

    op.create_table(
        'member',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='member'),
        sa.Column('missed_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('room_id', 'user_id', name='uq_member_room_user'),
    )
    op.create_index('ix_member_room_id', 'member', ['room_id'])

    op.create_table(
        'prompt',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('prompt_type', sa.String(length=16), nullable=False, server_default='text'),
        sa.Column('mode', sa.String(length=32), nullable=False),
    )
    op.create_index('ix_prompt_mode', 'prompt', ['mode'])

    op.create_table(
        'used_prompt',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id', ondelete='CASCADE'), nullable=False),
        sa.Column('mode', sa.String(length=32), nullable=False),
        sa.Column('prompt_id', sa.Integer(), sa.ForeignKey('prompt.id', ondelete='CASCADE'), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('room_id', 'mode', 'prompt_id', name='uq_used_prompt_room_mode_prompt'),
    )
    op.create_index('ix_used_prompt_room_mode', 'used_prompt', ['room_id', 'mode'])

    op.create_table(
        'turn_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('instance_id', sa.String(length=32), nullable=False),
        sa.Column('holder_user_id', sa.String(length=64), nullable=True),
        sa.Column('prompt_text', sa.Text(), nullable=True),
        sa.Column('prompt_type', sa.String(length=16), nullable=False, server_default='text'),
        sa.Column('cooldown_until', sa.DateTime(), nullable=True),
        sa.Column('all_nudged_at', sa.DateTime(), nullable=True),
        sa.Column('last_completed_at', sa.DateTime(), nullable=True),
        sa.Column('turn_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_turn_session_active', 'turn_session', ['active'])

    op.create_table(
        'nudge',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id', ondelete='CASCADE'), nullable=False),
        sa.Column('nudger_user_id', sa.String(length=64), nullable=False),
        sa.Column('nudged_user_id', sa.String(length=64), nullable=False),
        sa.Column('instance_id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('room_id', 'nudger_user_id', 'instance_id', name='uq_nudge_per_turn_instance'),
    )
    op.create_index('ix_nudge_room_instance', 'nudge', ['room_id', 'instance_id'])

    op.create_table(
        'message',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_user_id', sa.String(length=64), nullable=True),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_message_room_id', 'message', ['room_id'])


def downgrade():
    op.drop_index('ix_message_room_id', table_name='message')
    op.drop_table('message')
    op.drop_index('ix_nudge_room_instance', table_name='nudge')
    op.drop_table('nudge')
    op.drop_index('ix_turn_session_active', table_name='turn_session')
    op.drop_table('turn_session')
    op.drop_index('ix_used_prompt_room_mode', table_name='used_prompt')
    op.drop_table('used_prompt')
    op.drop_index('ix_prompt_mode', table_name='prompt')
    op.drop_table('prompt')
    op.drop_index('ix_member_room_id', table_name='member')
    op.drop_table('member')
    op.drop_index('ix_room_code', table_name='room')
    op.drop_table('room')
