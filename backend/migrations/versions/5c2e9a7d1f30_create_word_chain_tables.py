"""create lobby, player, round, submission and vote tables

Revision ID: 5c2e9a7d1f30
Revises:
Create Date: 2025-09-14 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a7d1f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'lobby',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_code', sa.String(length=12), nullable=False),
        sa.Column('timer_duration', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_lobby_game_code', 'lobby', ['game_code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('lobby_id', sa.Integer(), sa.ForeignKey('lobby.id'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('join_order', sa.Integer(), nullable=False),
        sa.Column('is_host', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.UniqueConstraint('lobby_id', 'join_order', name='uq_player_lobby_join_order'),
    )
    op.create_index('ix_player_lobby_id', 'player', ['lobby_id'])

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('lobby_id', sa.Integer(), sa.ForeignKey('lobby.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('starting_player_id', sa.String(length=64), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('active_player_id', sa.String(length=64), sa.ForeignKey('player.id'), nullable=True),
        sa.Column('starting_word', sa.String(length=128), nullable=False),
        sa.Column('current_word', sa.String(length=128), nullable=False),
        sa.Column('start_time', sa.Float(), nullable=False),
        sa.Column('ended_at', sa.Float(), nullable=True),
        sa.UniqueConstraint('lobby_id', 'round_number', name='uq_round_lobby_round_number'),
    )
    op.create_index('ix_round_lobby_id', 'round', ['lobby_id'])

    op.create_table(
        'submission',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('player_id', sa.String(length=64), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('word', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.Column('is_disputed', sa.Boolean(), nullable=False),
        sa.Column('dispute_result', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_submission_round_id', 'submission', ['round_id'])

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('submission_id', sa.Integer(), sa.ForeignKey('submission.id'), nullable=False),
        sa.Column('player_id', sa.String(length=64), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('vote', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('submission_id', 'player_id', name='uq_vote_submission_player'),
    )
    op.create_index('ix_vote_submission_id', 'vote', ['submission_id'])


def downgrade():
    op.drop_table('vote')
    op.drop_table('submission')
    op.drop_table('round')
    op.drop_table('player')
    op.drop_table('lobby')
