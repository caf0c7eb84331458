"""word chain session snapshots and users

Revision ID: 5c2d7e9a1b40
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d7e9a1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_code', sa.String(length=16), nullable=True),
            sa.Column('state', sa.String(length=16), nullable=True),
            sa.Column('players', sa.Text(), nullable=True),
            sa.Column('current_turn', sa.String(length=64), nullable=True),
            sa.Column('letter', sa.String(length=1), nullable=True),
            sa.Column('word_log', sa.Text(), nullable=True),
            sa.Column('lost_players', sa.Text(), nullable=True),
            sa.Column('leaderboard', sa.Text(), nullable=True),
            sa.Column('timeout_job_id', sa.String(length=64), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=True),
        )
        op.create_index('ix_game_game_code', 'game', ['game_code'], unique=True)


def downgrade():
    op.drop_index('ix_game_game_code', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
