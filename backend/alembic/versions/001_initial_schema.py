"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2024-05-01 00:00:00.000000

Initial schema: users, matches, ship_cells, board_cells, game_results.
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

side = postgresql.ENUM('SELF', 'RIVAL', name='side', create_type=False)
board_marker = postgresql.ENUM('HIT', 'MISS', 'SHIP', 'EMPTY', name='board_marker', create_type=False)


def _cell_range_checks(prefix: str):
    return [
        sa.CheckConstraint('x >= 0 AND x < 10', name=f'ck_{prefix}_x_range'),
        sa.CheckConstraint('y >= 0 AND y < 10', name=f'ck_{prefix}_y_range'),
    ]


def upgrade() -> None:
    """Create all tables."""
    bind = op.get_bind()
    side.create(bind, checkfirst=True)
    board_marker.create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
    )
    op.create_index('idx_users_username', 'users', ['username'])

    op.create_table(
        'matches',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('date', sa.String(), nullable=False),
        sa.Column('fire_direction', sa.String(), nullable=False),
        sa.Column('total_hits', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_matches_user_created', 'matches', ['user_id', 'created_at'])

    op.create_table(
        'ship_cells',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('side', side, nullable=False),
        sa.Column('ship_id', sa.Integer(), nullable=False),
        sa.Column('x', sa.Integer(), nullable=False),
        sa.Column('y', sa.Integer(), nullable=False),
        sa.Column('hit', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'side', 'x', 'y', name='uq_ship_cells_position'),
        *_cell_range_checks('ship_cells'),
    )
    op.create_index('idx_ship_cells_match_side', 'ship_cells', ['match_id', 'side'])

    op.create_table(
        'board_cells',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('side', side, nullable=False),
        sa.Column('x', sa.Integer(), nullable=False),
        sa.Column('y', sa.Integer(), nullable=False),
        sa.Column('marker', board_marker, nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'side', 'x', 'y', name='uq_board_cells_position'),
        *_cell_range_checks('board_cells'),
    )
    op.create_index('idx_board_cells_match_side', 'board_cells', ['match_id', 'side'])

    op.create_table(
        'game_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('total_hits', sa.Integer(), nullable=False),
        sa.Column('time_consumed', sa.Integer(), nullable=False),
        sa.Column('result', sa.String(), nullable=False),
        sa.Column('date', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_game_results_user', 'game_results', ['user_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('idx_game_results_user', table_name='game_results')
    op.drop_table('game_results')
    op.drop_index('idx_board_cells_match_side', table_name='board_cells')
    op.drop_table('board_cells')
    op.drop_index('idx_ship_cells_match_side', table_name='ship_cells')
    op.drop_table('ship_cells')
    op.drop_index('idx_matches_user_created', table_name='matches')
    op.drop_table('matches')
    op.drop_index('idx_users_username', table_name='users')
    op.drop_table('users')
    board_marker.drop(op.get_bind(), checkfirst=True)
    side.drop(op.get_bind(), checkfirst=True)
