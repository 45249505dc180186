"""create match arena schema

Revision ID: a41c9e2d7b10
Revises:
Create Date: 2026-10-19 12:40:11.208114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a41c9e2d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

match_type = sa.Enum('public', 'private', name='match_type')
match_status = sa.Enum(
    'waiting', 'team_a_ready', 'team_b_ready', 'confirmed', 'in_progress', 'completed', 'cancelled',
    name='match_status'
)
team_slot = sa.Enum('team_a', 'team_b', name='team_slot')
payment_status = sa.Enum('pending', 'completed', name='payment_status')
verification_status = sa.Enum(
    'pending', 'verified_win', 'verified_loss', 'disputed', 'admin_reviewed',
    name='verification_status'
)
dispute_status = sa.Enum('pending', 'under_review', 'resolved', 'rejected', name='dispute_status')
resolution_method = sa.Enum('automatic', 'admin_decision', name='resolution_method')
ledger_entry_type = sa.Enum('entry_fee', 'refund', 'prize', name='ledger_entry_type')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('wallet', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('wallet >= 0', name='ck_users_wallet_non_negative'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'prize_margins',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('margin', sa.Numeric(5, 2), nullable=False),
        sa.Column('set_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'matches',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('match_type', match_type, nullable=False),
        sa.Column('status', match_status, nullable=False),
        sa.Column('game_name', sa.String(), nullable=False),
        sa.Column('entry_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('prize_pool', sa.Numeric(12, 2), nullable=False),
        sa.Column('team_size', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.String(), nullable=True),
        sa.Column('room_credential', sa.String(), nullable=True),
        sa.Column('winning_team_id', sa.String(), nullable=True),
        sa.Column('created_by', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('entry_fee > 0', name='ck_matches_entry_fee_positive'),
        sa.CheckConstraint('prize_pool >= 0', name='ck_matches_prize_pool_non_negative'),
    )
    op.create_index('ix_matches_status', 'matches', ['status'])

    op.create_table(
        'teams',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('match_id', sa.String(), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('slot', team_slot, nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('is_ready', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('match_id', 'slot', name='uq_teams_match_slot'),
    )
    op.create_index('ix_teams_match_id', 'teams', ['match_id'])

    op.create_table(
        'team_members',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('team_id', sa.String(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('match_id', sa.String(), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_captain', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_status', payment_status, nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_members_team_user'),
        sa.UniqueConstraint('match_id', 'user_id', name='uq_team_members_match_user'),
    )
    op.create_index('ix_team_members_team_id', 'team_members', ['team_id'])
    op.create_index('ix_team_members_match_id', 'team_members', ['match_id'])
    op.create_index('ix_team_members_user_id', 'team_members', ['user_id'])

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('match_id', sa.String(), sa.ForeignKey('matches.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('entry_type', ledger_entry_type, nullable=False),
        sa.Column('idempotency_key', sa.String(), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_ledger_entries_user_id', 'ledger_entries', ['user_id'])
    op.create_index('ix_ledger_entries_match_id', 'ledger_entries', ['match_id'])

    op.create_table(
        'evidence',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('match_id', sa.String(), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', sa.String(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('submitted_by', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('evidence_ref', sa.String(), nullable=False),
        sa.Column('verification_status', verification_status, nullable=False),
        sa.Column('raw_text', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('match_id', 'team_id', name='uq_evidence_match_team'),
    )
    op.create_index('ix_evidence_match_id', 'evidence', ['match_id'])

    op.create_table(
        'disputes',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('match_id', sa.String(), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reported_by', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reported_team_id', sa.String(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('evidence_ref', sa.String(), nullable=True),
        sa.Column('status', dispute_status, nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('resolved_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_disputes_match_id', 'disputes', ['match_id'])
    op.create_index('ix_disputes_status', 'disputes', ['status'])

    op.create_table(
        'match_results',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('match_id', sa.String(), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('winning_team_id', sa.String(), sa.ForeignKey('teams.id', ondelete='SET NULL'), nullable=True),
        sa.Column('prize_awarded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('prize_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('resolution_method', resolution_method, nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    # 테이블 삭제 (역순)
    op.drop_table('match_results')
    op.drop_index('ix_disputes_status')
    op.drop_index('ix_disputes_match_id')
    op.drop_table('disputes')
    op.drop_index('ix_evidence_match_id')
    op.drop_table('evidence')
    op.drop_index('ix_ledger_entries_match_id')
    op.drop_index('ix_ledger_entries_user_id')
    op.drop_table('ledger_entries')
    op.drop_index('ix_team_members_user_id')
    op.drop_index('ix_team_members_match_id')
    op.drop_index('ix_team_members_team_id')
    op.drop_table('team_members')
    op.drop_index('ix_teams_match_id')
    op.drop_table('teams')
    op.drop_index('ix_matches_status')
    op.drop_table('matches')
    op.drop_table('prize_margins')
    op.drop_index('ix_users_username')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (
        ledger_entry_type, resolution_method, dispute_status, verification_status,
        payment_status, team_slot, match_status, match_type
    ):
        enum_type.drop(bind, checkfirst=True)
