"""baseline: program events, account snapshots, sync cursors

Revision ID: 7c1e4a9d2b30
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '7c1e4a9d2b30'
down_revision = None
branch_labels = None
depends_on = None


def _snapshot_meta():
    return [
        sa.Column('slot', sa.BigInteger(), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    ]


def _jsonb(default: str):
    return postgresql.JSONB(astext_type=sa.Text()), sa.text(f"'{default}'::jsonb")


def upgrade() -> None:
    data_type, data_default = _jsonb('{}')
    op.create_table(
        'program_events',
        # "{signature}:{ordinal}"
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('signature', sa.Text(), nullable=False),
        sa.Column('slot', sa.BigInteger(), nullable=False),
        sa.Column('block_time', sa.BigInteger(), nullable=True),
        sa.Column('event_type', sa.Text(), nullable=False),

        # Promoted columns for filtering; the full event lives in `data`
        sa.Column('subject_id', sa.Text(), nullable=True),
        sa.Column('round', sa.Integer(), nullable=True),
        sa.Column('actor', sa.Text(), nullable=True),
        sa.Column('amount', sa.Numeric(20, 0), nullable=True),
        sa.Column('data', data_type, nullable=False, server_default=data_default),

        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_program_events_signature', 'program_events', ['signature'])
    op.create_index('ix_program_events_slot', 'program_events', ['slot'])
    op.create_index('ix_program_events_event_type', 'program_events', ['event_type'])
    op.create_index('ix_program_events_subject_round', 'program_events', ['subject_id', 'round'])
    op.create_index('ix_program_events_actor', 'program_events', ['actor'])
    op.create_index('ix_program_events_block_time', 'program_events', ['block_time'])

    op.create_table(
        'subjects',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('subject_id', sa.Text(), nullable=False),
        sa.Column('creator', sa.Text(), nullable=False),
        sa.Column('details_cid', sa.Text(), nullable=True),
        sa.Column('round', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('available_bond', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('defender_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('match_mode', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('voting_period', sa.BigInteger(), nullable=True),
        sa.Column('dispute', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.BigInteger(), nullable=True),
        sa.Column('last_dispute_total', sa.BigInteger(), nullable=True),
        sa.Column('last_voting_period', sa.BigInteger(), nullable=True),
        *_snapshot_meta(),
    )
    op.create_index('ix_subjects_subject_id', 'subjects', ['subject_id'])
    op.create_index('ix_subjects_status', 'subjects', ['status'])
    op.create_index('ix_subjects_creator', 'subjects', ['creator'])

    op.create_table(
        'disputes',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('subject_id', sa.Text(), nullable=False),
        sa.Column('round', sa.Integer(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('dispute_type', sa.Text(), nullable=True),
        sa.Column('total_stake', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('challenger_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('bond_at_risk', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('defender_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('votes_for_challenger', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('votes_for_defender', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('vote_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('voting_starts_at', sa.BigInteger(), nullable=True),
        sa.Column('voting_ends_at', sa.BigInteger(), nullable=True),
        sa.Column('outcome', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.BigInteger(), nullable=True),
        sa.Column('is_restore', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('restore_stake', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('restorer', sa.Text(), nullable=True),
        sa.Column('details_cid', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=True),
        sa.Column('safe_bond', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('winner_pool', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('juror_pool', sa.BigInteger(), nullable=False, server_default='0'),
        *_snapshot_meta(),
    )
    op.create_index('ix_disputes_subject_round', 'disputes', ['subject_id', 'round'])
    op.create_index('ix_disputes_status', 'disputes', ['status'])
    op.create_index('ix_disputes_outcome', 'disputes', ['outcome'])

    op.create_table(
        'juror_records',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('subject_id', sa.Text(), nullable=False),
        sa.Column('juror', sa.Text(), nullable=False),
        sa.Column('round', sa.Integer(), nullable=False),
        sa.Column('choice', sa.Text(), nullable=True),
        sa.Column('restore_choice', sa.Text(), nullable=True),
        sa.Column('is_restore_vote', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('voting_power', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('stake_allocation', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('reward_claimed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stake_unlocked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('voted_at', sa.BigInteger(), nullable=True),
        sa.Column('rationale_cid', sa.Text(), nullable=True),
        *_snapshot_meta(),
    )
    op.create_index('ix_juror_records_subject_round', 'juror_records', ['subject_id', 'round'])
    op.create_index('ix_juror_records_juror', 'juror_records', ['juror'])

    op.create_table(
        'challenger_records',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('subject_id', sa.Text(), nullable=False),
        sa.Column('challenger', sa.Text(), nullable=False),
        sa.Column('round', sa.Integer(), nullable=False),
        sa.Column('stake', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('details_cid', sa.Text(), nullable=True),
        sa.Column('reward_claimed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('challenged_at', sa.BigInteger(), nullable=True),
        *_snapshot_meta(),
    )
    op.create_index('ix_challenger_records_subject', 'challenger_records', ['subject_id'])
    op.create_index('ix_challenger_records_challenger', 'challenger_records', ['challenger'])

    op.create_table(
        'defender_records',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('subject_id', sa.Text(), nullable=False),
        sa.Column('defender', sa.Text(), nullable=False),
        sa.Column('round', sa.Integer(), nullable=False),
        sa.Column('bond', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('source', sa.Text(), nullable=True),
        sa.Column('reward_claimed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('bonded_at', sa.BigInteger(), nullable=True),
        *_snapshot_meta(),
    )
    op.create_index('ix_defender_records_subject', 'defender_records', ['subject_id'])
    op.create_index('ix_defender_records_defender', 'defender_records', ['defender'])

    for table in ('juror_pools', 'challenger_pools'):
        op.create_table(
            table,
            sa.Column('id', sa.Text(), primary_key=True),
            sa.Column('owner', sa.Text(), nullable=False),
            sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
            sa.Column('reputation', sa.BigInteger(), nullable=False, server_default='50000000'),
            sa.Column('created_at', sa.BigInteger(), nullable=True),
            *_snapshot_meta(),
        )
        op.create_index(f'ix_{table}_owner', table, ['owner'])

    op.create_table(
        'defender_pools',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('owner', sa.Text(), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('max_bond', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.BigInteger(), nullable=True),
        *_snapshot_meta(),
    )
    op.create_index('ix_defender_pools_owner', 'defender_pools', ['owner'])

    rounds_type, rounds_default = _jsonb('[]')
    op.create_table(
        'escrows',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('subject_id', sa.Text(), nullable=False),
        sa.Column('total_collected', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('round_results', rounds_type, nullable=False, server_default=rounds_default),
        *_snapshot_meta(),
    )
    op.create_index('ix_escrows_subject_id', 'escrows', ['subject_id'])

    op.create_table(
        'sync_cursors',
        sa.Column('name', sa.Text(), primary_key=True),
        sa.Column('last_signature', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )


def downgrade() -> None:
    op.drop_table('sync_cursors')
    for table in (
        'escrows',
        'defender_pools',
        'challenger_pools',
        'juror_pools',
        'defender_records',
        'challenger_records',
        'juror_records',
        'disputes',
        'subjects',
        'program_events',
    ):
        op.drop_table(table)
