"""per-boost issued totals

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000

"""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    boost_totals = op.create_table(
        'boost_totals',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('boost_id', sa.BigInteger(), nullable=False),
        sa.Column('chain_id', sa.BigInteger(), nullable=False),
        sa.Column('amount_issued', sa.String(length=80), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('boost_id', 'chain_id', name='uq_boost_totals_key'),
    )

    # Amounts are uint256 decimal strings, summed here rather than in SQL
    rows = op.get_bind().execute(
        sa.text("SELECT boost_id, chain_id, amount_issued FROM claim_records")
    )
    totals = defaultdict(int)
    for boost_id, chain_id, amount_issued in rows:
        totals[(boost_id, chain_id)] += int(amount_issued or "0")

    if totals:
        now = datetime.now(timezone.utc)
        op.bulk_insert(boost_totals, [
            {
                "boost_id": boost_id,
                "chain_id": chain_id,
                "amount_issued": str(amount),
                "version": 1,
                "updated_at": now,
            }
            for (boost_id, chain_id), amount in totals.items()
        ])


def downgrade() -> None:
    op.drop_table('boost_totals')
