"""claim records ledger

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'claim_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('boost_id', sa.BigInteger(), nullable=False),
        sa.Column('chain_id', sa.BigInteger(), nullable=False),
        sa.Column('recipient', sa.String(length=128), nullable=False),
        sa.Column('amount_issued', sa.String(length=80), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('boost_id', 'chain_id', 'recipient', name='uq_claim_records_key'),
    )
    op.create_index('ix_claim_records_boost_id', 'claim_records', ['boost_id'])
    op.create_index('ix_claim_records_chain_id', 'claim_records', ['chain_id'])


def downgrade() -> None:
    op.drop_index('ix_claim_records_chain_id', table_name='claim_records')
    op.drop_index('ix_claim_records_boost_id', table_name='claim_records')
    op.drop_table('claim_records')
