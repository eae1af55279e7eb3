"""
ClaimRecord model: amounts already authorized per (boost, chain, recipient)
"""
from datetime import datetime, timezone

from sqlalchemy import (BigInteger, Column, DateTime, Integer, String,
                        UniqueConstraint)

from boost_guard.core.database import Base


class ClaimRecord(Base):
    """
    Cumulative amount signed for a recipient of a boost.

    `amount_issued` only ever increases. `version` is bumped on every write
    and checked on update so concurrent writers from other processes are
    detected instead of overwriting each other.
    """
    __tablename__ = "claim_records"

    id = Column(Integer, primary_key=True, autoincrement=True)

    boost_id = Column(BigInteger, nullable=False, index=True)
    chain_id = Column(BigInteger, nullable=False, index=True)
    recipient = Column(String(128), nullable=False)

    # Decimal string: uint256 amounts do not fit in any SQL integer type
    amount_issued = Column(String(80), nullable=False, default="0")
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('boost_id', 'chain_id', 'recipient', name='uq_claim_records_key'),
    )

    def __repr__(self):
        return (
            f"<ClaimRecord(boost_id={self.boost_id}, chain_id={self.chain_id}, "
            f"recipient='{self.recipient}', amount_issued='{self.amount_issued}')>"
        )

    @property
    def issued(self) -> int:
        return int(self.amount_issued or "0")

    def to_dict(self):
        return {
            "boost_id": self.boost_id,
            "chain_id": self.chain_id,
            "recipient": self.recipient,
            "amount_issued": self.amount_issued,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class BoostTotal(Base):
    """
    Amount signed across all recipients of a boost.

    Written in the same transaction as the recipient's `ClaimRecord`, under
    a row lock where the database supports one and a `version` check where
    it does not, so replicas issuing to different recipients are serialized
    per boost and the total never passes the boost balance.
    """
    __tablename__ = "boost_totals"

    id = Column(Integer, primary_key=True, autoincrement=True)

    boost_id = Column(BigInteger, nullable=False)
    chain_id = Column(BigInteger, nullable=False)

    amount_issued = Column(String(80), nullable=False, default="0")
    version = Column(Integer, nullable=False, default=1)

    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('boost_id', 'chain_id', name='uq_boost_totals_key'),
    )

    def __repr__(self):
        return f"<BoostTotal(boost_id={self.boost_id}, chain_id={self.chain_id}, amount_issued='{self.amount_issued}')>"

    @property
    def issued(self) -> int:
        return int(self.amount_issued or "0")
