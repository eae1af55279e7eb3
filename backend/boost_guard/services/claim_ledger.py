"""
Claim Ledger: amounts already authorized per (boost, chain, recipient)
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncContextManager, List, Optional, Tuple

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from boost_guard.core.errors import LedgerConflict
from boost_guard.core.keyed_lock import KeyedLock
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.core.metrics import ledger_conflicts_total
from boost_guard.models.boost import normalize_recipient
from boost_guard.models.claim_record import BoostTotal, ClaimRecord

logger = LoggingConfig.get_logger(__name__)

LedgerKey = Tuple[int, int, str]


@dataclass(frozen=True)
class Reservation:
    """Result of reconciling an entitlement against the ledger"""
    boost_id: int
    chain_id: int
    recipient: str
    total_entitled: int
    issued_so_far: int
    issuable: int
    # Version of the record that was read; None when no record existed
    version: Optional[int] = None
    balance: Optional[int] = None

    @property
    def target(self) -> int:
        """Cumulative issued amount once this reservation is recorded"""
        return self.issued_so_far + self.issuable


class ClaimLedger:
    """
    Ledger of issued claim amounts.

    `reserve` only reads; `advance` records a reservation once its signature
    exists. Both must run under `lock(...)` for the same key so that one
    issuance per key is in flight at a time. The record version is checked
    on write, which also catches writers in other processes. The per-boost
    total is locked and version-checked in the same transaction, so
    writers for different recipients of one boost are serialized in the
    database and cannot jointly pass the balance.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._locks = KeyedLock()

    @staticmethod
    def key(boost_id: int, chain_id: int, recipient: str) -> LedgerKey:
        return boost_id, chain_id, normalize_recipient(recipient)

    def lock(self, boost_id: int, chain_id: int, recipient: str) -> AsyncContextManager[None]:
        """Serialize issuance for one (boost, chain, recipient)"""
        return self._locks.acquire(self.key(boost_id, chain_id, recipient))

    def _get_record(self, session: Session, boost_id: int, chain_id: int, recipient: str) -> Optional[ClaimRecord]:
        return session.query(ClaimRecord).filter(
            and_(
                ClaimRecord.boost_id == boost_id,
                ClaimRecord.chain_id == chain_id,
                ClaimRecord.recipient == normalize_recipient(recipient),
            )
        ).first()

    def _get_totals(self, session: Session, boost_id: int, chain_id: int,
                    for_update: bool = False) -> Optional[BoostTotal]:
        query = session.query(BoostTotal).filter(
            and_(
                BoostTotal.boost_id == boost_id,
                BoostTotal.chain_id == chain_id,
            )
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _total_issued(self, session: Session, boost_id: int, chain_id: int) -> int:
        totals = self._get_totals(session, boost_id, chain_id)
        return totals.issued if totals else 0

    def issued(self, boost_id: int, chain_id: int, recipient: str) -> int:
        """Amount issued so far to `recipient`"""
        with self._session_factory() as session:
            record = self._get_record(session, boost_id, chain_id, recipient)
            return record.issued if record else 0

    def total_issued(self, boost_id: int, chain_id: int) -> int:
        """Amount issued so far across all recipients of a boost"""
        with self._session_factory() as session:
            return self._total_issued(session, boost_id, chain_id)

    def records(self, boost_id: int, chain_id: int) -> List[ClaimRecord]:
        with self._session_factory() as session:
            return session.query(ClaimRecord).filter(
                and_(
                    ClaimRecord.boost_id == boost_id,
                    ClaimRecord.chain_id == chain_id,
                )
            ).order_by(ClaimRecord.id).all()

    def reserve(
        self,
        boost_id: int,
        chain_id: int,
        recipient: str,
        total_entitled: int,
        balance: Optional[int] = None,
    ) -> Reservation:
        """
        Reconcile a total entitlement against what was already issued

        Issuable is `max(0, total_entitled - issued_so_far)`, further capped by
        what is left of `balance` across all recipients when given.
        """
        if total_entitled < 0:
            raise ValueError("total_entitled must be non-negative")

        with self._session_factory() as session:
            record = self._get_record(session, boost_id, chain_id, recipient)
            issued = record.issued if record else 0
            issuable = max(0, total_entitled - issued)

            if balance is not None and issuable > 0:
                remaining = max(0, balance - self._total_issued(session, boost_id, chain_id))
                if remaining < issuable:
                    logger.warning(
                        "Boost balance exhausted, issuable amount capped",
                        extra={
                            "boost_id": boost_id,
                            "chain_id": chain_id,
                            "recipient": recipient,
                            "issuable": str(issuable),
                            "remaining": str(remaining),
                        }
                    )
                    issuable = remaining

            return Reservation(
                boost_id=boost_id,
                chain_id=chain_id,
                recipient=normalize_recipient(recipient),
                total_entitled=total_entitled,
                issued_so_far=issued,
                issuable=issuable,
                version=record.version if record else None,
                balance=balance,
            )

    def advance(self, reservation: Reservation) -> None:
        """
        Record a signed reservation: issued amount becomes `reservation.target`

        Raises:
            LedgerConflict: the record changed since `reserve`, or recording it
                would push the boost total above its balance
        """
        if reservation.issuable == 0:
            return

        extra = {
            "boost_id": reservation.boost_id,
            "chain_id": reservation.chain_id,
            "recipient": reservation.recipient,
        }

        with self._session_factory() as session:
            try:
                # Boost total first: every writer of this boost takes the same row lock
                totals = self._get_totals(
                    session, reservation.boost_id, reservation.chain_id, for_update=True
                )
                total_after = (totals.issued if totals else 0) + reservation.issuable

                record = self._get_record(
                    session, reservation.boost_id, reservation.chain_id, reservation.recipient
                )
                current_version = record.version if record else None
                if current_version != reservation.version:
                    raise LedgerConflict(
                        "claim record changed since it was reconciled",
                        details={**extra, "expected_version": reservation.version,
                                 "found_version": current_version},
                    )

                if reservation.balance is not None and total_after > reservation.balance:
                    raise LedgerConflict(
                        "recording this issuance would exceed the boost balance",
                        details=extra,
                    )

                if record is None:
                    session.add(ClaimRecord(
                        boost_id=reservation.boost_id,
                        chain_id=reservation.chain_id,
                        recipient=reservation.recipient,
                        amount_issued=str(reservation.target),
                        version=1,
                    ))
                else:
                    result = session.execute(
                        update(ClaimRecord)
                        .where(and_(
                            ClaimRecord.id == record.id,
                            ClaimRecord.version == reservation.version,
                        ))
                        .values(
                            amount_issued=str(reservation.target),
                            version=ClaimRecord.version + 1,
                            updated_at=datetime.now(timezone.utc),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise LedgerConflict("claim record changed while recording", details=extra)

                if totals is None:
                    session.add(BoostTotal(
                        boost_id=reservation.boost_id,
                        chain_id=reservation.chain_id,
                        amount_issued=str(total_after),
                        version=1,
                    ))
                else:
                    result = session.execute(
                        update(BoostTotal)
                        .where(and_(
                            BoostTotal.id == totals.id,
                            BoostTotal.version == totals.version,
                        ))
                        .values(
                            amount_issued=str(total_after),
                            version=BoostTotal.version + 1,
                            updated_at=datetime.now(timezone.utc),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise LedgerConflict("boost total changed while recording", details=extra)

                session.commit()
            except IntegrityError as e:
                session.rollback()
                ledger_conflicts_total.inc()
                logger.warning("Concurrent claim record or boost total insert", extra=extra)
                raise LedgerConflict("claim record was created concurrently", details=extra) from e
            except LedgerConflict:
                session.rollback()
                ledger_conflicts_total.inc()
                logger.warning("Claim ledger conflict", extra=extra)
                raise

        logger.info(
            "Claim ledger advanced",
            extra={**extra, "issued": str(reservation.target), "delta": str(reservation.issuable)},
        )
