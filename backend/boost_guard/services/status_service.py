"""
Status Query Orchestrator

Resolve boost -> evaluate entitlement -> reconcile ledger -> sign -> respond.
The ledger is only advanced after a signature exists, so a failed or
cancelled signing step leaves it untouched and the request can be retried.

Ledger calls are synchronous and run on the event loop. Each is one short
transaction, and no coroutine can interleave between the reads and the
write of a `reserve` or `advance` in this process. Other processes are
fenced by the database: the record version and the per-boost total row.
"""
import time
from typing import Callable, List, Optional

from boost_guard.core.errors import BoostGuardError, LedgerConflict, NotFound
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.core.metrics import (signatures_issued_total,
                                      status_requests_total)
from boost_guard.models.boost import Boost, normalize_recipient
from boost_guard.models.status import Reward, Status
from boost_guard.services.boost_registry import BoostRegistry
from boost_guard.services.claim_ledger import ClaimLedger
from boost_guard.services.entitlement_service import EntitlementEvaluator
from boost_guard.services.signature_issuer import SignatureIssuer
from boost_guard.services.token_resolver import TokenResolver

logger = LoggingConfig.get_logger(__name__)


class StatusService:
    """Answers boost, boosts and status queries"""

    def __init__(
        self,
        registry: BoostRegistry,
        evaluator: EntitlementEvaluator,
        ledger: ClaimLedger,
        issuer: SignatureIssuer,
        token_resolver: Optional[TokenResolver] = None,
        conflict_retries: int = 1,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.evaluator = evaluator
        self.ledger = ledger
        self.issuer = issuer
        self.token_resolver = token_resolver
        self.conflict_retries = conflict_retries
        self.clock = clock

    async def _with_token(self, boost: Boost) -> Boost:
        if self.token_resolver is None:
            return boost
        try:
            token = await self.token_resolver.resolve(boost.token.address, boost.chain_id)
        except NotFound:
            return boost
        return boost.model_copy(update={"token": token})

    async def get_boost(self, boost_id: int, chain_id: int) -> Optional[Boost]:
        try:
            boost = await self.registry.get_boost(boost_id, chain_id)
        except NotFound:
            return None
        return await self._with_token(boost)

    async def list_boosts(self) -> List[Boost]:
        return [await self._with_token(boost) for boost in await self.registry.list_boosts()]

    async def reward(self, boost_id: int, recipient: str, chain_id: int,
                     as_of: Optional[int] = None) -> Optional[Reward]:
        """Entitlement and ledger position of a recipient, without signing"""
        recipient = normalize_recipient(recipient)
        try:
            boost = await self.registry.get_boost(boost_id, chain_id)
        except NotFound:
            return None

        as_of = int(self.clock()) if as_of is None else as_of
        total = await self.evaluator.entitlement(boost, recipient, as_of)
        reservation = self.ledger.reserve(boost.id, boost.chain_id, recipient, total, balance=boost.balance)
        return Reward(
            boost_id=boost.id,
            recipient=recipient,
            chain_id=boost.chain_id,
            entitled=total,
            issued=reservation.issued_so_far,
            claimable=reservation.issuable,
        )

    async def status(self, boost_id: int, recipient: str, chain_id: int,
                     as_of: Optional[int] = None) -> Optional[Status]:
        """
        Compute and authorize what `recipient` can claim now

        Returns:
            Status with a signature when something is issuable, Status with
            amount 0 and no signature otherwise, None for an unknown boost
        """
        try:
            recipient = normalize_recipient(recipient)
            try:
                boost = await self.registry.get_boost(boost_id, chain_id)
            except NotFound:
                status_requests_total.labels(outcome="not_found").inc()
                return None

            as_of = int(self.clock()) if as_of is None else as_of
            total = await self.evaluator.entitlement(boost, recipient, as_of)
            status = await self._issue(boost, recipient, total)
        except BoostGuardError as e:
            status_requests_total.labels(outcome=e.code).inc()
            logger.warning(
                "Status evaluation failed",
                extra={"boost_id": boost_id, "chain_id": chain_id, "error": e.to_dict()},
            )
            raise

        status_requests_total.labels(outcome="signed" if status.sig else "zero").inc()
        return status

    async def _issue(self, boost: Boost, recipient: str, total: int) -> Status:
        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            async with self.ledger.lock(boost.id, boost.chain_id, recipient):
                reservation = self.ledger.reserve(
                    boost.id, boost.chain_id, recipient, total, balance=boost.balance
                )
                if reservation.issuable == 0:
                    return Status(
                        boost_id=boost.id,
                        recipient=recipient,
                        amount=0,
                        chain_id=boost.chain_id,
                        guard=boost.guard,
                        sig=None,
                    )

                sig = await self.issuer.sign(
                    boost.id, boost.chain_id, recipient, reservation.issuable, boost.guard
                )
                try:
                    self.ledger.advance(reservation)
                except LedgerConflict:
                    if attempt == attempts:
                        raise
                    logger.warning(
                        "Ledger conflict, reconciling again",
                        extra={"boost_id": boost.id, "chain_id": boost.chain_id,
                               "recipient": recipient, "attempt": attempt},
                    )
                    continue

            signatures_issued_total.labels(chain_id=str(boost.chain_id)).inc()
            logger.info(
                "Claim authorized",
                extra={
                    "boost_id": boost.id,
                    "chain_id": boost.chain_id,
                    "recipient": recipient,
                    "amount": str(reservation.issuable),
                    "entitled": str(total),
                },
            )
            return Status(
                boost_id=boost.id,
                recipient=recipient,
                amount=reservation.issuable,
                chain_id=boost.chain_id,
                guard=boost.guard,
                sig=sig,
            )

        # Unreachable: the last attempt either returns or raises
        raise LedgerConflict("claim ledger conflict persisted")

    async def aclose(self):
        await self.registry.aclose()
        if self.token_resolver is not None:
            await self.token_resolver.aclose()
        hub = getattr(self.evaluator.sources, "hub", None)
        if hub is not None:
            await hub.aclose()
