"""
Tests for the status query orchestrator
"""
import asyncio
from decimal import Decimal
from unittest.mock import patch

import pytest
from pydantic import BaseModel

from boost_guard.core.errors import (InvalidRecipient, LedgerConflict,
                                     SigningUnavailable, StrategyError,
                                     UnknownStrategy)
from boost_guard.services.entitlement_service import EntitlementEvaluator
from boost_guard.services.key_custody import KeyCustody
from boost_guard.services.signature_issuer import (SignatureIssuer,
                                                   recover_signer)
from boost_guard.services.status_service import StatusService
from boost_guard.services.strategy_registry import StrategyRegistry
from conftest import CHAIN_ID, NOW, OTHER_RECIPIENT, RECIPIENT


class NoParams(BaseModel):
    pass


@pytest.mark.asyncio
async def test_whitelist_claim_then_already_claimed(status_service, boost_registry, make_boost, guard_account):
    """First status signs the whitelisted amount, the second is a benign zero"""
    boost_registry.add(make_boost())

    first = await status_service.status(1, RECIPIENT, CHAIN_ID)
    assert first.amount == 300
    assert first.sig is not None
    assert first.guard == guard_account.address.lower()
    assert first.model_dump(by_alias=True)["amount"] == "300"

    typed = status_service.issuer.typed_data(1, CHAIN_ID, RECIPIENT, 300, first.guard)
    assert recover_signer(typed, first.sig) == guard_account.address.lower()

    second = await status_service.status(1, RECIPIENT, CHAIN_ID)
    assert second.amount == 0
    assert second.sig is None
    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 300


@pytest.mark.asyncio
async def test_unknown_boost_returns_none(status_service):
    assert await status_service.status(42, RECIPIENT, CHAIN_ID) is None
    assert await status_service.get_boost(42, CHAIN_ID) is None


@pytest.mark.asyncio
async def test_recipient_is_case_insensitive(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost())

    first = await status_service.status(1, RECIPIENT.upper().replace("0X", "0x"), CHAIN_ID)
    assert first.recipient == RECIPIENT
    assert first.amount == 300

    second = await status_service.status(1, RECIPIENT, CHAIN_ID)
    assert second.amount == 0


@pytest.mark.asyncio
async def test_short_hex_recipient_is_signed(status_service, boost_registry, make_boost, guard_account):
    """Whitelist {"0xabc": "300"}: 300 with a signature, then 0 without one"""
    boost_registry.add(make_boost(strategy={
        "strategy": "whitelist",
        "params": {"recipients": {"0xabc": "300"}},
    }))

    first = await status_service.status(1, "0xabc", CHAIN_ID)
    assert first.recipient == "0xabc"
    assert first.amount == 300
    assert first.sig is not None
    typed = status_service.issuer.typed_data(1, CHAIN_ID, "0xabc", 300, first.guard)
    assert recover_signer(typed, first.sig) == guard_account.address.lower()

    second = await status_service.status(1, "0xABC", CHAIN_ID)
    assert second.amount == 0
    assert second.sig is None
    assert status_service.ledger.issued(1, CHAIN_ID, "0xabc") == 300


@pytest.mark.asyncio
async def test_non_hex_recipient_keeps_its_case(status_service, boost_registry, make_boost):
    solana = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
    boost_registry.add(make_boost(strategy={
        "strategy": "whitelist",
        "params": {"recipients": {solana: "120"}},
    }))

    status = await status_service.status(1, f"  {solana} ", CHAIN_ID)
    assert status.recipient == solana
    assert status.amount == 120
    assert status.sig is not None

    other = await status_service.status(1, solana.lower(), CHAIN_ID)
    assert other.amount == 0
    assert status_service.ledger.issued(1, CHAIN_ID, solana) == 120


@pytest.mark.asyncio
async def test_blank_recipient_rejected(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost())
    with pytest.raises(InvalidRecipient):
        await status_service.status(1, "   ", CHAIN_ID)


@pytest.mark.asyncio
async def test_strategy_fault_fails_closed(boost_registry, ledger, issuer, make_boost):
    def nan_reward(boost, recipient, params, as_of, facts):
        return int(Decimal("NaN"))

    registry = StrategyRegistry()
    registry.register("nan", nan_reward, NoParams)
    service = StatusService(
        registry=boost_registry,
        evaluator=EntitlementEvaluator(registry.freeze()),
        ledger=ledger,
        issuer=issuer,
        clock=lambda: NOW,
    )
    boost_registry.add(make_boost(strategy={"strategy": "nan"}))

    with pytest.raises(StrategyError) as exc_info:
        await service.status(1, RECIPIENT, CHAIN_ID)

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert ledger.issued(1, CHAIN_ID, RECIPIENT) == 0


@pytest.mark.asyncio
async def test_no_strategy_gives_zero_without_signature(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost(strategy=None))
    status = await status_service.status(1, RECIPIENT, CHAIN_ID)
    assert status.amount == 0
    assert status.sig is None
    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 0


@pytest.mark.asyncio
async def test_unknown_strategy_surfaces(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost(strategy={"strategy": "lottery", "params": {}}))
    with pytest.raises(UnknownStrategy):
        await status_service.status(1, RECIPIENT, CHAIN_ID)


@pytest.mark.asyncio
async def test_entitlement_increase_issues_only_the_delta(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost())
    await status_service.status(1, RECIPIENT, CHAIN_ID)

    boost_registry.add(make_boost(strategy={
        "strategy": "whitelist",
        "params": {"recipients": {RECIPIENT: "500"}},
    }))
    status = await status_service.status(1, RECIPIENT, CHAIN_ID)
    assert status.amount == 200
    assert status.sig is not None
    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 500


@pytest.mark.asyncio
async def test_concurrent_status_calls_cap_at_entitlement(status_service, boost_registry, make_boost):
    """Ten concurrent calls that each see the full entitlement issue it exactly once"""
    boost_registry.add(make_boost(strategy={
        "strategy": "whitelist",
        "params": {"recipients": {RECIPIENT: "100"}},
    }))

    results = await asyncio.gather(*[
        status_service.status(1, RECIPIENT, CHAIN_ID) for _ in range(10)
    ])

    assert sum(r.amount for r in results) == 100
    assert len([r for r in results if r.sig is not None]) == 1
    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 100


@pytest.mark.asyncio
async def test_balance_is_conserved_across_recipients(status_service, boost_registry, make_boost):
    """Fixed entitlements that oversubscribe the pool stop at its balance"""
    boost_registry.add(make_boost(balance="1000", strategy={"strategy": "fixed", "params": {"amount": "400"}}))
    recipients = ["0x" + f"{i:02x}" * 20 for i in range(1, 5)]

    results = await asyncio.gather(*[
        status_service.status(1, recipient, CHAIN_ID) for recipient in recipients
    ])

    assert sum(r.amount for r in results) == 1000
    assert status_service.ledger.total_issued(1, CHAIN_ID) == 1000
    assert sorted(r.amount for r in results) == [0, 200, 400, 400]


@pytest.mark.asyncio
async def test_signing_failure_leaves_ledger_untouched(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost(guard="0x" + "99" * 20))

    with pytest.raises(SigningUnavailable):
        await status_service.status(1, RECIPIENT, CHAIN_ID)

    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 0
    assert status_service.ledger.records(1, CHAIN_ID) == []


@pytest.mark.asyncio
async def test_ledger_conflict_is_retried_once(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost())
    real_advance = status_service.ledger.advance
    calls = []

    def flaky_advance(reservation):
        calls.append(reservation)
        if len(calls) == 1:
            raise LedgerConflict("simulated concurrent write")
        return real_advance(reservation)

    with patch.object(status_service.ledger, "advance", side_effect=flaky_advance):
        status = await status_service.status(1, RECIPIENT, CHAIN_ID)

    assert len(calls) == 2
    assert status.amount == 300
    assert status.sig is not None
    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 300


@pytest.mark.asyncio
async def test_persistent_ledger_conflict_surfaces(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost())

    with patch.object(status_service.ledger, "advance", side_effect=LedgerConflict("always")):
        with pytest.raises(LedgerConflict):
            await status_service.status(1, RECIPIENT, CHAIN_ID)

    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 0


@pytest.mark.asyncio
async def test_expired_boost_gives_zero(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost(start=0, end=NOW - 1))
    status = await status_service.status(1, RECIPIENT, CHAIN_ID)
    assert status.amount == 0
    assert status.sig is None


@pytest.mark.asyncio
async def test_reward_reports_without_signing(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost())

    reward = await status_service.reward(1, RECIPIENT, CHAIN_ID)
    assert (reward.entitled, reward.issued, reward.claimable) == (300, 0, 300)
    assert status_service.ledger.issued(1, CHAIN_ID, RECIPIENT) == 0

    await status_service.status(1, RECIPIENT, CHAIN_ID)
    reward = await status_service.reward(1, RECIPIENT, CHAIN_ID)
    assert (reward.entitled, reward.issued, reward.claimable) == (300, 300, 0)

    assert await status_service.reward(1, OTHER_RECIPIENT, CHAIN_ID) is not None
    assert await status_service.reward(99, RECIPIENT, CHAIN_ID) is None


@pytest.mark.asyncio
async def test_list_boosts(status_service, boost_registry, make_boost):
    boost_registry.add(make_boost(id=2))
    boost_registry.add(make_boost(id=1))
    boosts = await status_service.list_boosts()
    assert [b.id for b in boosts] == [1, 2]


class SlowKeyCustody(KeyCustody):
    """Yields to the event loop before handing out the signer"""

    def __init__(self, inner):
        self.inner = inner

    async def get_signer(self, guard):
        await asyncio.sleep(0.01)
        return await self.inner.get_signer(guard)

    def guards(self):
        return self.inner.guards()


@pytest.mark.asyncio
async def test_interleaved_signing_does_not_over_issue(boost_registry, evaluator, ledger, key_custody, make_boost):
    """Requests suspended mid-issuance still observe the ledger written by the first"""
    service = StatusService(
        registry=boost_registry,
        evaluator=evaluator,
        ledger=ledger,
        issuer=SignatureIssuer(SlowKeyCustody(key_custody)),
        clock=lambda: NOW,
    )
    boost_registry.add(make_boost(strategy={
        "strategy": "whitelist",
        "params": {"recipients": {RECIPIENT: "100", OTHER_RECIPIENT: "50"}},
    }))

    results = await asyncio.gather(*(
        [service.status(1, RECIPIENT, CHAIN_ID) for _ in range(10)]
        + [service.status(1, OTHER_RECIPIENT, CHAIN_ID) for _ in range(10)]
    ))

    assert sum(r.amount for r in results if r.recipient == RECIPIENT) == 100
    assert sum(r.amount for r in results if r.recipient == OTHER_RECIPIENT) == 50
    assert ledger.total_issued(1, CHAIN_ID) == 150
