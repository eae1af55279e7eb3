"""
Tests for the GraphQL client, Snapshot hub client and subgraph collaborators
"""
import json

import httpx
import pytest

from boost_guard.core.errors import NotFound, UpstreamError
from boost_guard.services.boost_registry import (PAGE_SIZE,
                                                 SubgraphBoostRegistry,
                                                 boost_from_subgraph)
from boost_guard.services.graphql_client import GraphQLClient
from boost_guard.services.hub_client import SnapshotHubClient
from boost_guard.services.token_resolver import (CachingTokenResolver,
                                                 StaticTokenResolver,
                                                 SubgraphTokenResolver)
from boost_guard.models.boost import Token
from conftest import CHAIN_ID, OWNER, RECIPIENT, TOKEN_ADDRESS

URL = "https://graph.test/subgraph"


def graphql_client(handler):
    """Client whose transport answers with `handler(payload) -> (status, body)`"""
    requests = []

    def transport(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        requests.append(payload)
        status, body = handler(payload)
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, content=body)

    client = GraphQLClient(URL, client=httpx.AsyncClient(transport=httpx.MockTransport(transport)))
    client.requests = requests
    return client


def raw_boost(boost_id="1", **overrides):
    raw = {
        "id": boost_id,
        "strategyURI": "ipfs://boost",
        "poolSize": "1000",
        "guard": "0x" + "99" * 20,
        "start": "0",
        "end": "9999999999",
        "owner": OWNER,
        "token": {"id": TOKEN_ADDRESS, "name": "Test", "symbol": "TST", "decimals": "18"},
        "strategy": {"name": "whitelist", "params": json.dumps({"recipients": {RECIPIENT: "300"}})},
    }
    raw.update(overrides)
    return raw


# GraphQLClient

@pytest.mark.asyncio
async def test_query_returns_data():
    client = graphql_client(lambda payload: (200, {"data": {"ok": True}}))
    assert await client.query("{ ok }", {"a": 1}) == {"ok": True}
    assert client.requests == [{"query": "{ ok }", "variables": {"a": 1}}]


@pytest.mark.asyncio
@pytest.mark.parametrize("status,body", [
    (500, {"error": "boom"}),
    (200, b"not json"),
    (200, {"errors": [{"message": "bad field"}]}),
    (200, {"data": None}),
    (200, ["unexpected"]),
])
async def test_query_failures_are_upstream_errors(status, body):
    client = graphql_client(lambda payload: (status, body))
    with pytest.raises(UpstreamError) as exc_info:
        await client.query("{ ok }")
    assert exc_info.value.retryable is True
    assert exc_info.value.details["url"] == URL


@pytest.mark.asyncio
async def test_transport_error_is_upstream_error():
    def transport(request):
        raise httpx.ConnectError("refused", request=request)

    client = GraphQLClient(URL, client=httpx.AsyncClient(transport=httpx.MockTransport(transport)))
    with pytest.raises(UpstreamError):
        await client.query("{ ok }")


# Snapshot hub

@pytest.mark.asyncio
async def test_hub_proposal_and_vote():
    def handler(payload):
        if "proposal(id" in payload["query"]:
            return 200, {"data": {"proposal": {
                "id": "0xprop", "type": "single-choice", "scores_total": 12.5,
                "votes": 3, "end": 1700000000, "state": "closed",
            }}}
        return 200, {"data": {"votes": [{"voter": payload["variables"]["voter"], "vp": 2.5, "choice": 1}]}}

    hub = SnapshotHubClient(graphql_client(handler))
    proposal = await hub.get_proposal("0xprop")
    assert proposal.scores_total == 12.5
    assert proposal.votes == 3
    assert proposal.end == 1700000000

    vote = await hub.get_vote("0xVoter", "0xprop")
    assert vote.vp == 2.5
    assert vote.choice == 1


@pytest.mark.asyncio
async def test_hub_missing_proposal_and_vote():
    def handler(payload):
        if "proposal(id" in payload["query"]:
            return 200, {"data": {"proposal": None}}
        return 200, {"data": {"votes": []}}

    hub = SnapshotHubClient(graphql_client(handler))
    assert await hub.get_proposal("0xprop") is None
    assert await hub.get_vote("0xVoter", "0xprop") is None


@pytest.mark.asyncio
async def test_hub_vote_without_voting_power():
    hub = SnapshotHubClient(graphql_client(
        lambda payload: (200, {"data": {"votes": [{"voter": "0xVoter", "vp": None, "choice": 1}]}})
    ))
    with pytest.raises(UpstreamError):
        await hub.get_vote("0xVoter", "0xprop")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    b'{"data": {"votes": [{"voter": "0xVoter", "vp": NaN, "choice": 1}]}}',
    b'{"data": {"votes": [{"voter": "0xVoter", "vp": Infinity, "choice": 1}]}}',
])
async def test_hub_vote_with_non_finite_voting_power(body):
    hub = SnapshotHubClient(graphql_client(lambda payload: (200, body)))
    with pytest.raises(UpstreamError):
        await hub.get_vote("0xVoter", "0xprop")


@pytest.mark.asyncio
async def test_hub_proposal_with_non_finite_score():
    body = (b'{"data": {"proposal": {"id": "0xprop", "type": "single-choice", '
            b'"scores_total": NaN, "votes": 3, "end": 1700000000}}}')
    hub = SnapshotHubClient(graphql_client(lambda payload: (200, body)))
    with pytest.raises(UpstreamError):
        await hub.get_proposal("0xprop")


# Subgraph boost registry

def test_boost_from_subgraph_maps_fields():
    boost = boost_from_subgraph(raw_boost(), CHAIN_ID)
    assert boost.id == 1
    assert boost.chain_id == CHAIN_ID
    assert boost.balance == 1000
    assert boost.token.address == TOKEN_ADDRESS
    assert boost.token.decimals == 18
    assert boost.strategy_name == "whitelist"
    assert boost.strategy.params == {"recipients": {RECIPIENT: "300"}}


def test_boost_from_subgraph_without_strategy():
    boost = boost_from_subgraph(raw_boost(strategy=None), CHAIN_ID)
    assert boost.strategy is None


def test_malformed_subgraph_boost():
    with pytest.raises(UpstreamError):
        boost_from_subgraph(raw_boost(poolSize="-5"), CHAIN_ID)
    with pytest.raises(UpstreamError):
        boost_from_subgraph({"id": "1"}, CHAIN_ID)


@pytest.mark.asyncio
async def test_subgraph_registry_get_boost():
    def handler(payload):
        if payload["variables"]["id"] == "1":
            return 200, {"data": {"boost": raw_boost()}}
        return 200, {"data": {"boost": None}}

    registry = SubgraphBoostRegistry({CHAIN_ID: graphql_client(handler)})
    boost = await registry.get_boost(1, CHAIN_ID)
    assert boost.key == (1, CHAIN_ID)

    with pytest.raises(NotFound):
        await registry.get_boost(2, CHAIN_ID)
    with pytest.raises(NotFound):
        await registry.get_boost(1, 1)
    await registry.aclose()


@pytest.mark.asyncio
async def test_subgraph_registry_paginates():
    def handler(payload):
        skip = payload["variables"]["skip"]
        if skip == 0:
            return 200, {"data": {"boosts": [raw_boost(str(i)) for i in range(PAGE_SIZE)]}}
        return 200, {"data": {"boosts": [raw_boost(str(PAGE_SIZE))]}}

    client = graphql_client(handler)
    registry = SubgraphBoostRegistry({CHAIN_ID: client})
    boosts = await registry.list_boosts()
    assert len(boosts) == PAGE_SIZE + 1
    assert [r["variables"]["skip"] for r in client.requests] == [0, PAGE_SIZE]


# Token resolvers

@pytest.mark.asyncio
async def test_subgraph_token_resolver():
    def handler(payload):
        return 200, {"data": {"token": {"id": payload["variables"]["id"], "name": "Test",
                                        "symbol": "TST", "decimals": "6"}}}

    resolver = SubgraphTokenResolver({CHAIN_ID: graphql_client(handler)})
    token = await resolver.resolve(TOKEN_ADDRESS.upper().replace("0X", "0x"), CHAIN_ID)
    assert token.address == TOKEN_ADDRESS
    assert token.decimals == 6

    with pytest.raises(NotFound):
        await resolver.resolve(TOKEN_ADDRESS, 1)


@pytest.mark.asyncio
async def test_caching_token_resolver():
    token = Token(address=TOKEN_ADDRESS, decimals=18)
    resolver = CachingTokenResolver(StaticTokenResolver({(TOKEN_ADDRESS, CHAIN_ID): token}), max_size=1)

    assert await resolver.resolve(TOKEN_ADDRESS, CHAIN_ID) == token
    assert await resolver.resolve(TOKEN_ADDRESS, CHAIN_ID) == token
    assert (resolver.hits, resolver.misses) == (1, 1)
    assert len(resolver) == 1

    with pytest.raises(NotFound):
        await resolver.resolve("0x" + "01" * 20, CHAIN_ID)
    assert len(resolver) == 1
