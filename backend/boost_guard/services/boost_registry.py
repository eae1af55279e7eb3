"""
Boost Registry collaborators: where boost records come from
"""
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from boost_guard.core.errors import NotFound, UpstreamError
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.models.boost import Boost
from boost_guard.services.graphql_client import GraphQLClient

logger = LoggingConfig.get_logger(__name__)

BOOST_FIELDS = """
    id
    strategyURI
    poolSize
    guard
    start
    end
    owner
    token {
      id
      name
      symbol
      decimals
    }
    strategy {
      name
      params
    }
"""

BOOST_QUERY = """
query Boost($id: String!) {
  boost(id: $id) {%s}
}
""" % BOOST_FIELDS

BOOSTS_QUERY = """
query Boosts($first: Int!, $skip: Int!) {
  boosts(first: $first, skip: $skip, orderBy: id) {%s}
}
""" % BOOST_FIELDS

PAGE_SIZE = 1000


class BoostRegistry(ABC):
    """Read-only access to boost records"""

    @abstractmethod
    async def get_boost(self, boost_id: int, chain_id: int) -> Boost:
        """Boost by identity, or NotFound"""

    @abstractmethod
    async def list_boosts(self) -> List[Boost]:
        """All known boosts"""

    async def aclose(self):
        pass


class InMemoryBoostRegistry(BoostRegistry):
    """Registry backed by a dict; used for local runs and tests"""

    def __init__(self, boosts: Iterable[Boost] = ()):
        self._boosts: Dict[Tuple[int, int], Boost] = {}
        for boost in boosts:
            self.add(boost)

    def add(self, boost: Boost) -> Boost:
        self._boosts[boost.key] = boost
        return boost

    async def get_boost(self, boost_id: int, chain_id: int) -> Boost:
        boost = self._boosts.get((boost_id, chain_id))
        if boost is None:
            raise NotFound(
                f"boost {boost_id} not found on chain {chain_id}",
                details={"boost_id": boost_id, "chain_id": chain_id},
            )
        return boost

    async def list_boosts(self) -> List[Boost]:
        return [self._boosts[key] for key in sorted(self._boosts)]


class FileBoostRegistry(InMemoryBoostRegistry):
    """Registry loaded once from a JSON list of boosts (wire field names)"""

    def __init__(self, path: str):
        self.path = Path(path)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"cannot load boosts from {self.path}: {e}") from e
        if not isinstance(raw, list):
            raise ValueError(f"{self.path} must contain a JSON list of boosts")
        super().__init__(Boost.model_validate(item) for item in raw)
        logger.info("Loaded boosts from file", extra={"path": str(self.path), "count": len(raw)})


def boost_from_subgraph(raw: Dict[str, Any], chain_id: int) -> Boost:
    """Map a subgraph boost entity onto the Boost model"""
    try:
        token = raw.get("token") or {}
        strategy = raw.get("strategy")
        params = None
        if strategy is not None:
            params = strategy.get("params")
            if isinstance(params, str):
                try:
                    params = json.loads(params)
                except json.JSONDecodeError:
                    # Left as-is so the strategy schema rejects it
                    pass
        return Boost.model_validate({
            "id": int(raw["id"]),
            "chainId": chain_id,
            "strategyURI": raw.get("strategyURI") or "",
            "balance": raw["poolSize"],
            "guard": raw["guard"],
            "start": int(raw["start"]),
            "end": int(raw["end"]),
            "owner": raw["owner"],
            "token": {
                "address": token["id"],
                "name": token.get("name"),
                "symbol": token.get("symbol"),
                "decimals": int(token["decimals"]) if token.get("decimals") is not None else None,
            },
            "strategy": None if strategy is None else {
                "strategy": strategy.get("name"),
                "params": params,
            },
        })
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise UpstreamError(
            f"malformed boost from the subgraph for chain {chain_id}",
            details={"chain_id": chain_id, "boost_id": raw.get("id") if isinstance(raw, dict) else None},
        ) from e


class SubgraphBoostRegistry(BoostRegistry):
    """Registry reading boosts from one subgraph per chain"""

    def __init__(self, clients: Dict[int, GraphQLClient]):
        self.clients = clients

    @classmethod
    def from_settings(cls, settings) -> "SubgraphBoostRegistry":
        return cls({
            chain_id: GraphQLClient(url, timeout=settings.http_timeout_seconds)
            for chain_id, url in settings.subgraph_url_map.items()
        })

    def _client(self, chain_id: int) -> Optional[GraphQLClient]:
        return self.clients.get(chain_id)

    async def get_boost(self, boost_id: int, chain_id: int) -> Boost:
        client = self._client(chain_id)
        if client is None:
            raise NotFound(
                f"no subgraph configured for chain {chain_id}",
                details={"boost_id": boost_id, "chain_id": chain_id},
            )
        data = await client.query(BOOST_QUERY, {"id": str(boost_id)})
        raw = data.get("boost")
        if raw is None:
            raise NotFound(
                f"boost {boost_id} not found on chain {chain_id}",
                details={"boost_id": boost_id, "chain_id": chain_id},
            )
        return boost_from_subgraph(raw, chain_id)

    async def list_boosts(self) -> List[Boost]:
        boosts: List[Boost] = []
        for chain_id in sorted(self.clients):
            client = self.clients[chain_id]
            skip = 0
            while True:
                data = await client.query(BOOSTS_QUERY, {"first": PAGE_SIZE, "skip": skip})
                page = data.get("boosts") or []
                boosts.extend(boost_from_subgraph(raw, chain_id) for raw in page)
                if len(page) < PAGE_SIZE:
                    break
                skip += PAGE_SIZE
        return boosts

    async def aclose(self):
        for client in self.clients.values():
            await client.aclose()
