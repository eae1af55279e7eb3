"""
Token Resolver collaborators: token metadata by (address, chainId)
"""
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Tuple

from pydantic import ValidationError

from boost_guard.core.errors import NotFound, UpstreamError
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.models.boost import Token
from boost_guard.services.graphql_client import GraphQLClient

logger = LoggingConfig.get_logger(__name__)

TOKEN_QUERY = """
query Token($id: String!) {
  token(id: $id) {
    id
    name
    symbol
    decimals
  }
}
"""


class TokenResolver(ABC):

    @abstractmethod
    async def resolve(self, address: str, chain_id: int) -> Token:
        """Token metadata, or NotFound"""

    async def aclose(self):
        pass


class StaticTokenResolver(TokenResolver):

    def __init__(self, tokens: Dict[Tuple[str, int], Token] = None):
        self._tokens = {
            (address.lower(), chain_id): token
            for (address, chain_id), token in (tokens or {}).items()
        }

    async def resolve(self, address: str, chain_id: int) -> Token:
        token = self._tokens.get((address.lower(), chain_id))
        if token is None:
            raise NotFound(f"token {address} not found on chain {chain_id}")
        return token


class SubgraphTokenResolver(TokenResolver):

    def __init__(self, clients: Dict[int, GraphQLClient]):
        self.clients = clients

    async def resolve(self, address: str, chain_id: int) -> Token:
        client = self.clients.get(chain_id)
        if client is None:
            raise NotFound(f"no subgraph configured for chain {chain_id}")
        data = await client.query(TOKEN_QUERY, {"id": address.lower()})
        raw = data.get("token")
        if raw is None:
            raise NotFound(f"token {address} not found on chain {chain_id}")
        try:
            return Token(
                address=raw["id"],
                name=raw.get("name"),
                symbol=raw.get("symbol"),
                decimals=int(raw["decimals"]) if raw.get("decimals") is not None else None,
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise UpstreamError(f"malformed token {address} from the subgraph") from e


class CachingTokenResolver(TokenResolver):
    """LRU cache in front of another resolver; tokens never change once resolved"""

    def __init__(self, inner: TokenResolver, max_size: int = 1024):
        self.inner = inner
        self.max_size = max_size
        self._cache: "OrderedDict[Tuple[str, int], Token]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    async def resolve(self, address: str, chain_id: int) -> Token:
        key = (address.lower(), chain_id)
        token = self._cache.get(key)
        if token is not None:
            self._cache.move_to_end(key)
            self.hits += 1
            return token

        self.misses += 1
        token = await self.inner.resolve(address, chain_id)
        self._cache[key] = token
        if len(self._cache) > self.max_size:
            self._cache.popitem(last=False)
        return token

    def __len__(self) -> int:
        return len(self._cache)

    async def aclose(self):
        await self.inner.aclose()
