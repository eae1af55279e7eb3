"""
Snapshot hub client: proposal results and individual votes
"""
import math
from dataclasses import dataclass
from typing import Any, Optional

from boost_guard.core.errors import UpstreamError
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.services.graphql_client import GraphQLClient

logger = LoggingConfig.get_logger(__name__)


def _finite(value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite number {value!r}")
    return number

PROPOSAL_QUERY = """
query Proposal($id: String!) {
  proposal(id: $id) {
    id
    type
    scores_total
    votes
    end
    state
  }
}
"""

VOTES_QUERY = """
query Votes($voter: String!, $proposal: String!) {
  votes(first: 1, where: {voter: $voter, proposal: $proposal}) {
    voter
    vp
    choice
  }
}
"""


@dataclass(frozen=True)
class ProposalInfo:
    id: str
    type: str
    scores_total: float
    votes: int
    end: int
    state: Optional[str] = None


@dataclass(frozen=True)
class VoteInfo:
    voter: str
    vp: float
    choice: Any


class SnapshotHubClient:
    """Reads proposal and vote data from the Snapshot hub"""

    def __init__(self, graphql: GraphQLClient):
        self.graphql = graphql

    @classmethod
    def from_settings(cls, settings) -> "SnapshotHubClient":
        return cls(GraphQLClient(settings.hub_url, timeout=settings.http_timeout_seconds))

    async def get_proposal(self, proposal_id: str) -> Optional[ProposalInfo]:
        data = await self.graphql.query(PROPOSAL_QUERY, {"id": proposal_id})
        raw = data.get("proposal")
        if raw is None:
            return None
        try:
            return ProposalInfo(
                id=str(raw["id"]),
                type=str(raw["type"]),
                scores_total=_finite(raw["scores_total"]),
                votes=int(raw.get("votes") or 0),
                end=int(raw["end"]),
                state=raw.get("state"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(
                f"malformed proposal {proposal_id} from the hub",
                details={"proposal": proposal_id},
            ) from e

    async def get_vote(self, voter: str, proposal_id: str) -> Optional[VoteInfo]:
        data = await self.graphql.query(VOTES_QUERY, {"voter": voter, "proposal": proposal_id})
        votes = data.get("votes") or []
        if not votes or votes[0] is None:
            return None
        raw = votes[0]
        if raw.get("vp") is None:
            raise UpstreamError(
                f"missing vp from the hub for {voter}",
                details={"proposal": proposal_id, "voter": voter},
            )
        try:
            return VoteInfo(voter=str(raw.get("voter", voter)), vp=_finite(raw["vp"]), choice=raw.get("choice"))
        except (TypeError, ValueError) as e:
            raise UpstreamError(
                f"malformed vote from the hub for {voter}",
                details={"proposal": proposal_id, "voter": voter},
            ) from e

    async def aclose(self):
        await self.graphql.aclose()
