"""
Proposal strategy: reward voters of a Snapshot proposal.

Eligibility is either `incentive` (any vote counts) or `bribe` (only votes
for `choice` count). Distribution is `weighted` by voting power, with an
optional per-recipient `limit`, or `even` across all voters. Rewards are
only computed once the proposal has ended, when its scores are final.
"""
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Literal, Mapping, Optional

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, Field, field_validator, model_validator

from boost_guard.core.errors import UpstreamError
from boost_guard.models.boost import Boost, parse_amount

NAME = "proposal"

# Proposal types whose single integer choice can be matched
ELIGIBLE_PROPOSAL_TYPES = ("single-choice", "basic")


class Eligibility(BaseModel):
    type: Literal["incentive", "bribe"]
    choice: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_choice(self) -> "Eligibility":
        if self.type == "bribe" and self.choice is None:
            raise ValueError("bribe eligibility requires a choice")
        return self


class Distribution(BaseModel):
    type: Literal["weighted", "even"]
    limit: Optional[int] = None

    @field_validator("limit", mode="before")
    @classmethod
    def parse_limit(cls, v: Any) -> Optional[int]:
        if v is None:
            return None
        value = parse_amount(v)
        if value < 0:
            raise ValueError("limit must be non-negative")
        return value


class ProposalParams(BaseModel):
    version: str = ""
    proposal: str = Field(..., min_length=1)
    eligibility: Eligibility
    distribution: Distribution


async def load_facts(sources, boost: Boost, recipient: str, params: ProposalParams) -> Dict[str, Any]:
    hub = getattr(sources, "hub", None)
    if hub is None:
        raise UpstreamError("no Snapshot hub client configured for the proposal strategy")

    proposal = await hub.get_proposal(params.proposal)
    if proposal is None:
        return {"proposal": None, "vote": None}
    if not is_address(recipient):
        # Snapshot voters are EVM accounts
        return {"proposal": proposal, "vote": None}
    vote = await hub.get_vote(to_checksum_address(recipient), params.proposal)
    return {"proposal": proposal, "vote": vote}


def _to_base_units(value: float, decimals: int) -> int:
    scaled = Decimal(str(value)) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def evaluate(boost: Boost, recipient: str, params: ProposalParams, as_of: int,
             facts: Mapping[str, Any]) -> int:
    proposal = facts.get("proposal")
    vote = facts.get("vote")
    if proposal is None or vote is None:
        return 0
    if as_of < proposal.end:
        return 0
    if proposal.type not in ELIGIBLE_PROPOSAL_TYPES:
        return 0
    if params.eligibility.type == "bribe" and vote.choice != params.eligibility.choice:
        return 0

    if params.distribution.type == "even":
        if proposal.votes <= 0:
            return 0
        reward = boost.balance // proposal.votes
    else:
        decimals = boost.token.decimals or 0
        voting_power = _to_base_units(vote.vp, decimals)
        score = _to_base_units(proposal.scores_total, decimals)
        if score <= 0:
            return 0
        reward = voting_power * boost.balance // score

    if params.distribution.limit is not None:
        reward = min(reward, params.distribution.limit)
    return reward
