"""
Boost, status, reward and voucher endpoints
"""
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from boost_guard.api.dependencies import get_status_service
from boost_guard.core.errors import BoostGuardError
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.models.boost import Boost
from boost_guard.models.status import Reward, Status
from boost_guard.services.status_service import StatusService

router = APIRouter(prefix="/api", tags=["boosts"])
logger = LoggingConfig.get_logger(__name__)

MAX_BATCH_SIZE = 100


class BatchRequest(BaseModel):
    """Recipient and the (boostId, chainId) pairs to evaluate"""
    recipient: str = Field(..., description="Recipient address")
    boosts: List[Tuple[int, int]] = Field(
        ...,
        min_length=1,
        max_length=MAX_BATCH_SIZE,
        description="List of [boostId, chainId] pairs"
    )


class ErrorBody(BaseModel):
    code: str
    message: str
    category: str
    retryable: bool
    details: Dict[str, Any] = Field(default_factory=dict)


class RewardItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    boost_id: int = Field(..., alias="boostId")
    chain_id: int = Field(..., alias="chainId")
    reward: Optional[Reward] = None
    error: Optional[ErrorBody] = None


class VoucherItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    boost_id: int = Field(..., alias="boostId")
    chain_id: int = Field(..., alias="chainId")
    status: Optional[Status] = None
    error: Optional[ErrorBody] = None


@router.get("/boosts", response_model=List[Boost])
async def list_boosts(service: StatusService = Depends(get_status_service)):
    """List all boosts known to the registry"""
    return await service.list_boosts()


@router.get("/boosts/{chain_id}/{boost_id}", response_model=Optional[Boost])
async def get_boost(chain_id: int, boost_id: int, service: StatusService = Depends(get_status_service)):
    """Boost by identity; null when unknown"""
    return await service.get_boost(boost_id, chain_id)


@router.get("/status", response_model=Optional[Status])
async def get_status(
    boost_id: int = Query(..., alias="boostId"),
    recipient: str = Query(...),
    chain_id: int = Query(..., alias="chainId"),
    service: StatusService = Depends(get_status_service),
):
    """
    Claim authorization for a recipient

    Returns a signature when an amount is issuable, `amount: "0"` and
    `sig: null` when everything was already issued, null for an unknown boost.
    """
    return await service.status(boost_id, recipient, chain_id)


@router.post("/rewards", response_model=List[RewardItem])
async def get_rewards(request: BatchRequest, service: StatusService = Depends(get_status_service)):
    """Entitlements for several boosts, without signing"""
    items = []
    for boost_id, chain_id in request.boosts:
        try:
            reward = await service.reward(boost_id, request.recipient, chain_id)
        except BoostGuardError as e:
            items.append(RewardItem(boost_id=boost_id, chain_id=chain_id, error=ErrorBody(**e.to_dict())))
            continue
        if reward is not None:
            items.append(RewardItem(boost_id=boost_id, chain_id=chain_id, reward=reward))
    return items


@router.post("/vouchers", response_model=List[VoucherItem])
async def create_vouchers(request: BatchRequest, service: StatusService = Depends(get_status_service)):
    """Claim authorizations for several boosts; one failing boost does not abort the rest"""
    items = []
    for boost_id, chain_id in request.boosts:
        try:
            status = await service.status(boost_id, request.recipient, chain_id)
        except BoostGuardError as e:
            items.append(VoucherItem(boost_id=boost_id, chain_id=chain_id, error=ErrorBody(**e.to_dict())))
            continue
        if status is not None:
            items.append(VoucherItem(boost_id=boost_id, chain_id=chain_id, status=status))
    logger.info(
        "Vouchers created",
        extra={"requested": len(request.boosts), "signed": sum(1 for i in items if i.status and i.status.sig)},
    )
    return items
