"""
Builds the status service and its collaborators from settings
"""
from typing import Optional

from sqlalchemy.orm import sessionmaker

from boost_guard.core.config import Settings, get_settings
from boost_guard.core.database import get_session_local
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.services.boost_registry import (BoostRegistry,
                                                 FileBoostRegistry,
                                                 SubgraphBoostRegistry)
from boost_guard.services.claim_ledger import ClaimLedger
from boost_guard.services.entitlement_service import EntitlementEvaluator
from boost_guard.services.hub_client import SnapshotHubClient
from boost_guard.services.key_custody import KeyCustody, LocalKeyCustody
from boost_guard.services.signature_issuer import SignatureIssuer
from boost_guard.services.status_service import StatusService
from boost_guard.services.strategy_registry import (StrategySources,
                                                    get_strategy_registry)
from boost_guard.services.token_resolver import (CachingTokenResolver,
                                                 SubgraphTokenResolver,
                                                 TokenResolver)

logger = LoggingConfig.get_logger(__name__)


def build_boost_registry(settings: Settings) -> BoostRegistry:
    if settings.registry_backend == "file":
        if not settings.boosts_file:
            raise ValueError("BOOSTS_FILE must be set when REGISTRY_BACKEND=file")
        return FileBoostRegistry(settings.boosts_file)
    return SubgraphBoostRegistry.from_settings(settings)


def build_status_service(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    registry: Optional[BoostRegistry] = None,
    key_custody: Optional[KeyCustody] = None,
    token_resolver: Optional[TokenResolver] = None,
) -> StatusService:
    """Wire a StatusService; explicit collaborators override settings"""
    settings = settings or get_settings()

    registry = registry or build_boost_registry(settings)
    if token_resolver is None and isinstance(registry, SubgraphBoostRegistry):
        token_resolver = CachingTokenResolver(
            SubgraphTokenResolver(registry.clients),
            max_size=settings.token_cache_size,
        )

    key_custody = key_custody or LocalKeyCustody.from_settings(settings)
    evaluator = EntitlementEvaluator(
        get_strategy_registry(),
        StrategySources(hub=SnapshotHubClient.from_settings(settings)),
    )

    service = StatusService(
        registry=registry,
        evaluator=evaluator,
        ledger=ClaimLedger(session_factory or get_session_local()),
        issuer=SignatureIssuer.from_settings(key_custody, settings),
        token_resolver=token_resolver,
        conflict_retries=settings.ledger_conflict_retries,
    )
    logger.info(
        "Status service ready",
        extra={
            "registry": type(registry).__name__,
            "strategies": evaluator.registry.names(),
            "guards": len(key_custody.guards()),
        },
    )
    return service
