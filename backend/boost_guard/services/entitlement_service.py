"""
Entitlement Evaluator: total amount a recipient may claim from a boost
"""
import time
from typing import Optional

from boost_guard.core.errors import BoostGuardError, StrategyError
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.core.metrics import (entitlement_clamped_total,
                                      strategy_evaluation_seconds,
                                      strategy_failures_total)
from boost_guard.models.boost import Boost
from boost_guard.services.strategy_registry import (StrategyRegistry,
                                                    StrategySources,
                                                    StrategySpec)

logger = LoggingConfig.get_logger(__name__)


class EntitlementEvaluator:
    """Runs the boost's strategy and clamps the result to `[0, balance]`"""

    def __init__(self, registry: StrategyRegistry, sources: Optional[StrategySources] = None):
        self.registry = registry
        self.sources = sources or StrategySources()

    async def entitlement(self, boost: Boost, recipient: str, as_of: int) -> int:
        """
        Compute the total entitlement of `recipient` as of `as_of`

        Returns:
            Non-negative integer in token base units, never above `boost.balance`

        Raises:
            UnknownStrategy: strategy name is not registered
            InvalidStrategyParams: params do not match the strategy schema
            StrategyError: the strategy itself raised
        """
        if not boost.is_active(as_of):
            return 0

        name = boost.strategy_name
        if not name:
            return 0

        spec = self.registry.resolve(name)
        params = spec.validate_params(boost.strategy.params)

        started = time.perf_counter()
        try:
            facts = {}
            if spec.loader is not None:
                facts = await spec.loader(self.sources, boost, recipient, params) or {}
            raw = spec.evaluator(boost, recipient, params, as_of, facts)
        except BoostGuardError:
            raise
        except Exception as e:
            strategy_failures_total.labels(strategy=name).inc()
            logger.error(
                "Strategy raised, entitlement unavailable",
                exc_info=True,
                extra={"boost_id": boost.id, "chain_id": boost.chain_id,
                       "recipient": recipient, "strategy": name, "error_type": type(e).__name__},
            )
            raise StrategyError(
                f"strategy {name!r} failed: {type(e).__name__}",
                details={"boost_id": boost.id, "chain_id": boost.chain_id, "strategy": name},
            ) from e
        finally:
            strategy_evaluation_seconds.labels(strategy=name).observe(time.perf_counter() - started)

        return self._clamp(boost, spec, recipient, raw)

    def _clamp(self, boost: Boost, spec: StrategySpec, recipient: str, raw) -> int:
        extra = {
            "boost_id": boost.id,
            "chain_id": boost.chain_id,
            "recipient": recipient,
            "strategy": spec.name,
        }

        if isinstance(raw, bool) or not isinstance(raw, int):
            entitlement_clamped_total.labels(strategy=spec.name).inc()
            logger.error(
                "Strategy returned a non-integer entitlement, treating as zero",
                extra={**extra, "result": repr(raw)},
            )
            return 0

        if raw < 0:
            entitlement_clamped_total.labels(strategy=spec.name).inc()
            logger.error("Strategy returned a negative entitlement, clamped to zero",
                         extra={**extra, "result": str(raw)})
            return 0

        if raw > boost.balance:
            entitlement_clamped_total.labels(strategy=spec.name).inc()
            logger.error(
                "Strategy entitlement exceeds boost balance, clamped",
                extra={**extra, "result": str(raw), "balance": str(boost.balance)},
            )
            return boost.balance

        return raw
