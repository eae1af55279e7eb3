"""
Strategy Registry - closed, startup-time map of strategy name -> evaluator
"""
from dataclasses import dataclass, field
from functools import lru_cache
from typing import (Any, Awaitable, Callable, Dict, List, Mapping, Optional,
                    Type)

from pydantic import BaseModel, ValidationError

from boost_guard.core.errors import InvalidStrategyParams, UnknownStrategy
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.models.boost import Boost

logger = LoggingConfig.get_logger(__name__)

# evaluator(boost, recipient, params, as_of, facts) -> total entitlement
Evaluator = Callable[[Boost, str, BaseModel, int, Mapping[str, Any]], int]
# loader(sources, boost, recipient, params) -> facts passed to the evaluator
FactLoader = Callable[[Any, Boost, str, BaseModel], Awaitable[Mapping[str, Any]]]


@dataclass(frozen=True)
class StrategySources:
    """External data sources available to fact loaders"""
    hub: Optional[Any] = None


@dataclass(frozen=True)
class StrategySpec:
    """A registered strategy"""
    name: str
    evaluator: Evaluator
    params_schema: Type[BaseModel]
    loader: Optional[FactLoader] = None
    description: str = field(default="", compare=False)

    def validate_params(self, params: Any) -> BaseModel:
        """Validate raw boost params; fails closed on anything malformed"""
        try:
            return self.params_schema.model_validate(params if params is not None else {})
        except ValidationError as e:
            raise InvalidStrategyParams(
                f"invalid params for strategy '{self.name}'",
                details={
                    "strategy": self.name,
                    "errors": [
                        {"loc": list(err["loc"]), "msg": err["msg"]}
                        for err in e.errors()
                    ],
                },
            ) from e


class StrategyRegistry:
    """
    Maps strategy names to evaluators.

    Registration happens once at process start; `freeze()` is called before
    serving so every replica evaluates with the same closed set.
    """

    def __init__(self):
        self._specs: Dict[str, StrategySpec] = {}
        self._frozen = False

    def register(
        self,
        name: str,
        evaluator: Evaluator,
        params_schema: Type[BaseModel],
        loader: Optional[FactLoader] = None,
        description: str = "",
    ) -> StrategySpec:
        if self._frozen:
            raise RuntimeError(f"cannot register strategy '{name}': registry is frozen")
        if not name or not name.strip():
            raise ValueError("strategy name must be non-empty")
        if name in self._specs:
            raise ValueError(f"strategy '{name}' is already registered")

        spec = StrategySpec(
            name=name,
            evaluator=evaluator,
            params_schema=params_schema,
            loader=loader,
            description=description,
        )
        self._specs[name] = spec
        logger.debug(f"Registered strategy {name}")
        return spec

    def resolve(self, name: str) -> StrategySpec:
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownStrategy(
                f"unknown strategy '{name}'",
                details={"strategy": name, "known": sorted(self._specs)},
            )
        return spec

    def freeze(self) -> "StrategyRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> List[str]:
        return sorted(self._specs)

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)


def build_default_registry() -> StrategyRegistry:
    """Registry with the built-in strategies, frozen"""
    from boost_guard.strategies import register_builtin_strategies

    registry = StrategyRegistry()
    register_builtin_strategies(registry)
    return registry.freeze()


@lru_cache()
def get_strategy_registry() -> StrategyRegistry:
    """Process-wide strategy registry"""
    return build_default_registry()
