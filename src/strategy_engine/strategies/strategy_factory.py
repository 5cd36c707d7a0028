from dataclasses import fields
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, Union
from numbers import Real

from .base_strategy import BaseStrategy
from .aggressive_strategy import AggressiveStrategy
from .balanced_strategy import BalancedStrategy
from .conservative_strategy import ConservativeStrategy
from strategy_engine.core.types import RiskTolerance, StrategyConfig, StrategyType
from strategy_engine.utils.logger import TradingLogger, default_logger

STRATEGY_CLASSES: Dict[StrategyType, Type[BaseStrategy]] = {
    StrategyType.AGGRESSIVE: AggressiveStrategy,
    StrategyType.BALANCED: BalancedStrategy,
    StrategyType.CONSERVATIVE: ConservativeStrategy,
}

# 1 (safest) - 10 (riskiest)
RISK_LEVELS: Dict[StrategyType, int] = {
    StrategyType.AGGRESSIVE: 8,
    StrategyType.BALANCED: 5,
    StrategyType.CONSERVATIVE: 2,
}

EXPECTED_RETURNS: Dict[StrategyType, Tuple[float, float]] = {
    StrategyType.AGGRESSIVE: (0.30, 1.00),
    StrategyType.BALANCED: (0.15, 0.50),
    StrategyType.CONSERVATIVE: (0.08, 0.25),
}

# field -> (lower, upper, lower bound inclusive)
CONFIG_BOUNDS = {
    "max_position_size": (0.0, 0.1, False),
    "stop_loss": (0.0, 0.5, False),
    "take_profit": (0.0, 2.0, False),
    "sentiment_threshold": (-1.0, 1.0, True),
}

StrategyTypeLike = Union[StrategyType, str]


class StrategyFactory:
    """Builds strategies from a type plus config overrides. Holds no per-call state."""

    def __init__(self, logger: Optional[TradingLogger] = None):
        self.logger = logger or default_logger("factory")

    def create_strategy(self, strategy_type: StrategyTypeLike, overrides: Optional[Mapping[str, Any]] = None) -> BaseStrategy:
        """
        Merge the type's default config with overrides and build a new strategy.
        Unknown types fall back to a balanced strategy with the same overrides.
        """
        resolved = self._resolve_type(strategy_type)
        if resolved is None:
            self.logger.error(
                f"StrategyFactory - Error in create_strategy: Unknown strategy type: {strategy_type}, "
                f"falling back to {StrategyType.BALANCED.value}"
            )
            resolved = StrategyType.BALANCED

        # The profile decides the type, never the overrides
        changes = dict(overrides or {})
        changes["type"] = resolved

        config = self.get_default_config(resolved).merged(**changes)
        return STRATEGY_CLASSES[resolved](config, logger=self.logger)

    def get_available_strategies(self) -> List[StrategyType]:
        return list(STRATEGY_CLASSES)

    def get_default_config(self, strategy_type: StrategyTypeLike) -> StrategyConfig:
        resolved = self._resolve_type(strategy_type)
        if resolved is None:
            raise ValueError(f"Unknown strategy type: {strategy_type}")
        return STRATEGY_CLASSES[resolved].DEFAULT_CONFIG

    def validate_config(self, config: Union[StrategyConfig, Mapping[str, Any]]) -> bool:
        """Check required fields are present and numeric limits hold"""
        try:
            if isinstance(config, StrategyConfig):
                values = {f.name: getattr(config, f.name) for f in fields(StrategyConfig)}
            else:
                values = dict(config)

            required = [f.name for f in fields(StrategyConfig)]
            if any(values.get(name) is None for name in required):
                return False

            if self._resolve_type(values["type"]) is None:
                return False
            if values["risk_tolerance"] not in {r.value for r in RiskTolerance}:
                return False

            for name, (lower, upper, inclusive) in CONFIG_BOUNDS.items():
                value = values[name]
                if isinstance(value, bool) or not isinstance(value, Real):
                    return False
                above_lower = value >= lower if inclusive else value > lower
                if not (above_lower and value <= upper):
                    return False

            return True
        except Exception as e:
            self.logger.error(f"StrategyFactory - Error in validate_config: {str(e)}")
            return False

    def get_strategy_description(self, strategy_type: StrategyTypeLike) -> str:
        resolved = self._resolve_type(strategy_type)
        if resolved is None:
            return "Unknown strategy type"
        return STRATEGY_CLASSES[resolved].DESCRIPTION

    def get_strategy_risk_level(self, strategy_type: StrategyTypeLike) -> int:
        resolved = self._resolve_type(strategy_type)
        return RISK_LEVELS.get(resolved, RISK_LEVELS[StrategyType.BALANCED])

    def get_expected_returns(self, strategy_type: StrategyTypeLike) -> Tuple[float, float]:
        resolved = self._resolve_type(strategy_type)
        return EXPECTED_RETURNS.get(resolved, EXPECTED_RETURNS[StrategyType.BALANCED])

    @staticmethod
    def _resolve_type(strategy_type: StrategyTypeLike) -> Optional[StrategyType]:
        try:
            return StrategyType(strategy_type)
        except ValueError:
            return None
