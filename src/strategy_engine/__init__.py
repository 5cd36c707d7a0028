from strategy_engine.core.types import (
    MarketData,
    Position,
    PositionStatus,
    PricePoint,
    RiskTolerance,
    SentimentPoint,
    StrategyConfig,
    StrategyDecision,
    StrategyType,
    Token,
    VolumePoint,
)
from strategy_engine.core.aggregator import StrategyAggregator
from strategy_engine.strategies.strategy_factory import StrategyFactory
from strategy_engine.strategies.aggressive_strategy import AggressiveStrategy
from strategy_engine.strategies.balanced_strategy import BalancedStrategy
from strategy_engine.strategies.conservative_strategy import ConservativeStrategy

__version__ = "0.1.0"
