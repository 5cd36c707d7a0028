from .base_strategy import BaseStrategy
from strategy_engine.core.types import RiskTolerance, StrategyConfig, StrategyType


class AggressiveStrategy(BaseStrategy):
    """High-risk profile for volatile, trending meme coins"""

    STRATEGY_TYPE = StrategyType.AGGRESSIVE
    DEFAULT_CONFIG = StrategyConfig(
        type=StrategyType.AGGRESSIVE,
        risk_tolerance=RiskTolerance.HIGH,
        max_position_size=0.05,    # 5% of portfolio
        stop_loss=0.15,
        take_profit=0.50,
        sentiment_threshold=0.3,
    )
    DESCRIPTION = (
        "High-risk, high-reward strategy for volatile meme coins "
        "with positive sentiment and adequate volume"
    )

    MIN_VOLUME = 10_000
    MARKET_CAP_RANGE = (50_000, 5_000_000)
    MIN_TVL = 10_000
    VOLATILITY_BAND = (0.10, None)     # wants movement

    DEFAULT_VOLATILITY = 0.1
    VOLATILITY_CAP = 1.0

    SENTIMENT_MULTIPLIER = (2.0, 1.5)
    MARKET_CAP_MULTIPLIER = (1_000_000, 1.0)
    VOLUME_MULTIPLIER = (100_000, 1.2)
    MIN_POSITION_SIZE = 100

    PANIC_SENTIMENT = -0.2
    VOLUME_DROP_FACTOR = 1_000
    MARKET_CAP_DROP_FACTOR = 50_000

    BASE_RANGE = 0.15
    RANGE_VOLATILITY_MULTIPLIER = (2.0, 2.0)
    DEFAULT_RANGE = 0.10
