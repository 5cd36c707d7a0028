from .base_strategy import BaseStrategy
from strategy_engine.core.types import RiskTolerance, StrategyConfig, StrategyType


class BalancedStrategy(BaseStrategy):
    """Moderate profile: mid caps with steady price and volume"""

    STRATEGY_TYPE = StrategyType.BALANCED
    DEFAULT_CONFIG = StrategyConfig(
        type=StrategyType.BALANCED,
        risk_tolerance=RiskTolerance.MEDIUM,
        max_position_size=0.03,
        stop_loss=0.10,
        take_profit=0.30,
        sentiment_threshold=0.1,
    )
    DESCRIPTION = "Moderate risk strategy with balanced risk-reward profile for stable meme coins"

    MIN_VOLUME = 50_000
    MARKET_CAP_RANGE = (100_000, 2_000_000)
    MIN_TVL = 25_000
    VOLATILITY_BAND = (0.05, 0.30)

    DEFAULT_VOLATILITY = 0.05
    VOLATILITY_CAP = 0.5

    PRICE_STABILITY = (5, 0.20)
    VOLUME_CONSISTENCY = (3, 0.50)

    SENTIMENT_MULTIPLIER = (1.5, 1.2)
    MARKET_CAP_MULTIPLIER = (2_000_000, 0.8)
    VOLUME_MULTIPLIER = (200_000, 1.0)
    STABILITY_BONUSES = {
        "market_cap": (500_000, 1.1),
        "tvl": (50_000, 1.1),
        "volume": (100_000, 1.05),
        "sentiment": (0.2, 1.1),
    }
    STABILITY_CAP = 1.3
    MIN_POSITION_SIZE = 25

    PANIC_SENTIMENT = -0.3
    VOLUME_DROP_FACTOR = 2_000
    MARKET_CAP_DROP_FACTOR = 100_000
    VOLATILITY_SPIKE = 0.5

    BASE_RANGE = 0.10
    RANGE_VOLATILITY_MULTIPLIER = (1.5, 1.5)
    DEFAULT_RANGE = 0.08
