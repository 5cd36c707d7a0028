from typing import Dict

from .base_strategy import BaseStrategy
from strategy_engine.analysis import market_stats
from strategy_engine.core.types import (
    MarketData,
    Position,
    RiskTolerance,
    StrategyConfig,
    StrategyType,
    Token,
)


class ConservativeStrategy(BaseStrategy):
    """Capital preservation: established tokens, deep liquidity, steady uptrend"""

    STRATEGY_TYPE = StrategyType.CONSERVATIVE
    DEFAULT_CONFIG = StrategyConfig(
        type=StrategyType.CONSERVATIVE,
        risk_tolerance=RiskTolerance.LOW,
        max_position_size=0.02,
        stop_loss=0.08,
        take_profit=0.25,
        sentiment_threshold=0.2,
    )
    DESCRIPTION = "Low-risk strategy with capital preservation focus for established meme coins"

    MIN_VOLUME = 100_000
    MARKET_CAP_RANGE = (200_000, 1_000_000)
    MIN_TVL = 50_000
    VOLATILITY_BAND = (0.02, 0.20)

    DEFAULT_VOLATILITY = 0.02
    VOLATILITY_CAP = 0.3

    PRICE_STABILITY = (10, 0.15)
    VOLUME_CONSISTENCY = (5, 0.30)

    # Trend over the last TREND_WINDOW prices must beat MIN_TREND
    TREND_WINDOW = 5
    MIN_TREND = 0.05
    MIN_LIQUIDITY_RATIO = 0.10

    SENTIMENT_MULTIPLIER = (1.2, 1.0)
    MARKET_CAP_MULTIPLIER = (1_000_000, 0.6)
    VOLUME_MULTIPLIER = (500_000, 0.8)
    STABILITY_BONUSES = {
        "market_cap": (500_000, 1.2),
        "tvl": (100_000, 1.2),
        "volume": (200_000, 1.1),
        "sentiment": (0.3, 1.2),
    }
    STABILITY_CAP = 1.5
    # tvl/market_cap ratio floor -> multiplier, best match first
    LIQUIDITY_TIERS = ((0.3, 1.3), (0.2, 1.2), (0.1, 1.1))
    LIQUIDITY_CAP = 1.3
    MIN_POSITION_SIZE = 25

    PANIC_SENTIMENT = -0.1
    VOLUME_DROP_FACTOR = 5_000
    MARKET_CAP_DROP_FACTOR = 200_000
    VOLATILITY_SPIKE = 0.3

    BASE_RANGE = 0.06
    RANGE_VOLATILITY_MULTIPLIER = (1.0, 1.0)
    DEFAULT_RANGE = 0.05

    def _extra_entry_checks(self, token: Token, market_data: MarketData) -> Dict[str, bool]:
        checks = super()._extra_entry_checks(token, market_data)
        checks["positive_trend"] = self.check_positive_trend(market_data)
        checks["strong_liquidity"] = token.tvl_to_market_cap > self.MIN_LIQUIDITY_RATIO
        return checks

    def check_positive_trend(self, market_data: MarketData) -> bool:
        if len(market_data.price_history) < self.TREND_WINDOW:
            return True  # not enough data to call it
        trend = market_stats.recent_return(market_data.prices(), self.TREND_WINDOW)
        return trend > self.MIN_TREND

    def size_multipliers(self, token: Token) -> Dict[str, float]:
        multipliers = super().size_multipliers(token)
        multipliers["liquidity"] = self.calculate_liquidity_multiplier(token)
        return multipliers

    def calculate_liquidity_multiplier(self, token: Token) -> float:
        ratio = token.tvl_to_market_cap
        multiplier = 1.0
        for floor, bonus in self.LIQUIDITY_TIERS:
            if ratio > floor:
                multiplier = bonus
                break
        return min(multiplier, self.LIQUIDITY_CAP)

    def _extra_exit_checks(self, position: Position, current_data: MarketData) -> Dict[str, bool]:
        checks = super()._extra_exit_checks(position, current_data)
        checks["liquidity_drop"] = current_data.token.tvl_to_market_cap < self.MIN_LIQUIDITY_RATIO
        return checks
