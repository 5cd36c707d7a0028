import math
from typing import Dict, Optional, Sequence, Tuple, Union
import pandas as pd

from strategy_engine.analysis import market_stats
from strategy_engine.core.types import (
    MarketData,
    Position,
    PricePoint,
    PriceRange,
    price_series,
    StrategyConfig,
    StrategyType,
    Token,
)
from strategy_engine.utils.logger import TradingLogger, default_logger


class BaseStrategy:
    """
    Base class for the risk-profile strategies.

    Subclasses only supply thresholds and the extra checks they need; the
    four public operations never raise. Entry and sizing fail closed
    (False / 0), exits fail open (True) and price ranges fall back to a
    fixed band around the current price.
    """

    STRATEGY_TYPE: StrategyType
    DEFAULT_CONFIG: StrategyConfig
    DESCRIPTION: str = ""

    # Entry gates
    MIN_VOLUME: float
    MARKET_CAP_RANGE: Tuple[float, float]
    MIN_TVL: float
    VOLATILITY_BAND: Tuple[float, Optional[float]]  # exclusive bounds, None = open

    # Volatility estimate
    DEFAULT_VOLATILITY: float
    VOLATILITY_CAP: float

    # Sizing: (factor, cap) for sentiment, (divisor, cap) for the others
    SENTIMENT_MULTIPLIER: Tuple[float, float]
    MARKET_CAP_MULTIPLIER: Tuple[float, float]
    VOLUME_MULTIPLIER: Tuple[float, float]
    MIN_POSITION_SIZE: float

    # Optional stability gates: (min points, max coefficient of variation)
    PRICE_STABILITY: Optional[Tuple[int, float]] = None
    VOLUME_CONSISTENCY: Optional[Tuple[int, float]] = None

    # Optional stability multiplier: (market_cap, tvl, volume, sentiment) thresholds
    # each paired with its bonus factor, then a cap on the product
    STABILITY_BONUSES: Optional[Dict[str, Tuple[float, float]]] = None
    STABILITY_CAP: float = 1.0

    # Exit triggers
    PANIC_SENTIMENT: float
    VOLUME_DROP_FACTOR: float
    MARKET_CAP_DROP_FACTOR: float
    VOLATILITY_SPIKE: Optional[float] = None

    # Price range: base width, (volatility factor, cap), fallback width
    BASE_RANGE: float
    RANGE_VOLATILITY_MULTIPLIER: Tuple[float, float]
    DEFAULT_RANGE: float

    def __init__(self, config: Optional[StrategyConfig] = None, logger: Optional[TradingLogger] = None):
        super().__init__()
        self.config = config or self.DEFAULT_CONFIG
        if self.config.type != self.STRATEGY_TYPE:
            raise ValueError(
                f"{self.name} cannot run a {self.config.type.value} config"
            )
        self.logger = logger or default_logger("strategies")

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def description(self) -> str:
        return self.DESCRIPTION

    # Entry

    def should_enter(self, token: Token, market_data: MarketData) -> bool:
        """Returns True only if every entry gate passes"""
        try:
            checks = self.entry_checks(token, market_data)
            should_enter = all(checks.values())
            self.logger.debug(
                f"{self.name}: Entry analysis for {token.symbol} - "
                f"should_enter={should_enter} checks={checks}"
            )
            return should_enter
        except Exception as e:
            self.logger.error(f"{self.name} - Error in should_enter: {str(e)}")
            return False

    def entry_checks(self, token: Token, market_data: MarketData) -> Dict[str, bool]:
        """Named gate results for a token"""
        min_cap, max_cap = self.MARKET_CAP_RANGE
        volatility = self.calculate_volatility(market_data.prices())

        checks = {
            "sentiment": token.sentiment > self.config.sentiment_threshold,
            "volume": token.volume_24h >= self.MIN_VOLUME,
            "market_cap": min_cap <= token.market_cap <= max_cap,
            "tvl": token.tvl >= self.MIN_TVL,
            "trending": bool(token.trending),
            "volatility": self._volatility_in_band(volatility),
        }
        checks.update(self._extra_entry_checks(token, market_data))
        return checks

    def _extra_entry_checks(self, token: Token, market_data: MarketData) -> Dict[str, bool]:
        checks = {}
        if self.PRICE_STABILITY:
            min_points, max_cv = self.PRICE_STABILITY
            checks["price_stability"] = market_stats.is_stable(
                market_data.prices(), min_points, max_cv
            )
        if self.VOLUME_CONSISTENCY:
            min_points, max_cv = self.VOLUME_CONSISTENCY
            checks["volume_consistency"] = market_stats.is_stable(
                market_data.volumes(), min_points, max_cv
            )
        return checks

    def _volatility_in_band(self, volatility: float) -> bool:
        low, high = self.VOLATILITY_BAND
        if not volatility > low:
            return False
        return high is None or volatility < high

    # Sizing

    def calculate_position_size(self, token: Token, portfolio_value: float) -> float:
        """USD size for a new position, 0 when it would be below the profile minimum"""
        try:
            base_size = portfolio_value * self.config.max_position_size
            multipliers = self.size_multipliers(token)

            position_size = base_size
            for multiplier in multipliers.values():
                position_size *= multiplier

            # Never size above the configured fraction of the portfolio
            final_size = min(position_size, base_size)

            if not math.isfinite(final_size) or final_size < self.MIN_POSITION_SIZE:
                return 0.0

            self.logger.debug(
                f"{self.name}: Position size for {token.symbol} - "
                f"base={base_size:.2f} multipliers={multipliers} final={final_size:.2f}"
            )
            return float(final_size)
        except Exception as e:
            self.logger.error(f"{self.name} - Error in calculate_position_size: {str(e)}")
            return 0.0

    def size_multipliers(self, token: Token) -> Dict[str, float]:
        sentiment_factor, sentiment_cap = self.SENTIMENT_MULTIPLIER
        cap_divisor, cap_cap = self.MARKET_CAP_MULTIPLIER
        volume_divisor, volume_cap = self.VOLUME_MULTIPLIER
        multipliers = {
            "sentiment": min(token.sentiment * sentiment_factor, sentiment_cap),
            "market_cap": min(token.market_cap / cap_divisor, cap_cap),
            "volume": min(token.volume_24h / volume_divisor, volume_cap),
        }
        if self.STABILITY_BONUSES:
            multipliers["stability"] = self.calculate_stability_multiplier(token)
        return multipliers

    def calculate_stability_multiplier(self, token: Token) -> float:
        """Bigger, deeper, busier, better-liked tokens get a bonus"""
        values = {
            "market_cap": token.market_cap,
            "tvl": token.tvl,
            "volume": token.volume_24h,
            "sentiment": token.sentiment,
        }
        multiplier = 1.0
        for field_name, (threshold, bonus) in (self.STABILITY_BONUSES or {}).items():
            if values[field_name] > threshold:
                multiplier *= bonus
        return min(multiplier, self.STABILITY_CAP)

    # Exit

    def should_exit(self, position: Position, current_data: MarketData) -> bool:
        """Exit if any trigger fires"""
        try:
            checks = self.exit_checks(position, current_data)
            should_exit = any(checks.values())
            self.logger.debug(
                f"{self.name}: Exit analysis for position {position.id} - "
                f"should_exit={should_exit} checks={checks}"
            )
            return should_exit
        except Exception as e:
            self.logger.error(f"{self.name} - Error in should_exit: {str(e)}")
            return True

    def exit_checks(self, position: Position, current_data: MarketData) -> Dict[str, bool]:
        pnl_pct = position.pnl_percentage
        token = current_data.token

        checks = {
            "stop_loss": pnl_pct <= -self.config.stop_loss,
            "take_profit": pnl_pct >= self.config.take_profit,
            "negative_sentiment": token.sentiment < self.PANIC_SENTIMENT,
            # Crude collapse heuristics scaled off the entry price
            "volume_drop": token.volume_24h < position.entry_price * self.VOLUME_DROP_FACTOR,
            "market_cap_drop": token.market_cap < position.entry_price * self.MARKET_CAP_DROP_FACTOR,
        }
        checks.update(self._extra_exit_checks(position, current_data))
        return checks

    def _extra_exit_checks(self, position: Position, current_data: MarketData) -> Dict[str, bool]:
        checks = {}
        if self.VOLATILITY_SPIKE is not None:
            # Uncapped: the entry estimate is capped at the spike threshold itself
            volatility = market_stats.calculate_volatility(
                current_data.prices(), self.DEFAULT_VOLATILITY, math.inf
            )
            checks["volatility_spike"] = volatility > self.VOLATILITY_SPIKE
        return checks

    # Price range

    def calculate_price_range(
        self,
        token: Token,
        current_price: float,
        price_history: Optional[Union[Sequence[PricePoint], pd.Series]] = None,
    ) -> PriceRange:
        """Range centred on current_price, widened by volatility. Always 0 < min < max."""
        try:
            if not (math.isfinite(current_price) and current_price > 0):
                raise ValueError(f"invalid current price {current_price}")

            prices = price_series(price_history if price_history is not None else ())
            volatility = self.calculate_volatility(prices)
            factor, cap = self.RANGE_VOLATILITY_MULTIPLIER
            range_pct = self.BASE_RANGE * min(volatility * factor, cap)
            if not (math.isfinite(range_pct) and range_pct > 0):
                raise ValueError(f"degenerate range {range_pct}")

            half_range = range_pct / 2
            min_price = current_price * (1 - half_range)
            max_price = current_price * (1 + half_range)

            self.logger.debug(
                f"{self.name}: Price range for {token.symbol} - "
                f"volatility={volatility:.4f} range_pct={range_pct:.4f} "
                f"range=({min_price}, {max_price})"
            )
            return min_price, max_price
        except Exception as e:
            self.logger.error(f"{self.name} - Error in calculate_price_range: {str(e)}")
            return self._default_range(token, current_price)

    def _default_range(self, token: Token, current_price: float) -> PriceRange:
        center = 1.0
        for candidate in (current_price, getattr(token, "price", None)):
            if isinstance(candidate, (int, float)) and math.isfinite(candidate) and candidate > 0:
                center = float(candidate)
                break
        half_range = self.DEFAULT_RANGE / 2
        return center * (1 - half_range), center * (1 + half_range)

    # Statistics

    def calculate_volatility(self, prices: pd.Series) -> float:
        try:
            return market_stats.calculate_volatility(
                prices, self.DEFAULT_VOLATILITY, self.VOLATILITY_CAP
            )
        except Exception as e:
            self.logger.error(f"{self.name} - Error calculating volatility: {str(e)}")
            return self.DEFAULT_VOLATILITY
