from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import asyncio
import threading
import time

from strategy_engine.core.types import (
    NO_ENTRY_REASONING,
    MarketData,
    Position,
    PositionStatus,
    StrategyDecision,
    StrategyType,
    Token,
    safe_default_decision,
)
from strategy_engine.strategies.base_strategy import BaseStrategy
from strategy_engine.strategies.strategy_factory import StrategyFactory
from strategy_engine.utils.logger import TradingLogger, default_logger

# Sizes are computed against this portfolio; callers rescale to their own
REFERENCE_PORTFOLIO_VALUE = 10_000.0

# Extra confidence when sentiment beats the profile's bar
CONFIDENCE_SENTIMENT_BONUS: Dict[StrategyType, float] = {
    StrategyType.AGGRESSIVE: 0.4,
    StrategyType.BALANCED: 0.2,
    StrategyType.CONSERVATIVE: 0.3,
}


class StrategyAggregator:
    """
    Registry of active strategies that folds their opinions on a token into
    one StrategyDecision.

    Any strategy wanting in makes the overall decision an entry (logical OR).
    A strategy that blows up is logged and left out of the tally.
    """

    def __init__(self,
                 factory: StrategyFactory,
                 reference_portfolio_value: float = REFERENCE_PORTFOLIO_VALUE,
                 logger: Optional[TradingLogger] = None):
        self.factory = factory
        self.reference_portfolio_value = reference_portfolio_value
        self.logger = logger or default_logger("aggregator")
        self.strategies: Dict[str, BaseStrategy] = {}
        self._lock = threading.Lock()

    # Registry

    def add_strategy(self, strategy: BaseStrategy) -> str:
        with self._lock:
            strategy_id = self._generate_strategy_id(strategy)
            self.strategies[strategy_id] = strategy
        self.logger.info(
            f"Added strategy {strategy_id} "
            f"(type={strategy.config.type.value}, risk={strategy.config.risk_tolerance.value})"
        )
        return strategy_id

    def remove_strategy(self, strategy_id: str) -> bool:
        with self._lock:
            removed = self.strategies.pop(strategy_id, None)
        if removed is None:
            self.logger.warning(f"Strategy {strategy_id} not found for removal")
            return False
        self.logger.info(f"Removed strategy {strategy_id}")
        return True

    def get_strategies(self) -> List[BaseStrategy]:
        return [strategy for _, strategy in self._snapshot()]

    def get_strategy(self, strategy_id: str) -> Optional[BaseStrategy]:
        with self._lock:
            return self.strategies.get(strategy_id)

    def get_strategy_ids(self) -> List[str]:
        return [strategy_id for strategy_id, _ in self._snapshot()]

    def clear_strategies(self) -> None:
        with self._lock:
            self.strategies.clear()
        self.logger.info("Cleared all strategies")

    def update_strategy(self, strategy_id: str, **changes) -> bool:
        """Swap in a freshly built strategy with the merged config"""
        with self._lock:
            current = self.strategies.get(strategy_id)
            if current is None:
                self.logger.warning(f"Strategy {strategy_id} not found for update")
                return False

            merged = {**current.config.to_dict(), **changes}
            if not self.factory.validate_config(merged):
                self.logger.warning(f"Rejected invalid config update for {strategy_id}: {changes}")
                return False

            try:
                replacement = self.factory.create_strategy(current.config.type, merged)
            except Exception as e:
                self.logger.error(f"Aggregator - Error in update_strategy: {str(e)}")
                return False
            self.strategies[strategy_id] = replacement

        self.logger.info(f"Updated strategy {strategy_id}: {changes}")
        return True

    def get_strategy_stats(self) -> Dict:
        snapshot = self._snapshot()
        strategy_types: Dict[str, int] = defaultdict(int)
        risk_levels: Dict[str, int] = defaultdict(int)
        for _, strategy in snapshot:
            strategy_types[strategy.config.type.value] += 1
            risk_levels[strategy.config.risk_tolerance.value] += 1
        return {
            "total_strategies": len(snapshot),
            "strategy_types": dict(strategy_types),
            "risk_levels": dict(risk_levels),
        }

    # Entry decisions

    def evaluate_strategies(self, token: Token, market_data: MarketData) -> Dict[str, StrategyDecision]:
        """Per-strategy decisions; failing strategies are left out"""
        decisions = {}
        for strategy_id, strategy in self._snapshot():
            try:
                decisions[strategy_id] = self._evaluate_single(strategy, token, market_data)
            except Exception as e:
                self.logger.error(f"Aggregator - Error executing strategy {strategy_id}: {str(e)}")
        return decisions

    def execute_strategy(self, token: Token, market_data: MarketData) -> StrategyDecision:
        try:
            self.logger.debug(f"Executing strategy analysis for {token.symbol}")
            decisions = self.evaluate_strategies(token, market_data)
            return self._aggregate(token, list(decisions.values()))
        except Exception as e:
            self.logger.error(f"Aggregator - Error in execute_strategy: {str(e)}")
            return safe_default_decision()

    async def execute_strategy_async(self, token: Token, market_data: MarketData) -> StrategyDecision:
        """Same as execute_strategy, with each strategy evaluated in its own worker thread"""
        try:
            snapshot = self._snapshot()
            results = await asyncio.gather(
                *(
                    asyncio.to_thread(self._evaluate_single, strategy, token, market_data)
                    for _, strategy in snapshot
                ),
                return_exceptions=True,
            )

            decisions = []
            for (strategy_id, _), result in zip(snapshot, results):
                if isinstance(result, BaseException):
                    self.logger.error(f"Aggregator - Error executing strategy {strategy_id}: {str(result)}")
                    continue
                decisions.append(result)
            return self._aggregate(token, decisions)
        except Exception as e:
            self.logger.error(f"Aggregator - Error in execute_strategy_async: {str(e)}")
            return safe_default_decision()

    def _evaluate_single(self, strategy: BaseStrategy, token: Token, market_data: MarketData) -> StrategyDecision:
        label = strategy.config.type.value

        if not strategy.should_enter(token, market_data):
            return StrategyDecision(
                should_enter=False,
                confidence=0.0,
                reasoning=f"{label} strategy: Entry criteria not met",
            )

        position_size = strategy.calculate_position_size(token, self.reference_portfolio_value)
        if position_size == 0:
            return StrategyDecision(
                should_enter=False,
                confidence=0.0,
                reasoning=f"{label} strategy: Position size too small",
            )

        return StrategyDecision(
            should_enter=True,
            confidence=self.calculate_confidence(strategy, token),
            reasoning=self.generate_reasoning(strategy, token),
            position_size=position_size,
            price_range=strategy.calculate_price_range(token, token.price, market_data.prices()),
        )

    def _aggregate(self, token: Token, decisions: List[StrategyDecision]) -> StrategyDecision:
        entering = [d for d in decisions if d.should_enter]

        # Non-entering decisions carry zero confidence and still count
        confidence = sum(d.confidence for d in decisions) / len(decisions) if decisions else 0.0

        if not entering:
            final_decision = StrategyDecision(
                should_enter=False,
                confidence=confidence,
                reasoning=NO_ENTRY_REASONING,
            )
        else:
            ranges = [d.price_range for d in entering if d.price_range]
            price_range = None
            if ranges:
                price_range = (
                    sum(r[0] for r in ranges) / len(ranges),
                    sum(r[1] for r in ranges) / len(ranges),
                )
            final_decision = StrategyDecision(
                should_enter=True,
                confidence=confidence,
                reasoning="; ".join(d.reasoning for d in entering),
                position_size=sum(d.position_size for d in entering) / len(entering),
                price_range=price_range,
            )

        self.logger.info(f"Final decision for {token.symbol}: {final_decision}")
        return final_decision

    def calculate_confidence(self, strategy: BaseStrategy, token: Token) -> float:
        """Heuristic 0-1 score from the token's headline numbers"""
        try:
            confidence = 0.5

            if token.sentiment > 0.5:
                confidence += 0.2
            elif token.sentiment > 0.3:
                confidence += 0.1
            elif token.sentiment < 0:
                confidence -= 0.1

            if token.volume_24h > 100_000:
                confidence += 0.1
            elif token.volume_24h < 10_000:
                confidence -= 0.1

            if token.market_cap > 500_000:
                confidence += 0.1
            elif token.market_cap < 100_000:
                confidence -= 0.1

            if token.tvl > 50_000:
                confidence += 0.1
            elif token.tvl < 10_000:
                confidence -= 0.1

            bonus_threshold = CONFIDENCE_SENTIMENT_BONUS.get(strategy.config.type)
            if bonus_threshold is not None and token.sentiment > bonus_threshold:
                confidence += 0.1

            return max(0.0, min(1.0, confidence))
        except Exception as e:
            self.logger.error(f"Aggregator - Error calculating confidence: {str(e)}")
            return 0.5

    def generate_reasoning(self, strategy: BaseStrategy, token: Token) -> str:
        label = strategy.config.type.value
        try:
            reasons = []

            if token.sentiment > 0.3:
                reasons.append("positive sentiment")
            elif token.sentiment < 0:
                reasons.append("negative sentiment")

            if token.volume_24h > 50_000:
                reasons.append("high volume")
            elif token.volume_24h < 10_000:
                reasons.append("low volume")

            if token.market_cap > 500_000:
                reasons.append("established market cap")
            elif token.market_cap < 100_000:
                reasons.append("small market cap")

            if token.tvl > 25_000:
                reasons.append("good liquidity")
            elif token.tvl < 10_000:
                reasons.append("low liquidity")

            if token.trending:
                reasons.append("trending token")

            return f"{label} strategy: {', '.join(reasons) or 'entry criteria met'}"
        except Exception as e:
            self.logger.error(f"Aggregator - Error generating reasoning: {str(e)}")
            return f"{label} strategy: Analysis completed"

    # Exit decisions

    def check_exit(self, position: Position, market_data: MarketData) -> bool:
        """Ask every strategy of the position's profile; exit if any says so"""
        try:
            strategy_type = StrategyType(position.strategy)
            evaluators = [s for _, s in self._snapshot() if s.config.type == strategy_type]
            if not evaluators:
                evaluators = [self.factory.create_strategy(strategy_type)]
            return any(s.should_exit(position, market_data) for s in evaluators)
        except Exception as e:
            self.logger.error(f"Aggregator - Error in check_exit: {str(e)}")
            return True

    def check_exits(self,
                    positions: Iterable[Position],
                    market_data_by_address: Mapping[str, MarketData]) -> Dict[str, bool]:
        """Exit flags for every active position, keyed by position id"""
        results = {}
        for position in positions:
            if position.status != PositionStatus.ACTIVE:
                continue
            market_data = market_data_by_address.get(position.token_address)
            if market_data is None:
                self.logger.warning(f"No market data for position {position.id}, flagging exit")
                results[position.id] = True
                continue
            results[position.id] = self.check_exit(position, market_data)
        return results

    # Helpers

    def _snapshot(self) -> List[Tuple[str, BaseStrategy]]:
        with self._lock:
            return list(self.strategies.items())

    def _generate_strategy_id(self, strategy: BaseStrategy) -> str:
        config = strategy.config
        base_id = f"{config.type.value}-{config.risk_tolerance.value}-{int(time.time() * 1000)}"
        strategy_id = base_id
        suffix = 1
        while strategy_id in self.strategies:
            strategy_id = f"{base_id}-{suffix}"
            suffix += 1
        return strategy_id
