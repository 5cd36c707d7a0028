import asyncio
import threading

import pytest

from strategy_engine.core.aggregator import StrategyAggregator
from strategy_engine.core.types import (
    ERROR_REASONING,
    NO_ENTRY_REASONING,
    PositionStatus,
    StrategyType,
)
from strategy_engine.strategies.aggressive_strategy import AggressiveStrategy
from strategy_engine.strategies.balanced_strategy import BalancedStrategy
from strategy_engine.strategies.conservative_strategy import ConservativeStrategy
from conftest import make_position, with_token


class ExplodingStrategy(BalancedStrategy):
    def should_enter(self, token, market_data):
        raise RuntimeError("boom")


class RecordingExitStrategy(AggressiveStrategy):
    def __init__(self, answer, **kwargs):
        super().__init__(**kwargs)
        self.answer = answer
        self.calls = 0

    def should_exit(self, position, current_data):
        self.calls += 1
        return self.answer


@pytest.fixture
def aggregator(factory):
    return StrategyAggregator(factory)


def test_empty_registry_declines(aggregator, token, market_data) -> None:
    decision = aggregator.execute_strategy(token, market_data)

    assert decision.should_enter is False
    assert decision.confidence == 0
    assert decision.reasoning == NO_ENTRY_REASONING
    assert decision.position_size is None


def test_registry_add_remove_clear(aggregator) -> None:
    first = aggregator.add_strategy(AggressiveStrategy())
    second = aggregator.add_strategy(AggressiveStrategy())

    assert first != second
    assert first.startswith("aggressive-high-")
    assert set(aggregator.get_strategy_ids()) == {first, second}
    assert isinstance(aggregator.get_strategy(first), AggressiveStrategy)

    assert aggregator.remove_strategy(first) is True
    assert aggregator.remove_strategy(first) is False
    assert len(aggregator.get_strategies()) == 1

    aggregator.clear_strategies()
    assert aggregator.get_strategies() == []


def test_single_aggressive_entry(aggregator, token, market_data) -> None:
    aggregator.add_strategy(AggressiveStrategy())
    decision = aggregator.execute_strategy(token, market_data)

    assert decision.should_enter is True
    assert decision.position_size == pytest.approx(200.0)
    # 0.5 base + 0.1 sentiment + 0.1 market cap
    assert decision.confidence == pytest.approx(0.7)
    assert decision.reasoning == (
        "aggressive strategy: positive sentiment, established market cap, trending token"
    )
    low, high = decision.price_range
    assert 0 < low < token.price < high
    assert decision.price_range == pytest.approx(
        AggressiveStrategy().calculate_price_range(token, token.price, market_data.price_history)
    )
    # history-driven, not the 10% fallback band
    assert high - low < token.price * 0.10 * 0.99


def test_any_entry_wins_and_confidence_averages_all(aggregator, token, market_data) -> None:
    aggregator.add_strategy(AggressiveStrategy())
    aggregator.add_strategy(BalancedStrategy())
    aggregator.add_strategy(ConservativeStrategy())

    decision = aggregator.execute_strategy(token, market_data)

    assert decision.should_enter is True
    # Aggressive 200, balanced 27.225; conservative declines
    assert decision.position_size == pytest.approx((200.0 + 27.225) / 2)
    # Aggressive 0.7, balanced 0.8 (sentiment bonus), conservative 0
    assert decision.confidence == pytest.approx((0.7 + 0.8 + 0.0) / 3)
    parts = decision.reasoning.split("; ")
    assert sorted(p.split(" ")[0] for p in parts) == ["aggressive", "balanced"]


def test_nobody_enters(aggregator, market_data) -> None:
    aggregator.add_strategy(AggressiveStrategy())
    aggregator.add_strategy(BalancedStrategy())
    token, data = with_token(market_data, trending=False)

    decision = aggregator.execute_strategy(token, data)

    assert decision.should_enter is False
    assert decision.confidence == 0
    assert decision.reasoning == NO_ENTRY_REASONING


def test_zero_size_counts_as_no_entry(aggregator, market_data) -> None:
    aggregator.add_strategy(AggressiveStrategy())
    # Passes entry gates but sizes below the $100 floor on a tiny reference portfolio
    aggregator.reference_portfolio_value = 1_000
    token, data = with_token(market_data)

    decisions = aggregator.evaluate_strategies(token, data)

    (decision,) = decisions.values()
    assert decision.should_enter is False
    assert "Position size too small" in decision.reasoning


def test_failing_strategy_is_isolated(aggregator, token, market_data, caplog) -> None:
    aggregator.add_strategy(ExplodingStrategy())
    aggregator.add_strategy(AggressiveStrategy())

    decision = aggregator.execute_strategy(token, market_data)

    assert decision.should_enter is True
    assert decision.position_size == pytest.approx(200.0)
    assert decision.confidence == pytest.approx(0.7)
    assert "boom" in caplog.text


def test_async_execution_matches_sync(aggregator, token, market_data) -> None:
    aggregator.add_strategy(AggressiveStrategy())
    aggregator.add_strategy(BalancedStrategy())
    aggregator.add_strategy(ExplodingStrategy())

    sync_decision = aggregator.execute_strategy(token, market_data)
    async_decision = asyncio.run(aggregator.execute_strategy_async(token, market_data))

    assert async_decision.should_enter == sync_decision.should_enter
    assert async_decision.position_size == pytest.approx(sync_decision.position_size)
    assert async_decision.confidence == pytest.approx(sync_decision.confidence)


def test_total_failure_returns_safe_default(aggregator, market_data) -> None:
    aggregator.add_strategy(AggressiveStrategy())
    decision = aggregator.execute_strategy(None, market_data)

    assert decision.should_enter is False
    assert decision.confidence == 0
    assert decision.reasoning == ERROR_REASONING


@pytest.mark.parametrize("changes, expected", [
    ({"sentiment": 0.6, "volume_24h": 200_000, "market_cap": 600_000, "tvl": 60_000}, 1.0),
    ({"sentiment": -0.5, "volume_24h": 5_000, "market_cap": 50_000, "tvl": 5_000}, 0.1),
    ({"sentiment": 0.2, "volume_24h": 50_000, "market_cap": 200_000, "tvl": 20_000}, 0.5),
])
def test_confidence_bands(aggregator, market_data, changes, expected) -> None:
    token, _ = with_token(market_data, **changes)
    assert aggregator.calculate_confidence(ConservativeStrategy(), token) == pytest.approx(expected)


def test_reasoning_lists_negative_signals(aggregator, market_data) -> None:
    token, _ = with_token(
        market_data, sentiment=-0.2, volume_24h=5_000, market_cap=50_000, tvl=5_000, trending=False
    )
    assert aggregator.generate_reasoning(BalancedStrategy(), token) == (
        "balanced strategy: negative sentiment, low volume, small market cap, low liquidity"
    )


def test_update_replaces_instance(aggregator) -> None:
    strategy_id = aggregator.add_strategy(BalancedStrategy())
    original = aggregator.get_strategy(strategy_id)

    assert aggregator.update_strategy(strategy_id, stop_loss=0.05) is True

    updated = aggregator.get_strategy(strategy_id)
    assert updated is not original
    assert updated.config.stop_loss == 0.05
    assert updated.config.take_profit == original.config.take_profit
    assert original.config.stop_loss == 0.10


def test_update_rejects_invalid_or_unknown(aggregator) -> None:
    strategy_id = aggregator.add_strategy(BalancedStrategy())
    original = aggregator.get_strategy(strategy_id)

    assert aggregator.update_strategy(strategy_id, max_position_size=0.5) is False
    assert aggregator.get_strategy(strategy_id) is original
    assert aggregator.update_strategy("missing-id", stop_loss=0.05) is False


def test_strategy_stats(aggregator) -> None:
    aggregator.add_strategy(AggressiveStrategy())
    aggregator.add_strategy(AggressiveStrategy())
    aggregator.add_strategy(ConservativeStrategy())

    assert aggregator.get_strategy_stats() == {
        "total_strategies": 3,
        "strategy_types": {"aggressive": 2, "conservative": 1},
        "risk_levels": {"high": 2, "low": 1},
    }


def test_check_exit_asks_matching_profile_only(aggregator, market_data) -> None:
    holding = RecordingExitStrategy(answer=False)
    aggregator.add_strategy(holding)
    aggregator.add_strategy(ExplodingStrategy())

    position = make_position(StrategyType.AGGRESSIVE, pnl=10)
    assert aggregator.check_exit(position, market_data) is False
    assert holding.calls == 1

    aggregator.add_strategy(RecordingExitStrategy(answer=True))
    assert aggregator.check_exit(position, market_data) is True


def test_check_exit_without_registered_profile_uses_default(aggregator, market_data) -> None:
    position = make_position(StrategyType.CONSERVATIVE, pnl=-100)
    assert aggregator.check_exit(position, market_data) is True


def test_check_exit_bad_position_fails_open(aggregator, market_data) -> None:
    assert aggregator.check_exit(None, market_data) is True


def test_check_exits_skips_inactive_and_flags_missing_data(aggregator, market_data) -> None:
    aggregator.add_strategy(RecordingExitStrategy(answer=False))
    positions = [
        make_position(StrategyType.AGGRESSIVE, id="live"),
        make_position(StrategyType.AGGRESSIVE, id="closed", status=PositionStatus.CLOSED),
        make_position(StrategyType.AGGRESSIVE, id="orphan", token_address="unknown"),
    ]

    results = aggregator.check_exits(positions, {market_data.token.address: market_data})

    assert results == {"live": False, "orphan": True}


def test_registry_is_safe_under_concurrent_updates(aggregator, token, market_data) -> None:
    ids = [aggregator.add_strategy(BalancedStrategy()) for _ in range(5)]
    errors = []

    def churn():
        try:
            for i in range(50):
                aggregator.update_strategy(ids[i % len(ids)], stop_loss=0.05 + (i % 5) * 0.01)
        except Exception as e:  # pragma: no cover
            errors.append(e)

    worker = threading.Thread(target=churn)
    worker.start()
    for _ in range(20):
        aggregator.execute_strategy(token, market_data)
    worker.join()

    assert errors == []
    assert len(aggregator.get_strategies()) == 5
