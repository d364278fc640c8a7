"""Tests for CostTracker."""

from decimal import Decimal

import pytest

from codenova.domain.model.chat.streaming_turn import TokenUsage
from codenova.infrastructure.llm.cost_tracker import CostTracker, ModelCost


@pytest.mark.unit
class TestCostTracker:
    def test_default_rates(self):
        tracker = CostTracker()

        result = tracker.calculate(TokenUsage(input_tokens=1_000_000, output_tokens=1_000_000))

        assert result.cost == pytest.approx(18.0)

    def test_small_turn(self):
        tracker = CostTracker()

        result = tracker.calculate(TokenUsage(input_tokens=1000, output_tokens=500), "claude-sonnet-4")

        # 1000 * 3/1M + 500 * 15/1M
        assert result.cost == pytest.approx(0.0105)

    def test_rate_table_fuzzy_match(self):
        tracker = CostTracker(rates={"claude-opus": ModelCost.per_million(15, 75)})

        cost_info = tracker.get_cost_info("claude-opus-4-5-20250514")

        assert cost_info.input == Decimal("15")
        assert tracker.get_cost_info("gpt-4o") == tracker.default_cost

    def test_cache_tokens_only_priced_when_rate_set(self):
        usage = TokenUsage(cache_read_tokens=1_000_000, cache_creation_tokens=1_000_000)

        assert CostTracker().calculate(usage).cost == 0
        priced = CostTracker(
            default_cost=ModelCost(
                input=Decimal("3"),
                output=Decimal("15"),
                cache_read=Decimal("0.30"),
                cache_write=Decimal("3.75"),
            )
        )
        assert priced.calculate(usage).cost == pytest.approx(4.05)

    def test_session_totals_and_reset(self):
        tracker = CostTracker()
        tracker.calculate(TokenUsage(input_tokens=1_000_000))
        tracker.calculate(TokenUsage(output_tokens=1_000_000))

        summary = tracker.get_session_summary()
        assert summary["call_count"] == 2
        assert summary["total_cost"] == pytest.approx(18.0)

        tracker.reset()
        assert tracker.get_session_summary()["total_cost"] == 0

    def test_negative_counts_are_clamped(self):
        result = CostTracker().calculate(TokenUsage(input_tokens=-5, output_tokens=0))

        assert result.cost == 0
