"""Cost Tracker - advisory turn cost from a pluggable per-model rate table.

Uses Decimal for the arithmetic. Rates are USD per million tokens; the
estimate is never billed.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from codenova.domain.model.chat.streaming_turn import TokenUsage

MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelCost:
    """Model cost configuration (per million tokens in USD)."""

    input: Decimal
    output: Decimal
    cache_read: Decimal | None = None
    cache_write: Decimal | None = None

    @classmethod
    def per_million(cls, input_rate: float, output_rate: float) -> "ModelCost":
        return cls(input=Decimal(str(input_rate)), output=Decimal(str(output_rate)))


@dataclass
class CostResult:
    """Result of cost calculation."""

    cost: float
    tokens: TokenUsage

    def to_dict(self) -> dict[str, Any]:
        return {
            "cost": self.cost,
            "cost_formatted": f"${self.cost:.6f}",
            "tokens": self.tokens.to_dict(),
        }


# Flat Sonnet-class pricing, used for any model without its own entry
DEFAULT_COST = ModelCost(input=Decimal("3.00"), output=Decimal("15.00"))


@dataclass
class CostTracker:
    """
    Cumulative cost tracker for one chat controller.

    Example:
        tracker = CostTracker(rates={"claude-opus": ModelCost.per_million(15, 75)})
        result = tracker.calculate(TokenUsage(input_tokens=1000, output_tokens=500), "claude-opus-4")
    """

    rates: dict[str, ModelCost] = field(default_factory=dict)
    default_cost: ModelCost = DEFAULT_COST
    total_cost: Decimal = field(default=Decimal("0"), init=False)
    call_count: int = field(default=0, init=False)

    def calculate(self, usage: TokenUsage, model_name: str = "") -> CostResult:
        """Price one turn's usage and add it to the running total."""
        cost_info = self.get_cost_info(model_name)

        cost = Decimal(self._safe_int(usage.input_tokens)) * cost_info.input / MILLION
        cost += Decimal(self._safe_int(usage.output_tokens)) * cost_info.output / MILLION
        if usage.cache_read_tokens and cost_info.cache_read:
            cost += Decimal(self._safe_int(usage.cache_read_tokens)) * cost_info.cache_read / MILLION
        if usage.cache_creation_tokens and cost_info.cache_write:
            cost += (
                Decimal(self._safe_int(usage.cache_creation_tokens)) * cost_info.cache_write / MILLION
            )

        self.total_cost += cost
        self.call_count += 1
        return CostResult(cost=float(cost), tokens=usage)

    def get_cost_info(self, model_name: str) -> ModelCost:
        """Exact match first, then the first rate key contained in the model name."""
        model_lower = (model_name or "").lower()
        if model_lower in self.rates:
            return self.rates[model_lower]
        for key, cost in self.rates.items():
            if key in model_lower:
                return cost
        return self.default_cost

    def get_session_summary(self) -> dict[str, Any]:
        return {
            "total_cost": float(self.total_cost),
            "total_cost_formatted": f"${float(self.total_cost):.6f}",
            "call_count": self.call_count,
        }

    def reset(self) -> None:
        self.total_cost = Decimal("0")
        self.call_count = 0

    @staticmethod
    def _safe_int(value: Any) -> int:  # noqa: ANN401
        if value is None:
            return 0
        try:
            result = int(value)
            return result if result >= 0 else 0
        except (ValueError, TypeError):
            return 0
