from dataclasses import dataclass, field, replace
from typing import Dict, Literal, Optional

from .events import CostEvent, EventSink


CostCategory = Literal["backgrounds", "heroes"]


@dataclass(frozen=True)
class CostBreakdown:
    backgrounds: float = 0.0
    heroes: float = 0.0


@dataclass(frozen=True)
class CostInfo:
    """Snapshot of what a run has spent so far, in USD."""

    total_cost: float = 0.0
    api_calls: int = 0
    breakdown: CostBreakdown = field(default_factory=CostBreakdown)

    def to_dict(self) -> Dict[str, object]:
        return {
            "totalCost": round(self.total_cost, 6),
            "apiCalls": self.api_calls,
            "breakdown": {
                "backgrounds": round(self.breakdown.backgrounds, 6),
                "heroes": round(self.breakdown.heroes, 6),
            },
        }


class CostLedger:
    """
    Per-run accumulator of external call costs.

    Every `add` is one successful external call; the updated snapshot is
    emitted to the sink as a `CostEvent`.
    """

    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self._sink = sink
        self._info = CostInfo()

    @property
    def info(self) -> CostInfo:
        return self._info

    def add(self, amount: float, category: CostCategory) -> CostInfo:
        if amount < 0:
            raise ValueError(f"Cost delta must not be negative, got {amount}")
        if category not in ("backgrounds", "heroes"):
            raise ValueError(f"Unknown cost category: {category}")

        breakdown = replace(
            self._info.breakdown,
            **{category: getattr(self._info.breakdown, category) + amount},
        )
        self._info = CostInfo(
            total_cost=self._info.total_cost + amount,
            api_calls=self._info.api_calls + 1,
            breakdown=breakdown,
        )
        if self._sink is not None:
            self._sink.emit(CostEvent(amount=amount, category=category, cost=self._info))
        return self._info
