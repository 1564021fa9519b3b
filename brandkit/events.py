"""
Typed events emitted by the pipeline.

Stages never touch a Job directly: they emit `ProgressEvent` / `CostEvent`
to a sink, and the sink owner (the job manager, the CLI, a test) decides what
to do with them.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Protocol, Union

if TYPE_CHECKING:
    from .cost import CostInfo


@dataclass(frozen=True)
class ProgressEvent:
    message: str


@dataclass(frozen=True)
class CostEvent:
    amount: float
    category: str
    cost: "CostInfo"


Event = Union[ProgressEvent, CostEvent]


class EventSink(Protocol):
    def emit(self, event: Event) -> None:
        ...


class NullSink:
    def emit(self, event: Event) -> None:
        return None


class ListSink:
    """Collects every event in order. Handy in tests."""

    def __init__(self) -> None:
        self.events: List[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.events if isinstance(e, ProgressEvent)]


class CallbackSink:
    def __init__(
        self,
        on_progress: Optional[Callable[[str], Any]] = None,
        on_cost: Optional[Callable[["CostInfo"], Any]] = None,
    ) -> None:
        self.on_progress = on_progress
        self.on_cost = on_cost

    def emit(self, event: Event) -> None:
        if isinstance(event, ProgressEvent) and self.on_progress:
            self.on_progress(event.message)
        elif isinstance(event, CostEvent) and self.on_cost:
            self.on_cost(event.cost)
