"""Base interfaces shared by every query engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, NamedTuple, Optional

from .types import DataSourceType


class Sample(NamedTuple):
    """A single (timestamp, value) point. Timestamps are unix seconds."""
    timestamp: int
    value: float


@dataclass
class Metric:
    """A series returned by any engine: a label set plus ordered samples."""

    labels: dict[str, str] = field(default_factory=dict)
    samples: list[Sample] = field(default_factory=list)

    def label(self, name: str) -> str:
        """Return the label value or an empty string if it isn't set."""
        return self.labels.get(name, "")

    def set_label(self, name: str, value: str) -> None:
        """Set a label, replacing any existing value."""
        self.labels[name] = value

    def add_sample(self, timestamp: int, value: float) -> None:
        self.samples.append(Sample(int(timestamp), float(value)))

    @property
    def timestamps(self) -> list[int]:
        return [s.timestamp for s in self.samples]

    @property
    def values(self) -> list[float]:
        return [s.value for s in self.samples]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display or JSON output."""
        return {
            "labels": dict(self.labels),
            "samples": [[s.timestamp, s.value] for s in self.samples],
        }


@dataclass
class QueryOverrides:
    """
    Per-call customisations applied on top of a base adapter.

    engine_type and extra_params are optional. evaluation_interval is always
    applied, so leaving it unset resets the interval to zero.
    Values in extra_params win over the adapter's own on key conflicts.
    """

    engine_type: Optional[DataSourceType] = None
    evaluation_interval: timedelta = field(default_factory=timedelta)
    extra_params: Optional[dict[str, list[str]]] = None


class Querier(ABC):
    """
    Executes queries against a backend.

    Both operations are coroutines bound to the calling task: cancelling the
    task aborts the in-flight request.
    """

    @abstractmethod
    async def query(self, expr: str, ts: datetime) -> list[Metric]:
        """
        Execute an instant query evaluated at ts.

        Returns:
            Parsed metrics, one per matched series
        """
        pass

    @abstractmethod
    async def query_range(self, expr: str, start: Optional[datetime], end: Optional[datetime]) -> list[Metric]:
        """
        Execute a range query between start and end.

        Returns:
            Parsed metrics with every sample in the range
        """
        pass


class QuerierBuilder(ABC):
    """Builds customised queriers without touching the builder itself."""

    @abstractmethod
    def build_with_params(self, overrides: QueryOverrides) -> Querier:
        pass
