"""Base interface for query engines.

An engine is the pair of collaborators that knows one query protocol: it
encodes request parameters and parses response bodies into metrics. The
adapter never looks at the payload itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

from ..base import Metric
from ..errors import UnsupportedOperationError


@dataclass
class RequestSettings:
    """Adapter settings an engine needs to encode a request."""

    append_type_prefix: bool = False
    disable_path_append: bool = False
    lookback: timedelta = field(default_factory=timedelta)
    query_step: timedelta = field(default_factory=timedelta)
    evaluation_interval: timedelta = field(default_factory=timedelta)
    extra_params: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class EngineRequest:
    """Path suffix and ordered query params for one request."""

    path: str = ""
    params: list[tuple[str, str]] = field(default_factory=list)

    def has(self, key: str) -> bool:
        return any(k == key for k, _ in self.params)

    def set(self, key: str, value: str) -> None:
        """Replace every value of key with a single value."""
        self.params = [(k, v) for k, v in self.params if k != key]
        self.params.append((key, value))

    def add_extra(self, extra_params: dict[str, list[str]]) -> None:
        """Add extra params, skipping keys the engine already set."""
        for key, values in extra_params.items():
            if self.has(key):
                continue
            for value in values:
                self.params.append((key, value))


class QueryEngine(ABC):
    """
    Abstract base class for query engines.

    Implement this interface and register it with @register_engine to add
    support for a new query protocol.
    """

    # Set by @register_engine
    engine_type = None
    supports_range = False

    @abstractmethod
    def instant_request(self, settings: RequestSettings, query: str, ts: datetime) -> EngineRequest:
        """Encode an instant query evaluated at ts."""
        pass

    def range_request(
        self,
        settings: RequestSettings,
        query: str,
        start: datetime,
        end: datetime,
    ) -> EngineRequest:
        """Encode a range query. Engines without range support refuse it."""
        raise UnsupportedOperationError(self.engine_type, "query_range")

    @abstractmethod
    def parse_response(self, request: httpx.Request, response: httpx.Response) -> list[Metric]:
        """
        Parse a validated (status 200) response whose body is already read.

        Raises:
            ParseError: If the payload is malformed or reports an error
        """
        pass


def unix_seconds(ts: datetime) -> int:
    """Unix timestamp in whole seconds, treating naive datetimes as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp())


def format_step(step: timedelta) -> str:
    return f"{int(step.total_seconds())}s"


def redacted_url(url: Optional[httpx.URL]) -> str:
    """Render a URL with its password replaced."""
    if url is None:
        return ""
    if url.password:
        url = url.copy_with(password="xxxxx")
    return str(url)
