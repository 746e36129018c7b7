"""Backend adapter - executes instant and range queries against a datasource."""

import copy
import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from .auth import AuthProvider
from .base import Metric, Querier, QuerierBuilder, QueryOverrides
from .engines import EngineRegistry, get_engine
from .engines.base import EngineRequest, QueryEngine, RequestSettings, redacted_url
from .errors import (
    MissingParameterError,
    RequestBuildError,
    TransportError,
    UnexpectedStatusError,
    UnsupportedOperationError,
)
from .types import DataSourceType

logger = logging.getLogger(__name__)


class BackendAdapter(Querier, QuerierBuilder):
    """
    Query adapter for a remote time-series backend.

    One base adapter is built at startup and shared by every caller. Queries
    only read its configuration. Customised variants are obtained through
    build_with_params, which works on a clone and never touches the base.

    The httpx client and auth provider are owned by the caller and shared by
    reference with every clone.

    When adding a new attribute, make sure clone() still copies it correctly.
    """

    def __init__(
        self,
        endpoint_url: str,
        client: httpx.AsyncClient,
        auth: Optional[AuthProvider] = None,
        lookback: timedelta = timedelta(0),
        query_step: timedelta = timedelta(0),
        append_type_prefix: bool = False,
        disable_path_append: bool = False,
    ):
        self.client = client
        self.auth = auth
        self.endpoint_url = endpoint_url.rstrip("/")
        self.append_type_prefix = append_type_prefix
        self.disable_path_append = disable_path_append
        self.lookback = lookback
        self.query_step = query_step

        self.engine_type: DataSourceType = DataSourceType.PROMETHEUS
        self.evaluation_interval = timedelta(0)
        self.extra_params: dict[str, list[str]] = {}

    def clone(self) -> "BackendAdapter":
        """Copy the adapter. extra_params is deep-copied, client and auth are shared."""
        ns = copy.copy(self)
        ns.extra_params = {key: list(values) for key, values in self.extra_params.items()}
        return ns

    def apply_overrides(self, overrides: QueryOverrides) -> "BackendAdapter":
        """
        Apply overrides in place and return self.

        Only call this on a fresh clone that no other task can see yet.
        """
        if overrides.engine_type is not None:
            self.engine_type = overrides.engine_type
        self.evaluation_interval = overrides.evaluation_interval
        if overrides.extra_params:
            for key, values in overrides.extra_params.items():
                if values:
                    # Last value for a key wins over the adapter's defaults
                    self.extra_params[key] = [values[-1]]
        return self

    def build_with_params(self, overrides: QueryOverrides) -> Querier:
        return self.clone().apply_overrides(overrides)

    async def query(self, expr: str, ts: datetime) -> list[Metric]:
        """Execute an instant query for the configured engine."""
        engine = get_engine(self.engine_type)
        request = self._new_request(engine.instant_request(self._settings(), expr, ts))
        return await self._execute(engine, request)

    async def query_range(self, expr: str, start: Optional[datetime], end: Optional[datetime]) -> list[Metric]:
        """
        Execute a range query between start and end.

        Only the prometheus engine supports range queries.
        """
        engine = EngineRegistry.get(self.engine_type)
        if engine is None or not engine.supports_range:
            raise UnsupportedOperationError(self.engine_type, "query_range")
        if start is None:
            raise MissingParameterError("start")
        if end is None:
            raise MissingParameterError("end")

        request = self._new_request(engine.range_request(self._settings(), expr, start, end))
        return await self._execute(engine, request)

    def _settings(self) -> RequestSettings:
        return RequestSettings(
            append_type_prefix=self.append_type_prefix,
            disable_path_append=self.disable_path_append,
            lookback=self.lookback,
            query_step=self.query_step,
            evaluation_interval=self.evaluation_interval,
            extra_params=self.extra_params,
        )

    def _new_request(self, engine_req: EngineRequest) -> httpx.Request:
        """Build the POST request and attach auth headers."""
        try:
            url = httpx.URL(self.endpoint_url + engine_req.path)
            if url.scheme not in ("http", "https") or not url.host:
                raise RequestBuildError(
                    f"invalid datasource url {redacted_url(url)!r}: expected http(s)://host[:port][/path]"
                )
            request = httpx.Request(
                "POST",
                url,
                params=engine_req.params,
                headers={"Content-Type": "application/json"},
            )
        except httpx.InvalidURL as e:
            raise RequestBuildError(f"invalid datasource url: {e}") from e

        if self.auth is not None:
            self.auth.set_headers(request, True)
        return request

    async def _execute(self, engine: QueryEngine, request: httpx.Request) -> list[Metric]:
        """Send the request, validate the response and parse it with the engine."""
        response = await self._do(request)
        try:
            try:
                await response.aread()
            except httpx.HTTPError as e:
                raise TransportError(redacted_url(request.url), e) from e
            metrics = engine.parse_response(request, response)
        finally:
            await response.aclose()

        logger.debug(f"Query returned {len(metrics)} series from {redacted_url(request.url)}")
        return metrics

    async def _do(self, request: httpx.Request) -> httpx.Response:
        endpoint = redacted_url(request.url)
        logger.debug(f"Sending {self.engine_type} query to {endpoint}")

        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.warning(f"Error getting response from {endpoint}: {e}")
            raise TransportError(endpoint, e) from e

        if response.status_code != httpx.codes.OK:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError as e:
                body = f"<failed to read body: {e}>"
            finally:
                await response.aclose()
            logger.warning(f"Unexpected response code {response.status_code} for {endpoint}")
            raise UnexpectedStatusError(response.status_code, endpoint, body)

        return response
