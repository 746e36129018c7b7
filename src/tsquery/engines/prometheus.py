"""Prometheus engine - encodes PromQL queries and parses Prometheus API responses."""

from datetime import datetime, timedelta
from typing import Any
import logging

import httpx

from ..base import Metric
from ..errors import ParseError
from ..types import DataSourceType
from .base import EngineRequest, QueryEngine, RequestSettings, format_step, redacted_url, unix_seconds
from .registry import register_engine

logger = logging.getLogger(__name__)

PROMETHEUS_PREFIX = "/prometheus"
INSTANT_PATH = "/api/v1/query"
RANGE_PATH = "/api/v1/query_range"

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@register_engine(DataSourceType.PROMETHEUS)
class PrometheusEngine(QueryEngine):
    """
    Query engine for the Prometheus HTTP API.

    See https://prometheus.io/docs/prometheus/latest/querying/api/

    Instant queries are sent to /api/v1/query with `query` and `time`;
    range queries to /api/v1/query_range with `query`, `start`, `end` and
    `step`. Timestamps are unix seconds.
    """

    supports_range = True

    def instant_request(self, settings: RequestSettings, query: str, ts: datetime) -> EngineRequest:
        req = EngineRequest(path=self._path(settings, INSTANT_PATH))

        if settings.lookback > timedelta(0):
            ts = ts - settings.lookback
        timestamp = unix_seconds(ts)

        interval = settings.evaluation_interval
        if interval > timedelta(0):
            req.set("step", format_step(interval))
            # Align to the evaluation interval so repeated evaluations hit the same points
            seconds = int(interval.total_seconds())
            if seconds > 0:
                timestamp -= timestamp % seconds

        req.set("time", str(timestamp))
        self._set_common(req, settings, query)
        return req

    def range_request(
        self,
        settings: RequestSettings,
        query: str,
        start: datetime,
        end: datetime,
    ) -> EngineRequest:
        req = EngineRequest(path=self._path(settings, RANGE_PATH))
        req.set("start", str(unix_seconds(start)))
        req.set("end", str(unix_seconds(end)))
        if settings.evaluation_interval > timedelta(0):
            req.set("step", format_step(settings.evaluation_interval))
        self._set_common(req, settings, query)
        return req

    def _path(self, settings: RequestSettings, handler: str) -> str:
        path = ""
        if settings.append_type_prefix:
            path += PROMETHEUS_PREFIX
        if not settings.disable_path_append:
            path += handler
        return path

    def _set_common(self, req: EngineRequest, settings: RequestSettings, query: str) -> None:
        req.add_extra(settings.extra_params)
        req.set("query", query)
        if settings.query_step > timedelta(0):
            # Explicit query step always wins over the evaluation interval
            req.set("step", format_step(settings.query_step))

    def parse_response(self, request: httpx.Request, response: httpx.Response) -> list[Metric]:
        return parse_prometheus_response(request, response)


def parse_prometheus_response(request: httpx.Request, response: httpx.Response) -> list[Metric]:
    """Parse a Prometheus API response into metrics."""
    try:
        payload = response.json()
    except ValueError as e:
        raise ParseError(f"error parsing prometheus metrics for {redacted_url(request.url)}: {e}") from e

    if not isinstance(payload, dict):
        raise ParseError(f"error parsing prometheus metrics for {redacted_url(request.url)}: expected a JSON object")

    status = payload.get("status")
    if status == STATUS_ERROR:
        raise ParseError(
            f"response error, query: {redacted_url(request.url)}, "
            f"errorType: {payload.get('errorType', '')}, error: {payload.get('error', '')}",
            {"error_type": payload.get("errorType", "")},
        )
    if status != STATUS_SUCCESS:
        raise ParseError(f"unknown status: {status}, expected success or error")

    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise ParseError(f"error parsing prometheus metrics for {redacted_url(request.url)}: expected data to be an object")
    result_type = data.get("resultType")
    result = data.get("result")

    try:
        if result_type == "vector":
            return [_parse_vector_item(item) for item in result or []]
        if result_type == "matrix":
            return [_parse_matrix_item(item) for item in result or []]
        if result_type == "scalar":
            return [_parse_scalar(result)]
    except (AttributeError, TypeError, ValueError, KeyError, IndexError) as e:
        raise ParseError(f"error parsing {result_type} result for {redacted_url(request.url)}: {e}") from e

    raise ParseError(f"unknown result type {result_type!r}")


def _parse_sample(point: Any) -> tuple[int, float]:
    ts, value = point
    return int(float(ts)), float(value)


def _parse_vector_item(item: dict) -> Metric:
    metric = Metric(labels={str(k): str(v) for k, v in item.get("metric", {}).items()})
    metric.add_sample(*_parse_sample(item["value"]))
    return metric


def _parse_matrix_item(item: dict) -> Metric:
    metric = Metric(labels={str(k): str(v) for k, v in item.get("metric", {}).items()})
    for point in item.get("values", []):
        metric.add_sample(*_parse_sample(point))
    return metric


def _parse_scalar(result: Any) -> Metric:
    metric = Metric()
    metric.add_sample(*_parse_sample(result))
    return metric
