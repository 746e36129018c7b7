"""Graphite engine - encodes render API targets and parses render JSON."""

from datetime import datetime, timedelta
import logging
import math

import httpx

from ..base import Metric
from ..errors import ParseError
from ..types import DataSourceType
from .base import EngineRequest, QueryEngine, RequestSettings, redacted_url, unix_seconds
from .registry import register_engine

logger = logging.getLogger(__name__)

GRAPHITE_PREFIX = "/graphite"
RENDER_PATH = "/render"
DEFAULT_FROM = "-5min"


@register_engine(DataSourceType.GRAPHITE)
class GraphiteEngine(QueryEngine):
    """
    Query engine for the Graphite render API.

    See https://graphite.readthedocs.io/en/latest/render_api.html

    Only instant-style queries are supported: the target is rendered from
    `-5min` (or ts minus the lookback) until now and the last datapoint of
    each series is kept.
    """

    supports_range = False

    def instant_request(self, settings: RequestSettings, query: str, ts: datetime) -> EngineRequest:
        path = GRAPHITE_PREFIX if settings.append_type_prefix else ""
        req = EngineRequest(path=path + RENDER_PATH)

        from_ = DEFAULT_FROM
        if settings.lookback > timedelta(0):
            from_ = str(unix_seconds(ts - settings.lookback))

        req.set("from", from_)
        req.set("format", "json")
        req.set("target", query)
        req.set("until", "now")
        req.add_extra(settings.extra_params)
        return req

    def parse_response(self, request: httpx.Request, response: httpx.Response) -> list[Metric]:
        return parse_graphite_response(request, response)


def parse_graphite_response(request: httpx.Request, response: httpx.Response) -> list[Metric]:
    """Parse a Graphite render response, keeping the last datapoint per series."""
    try:
        payload = response.json()
    except ValueError as e:
        raise ParseError(f"error parsing graphite metrics for {redacted_url(request.url)}: {e}") from e

    if not isinstance(payload, list):
        raise ParseError(f"error parsing graphite metrics for {redacted_url(request.url)}: expected a JSON list")

    metrics = []
    try:
        for target in payload:
            datapoints = target.get("datapoints") or []
            if not datapoints:
                logger.debug(f"Skipping graphite target without datapoints: {target.get('target')}")
                continue

            value, ts = datapoints[-1]
            metric = Metric()
            metric.add_sample(int(ts), math.nan if value is None else float(value))
            for name, label_value in (target.get("tags") or {}).items():
                metric.set_label(str(name), str(label_value))
            metrics.append(metric)
    except (AttributeError, TypeError, ValueError) as e:
        raise ParseError(f"error parsing graphite metrics for {redacted_url(request.url)}: {e}") from e

    return metrics
