"""tsquery - Uniform query adapter for Prometheus and Graphite compatible datasources."""

__version__ = "0.1.0"

from .auth import AuthConfig, AuthProvider
from .base import Metric, Querier, QuerierBuilder, QueryOverrides, Sample
from .errors import (
    DatasourceError,
    MissingParameterError,
    ParseError,
    RequestBuildError,
    TransportError,
    UnexpectedStatusError,
    UnsupportedEngineError,
    UnsupportedOperationError,
)
from .storage import BackendAdapter
from .types import DataSourceType

__all__ = [
    "AuthConfig",
    "AuthProvider",
    "BackendAdapter",
    "DataSourceType",
    "Metric",
    "Querier",
    "QuerierBuilder",
    "QueryOverrides",
    "Sample",
    "DatasourceError",
    "MissingParameterError",
    "ParseError",
    "RequestBuildError",
    "TransportError",
    "UnexpectedStatusError",
    "UnsupportedEngineError",
    "UnsupportedOperationError",
]
