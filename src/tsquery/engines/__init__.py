"""Query engines - one per supported backend protocol."""

from .base import EngineRequest, QueryEngine, RequestSettings
from .registry import EngineRegistry, get_engine, list_engines, register_engine

# Importing the modules registers the built-in engines
from . import graphite, prometheus  # noqa: F401,E402

__all__ = [
    "EngineRequest",
    "QueryEngine",
    "RequestSettings",
    "EngineRegistry",
    "get_engine",
    "list_engines",
    "register_engine",
]
