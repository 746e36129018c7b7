"""Engine registry - maps datasource types to query engines."""

from typing import Optional, Type
import logging

from ..errors import UnsupportedEngineError
from ..types import DataSourceType
from .base import QueryEngine

logger = logging.getLogger(__name__)


class EngineRegistry:
    """
    Registry for query engines.

    Engines register themselves here and are looked up by datasource type.
    Engines are stateless, so one shared instance serves every adapter.
    """

    _engines: dict[DataSourceType, QueryEngine] = {}

    @classmethod
    def register(cls, engine_type: DataSourceType, engine_class: Type[QueryEngine]):
        """Register a query engine class."""
        cls._engines[engine_type] = engine_class()
        logger.debug(f"Registered query engine: {engine_type}")

    @classmethod
    def get(cls, engine_type) -> Optional[QueryEngine]:
        """Get an engine by datasource type."""
        return cls._engines.get(engine_type)

    @classmethod
    def list_types(cls) -> list[DataSourceType]:
        """List all registered datasource types."""
        return list(cls._engines.keys())

    @classmethod
    def is_registered(cls, engine_type) -> bool:
        """Check if an engine is registered for the type."""
        return engine_type in cls._engines


def register_engine(engine_type: DataSourceType):
    """
    Decorator to register a query engine class.

    Usage:
        @register_engine(DataSourceType.GRAPHITE)
        class GraphiteEngine(QueryEngine):
            ...
    """
    def decorator(cls: Type[QueryEngine]):
        cls.engine_type = engine_type
        EngineRegistry.register(engine_type, cls)
        return cls
    return decorator


def get_engine(engine_type) -> QueryEngine:
    """Get the engine for a datasource type or fail naming the type."""
    engine = EngineRegistry.get(engine_type)
    if engine is None:
        raise UnsupportedEngineError(engine_type)
    return engine


def list_engines() -> list[DataSourceType]:
    """List all registered datasource types."""
    return EngineRegistry.list_types()
