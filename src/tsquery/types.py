"""Datasource type - names the query engine a backend speaks."""

from enum import Enum


class DataSourceType(str, Enum):
    """Query engines supported by the backend adapter."""
    PROMETHEUS = "prometheus"
    GRAPHITE = "graphite"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | DataSourceType | None") -> "DataSourceType":
        """
        Resolve a configured engine name.

        Empty values default to prometheus. Unknown names raise ValueError.
        """
        if isinstance(value, cls):
            return value
        name = (value or "").strip().lower()
        if not name:
            return cls.PROMETHEUS
        try:
            return cls(name)
        except ValueError:
            known = ", ".join(t.value for t in cls)
            raise ValueError(f"unknown datasource type {value!r}, expected one of: {known}") from None
