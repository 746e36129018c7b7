"""Configuration management for tsquery."""

import math
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml

from .auth import AuthConfig
from .base import QueryOverrides
from .storage import BackendAdapter
from .types import DataSourceType

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d|w)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def _seconds(value: float) -> timedelta:
    if not math.isfinite(value):
        raise ValueError(f"invalid duration {value!r}")
    try:
        return timedelta(seconds=value)
    except OverflowError as e:
        raise ValueError(f"invalid duration {value!r}: {e}") from e


def parse_duration(value: "str | int | float | timedelta | None") -> timedelta:
    """
    Parse a duration such as "30s", "5m" or "1h30m".

    Bare numbers are seconds. None and empty strings mean zero.
    """
    if value is None:
        return timedelta(0)
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return _seconds(value)

    text = value.strip()
    if not text:
        return timedelta(0)
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        return _seconds(seconds)

    pos = 0
    total = timedelta(0)
    try:
        for match in _DURATION_RE.finditer(text):
            if match.start() != pos:
                break
            total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
    except OverflowError as e:
        raise ValueError(f"invalid duration {value!r}: {e}") from e
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration {value!r}")
    return total


def _parse_query_params(raw: Any) -> dict[str, list[str]]:
    """Accept {"k": "v"}, {"k": ["v1", "v2"]} or a "k=v&k2=v2" string."""
    if not raw:
        return {}
    if isinstance(raw, str):
        params: dict[str, list[str]] = {}
        for key, value in httpx.QueryParams(raw).multi_items():
            params.setdefault(key, []).append(value)
        return params
    params = {}
    for key, value in raw.items():
        if isinstance(value, (list, tuple)):
            params[str(key)] = [str(v) for v in value]
        else:
            params[str(key)] = [str(value)]
    return params


@dataclass
class AuthSettings:
    """Datasource credentials."""

    username: Optional[str] = None
    password: Optional[str] = None
    bearer_token: Optional[str] = None
    bearer_token_file: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.username or self.password or self.bearer_token or self.bearer_token_file or self.headers)

    def to_provider(self) -> Optional[AuthConfig]:
        """Build the auth provider, or None when no credentials are configured."""
        if self.is_empty():
            return None
        return AuthConfig(
            username=self.username,
            password=self.password,
            bearer_token=self.bearer_token,
            bearer_token_file=self.bearer_token_file,
            headers=dict(self.headers),
        )


@dataclass
class DatasourceConfig:
    """Datasource configuration."""

    url: str = "http://localhost:8428"
    type: DataSourceType = DataSourceType.PROMETHEUS

    # Query settings
    lookback: timedelta = field(default_factory=timedelta)
    query_step: timedelta = field(default_factory=timedelta)
    evaluation_interval: timedelta = field(default_factory=timedelta)
    append_type_prefix: bool = False
    disable_path_append: bool = False
    query_params: dict[str, list[str]] = field(default_factory=dict)

    # Transport settings
    timeout: float = 30.0
    tls_insecure_skip_verify: bool = False

    auth: AuthSettings = field(default_factory=AuthSettings)
    log_level: str = "INFO"

    @classmethod
    def from_file(cls, path: str | Path) -> "DatasourceConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "DatasourceConfig":
        """Create config from dictionary."""
        config = cls()
        ds = data.get("datasource", data)

        config.url = ds.get("url", config.url)
        config.type = DataSourceType.parse(ds.get("type"))
        config.lookback = parse_duration(ds.get("lookback"))
        config.query_step = parse_duration(ds.get("query_step"))
        config.evaluation_interval = parse_duration(ds.get("evaluation_interval"))
        config.append_type_prefix = bool(ds.get("append_type_prefix", False))
        config.disable_path_append = bool(ds.get("disable_path_append", False))
        config.query_params = _parse_query_params(ds.get("query_params"))
        config.timeout = float(ds.get("timeout", config.timeout))
        config.tls_insecure_skip_verify = bool(ds.get("tls_insecure_skip_verify", False))

        auth = ds.get("auth") or {}
        config.auth = AuthSettings(
            username=auth.get("username"),
            password=auth.get("password"),
            bearer_token=auth.get("bearer_token"),
            bearer_token_file=auth.get("bearer_token_file"),
            headers={str(k): str(v) for k, v in (auth.get("headers") or {}).items()},
        )

        config.log_level = data.get("log_level", config.log_level)

        config._apply_env()
        return config

    @classmethod
    def from_env(cls) -> "DatasourceConfig":
        """Create config from environment variables."""
        config = cls()
        config._apply_env()
        return config

    def _apply_env(self):
        """Environment variables override file values."""
        if os.environ.get("DATASOURCE_URL"):
            self.url = os.environ["DATASOURCE_URL"]
        if os.environ.get("DATASOURCE_TYPE"):
            self.type = DataSourceType.parse(os.environ["DATASOURCE_TYPE"])
        if os.environ.get("DATASOURCE_LOOKBACK"):
            self.lookback = parse_duration(os.environ["DATASOURCE_LOOKBACK"])
        if os.environ.get("DATASOURCE_QUERY_STEP"):
            self.query_step = parse_duration(os.environ["DATASOURCE_QUERY_STEP"])

        # Credentials
        if os.environ.get("DATASOURCE_USERNAME"):
            self.auth.username = os.environ["DATASOURCE_USERNAME"]
        if os.environ.get("DATASOURCE_PASSWORD"):
            self.auth.password = os.environ["DATASOURCE_PASSWORD"]
        if os.environ.get("DATASOURCE_BEARER_TOKEN"):
            self.auth.bearer_token = os.environ["DATASOURCE_BEARER_TOKEN"]


def load_config(config_path: Optional[str] = None) -> DatasourceConfig:
    """Load configuration from file or environment."""
    # Try config file first
    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f"config file not found: {config_path}")
        return DatasourceConfig.from_file(config_path)

    # Try default locations
    default_paths = [
        Path("tsquery.yaml"),
        Path("tsquery.yml"),
        Path.home() / ".tsquery" / "config.yaml",
        Path("/etc/tsquery/config.yaml"),
    ]

    for path in default_paths:
        if path.exists():
            return DatasourceConfig.from_file(path)

    # Fall back to environment
    return DatasourceConfig.from_env()


def build_client(config: DatasourceConfig) -> httpx.AsyncClient:
    """Create the HTTP transport shared by every adapter built from config."""
    return httpx.AsyncClient(
        timeout=config.timeout,
        verify=not config.tls_insecure_skip_verify,
    )


def build_adapter(config: DatasourceConfig, client: Optional[httpx.AsyncClient] = None) -> BackendAdapter:
    """
    Build the base adapter for a datasource.

    Query params from config become the adapter's defaults and keep every
    value. The engine type and evaluation interval are applied before the
    adapter is handed out.
    """
    adapter = BackendAdapter(
        config.url,
        client or build_client(config),
        auth=config.auth.to_provider(),
        lookback=config.lookback,
        query_step=config.query_step,
        append_type_prefix=config.append_type_prefix,
        disable_path_append=config.disable_path_append,
    )
    adapter.extra_params = {key: list(values) for key, values in config.query_params.items()}
    return adapter.apply_overrides(QueryOverrides(
        engine_type=config.type,
        evaluation_interval=config.evaluation_interval,
    ))
