"""Tests for the tsquery CLI."""

import httpx
import pytest
from click.testing import CliRunner

from conftest import EVAL_UNIX, PROM_MATRIX, PROM_VECTOR, RecordingHandler
from tsquery import __version__
from tsquery.cli import main, parse_timestamp
from tsquery.config import DatasourceConfig


@pytest.fixture
def runner(tmp_path, monkeypatch):
    """CliRunner isolated from config files in the working and home directories."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return CliRunner()


@pytest.fixture
def mock_backend(monkeypatch):
    """Route CLI traffic to a recording handler."""
    def _install(handler):
        monkeypatch.setattr(
            "tsquery.cli.build_client",
            lambda config: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        return handler
    return _install


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_unix_seconds(self):
        assert int(parse_timestamp(str(EVAL_UNIX)).timestamp()) == EVAL_UNIX

    def test_iso(self):
        assert int(parse_timestamp("2024-01-01T00:00:00Z").timestamp()) == EVAL_UNIX

    def test_naive_iso_is_utc(self):
        assert int(parse_timestamp("2024-01-01T00:00:00").timestamp()) == EVAL_UNIX


class TestCommands:
    """Tests for CLI commands."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_query_json(self, runner, mock_backend):
        handler = mock_backend(RecordingHandler(json=PROM_VECTOR))

        result = runner.invoke(main, [
            "query", "up", "--url", "http://host:8400", "--time", str(EVAL_UNIX), "-o", "json",
        ])

        assert result.exit_code == 0, result.output
        assert '"__name__": "up"' in result.output
        assert handler.last.url.params["time"] == str(EVAL_UNIX)
        assert handler.last.url.params["query"] == "up"

    def test_query_table(self, runner, mock_backend):
        mock_backend(RecordingHandler(json=PROM_VECTOR))

        result = runner.invoke(main, ["query", "up", "--url", "http://host:8400", "--time", str(EVAL_UNIX)])

        assert result.exit_code == 0, result.output
        assert "2 Series" in result.output

    def test_query_with_overrides(self, runner, mock_backend):
        handler = mock_backend(RecordingHandler(json=[]))

        result = runner.invoke(main, [
            "query", "servers.*.cpu", "--url", "http://host:8400",
            "--type", "graphite", "--param", "maxDataPoints=10",
        ])

        assert result.exit_code == 0, result.output
        assert handler.last.url.path == "/render"
        assert handler.last.url.params["maxDataPoints"] == "10"
        assert "No series returned" in result.output

    def test_query_error_exit_code(self, runner, mock_backend):
        mock_backend(RecordingHandler(status_code=500, content=b"boom"))

        result = runner.invoke(main, ["query", "up", "--url", "http://host:8400"])

        assert result.exit_code == 1
        assert "unexpected response code 500" in result.output

    def test_query_range(self, runner, mock_backend):
        handler = mock_backend(RecordingHandler(json=PROM_MATRIX))

        result = runner.invoke(main, [
            "query-range", "http_requests_total", "--url", "http://host:8400",
            "--start", str(EVAL_UNIX), "--end", str(EVAL_UNIX + 300), "--eval-interval", "1m", "-o", "json",
        ])

        assert result.exit_code == 0, result.output
        params = handler.last.url.params
        assert handler.last.url.path == "/api/v1/query_range"
        assert params["start"] == str(EVAL_UNIX)
        assert params["end"] == str(EVAL_UNIX + 300)
        assert params["step"] == "60s"

    def test_query_range_graphite_rejected(self, runner, mock_backend):
        handler = mock_backend(RecordingHandler(json=[]))

        result = runner.invoke(main, [
            "query-range", "a.b", "--url", "http://host:8400", "--type", "graphite", "--start", str(EVAL_UNIX),
        ])

        assert result.exit_code == 1
        assert "not supported" in result.output
        assert handler.requests == []

    def test_invalid_param(self, runner, mock_backend):
        mock_backend(RecordingHandler(json=PROM_VECTOR))

        result = runner.invoke(main, ["query", "up", "--url", "http://host:8400", "--param", "novalue"])

        assert result.exit_code != 0
        assert "key=value" in result.output

    def test_engines(self, runner):
        result = runner.invoke(main, ["engines"])
        assert result.exit_code == 0
        assert "prometheus" in result.output
        assert "graphite" in result.output

    def test_init_writes_loadable_config(self, runner, tmp_path):
        output = tmp_path / "generated.yaml"

        result = runner.invoke(main, ["init", "-o", str(output)])

        assert result.exit_code == 0
        config = DatasourceConfig.from_file(output)
        assert config.url == "http://localhost:8428"
        assert config.query_params == {}

    def test_non_finite_eval_interval(self, runner, mock_backend):
        handler = mock_backend(RecordingHandler(json=PROM_VECTOR))

        result = runner.invoke(main, ["query", "up", "--url", "http://host:8400", "--eval-interval", "inf"])

        assert result.exit_code == 2
        assert "invalid duration" in result.output
        assert handler.requests == []
