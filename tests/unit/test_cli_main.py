"""Unit tests for the specforge CLI commands."""

from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from specforge.cli.main import app
from specforge.exceptions import RefinementError
from tests.helpers.streams import FakeByteStream, FakeFetcher, frame_bytes


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch("specforge.cli.main.configure_logging"):
        yield


def _fetcher(*frames: str) -> FakeFetcher:
    return FakeFetcher(FakeByteStream([frame_bytes(*frames)]))


class TestWarmup:
    """Test warmup command."""

    def test_warmup_success(self, runner, test_settings):
        fetcher = _fetcher('data: {"message":"Model ready"}', "event: done\ndata: {}")

        with (
            patch("specforge.settings.get_settings", return_value=test_settings),
            patch("specforge.cli.main.build_fetcher", return_value=fetcher),
        ):
            result = runner.invoke(app, ["warmup"])

        assert result.exit_code == 0
        assert "Starting warmup sequence..." in result.stdout
        assert "Model ready" in result.stdout
        assert "Succeeded" in result.stdout
        assert fetcher.urls == ["http://api.test/api/v1/settings/llm/warmup"]

    def test_warmup_server_error(self, runner, test_settings):
        fetcher = _fetcher("event: error\ndata: no provider configured")

        with (
            patch("specforge.settings.get_settings", return_value=test_settings),
            patch("specforge.cli.main.build_fetcher", return_value=fetcher),
        ):
            result = runner.invoke(app, ["warmup"])

        assert result.exit_code == 1
        assert "no provider configured" in result.stdout
        assert "Failed" in result.stdout


class TestRefine:
    """Test refine command."""

    def test_refine_success(self, runner, test_settings):
        fetcher = _fetcher(
            'data: {"type":"ITERATION_START","message":"Starting iteration 1/3"}',
            'data: {"type":"SUCCESS","message":"Validation passed!",'
            '"payload":{"artifact":{"title":"Refined"}}}',
            "event: done\ndata: {}",
        )
        start = AsyncMock(return_value={"id": "abc"})

        with (
            patch("specforge.settings.get_settings", return_value=test_settings),
            patch("specforge.cli.main.build_fetcher", return_value=fetcher),
            patch("specforge.refinement.RefinementClient.start_session", start),
        ):
            result = runner.invoke(
                app,
                [
                    "refine",
                    "-a",
                    "roadmap_item",
                    "-t",
                    "contract",
                    "-p",
                    "Tighten the scope",
                    "--context",
                    '{"id": 7}',
                ],
            )

        assert result.exit_code == 0
        assert "Starting iteration 1/3" in result.stdout
        assert "Refined" in result.stdout
        assert fetcher.urls == ["http://api.test/api/v1/refinement/abc/events"]
        start.assert_awaited_once_with(
            "roadmap_item", "contract", "Tighten the scope", {"id": 7}, 3
        )

    def test_refine_start_failure(self, runner, test_settings):
        fetcher = _fetcher()
        start = AsyncMock(side_effect=RefinementError("HTTP 500", status_code=500))

        with (
            patch("specforge.settings.get_settings", return_value=test_settings),
            patch("specforge.cli.main.build_fetcher", return_value=fetcher),
            patch("specforge.refinement.RefinementClient.start_session", start),
        ):
            result = runner.invoke(app, ["refine", "-a", "x", "-t", "y", "-p", "z"])

        assert result.exit_code == 1
        assert "Failed to start refinement session" in result.stdout
        assert fetcher.urls == []

    def test_refine_invalid_context(self, runner):
        result = runner.invoke(
            app, ["refine", "-a", "x", "-t", "y", "-p", "z", "--context", "{oops"]
        )

        assert result.exit_code == 2
        assert "Invalid --context JSON" in result.stdout


class TestWatch:
    """Test watch command."""

    def test_watch_follows_session(self, runner, test_settings):
        fetcher = _fetcher(
            'data: {"type":"INFO","message":"Starting refinement session"}',
            'data: {"type":"ERROR","message":"LLM timeout","payload":{"retry":true}}',
            'data: {"type":"SUCCESS","payload":{"artifact":{"ok":true}}}',
        )

        with (
            patch("specforge.settings.get_settings", return_value=test_settings),
            patch("specforge.cli.main.build_fetcher", return_value=fetcher),
        ):
            result = runner.invoke(app, ["watch", "session-1"])

        assert result.exit_code == 0
        assert "Starting refinement session" in result.stdout
        assert "Warning: LLM timeout" in result.stdout
        assert fetcher.urls == ["http://api.test/api/v1/refinement/session-1/events"]

    def test_watch_premature_close(self, runner, test_settings):
        fetcher = _fetcher('data: {"type":"INFO","message":"hello"}')

        with (
            patch("specforge.settings.get_settings", return_value=test_settings),
            patch("specforge.cli.main.build_fetcher", return_value=fetcher),
        ):
            result = runner.invoke(app, ["watch", "session-1"])

        assert result.exit_code == 1
        assert "stream closed before completion" in result.stdout
