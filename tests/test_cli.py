"""
Tests for the command line interface.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from typer.testing import CliRunner

import main


runner = CliRunner()


@pytest.fixture
def built_configs(monkeypatch):
    """Capture the config handed to the engine instead of starting a real one."""
    configs = []

    def fake_build_engine(config):
        configs.append(config)
        engine = MagicMock()
        engine.start = AsyncMock()
        engine.shutdown = AsyncMock()
        return engine

    monkeypatch.setattr(main, "build_engine", fake_build_engine)
    return configs


class TestStartCommand:

    def test_poll_interval_from_environment(self, monkeypatch, built_configs):
        monkeypatch.setenv("POLL_INTERVAL_MS", "250")

        result = runner.invoke(main.app, ["start", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert built_configs[0].execution.poll_interval_ms == 250
        assert built_configs[0].is_dry_run

    def test_interval_option_overrides_environment(self, monkeypatch, built_configs):
        monkeypatch.setenv("POLL_INTERVAL_MS", "250")

        result = runner.invoke(main.app, ["start", "--dry-run", "--interval", "750"])

        assert result.exit_code == 0, result.output
        assert built_configs[0].execution.poll_interval_ms == 750

    def test_engine_is_started_and_shut_down(self, built_configs, monkeypatch):
        engines = []
        build = main.build_engine

        def tracking_build(config):
            engine = build(config)
            engines.append(engine)
            return engine

        monkeypatch.setattr(main, "build_engine", tracking_build)

        result = runner.invoke(main.app, ["start", "--dry-run"])

        assert result.exit_code == 0, result.output
        engines[0].start.assert_awaited_once()
        engines[0].shutdown.assert_awaited_once()
