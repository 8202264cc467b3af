"""Tests for the main entry point helpers."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from modwatch import main as main_module
from modwatch.ai.analysis_strategy import HeuristicAnalysisStrategy
from modwatch.ai.llm_strategy import OpenAIAnalysisStrategy
from modwatch.configuration.app_configuration import AppConfig


def test_resolve_base_dir_prefers_env(monkeypatch, tmp_path):
    monkeypatch.setenv("MODWATCH_HOME", str(tmp_path))

    assert main_module.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_defaults_to_project_root(monkeypatch):
    monkeypatch.delenv("MODWATCH_HOME", raising=False)

    assert (main_module.resolve_base_dir() / "src" / "modwatch").is_dir()


def test_load_configuration_builds_settings(monkeypatch, tmp_path):
    config_path = tmp_path / "app_config.yml"
    config_path.write_text("autonomous:\n  enabled: true\n  buffer_capacity: 10\n", encoding="utf-8")
    monkeypatch.setenv("MODWATCH_CONFIG", str(config_path))

    app_config, settings = main_module.load_configuration(tmp_path)

    assert isinstance(app_config, AppConfig)
    assert settings.enabled is True
    assert settings.buffer_capacity == 10


def test_load_configuration_exits_on_invalid_settings(monkeypatch, tmp_path):
    config_path = tmp_path / "app_config.yml"
    config_path.write_text("autonomous:\n  buffer_capacity: 0\n", encoding="utf-8")
    monkeypatch.setenv("MODWATCH_CONFIG", str(config_path))

    with pytest.raises(SystemExit) as excinfo:
        main_module.load_configuration(tmp_path)

    assert excinfo.value.code == 1


def test_build_strategy_follows_ai_settings(tmp_path):
    config_path = tmp_path / "app_config.yml"
    config_path.write_text("ai_settings:\n  enabled: false\n", encoding="utf-8")
    assert isinstance(main_module.build_strategy(AppConfig(config_path)), HeuristicAnalysisStrategy)

    config_path.write_text("ai_settings:\n  enabled: true\n  base_url: http://localhost:8000/v1\n", encoding="utf-8")
    assert isinstance(main_module.build_strategy(AppConfig(config_path)), OpenAIAnalysisStrategy)


@pytest.mark.asyncio
async def test_shutdown_runtime_survives_stop_errors():
    scheduler = MagicMock()
    scheduler.stop = AsyncMock(side_effect=RuntimeError("disk full"))
    scheduler.context.strategy = HeuristicAnalysisStrategy()

    await main_module.shutdown_runtime(scheduler)

    scheduler.stop.assert_awaited_once()


@pytest.mark.parametrize(
    "outcome, expected",
    [(0, 0), (SystemExit(1), 1), (SystemExit(None), 0), (KeyboardInterrupt(), 0), (RuntimeError("boom"), 1)],
)
def test_main_maps_outcomes_to_exit_codes(outcome, expected):
    def fake_run(coro):
        coro.close()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    with patch.object(main_module.asyncio, "run", side_effect=fake_run):
        assert main_module.main() == expected
