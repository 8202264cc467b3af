"""
Modwatch Autonomous Chat Monitor
================================

Watches a live-stream chat, detects spam, toxicity, quiet periods and poll
requests, and acts on them through a pluggable platform capability while
learning from operator feedback.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from modwatch.ai.analysis_strategy import AnalysisStrategy, HeuristicAnalysisStrategy
from modwatch.ai.llm_strategy import OpenAIAnalysisStrategy
from modwatch.configuration.app_configuration import AppConfig, resolve_config_path
from modwatch.configuration.monitor_settings import MonitorSettings
from modwatch.datatypes.error_datatypes import ConfigurationError
from modwatch.moderation.action_capability import DryRunActionCapability
from modwatch.scheduler.monitor_context import build_context
from modwatch.scheduler.monitor_scheduler import MonitorScheduler
from modwatch.ui.console import ConsoleControl, console_session
from modwatch.util.logger import get_logger, handle_exception, set_console_level

logger = get_logger("main")


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODWATCH_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODWATCH_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


def load_configuration(base_dir: Path) -> tuple[AppConfig, MonitorSettings]:
    """Load ``.env`` and the YAML configuration.

    Raises
    ------
    SystemExit
        If the monitor settings are invalid.
    """
    load_dotenv(dotenv_path=base_dir / ".env")
    app_config = AppConfig(resolve_config_path())
    try:
        settings = app_config.monitor_settings()
    except ConfigurationError as exc:
        logger.critical("Invalid configuration in %s: %s", app_config.config_path, exc)
        sys.exit(1)
    return app_config, settings


def build_strategy(app_config: AppConfig) -> AnalysisStrategy:
    """Pick the OpenAI-compatible strategy when enabled, else the keyword heuristic."""
    ai_settings = app_config.ai_settings
    if ai_settings.enabled:
        return OpenAIAnalysisStrategy(ai_settings)
    logger.info("AI analysis disabled; using the keyword heuristic strategy.")
    return HeuristicAnalysisStrategy()


async def shutdown_runtime(scheduler: MonitorScheduler) -> None:
    """Stop monitoring and release the analysis client."""
    try:
        await scheduler.stop()
    except Exception as exc:
        logger.exception("Error while stopping the monitor: %s", exc)

    strategy = scheduler.context.strategy
    if isinstance(strategy, OpenAIAnalysisStrategy):
        await strategy.close()

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the monitor and console, returning an exit code."""
    base_dir = resolve_base_dir()
    os.chdir(base_dir)
    app_config, settings = load_configuration(base_dir)
    if app_config.debug:
        set_console_level(logging.DEBUG)

    context = build_context(settings, build_strategy(app_config), DryRunActionCapability())
    if not await context.feedback_store.initialize():
        logger.warning("Feedback history unavailable; starting with an empty history.")

    scheduler = MonitorScheduler(context)
    scheduler.restore_cooldowns()

    control = ConsoleControl(scheduler)
    try:
        async with console_session(control):
            if settings.enabled:
                scheduler.start()
            await control.shutdown_event.wait()
    finally:
        await shutdown_runtime(scheduler)
    return 0


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    sys.excepthook = handle_exception
    logger.info("Starting Modwatch autonomous monitor…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 0 if code is None else 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the monitor: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
