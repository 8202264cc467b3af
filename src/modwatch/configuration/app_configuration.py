from __future__ import annotations
from pathlib import Path
import fcntl
import os
from typing import Any, Dict
import yaml

from modwatch.configuration.ai_settings import AISettings
from modwatch.configuration.monitor_settings import MonitorSettings, build_monitor_settings
from modwatch.datatypes.error_datatypes import ConfigurationError
from modwatch.util.logger import get_logger

logger = get_logger("app_configuration")


DEFAULT_CONFIG_PATH = Path("./config/app_config.yml")


def resolve_config_path() -> Path:
    """Return the configuration path, honouring ``MODWATCH_CONFIG``."""
    return Path(os.getenv("MODWATCH_CONFIG") or DEFAULT_CONFIG_PATH).resolve()


class AppConfig:
    """Cached view of ``app_config.yml``.

    The YAML file is read under a shared ``fcntl`` lock so an operator editing
    it from another process never hands us a half-written document. Nothing is
    validated at load time; :meth:`monitor_settings` is where bad values
    surface as :class:`ConfigurationError`.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Disk access
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        """Read and parse the file; any problem yields an empty mapping."""
        try:
            with self.config_path.open("r", encoding="utf-8") as handle:
                fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(handle)
                finally:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.warning("[CONFIG] %s not found, using defaults", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[CONFIG] Could not read %s: %s", self.config_path, exc)
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.error("[CONFIG] %s does not contain a mapping", self.config_path)
            return {}
        return data

    def reload(self) -> Dict[str, Any]:
        """Re-read the file and return the new mapping (empty on error)."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached mapping; treat as read-only."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # Typed sections
    # --------------------------
    @property
    def debug(self) -> bool:
        return bool(self._data.get("debug", False))

    @property
    def ai_settings(self) -> AISettings:
        """Return the analysis model settings wrapped in an AISettings helper.

        ``OPENAI_API_KEY`` from the environment is used when the file does not
        carry a key.
        """
        settings = self._data.get("ai_settings", {})
        if not isinstance(settings, dict):
            settings = {}
        if not settings.get("api_key") and os.getenv("OPENAI_API_KEY"):
            settings = {**settings, "api_key": os.getenv("OPENAI_API_KEY")}
        return AISettings(settings)

    def monitor_settings(self) -> MonitorSettings:
        """Validate and build the autonomous monitor settings.

        Raises:
            ConfigurationError: If the ``autonomous`` section or the feedback
                storage settings are invalid.
        """
        autonomous = self._data.get("autonomous")
        if autonomous is not None and not isinstance(autonomous, dict):
            raise ConfigurationError("autonomous: expected a mapping")

        feedback_dir = self._data.get("feedback_dir")
        if feedback_dir is not None and not isinstance(feedback_dir, str):
            raise ConfigurationError("feedback_dir: expected a path string")

        return build_monitor_settings(
            autonomous,
            feedback_dir=feedback_dir or (Path.cwd() / "autonomous_feedback"),
            max_feedback_retention_days=self._data.get("max_feedback_retention_days", 30),
        )
