"""Settings for the model-backed analysis strategy (``ai_settings`` section)."""

from typing import Any, Dict, Mapping

DEFAULT_MODEL_NAME = "gpt-4o-mini"
DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant that analyzes live stream chat for a moderation bot. "
    "Answer with JSON only, exactly in the shape the request describes."
)
# The OpenAI client refuses an empty key even for local servers.
PLACEHOLDER_API_KEY = "not-needed"


class AISettings:
    """Read-only view over the ``ai_settings`` mapping with typed defaults.

    Unknown keys stay reachable through :meth:`get`.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._raw: Dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._raw.get(key, default)

    def _text(self, key: str, fallback: str | None) -> str | None:
        value = self._raw.get(key)
        return str(value) if value else fallback

    @property
    def enabled(self) -> bool:
        return bool(self._raw.get("enabled"))

    @property
    def base_url(self) -> str | None:
        return self._text("base_url", None)

    @property
    def api_key(self) -> str:
        return self._text("api_key", PLACEHOLDER_API_KEY)

    @property
    def model_name(self) -> str:
        return self._text("model_name", DEFAULT_MODEL_NAME)

    @property
    def system_prompt(self) -> str:
        return self._text("system_prompt", DEFAULT_SYSTEM_PROMPT)

    @property
    def sampling_parameters(self) -> Dict[str, Any]:
        """Extra keyword arguments for each completion request (temperature, max_tokens, ...)."""
        params = self._raw.get("sampling_parameters")
        return dict(params) if isinstance(params, dict) else {}
