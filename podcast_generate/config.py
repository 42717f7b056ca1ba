"""Engine connection settings resolved from the environment."""

import os
from dataclasses import dataclass

from podcast_generate.constants import ENGINE_URL, WEB_API_URL, SYNTHESIS_TIMEOUT_SECONDS


@dataclass
class EngineConfig:
    base_url: str = ENGINE_URL
    api_key: str | None = None
    timeout: float = SYNTHESIS_TIMEOUT_SECONDS

    @property
    def uses_web_api(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, environ=None) -> "EngineConfig":
        """Build config from VOICEVOX_* variables.

        VOICEVOX_API_KEY switches to the hosted web API, whose base URL is used
        unless VOICEVOX_ENGINE_URL overrides it.
        """
        env = os.environ if environ is None else environ
        api_key = env.get("VOICEVOX_API_KEY") or None
        default_url = WEB_API_URL if api_key else ENGINE_URL
        base_url = env.get("VOICEVOX_ENGINE_URL") or default_url
        timeout = float(env.get("VOICEVOX_TIMEOUT") or SYNTHESIS_TIMEOUT_SECONDS)
        return cls(base_url=base_url.rstrip("/"), api_key=api_key, timeout=timeout)
