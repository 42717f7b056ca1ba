"""HTTP client for a VOICEVOX-compatible synthesis engine.

Two transports are supported:

- the local engine (docker container): POST /audio_query, then POST
  /synthesis with the adjusted query;
- the hosted web API (when an API key is configured): GET /audio with all
  voice parameters in the query string.

Every failure is raised as SynthesisError with a kind of "http",
"connection", "timeout" or "unknown" so the orchestrator can treat them uniformly.
"""

import logging

import requests
from requests.adapters import HTTPAdapter

from podcast_generate.config import EngineConfig
from podcast_generate.errors import (
    SynthesisError,
    ERROR_KIND_HTTP,
    ERROR_KIND_CONNECTION,
    ERROR_KIND_TIMEOUT,
    ERROR_KIND_UNKNOWN,
)
from podcast_generate.models import Speaker, SpeakerStyle, SynthesisUnit

logger = logging.getLogger(__name__)


class VoicevoxClient:
    def __init__(self, config: EngineConfig | None = None, session: requests.Session | None = None):
        self.config = config or EngineConfig.from_env()
        self.session = session or requests.Session()
        self.pool_size = 0

    def reserve_connections(self, count: int) -> None:
        """Size the HTTP connection pool for `count` concurrent calls."""
        if count <= self.pool_size:
            return
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=count)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.pool_size = count

    def _request(self, method: str, path: str, sequence_key=None, **kwargs) -> requests.Response:
        url = f"{self.config.base_url}{path}"
        kwargs.setdefault("timeout", self.config.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.Timeout as e:
            raise SynthesisError(
                f"Request to {path} timed out after {self.config.timeout}s",
                sequence_key=sequence_key, kind=ERROR_KIND_TIMEOUT,
            ) from e
        except requests.ConnectionError as e:
            raise SynthesisError(
                f"Could not connect to engine at {self.config.base_url}: {e}",
                sequence_key=sequence_key, kind=ERROR_KIND_CONNECTION,
            ) from e
        except requests.RequestException as e:
            raise SynthesisError(
                f"Request to {path} failed: {e}",
                sequence_key=sequence_key, kind=ERROR_KIND_UNKNOWN,
            ) from e

        if not response.ok:
            raise SynthesisError(
                f"API request failed with status {response.status_code}: {response.text}",
                sequence_key=sequence_key, kind=ERROR_KIND_HTTP,
            )
        return response

    def _json(self, response: requests.Response, path: str, sequence_key=None):
        try:
            return response.json()
        except ValueError as e:
            raise SynthesisError(
                f"Engine returned a malformed response from {path}: {e}",
                sequence_key=sequence_key, kind=ERROR_KIND_HTTP,
            ) from e

    def _key_params(self) -> dict:
        return {"key": self.config.api_key} if self.config.uses_web_api else {}

    def synthesize(self, unit: SynthesisUnit) -> bytes:
        """Synthesize one unit and return the WAV payload."""
        logger.debug("Synthesizing %s (speaker %d, %d chars)", unit.sequence_key, unit.speaker_id, len(unit.text))
        if self.config.uses_web_api:
            params = {
                **self._key_params(),
                "speaker": str(unit.speaker_id),
                "pitch": str(unit.pitch),
                "intonationScale": str(unit.intonation_scale),
                "speed": str(unit.speed),
                "text": unit.text,
            }
            response = self._request("GET", "/audio", unit.sequence_key, params=params)
        else:
            response = self._request(
                "POST", "/audio_query", unit.sequence_key,
                params={"text": unit.text, "speaker": unit.speaker_id},
            )
            query = self._json(response, "/audio_query", unit.sequence_key)
            query["pitchScale"] = unit.pitch
            query["intonationScale"] = unit.intonation_scale
            query["speedScale"] = unit.speed
            response = self._request(
                "POST", "/synthesis", unit.sequence_key,
                params={"speaker": unit.speaker_id}, json=query,
            )

        if not response.content:
            raise SynthesisError(
                f"Engine returned an empty payload for {unit.sequence_key}",
                sequence_key=unit.sequence_key,
            )
        return response.content

    def get_speakers(self) -> list[Speaker]:
        """Return the engine's speaker catalogue."""
        response = self._request("GET", "/speakers", params=self._key_params())
        data = self._json(response, "/speakers")
        try:
            return [
                Speaker(
                    name=item["name"],
                    speaker_uuid=item.get("speaker_uuid", ""),
                    styles=[SpeakerStyle(name=s["name"], id=s["id"]) for s in item.get("styles", [])],
                    version=item.get("version", ""),
                )
                for item in data
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise SynthesisError(f"Unexpected speaker list from engine: {e!r}", kind=ERROR_KIND_HTTP) from e

    def version(self) -> str:
        response = self._request("GET", "/version", params=self._key_params())
        return response.text.strip().strip('"')
