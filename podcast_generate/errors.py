"""Exception hierarchy for the generation pipeline."""

ERROR_KIND_HTTP = "http"
ERROR_KIND_CONNECTION = "connection"
ERROR_KIND_TIMEOUT = "timeout"
ERROR_KIND_UNKNOWN = "unknown"


class PodcastGenerateError(Exception):
    """Base class for every failure the CLI reports to the user."""


class ValidationError(PodcastGenerateError):
    """Bad input detected before any engine call."""


class SynthesisError(PodcastGenerateError):
    """A synthesis call failed (non-success status, connection failure or timeout)."""

    def __init__(self, message: str, *, sequence_key=None, kind: str = ERROR_KIND_UNKNOWN) -> None:
        super().__init__(message)
        self.sequence_key = sequence_key
        self.kind = kind


class FormatError(PodcastGenerateError):
    """Audio buffers could not be decoded or disagree on format."""

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class MixingError(PodcastGenerateError):
    """ffmpeg failed while probing, looping, mixing or converting."""

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage


class EngineError(PodcastGenerateError):
    """Docker / engine lifecycle command failed."""


class EngineCreatedNotice(PodcastGenerateError):
    """Informational: the engine container was just created and must be started."""
