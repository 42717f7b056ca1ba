"""Data models for the synthesis pipeline."""

from dataclasses import dataclass, field

from podcast_generate.constants import DEFAULT_PITCH, DEFAULT_INTONATION_SCALE, DEFAULT_SPEED


@dataclass(frozen=True)
class VoiceParams:
    pitch: float = DEFAULT_PITCH
    intonation_scale: float = DEFAULT_INTONATION_SCALE
    speed: float = DEFAULT_SPEED


@dataclass(frozen=True)
class SynthesisUnit:
    sequence_key: tuple[int, int]   # (line_index, chunk_index)
    text: str
    speaker_id: int
    pitch: float = DEFAULT_PITCH
    intonation_scale: float = DEFAULT_INTONATION_SCALE
    speed: float = DEFAULT_SPEED


@dataclass(frozen=True)
class SynthesisResult:
    sequence_key: tuple[int, int]
    audio_bytes: bytes


@dataclass
class DialogueLine:
    line_index: int
    speaker_id: int
    text: str
    pitch: float | None = None
    intonation_scale: float | None = None
    speed: float | None = None


@dataclass
class ParseDiagnostic:
    line_number: int    # 1-based line in the source document, 0 if not line-specific
    message: str


@dataclass
class ParseResult:
    lines: list[DialogueLine] = field(default_factory=list)
    diagnostics: list[ParseDiagnostic] = field(default_factory=list)


@dataclass
class WaveformBuffer:
    channels: int
    sample_rate: int
    bit_depth: int
    sample_data: bytes

    @property
    def format(self) -> tuple[int, int, int]:
        return (self.channels, self.sample_rate, self.bit_depth)


@dataclass(frozen=True)
class MixPlan:
    voice_duration_seconds: float
    bgm_duration_seconds: float
    loop_count: int
    volume_ratio: float
    output_is_compressed: bool

    @property
    def needs_loop(self) -> bool:
        return self.loop_count > 1


@dataclass
class SpeakerStyle:
    name: str
    id: int


@dataclass
class Speaker:
    name: str
    speaker_uuid: str
    styles: list[SpeakerStyle] = field(default_factory=list)
    version: str = ""


@dataclass
class BatchReport:
    processed: list[str] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
