"""Background-music mix planning and execution through ffmpeg."""

import logging
import math
import os
import subprocess

from pydub.utils import get_encoder_name, mediainfo

from podcast_generate.constants import (
    COMPRESSED_EXTENSIONS,
    DEFAULT_BGM_VOLUME,
    MIX_DROPOUT_TRANSITION,
    OUTPUT_BITRATE,
    OUTPUT_CHANNELS,
    OUTPUT_SAMPLE_RATE,
)
from podcast_generate.errors import MixingError, ValidationError
from podcast_generate.models import MixPlan

logger = logging.getLogger(__name__)


def is_compressed_extension(extension: str) -> bool:
    ext = extension.lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext in COMPRESSED_EXTENSIONS


def plan_mix(
    voice_duration_seconds: float,
    bgm_duration_seconds: float,
    volume_ratio: float = DEFAULT_BGM_VOLUME,
    output_extension: str = ".wav",
) -> MixPlan:
    """Decide how the background track is looped and scaled under the voice.

    The voice track is authoritative for length: a shorter background is
    repeated ceil(voice / bgm) times, a longer one is used once, and the mix
    is cut to the voice duration either way.
    """
    if voice_duration_seconds <= 0:
        raise ValidationError(f"Voice duration must be positive, got {voice_duration_seconds}")
    if bgm_duration_seconds <= 0:
        raise ValidationError(f"BGM duration must be positive, got {bgm_duration_seconds}")

    if bgm_duration_seconds < voice_duration_seconds:
        loop_count = math.ceil(voice_duration_seconds / bgm_duration_seconds)
    else:
        loop_count = 1

    return MixPlan(
        voice_duration_seconds=voice_duration_seconds,
        bgm_duration_seconds=bgm_duration_seconds,
        loop_count=loop_count,
        volume_ratio=volume_ratio,
        output_is_compressed=is_compressed_extension(output_extension),
    )


def build_mix_filters(plan: MixPlan) -> list[str]:
    """ffmpeg filter_complex chains; input 0 is the voice, inputs 1..N the BGM copies."""
    filters = []
    if plan.needs_loop:
        inputs = "".join(f"[{i + 1}:a]" for i in range(plan.loop_count))
        filters.append(f"{inputs}concat=n={plan.loop_count}:v=0:a=1[bg_loop]")
        filters.append(f"[bg_loop]volume={plan.volume_ratio}[bg]")
    else:
        filters.append(f"[1:a]volume={plan.volume_ratio}[bg]")
    filters.append(
        f"[0:a][bg]amix=inputs=2:duration=first:dropout_transition={MIX_DROPOUT_TRANSITION}[out]"
    )
    return filters


def output_codec_args(compressed: bool) -> list[str]:
    """Final channel / sample-rate / codec normalization shared by mix and conversion."""
    args = ["-ac", str(OUTPUT_CHANNELS), "-ar", str(OUTPUT_SAMPLE_RATE)]
    if compressed:
        return args + ["-acodec", "libmp3lame", "-b:a", OUTPUT_BITRATE, "-f", "mp3"]
    return args + ["-f", "wav"]


def build_mix_command(plan: MixPlan, voice_path: str, bgm_path: str, output_path: str) -> list[str]:
    cmd = [get_encoder_name(), "-y", "-i", voice_path]
    for _ in range(plan.loop_count):
        cmd += ["-i", bgm_path]
    cmd += ["-filter_complex", ";".join(build_mix_filters(plan)), "-map", "[out]"]
    cmd += output_codec_args(plan.output_is_compressed)
    cmd.append(output_path)
    return cmd


def probe_duration(path: str) -> float:
    """Duration of an audio file in seconds, via ffprobe."""
    try:
        info = mediainfo(path)
    except Exception as e:
        raise MixingError(f"Failed to get audio duration of {path}: {e}", stage="probe") from e
    try:
        duration = float(info.get("duration", ""))
    except ValueError:
        raise MixingError(f"Failed to get valid audio duration of {path}", stage="probe")
    if math.isnan(duration):
        raise MixingError(f"Failed to get valid audio duration of {path}", stage="probe")
    return duration


def mix_bgm(
    voice_path: str,
    bgm_path: str,
    output_path: str,
    volume_ratio: float = DEFAULT_BGM_VOLUME,
    output_extension: str | None = None,
) -> MixPlan:
    """Probe both tracks, plan the mix, and render it to output_path.

    Returns the plan that was executed.
    """
    voice_duration = probe_duration(voice_path)
    bgm_duration = probe_duration(bgm_path)
    extension = output_extension if output_extension is not None else os.path.splitext(output_path)[1]
    plan = plan_mix(voice_duration, bgm_duration, volume_ratio, extension)

    cmd = build_mix_command(plan, voice_path, bgm_path, output_path)
    logger.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, check=False, capture_output=True, text=True)
    except OSError as e:
        raise MixingError(f"{e}. Make sure FFmpeg is installed on your system.", stage="mixing") from e

    if proc.returncode != 0:
        stage = "looping" if plan.needs_loop and "concat" in (proc.stderr or "") else "mixing"
        raise MixingError(
            f"ffmpeg exited with {proc.returncode}: {(proc.stderr or '')[-1000:]}",
            stage=stage,
        )
    return plan
