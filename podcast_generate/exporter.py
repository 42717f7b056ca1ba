"""Write the combined waveform to its final container, with or without BGM."""

import logging
import os
import time

from pydub import AudioSegment

from podcast_generate.constants import DEFAULT_BGM_VOLUME, OUTPUT_BITRATE, OUTPUT_CHANNELS, OUTPUT_SAMPLE_RATE
from podcast_generate.errors import MixingError
from podcast_generate.music import is_compressed_extension, mix_bgm

logger = logging.getLogger(__name__)


def _temp_path(output_path: str, prefix: str, extension: str) -> str:
    directory = os.path.dirname(os.path.abspath(output_path))
    return os.path.join(directory, f"{prefix}_{time.time_ns()}{extension}")


def write_temp_wav(audio_bytes: bytes, output_path: str) -> str:
    """Write the combined WAV next to output_path. Returns the temp file path."""
    path = _temp_path(output_path, "temp", ".wav")
    with open(path, "wb") as f:
        f.write(audio_bytes)
    return path


def convert_to_mp3(wav_path: str, output_path: str) -> None:
    """Re-encode a WAV file as stereo 44.1 kHz MP3."""
    try:
        audio = AudioSegment.from_wav(wav_path)
        audio.export(
            output_path,
            format="mp3",
            codec="libmp3lame",
            bitrate=OUTPUT_BITRATE,
            parameters=["-ac", str(OUTPUT_CHANNELS), "-ar", str(OUTPUT_SAMPLE_RATE)],
        )
    except Exception as e:
        raise MixingError(f"{e}. Make sure FFmpeg is installed on your system.", stage="conversion") from e


def _remove(path: str | None) -> None:
    if path and os.path.exists(path):
        os.remove(path)


def finalize_output(
    wav_bytes: bytes,
    output_path: str,
    bgm_path: str | None = None,
    bgm_volume: float = DEFAULT_BGM_VOLUME,
) -> str:
    """Produce output_path from the combined WAV payload.

    With a BGM file the voice is mixed over the looped, volume-scaled
    background; otherwise the WAV is converted to MP3 or kept as WAV based on
    the output extension. Everything is rendered to a temporary file first and
    renamed into place, and temporary files never outlive the call.
    """
    extension = os.path.splitext(output_path)[1].lower()
    compressed = is_compressed_extension(extension)
    temp_wav = write_temp_wav(wav_bytes, output_path)
    del wav_bytes
    temp_out = None

    try:
        if bgm_path:
            print(f"Adding BGM: {os.path.basename(bgm_path)} (volume: {bgm_volume})...")
            temp_out = _temp_path(output_path, "temp_bgm", ".mp3" if compressed else ".wav")
            mix_bgm(temp_wav, bgm_path, temp_out, bgm_volume, output_extension=extension)
            os.replace(temp_out, output_path)
            temp_out = None
        elif compressed:
            print("Converting WAV to MP3...")
            temp_out = _temp_path(output_path, "temp_mp3", ".mp3")
            convert_to_mp3(temp_wav, temp_out)
            os.replace(temp_out, output_path)
            temp_out = None
        else:
            os.replace(temp_wav, output_path)
            temp_wav = None
    finally:
        _remove(temp_wav)
        _remove(temp_out)

    logger.debug("Wrote %s", output_path)
    return output_path
