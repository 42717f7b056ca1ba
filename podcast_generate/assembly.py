"""Reassemble synthesized WAV chunks into one continuous waveform."""

import io

from pydub import AudioSegment

from podcast_generate.errors import FormatError
from podcast_generate.models import WaveformBuffer


def decode_wav(audio_bytes: bytes) -> WaveformBuffer:
    """Decode a WAV payload into its format descriptor and raw samples."""
    try:
        audio = AudioSegment.from_file(io.BytesIO(audio_bytes), format="wav")
    except Exception as e:
        raise FormatError(f"Could not decode WAV payload: {e}") from e
    return WaveformBuffer(
        channels=audio.channels,
        sample_rate=audio.frame_rate,
        bit_depth=audio.sample_width * 8,
        sample_data=audio.raw_data,
    )


def encode_wav(buffer: WaveformBuffer) -> bytes:
    """Encode a WaveformBuffer back into a WAV payload."""
    audio = AudioSegment(
        data=buffer.sample_data,
        sample_width=buffer.bit_depth // 8,
        frame_rate=buffer.sample_rate,
        channels=buffer.channels,
    )
    out = io.BytesIO()
    audio.export(out, format="wav")
    return out.getvalue()


def combine_audio_buffers(buffers: list[bytes]) -> bytes:
    """Concatenate WAV payloads in order into a single WAV payload.

    A single buffer is returned as-is. Otherwise the first buffer's format
    (channels, sample rate, bit depth) is authoritative and every other buffer
    must match it exactly; samples are only joined once all buffers pass.
    """
    if not buffers:
        raise FormatError("No audio buffers to combine")

    if len(buffers) == 1:
        return buffers[0]

    first = decode_wav(buffers[0])
    fmt = first.format
    payloads = [first.sample_data]
    del first

    for i in range(1, len(buffers)):
        decoded = decode_wav(buffers[i])
        if decoded.format != fmt:
            raise FormatError(
                f"Audio buffer {i} has format {decoded.format} "
                f"(channels, sample_rate, bit_depth), expected {fmt}",
                index=i,
            )
        payloads.append(decoded.sample_data)
        del decoded

    channels, sample_rate, bit_depth = fmt
    combined = WaveformBuffer(channels, sample_rate, bit_depth, b"".join(payloads))
    del payloads
    return encode_wav(combined)
