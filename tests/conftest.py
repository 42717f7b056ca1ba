"""Shared fixtures for podcast_generate tests."""

import io

import numpy as np
import pytest
from pydub import AudioSegment

from podcast_generate.errors import SynthesisError
from podcast_generate.models import SynthesisUnit


def make_wav(duration_ms=100, frame_rate=24000, channels=1, sample_width=2, loud=False):
    """Build a WAV payload like the engine returns."""
    if loud:
        n = int(frame_rate * duration_ms / 1000) * channels
        samples = np.random.randint(-5000, 5000, n, dtype=np.int16)
        audio = AudioSegment(data=samples.tobytes(), sample_width=2, frame_rate=frame_rate, channels=channels)
        if sample_width != 2:
            audio = audio.set_sample_width(sample_width)
    else:
        audio = AudioSegment.silent(duration=duration_ms, frame_rate=frame_rate)
        audio = audio.set_channels(channels).set_sample_width(sample_width)
    out = io.BytesIO()
    audio.export(out, format="wav")
    return out.getvalue()


@pytest.fixture
def wav_bytes():
    """A 100 ms silent mono 24 kHz WAV."""
    return make_wav()


@pytest.fixture
def sample_units():
    """Three units across two dialogue lines, in sequence order."""
    return [
        SynthesisUnit(sequence_key=(0, 0), text="一つ目。", speaker_id=1),
        SynthesisUnit(sequence_key=(0, 1), text="二つ目。", speaker_id=1),
        SynthesisUnit(sequence_key=(1, 0), text="三つ目。", speaker_id=3, speed=1.2),
    ]


class FakeClient:
    """Stands in for VoicevoxClient: returns a WAV whose length encodes the unit order."""

    def __init__(self, fail_on=None, frame_rate=24000):
        self.fail_on = fail_on
        self.frame_rate = frame_rate
        self.calls = []
        self.reserved = 0

    def reserve_connections(self, count):
        self.reserved = max(self.reserved, count)

    def synthesize(self, unit):
        self.calls.append(unit)
        if self.fail_on is not None and unit.text == self.fail_on:
            raise SynthesisError("API request failed with status 500: boom", kind="http")
        return make_wav(duration_ms=50, frame_rate=self.frame_rate)


@pytest.fixture
def fake_client():
    """Engine stand-in that always succeeds."""
    return FakeClient()
