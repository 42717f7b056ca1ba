"""Concurrent synthesis fan-out with order-preserving fan-in."""

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable

from podcast_generate.constants import DEFAULT_MAX_CHUNK_LENGTH
from podcast_generate.errors import SynthesisError
from podcast_generate.models import DialogueLine, SynthesisResult, SynthesisUnit, VoiceParams
from podcast_generate.segmenter import split_text

logger = logging.getLogger(__name__)


def build_monologue_units(
    text: str,
    speaker_id: int,
    params: VoiceParams | None = None,
    max_length: int = DEFAULT_MAX_CHUNK_LENGTH,
) -> list[SynthesisUnit]:
    """One unit per chunk, all with the same speaker and parameters."""
    params = params or VoiceParams()
    chunks = [c for c in split_text(text, max_length) if c.strip()]
    return [
        SynthesisUnit(
            sequence_key=(0, i),
            text=chunk,
            speaker_id=speaker_id,
            pitch=params.pitch,
            intonation_scale=params.intonation_scale,
            speed=params.speed,
        )
        for i, chunk in enumerate(chunks)
    ]


def build_dialogue_units(
    lines: list[DialogueLine],
    defaults: VoiceParams | None = None,
    max_length: int = DEFAULT_MAX_CHUNK_LENGTH,
) -> list[SynthesisUnit]:
    """One unit per (line, chunk).

    Per-line overrides apply to every chunk of that line; missing overrides
    fall back to the run-level defaults.
    """
    defaults = defaults or VoiceParams()
    units = []
    for line in lines:
        pitch = line.pitch if line.pitch is not None else defaults.pitch
        intonation = line.intonation_scale if line.intonation_scale is not None else defaults.intonation_scale
        speed = line.speed if line.speed is not None else defaults.speed
        chunks = [c for c in split_text(line.text, max_length) if c.strip()]
        for chunk_index, chunk in enumerate(chunks):
            units.append(SynthesisUnit(
                sequence_key=(line.line_index, chunk_index),
                text=chunk,
                speaker_id=line.speaker_id,
                pitch=pitch,
                intonation_scale=intonation,
                speed=speed,
            ))
    return units


def run_synthesis(
    units: list[SynthesisUnit],
    synthesize: Callable[[SynthesisUnit], bytes],
    max_workers: int | None = None,
    progress: Callable[[int, int], None] | None = None,
) -> list[SynthesisResult]:
    """Synthesize all units concurrently and return results in sequence_key order.

    max_workers=None issues every call at once; an integer bounds the number
    of in-flight calls. The first failing unit cancels everything still queued
    and, once calls already running have returned, raises SynthesisError:
    there is no partial result.
    """
    keys = [u.sequence_key for u in units]
    if len(set(keys)) != len(keys):
        raise ValueError("Duplicate sequence_key in synthesis units")
    if not units:
        return []

    total = len(units)
    if max_workers is not None and max_workers < 1:
        raise ValueError("max_workers must be at least 1")
    workers = max_workers if max_workers is not None else total
    results = []

    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        future_map = {executor.submit(synthesize, unit): unit for unit in units}
        pending = set(future_map)

        while pending:
            done, pending = wait(pending, return_when=FIRST_EXCEPTION)
            for fut in done:
                unit = future_map[fut]
                error = fut.exception()
                if error is not None:
                    for other in pending:
                        other.cancel()
                    if isinstance(error, SynthesisError):
                        if error.sequence_key is None:
                            error.sequence_key = unit.sequence_key
                        raise error
                    raise SynthesisError(
                        f"Synthesis failed for unit {unit.sequence_key}: {error}",
                        sequence_key=unit.sequence_key,
                    ) from error

                results.append(SynthesisResult(unit.sequence_key, fut.result()))
                if progress:
                    progress(len(results), total)
    finally:
        # Queued calls are dropped; calls already in flight finish (each is
        # bounded by the request timeout) so no work outlives the run.
        executor.shutdown(wait=True, cancel_futures=True)

    results.sort(key=lambda r: r.sequence_key)
    logger.debug("Synthesized %d units", len(results))
    return results
