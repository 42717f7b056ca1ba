"""Split long text into bounded chunks on sentence boundaries."""

from podcast_generate.constants import DEFAULT_MAX_CHUNK_LENGTH, SENTENCE_TERMINATORS


def _last_terminator(chunk: str) -> int:
    """Index of the last sentence terminator in chunk, or -1."""
    return max(chunk.rfind(t) for t in SENTENCE_TERMINATORS)


def split_text(text: str, max_length: int = DEFAULT_MAX_CHUNK_LENGTH) -> list[str]:
    """Split text into chunks no longer than max_length.

    Cuts right after the last sentence terminator inside each max_length
    window, keeping the terminator with the preceding chunk. A window with no
    terminator is hard-cut at max_length. Whitespace around each cut is
    stripped from the remainder; nothing else is dropped.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        window = remaining[:max_length]
        cut = _last_terminator(window)
        if cut != -1:
            chunks.append(remaining[:cut + 1])
            remaining = remaining[cut + 1:].strip()
        else:
            chunks.append(window)
            remaining = remaining[max_length:].strip()

    return chunks
