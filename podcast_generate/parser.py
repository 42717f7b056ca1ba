"""Parse multi-speaker dialogue scripts.

Script format, one utterance per line:

    @1: こんにちは、これはテストです。
    @3: ずんだもんです。
    @1(pitch=-0.1, speed=1.2): パラメータを個別に上書きできます。

Malformed lines and parameters are skipped with a diagnostic instead of
aborting the parse.
"""

import logging
import re

from podcast_generate.models import DialogueLine, ParseDiagnostic, ParseResult

logger = logging.getLogger(__name__)

_DETECT_RE = re.compile(r"^@\d+(\([^)]+\))?:\s*.+$")
_LINE_RE = re.compile(r"^@(\d+)(?:\(([^)]+)\))?:\s*(.+)$")
_PARAM_RE = re.compile(r"^(\w+)\s*=\s*(-?\d+\.?\d*)$")

# Script key → DialogueLine attribute
PARAM_KEYS = {
    "pitch": "pitch",
    "intonationScale": "intonation_scale",
    "intonation_scale": "intonation_scale",
    "speed": "speed",
}


def is_dialogue_script(text: str) -> bool:
    """True if at least one non-blank line looks like `@ID: text` or `@ID(params): text`."""
    lines = [line.strip() for line in text.split("\n")]
    return any(_DETECT_RE.match(line) for line in lines if line)


def _preview(line: str) -> str:
    return line[:50] + ("..." if len(line) > 50 else "")


def _parse_parameters(params: str, line_number: int, diagnostics: list[ParseDiagnostic]) -> dict:
    """Parse `pitch=-0.1, speed=1.2` into DialogueLine keyword arguments."""
    result = {}
    for pair in (p.strip() for p in params.split(",")):
        match = _PARAM_RE.match(pair)
        if not match:
            diagnostics.append(ParseDiagnostic(line_number, f'Invalid parameter format "{pair}", skipping'))
            continue

        key, raw = match.group(1), match.group(2)
        attr = PARAM_KEYS.get(key)
        if attr is None:
            diagnostics.append(ParseDiagnostic(line_number, f'Unknown parameter "{key}", skipping'))
            continue
        result[attr] = float(raw)
    return result


def parse_dialogue_script(text: str) -> ParseResult:
    """Parse a dialogue script into ordered DialogueLines plus diagnostics.

    line_index counts emitted lines only, so skipped lines leave no gaps.
    Every diagnostic is also logged as a warning.
    """
    result = ParseResult()

    for i, raw_line in enumerate(text.split("\n")):
        line_number = i + 1
        line = raw_line.strip()
        if not line:
            continue

        match = _LINE_RE.match(line)
        if not match:
            result.diagnostics.append(ParseDiagnostic(
                line_number,
                f'Line does not match dialogue format and will be skipped: "{_preview(line)}"',
            ))
            continue

        speaker_id = int(match.group(1))
        params = match.group(2) or ""
        body = match.group(3).strip()

        if not body:
            result.diagnostics.append(ParseDiagnostic(line_number, "Line has empty text and will be skipped"))
            continue

        overrides = _parse_parameters(params, line_number, result.diagnostics) if params else {}
        result.lines.append(DialogueLine(
            line_index=len(result.lines),
            speaker_id=speaker_id,
            text=body,
            **overrides,
        ))

    for diag in result.diagnostics:
        logger.warning("Line %d: %s", diag.line_number, diag.message)

    return result
