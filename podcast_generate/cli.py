"""CLI interface with subcommand routing and pipeline orchestration."""

import argparse
import logging
import os
import sys
import time

from dotenv import load_dotenv

from podcast_generate.config import EngineConfig
from podcast_generate.constants import (
    AUDIO_DIR,
    DEFAULT_BGM_VOLUME,
    DEFAULT_INTONATION_SCALE,
    DEFAULT_MAX_CHUNK_LENGTH,
    DEFAULT_PITCH,
    DEFAULT_SPEED,
    MAX_TEXT_LENGTH,
    SCRIPT_EXTENSIONS,
    TEXTS_DIR,
    VERSION,
)
from podcast_generate.assembly import combine_audio_buffers
from podcast_generate.docker import DockerEngine
from podcast_generate.engine import VoicevoxClient
from podcast_generate.errors import EngineCreatedNotice, PodcastGenerateError, ValidationError
from podcast_generate.exporter import finalize_output
from podcast_generate.models import BatchReport, VoiceParams
from podcast_generate.parser import is_dialogue_script, parse_dialogue_script
from podcast_generate.tts import build_dialogue_units, build_monologue_units, run_synthesis

logger = logging.getLogger(__name__)


def _print_progress(done: int, total: int) -> None:
    end = "\n" if done == total else ""
    print(f"\r  Progress: {done}/{total} chunks completed", end=end, flush=True)


def _read_input(text_file: str) -> str:
    """Read and validate the input document."""
    if not text_file:
        raise ValidationError("Input text file path is required.")
    if not os.path.isfile(text_file):
        raise ValidationError(f"Input text file not found: {os.path.abspath(text_file)}")

    try:
        with open(text_file, encoding="utf-8") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise ValidationError(f"Input text file is not valid UTF-8: {e}") from e

    if not text.strip():
        raise ValidationError("Input text file is empty.")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(
            f"Text file is too long ({len(text)} characters). "
            f"Maximum allowed length is {MAX_TEXT_LENGTH} characters."
        )
    return text


def _validate_paths(output_file: str, bgm_file: str | None) -> None:
    if not output_file:
        raise ValidationError("Output file path is required.")
    output_dir = os.path.dirname(os.path.abspath(output_file))
    if not os.path.isdir(output_dir):
        raise ValidationError(f"Output directory does not exist: {output_dir}")
    if bgm_file and not os.path.isfile(bgm_file):
        raise ValidationError(f"BGM file not found: {os.path.abspath(bgm_file)}")


def generate_audio(
    text_file: str,
    output_file: str,
    character_id: int | None = None,
    params: VoiceParams | None = None,
    bgm_file: str | None = None,
    bgm_volume: float = DEFAULT_BGM_VOLUME,
    client: VoicevoxClient | None = None,
    max_concurrency: int | None = None,
    max_length: int = DEFAULT_MAX_CHUNK_LENGTH,
) -> str:
    """Generate one audio file from one text document.

    All validation happens before the first engine call. Any failing chunk
    aborts the whole document and no output file is written.
    Returns the output path.
    """
    params = params or VoiceParams()

    text = _read_input(text_file)
    print(f"Read text from: {os.path.abspath(text_file)}")
    _validate_paths(output_file, bgm_file)

    if is_dialogue_script(text):
        print("Detected dialogue script format. Processing in dialogue mode...")
        parsed = parse_dialogue_script(text)
        if not parsed.lines:
            raise ValidationError("No valid dialogue lines found in the script.")
        print(f"Found {len(parsed.lines)} dialogue lines.")
        units = build_dialogue_units(parsed.lines, params, max_length)
    else:
        if character_id is None:
            raise ValidationError(
                "Character ID is required for single-speaker mode. Use -c or --character-id option."
            )
        units = build_monologue_units(text, character_id, params, max_length)
        print(f"Split text into {len(units)} chunks.")
    del text

    client = client or VoicevoxClient()
    client.reserve_connections(max_concurrency or len(units))
    print(f"Generating audio for {len(units)} chunks...")
    started = time.monotonic()
    results = run_synthesis(units, client.synthesize, max_workers=max_concurrency, progress=_print_progress)
    print(f"Voice generation time: {time.monotonic() - started:.1f}s")

    print("Concatenating audio chunks...")
    buffers = [r.audio_bytes for r in results]
    del results
    combined = combine_audio_buffers(buffers)
    del buffers

    finalize_output(combined, output_file, bgm_path=bgm_file, bgm_volume=bgm_volume)
    print(f"Successfully saved audio to: {os.path.abspath(output_file)}")
    return output_file


def batch_generate(texts_dir: str, audio_dir: str, **options) -> BatchReport:
    """Run generate_audio for every script/txt document in texts_dir.

    Documents whose <stem>.mp3 already exists in audio_dir are skipped. A
    failing document is recorded and the batch moves on to the next one.
    """
    if not os.path.isdir(texts_dir):
        raise ValidationError(f"Texts directory does not exist: {os.path.abspath(texts_dir)}")
    if not os.path.isdir(audio_dir):
        os.makedirs(audio_dir, exist_ok=True)
        print(f"Created audio directory: {os.path.abspath(audio_dir)}")

    report = BatchReport()
    scripts = sorted(
        f for f in os.listdir(texts_dir)
        if os.path.splitext(f)[1].lower() in SCRIPT_EXTENSIONS
    )
    if not scripts:
        print(f"No .script or .txt files found in {texts_dir}")
        return report

    print(f"Found {len(scripts)} script/txt files to process.")
    to_process = []
    for name in scripts:
        stem = os.path.splitext(name)[0]
        if os.path.exists(os.path.join(audio_dir, f"{stem}.mp3")):
            report.skipped.append(name)
        else:
            to_process.append(name)

    if report.skipped:
        print(f"Skipping {len(report.skipped)} files (already converted):")
        for name in report.skipped:
            print(f"  - {name}")

    if not to_process:
        print("All files have already been converted.")
        return report

    total = len(to_process)
    for i, name in enumerate(to_process):
        stem = os.path.splitext(name)[0]
        text_path = os.path.join(texts_dir, name)
        output_path = os.path.join(audio_dir, f"{stem}.mp3")
        print(f"\n[{i + 1}/{total}] Processing: {name}")
        report.processed.append(name)
        try:
            generate_audio(text_path, output_path, **options)
        except (PodcastGenerateError, OSError) as e:
            logger.error("Failed to convert %s: %s", name, e)
            print(f"  [fail] {name}: {e}", file=sys.stderr)
            report.failed[name] = str(e)
            continue
        report.succeeded.append(name)
        print(f"  [done] {name}")

    print(
        f"\nBatch processing completed. {len(report.succeeded)}/{total} files converted"
        f" ({len(report.failed)} failed)."
    )
    return report


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def _prepare_engine(args, config: EngineConfig) -> None:
    """Make sure a local engine is running unless the web API or --no-docker is used."""
    if config.uses_web_api or getattr(args, "no_docker", False):
        return
    DockerEngine(engine_url=config.base_url).prepare()


def _run(func, args) -> None:
    """Run a command, turning pipeline errors into a clean exit."""
    try:
        func(args)
    except EngineCreatedNotice as e:
        print(str(e))
        raise SystemExit(0)
    except PodcastGenerateError as e:
        print(f"\nError: {e}\n", file=sys.stderr)
        raise SystemExit(1)


def _generation_options(args, config: EngineConfig) -> dict:
    return {
        "character_id": args.character_id,
        "params": VoiceParams(
            pitch=args.pitch,
            intonation_scale=args.intonation_scale,
            speed=args.speed,
        ),
        "bgm_file": args.bgm,
        "bgm_volume": args.bgm_volume,
        "client": VoicevoxClient(config),
        "max_concurrency": args.max_concurrency,
    }


def cmd_generate(args):
    """Generate one audio file from a text file."""
    config = EngineConfig.from_env()
    _prepare_engine(args, config)
    generate_audio(args.text_file, args.output_file, **_generation_options(args, config))


def cmd_batch_generate(args):
    """Generate audio for every document under texts/<directory>."""
    texts_dir = os.path.join(TEXTS_DIR, args.directory)
    audio_dir = os.path.join(AUDIO_DIR, args.directory)
    if not os.path.isdir(texts_dir):
        raise ValidationError(f"Texts directory does not exist: {os.path.abspath(texts_dir)}")

    config = EngineConfig.from_env()
    _prepare_engine(args, config)
    batch_generate(texts_dir, audio_dir, **_generation_options(args, config))


def cmd_list_characters(args):
    """List every speaker style the engine offers."""
    config = EngineConfig.from_env()
    _prepare_engine(args, config)
    print("Fetching available characters...")
    speakers = VoicevoxClient(config).get_speakers()
    print(f"{'ID':>5}  {'Character':<24} Style")
    for speaker in speakers:
        for style in speaker.styles:
            print(f"{style.id:>5}  {speaker.name:<24} {style.name}")


def cmd_docker(args):
    """Manage the engine container."""
    engine = DockerEngine()
    actions = {
        "pull": engine.pull,
        "create": engine.create,
        "start": engine.start,
        "stop": engine.stop,
        "delete": engine.delete,
        "status": engine.status,
    }
    actions[args.action]()


def _add_generation_options(parser):
    parser.add_argument("-c", "--character-id", type=int, default=None,
                        help="Speaker style ID. Required for single-speaker text; dialogue lines name their own speaker")
    parser.add_argument("--pitch", type=float, default=DEFAULT_PITCH, help="Pitch of the voice")
    parser.add_argument("--intonation-scale", type=float, default=DEFAULT_INTONATION_SCALE,
                        help="Intonation scale of the voice")
    parser.add_argument("--speed", type=float, default=DEFAULT_SPEED, help="Speed of the voice")
    parser.add_argument("-b", "--bgm", default=None, help="Background music file mixed under the voice")
    parser.add_argument("--bgm-volume", type=float, default=DEFAULT_BGM_VOLUME,
                        help="BGM volume relative to the voice (0.0 to 1.0)")
    parser.add_argument("--max-concurrency", type=_positive_int, default=None,
                        help="Limit simultaneous synthesis requests (default: no limit)")
    parser.add_argument("--no-docker", action="store_true",
                        help="Do not manage the engine container; assume the engine is reachable")


def main():
    """CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="podcast-generate",
        description="Podcast Generate: turn monologue or dialogue scripts into a single audio file",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate
    gen_parser = subparsers.add_parser("generate", help="Generate a voice file from a text file")
    gen_parser.add_argument("-t", "--text-file", required=True, help="Path to the input text file")
    gen_parser.add_argument("-o", "--output-file", required=True,
                            help="Output audio file (.mp3 is encoded as MP3, anything else as WAV)")
    _add_generation_options(gen_parser)
    gen_parser.set_defaults(func=cmd_generate)

    # batch-generate
    batch_parser = subparsers.add_parser("batch-generate",
                                         help="Generate audio for every script/txt file in texts/<directory>")
    batch_parser.add_argument("-d", "--directory", required=True, help="Directory name under texts/")
    _add_generation_options(batch_parser)
    batch_parser.set_defaults(func=cmd_batch_generate)

    # list-characters
    list_parser = subparsers.add_parser("list-characters", help="List all available characters")
    list_parser.add_argument("--no-docker", action="store_true",
                             help="Do not manage the engine container; assume the engine is reachable")
    list_parser.set_defaults(func=cmd_list_characters)

    # docker
    docker_parser = subparsers.add_parser("docker", help="Manage the VOICEVOX engine container")
    docker_parser.add_argument("action", choices=["pull", "create", "start", "stop", "delete", "status"])
    docker_parser.set_defaults(func=cmd_docker)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    _run(args.func, args)
