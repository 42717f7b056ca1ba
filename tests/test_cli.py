"""Tests for the pipeline entry points and CLI routing."""

import os
from unittest.mock import patch

import pytest

from conftest import FakeClient, make_wav
from podcast_generate.assembly import decode_wav
from podcast_generate.cli import batch_generate, generate_audio, main
from podcast_generate.constants import MAX_TEXT_LENGTH
from podcast_generate.errors import FormatError, SynthesisError, ValidationError
from podcast_generate.models import ParseResult, VoiceParams


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


def _fake_convert(wav_path, target):
    with open(target, "wb") as f:
        f.write(b"ID3")


# --- Single document ---

def test_monologue_to_wav(tmp_path):
    """Monologue text becomes one WAV of all chunks."""
    text_file = _write(tmp_path / "talk.txt", "今日はいい天気です。" * 100)
    out = tmp_path / "talk.wav"
    client = FakeClient()

    generate_audio(text_file, str(out), character_id=3, client=client, max_length=100)

    assert out.exists()
    assert len(client.calls) == 10
    assert all(u.speaker_id == 3 for u in client.calls)
    decoded = decode_wav(out.read_bytes())
    assert len(decoded.sample_data) == 10 * len(decode_wav(make_wav(duration_ms=50)).sample_data)


def test_dialogue_mode_uses_line_speakers(tmp_path):
    """Dialogue lines use their own speaker and overrides."""
    text_file = _write(tmp_path / "dialogue.script", "@1: こんにちは。\n@3(speed=1.2): ずんだもんです。\n")
    out = tmp_path / "dialogue.wav"
    client = FakeClient()

    generate_audio(text_file, str(out), client=client, params=VoiceParams(pitch=0.1))

    by_key = {u.sequence_key: u for u in client.calls}
    assert by_key[(0, 0)].speaker_id == 1
    assert by_key[(1, 0)].speaker_id == 3
    assert by_key[(1, 0)].speed == 1.2
    assert by_key[(1, 0)].pitch == 0.1
    assert out.exists()


def test_monologue_requires_character_id(tmp_path):
    """Monologue without a character id fails before synthesis."""
    text_file = _write(tmp_path / "talk.txt", "普通の文章です。")
    client = FakeClient()
    with pytest.raises(ValidationError, match="Character ID is required"):
        generate_audio(text_file, str(tmp_path / "out.wav"), client=client)
    assert client.calls == []


@pytest.mark.parametrize("content,match", [
    ("", "empty"),
    ("   \n", "empty"),
    ("あ" * (MAX_TEXT_LENGTH + 1), "too long"),
])
def test_input_validation(tmp_path, content, match):
    """Empty or oversized input fails before synthesis."""
    text_file = _write(tmp_path / "bad.txt", content)
    client = FakeClient()
    with pytest.raises(ValidationError, match=match):
        generate_audio(text_file, str(tmp_path / "out.wav"), character_id=1, client=client)
    assert client.calls == []


def test_missing_input_file(tmp_path):
    """Nonexistent input file is a validation error."""
    with pytest.raises(ValidationError, match="not found"):
        generate_audio(str(tmp_path / "nope.txt"), str(tmp_path / "out.wav"), character_id=1, client=FakeClient())


def test_missing_output_directory(tmp_path):
    """Output directory must exist."""
    text_file = _write(tmp_path / "talk.txt", "文章です。")
    with pytest.raises(ValidationError, match="Output directory does not exist"):
        generate_audio(text_file, str(tmp_path / "missing" / "out.wav"), character_id=1, client=FakeClient())


def test_missing_bgm_file(tmp_path):
    """Declared BGM file must exist."""
    text_file = _write(tmp_path / "talk.txt", "文章です。")
    client = FakeClient()
    with pytest.raises(ValidationError, match="BGM file not found"):
        generate_audio(text_file, str(tmp_path / "out.mp3"), character_id=1,
                       bgm_file=str(tmp_path / "jazz.mp3"), client=client)
    assert client.calls == []


def test_dialogue_without_valid_lines_rejected(tmp_path):
    """Dialogue with no parsed lines is rejected."""
    text_file = _write(tmp_path / "broken.script", "@1: こんにちは。")
    with patch("podcast_generate.cli.parse_dialogue_script", return_value=ParseResult()):
        with pytest.raises(ValidationError, match="No valid dialogue lines"):
            generate_audio(text_file, str(tmp_path / "out.wav"), client=FakeClient())


def test_one_failed_chunk_fails_run_without_output(tmp_path):
    """One failing chunk leaves no output or temp files."""
    text_file = _write(tmp_path / "talk.txt", "一。二。三。四。")
    out = tmp_path / "talk.wav"
    client = FakeClient(fail_on="三。")

    with pytest.raises(SynthesisError):
        generate_audio(text_file, str(out), character_id=1, client=client, max_length=2)

    assert not out.exists()
    assert os.listdir(tmp_path) == ["talk.txt"]


def test_engine_format_drift_fails_run(tmp_path):
    """Chunks in different formats fail the run."""
    text_file = _write(tmp_path / "talk.txt", "一。二。")
    out = tmp_path / "talk.wav"

    class DriftingClient(FakeClient):
        def synthesize(self, unit):
            rate = 24000 if unit.sequence_key == (0, 0) else 48000
            return make_wav(duration_ms=50, frame_rate=rate)

    with pytest.raises(FormatError):
        generate_audio(text_file, str(out), character_id=1, client=DriftingClient(), max_length=2)
    assert not out.exists()


# --- Batch ---

@patch("podcast_generate.exporter.convert_to_mp3", side_effect=_fake_convert)
def test_batch_isolates_failed_document(mock_convert, tmp_path):
    """A failing document does not stop the batch."""
    texts = tmp_path / "texts"
    texts.mkdir()
    _write(texts / "01_intro.txt", "はじめまして。")
    _write(texts / "02_empty.txt", "")
    _write(texts / "03_outro.script", "@1: さようなら。")
    audio = tmp_path / "audio"

    report = batch_generate(str(texts), str(audio), character_id=1, client=FakeClient())

    assert report.succeeded == ["01_intro.txt", "03_outro.script"]
    assert list(report.failed) == ["02_empty.txt"]
    assert "empty" in report.failed["02_empty.txt"]
    assert (audio / "01_intro.mp3").exists()
    assert (audio / "03_outro.mp3").exists()
    assert not (audio / "02_empty.mp3").exists()


@patch("podcast_generate.exporter.convert_to_mp3", side_effect=_fake_convert)
def test_batch_skips_existing_outputs(mock_convert, tmp_path):
    """Documents with an existing MP3 are skipped."""
    texts = tmp_path / "texts"
    texts.mkdir()
    _write(texts / "a.txt", "一つ目。")
    _write(texts / "b.txt", "二つ目。")
    _write(texts / "notes.md", "ignored")
    audio = tmp_path / "audio"
    audio.mkdir()
    (audio / "a.mp3").write_bytes(b"done")
    client = FakeClient()

    report = batch_generate(str(texts), str(audio), character_id=1, client=client)

    assert report.skipped == ["a.txt"]
    assert report.succeeded == ["b.txt"]
    assert (audio / "a.mp3").read_bytes() == b"done"
    assert [u.text for u in client.calls] == ["二つ目。"]


def test_batch_missing_directory(tmp_path):
    """Missing texts directory is a validation error."""
    with pytest.raises(ValidationError, match="Texts directory does not exist"):
        batch_generate(str(tmp_path / "nope"), str(tmp_path / "audio"))


# --- CLI routing ---

def test_cli_generate(tmp_path, monkeypatch):
    """generate subcommand writes the output file."""
    monkeypatch.delenv("VOICEVOX_API_KEY", raising=False)
    text_file = _write(tmp_path / "talk.txt", "こんにちは。")
    out = tmp_path / "talk.wav"
    argv = ["podcast-generate", "generate", "-t", text_file, "-o", str(out), "-c", "3", "--no-docker"]

    with patch("sys.argv", argv), patch("podcast_generate.cli.VoicevoxClient", return_value=FakeClient()):
        main()
    assert out.exists()


def test_cli_generate_error_exits_1(tmp_path, capsys, monkeypatch):
    """Pipeline errors print Error: and exit 1."""
    monkeypatch.delenv("VOICEVOX_API_KEY", raising=False)
    text_file = _write(tmp_path / "talk.txt", "")
    argv = ["podcast-generate", "generate", "-t", text_file, "-o", str(tmp_path / "o.wav"), "--no-docker"]

    with patch("sys.argv", argv), patch("podcast_generate.cli.VoicevoxClient", return_value=FakeClient()):
        with pytest.raises(SystemExit) as exc:
            main()
    assert exc.value.code == 1
    assert "Error: Input text file is empty." in capsys.readouterr().err


def test_cli_generate_prepares_docker_engine(tmp_path, monkeypatch):
    """generate prepares the docker engine by default."""
    monkeypatch.delenv("VOICEVOX_API_KEY", raising=False)
    text_file = _write(tmp_path / "talk.txt", "こんにちは。")
    argv = ["podcast-generate", "generate", "-t", text_file, "-o", str(tmp_path / "o.wav"), "-c", "1"]

    with patch("sys.argv", argv), \
            patch("podcast_generate.cli.VoicevoxClient", return_value=FakeClient()), \
            patch("podcast_generate.cli.DockerEngine") as engine:
        main()
    engine.return_value.prepare.assert_called_once()


def test_cli_list_characters(capsys, monkeypatch):
    """list-characters prints each speaker style."""
    from podcast_generate.models import Speaker, SpeakerStyle

    monkeypatch.delenv("VOICEVOX_API_KEY", raising=False)
    speakers = [Speaker("ずんだもん", "uuid", [SpeakerStyle("ノーマル", 3)])]
    with patch("sys.argv", ["podcast-generate", "list-characters", "--no-docker"]), \
            patch("podcast_generate.cli.VoicevoxClient") as client:
        client.return_value.get_speakers.return_value = speakers
        main()
    out = capsys.readouterr().out
    assert "ずんだもん" in out
    assert "ノーマル" in out


def test_cli_docker_action_routed():
    """docker subcommand dispatches to the engine action."""
    with patch("sys.argv", ["podcast-generate", "docker", "status"]), \
            patch("podcast_generate.cli.DockerEngine") as engine:
        main()
    engine.return_value.status.assert_called_once()


def test_cli_no_command_prints_help(capsys):
    """No subcommand prints usage."""
    with patch("sys.argv", ["podcast-generate"]):
        main()
    assert "usage" in capsys.readouterr().out.lower()


def test_missing_input_path_is_validation_error(tmp_path):
    """No input path is a validation error, not a TypeError."""
    client = FakeClient()
    with pytest.raises(ValidationError, match="Input text file path is required"):
        generate_audio(None, str(tmp_path / "out.wav"), character_id=1, client=client)
    assert client.calls == []


def test_connection_pool_sized_to_fan_out(tmp_path):
    """Connection pool matches the number of concurrent calls."""
    text_file = _write(tmp_path / "talk.txt", "一。二。三。四。")
    unbounded = FakeClient()
    generate_audio(text_file, str(tmp_path / "a.wav"), character_id=1, client=unbounded, max_length=2)
    assert unbounded.reserved == 4

    bounded = FakeClient()
    generate_audio(text_file, str(tmp_path / "b.wav"), character_id=1, client=bounded,
                   max_length=2, max_concurrency=2)
    assert bounded.reserved == 2


@pytest.mark.parametrize("value", ["0", "-3"])
def test_cli_rejects_non_positive_concurrency(tmp_path, capsys, value):
    """--max-concurrency below 1 is an argument error."""
    text_file = _write(tmp_path / "talk.txt", "こんにちは。")
    argv = ["podcast-generate", "generate", "-t", text_file, "-o", str(tmp_path / "o.wav"),
            "-c", "1", "--no-docker", "--max-concurrency", value]
    with patch("sys.argv", argv), pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 2
    assert "must be at least 1" in capsys.readouterr().err
