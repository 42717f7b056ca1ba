"""All magic numbers and configuration constants."""

DEFAULT_MAX_CHUNK_LENGTH = 600       # chars, longest text sent in one synthesis call
SENTENCE_TERMINATORS = "。！？!?"     # preferred cut points when splitting text
MAX_TEXT_LENGTH = 100000             # chars, hard ceiling for one input document
DEFAULT_PITCH = 0.0
DEFAULT_INTONATION_SCALE = 1.0
DEFAULT_SPEED = 1.0
DEFAULT_BGM_VOLUME = 0.05            # BGM amplitude relative to the voice track
COMPRESSED_EXTENSIONS = {".mp3"}     # output extensions that get a lossy codec
OUTPUT_SAMPLE_RATE = 44100           # Hz, final mix / conversion sample rate
OUTPUT_CHANNELS = 2                  # final output is always stereo
OUTPUT_BITRATE = "128k"              # MP3 output bitrate
MIX_DROPOUT_TRANSITION = 2           # seconds, amix dropout transition
SYNTHESIS_TIMEOUT_SECONDS = 120.0    # per-call timeout against the engine
STATUS_TIMEOUT_SECONDS = 5           # engine version probe in `docker status`
ENGINE_URL = "http://127.0.0.1:50021"
WEB_API_URL = "https://api.su-shiki.com/v2/voicevox"
CONTAINER_NAME = "podcast-generate-voicevox-engine"
IMAGE_NAME = "voicevox/voicevox_engine:cpu-latest"
PORT_MAPPING = "127.0.0.1:50021:50021"
ENGINE_STARTUP_WAIT_SECONDS = 10     # wait after `docker start` before first request
SCRIPT_EXTENSIONS = (".script", ".txt")
TEXTS_DIR = "texts"
AUDIO_DIR = "audio"
VERSION = "0.1.0"
