"""Lifecycle management for the VOICEVOX engine docker container."""

import enum
import logging
import shutil
import subprocess
import time

from podcast_generate.config import EngineConfig
from podcast_generate.constants import (
    CONTAINER_NAME,
    ENGINE_STARTUP_WAIT_SECONDS,
    ENGINE_URL,
    IMAGE_NAME,
    PORT_MAPPING,
    STATUS_TIMEOUT_SECONDS,
)
from podcast_generate.engine import VoicevoxClient
from podcast_generate.errors import EngineCreatedNotice, EngineError, SynthesisError

logger = logging.getLogger(__name__)


class EngineState(enum.Enum):
    NOT_PRESENT = "not created"
    STOPPED = "stopped"
    RUNNING = "running"


class DockerEngine:
    """Create / start / stop / delete the engine container with the docker CLI."""

    def __init__(
        self,
        container_name: str = CONTAINER_NAME,
        image: str = IMAGE_NAME,
        port_mapping: str = PORT_MAPPING,
        engine_url: str = ENGINE_URL,
        startup_wait: float = ENGINE_STARTUP_WAIT_SECONDS,
    ):
        self.container_name = container_name
        self.image = image
        self.port_mapping = port_mapping
        self.engine_url = engine_url
        self.startup_wait = startup_wait

    def _run(self, *args: str, stream: bool = False) -> subprocess.CompletedProcess:
        cmd = ["docker", *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            if stream:
                return subprocess.run(cmd, check=False, text=True)
            return subprocess.run(cmd, check=False, capture_output=True, text=True)
        except OSError as e:
            raise EngineError(f"Could not run docker: {e}") from e

    def _run_checked(self, *args: str, stream: bool = False) -> subprocess.CompletedProcess:
        proc = self._run(*args, stream=stream)
        if proc.returncode != 0:
            detail = (proc.stderr or "").strip()
            raise EngineError(f"'docker {' '.join(args)}' failed: {detail}")
        return proc

    def is_installed(self) -> bool:
        return shutil.which("docker") is not None

    def _require_docker(self) -> None:
        if not self.is_installed():
            raise EngineError("Docker is not installed or not available in PATH. Please install Docker to continue.")

    def _container_ids(self, all_states: bool) -> str:
        args = ["ps", "-q", "-f", f"name={self.container_name}"]
        if all_states:
            args.insert(1, "-a")
        proc = self._run(*args)
        if proc.returncode != 0:
            return ""
        return proc.stdout.strip()

    def state(self) -> EngineState:
        self._require_docker()
        if not self._container_ids(all_states=True):
            return EngineState.NOT_PRESENT
        if self._container_ids(all_states=False):
            return EngineState.RUNNING
        return EngineState.STOPPED

    def pull(self) -> None:
        self._require_docker()
        print(f"Pulling latest Docker image: {self.image}...")
        proc = self._run("pull", self.image, stream=True)
        if proc.returncode != 0:
            raise EngineError("Failed to pull Docker image. Please check your internet connection and Docker setup.")
        print("Image pulled successfully.")

    def _create(self) -> None:
        self.pull()
        self._run_checked("create", "--name", self.container_name, "-p", self.port_mapping, self.image)

    def create(self) -> None:
        if self.state() != EngineState.NOT_PRESENT:
            raise EngineError(
                f"Container '{self.container_name}' already exists. To re-create it, run 'docker delete' first."
            )
        print(f"Creating container '{self.container_name}'...")
        self._create()
        print("Container created. Run 'docker start' to start it.")

    def start(self) -> None:
        state = self.state()
        if state == EngineState.NOT_PRESENT:
            raise EngineError(f"Container '{self.container_name}' does not exist. Run 'docker create' first.")
        if state == EngineState.RUNNING:
            print("Container is already running.")
            return
        print(f"Starting container '{self.container_name}'...")
        self._run_checked("start", self.container_name)
        print("Container started.")

    def stop(self) -> None:
        if self.state() != EngineState.RUNNING:
            print("Container is not running.")
            return
        print(f"Stopping container '{self.container_name}'...")
        self._run_checked("stop", self.container_name)
        print("Container stopped.")

    def delete(self) -> None:
        if self.state() == EngineState.NOT_PRESENT:
            print(f"Container '{self.container_name}' does not exist. Nothing to delete.")
            return
        print(f"Deleting container '{self.container_name}'...")
        self._run_checked("rm", "-f", self.container_name)
        print("Container deleted successfully.")

    def status(self) -> None:
        """Print docker, container and engine status."""
        if not self.is_installed():
            print("Docker Status: Not Installed")
            return
        if self._run("ps").returncode != 0:
            print("Docker Status: Daemon not running")
            return

        state = self.state()
        if state != EngineState.RUNNING:
            print(f"Container '{self.container_name}': {state.value.capitalize()}")
            return

        print(f"Container '{self.container_name}': Running")
        client = VoicevoxClient(EngineConfig(base_url=self.engine_url, timeout=STATUS_TIMEOUT_SECONDS))
        try:
            version = client.version()
        except SynthesisError as e:
            logger.debug("Version probe failed: %s", e)
            print("Engine Status: Container is running, but API is not responding.")
            return
        print(f"Engine Version: {version}")

    def prepare(self) -> None:
        """Make sure the engine is running before synthesis.

        not created → pull and create, then raise EngineCreatedNotice so the
        user starts it explicitly; stopped → start and wait for the engine to
        come up; running → nothing to do.
        """
        state = self.state()
        if state == EngineState.NOT_PRESENT:
            print(f"Container '{self.container_name}' does not exist. Creating it for first-time use...")
            self._create()
            raise EngineCreatedNotice(
                f"Container '{self.container_name}' has been created.\n"
                "Before you can generate audio, you need to start it.\n\n"
                "Please run: podcast-generate docker start\n\n"
                "Then, re-run your previous command."
            )
        if state == EngineState.STOPPED:
            print(f"Container '{self.container_name}' is stopped. Starting it now...")
            self._run_checked("start", self.container_name)
            print(f"Waiting for engine to initialize ({self.startup_wait:g} seconds)...")
            time.sleep(self.startup_wait)
            print("Engine started. Proceeding...")
