"""DynamoDB Local emulator lifecycle.

Runs amazon/dynamodb-local in docker as a scoped resource: start before
use, guaranteed teardown after. Nothing here is needed when talking to
real DynamoDB.
"""

import logging
import shutil
import socket
import subprocess
import time

from ..errors import EmulatorError
from .config import EmulatorConfig

logger = logging.getLogger(__name__)

# Port DynamoDB Local listens on inside the container
CONTAINER_PORT = 8000


def port_open(host: str, port: int, timeout: float = 0.25) -> bool:
    """Check if a port is open without hanging."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def docker_available() -> bool:
    """True if a docker CLI is on PATH and the daemon answers."""
    if shutil.which("docker") is None:
        return False
    try:
        result = subprocess.run(
            ["docker", "info", "--format", "{{.ServerVersion}}"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def run_docker(args: list[str], check: bool = True, timeout: float = 120) -> subprocess.CompletedProcess:
    """Run a docker command and capture its output.

    Raises:
        EmulatorError: If docker is missing, times out, or (with check) exits non-zero
    """
    cmd = ["docker", *args]
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise EmulatorError("docker CLI not found on PATH") from e
    except subprocess.TimeoutExpired as e:
        raise EmulatorError(f"docker {args[0]} timed out after {timeout}s") from e

    if check and result.returncode != 0:
        raise EmulatorError(f"docker {args[0]} failed: {result.stderr.strip()}")
    return result


class DynamoDBLocal:
    """DynamoDB Local container as a context manager.

    Example:
        >>> with DynamoDBLocal(EmulatorConfig(port=8001)) as emulator:
        ...     store = DynamoDBConditionalStore("ids", endpoint_url=emulator.endpoint_url)
    """

    def __init__(self, config: EmulatorConfig | None = None):
        self.config = config or EmulatorConfig()

    @property
    def endpoint_url(self) -> str:
        return self.config.endpoint_url

    def is_running(self) -> bool:
        result = run_docker(
            ["inspect", "--format", "{{.State.Running}}", self.config.container_name],
            check=False,
        )
        return result.returncode == 0 and result.stdout.strip() == "true"

    def start(self) -> "DynamoDBLocal":
        """Start a fresh in-memory emulator and wait for its port.

        Any container with the same name is removed first.
        """
        cfg = self.config
        run_docker(["rm", "-f", cfg.container_name], check=False)

        logger.info(f"Starting {cfg.image} as {cfg.container_name} on port {cfg.port}")
        run_docker(
            [
                "run", "-d",
                "--name", cfg.container_name,
                "-p", f"{cfg.port}:{CONTAINER_PORT}",
                cfg.image,
                "-jar", "DynamoDBLocal.jar", "-inMemory", "-sharedDb",
            ]
        )

        deadline = time.monotonic() + cfg.startup_timeout
        while not port_open("localhost", cfg.port):
            if time.monotonic() > deadline:
                self.stop(force=True)
                raise EmulatorError(
                    f"DynamoDB Local did not open port {cfg.port} within {cfg.startup_timeout}s"
                )
            time.sleep(0.2)

        logger.info(f"DynamoDB Local ready at {self.endpoint_url}")
        return self

    def stop(self, force: bool = False) -> None:
        """Remove the container unless keep_container is set."""
        if self.config.keep_container and not force:
            logger.info(f"Keeping container {self.config.container_name} for inspection")
            return
        run_docker(["rm", "-f", self.config.container_name], check=False)
        logger.info(f"Removed container {self.config.container_name}")

    def __enter__(self) -> "DynamoDBLocal":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
