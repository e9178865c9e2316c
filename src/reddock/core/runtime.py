"""docker/podman wrapper used by the catalog and the injector."""

import shutil

from reddock.exceptions import ContainerRuntimeError, ProcessError
from reddock.utils.config import get_runtime_preference
from reddock.utils.deps import require
from reddock.utils.process import ProcessResult, run_tool

SUPPORTED_RUNTIMES = ("podman", "docker")


def detect_runtime() -> str:
    """Pick the container engine binary.

    An explicit REDDOCK_RUNTIME/settings value wins. Otherwise podman is used
    when it is installed and answers ``podman ps``; docker is the fallback.
    """
    preferred = get_runtime_preference()
    if preferred:
        return preferred

    if shutil.which("podman"):
        result = run_tool(["podman", "ps"], check=False)
        if result.success:
            return "podman"
    return "docker"


class ContainerRuntime:
    """Thin wrapper around one container engine binary."""

    def __init__(self, binary: str | None = None):
        """Initialize runtime wrapper.

        Args:
            binary: Engine binary ('docker' or 'podman'). Auto-detected if None.
        """
        self.binary = binary or detect_runtime()

    @property
    def name(self) -> str:
        return self.binary

    def command(self, *args: str) -> list[str]:
        """Full argv for an engine subcommand."""
        return [self.binary, *args]

    def _run(self, *args: str, check: bool = True) -> ProcessResult:
        try:
            return run_tool(self.command(*args), check=check)
        except ProcessError as e:
            raise ContainerRuntimeError(
                f"{self.binary} {args[0]} failed (exit {e.returncode}):\n{e.output}"
            ) from e

    def ensure_installed(self) -> None:
        require(self.binary)

    def pull_image(self, reference: str) -> None:
        """Pull an image, streaming the engine's progress to the terminal."""
        try:
            run_tool(self.command("pull", reference), capture_output=False)
        except ProcessError as e:
            raise ContainerRuntimeError(
                f"Failed to pull image {reference} (exit {e.returncode})"
            ) from e

    def inspect(self, container: str, fmt: str) -> str | None:
        """Run ``inspect -f`` and return the trimmed output, None if missing."""
        result = run_tool(self.command("inspect", "-f", fmt, container), check=False)
        if not result.success:
            return None
        return result.output

    def status(self, container: str) -> str | None:
        """Container state ('running', 'exited', ...), None if it does not exist."""
        return self.inspect(container, "{{.State.Status}}")

    def is_running(self, container: str) -> bool:
        return self.status(container) == "running"

    def exec(self, container: str, argv: list[str]) -> ProcessResult:
        """Run ``argv`` inside ``container``; never raises on a non-zero exit."""
        return run_tool(self.command("exec", container, *argv), check=False)

    def copy_into(self, container: str, host_path: str, dest: str = "/") -> None:
        """Copy a host file or directory into the container filesystem."""
        self._run("cp", host_path, f"{container}:{dest}")

    def build(self, tag: str, context: str) -> ProcessResult:
        """Build an image; the result carries the engine's combined output."""
        return run_tool(self.command("build", "-t", tag, context), check=False)

    def push(self, image: str) -> ProcessResult:
        return run_tool(self.command("push", image), check=False)
