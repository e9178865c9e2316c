"""Subprocess wrapper for docker/podman, tar and friends."""

import subprocess
from dataclasses import dataclass

from reddock.exceptions import ProcessError


@dataclass
class ProcessResult:
    """Result of a subprocess execution."""

    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Get stdout, stripping trailing whitespace."""
        return self.stdout.strip()

    @property
    def combined(self) -> str:
        """Get stdout followed by stderr, as the engine printed them."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def run_tool(
    command: list[str],
    *,
    check: bool = True,
    capture_output: bool = True,
    timeout: float | None = None,
    cwd: str | None = None,
) -> ProcessResult:
    """Run an external tool command.

    No timeout is applied unless one is given; image builds and archive
    extraction can legitimately run for a long time.

    Args:
        command: Command and arguments to run.
        check: If True, raise ProcessError on non-zero exit.
        capture_output: If True, capture stdout and stderr. Otherwise the
            child inherits the terminal (used for ``pull`` progress).
        timeout: Optional timeout in seconds.
        cwd: Working directory for the command.

    Returns:
        ProcessResult with command output.

    Raises:
        ProcessError: If check=True and command returns non-zero, or the
            executable is missing.
    """
    try:
        result = subprocess.run(
            command,
            capture_output=capture_output,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired as e:
        raise ProcessError(command, -1, f"Command timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise ProcessError(command, -1, f"Command not found: {command[0]}") from e

    proc_result = ProcessResult(
        command=command,
        returncode=result.returncode,
        stdout=result.stdout if capture_output else "",
        stderr=result.stderr if capture_output else "",
    )

    if check and not proc_result.success:
        raise ProcessError(command, result.returncode, proc_result.combined)

    return proc_result
