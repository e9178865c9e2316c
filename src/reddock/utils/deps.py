"""External tool dependency checker."""

from __future__ import annotations

import shutil

from reddock.exceptions import ToolNotFoundError

# Install hints for required tools
TOOL_INSTALL_HINTS: dict[str, str] = {
    "docker": "https://docs.docker.com/engine/install/",
    "podman": "https://podman.io/docs/installation",
    "tar": "Install GNU tar from your distribution",
    "lzip": "apt install lzip / dnf install lzip / pacman -S lzip",
    "xz": "apt install xz-utils / dnf install xz / pacman -S xz",
}

ARCHIVE_TOOLS: tuple[str, ...] = ("tar", "lzip", "xz")


def check_tool(tool: str) -> bool:
    """Check if a tool is available on PATH."""

    return shutil.which(tool) is not None


def require(*tools: str) -> None:
    """Require that all specified tools are available.

    Args:
        *tools: Names of tools that must be available.

    Raises:
        ToolNotFoundError: If any tool is not found.
    """
    for tool in tools:
        if not check_tool(tool):
            raise ToolNotFoundError(tool, TOOL_INSTALL_HINTS.get(tool))


def missing_tools(*tools: str) -> list[str]:
    """Return the subset of ``tools`` that are not on PATH."""

    return [tool for tool in tools if not check_tool(tool)]


def check_archive_tools() -> list[str]:
    """List missing tools needed to unpack vendor archives (tar, lzip, xz)."""

    return missing_tools(*ARCHIVE_TOOLS)
