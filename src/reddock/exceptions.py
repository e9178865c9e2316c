"""Typed exception hierarchy for reddock."""


class ReddockError(Exception):
    """Base exception for all reddock errors."""

    pass


class ToolNotFoundError(ReddockError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, install_hint: str | None = None):
        self.tool = tool
        self.install_hint = install_hint
        message = f"Required tool not found: {tool}"
        if install_hint:
            message += f"\nInstall: {install_hint}"
        super().__init__(message)


class ProcessError(ReddockError):
    """Raised when a subprocess command fails."""

    def __init__(self, command: list[str], returncode: int, output: str):
        self.command = command
        self.returncode = returncode
        self.output = output
        cmd_str = " ".join(command)
        super().__init__(f"Command failed (exit {returncode}): {cmd_str}\n{output}")


class ConfigError(ReddockError):
    """Raised when the container configuration store cannot be read or written."""

    pass


# Add-on pipeline


class AddonError(ReddockError):
    """Base class for add-on acquisition and installation failures."""

    pass


class AddonNotFoundError(AddonError):
    """Raised when an add-on name is not in the catalog."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Add-on '{name}' not found")


class UnsupportedError(AddonError):
    """Raised when a version or architecture is outside an add-on's manifest."""

    pass


class VersionUnsupportedError(UnsupportedError):
    """Raised when an add-on does not support the requested Android version."""

    def __init__(self, addon: str, version: str):
        self.addon = addon
        self.version = version
        super().__init__(f"{addon} does not support Android {version}")


class ArchitectureUnsupportedError(UnsupportedError):
    """Raised when an add-on has no archive for the requested architecture."""

    def __init__(self, addon: str, arch: str, version: str | None = None):
        self.addon = addon
        self.arch = arch
        self.version = version
        message = f"{addon} is not available for architecture {arch}"
        if version:
            message += f" on Android {version}"
        super().__init__(message)


class DownloadError(AddonError):
    """Raised when fetching a remote archive fails."""

    pass


class ChecksumMismatchError(DownloadError):
    """Raised when a downloaded archive does not match its recorded checksum."""

    def __init__(self, path: str, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {path}: expected {expected}, got {actual}"
        )


class ExtractError(AddonError):
    """Raised when an archive is malformed or cannot be unpacked."""

    pass


class StagingError(AddonError):
    """Raised when extracted files cannot be arranged into the staged tree."""

    pass


class TransferError(AddonError):
    """Raised when staged files cannot be copied into a container."""

    pass


class PreparationError(AddonError):
    """Raised when preparing an add-on fails; the original error is kept."""

    def __init__(self, name: str, cause: Exception):
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to prepare {name}: {cause}")


# Container runtime


class ContainerRuntimeError(ReddockError):
    """Raised when a docker/podman command fails."""

    pass


class ContainerNotRunningError(ContainerRuntimeError):
    """Raised when an operation needs a running container."""

    def __init__(self, container: str, status: str | None = None):
        self.container = container
        self.status = status
        message = f"Container '{container}' is not running"
        if status:
            message += f" (status: {status})"
        super().__init__(message + ". Please start it first")


class ImageBuildError(ContainerRuntimeError):
    """Raised when building or pushing an image fails."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)


class RegistrationError(ReddockError):
    """Raised when the GSF Android ID cannot be read from a container."""

    pass
