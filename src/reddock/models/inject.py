"""Pydantic models for injection and image build results."""

from pydantic import BaseModel


class InjectRequest(BaseModel):
    """One add-on to inject into a running container."""

    name: str
    """Catalog name of the add-on."""

    version: str
    """Android version of the target container."""

    arch: str
    """Architecture to fetch archives for."""


class InjectResult(BaseModel):
    """Outcome of injecting a single add-on."""

    name: str
    """Catalog name of the add-on."""

    success: bool
    """Whether the files were transferred and recorded."""

    copied: list[str] = []
    """Top-level staged entries copied into the container."""

    warnings: list[str] = []
    """Permission-repair commands that failed (advisory)."""

    recorded: bool = False
    """Whether the add-on name was newly added to the container record."""

    error: str | None = None
    """Error message when ``success`` is False."""


class InjectReport(BaseModel):
    """Per-item outcome of a batch injection."""

    container: str
    results: list[InjectResult] = []

    @property
    def succeeded(self) -> list[str]:
        """Names that were injected."""
        return [r.name for r in self.results if r.success]

    @property
    def failed(self) -> list[InjectResult]:
        """Results that did not complete."""
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        """True when every request succeeded."""
        return not self.failed


class BuildResult(BaseModel):
    """Outcome of building a custom image."""

    image: str
    """Tag of the built image."""

    dockerfile: str
    """Generated recipe text."""

    prepared: list[str] = []
    """Add-ons that were staged and included."""

    skipped: dict[str, str] = {}
    """Add-ons that failed to prepare, with the reason."""

    pushed: bool = False
