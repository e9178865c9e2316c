"""Pydantic models for the persisted container configuration."""

from pydantic import BaseModel


class ContainerRecord(BaseModel):
    """A managed redroid container."""

    name: str = ""
    image_url: str = ""
    data_path: str = ""
    log_file: str = ""
    port: int = 5555
    gpu_mode: str = "auto"
    initialized: bool = False

    addons: list[str] = []
    """Add-ons injected into this container, in injection order."""

    def record_addon(self, name: str) -> bool:
        """Append ``name`` unless already present.

        Returns:
            True if the record changed.
        """
        if name in self.addons:
            return False
        self.addons.append(name)
        return True


class ReddockConfig(BaseModel):
    """Top-level configuration document."""

    containers: dict[str, ContainerRecord] = {}

    def get_container(self, name: str) -> ContainerRecord | None:
        """Find a container by name."""
        return self.containers.get(name)

    def add_container(self, container: ContainerRecord) -> None:
        """Insert or replace a container record."""
        self.containers[container.name] = container
