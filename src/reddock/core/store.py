"""JSON store for container metadata (~/.config/reddock/config.json)."""

import contextlib
import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from reddock.exceptions import ConfigError
from reddock.models.config import ContainerRecord, ReddockConfig
from reddock.utils.config import get_config_dir


class ConfigStore:
    """Loads and saves the container configuration document."""

    def __init__(self, path: Path | None = None):
        self.path = path or get_config_dir() / "config.json"

    def load(self) -> ReddockConfig:
        """Read the configuration; a missing file yields an empty one.

        Raises:
            ConfigError: If the file cannot be read or does not validate.
        """
        if not self.path.exists():
            return ReddockConfig()

        try:
            raw = self.path.read_text()
        except OSError as e:
            raise ConfigError(f"Failed to read config {self.path}: {e}") from e

        try:
            data = json.loads(raw) if raw.strip() else {}
            config = ReddockConfig.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise ConfigError(f"Failed to parse config {self.path}: {e}") from e

        # Older files keyed records without repeating the name inside
        for name, record in config.containers.items():
            if not record.name:
                record.name = name
        return config

    def save(self, config: ReddockConfig) -> None:
        """Write the configuration atomically.

        Raises:
            ConfigError: If the file cannot be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self.path.parent, prefix=".config-", suffix=".json"
            )
        except OSError as e:
            raise ConfigError(f"Failed to write config {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w") as f:
                f.write(config.model_dump_json(indent=2))
            os.replace(tmp, self.path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise ConfigError(f"Failed to write config {self.path}: {e}") from e

    def get_container(self, name: str) -> ContainerRecord | None:
        return self.load().get_container(name)

    def record_addon(self, container: str, addon: str) -> bool:
        """Add ``addon`` to a container's injected set and persist it.

        Returns:
            True if the record changed; False if already present or the
            container is not managed by reddock.
        """
        config = self.load()
        record = config.get_container(container)
        if record is None or not record.record_addon(addon):
            return False
        self.save(config)
        return True
