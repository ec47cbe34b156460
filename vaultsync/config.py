"""Configuration management for vaultsync.

Credentials and vault identifiers are read from environment variables
(``VAULTSYNC_*``) with a JSON config file in ``~/.config/vaultsync/`` as
fallback. Engine behaviour is described by the immutable
:class:`SyncSettings` value, which is passed explicitly into each sync call.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigError
from .utils import DEFAULT_CONCURRENCY

logger = logging.getLogger(__name__)

DEFAULT_CONFLICT_FOLDER = "sync_conflicts"

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (".obsidian/**", ".**", ".*/**")

CONFIG_DIR = Path.home() / ".config" / "vaultsync"
CONFIG_FILE = CONFIG_DIR / "config.json"


@dataclass(frozen=True)
class SyncSettings:
    """Immutable settings for a single sync operation."""

    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    """Glob patterns of paths that are never synced"""

    conflict_folder: str = DEFAULT_CONFLICT_FOLDER
    """Local folder receiving backups of discarded conflict versions"""

    concurrency: int = DEFAULT_CONCURRENCY
    """Maximum number of in-flight transfers"""

    use_trash: bool = False
    """Move deleted local files to the system trash instead of unlinking"""

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if not self.conflict_folder.strip("/"):
            raise ConfigError("conflict_folder must not be empty")
        # Backups must never be picked up by a later sync
        object.__setattr__(self, "conflict_folder", self.conflict_folder.strip("/"))
        object.__setattr__(self, "exclude_patterns", tuple(self.exclude_patterns))
        if self.conflict_pattern not in self.exclude_patterns:
            object.__setattr__(
                self,
                "exclude_patterns",
                self.exclude_patterns + (self.conflict_pattern,),
            )

    @property
    def conflict_pattern(self) -> str:
        """Exclude pattern covering the conflict folder."""
        return f"{self.conflict_folder}/**"

    def with_changes(self, **changes: Any) -> "SyncSettings":
        """Return a copy of the settings with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Convert settings to dictionary for JSON serialization."""
        return {
            "exclude_patterns": list(self.exclude_patterns),
            "conflict_folder": self.conflict_folder,
            "concurrency": self.concurrency,
            "use_trash": self.use_trash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncSettings":
        """Create SyncSettings from dictionary."""
        return cls(
            exclude_patterns=tuple(
                data.get("exclude_patterns", DEFAULT_EXCLUDE_PATTERNS)
            ),
            conflict_folder=data.get("conflict_folder", DEFAULT_CONFLICT_FOLDER),
            concurrency=int(data.get("concurrency", DEFAULT_CONCURRENCY)),
            use_trash=bool(data.get("use_trash", False)),
        )


@dataclass
class Config:
    """Application configuration (credentials, vault location, settings)."""

    refresh_token: Optional[str] = None
    refresh_url: Optional[str] = None
    vault_id: Optional[str] = None
    vault_path: Optional[Path] = None
    settings: SyncSettings = field(default_factory=SyncSettings)
    config_file: Path = CONFIG_FILE

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "Config":
        """Load configuration from the config file and environment.

        Environment variables take precedence over values in the file.

        Args:
            config_file: Path to the JSON config file (defaults to
                ~/.config/vaultsync/config.json)

        Returns:
            Config instance
        """
        config_file = config_file or CONFIG_FILE
        data: dict = {}

        if config_file.exists():
            try:
                with open(config_file, encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                raise ConfigError(f"Failed to read config file {config_file}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {config_file} must contain an object")

        vault_path = os.getenv("VAULTSYNC_VAULT_PATH") or data.get("vault_path")

        settings = SyncSettings.from_dict(data.get("settings", {}))
        env_patterns = os.getenv("VAULTSYNC_EXCLUDE")
        if env_patterns:
            patterns = tuple(p for p in env_patterns.split(",") if p.strip())
            settings = settings.with_changes(exclude_patterns=patterns)
        env_conflict = os.getenv("VAULTSYNC_CONFLICT_FOLDER")
        if env_conflict:
            settings = settings.with_changes(conflict_folder=env_conflict)

        return cls(
            refresh_token=os.getenv("VAULTSYNC_REFRESH_TOKEN")
            or data.get("refresh_token"),
            refresh_url=os.getenv("VAULTSYNC_REFRESH_URL")
            or data.get("refresh_url"),
            vault_id=os.getenv("VAULTSYNC_VAULT_ID") or data.get("vault_id"),
            vault_path=Path(vault_path) if vault_path else None,
            settings=settings,
            config_file=config_file,
        )

    def save(self) -> None:
        """Write the configuration to the config file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "refresh_token": self.refresh_token,
            "refresh_url": self.refresh_url,
            "vault_id": self.vault_id,
            "vault_path": str(self.vault_path) if self.vault_path else None,
            "settings": self.settings.to_dict(),
        }
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Saved configuration to {self.config_file}")
