"""recordkit.ini configuration parsing."""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

SECTION = "recordkit"
FILENAME = "recordkit.ini"
URL_ENV_VAR = "RECORDKIT_DATABASE_URL"


@dataclass
class Settings:
    """Parse and represent recordkit.ini configuration.

    Example recordkit.ini:
        [recordkit]
        database_url = sqlite:///app.db
        table_prefix = wp_
        unguarded = true
        log_level = DEBUG
        cache = true
    """

    database_url: str | None = None
    """Database connection URL from config (can be overridden)."""

    table_prefix: str = ""
    """Prepended to every physical table name."""

    unguarded: bool = True
    """Default mass-assignment policy for models that do not set one."""

    log_level: str = "WARNING"
    """Level applied to the ``recordkit`` logger."""

    cache: bool = True
    """Whether the context gets an in-memory record cache."""

    extra: dict[str, Any] = field(default_factory=dict)
    """Additional configuration options."""

    @classmethod
    def from_ini(cls, path: Path | str) -> Settings:
        """Load configuration from a recordkit.ini file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the [recordkit] section is missing
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        config = configparser.ConfigParser()
        config.read(path)

        if SECTION not in config:
            raise ValueError(f"No [{SECTION}] section in {path}")

        section = config[SECTION]

        known_keys = {"database_url", "table_prefix", "unguarded", "log_level", "cache"}
        extra = {k: v for k, v in section.items() if k not in known_keys}

        return cls(
            database_url=section.get("database_url"),
            table_prefix=section.get("table_prefix", ""),
            unguarded=section.getboolean("unguarded", True),
            log_level=section.get("log_level", "WARNING").upper(),
            cache=section.getboolean("cache", True),
            extra=extra,
        )

    @classmethod
    def auto_detect(cls, start_path: Path | str | None = None) -> Settings | None:
        """Auto-detect recordkit.ini by searching up from start_path (default: cwd)."""
        start_path = Path.cwd() if start_path is None else Path(start_path)

        current = start_path
        while True:
            ini_path = current / FILENAME
            if ini_path.exists():
                return cls.from_ini(ini_path)
            if current == current.parent:
                return None
            current = current.parent

    def get_url(self, override: str | None = None) -> str:
        """Get database URL: override, then ``RECORDKIT_DATABASE_URL``, then the config value.

        Raises:
            ValueError: If no URL available
        """
        url = override or os.environ.get(URL_ENV_VAR) or self.database_url
        if not url:
            raise ValueError("No database URL configured")
        return url
