#!/usr/bin/env python3
"""
Kenosis Configuration Manager

Persistent settings live in config.json inside the .kenosis directory
(~/.kenosis unless overridden). Also locates the rules file by probing a
list of fallback locations.
"""

import json
import logging
import os
import pathlib
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_RULES_NAME = "safe_caches.yaml"
INSTALL_DIR = pathlib.Path(__file__).resolve().parent


def _default_stats() -> dict:
    return {"total_runs": 0, "total_bytes_found": 0}


@dataclass
class KenosisConfig:
    """Settings shared between runs"""

    version: str = "1.0"
    rules_file: Optional[str] = None
    aggregate_directory_sizes: bool = False
    channel_size: int = 256
    last_run: Optional[str] = None
    stats: dict = field(default_factory=_default_stats)

    def record_run(self, bytes_found: int):
        """Update run statistics after a completed scan"""
        self.stats["total_runs"] = self.stats.get("total_runs", 0) + 1
        self.stats["total_bytes_found"] = self.stats.get("total_bytes_found", 0) + bytes_found
        self.last_run = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "KenosisConfig":
        """Create from dictionary, falling back to defaults for missing keys"""
        default = cls()
        stats = data.get("stats")
        return cls(
            version=data.get("version", default.version),
            rules_file=data.get("rules_file"),
            aggregate_directory_sizes=bool(data.get("aggregate_directory_sizes", False)),
            channel_size=int(data.get("channel_size", default.channel_size)),
            last_run=data.get("last_run"),
            stats=stats if isinstance(stats, dict) else _default_stats(),
        )


class SharedConfigManager:
    """Loads and saves config.json in the .kenosis directory"""

    def __init__(self, config_dir: Optional[pathlib.Path] = None):
        """Initialize configuration manager

        Args:
            config_dir: Override the .kenosis directory location
                (otherwise $KENOSIS_HOME, then ~/.kenosis)
        """
        if config_dir:
            self.config_dir = pathlib.Path(config_dir)
        elif os.environ.get("KENOSIS_HOME"):
            self.config_dir = pathlib.Path(os.environ["KENOSIS_HOME"])
        else:
            self.config_dir = pathlib.Path.home() / ".kenosis"

        self.config_file = self.config_dir / "config.json"

    def load(self) -> KenosisConfig:
        """Load configuration, returning defaults if missing or corrupted"""
        if not self.config_file.exists():
            return KenosisConfig()
        try:
            with self.config_file.open() as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config root is not an object")
            return KenosisConfig.from_dict(data)
        except (json.JSONDecodeError, ValueError, TypeError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", self.config_file, e)
            return KenosisConfig()

    def save(self, config: KenosisConfig):
        """Save configuration to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with self.config_file.open("w") as f:
            json.dump(config.to_dict(), f, indent=2)

    def rules_candidates(self, explicit: Optional[str] = None, config: Optional[KenosisConfig] = None) -> list[pathlib.Path]:
        """Return rules file locations in probing order"""
        candidates: list[pathlib.Path] = []
        if explicit:
            candidates.append(pathlib.Path(explicit).expanduser())
        if config and config.rules_file:
            candidates.append(pathlib.Path(config.rules_file).expanduser())
        candidates.extend(
            [
                pathlib.Path.cwd() / "rules" / DEFAULT_RULES_NAME,
                INSTALL_DIR / "rules" / DEFAULT_RULES_NAME,
                self.config_dir / "rules.yaml",
            ]
        )
        return candidates

    def find_rules_file(
        self, explicit: Optional[str] = None, config: Optional[KenosisConfig] = None
    ) -> Optional[pathlib.Path]:
        """Return the first existing rules file, or None"""
        for candidate in self.rules_candidates(explicit, config):
            exists = candidate.is_file()
            logger.debug("Checking rules file %s exists=%s", candidate, exists)
            if exists:
                return candidate
        return None
