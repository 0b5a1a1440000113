"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

PROFILES = ("workspace", "simple")


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path.home() / ".mission_control" / "mc.db")
    profile: str = "workspace"
    activity_limit: int = 100
    silent_not_found: bool = False
    log_level: str = "WARNING"
    host: str = "127.0.0.1"
    port: int = 8787

    @property
    def initial_task_status(self) -> str:
        """Status a freshly created task starts in."""
        return "inbox" if self.profile == "simple" else "planning"

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if db := os.environ.get("MC_DB_PATH"):
            config.db_path = Path(db)

        if profile := os.environ.get("MC_PROFILE"):
            if profile not in PROFILES:
                raise ValueError(
                    f"MC_PROFILE must be one of {', '.join(PROFILES)}, got {profile!r}"
                )
            config.profile = profile

        if limit := os.environ.get("MC_ACTIVITY_LIMIT"):
            config.activity_limit = int(limit)

        if silent := os.environ.get("MC_SILENT_NOT_FOUND"):
            config.silent_not_found = silent.lower() in ("1", "true", "yes")

        if level := os.environ.get("MC_LOG_LEVEL"):
            config.log_level = level.upper()

        if host := os.environ.get("MC_HOST"):
            config.host = host

        if port := os.environ.get("MC_PORT"):
            config.port = int(port)

        return config


def get_config() -> Config:
    return Config.from_env()
