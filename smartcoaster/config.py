"""Configuration - companion settings loaded from the environment."""
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(override=True)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Companion settings."""

    # Storage
    data_dir: Path = field(default_factory=lambda: Path.home() / ".smartcoaster" / "data")
    store_filename: str = "alarms.yaml"

    # Wake-up facility
    exact_alarms_allowed: bool = True
    best_effort_grace_seconds: int = 60
    wake_lock_timeout_ms: int = 60000
    # The in-memory job store does not survive a restart, so loaded alarms are re-armed
    reregister_on_load: bool = True
    completion_max_attempts: int = 3

    # Device
    preferred_temperature: float = 40.0

    log_level: str = "INFO"

    @property
    def store_path(self) -> Path:
        return self.data_dir / self.store_filename

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            data_dir=Path(os.getenv(
                "SMARTCOASTER_DATA_DIR", str(Path.home() / ".smartcoaster" / "data")
            )).expanduser(),
            store_filename=os.getenv("SMARTCOASTER_STORE_FILE", "alarms.yaml"),

            exact_alarms_allowed=_env_bool("SMARTCOASTER_EXACT_ALARMS", True),
            best_effort_grace_seconds=int(os.getenv("SMARTCOASTER_BEST_EFFORT_GRACE", "60")),
            wake_lock_timeout_ms=int(os.getenv("SMARTCOASTER_WAKE_LOCK_TIMEOUT_MS", "60000")),
            reregister_on_load=_env_bool("SMARTCOASTER_REREGISTER_ON_LOAD", True),
            completion_max_attempts=int(os.getenv("SMARTCOASTER_COMPLETION_ATTEMPTS", "3")),

            preferred_temperature=float(os.getenv("SMARTCOASTER_PREFERRED_TEMPERATURE", "40.0")),

            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


# Global settings instance
settings = Settings.from_env()
