from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project base directory (repo root)
BASE_DIR = Path(__file__).resolve().parents[2]

DEFAULT_PANEL_FILE = BASE_DIR / "config" / "panel.yaml"


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_prefix="QUORUM_CLOCK_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Consensus Settings
    PER_PEER_TIMEOUT_MS: int = 111
    CUTOFF_MS: int = 19
    MINIMUM_KEEP: int = 3

    # NTP Settings
    NTP_VERSION: int = 3
    PANEL_FILE: Optional[str] = None

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    @property
    def per_peer_timeout(self) -> float:
        """Per-peer timeout in seconds."""
        return self.PER_PEER_TIMEOUT_MS / 1000.0


# Global settings instance
settings = Settings()
