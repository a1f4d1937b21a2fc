"""Configuration loading for mission replay."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

SUPPORTED_SPEEDS = (1, 2, 4)


class LiveConfig(BaseModel):
    idle_poll_interval_ms: int = Field(default=5000, gt=0)  # no mission bound
    mission_poll_interval_ms: int = Field(default=30000, gt=0)
    clock_tick_ms: int = Field(default=1000, gt=0)


class PlaybackConfig(BaseModel):
    base_interval_ms: int = Field(default=1000, gt=0)
    speeds: list[int] = Field(default_factory=lambda: list(SUPPORTED_SPEEDS))
    default_speed: int = 1

    @field_validator("speeds")
    @classmethod
    def _speeds_supported(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("speeds must not be empty")
        unsupported = [s for s in value if s not in SUPPORTED_SPEEDS]
        if unsupported:
            raise ValueError(f"unsupported speeds {unsupported}, choose from {list(SUPPORTED_SPEEDS)}")
        return value

    @model_validator(mode="after")
    def _default_in_speeds(self) -> "PlaybackConfig":
        if self.default_speed not in self.speeds:
            raise ValueError(f"default_speed {self.default_speed} is not one of {self.speeds}")
        return self


class HttpConfig(BaseModel):
    timeout_s: float = 10.0
    connect_timeout_s: float = 5.0
    user_agent: str = "mission-replay/0.1"


class Config(BaseModel):
    db_path: str = "data/missions.db"
    api_base_url: str | None = None
    share_token: str | None = None
    live: LiveConfig = Field(default_factory=LiveConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)

    @property
    def resolved_db_path(self) -> Path:
        """Resolve db_path relative to project root."""
        p = Path(self.db_path).expanduser()
        if p.is_absolute():
            return p
        return _project_root() / p


def _project_root() -> Path:
    """Return the mission replay project root directory."""
    return Path(__file__).parent.parent


def load_config(config_path: Path | None = None) -> Config:
    """Load config from YAML file. Falls back to defaults if file missing."""
    if config_path is None:
        config_path = _project_root() / "config.yaml"

    if config_path.exists():
        raw: dict[str, Any] = yaml.safe_load(config_path.read_text()) or {}
        return Config(**raw)

    return Config()
