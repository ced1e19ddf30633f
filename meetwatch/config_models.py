from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from meetwatch import CONFIG_PATH
from meetwatch.models import SlotSpec

logger = logging.getLogger(__name__)


# =============================================================================
# MonitorConfig (args/meetwatch.yaml)
# =============================================================================

class PollingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    poll_interval_seconds: float = Field(default=60.0, gt=0)
    max_results: int = Field(default=10, ge=1, le=500)
    tick_deadline_seconds: float = Field(default=120.0, gt=0)
    call_timeout_seconds: float = Field(default=30.0, gt=0)
    max_concurrency: int = Field(default=1, ge=1)
    fallback_days: int = Field(default=2, ge=1)
    shutdown_timeout_seconds: float = Field(default=30.0, ge=0)


class SlotsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    workday_start: int = Field(default=9, ge=0, le=23)
    workday_end: int = Field(default=18, ge=1, le=24)
    slot_length_minutes: int = Field(default=30, gt=0)
    buffer_minutes: int = Field(default=5, ge=0)
    timezone: str = Field(default="+00:00")
    mode: Literal["gap", "enumerate"] = Field(default="gap")

    @model_validator(mode="after")
    def _check_hours(self) -> "SlotsConfig":
        if self.workday_start >= self.workday_end:
            raise ValueError(
                f"workday_start ({self.workday_start}) must be before workday_end ({self.workday_end})"
            )
        return self

    def to_slot_spec(self, dates: list[date | str], timezone: str | None = None) -> SlotSpec:
        return SlotSpec(
            dates=tuple(dates),
            timezone=timezone or self.timezone,
            workday_start=self.workday_start,
            workday_end=self.workday_end,
            slot_length_minutes=self.slot_length_minutes,
            buffer_minutes=self.buffer_minutes,
        )


class OracleConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    model: str = Field(default="claude-sonnet-4-20250514")
    max_tokens: int = Field(default=1024, ge=1)
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    api_key_env: str = Field(default="ANTHROPIC_API_KEY")


class ReplyConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    subject: str = Field(default="Available Meeting Slots")
    assistant_name: str = Field(default="Meetwatch")
    max_candidates: int = Field(default=5, ge=1)


class ProcessedSetConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    max_entries: Optional[int] = Field(default=None, ge=1)


class GoogleConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    token_file: str = Field(default="data/google_token.json")
    calendar_id: str = Field(default="primary")
    request_timeout_seconds: float = Field(default=20.0, gt=0)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    level: str = Field(default="INFO")
    json_output: bool = Field(default=False)


class MonitorConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    monitor: PollingConfig = Field(default_factory=PollingConfig)
    slots: SlotsConfig = Field(default_factory=SlotsConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    reply: ReplyConfig = Field(default_factory=ReplyConfig)
    processed_set: ProcessedSetConfig = Field(default_factory=ProcessedSetConfig)
    google: GoogleConfig = Field(default_factory=GoogleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# load_and_validate
# =============================================================================

def load_raw(path: Path | str | None = None) -> dict[str, Any]:
    yaml_path = Path(path) if path else CONFIG_PATH
    if not yaml_path.exists():
        return {}
    with open(yaml_path) as f:
        return yaml.safe_load(f) or {}


def load_and_validate(path: Path | str | None = None) -> MonitorConfig:
    try:
        return MonitorConfig.model_validate(load_raw(path))
    except Exception as e:
        logger.warning(f"Config validation failed for {path or CONFIG_PATH}: {e}, using defaults")
        return MonitorConfig()
