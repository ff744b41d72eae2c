from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from actionengine import CONFIG_PATH

logger = logging.getLogger(__name__)


# =============================================================================
# Sections (args/action_engine.yaml)
# =============================================================================

class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    base_url: str = Field(default="http://localhost:3001")
    token_env: str = Field(default="ACTION_ENGINE_API_TOKEN")
    timeout_seconds: float = Field(default=10.0, gt=0)


class IdleWindowConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    min_seconds: float = Field(default=6.0, ge=0)
    max_seconds: Optional[float] = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def _check_order(self) -> "IdleWindowConfig":
        if self.max_seconds is not None and self.max_seconds <= self.min_seconds:
            raise ValueError("max_seconds must be greater than min_seconds")
        return self


class CollectorConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    debounce_seconds: float = Field(default=1.5, gt=0)
    note_idle: IdleWindowConfig = Field(default_factory=IdleWindowConfig)
    app_idle: IdleWindowConfig = Field(
        default_factory=lambda: IdleWindowConfig(min_seconds=120.0, max_seconds=None)
    )


class NudgeConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    default_ttl_seconds: float = Field(default=8.0, gt=0)
    switch_window_minutes: float = Field(default=10.0, gt=0)
    switch_threshold: int = Field(default=3, ge=1)
    over_edit_count: int = Field(default=5, ge=2)
    over_edit_window_seconds: float = Field(default=120.0, gt=0)
    stall_idle_seconds: float = Field(default=120.0, gt=0)
    stall_overrun_factor: float = Field(default=1.5, ge=1.0)
    micro_break_after_minutes: float = Field(default=50.0, gt=0)
    momentum_count: int = Field(default=3, ge=2)
    momentum_window_minutes: float = Field(default=15.0, gt=0)
    skip_streak: int = Field(default=2, ge=1)


class HistoryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    max_events: int = Field(default=500, ge=10)
    retention_minutes: float = Field(default=240.0, gt=0)


class FlowConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    min_duration_minutes: int = Field(default=15, ge=1)
    max_duration_minutes: int = Field(default=480, ge=1)


class CircuitConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    failure_threshold: int = Field(default=5, ge=1)
    recovery_timeout_seconds: float = Field(default=60.0, gt=0)


class ActionEngineConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    api: ApiConfig = Field(default_factory=ApiConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    nudges: NudgeConfig = Field(default_factory=NudgeConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    flow: FlowConfig = Field(default_factory=FlowConfig)
    circuit: CircuitConfig = Field(default_factory=CircuitConfig)

    def api_token(self) -> str | None:
        return os.environ.get(self.api.token_env) or None


# =============================================================================
# load_config
# =============================================================================

def load_config(path: Path | None = None) -> ActionEngineConfig:
    yaml_path = path or CONFIG_PATH

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        config = ActionEngineConfig.model_validate(raw)
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path}: {e}, using defaults")
        config = ActionEngineConfig()

    api_url = os.environ.get("ACTION_ENGINE_API_URL")
    if api_url:
        config.api.base_url = api_url

    return config


__all__ = [
    "ActionEngineConfig",
    "ApiConfig",
    "CircuitConfig",
    "CollectorConfig",
    "FlowConfig",
    "HistoryConfig",
    "IdleWindowConfig",
    "NudgeConfig",
    "load_config",
]
