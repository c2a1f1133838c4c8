from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from crop4mkv.aggregate.reducers import ReductionStrategy, normalize_strategy

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "CROP4MKV_"


class DetectionSettings(BaseModel):
    limit: int = Field(default=24, ge=0)
    round: int = Field(default=2, gt=0)
    parts: int = Field(default=6, gt=0)
    max_duration_seconds: int = Field(default=60, gt=0)
    filter_outliers: bool = True
    strategy: ReductionStrategy = "safest"

    @field_validator("strategy", mode="before")
    @classmethod
    def _check_strategy(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        return normalize_strategy(value)


class BatchSettings(BaseModel):
    concurrency: int = Field(default=20, gt=0)
    extension: str = ".mkv"
    dry_run: bool = False
    overwrite: bool = False
    verbose: bool = False


class GuardSettings(BaseModel):
    db_path: Path | None = None


class LoggingSettings(BaseModel):
    level: str = "WARNING"


class Settings(BaseModel):
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    guard: GuardSettings = Field(default_factory=GuardSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides.

    A missing default config file yields the built-in defaults; an explicitly
    requested file must exist.
    """

    env_path = os.getenv(f"{ENV_PREFIX}CONFIG")
    resolved_path = Path(config_path or env_path or DEFAULT_CONFIG_PATH)
    if resolved_path.exists() or resolved_path != DEFAULT_CONFIG_PATH:
        raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    else:
        raw_config = {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path) or existing_value is None:
        return Path(raw_value) if raw_value else None
    return raw_value
