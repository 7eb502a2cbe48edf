"""Environment-driven settings for promise-repeat."""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, field_validator

ENV_PREFIX = "PROMISE_REPEAT_"
DEFAULT_LOG_LEVEL = "WARNING"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


class RepeatSettings(BaseModel):
    log_level: str = DEFAULT_LOG_LEVEL
    """Level applied to the ``promise_repeat`` loggers."""

    trace_iterations: bool = False
    """When True, every loop iteration is logged at DEBUG."""

    @field_validator("log_level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @field_validator("trace_iterations", mode="before")
    @classmethod
    def _parse_flag(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUTHY:
                return True
            if lowered in _FALSY:
                return False
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RepeatSettings":
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        raw_level = env.get(f"{ENV_PREFIX}LOG_LEVEL")
        if raw_level is not None:
            values["log_level"] = raw_level
        raw_trace = env.get(f"{ENV_PREFIX}TRACE_ITERATIONS")
        if raw_trace is not None:
            values["trace_iterations"] = raw_trace
        return cls.model_validate(values)

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.log_level)


_settings: Optional[RepeatSettings] = None


def get_settings() -> RepeatSettings:
    """Return the process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = RepeatSettings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
