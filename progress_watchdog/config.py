"""Watchdog configuration.

Values are resolved in this order (later wins):
  1. Field defaults below.
  2. Optional YAML file (``--config``).
  3. ``PROGRESS_WATCHDOG_<FIELD>`` environment variables.
  4. Explicit overrides passed by the CLI.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

ENV_PREFIX = "PROGRESS_WATCHDOG_"


class WatchdogSettings(BaseModel):
    """Validated runtime settings.

    Attributes:
        namespace: Namespace holding the team Deployments.
        label_selector: Selector matching every fleet member.
        team_label: Label carrying the team name.
        continue_code_annotation: Annotation key holding the durable continue code.
        solved_count_annotation: Annotation key holding the solved-challenge count.
        solved_count_placeholder: Value written when no real solved count is known.
        instance_prefix: Host prefix of a team instance (``<prefix>-<team>-<suffix>``).
        instance_suffix: Host suffix of a team instance.
        instance_port: HTTP port of a team instance.
        request_timeout: Seconds before any instance request is abandoned.
        poll_interval: Seconds between two discovery passes.
        worker_count: Number of concurrent reconciliation workers.
        queue_size: Maximum number of jobs waiting for a worker.
        log_level: Minimum log level.
    """

    namespace: str = Field(default="default", min_length=1)
    label_selector: str = Field(default="app=juice-shop", min_length=1)
    team_label: str = Field(default="team", min_length=1)
    continue_code_annotation: str = Field(default="multi-juicer.iteratec.dev/continueCode")
    solved_count_annotation: str = Field(default="multi-juicer.iteratec.dev/challengesSolved")
    solved_count_placeholder: str = Field(default="42")
    instance_prefix: str = Field(default="t")
    instance_suffix: str = Field(default="juiceshop")
    instance_port: int = Field(default=3000, gt=0, lt=65536)
    request_timeout: float = Field(default=5.0, gt=0)
    poll_interval: float = Field(default=5.0, gt=0)
    worker_count: int = Field(default=10, ge=1)
    queue_size: int = Field(default=50, ge=1)
    log_level: str = Field(default="DEBUG")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    def deployment_name(self, team_name: str) -> str:
        """Name of the Deployment (and in-cluster host) serving *team_name*."""
        return f"{self.instance_prefix}-{team_name}-{self.instance_suffix}"

    def instance_url(self, team_name: str) -> str:
        """Base URL of the instance serving *team_name*."""
        return f"http://{self.deployment_name(team_name)}:{self.instance_port}"


def _env_overrides() -> dict[str, str]:
    overrides = {}
    for name in WatchdogSettings.model_fields:
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value
    return overrides


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> WatchdogSettings:
    """Build settings from YAML, environment and explicit overrides.

    Args:
        config_path: Optional YAML file with a flat mapping of setting names.
        overrides: Values that win over everything else; ``None`` entries are ignored.

    Returns:
        Validated settings.

    Raises:
        ValueError: If the file is unreadable or a value fails validation.
    """
    values: dict[str, Any] = {}

    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise ValueError(f"Config file not found: {config_path}")
        with open(config_file) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")
        values.update(loaded)

    values.update(_env_overrides())
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return WatchdogSettings.model_validate(values)
    except ValidationError as exc:
        raise ValueError(f"Invalid watchdog settings: {exc}") from exc
