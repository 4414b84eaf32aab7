"""Data types shared by discovery, workers and the adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field


@dataclass
class Instance:
    """A single team instance as reported by the fleet directory.

    Attributes:
        name: Deployment name, used when patching the record.
        team_name: Team identity (from the team label).
        ready_replicas: Number of ready pods; ``0`` when the status omits it.
        labels: Deployment labels.
        annotations: Deployment annotations, including the durable continue code.
    """

    name: str
    team_name: str
    ready_replicas: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def is_ready(self) -> bool:
        """Exactly one ready replica: not scaling and not replicated."""
        return self.ready_replicas == 1


@dataclass(frozen=True)
class ReconciliationJob:
    """Snapshot handed from discovery to one worker.

    ``last_continue_code`` is ``None`` when no durable value is known yet.
    """

    team_name: str
    last_continue_code: Optional[str] = None


class ContinueCodePayload(BaseModel):
    """Body of ``GET /rest/continue-code``."""

    continue_code: str = Field(alias="continueCode", description="Current continue code")
