"""Durable continue codes, kept as annotations on each team's Deployment.

The annotations survive restarts of both the instance and the watchdog,
so they are the memory used to restore progress an instance has lost.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog

from progress_watchdog.cluster.directory import FleetDirectory
from progress_watchdog.config import WatchdogSettings
from progress_watchdog.exceptions import FleetDirectoryError, PersistError

logger = structlog.get_logger(__name__)


class SolvedCountSource(ABC):
    """Supplies the solved-challenge count written next to a continue code."""

    @abstractmethod
    async def solved_count(self, team_name: str, continue_code: str) -> str:
        """Return the annotation value for *team_name*."""
        ...


class FixedSolvedCount(SolvedCountSource):
    """Always reports the same placeholder count."""

    def __init__(self, value: str = "42") -> None:
        self.value = value

    async def solved_count(self, team_name: str, continue_code: str) -> str:
        return self.value


class AnnotationStore:
    """Writes continue codes to the fleet directory.

    Args:
        directory: Fleet directory receiving the merge patches.
        settings: Annotation keys and Deployment naming.
        solved_counts: Source of the solved-count annotation; defaults to
            the configured placeholder.
    """

    def __init__(
        self,
        directory: FleetDirectory,
        settings: WatchdogSettings,
        solved_counts: Optional[SolvedCountSource] = None,
    ) -> None:
        self.directory = directory
        self.settings = settings
        self.solved_counts = solved_counts or FixedSolvedCount(settings.solved_count_placeholder)

    def build_patch(self, continue_code: str, solved_count: str) -> dict[str, Any]:
        """Merge document setting both annotations."""
        return {
            "metadata": {
                "annotations": {
                    self.settings.continue_code_annotation: continue_code,
                    self.settings.solved_count_annotation: solved_count,
                }
            }
        }

    async def persist(self, team_name: str, continue_code: str) -> None:
        """Store *continue_code* as the durable value for *team_name*.

        Raises:
            PersistError: If the patch fails. Callers must not continue,
                later cycles would compare against a stale value.
        """
        await logger.ainfo("continue_code_persisting", team=team_name, continue_code=continue_code)

        solved = await self.solved_counts.solved_count(team_name, continue_code)
        patch = self.build_patch(continue_code, solved)
        await logger.adebug("annotation_patch", team=team_name, patch=patch)

        try:
            await self.directory.patch_instance(self.settings.deployment_name(team_name), patch)
        except FleetDirectoryError as exc:
            raise PersistError(team_name, exc.detail) from exc
