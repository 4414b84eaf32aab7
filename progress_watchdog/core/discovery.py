"""Fleet discovery — turns ready team instances into reconciliation jobs."""

from __future__ import annotations

import asyncio

import structlog

from progress_watchdog.cluster.directory import FleetDirectory
from progress_watchdog.cluster.models import ReconciliationJob
from progress_watchdog.config import WatchdogSettings

logger = structlog.get_logger(__name__)


class DiscoveryLoop:
    """Periodically lists the fleet and queues one job per ready instance.

    ``queue.put`` suspends while the queue is full, which is the only
    backpressure applied to discovery. Listing errors are not caught here:
    ``FleetDirectoryError`` ends the loop and, with it, the watchdog.

    Args:
        directory: Source of fleet members.
        queue: Shared job queue consumed by the worker pool.
        settings: Selector, poll interval and annotation key.
    """

    def __init__(
        self,
        directory: FleetDirectory,
        queue: asyncio.Queue[ReconciliationJob],
        settings: WatchdogSettings,
    ) -> None:
        self.directory = directory
        self.queue = queue
        self.settings = settings
        self.passes = 0

    async def discover_once(self) -> int:
        """Run a single discovery pass.

        Returns:
            Number of jobs queued.
        """
        await logger.adebug("discovery_listing", label_selector=self.settings.label_selector)
        instances = await self.directory.list_instances(self.settings.label_selector)
        await logger.adebug("discovery_found", instances=len(instances))

        queued = 0
        for instance in instances:
            if not instance.is_ready:
                continue
            if not instance.team_name:
                await logger.awarning(
                    "instance_without_team",
                    instance=instance.name,
                    team_label=self.settings.team_label,
                )
                continue

            last = instance.annotations.get(self.settings.continue_code_annotation) or None
            await self.queue.put(ReconciliationJob(team_name=instance.team_name, last_continue_code=last))
            queued += 1

        self.passes += 1
        await logger.adebug("discovery_queued", jobs=queued, pass_number=self.passes)
        return queued

    async def run_forever(self) -> None:
        """Discover every ``poll_interval`` seconds until cancelled."""
        while True:
            await self.discover_once()
            await asyncio.sleep(self.settings.poll_interval)
