"""Watchdog runner — wires discovery, the job queue and the worker pool."""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from progress_watchdog.cluster.directory import FleetDirectory
from progress_watchdog.cluster.instance_client import InstanceClient
from progress_watchdog.cluster.models import ReconciliationJob
from progress_watchdog.config import WatchdogSettings
from progress_watchdog.core.discovery import DiscoveryLoop
from progress_watchdog.core.worker_pool import WorkerPool
from progress_watchdog.storage.annotation_store import AnnotationStore, SolvedCountSource

logger = structlog.get_logger(__name__)


class ProgressWatchdog:
    """Runs one discovery loop and a pool of reconciliation workers.

    All collaborators are injected so fakes can stand in for the cluster
    and the team instances.

    Args:
        settings: Validated watchdog settings.
        directory: Fleet directory (listing and annotation patches).
        instances: Client for the team instances; built from settings if omitted.
        solved_counts: Optional source for the solved-count annotation.
    """

    def __init__(
        self,
        settings: WatchdogSettings,
        directory: FleetDirectory,
        instances: Optional[InstanceClient] = None,
        solved_counts: Optional[SolvedCountSource] = None,
    ) -> None:
        self.settings = settings
        self.directory = directory
        self.instances = instances or InstanceClient(settings)
        self.queue: asyncio.Queue[ReconciliationJob] = asyncio.Queue(maxsize=settings.queue_size)
        self.store = AnnotationStore(directory, settings, solved_counts)
        self.discovery = DiscoveryLoop(directory, self.queue, settings)
        self.pool = WorkerPool(self.queue, self.instances, self.store, settings.worker_count)

    async def run(self) -> None:
        """Run until a task fails or the runner is cancelled.

        Raises:
            WatchdogFatalError: The first fatal error from discovery or a worker.
        """
        await self.instances.connect()
        await logger.ainfo(
            "watchdog_starting",
            namespace=self.settings.namespace,
            label_selector=self.settings.label_selector,
            workers=self.settings.worker_count,
            queue_size=self.settings.queue_size,
            poll_interval=self.settings.poll_interval,
        )

        tasks = self.pool.start()
        tasks.append(asyncio.create_task(self.discovery.run_forever(), name="fleet-discovery"))
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    await logger.aerror("watchdog_task_failed", task=task.get_name(), error=str(exc))
                    raise exc
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.pool.stop()
            await self.instances.close()
            await logger.ainfo("watchdog_stopped", **self.pool.stats())
