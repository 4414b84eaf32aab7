"""Reconciliation workers — compare durable and live continue codes.

For one job, with ``last`` the durable value carried by the job and
``current`` the value the instance reports right now:

    last      current    action
    ────────  ─────────  ─────────────────────────────────────────────
    None      None       warn, nothing to reconcile
    None      set        persist current (first sighting of the team)
    set       None       instance unreachable, retried next pass
    x         x          in sync
    x         y          apply x to the instance, re-fetch, persist

The durable value wins on divergence: it is the progress the instance had
before it lost it (restart, wiped storage).
"""

from __future__ import annotations

import asyncio
from collections import Counter
from enum import Enum
from typing import Any

import structlog

from progress_watchdog.cluster.instance_client import InstanceClient
from progress_watchdog.cluster.models import ReconciliationJob
from progress_watchdog.exceptions import WatchdogFatalError
from progress_watchdog.storage.annotation_store import AnnotationStore

logger = structlog.get_logger(__name__)


class ReconcileOutcome(str, Enum):
    """Terminal result of one reconciliation job.

    Attributes:
        UNKNOWN: Neither a durable nor a live value was available.
        INITIALISED: First live value stored as the durable value.
        UNREACHABLE: Live value could not be fetched; nothing changed.
        IN_SYNC: Durable and live values already match.
        RESTORED: Durable value applied to the instance and re-persisted.
        RESTORE_UNCONFIRMED: Durable value applied, but the re-fetch failed.
        FAILED: Unexpected error while processing the job.
    """

    UNKNOWN = "unknown"
    INITIALISED = "initialised"
    UNREACHABLE = "unreachable"
    IN_SYNC = "in_sync"
    RESTORED = "restored"
    RESTORE_UNCONFIRMED = "restore_unconfirmed"
    FAILED = "failed"


class WorkerPool:
    """Fixed set of workers draining the shared job queue.

    Args:
        queue: Job queue filled by discovery.
        instances: Client for the team instances.
        store: Durable annotation store.
        worker_count: Number of concurrent workers.
    """

    def __init__(
        self,
        queue: asyncio.Queue[ReconciliationJob],
        instances: InstanceClient,
        store: AnnotationStore,
        worker_count: int = 10,
    ) -> None:
        self.queue = queue
        self.instances = instances
        self.store = store
        self.worker_count = worker_count
        self.outcomes: Counter[ReconcileOutcome] = Counter()
        self._workers: list[asyncio.Task] = []

    # ── Decision procedure ────────────────────────────────────────

    async def reconcile(self, job: ReconciliationJob) -> ReconcileOutcome:
        """Bring one team's durable and live continue codes together.

        Raises:
            WatchdogFatalError: If persisting fails.
        """
        team = job.team_name
        last = job.last_continue_code
        await logger.adebug("reconcile_started", team=team, last_continue_code=last)

        current = await self.instances.fetch_live_code(team)

        if last is None and current is None:
            await logger.awarning("continue_codes_unavailable", team=team)
            return ReconcileOutcome.UNKNOWN

        if last is None:
            await logger.adebug("durable_continue_code_missing", team=team)
            await self.store.persist(team, current)
            return ReconcileOutcome.INITIALISED

        if current is None:
            await logger.adebug("instance_unreachable", team=team)
            return ReconcileOutcome.UNREACHABLE

        if last == current:
            await logger.adebug("continue_codes_identical", team=team)
            return ReconcileOutcome.IN_SYNC

        await logger.ainfo(
            "continue_code_diverged",
            team=team,
            last_continue_code=last,
            current_continue_code=current,
        )
        await self.instances.apply_code(team, last)

        refetched = await self.instances.fetch_live_code(team)
        if refetched is None:
            await logger.awarning("restore_unconfirmed", team=team)
            return ReconcileOutcome.RESTORE_UNCONFIRMED

        await self.store.persist(team, refetched)
        return ReconcileOutcome.RESTORED

    # ── Workers ───────────────────────────────────────────────────

    async def _process(self, job: ReconciliationJob) -> ReconcileOutcome:
        try:
            return await self.reconcile(job)
        except WatchdogFatalError:
            raise
        except Exception as exc:
            await logger.aexception("reconcile_failed", team=job.team_name, error=str(exc))
            return ReconcileOutcome.FAILED

    async def _worker(self, worker_id: int) -> None:
        await logger.adebug("worker_started", worker_id=worker_id)
        while True:
            job = await self.queue.get()
            try:
                outcome = await self._process(job)
                self.outcomes[outcome] += 1
            finally:
                self.queue.task_done()

    def start(self) -> list[asyncio.Task]:
        """Spawn the workers. Returns their tasks."""
        if self._workers:
            raise RuntimeError("Worker pool already started")
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"reconcile-worker-{i}")
            for i in range(self.worker_count)
        ]
        return list(self._workers)

    async def stop(self) -> None:
        """Cancel all workers and wait for them to finish."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._workers)

    def stats(self) -> dict[str, Any]:
        """Counts of finished jobs per outcome plus the total processed."""
        counts: dict[str, Any] = {o.value: self.outcomes[o] for o in ReconcileOutcome}
        counts["processed"] = sum(self.outcomes.values())
        counts["workers"] = self.worker_count
        counts["queued"] = self.queue.qsize()
        return counts
