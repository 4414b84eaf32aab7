"""Unit tests for the fleet discovery loop."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from structlog.testing import capture_logs

from progress_watchdog.cluster.directory import InMemoryFleetDirectory
from progress_watchdog.cluster.models import Instance, ReconciliationJob
from progress_watchdog.config import WatchdogSettings
from progress_watchdog.core.discovery import DiscoveryLoop
from progress_watchdog.exceptions import FleetDirectoryError

CONTINUE_KEY = "multi-juicer.iteratec.dev/continueCode"


def juice_shop(team: str, ready: int = 1, code=None) -> Instance:
    annotations = {CONTINUE_KEY: code} if code is not None else {}
    return Instance(
        name=f"t-{team}-juiceshop",
        team_name=team,
        ready_replicas=ready,
        labels={"app": "juice-shop", "team": team},
        annotations=annotations,
    )


def drain(queue: asyncio.Queue) -> list[ReconciliationJob]:
    jobs = []
    while not queue.empty():
        jobs.append(queue.get_nowait())
    return jobs


class TestDiscoveryLoop:
    """Test job creation from the fleet."""

    @pytest.mark.asyncio
    async def test_only_ready_instances_are_queued(self) -> None:
        """Test instances with zero or several ready replicas are skipped."""
        directory = InMemoryFleetDirectory([
            juice_shop("alpha", ready=1),
            juice_shop("starting", ready=0),
            juice_shop("scaled", ready=2),
        ])
        queue: asyncio.Queue = asyncio.Queue()
        loop = DiscoveryLoop(directory, queue, WatchdogSettings())

        queued = await loop.discover_once()

        assert queued == 1
        assert drain(queue) == [ReconciliationJob("alpha", None)]

    @pytest.mark.asyncio
    async def test_durable_code_is_carried(self) -> None:
        """Test the annotation becomes the job's last continue code."""
        directory = InMemoryFleetDirectory([
            juice_shop("beta", code="old1"),
            juice_shop("empty", code=""),
        ])
        queue: asyncio.Queue = asyncio.Queue()

        await DiscoveryLoop(directory, queue, WatchdogSettings()).discover_once()

        assert drain(queue) == [
            ReconciliationJob("beta", "old1"),
            ReconciliationJob("empty", None),
        ]

    @pytest.mark.asyncio
    async def test_selector_excludes_other_apps(self) -> None:
        """Test non-fleet Deployments never produce jobs."""
        directory = InMemoryFleetDirectory([
            juice_shop("alpha"),
            Instance(name="progress-watchdog", team_name="", ready_replicas=1, labels={"app": "watchdog"}),
        ])
        queue: asyncio.Queue = asyncio.Queue()

        await DiscoveryLoop(directory, queue, WatchdogSettings()).discover_once()

        assert [j.team_name for j in drain(queue)] == ["alpha"]

    @pytest.mark.asyncio
    async def test_instance_without_team_is_skipped(self) -> None:
        """Test a fleet member lacking the team label is warned about."""
        stray = Instance(name="stray", team_name="", ready_replicas=1, labels={"app": "juice-shop"})
        queue: asyncio.Queue = asyncio.Queue()

        with capture_logs() as logs:
            queued = await DiscoveryLoop(InMemoryFleetDirectory([stray]), queue, WatchdogSettings()).discover_once()

        assert queued == 0
        assert any(e["event"] == "instance_without_team" for e in logs)

    @pytest.mark.asyncio
    async def test_list_failure_propagates(self) -> None:
        """Test listing errors are not retried."""
        directory = MagicMock()
        directory.list_instances = AsyncMock(side_effect=FleetDirectoryError("list", "forbidden"))
        loop = DiscoveryLoop(directory, asyncio.Queue(), WatchdogSettings(poll_interval=0.01))

        with pytest.raises(FleetDirectoryError):
            await asyncio.wait_for(loop.run_forever(), timeout=5)

        directory.list_instances.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_full_queue_applies_backpressure(self) -> None:
        """Test discovery suspends until a consumer frees a slot."""
        directory = InMemoryFleetDirectory([juice_shop("alpha"), juice_shop("beta")])
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        loop = DiscoveryLoop(directory, queue, WatchdogSettings())

        task = asyncio.create_task(loop.discover_once())
        await asyncio.sleep(0.05)
        assert not task.done()
        assert queue.full()

        first = await queue.get()
        queued = await asyncio.wait_for(task, timeout=5)

        assert queued == 2
        assert first.team_name == "alpha"
        assert (await queue.get()).team_name == "beta"

    @pytest.mark.asyncio
    async def test_runs_periodically(self) -> None:
        """Test repeated passes re-queue the same teams."""
        directory = InMemoryFleetDirectory([juice_shop("alpha", code="c")])
        queue: asyncio.Queue = asyncio.Queue()
        loop = DiscoveryLoop(directory, queue, WatchdogSettings(poll_interval=0.01))

        task = asyncio.create_task(loop.run_forever())
        for _ in range(100):
            if loop.passes >= 3:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        jobs = drain(queue)
        assert len(jobs) >= 3
        assert set(jobs) == {ReconciliationJob("alpha", "c")}
