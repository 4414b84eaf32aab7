"""Reconciliation core: discovery loop, worker pool and runner."""

from progress_watchdog.core.discovery import DiscoveryLoop
from progress_watchdog.core.watchdog import ProgressWatchdog
from progress_watchdog.core.worker_pool import ReconcileOutcome, WorkerPool

__all__ = ["DiscoveryLoop", "ProgressWatchdog", "ReconcileOutcome", "WorkerPool"]
