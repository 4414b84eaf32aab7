"""Command-line entry point for the progress watchdog.

Usage:
    progress-watchdog                             # ~/.kube/config or $KUBECONFIG
    progress-watchdog --kubeconfig /path/config   # explicit credentials
    progress-watchdog --in-cluster                # service-account credentials
    progress-watchdog --config watchdog.yaml      # settings file
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

import structlog

from progress_watchdog.cluster.directory import KubernetesFleetDirectory
from progress_watchdog.config import WatchdogSettings, load_settings
from progress_watchdog.core.watchdog import ProgressWatchdog
from progress_watchdog.exceptions import WatchdogFatalError


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Keeps team continue codes in sync with their Deployment annotations",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="(optional) absolute path to the kubeconfig file (default: $KUBECONFIG or ~/.kube/config)",
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use the pod's service account instead of a kubeconfig",
    )
    parser.add_argument("--config", default=None, help="YAML settings file")
    parser.add_argument("--namespace", default=None, help="Namespace of the team Deployments")
    parser.add_argument("--workers", dest="worker_count", type=int, default=None,
                        help="Number of reconciliation workers (default: 10)")
    parser.add_argument("--log-level", default=None, help="Minimum log level (default: DEBUG)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    """Console logging with ISO timestamps, filtered at *level*."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def run(settings: WatchdogSettings, kubeconfig: Optional[str], in_cluster: bool) -> int:
    """Run the watchdog. Returns the process exit status."""
    logger = structlog.get_logger(__name__)
    directory = None
    try:
        directory = await KubernetesFleetDirectory.connect(
            namespace=settings.namespace,
            team_label=settings.team_label,
            kubeconfig=kubeconfig,
            in_cluster=in_cluster,
        )
        await ProgressWatchdog(settings, directory).run()
    except WatchdogFatalError as exc:
        await logger.acritical("watchdog_fatal_error", error=str(exc))
        return 1
    finally:
        if directory is not None:
            await directory.close()
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    try:
        settings = load_settings(
            args.config,
            overrides={
                "namespace": args.namespace,
                "worker_count": args.worker_count,
                "log_level": args.log_level,
            },
        )
    except ValueError as exc:
        print(f"progress-watchdog: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(settings.log_level)
    try:
        status = asyncio.run(run(settings, args.kubeconfig, args.in_cluster))
    except KeyboardInterrupt:
        structlog.get_logger(__name__).info("watchdog_shutdown", reason="User interrupt")
        status = 0
    sys.exit(status)


if __name__ == "__main__":
    main()
