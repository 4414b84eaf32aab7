#!/usr/bin/env python3
"""Start the progress watchdog from a source checkout.

Usage:
    python scripts/start_watchdog.py [--kubeconfig PATH] [--in-cluster] [--config FILE]

Environment variables override the settings file:
  - PROGRESS_WATCHDOG_NAMESPACE: namespace of the team Deployments
  - PROGRESS_WATCHDOG_WORKER_COUNT: number of reconciliation workers
  - PROGRESS_WATCHDOG_REQUEST_TIMEOUT: per-request timeout in seconds
  - PROGRESS_WATCHDOG_LOG_LEVEL: minimum log level
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from progress_watchdog.app import main

if __name__ == "__main__":
    main()
