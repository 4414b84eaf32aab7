"""Progress Watchdog — keeps team continue codes in sync with their Deployments.

Components:
  - cluster: fleet directory adapters and the per-instance HTTP client.
  - storage: durable continue-code annotations on each Deployment.
  - core: discovery loop, reconciliation worker pool and the watchdog runner.
"""

__version__ = "0.1.0"
