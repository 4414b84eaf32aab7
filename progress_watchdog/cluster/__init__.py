"""Fleet access — listing team instances and talking to them.

Two capabilities are consumed by the reconciliation core:
  - FleetDirectory: list team Deployments and merge-patch their metadata.
  - InstanceClient: read and apply the continue code of a running instance.
"""

from progress_watchdog.cluster.directory import (
    FleetDirectory,
    InMemoryFleetDirectory,
    KubernetesFleetDirectory,
)
from progress_watchdog.cluster.instance_client import InstanceClient
from progress_watchdog.cluster.models import ContinueCodePayload, Instance, ReconciliationJob

__all__ = [
    "ContinueCodePayload",
    "FleetDirectory",
    "InMemoryFleetDirectory",
    "Instance",
    "InstanceClient",
    "KubernetesFleetDirectory",
    "ReconciliationJob",
]
