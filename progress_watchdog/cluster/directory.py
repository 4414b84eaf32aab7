"""Fleet directory — where team instances are listed and their metadata patched.

``KubernetesFleetDirectory`` talks to the Kubernetes API (Deployments in one
namespace). ``InMemoryFleetDirectory`` is a drop-in replacement holding the
fleet in process, used in standalone runs and tests.

Every failure surfaces as ``FleetDirectoryError``: the watchdog cannot work
without a healthy control-plane link.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog
from kubernetes_asyncio import client, config

from progress_watchdog.cluster.models import Instance
from progress_watchdog.exceptions import FleetDirectoryError

logger = structlog.get_logger(__name__)


class FleetDirectory(ABC):
    """Lists fleet members and applies merge patches to their records."""

    @abstractmethod
    async def list_instances(self, label_selector: str) -> list[Instance]:
        """Return every instance matching *label_selector* (``k=v[,k=v]``).

        Raises:
            FleetDirectoryError: If the directory cannot be read.
        """
        ...

    @abstractmethod
    async def patch_instance(self, name: str, merge_document: dict[str, Any]) -> None:
        """Apply *merge_document* to the record called *name*.

        Raises:
            FleetDirectoryError: If the patch is rejected or cannot be sent.
        """
        ...

    async def close(self) -> None:
        """Release connections held by the directory."""


# ── Kubernetes ────────────────────────────────────────────────────────

class KubernetesFleetDirectory(FleetDirectory):
    """Deployments of one namespace, accessed through kubernetes_asyncio.

    Args:
        namespace: Namespace holding the team Deployments.
        team_label: Label carrying the team name.
        apps_api: Ready ``AppsV1Api``; built by :meth:`connect` when omitted.
    """

    def __init__(
        self,
        namespace: str = "default",
        team_label: str = "team",
        apps_api: Optional[Any] = None,
    ) -> None:
        self.namespace = namespace
        self.team_label = team_label
        self._apps_api = apps_api
        self._api_client: Optional[client.ApiClient] = None

    @classmethod
    async def connect(
        cls,
        namespace: str = "default",
        team_label: str = "team",
        kubeconfig: Optional[str] = None,
        in_cluster: bool = False,
    ) -> "KubernetesFleetDirectory":
        """Load credentials and build an API client.

        Raises:
            FleetDirectoryError: If the credentials cannot be loaded.
        """
        try:
            if in_cluster:
                config.load_incluster_config()
            else:
                await config.load_kube_config(config_file=kubeconfig)
            api_client = client.ApiClient()
        except Exception as exc:
            await logger.aerror("kube_config_failed", kubeconfig=kubeconfig, error=str(exc))
            raise FleetDirectoryError("bootstrap", str(exc)) from exc

        directory = cls(
            namespace=namespace,
            team_label=team_label,
            apps_api=client.AppsV1Api(api_client),
        )
        directory._api_client = api_client
        await logger.ainfo(
            "kube_connected",
            namespace=namespace,
            in_cluster=in_cluster,
            kubeconfig=kubeconfig,
        )
        return directory

    @property
    def apps_api(self) -> Any:
        if self._apps_api is None:
            raise RuntimeError("Call connect() first")
        return self._apps_api

    async def list_instances(self, label_selector: str) -> list[Instance]:
        try:
            deployments = await self.apps_api.list_namespaced_deployment(
                self.namespace,
                label_selector=label_selector,
            )
        except Exception as exc:
            await logger.aerror(
                "deployment_list_failed",
                namespace=self.namespace,
                label_selector=label_selector,
                error=str(exc),
            )
            raise FleetDirectoryError("list", str(exc)) from exc

        return [self._to_instance(d) for d in deployments.items]

    async def patch_instance(self, name: str, merge_document: dict[str, Any]) -> None:
        # A dict body is sent as a strategic merge patch, which merges
        # metadata.annotations key by key.
        try:
            await self.apps_api.patch_namespaced_deployment(name, self.namespace, merge_document)
        except Exception as exc:
            await logger.aerror(
                "deployment_patch_failed",
                namespace=self.namespace,
                deployment=name,
                error=str(exc),
            )
            raise FleetDirectoryError("patch", str(exc)) from exc

    async def close(self) -> None:
        if self._api_client is not None:
            await self._api_client.close()
            self._api_client = None

    def _to_instance(self, deployment: Any) -> Instance:
        metadata = deployment.metadata
        labels = dict(metadata.labels or {})
        status = deployment.status
        return Instance(
            name=metadata.name,
            team_name=labels.get(self.team_label, ""),
            ready_replicas=(status.ready_replicas if status else None) or 0,
            labels=labels,
            annotations=dict(metadata.annotations or {}),
        )


# ── In-memory ─────────────────────────────────────────────────────────

def _parse_selector(label_selector: str) -> dict[str, str]:
    wanted = {}
    for term in filter(None, (t.strip() for t in label_selector.split(","))):
        key, sep, value = term.partition("=")
        if not sep:
            raise FleetDirectoryError("list", f"Unsupported selector term: {term!r}")
        wanted[key.strip()] = value.lstrip("=").strip()
    return wanted


class InMemoryFleetDirectory(FleetDirectory):
    """Fleet held in process; same interface as ``KubernetesFleetDirectory``.

    Patches follow JSON merge-patch rules for ``metadata.annotations``:
    a ``None`` value removes the key. Every applied patch is recorded in
    ``patches`` in arrival order.
    """

    def __init__(self, instances: Optional[list[Instance]] = None) -> None:
        self._instances: dict[str, Instance] = {}
        self.patches: list[tuple[str, dict[str, Any]]] = []
        for instance in instances or []:
            self.add(instance)

    def add(self, instance: Instance) -> None:
        """Register or replace *instance*."""
        self._instances[instance.name] = instance

    def get(self, name: str) -> Optional[Instance]:
        return self._instances.get(name)

    async def list_instances(self, label_selector: str) -> list[Instance]:
        wanted = _parse_selector(label_selector)
        return [
            copy.deepcopy(i)
            for i in self._instances.values()
            if all(i.labels.get(k) == v for k, v in wanted.items())
        ]

    async def patch_instance(self, name: str, merge_document: dict[str, Any]) -> None:
        instance = self._instances.get(name)
        if instance is None:
            raise FleetDirectoryError("patch", f"Instance {name} not found")

        annotations = merge_document.get("metadata", {}).get("annotations", {})
        for key, value in annotations.items():
            if value is None:
                instance.annotations.pop(key, None)
            else:
                instance.annotations[key] = value
        self.patches.append((name, copy.deepcopy(merge_document)))
        await logger.adebug("memory_instance_patched", instance=name, annotations=annotations)
