from __future__ import annotations

import logging
import re

from kubernetes import client, config
from kubernetes.client import ApiException

from .settings import settings
from .units import ContainerStatus, Selector, UnitStatus, format_selector

logger = logging.getLogger("rollwatch.kube_ops")

UNIT_NAME_RE = re.compile(r"^[a-z0-9]([a-z0-9\-\.]{0,251}[a-z0-9])?$")


def validate_unit_name(name: str) -> None:
    if not UNIT_NAME_RE.match(name):
        raise ValueError(
            "Invalid pod name. Use lowercase letters/numbers, '-' and '.', starting and ending alphanumeric (max 253 chars)."
        )


_k8s_loaded = False


def _ensure_k8s() -> None:
    """Load cluster credentials exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.in_cluster:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=settings.kubeconfig or None)
    _k8s_loaded = True


def core_api() -> client.CoreV1Api:
    _ensure_k8s()
    return client.CoreV1Api()


def pod_is_ready(pod: client.V1Pod) -> bool:
    """True when the pod reports the ``Ready`` condition."""
    status = pod.status
    if status is None:
        return False
    for cond in status.conditions or []:
        if cond.type == "Ready":
            return cond.status == "True"
    return False


def unit_from_pod(pod: client.V1Pod) -> UnitStatus:
    meta = pod.metadata
    status = pod.status
    spec = pod.spec

    containers: list[ContainerStatus] = []
    for cs in (status.container_statuses if status else None) or []:
        waiting = cs.state.waiting if cs.state else None
        containers.append(
            ContainerStatus(
                name=cs.name,
                ready=bool(cs.ready),
                image=cs.image or "",
                waiting_reason=waiting.reason if waiting else None,
            )
        )

    return UnitStatus(
        name=meta.name,
        revision=meta.uid or "",
        phase=(status.phase if status else None) or "Unknown",
        ready=pod_is_ready(pod),
        containers=tuple(containers),
        created_at=meta.creation_timestamp,
        labels=dict(meta.labels or {}),
        images=tuple(c.image for c in (spec.containers if spec else None) or []),
        init_images=tuple(c.image for c in (spec.init_containers if spec else None) or []),
        container_names=tuple(c.name for c in (spec.containers if spec else None) or []),
    )


class KubeUnitClient:
    """Pod access for one namespace, shaped for :class:`rollwatch.tracker.UnitTracker`."""

    def __init__(self, namespace: str | None = None, api: client.CoreV1Api | None = None) -> None:
        self.namespace = namespace or settings.namespace
        self._api = api

    @property
    def api(self) -> client.CoreV1Api:
        if self._api is None:
            self._api = core_api()
        return self._api

    def list_units(self, selector: Selector) -> list[UnitStatus]:
        pods = self.api.list_namespaced_pod(namespace=self.namespace, label_selector=format_selector(selector))
        return [unit_from_pod(p) for p in pods.items]

    def list_all_units(self) -> list[UnitStatus]:
        pods = self.api.list_namespaced_pod(namespace=self.namespace)
        return [unit_from_pod(p) for p in pods.items]

    def list_units_by_prefix(self, prefix: str) -> list[UnitStatus]:
        return [u for u in self.list_all_units() if u.name.startswith(prefix)]

    def get_unit(self, name: str) -> UnitStatus | None:
        try:
            pod = self.api.read_namespaced_pod(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return unit_from_pod(pod)

    def delete_unit(self, name: str) -> bool:
        """Request deletion. Returns False if the pod was already gone."""
        validate_unit_name(name)
        try:
            self.api.delete_namespaced_pod(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        logger.info(f"Pod {self.namespace}/{name} deletion requested")
        return True

    def unit_logs(self, name: str, container: str | None = None) -> str:
        kwargs = {"container": container} if container else {}
        return self.api.read_namespaced_pod_log(name=name, namespace=self.namespace, **kwargs)
