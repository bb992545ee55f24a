"""
State projection

Converts pods returned by the Kubernetes API into platform-level status
summaries and container records. Projections are recomputed on every call
and never cached.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Iterable

from kubernetes import client

from src.models.schemas import ContainerStatus, ContainerStatusSummary, ContainerRecord

logger = logging.getLogger(__name__)

PHASE_TO_STATUS = {
    "Running": ContainerStatus.RUNNING,
    "Pending": ContainerStatus.PENDING,
    "Succeeded": ContainerStatus.SUCCEEDED,
    "Failed": ContainerStatus.FAILED,
}

UNKNOWN_AGE = "<unknown>"


def classify_container_state(container_status: Optional[client.V1ContainerStatus]) -> ContainerStatus:
    """
    Classify a container from its most specific sub-state.

    Priority is running > waiting > terminated > unknown, so inconsistent
    reports with several sub-states set still map deterministically.
    """
    state = getattr(container_status, "state", None)
    if state is None:
        return ContainerStatus.UNKNOWN

    if state.running is not None:
        return ContainerStatus.RUNNING
    if state.waiting is not None:
        return ContainerStatus.PENDING
    if state.terminated is not None:
        if state.terminated.exit_code == 0:
            return ContainerStatus.SUCCEEDED
        return ContainerStatus.FAILED

    return ContainerStatus.UNKNOWN


def calculate_age(created_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Render the time since created_at at its coarsest unit.

    Minutes under one hour, hours under a day, days otherwise, always
    rounded down. Display only; not precise enough to sort on.
    """
    if created_at is None:
        return UNKNOWN_AGE

    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    # Clock skew between us and the API server can make this negative
    elapsed = max(int((now - created_at).total_seconds()), 0)
    hours = elapsed // 3600

    if hours < 1:
        return f"{elapsed // 60}m"
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def _container_statuses_by_name(pod: client.V1Pod) -> Dict[str, client.V1ContainerStatus]:
    statuses = getattr(pod.status, "container_statuses", None) or []
    return {s.name: s for s in statuses}


def project(
    pod: client.V1Pod,
    container: client.V1Container,
    now: Optional[datetime] = None,
    statuses: Optional[Dict[str, client.V1ContainerStatus]] = None
) -> ContainerStatusSummary:
    """Project one declared container of a pod into a status summary"""
    if statuses is None:
        statuses = _container_statuses_by_name(pod)
    container_status = statuses.get(container.name)
    metadata = pod.metadata

    return ContainerStatusSummary(
        name=container.name,
        namespace=metadata.namespace or "",
        image=container.image or "",
        pod_name=metadata.name,
        status=classify_container_state(container_status),
        restart_count=max(getattr(container_status, "restart_count", None) or 0, 0),
        age=calculate_age(metadata.creation_timestamp, now),
        node=getattr(pod.spec, "node_name", None),
        labels=metadata.labels,
        container_id=getattr(container_status, "container_id", None) or None
    )


def _degraded_summaries(pod: client.V1Pod) -> List[ContainerStatusSummary]:
    """Best-effort summaries for a pod whose shape could not be projected"""
    metadata = getattr(pod, "metadata", None)
    pod_name = getattr(metadata, "name", None) or ""
    containers = getattr(getattr(pod, "spec", None), "containers", None) or []

    summaries = []
    for container in containers:
        summaries.append(ContainerStatusSummary(
            name=getattr(container, "name", None) or pod_name,
            namespace=getattr(metadata, "namespace", None) or "",
            image=getattr(container, "image", None) or "",
            pod_name=pod_name,
            status=ContainerStatus.UNKNOWN,
            age=UNKNOWN_AGE
        ))
    return summaries


def project_pod(pod: client.V1Pod, now: Optional[datetime] = None) -> List[ContainerStatusSummary]:
    """
    Project every declared container of a pod.

    A pod missing expected fields degrades to Unknown summaries instead of
    failing the caller.
    """
    try:
        statuses = _container_statuses_by_name(pod)
        return [project(pod, container, now, statuses) for container in pod.spec.containers or []]
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning(f"Could not project pod {getattr(getattr(pod, 'metadata', None), 'name', '?')}: {e}")
        return _degraded_summaries(pod)


def project_all(pods: Iterable[client.V1Pod], now: Optional[datetime] = None) -> List[ContainerStatusSummary]:
    """Flatten pods into one summary per declared container"""
    now = now or datetime.now(timezone.utc)
    summaries: List[ContainerStatusSummary] = []
    for pod in pods:
        summaries.extend(project_pod(pod, now))
    return summaries


def is_pod_ready(pod: client.V1Pod) -> bool:
    """
    True when the pod phase is Running and every declared container
    reports ready.
    """
    status = pod.status
    if status is None or status.phase != "Running":
        return False

    statuses = _container_statuses_by_name(pod)
    declared = [c.name for c in (pod.spec.containers if pod.spec else None) or []]
    if not declared:
        declared = list(statuses)

    return bool(declared) and all(
        name in statuses and bool(statuses[name].ready) for name in declared
    )


def to_container_record(pod: client.V1Pod) -> ContainerRecord:
    """
    Convert a pod into a platform container record.

    Resources are read from the first declared container only; multi
    container pods are not fully represented.
    """
    metadata = pod.metadata
    status = pod.status or client.V1PodStatus()
    containers = (pod.spec.containers if pod.spec else None) or []

    record = ContainerRecord(
        name=metadata.name,
        k8s_name=metadata.name,
        pod_name=metadata.name,
        namespace=metadata.namespace,
        status=PHASE_TO_STATUS.get(status.phase, ContainerStatus.UNKNOWN),
        phase=status.phase,
        reason=status.reason,
        message=status.message,
        pod_ip=status.pod_ip,
        host_ip=status.host_ip,
        node_name=pod.spec.node_name if pod.spec else None,
        started_at=status.start_time
    )

    if containers:
        first = containers[0]
        resources = first.resources
        if resources is not None:
            requests = resources.requests or {}
            limits = resources.limits or {}
            record.cpu_request = requests.get("cpu")
            record.memory_request = requests.get("memory")
            record.cpu_limit = limits.get("cpu")
            record.memory_limit = limits.get("memory")

        first_status = _container_statuses_by_name(pod).get(first.name)
        if first_status is not None:
            record.restart_count = first_status.restart_count or 0

    return record
