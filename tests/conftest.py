"""
Shared fixtures and Kubernetes object builders for the test suite
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from src.core.kubernetes_client import SessionHandle

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def running_state() -> client.V1ContainerState:
    return client.V1ContainerState(running=client.V1ContainerStateRunning(started_at=NOW))


def waiting_state(reason: str = "ContainerCreating") -> client.V1ContainerState:
    return client.V1ContainerState(waiting=client.V1ContainerStateWaiting(reason=reason))


def terminated_state(exit_code: int) -> client.V1ContainerState:
    return client.V1ContainerState(terminated=client.V1ContainerStateTerminated(exit_code=exit_code))


def make_container_status(
    name: str,
    state: Optional[client.V1ContainerState] = None,
    ready: bool = False,
    restart_count: int = 0,
    container_id: Optional[str] = None
) -> client.V1ContainerStatus:
    return client.V1ContainerStatus(
        name=name,
        image="nginx:1.25",
        image_id="docker.io/library/nginx@sha256:abc",
        ready=ready,
        restart_count=restart_count,
        state=state,
        container_id=container_id
    )


def make_pod(
    name: str = "web-pod",
    namespace: str = "team-a",
    containers: Optional[List[client.V1Container]] = None,
    statuses: Optional[List[client.V1ContainerStatus]] = None,
    phase: Optional[str] = "Running",
    created_at: Optional[datetime] = None,
    labels: Optional[Dict[str, str]] = None,
    node_name: Optional[str] = "node-1"
) -> client.V1Pod:
    if containers is None:
        containers = [client.V1Container(name="web", image="nginx:1.25")]

    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels if labels is not None else {"app": "web"},
            creation_timestamp=created_at or NOW - timedelta(minutes=5)
        ),
        spec=client.V1PodSpec(containers=containers, node_name=node_name),
        status=client.V1PodStatus(phase=phase, container_statuses=statuses)
    )


def api_exception(status: int, message: Optional[str] = None, reason: str = "Error") -> ApiException:
    exc = ApiException(status=status, reason=reason)
    if message is not None:
        exc.body = json.dumps({"kind": "Status", "status": "Failure", "message": message, "code": status})
    return exc


@pytest.fixture
def core_v1():
    """A CoreV1Api stand-in"""
    return MagicMock(spec=client.CoreV1Api)


@pytest.fixture
def session(core_v1):
    """A connected SessionHandle whose CoreV1Api is mocked"""
    handle = SessionHandle(
        api_client=MagicMock(spec=client.ApiClient),
        cluster_name="test-cluster",
        namespace="team-a"
    )
    handle.core_v1 = core_v1
    return handle
