"""
Container API endpoints
Thin HTTP adapter over the Lifecycle Controller
"""

import asyncio
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError

from src.core.config import settings
from src.core.exceptions import ClientNotInitialized, InvalidCredentialFormat
from src.core.kubernetes_client import SessionHandle, connect, get_cluster_info, probe_connection
from src.models.schemas import (
    AwaitReadyRequest,
    ClusterInfo,
    ConnectionDescriptor,
    ContainerRecord,
    ContainerStatusSummary,
    CreateContainerRequest,
    CredentialKind,
    SuccessResponse
)
from src.services.lifecycle_controller import LifecycleController

logger = logging.getLogger(__name__)

router = APIRouter()

# Initialize services
lifecycle_controller = LifecycleController()


def get_connection_descriptor() -> ConnectionDescriptor:
    """
    Resolve the connection descriptor for the configured default cluster.

    The surrounding platform resolves descriptors from stored connection
    records; this adapter reads a single one from settings.
    """
    try:
        credential_kind = CredentialKind(settings.K8S_CREDENTIAL_KIND)
    except ValueError:
        raise InvalidCredentialFormat(
            f"Unsupported K8S_CREDENTIAL_KIND '{settings.K8S_CREDENTIAL_KIND}'",
            operation="connect"
        )

    if credential_kind == CredentialKind.STRUCTURED_CONFIG:
        payload = settings.K8S_KUBECONFIG
    else:
        payload = settings.K8S_TOKEN

    if not payload:
        raise ClientNotInitialized("No Kubernetes connection configured", operation="connect")

    try:
        return ConnectionDescriptor(
            name=settings.K8S_CLUSTER_NAME,
            endpoint=settings.K8S_API_SERVER,
            credential_kind=credential_kind,
            credential_payload=payload,
            verify_tls=settings.K8S_VERIFY_TLS,
            ca_cert_data=settings.K8S_CA_CERT_DATA,
            target_namespace=settings.K8S_NAMESPACE
        )
    except ValidationError as e:
        raise InvalidCredentialFormat(
            f"Invalid Kubernetes connection settings: {e.error_count()} error(s), "
            f"first: {e.errors()[0]['msg']}",
            operation="connect"
        )


async def get_session(descriptor: ConnectionDescriptor = Depends(get_connection_descriptor)):
    """Open a fresh session for one request and release it afterwards"""
    session = await asyncio.to_thread(connect, descriptor)
    try:
        yield session
    finally:
        session.close()


@router.get("/containers", response_model=List[ContainerStatusSummary])
async def list_containers(
    namespace: Optional[str] = Query(None, description="Namespace (connection default if omitted)"),
    label_selector: Optional[str] = Query(None, description="Kubernetes label selector"),
    session: SessionHandle = Depends(get_session)
):
    """List containers, one entry per declared container of every pod"""
    return await lifecycle_controller.list_containers(session, namespace, label_selector=label_selector)


@router.post("/containers", response_model=SuccessResponse, status_code=201)
async def create_container(
    request: CreateContainerRequest,
    session: SessionHandle = Depends(get_session)
):
    """Create a container as a single-container pod"""
    logger.info(f"Received create request for container {request.name} (image {request.image})")
    pod_name = await lifecycle_controller.create_container(session, request)
    return SuccessResponse(
        message="Container created successfully",
        data={"pod_name": pod_name, "namespace": request.namespace or session.namespace}
    )


@router.get("/containers/{pod_name}", response_model=ContainerRecord)
async def get_container(
    pod_name: str,
    namespace: Optional[str] = Query(None),
    session: SessionHandle = Depends(get_session)
):
    """Get a single container record"""
    return await lifecycle_controller.get_container(session, namespace, pod_name)


@router.post("/containers/{pod_name}/start", response_model=SuccessResponse)
async def start_container(
    pod_name: str,
    namespace: Optional[str] = Query(None),
    session: SessionHandle = Depends(get_session)
):
    """Start a container (reschedules its pod)"""
    await lifecycle_controller.start_container(session, namespace, pod_name)
    return SuccessResponse(message=f"Container {pod_name} started successfully")


@router.post("/containers/{pod_name}/stop", response_model=SuccessResponse)
async def stop_container(
    pod_name: str,
    namespace: Optional[str] = Query(None),
    session: SessionHandle = Depends(get_session)
):
    """Stop a container (deletes its pod)"""
    await lifecycle_controller.stop_container(session, namespace, pod_name)
    return SuccessResponse(message=f"Container {pod_name} stopped successfully")


@router.post("/containers/{pod_name}/restart", response_model=SuccessResponse)
async def restart_container(
    pod_name: str,
    namespace: Optional[str] = Query(None),
    session: SessionHandle = Depends(get_session)
):
    """Restart a container"""
    await lifecycle_controller.restart_container(session, namespace, pod_name)
    return SuccessResponse(message=f"Container {pod_name} restarted successfully")


@router.delete("/containers/{pod_name}", response_model=SuccessResponse)
async def delete_container(
    pod_name: str,
    namespace: Optional[str] = Query(None),
    session: SessionHandle = Depends(get_session)
):
    """Delete a container"""
    await lifecycle_controller.delete_container(session, namespace, pod_name)
    return SuccessResponse(message=f"Container {pod_name} deleted successfully")


@router.get("/containers/{pod_name}/logs")
async def get_container_logs(
    pod_name: str,
    namespace: Optional[str] = Query(None),
    container: Optional[str] = Query(None, description="Container name (first container if omitted)"),
    tail_lines: int = Query(default=settings.LOG_TAIL_LINES, ge=1, le=10000),
    session: SessionHandle = Depends(get_session)
):
    """Get recent logs of a container"""
    logs = await lifecycle_controller.get_logs(session, namespace, pod_name, container, tail_lines)
    return {
        "pod_name": pod_name,
        "namespace": namespace or session.namespace,
        "logs": logs
    }


@router.post("/containers/{pod_name}/wait", response_model=ContainerRecord)
async def wait_for_container(
    pod_name: str,
    request: AwaitReadyRequest,
    session: SessionHandle = Depends(get_session)
):
    """Block until a container is ready or the timeout elapses"""
    return await lifecycle_controller.await_ready(
        session, pod_name, request.timeout, namespace=request.namespace
    )


@router.get("/cluster", response_model=ClusterInfo)
async def cluster_info(session: SessionHandle = Depends(get_session)):
    """Describe the configured cluster"""
    return get_cluster_info(session)


@router.post("/connections/test", response_model=ClusterInfo)
async def test_connection(descriptor: ConnectionDescriptor):
    """Run a connection handshake against an arbitrary cluster"""
    return await asyncio.to_thread(probe_connection, descriptor)
