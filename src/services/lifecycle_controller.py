"""
Lifecycle Controller
Public container lifecycle verbs over a connected SessionHandle
"""

import asyncio
import logging
from typing import List, Optional, Union

from kubernetes import client

from src.core.config import settings
from src.core.exceptions import (
    ClientNotInitialized,
    OperationCancelled,
    ReadinessTimeout,
    WorkloadCreationFailed,
    WorkloadOperationFailed
)
from src.core.kubernetes_client import SessionHandle
from src.models.schemas import (
    ContainerRecord,
    ContainerStatusSummary,
    CreateContainerRequest,
    WorkloadSpecification
)
from src.services import state_projector, workload_translator

logger = logging.getLogger(__name__)

FOREGROUND_PROPAGATION = "Foreground"

# Lower bound for the client-side timeout of a pod read while waiting for readiness
READ_TIMEOUT_FLOOR = 1.0  # seconds


class LifecycleController:
    """
    Lists, creates, starts, stops, restarts and deletes platform containers.

    Pods are the unit of execution and there is no stopped-but-retained
    state: start is restart, and delete is stop. Every verb takes an
    explicit SessionHandle; the controller itself holds no connection.
    Blocking client calls run in a worker thread. Nothing is retried.
    """

    def __init__(self, poll_interval: Optional[float] = None):
        self.poll_interval = poll_interval if poll_interval is not None else settings.READINESS_POLL_INTERVAL

    @staticmethod
    def _require_session(session: Optional[SessionHandle], operation: str) -> SessionHandle:
        if session is None or session.closed:
            raise ClientNotInitialized(
                "Kubernetes client not initialized: connect to a cluster first",
                operation=operation
            )
        return session

    async def list_containers(
        self,
        session: SessionHandle,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None
    ) -> List[ContainerStatusSummary]:
        """
        List every declared container of every pod in a namespace.

        A failed list call fails the whole operation; individual pods that
        cannot be projected are reported with Unknown status.
        """
        session = self._require_session(session, "list")
        namespace = namespace or session.namespace

        kwargs = {"namespace": namespace}
        if label_selector:
            kwargs["label_selector"] = label_selector

        try:
            pods = await asyncio.to_thread(session.core_v1.list_namespaced_pod, **kwargs)
        except Exception as e:
            logger.error(f"Failed to list pods in namespace {namespace}: {e}")
            raise WorkloadOperationFailed.wrap(e, "list", namespace)

        return state_projector.project_all(pods.items or [])

    async def get_container(self, session: SessionHandle, namespace: Optional[str], pod_name: str) -> ContainerRecord:
        """Read a single pod and project it into a container record"""
        session = self._require_session(session, "get")
        namespace = namespace or session.namespace

        pod = await self._read_pod(session, namespace, pod_name, "get")
        return state_projector.to_container_record(pod)

    async def create_container(
        self,
        session: SessionHandle,
        request: Union[CreateContainerRequest, WorkloadSpecification]
    ) -> str:
        """
        Create one single-container pod for a request.

        Returns:
            Name of the created pod

        Raises:
            InvalidResourceSpecification: If a resource quantity is malformed
            WorkloadCreationFailed: If the orchestrator rejects the pod
        """
        session = self._require_session(session, "create")

        if isinstance(request, WorkloadSpecification):
            spec = request
        else:
            spec = workload_translator.translate(request, default_namespace=session.namespace)

        pod = workload_translator.build_pod(spec)
        pod_name = pod.metadata.name

        try:
            await asyncio.to_thread(
                session.core_v1.create_namespaced_pod,
                namespace=spec.namespace,
                body=pod
            )
        except Exception as e:
            logger.error(f"Failed to create pod {spec.namespace}/{pod_name}: {e}")
            raise WorkloadCreationFailed.wrap(e, "create", spec.namespace, pod_name)

        logger.info(f"Created pod {spec.namespace}/{pod_name} (image {spec.image})")
        return pod_name

    async def start_container(self, session: SessionHandle, namespace: Optional[str], pod_name: str):
        """
        Start a container.

        There is no distinct start primitive: the pod is deleted so that its
        supervisor reschedules it, exactly like restart.
        """
        await self.restart_container(session, namespace, pod_name, operation="start")

    async def stop_container(
        self,
        session: SessionHandle,
        namespace: Optional[str],
        pod_name: str,
        operation: str = "stop"
    ):
        """
        Stop a container by deleting its pod with foreground propagation.

        Terminal for unmanaged pods; a supervised pod is replaced by its
        controller.
        """
        session = self._require_session(session, operation)
        namespace = namespace or session.namespace

        try:
            await asyncio.to_thread(
                session.core_v1.delete_namespaced_pod,
                name=pod_name,
                namespace=namespace,
                body=client.V1DeleteOptions(propagation_policy=FOREGROUND_PROPAGATION)
            )
        except Exception as e:
            logger.error(f"Failed to delete pod {namespace}/{pod_name}: {e}")
            raise WorkloadOperationFailed.wrap(e, operation, namespace, pod_name)

        logger.info(f"Stopped pod {namespace}/{pod_name}")

    async def restart_container(
        self,
        session: SessionHandle,
        namespace: Optional[str],
        pod_name: str,
        operation: str = "restart"
    ):
        """
        Restart a container by deleting its pod and letting its supervisor
        (Deployment, ReplicaSet) recreate it. Without a supervisor this is
        the same as delete.
        """
        session = self._require_session(session, operation)
        namespace = namespace or session.namespace

        try:
            await asyncio.to_thread(
                session.core_v1.delete_namespaced_pod,
                name=pod_name,
                namespace=namespace
            )
        except Exception as e:
            logger.error(f"Failed to delete pod {namespace}/{pod_name} for {operation}: {e}")
            raise WorkloadOperationFailed.wrap(e, operation, namespace, pod_name)

        logger.info(f"Restarted pod {namespace}/{pod_name}")

    async def delete_container(self, session: SessionHandle, namespace: Optional[str], pod_name: str):
        """Delete a container; same as stop"""
        await self.stop_container(session, namespace, pod_name, operation="delete")

    async def await_ready(
        self,
        session: SessionHandle,
        pod_name: str,
        timeout: float,
        namespace: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ContainerRecord:
        """
        Poll a pod until it is Running with every container ready.

        Args:
            session: Connected session
            pod_name: Pod to wait for
            timeout: Maximum wait time in seconds
            namespace: Pod namespace (session namespace if omitted)
            cancel_event: Optional signal; setting it ends the wait

        Returns:
            ContainerRecord of the ready pod

        Raises:
            ReadinessTimeout: If the pod is not ready within timeout
            OperationCancelled: If cancel_event is set first
            WorkloadOperationFailed: If the pod cannot be read
        """
        session = self._require_session(session, "await_ready")
        namespace = namespace or session.namespace

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        logger.info(f"Waiting for pod {namespace}/{pod_name} to be ready (timeout: {timeout}s)")

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise self._cancelled(namespace, pod_name)

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise self._timed_out(namespace, pod_name, timeout)

            pod = await self._read_pod_within(session, namespace, pod_name, remaining, cancel_event)
            if pod is None:
                if cancel_event is not None and cancel_event.is_set():
                    raise self._cancelled(namespace, pod_name)
                raise self._timed_out(namespace, pod_name, timeout)

            if state_projector.is_pod_ready(pod):
                logger.info(f"Pod {namespace}/{pod_name} is ready")
                return state_projector.to_container_record(pod)

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise self._timed_out(namespace, pod_name, timeout)

            await self._pause(min(self.poll_interval, remaining), cancel_event)

    async def get_logs(
        self,
        session: SessionHandle,
        namespace: Optional[str],
        pod_name: str,
        container: Optional[str] = None,
        tail_lines: Optional[int] = None
    ) -> str:
        """Fetch the last tail_lines log lines of a pod's container"""
        session = self._require_session(session, "logs")
        namespace = namespace or session.namespace

        try:
            return await asyncio.to_thread(
                session.core_v1.read_namespaced_pod_log,
                name=pod_name,
                namespace=namespace,
                container=container,
                tail_lines=tail_lines or settings.LOG_TAIL_LINES
            )
        except Exception as e:
            logger.error(f"Failed to get logs for pod {namespace}/{pod_name}: {e}")
            raise WorkloadOperationFailed.wrap(e, "logs", namespace, pod_name)

    async def _read_pod(
        self,
        session: SessionHandle,
        namespace: str,
        pod_name: str,
        operation: str,
        request_timeout: Optional[float] = None
    ) -> client.V1Pod:
        kwargs = {"name": pod_name, "namespace": namespace}
        if request_timeout is not None:
            kwargs["_request_timeout"] = request_timeout

        try:
            return await asyncio.to_thread(session.core_v1.read_namespaced_pod, **kwargs)
        except Exception as e:
            logger.error(f"Failed to read pod {namespace}/{pod_name}: {e}")
            raise WorkloadOperationFailed.wrap(e, operation, namespace, pod_name)

    async def _read_pod_within(
        self,
        session: SessionHandle,
        namespace: str,
        pod_name: str,
        seconds: float,
        cancel_event: Optional[asyncio.Event]
    ) -> Optional[client.V1Pod]:
        """
        Read a pod, giving up after seconds or as soon as cancel_event is set.

        Returns None when the read was abandoned. The worker thread then
        finishes on its own, bounded by the client request timeout.
        """
        read = asyncio.ensure_future(self._read_pod(
            session, namespace, pod_name, "await_ready",
            request_timeout=max(seconds, READ_TIMEOUT_FLOOR)
        ))
        waiters = {read}
        if cancel_event is not None:
            waiters.add(asyncio.ensure_future(cancel_event.wait()))

        try:
            done, _ = await asyncio.wait(waiters, timeout=seconds, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()

        if read in done:
            return read.result()
        return None

    @staticmethod
    def _cancelled(namespace: str, pod_name: str) -> OperationCancelled:
        return OperationCancelled(
            f"Waiting for pod {pod_name} was cancelled",
            operation="await_ready", namespace=namespace, workload=pod_name
        )

    @staticmethod
    def _timed_out(namespace: str, pod_name: str, timeout: float) -> ReadinessTimeout:
        logger.warning(f"Pod {namespace}/{pod_name} not ready after {timeout} seconds")
        return ReadinessTimeout(
            f"Pod {pod_name} was not ready within {timeout} seconds",
            operation="await_ready", namespace=namespace, workload=pod_name
        )

    @staticmethod
    async def _pause(seconds: float, cancel_event: Optional[asyncio.Event]):
        """Sleep for seconds, returning early if cancel_event gets set"""
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
