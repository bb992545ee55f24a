"""
Error taxonomy for the Container Gateway

Every failure surfaced by the gateway is a GatewayError subclass tagged with
an ErrorKind. Orchestrator errors are wrapped with the verb, namespace and
workload they occurred on; the original orchestrator message is kept, stack
traces and internal identifiers are not.
"""

import json
from enum import Enum
from typing import Optional, Dict, Any

from kubernetes.client.rest import ApiException


class ErrorKind(str, Enum):
    """Error kinds returned to callers"""
    INVALID_CREDENTIAL_FORMAT = "InvalidCredentialFormat"
    CLUSTER_UNREACHABLE = "ClusterUnreachable"
    INVALID_RESOURCE_SPECIFICATION = "InvalidResourceSpecification"
    WORKLOAD_CREATION_FAILED = "WorkloadCreationFailed"
    WORKLOAD_OPERATION_FAILED = "WorkloadOperationFailed"
    READINESS_TIMEOUT = "ReadinessTimeout"
    CLIENT_NOT_INITIALIZED = "ClientNotInitialized"
    CANCELLED = "Cancelled"


class GatewayError(Exception):
    """Base class for all gateway errors"""

    kind: ErrorKind
    http_status: int = 500

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        namespace: Optional[str] = None,
        workload: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.namespace = namespace
        self.workload = workload

    def to_dict(self) -> Dict[str, Any]:
        """Structured, user-visible form of the error"""
        payload = {
            "error": self.kind.value,
            "message": self.message
        }
        for key in ("operation", "namespace", "workload"):
            value = getattr(self, key)
            if value:
                payload[key] = value
        return payload


class InvalidCredentialFormat(GatewayError):
    """Credential payload of a connection descriptor cannot be parsed"""
    kind = ErrorKind.INVALID_CREDENTIAL_FORMAT
    http_status = 400


class ClusterUnreachable(GatewayError):
    """Liveness probe failed after the client was configured"""
    kind = ErrorKind.CLUSTER_UNREACHABLE
    http_status = 503


class InvalidResourceSpecification(GatewayError):
    """Malformed quantity in a creation request"""
    kind = ErrorKind.INVALID_RESOURCE_SPECIFICATION
    http_status = 400


class ReadinessTimeout(GatewayError):
    kind = ErrorKind.READINESS_TIMEOUT
    http_status = 504


class ClientNotInitialized(GatewayError):
    """A lifecycle operation was invoked without a connected session"""
    kind = ErrorKind.CLIENT_NOT_INITIALIZED
    http_status = 500


class OperationCancelled(GatewayError):
    kind = ErrorKind.CANCELLED
    http_status = 499


class OrchestratorError(GatewayError):
    """Failure reported by the orchestration API"""

    # Orchestrator statuses that are meaningful to pass through to callers
    PASSTHROUGH_STATUSES = (403, 404, 409, 422)

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        namespace: Optional[str] = None,
        workload: Optional[str] = None,
        orchestrator_status: Optional[int] = None
    ):
        super().__init__(message, operation=operation, namespace=namespace, workload=workload)
        self.orchestrator_status = orchestrator_status
        if orchestrator_status in self.PASSTHROUGH_STATUSES:
            self.http_status = orchestrator_status
        else:
            self.http_status = 502

    @classmethod
    def wrap(
        cls,
        exc: Exception,
        operation: str,
        namespace: Optional[str] = None,
        workload: Optional[str] = None
    ) -> "OrchestratorError":
        """Wrap a client-side exception with operation context"""
        target = "/".join(part for part in (namespace, workload) if part)
        prefix = f"{operation} {target}".strip()
        return cls(
            f"{prefix} failed: {describe_orchestrator_error(exc)}",
            operation=operation,
            namespace=namespace,
            workload=workload,
            orchestrator_status=getattr(exc, "status", None) if isinstance(exc, ApiException) else None
        )


class WorkloadCreationFailed(OrchestratorError):
    """Orchestrator rejected a create call (naming collision, quota, validation)"""
    kind = ErrorKind.WORKLOAD_CREATION_FAILED


class WorkloadOperationFailed(OrchestratorError):
    kind = ErrorKind.WORKLOAD_OPERATION_FAILED


def describe_orchestrator_error(exc: Exception) -> str:
    """
    Extract the human-readable message from an orchestrator error.

    ApiException bodies are Status objects serialized as JSON; their
    "message" field is what kubectl would print.
    """
    if isinstance(exc, ApiException):
        if exc.body:
            try:
                body = json.loads(exc.body)
            except (TypeError, ValueError):
                body = None
            if isinstance(body, dict) and body.get("message"):
                return body["message"]
        if exc.reason:
            return f"{exc.reason} ({exc.status})" if exc.status else str(exc.reason)
        return f"orchestrator returned status {exc.status}"
    return str(exc) or exc.__class__.__name__
