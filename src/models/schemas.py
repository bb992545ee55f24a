"""
Pydantic schemas for gateway inputs and outputs
"""

import re
import shlex
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from enum import Enum

from src.core.config import settings

# Orchestrator-legal object name (RFC 1123 label)
DNS_LABEL_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
DNS_LABEL_MAX_LENGTH = 63


def _validate_dns_label(value: str, field: str) -> str:
    if len(value) > DNS_LABEL_MAX_LENGTH or not DNS_LABEL_PATTERN.match(value):
        raise ValueError(
            f"{field} must be a lowercase RFC 1123 label of at most "
            f"{DNS_LABEL_MAX_LENGTH} characters, got '{value}'"
        )
    return value


class CredentialKind(str, Enum):
    """How a connection descriptor authenticates"""
    STRUCTURED_CONFIG = "structured-config"
    BEARER_TOKEN = "bearer-token"


class ContainerStatus(str, Enum):
    """Derived container status"""
    RUNNING = "Running"
    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


# Connection schemas
class ConnectionDescriptor(BaseModel):
    """
    How to reach one cluster.

    credential_payload is a serialized kubeconfig document (YAML or JSON) for
    structured-config, or a bearer token string for bearer-token. verify_tls
    has no default: disabling certificate verification is always an explicit
    choice of the caller.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Cluster label")
    endpoint: Optional[str] = Field(None, description="Base URL of the cluster API server")
    credential_kind: CredentialKind = Field(..., description="Credential form")
    credential_payload: str = Field(..., min_length=1, repr=False, description="Kubeconfig document or bearer token")
    verify_tls: bool = Field(..., description="Verify the API server certificate")
    ca_cert_data: Optional[str] = Field(None, repr=False, description="Base64 encoded CA bundle (bearer-token only)")
    target_namespace: Optional[str] = Field(None, description="Default namespace scope")

    @field_validator("target_namespace")
    @classmethod
    def validate_target_namespace(cls, v):
        # Blank means "not given", so the default namespace applies
        if v is None or not v.strip():
            return None
        return _validate_dns_label(v, "target_namespace")

    @model_validator(mode="after")
    def validate_credentials(self):
        if self.credential_kind == CredentialKind.BEARER_TOKEN:
            if not self.endpoint:
                raise ValueError("endpoint is required for bearer-token credentials")
            if not self.credential_payload.strip():
                raise ValueError("bearer token must not be blank")
        elif self.ca_cert_data:
            raise ValueError("ca_cert_data is only accepted with bearer-token credentials; "
                             "put certificate-authority-data in the kubeconfig instead")
        return self

    @property
    def effective_namespace(self) -> str:
        """Target namespace, or the configured default when absent"""
        return self.target_namespace or settings.K8S_DEFAULT_NAMESPACE


class ClusterInfo(BaseModel):
    """Cluster identity reported after a successful handshake"""
    name: str
    version: Optional[str] = None
    platform: Optional[str] = None
    namespace: str


# Request schemas
class CreateContainerRequest(BaseModel):
    """
    Platform-level container creation request.

    env, ports and resources are free-form text exactly as the platform
    collects them; see src.services.workload_translator for the grammar.
    """
    name: str = Field(..., description="Container name")
    namespace: Optional[str] = Field(None, description="Target namespace (session namespace if omitted)")
    image: str = Field(..., min_length=1, description="Container image")
    command: Optional[str] = Field(None, description="Command line, split shell-style")
    ports: Optional[str] = Field(default="", description="Comma separated container ports, e.g. '80, 443'")
    env: Optional[str] = Field(default="", description="One KEY=VALUE pair per line")
    resources: Optional[str] = Field(default="", description="Comma separated requests, e.g. 'cpu:500m, memory:256Mi'")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _validate_dns_label(v, "name")

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v):
        if v is None or not v.strip():
            return None
        return _validate_dns_label(v, "namespace")

    @field_validator("command")
    @classmethod
    def validate_command(cls, v):
        if v:
            # Unbalanced quotes are rejected here rather than at translation time
            shlex.split(v)
        return v


class AwaitReadyRequest(BaseModel):
    """Request to wait for a pod to become ready"""
    namespace: Optional[str] = None
    timeout: float = Field(default=settings.READINESS_DEFAULT_TIMEOUT, gt=0, description="Timeout in seconds")


class WorkloadSpecification(BaseModel):
    """Structured workload specification produced by the translator"""
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    image: str
    command: List[str] = Field(default_factory=list)
    environment: Dict[str, str] = Field(default_factory=dict)
    ports: List[int] = Field(default_factory=list)
    # Resource requests only; limits are not settable through this path
    resources: Dict[str, str] = Field(default_factory=dict)


# Response schemas
class ContainerStatusSummary(BaseModel):
    """One declared container of one pod, as shown in container listings"""
    name: str
    namespace: str
    image: str
    pod_name: str
    status: ContainerStatus
    restart_count: int = Field(default=0, ge=0)
    age: str
    node: Optional[str] = None
    labels: Optional[Dict[str, str]] = None
    container_id: Optional[str] = None


class ContainerRecord(BaseModel):
    """
    Platform container record projected from a single pod.

    Resource fields come from the first declared container only.
    """
    name: str
    k8s_name: str
    pod_name: str
    namespace: Optional[str] = None
    status: ContainerStatus
    phase: Optional[str] = None
    reason: Optional[str] = None
    message: Optional[str] = None

    cpu_request: Optional[str] = None
    cpu_limit: Optional[str] = None
    memory_request: Optional[str] = None
    memory_limit: Optional[str] = None

    restart_count: int = 0
    pod_ip: Optional[str] = None
    host_ip: Optional[str] = None
    node_name: Optional[str] = None
    started_at: Optional[datetime] = None


class ErrorResponse(BaseModel):
    """Error response"""
    error: str
    message: str
    operation: Optional[str] = None
    namespace: Optional[str] = None
    workload: Optional[str] = None


class SuccessResponse(BaseModel):
    """Generic success response"""
    success: bool = True
    message: str
    data: Optional[Dict[str, Any]] = None
