"""
Models module for the Container Gateway
"""

from src.models.schemas import (
    CredentialKind, ConnectionDescriptor, ClusterInfo,
    CreateContainerRequest, AwaitReadyRequest, WorkloadSpecification,
    ContainerStatus, ContainerStatusSummary, ContainerRecord,
    ErrorResponse, SuccessResponse
)

__all__ = [
    # Connection schemas
    "CredentialKind", "ConnectionDescriptor", "ClusterInfo",

    # Request schemas
    "CreateContainerRequest", "AwaitReadyRequest", "WorkloadSpecification",

    # Response schemas
    "ContainerStatus", "ContainerStatusSummary", "ContainerRecord",
    "ErrorResponse", "SuccessResponse"
]
