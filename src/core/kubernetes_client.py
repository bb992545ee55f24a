"""
Kubernetes connection management

Resolves a ConnectionDescriptor into an authenticated SessionHandle. Each
call to connect() performs the full handshake; nothing is cached here and no
client state is global, so sessions for different clusters can be used side
by side.
"""

import base64
import binascii
import logging
from typing import Optional, Dict, Any

import yaml
from kubernetes import client, config
from kubernetes.client import Configuration
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from src.core.config import settings
from src.core.exceptions import (
    InvalidCredentialFormat,
    ClusterUnreachable,
    describe_orchestrator_error
)
from src.models.schemas import ConnectionDescriptor, CredentialKind, ClusterInfo

logger = logging.getLogger(__name__)

IMPERSONATE_USER_HEADER = "Impersonate-User"


class SessionHandle:
    """
    An authenticated client bound to one resolved cluster configuration.

    A handle belongs to one operation chain (connect, then act). It is not
    meant to be shared between concurrent operations; open one per task or
    synchronize externally.
    """

    def __init__(
        self,
        api_client: client.ApiClient,
        cluster_name: str,
        namespace: str,
        server_version: Optional[client.VersionInfo] = None,
        impersonated_user: Optional[str] = None
    ):
        self.api_client = api_client
        self.core_v1 = client.CoreV1Api(api_client)
        self.cluster_name = cluster_name
        self.namespace = namespace
        self.server_version = server_version
        self.impersonated_user = impersonated_user
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Release the underlying HTTP connection pool"""
        if self._closed:
            return
        self._closed = True
        self.api_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __repr__(self):
        return f"SessionHandle(cluster={self.cluster_name!r}, namespace={self.namespace!r}, closed={self._closed})"


def _parse_structured_config(payload: str) -> Dict[str, Any]:
    """Deserialize a kubeconfig document (YAML, or JSON which YAML accepts)"""
    try:
        document = yaml.safe_load(payload)
    except yaml.YAMLError as e:
        raise InvalidCredentialFormat(f"Kubeconfig document is not valid YAML/JSON: {e}", operation="connect")

    if not isinstance(document, dict):
        raise InvalidCredentialFormat("Kubeconfig document must be a mapping", operation="connect")

    return document


def _bearer_token_config(descriptor: ConnectionDescriptor) -> Dict[str, Any]:
    """Build an in-memory kubeconfig for endpoint + bearer token credentials"""
    cluster_name = descriptor.name
    user_name = f"{cluster_name}-user"
    context_name = f"{cluster_name}-context"

    cluster_entry: Dict[str, Any] = {
        "server": descriptor.endpoint,
        "insecure-skip-tls-verify": not descriptor.verify_tls
    }
    if descriptor.ca_cert_data:
        try:
            base64.b64decode(descriptor.ca_cert_data, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidCredentialFormat("ca_cert_data must be base64 encoded", operation="connect")
        cluster_entry["certificate-authority-data"] = descriptor.ca_cert_data

    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": cluster_name, "cluster": cluster_entry}],
        "users": [{"name": user_name, "user": {"token": descriptor.credential_payload.strip()}}],
        "contexts": [{"name": context_name, "context": {"cluster": cluster_name, "user": user_name}}],
        "current-context": context_name,
        "preferences": {}
    }


def build_configuration(descriptor: ConnectionDescriptor) -> Configuration:
    """
    Materialize a client Configuration for a descriptor, entirely in memory.

    Raises:
        InvalidCredentialFormat: If the credential payload cannot be parsed
    """
    if descriptor.credential_kind == CredentialKind.STRUCTURED_CONFIG:
        kube_config = _parse_structured_config(descriptor.credential_payload)
    else:
        kube_config = _bearer_token_config(descriptor)

    configuration = Configuration()
    try:
        config.load_kube_config_from_dict(
            kube_config,
            client_configuration=configuration,
            persist_config=False
        )
    except (ConfigException, KeyError, TypeError, ValueError) as e:
        raise InvalidCredentialFormat(f"Invalid cluster configuration: {e}", operation="connect")

    # The descriptor is authoritative for TLS verification, whatever the kubeconfig says
    configuration.verify_ssl = descriptor.verify_tls
    if not descriptor.verify_tls:
        logger.warning(f"TLS verification disabled for cluster {descriptor.name} by connection descriptor")

    return configuration


def connect(descriptor: ConnectionDescriptor) -> SessionHandle:
    """
    Open an authenticated session against the cluster described by descriptor.

    When the descriptor names a target namespace, requests impersonate that
    namespace's service account so they are scoped to the caller's logical
    namespace boundary. The session is only returned after a server-version
    probe succeeds.

    Raises:
        InvalidCredentialFormat: If the credential payload cannot be parsed
        ClusterUnreachable: If the liveness probe fails
    """
    configuration = build_configuration(descriptor)
    api_client = client.ApiClient(configuration)

    impersonated_user = None
    if descriptor.target_namespace and settings.K8S_IMPERSONATION_ENABLED:
        impersonated_user = (
            f"system:serviceaccount:{descriptor.target_namespace}:"
            f"{settings.K8S_IMPERSONATE_SERVICE_ACCOUNT}"
        )
        api_client.set_default_header(IMPERSONATE_USER_HEADER, impersonated_user)

    try:
        server_version = client.VersionApi(api_client).get_code()
    except Exception as e:
        api_client.close()
        logger.error(f"Could not reach cluster {descriptor.name}: {describe_orchestrator_error(e)}")
        raise ClusterUnreachable(
            f"Failed to connect to cluster {descriptor.name}: {describe_orchestrator_error(e)}",
            operation="connect"
        )

    logger.info(
        f"Connected to cluster {descriptor.name} "
        f"(version {getattr(server_version, 'git_version', 'unknown')}, "
        f"namespace {descriptor.effective_namespace})"
    )

    return SessionHandle(
        api_client=api_client,
        cluster_name=descriptor.name,
        namespace=descriptor.effective_namespace,
        server_version=server_version,
        impersonated_user=impersonated_user
    )


def get_cluster_info(session: SessionHandle) -> ClusterInfo:
    """Describe the cluster a session is connected to"""
    version = session.server_version
    return ClusterInfo(
        name=session.cluster_name,
        version=getattr(version, "git_version", None),
        platform=getattr(version, "platform", None),
        namespace=session.namespace
    )


def probe_connection(descriptor: ConnectionDescriptor) -> ClusterInfo:
    """Run the full handshake for a descriptor and report what was reached"""
    with connect(descriptor) as session:
        return get_cluster_info(session)


def check_health(session: SessionHandle) -> bool:
    """Check that the API server answers and the session namespace exists"""
    if session is None or session.closed:
        return False

    try:
        client.VersionApi(session.api_client).get_code()
        session.core_v1.read_namespace(name=session.namespace)
        return True
    except ApiException as e:
        logger.error(f"Kubernetes health check failed for namespace {session.namespace}: {describe_orchestrator_error(e)}")
        return False
    except Exception as e:
        logger.error(f"Kubernetes health check failed: {e}")
        return False
