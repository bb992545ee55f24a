"""
Workload translation

Turns a platform-level CreateContainerRequest, whose environment, ports and
resources arrive as free-form text, into a WorkloadSpecification and then
into a single-container pod manifest.
"""

import logging
import re
import shlex
from typing import Dict, List, Optional

from kubernetes import client
from kubernetes.utils import parse_quantity

from src.core.config import settings
from src.core.exceptions import InvalidResourceSpecification
from src.models.schemas import CreateContainerRequest, WorkloadSpecification

logger = logging.getLogger(__name__)

# Only resource requests are recognized, keyed by literal prefix
RESOURCE_PREFIXES = {
    "cpu:": "cpu",
    "memory:": "memory"
}

PORT_TOKEN_PATTERN = re.compile(r"^[+-]?\d+$")

# Kubernetes quantity grammar: signed decimal, then a binary SI, decimal SI or exponent suffix
QUANTITY_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)(Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE]|[eE][+-]?\d+)?$")


def parse_env_vars(env_text: Optional[str]) -> Dict[str, str]:
    """
    Parse one KEY=VALUE pair per line.

    Lines without '=' (or with nothing before it) are dropped; keys and
    values are trimmed. A repeated key keeps its last value.
    """
    env: Dict[str, str] = {}
    if not env_text:
        return env

    for line in env_text.splitlines():
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        env[key] = value.strip()

    return env


def parse_ports(ports_text: Optional[str]) -> List[int]:
    """Parse a comma separated port list, dropping non-numeric tokens"""
    ports: List[int] = []
    if not ports_text:
        return ports

    for token in ports_text.split(","):
        token = token.strip()
        if not token:
            continue
        if not PORT_TOKEN_PATTERN.match(token):
            logger.debug(f"Ignoring non-numeric port token '{token}'")
            continue
        ports.append(int(token))

    return ports


def _validate_quantity(resource: str, value: str) -> str:
    if not QUANTITY_PATTERN.match(value):
        raise InvalidResourceSpecification(
            f"Invalid {resource} quantity '{value}': not a Kubernetes quantity",
            operation="create"
        )

    try:
        quantity = parse_quantity(value)
    except ValueError as e:
        raise InvalidResourceSpecification(
            f"Invalid {resource} quantity '{value}': {e}",
            operation="create"
        )

    if not quantity.is_finite() or quantity < 0:
        raise InvalidResourceSpecification(
            f"Invalid {resource} quantity '{value}': must be a finite, non-negative amount",
            operation="create"
        )

    return value


def parse_resources(resources_text: Optional[str]) -> Dict[str, str]:
    """
    Parse comma separated resource requests such as "cpu:500m, memory:256Mi".

    Only the literal (case-sensitive) prefixes "cpu:" and "memory:" are
    recognized and the first occurrence of each wins; other tokens are
    ignored. Quantities are kept in the caller's notation once validated.

    Raises:
        InvalidResourceSpecification: If a recognized token carries a
            malformed quantity
    """
    requests: Dict[str, str] = {}
    if not resources_text:
        return requests

    for token in resources_text.split(","):
        token = token.strip()
        for prefix, resource in RESOURCE_PREFIXES.items():
            if not token.startswith(prefix):
                continue
            value = token[len(prefix):].strip()
            # Every matching token is validated, only the first one is kept
            _validate_quantity(resource, value)
            requests.setdefault(resource, value)
            break

    return requests


def translate(request: CreateContainerRequest, default_namespace: Optional[str] = None) -> WorkloadSpecification:
    """
    Translate a creation request into a structured workload specification.

    Absent environment/ports/resources text yields empty collections.
    """
    namespace = request.namespace or default_namespace or settings.K8S_DEFAULT_NAMESPACE

    return WorkloadSpecification(
        name=request.name,
        namespace=namespace,
        image=request.image,
        command=shlex.split(request.command) if request.command else [],
        environment=parse_env_vars(request.env),
        ports=parse_ports(request.ports),
        resources=parse_resources(request.resources)
    )


def pod_name_for(spec: WorkloadSpecification) -> str:
    return f"{spec.name}{settings.POD_NAME_SUFFIX}"


def build_pod(spec: WorkloadSpecification) -> client.V1Pod:
    """Build a single-container, always-restart pod for a workload specification"""
    labels = {
        "app": spec.name,
        "managed-by": settings.MANAGED_BY_LABEL
    }

    container = client.V1Container(
        name=spec.name,
        image=spec.image,
        command=list(spec.command) or None,
        env=[client.V1EnvVar(name=k, value=v) for k, v in spec.environment.items()] or None,
        ports=[client.V1ContainerPort(container_port=port) for port in spec.ports] or None,
        resources=client.V1ResourceRequirements(requests=dict(spec.resources)) if spec.resources else None
    )

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=pod_name_for(spec),
            namespace=spec.namespace,
            labels=labels
        ),
        spec=client.V1PodSpec(
            containers=[container],
            restart_policy="Always"
        )
    )
