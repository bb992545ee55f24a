"""
Tests for the HTTP adapter
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from main import app
from src.api import containers
from src.core.config import settings
from src.core.exceptions import ClientNotInitialized, ClusterUnreachable, InvalidCredentialFormat
from src.models.schemas import ClusterInfo
from tests.conftest import make_pod, make_container_status, running_state, api_exception


@pytest.fixture
def api(session):
    """TestClient whose requests run against the mocked session"""
    app.dependency_overrides[containers.get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestContainerRoutes:
    """Lifecycle routes"""

    def test_list_containers(self, api, core_v1):
        result = MagicMock()
        result.items = [make_pod(
            statuses=[make_container_status("web", state=running_state())],
            created_at=datetime.now(timezone.utc) - timedelta(hours=2)
        )]
        core_v1.list_namespaced_pod.return_value = result

        response = api.get("/api/k8s/containers")

        assert response.status_code == 200
        [summary] = response.json()
        assert summary["name"] == "web"
        assert summary["pod_name"] == "web-pod"
        assert summary["status"] == "Running"
        assert summary["age"] == "2h"

    def test_create_container(self, api, core_v1):
        response = api.post("/api/k8s/containers", json={
            "name": "web",
            "image": "nginx:1.25",
            "ports": "80, 443",
            "resources": "cpu:250m"
        })

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["data"] == {"pod_name": "web-pod", "namespace": "team-a"}
        core_v1.create_namespaced_pod.assert_called_once()

    def test_create_with_invalid_quantity(self, api, core_v1):
        response = api.post("/api/k8s/containers", json={
            "name": "web",
            "image": "nginx",
            "resources": "memory:lots"
        })

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidResourceSpecification"
        core_v1.create_namespaced_pod.assert_not_called()

    def test_create_with_invalid_name(self, api):
        response = api.post("/api/k8s/containers", json={"name": "Web App", "image": "nginx"})

        assert response.status_code == 422

    def test_create_collision_passes_conflict_through(self, api, core_v1):
        core_v1.create_namespaced_pod.side_effect = api_exception(409, 'pods "web-pod" already exists')

        response = api.post("/api/k8s/containers", json={"name": "web", "image": "nginx"})

        assert response.status_code == 409
        assert response.json() == {
            "error": "WorkloadCreationFailed",
            "message": 'create team-a/web-pod failed: pods "web-pod" already exists',
            "operation": "create",
            "namespace": "team-a",
            "workload": "web-pod"
        }

    @pytest.mark.parametrize("verb", ["start", "stop", "restart"])
    def test_lifecycle_verbs(self, api, core_v1, verb):
        response = api.post(f"/api/k8s/containers/web-pod/{verb}", params={"namespace": "team-b"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert core_v1.delete_namespaced_pod.call_args.kwargs["namespace"] == "team-b"

    def test_delete_container(self, api, core_v1):
        response = api.delete("/api/k8s/containers/web-pod")

        assert response.status_code == 200
        assert core_v1.delete_namespaced_pod.call_args.kwargs["body"].propagation_policy == "Foreground"

    def test_get_container(self, api, core_v1):
        core_v1.read_namespaced_pod.return_value = make_pod()

        response = api.get("/api/k8s/containers/web-pod")

        assert response.status_code == 200
        assert response.json()["k8s_name"] == "web-pod"

    def test_logs(self, api, core_v1):
        core_v1.read_namespaced_pod_log.return_value = "hello\n"

        response = api.get("/api/k8s/containers/web-pod/logs", params={"tail_lines": 5})

        assert response.status_code == 200
        assert response.json() == {"pod_name": "web-pod", "namespace": "team-a", "logs": "hello\n"}
        assert core_v1.read_namespaced_pod_log.call_args.kwargs["tail_lines"] == 5

    def test_wait_for_ready_container(self, api, core_v1):
        core_v1.read_namespaced_pod.return_value = make_pod(
            statuses=[make_container_status("web", state=running_state(), ready=True)]
        )

        response = api.post("/api/k8s/containers/web-pod/wait", json={"timeout": 5})

        assert response.status_code == 200
        assert response.json()["status"] == "Running"

    def test_wait_rejects_non_positive_timeout(self, api):
        response = api.post("/api/k8s/containers/web-pod/wait", json={"timeout": 0})

        assert response.status_code == 422

    def test_cluster_info(self, api, session):
        response = api.get("/api/k8s/cluster")

        assert response.status_code == 200
        assert response.json()["name"] == "test-cluster"
        assert response.json()["namespace"] == "team-a"


class TestConnectionRoutes:
    """Connection handling at the HTTP boundary"""

    def test_unconfigured_gateway(self):
        def unconfigured():
            raise ClientNotInitialized("No Kubernetes connection configured", operation="connect")

        app.dependency_overrides[containers.get_connection_descriptor] = unconfigured
        try:
            response = TestClient(app).get("/api/k8s/containers")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"] == "ClientNotInitialized"

    @patch("src.api.containers.probe_connection")
    def test_connection_test(self, mock_probe):
        mock_probe.return_value = ClusterInfo(name="prod", version="v1.29.2", namespace="team-a")

        response = TestClient(app).post("/api/k8s/connections/test", json={
            "name": "prod",
            "endpoint": "https://cluster.example.com:6443",
            "credential_kind": "bearer-token",
            "credential_payload": "secret-token",
            "verify_tls": False,
            "target_namespace": "team-a"
        })

        assert response.status_code == 200
        assert response.json()["version"] == "v1.29.2"
        descriptor = mock_probe.call_args.args[0]
        assert descriptor.verify_tls is False
        assert descriptor.target_namespace == "team-a"

    @patch("src.api.containers.probe_connection")
    def test_connection_test_unreachable(self, mock_probe):
        mock_probe.side_effect = ClusterUnreachable("Failed to connect to cluster prod: timed out", operation="connect")

        response = TestClient(app).post("/api/k8s/connections/test", json={
            "name": "prod",
            "endpoint": "https://cluster.example.com:6443",
            "credential_kind": "bearer-token",
            "credential_payload": "secret-token",
            "verify_tls": True
        })

        assert response.status_code == 503
        assert response.json()["error"] == "ClusterUnreachable"


class TestHealth:
    """Service health endpoint"""

    @patch("src.api.containers.get_connection_descriptor")
    def test_not_configured(self, mock_descriptor):
        mock_descriptor.side_effect = ClientNotInitialized("No Kubernetes connection configured")

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["kubernetes"] == "not_configured"
        assert response.json()["status"] == "healthy"

    @patch("src.api.containers.get_connection_descriptor")
    def test_invalid_settings_are_degraded(self, mock_descriptor):
        mock_descriptor.side_effect = InvalidCredentialFormat("Unsupported K8S_CREDENTIAL_KIND 'token'")

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["kubernetes"] == "misconfigured"
        assert response.json()["error"] == "InvalidCredentialFormat"

    @patch("src.core.kubernetes_client.check_health", return_value=True)
    @patch("src.core.kubernetes_client.connect")
    @patch("src.api.containers.get_connection_descriptor")
    def test_connected(self, mock_descriptor, mock_connect, mock_check):
        response = TestClient(app).get("/health")

        assert response.json()["kubernetes"] == "connected"
        assert response.json()["status"] == "healthy"

    @patch("src.core.kubernetes_client.connect")
    @patch("src.api.containers.get_connection_descriptor")
    def test_unreachable(self, mock_descriptor, mock_connect):
        mock_connect.side_effect = ClusterUnreachable("Failed to connect to cluster prod")

        response = TestClient(app).get("/health")

        assert response.json()["status"] == "degraded"
        assert response.json()["error"] == "ClusterUnreachable"


class TestConnectionSettings:
    """Descriptor resolution from settings"""

    def test_empty_namespace_setting_uses_default_namespace(self):
        with patch.object(settings, "K8S_CREDENTIAL_KIND", "bearer-token"), \
                patch.object(settings, "K8S_API_SERVER", "https://cluster.example.com:6443"), \
                patch.object(settings, "K8S_TOKEN", "secret-token"), \
                patch.object(settings, "K8S_NAMESPACE", ""):
            descriptor = containers.get_connection_descriptor()

        assert descriptor.target_namespace is None
        assert descriptor.effective_namespace == "default"

    def test_missing_token_is_not_configured(self):
        with patch.object(settings, "K8S_CREDENTIAL_KIND", "bearer-token"), \
                patch.object(settings, "K8S_TOKEN", None):
            with pytest.raises(ClientNotInitialized):
                containers.get_connection_descriptor()
