"""
Configuration settings for the Container Gateway
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Service configuration
    SERVICE_NAME: str = "container-gateway"
    PORT: int = Field(default=8004)
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Gateway behaviour
    K8S_DEFAULT_NAMESPACE: str = Field(default="default")
    # Service account impersonated inside a descriptor's target namespace
    K8S_IMPERSONATE_SERVICE_ACCOUNT: str = Field(default="default")
    K8S_IMPERSONATION_ENABLED: bool = Field(default=True)
    MANAGED_BY_LABEL: str = Field(default="container-platform")
    POD_NAME_SUFFIX: str = Field(default="-pod")

    # Readiness polling
    READINESS_POLL_INTERVAL: float = Field(default=2.0)  # seconds
    READINESS_DEFAULT_TIMEOUT: float = Field(default=300.0)  # seconds

    LOG_TAIL_LINES: int = Field(default=100)

    # Default cluster used by the HTTP adapter.
    # K8S_KUBECONFIG holds the document content, not a path.
    K8S_CLUSTER_NAME: str = Field(default="default-cluster")
    K8S_API_SERVER: Optional[str] = Field(default=None)
    K8S_CREDENTIAL_KIND: str = Field(default="bearer-token")
    K8S_TOKEN: Optional[str] = Field(default=None)
    K8S_KUBECONFIG: Optional[str] = Field(default=None)
    K8S_CA_CERT_DATA: Optional[str] = Field(default=None)
    K8S_VERIFY_TLS: bool = Field(default=True)
    K8S_NAMESPACE: Optional[str] = Field(default=None)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "allow"
    }


# Create settings instance
settings = Settings()
