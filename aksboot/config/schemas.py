"""
Configuration schema for an aksboot deployment.

The Environment Configuration is read from a flat ``.env`` file (KEY=value) and the
process environment, validated all-or-nothing, and frozen for the rest of the run.
"""

import re
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_core import PydanticCustomError
from pydantic_settings import BaseSettings, SettingsConfigDict

# Required keys, in the order they are reported when missing
REQUIRED_KEYS = (
    "azure_subscription_id",
    "azure_tenant_id",
    "resource_group",
    "cluster_name",
    "domain",
    "location",
    "registry_name",
)

STORAGE_ACCOUNT_PATTERN = re.compile(r"[a-z0-9]{3,24}")


class EnvironmentConfig(BaseSettings):
    """
    Environment Configuration (``.env``).

    Example:
    -------
        AZURE_SUBSCRIPTION_ID=00000000-0000-0000-0000-000000000000
        AZURE_TENANT_ID=11111111-1111-1111-1111-111111111111
        RESOURCE_GROUP=gitpod
        CLUSTER_NAME=gitpod
        DOMAIN=gitpod.example.com
        LOCATION=northeurope
        REGISTRY_NAME=gitpodregistry
        SETUP_MANAGED_DNS=true
        AZURE_CLIENT_ID=...
        AZURE_CLIENT_SECRET=...

    """

    model_config = SettingsConfigDict(
        frozen=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required
    azure_subscription_id: Annotated[str, Field(description="Azure subscription ID")]
    azure_tenant_id: Annotated[str, Field(description="Azure AD tenant ID")]
    resource_group: Annotated[str, Field(description="Resource group holding every resource")]
    cluster_name: Annotated[str, Field(description="AKS cluster name")]
    domain: Annotated[str, Field(description="Domain the platform is served from")]
    location: Annotated[str, Field(description="Azure region (e.g. 'northeurope')")]
    registry_name: Annotated[str, Field(description="Azure Container Registry name")]

    # Service principal (optional unless managed DNS is enabled)
    azure_client_id: str | None = None
    azure_client_secret: SecretStr | None = None

    # Cluster shape
    k8s_node_vm_size: str = "Standard_DS3_v2"
    aks_version: str | None = Field(default=None, description="Kubernetes version; None uses the provider default")
    services_pool: str = "services"
    workspaces_pool: str = "workspaces"

    # Feature flags
    setup_managed_dns: bool = False
    image_pull_secret_file: Path | None = None

    # Derived names (overridable)
    storage_account_name: str | None = None
    mysql_instance_name: str | None = None

    # Manifest rendering
    installer_config_file: Path | None = None
    installer_binary: str = "gitpod-installer"
    work_dir: Path = Field(default_factory=Path.cwd)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    @field_validator(*REQUIRED_KEYS, mode="before")
    @classmethod
    def reject_blank(cls, value: object) -> object:
        """Treat blank values (``DOMAIN=``) the same as absent ones."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise PydanticCustomError("missing", "Field required")
        return value.strip() if isinstance(value, str) else value

    @field_validator(
        "azure_client_id",
        "azure_client_secret",
        "aks_version",
        "image_pull_secret_file",
        "storage_account_name",
        "mysql_instance_name",
        "installer_config_file",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: object) -> object:
        """``AKS_VERSION=`` means unset, not an empty string."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def validate_managed_dns_credentials(self) -> "EnvironmentConfig":
        """external-dns authenticates with the service principal, so it must be present."""
        if self.setup_managed_dns and not self.has_service_principal:
            raise ValueError("SETUP_MANAGED_DNS=true requires AZURE_CLIENT_ID and AZURE_CLIENT_SECRET")
        return self

    @model_validator(mode="after")
    def validate_storage_account(self) -> "EnvironmentConfig":
        """Reject storage account names Azure would refuse halfway through a run."""
        name = self.storage_account
        if STORAGE_ACCOUNT_PATTERN.fullmatch(name):
            return self
        if self.storage_account_name:
            raise ValueError(f"STORAGE_ACCOUNT_NAME '{name}' must be 3-24 lowercase letters and digits")
        raise ValueError(
            f"CLUSTER_NAME '{self.cluster_name}' yields the storage account name '{name}', "
            "which is shorter than 3 characters. Set STORAGE_ACCOUNT_NAME."
        )

    @property
    def has_service_principal(self) -> bool:
        return bool(self.azure_client_id and self.azure_client_secret and self.azure_client_secret.get_secret_value())

    @property
    def storage_account(self) -> str:
        """Storage account name: 3-24 lowercase alphanumerics, derived from the cluster name by default."""
        if self.storage_account_name:
            return self.storage_account_name
        return re.sub(r"[^a-z0-9]", "", self.cluster_name.lower())[:24]

    @property
    def mysql_instance(self) -> str:
        return self.mysql_instance_name or f"{self.cluster_name}-mysql"

    @property
    def portal_url(self) -> str:
        """Azure portal overview page of the resource group."""
        return (
            f"https://portal.azure.com/#resource/subscriptions/{self.azure_subscription_id}"
            f"/resourceGroups/{self.resource_group}/overview"
        )
