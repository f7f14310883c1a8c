"""
Cloud Abstraction Layer Protocol Definitions.

This module defines the protocol (structural typing) the reconciler uses to talk to
the cloud provider. Any implementation matching the interface can be injected: the
Azure CLI adapter in production, recording fakes in tests.

``exists`` returns True or False; a query that could not be answered raises
AKSBootProviderError and is never reported as "absent".
"""

from typing import Any, Protocol, runtime_checkable

from aksboot.types import ResourceDescriptor


@runtime_checkable
class CloudProviderProtocol(Protocol):
    """
    Protocol for cloud resource management.

    Implementations:
    - cal/adapters/azure_cli.py - AzureCLIProvider (``az`` command line)
    """

    def login(self) -> None:
        """
        Authenticate and select the target subscription.

        Raises
        ------
            AKSBootProviderError: If authentication fails

        """
        ...

    def exists(self, descriptor: ResourceDescriptor) -> bool:
        """
        Check whether the described resource exists.

        Returns
        -------
            True if found, False if the provider reports it as not found

        Raises
        ------
            AKSBootProviderError: If the query itself failed

        """
        ...

    def show(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        """
        Read the attributes of an existing resource.

        Returns
        -------
            Provider attributes (id, endpoints, identity, ...)

        """
        ...

    def create(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        """
        Create the resource with the descriptor's desired properties.

        Blocks until the provider reports the resource ready.

        Returns
        -------
            Attributes of the created resource

        """
        ...

    def update(self, descriptor: ResourceDescriptor, properties: dict[str, Any]) -> dict[str, Any]:
        """
        Update mutable properties of an existing resource.

        Args:
        ----
            descriptor: Resource to update
            properties: Properties to change (e.g. ``{"admin-password": "..."}``)

        Returns:
        -------
            Attributes of the updated resource

        """
        ...

    def delete(self, descriptor: ResourceDescriptor) -> None:
        """Delete the resource without prompting."""
        ...

    def get_cluster_credentials(self, descriptor: ResourceDescriptor) -> None:
        """Merge the cluster's credentials into the local kube context (overwriting stale entries)."""
        ...

    def get_registry_credentials(self, descriptor: ResourceDescriptor) -> tuple[str, str]:
        """
        Get the registry admin credentials.

        Returns
        -------
            (username, password) with the first admin password

        """
        ...

    def get_storage_account_key(self, descriptor: ResourceDescriptor, key_name: str = "key1") -> str:
        """Get a storage account access key by name."""
        ...

    def ensure_role_assignment(self, assignee: str, role: str, scope: str) -> bool:
        """
        Grant ``role`` on ``scope`` to ``assignee`` unless already granted.

        Returns
        -------
            True if a new assignment was created, False if it already existed

        """
        ...
