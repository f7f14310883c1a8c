"""Resource type definitions shared by the provider adapters and the reconciler."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ResourceKind(Enum):
    """
    Kinds of cloud resources managed by the reconciler.

    The value is the human-readable label used in log lines and reports.
    """

    RESOURCE_GROUP = "resource group"
    CLUSTER = "kubernetes cluster"
    NODE_POOL = "node pool"
    REGISTRY = "container registry"
    DNS_ZONE = "dns zone"
    DATABASE_SERVER = "mysql server"
    DATABASE = "mysql database"
    FIREWALL_RULE = "mysql firewall rule"
    STORAGE_ACCOUNT = "storage account"


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Identifies one external resource and its desired properties.

    Attributes
    ----------
        kind: Resource kind
        name: Resource name
        scope: Resource group holding the resource (None for the group itself)
        parent: Owning resource name (cluster for a node pool, server for a database/firewall rule)
        properties: Desired creation properties, keyed by provider option name

    """

    kind: ResourceKind
    name: str
    scope: str | None = None
    parent: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __str__(self) -> str:
        location = f"{self.scope}/" if self.scope else ""
        parent = f"{self.parent}/" if self.parent else ""
        return f"{self.kind.value} {location}{parent}{self.name}"


@dataclass
class ResourceInstance:
    """A reconciled resource with the attributes reported by the provider."""

    descriptor: ResourceDescriptor
    attributes: dict[str, Any] = field(default_factory=dict)
    created: bool = False
    updated: bool = False

    @property
    def id(self) -> str | None:
        """Provider-assigned resource ID, if reported."""
        return self.attributes.get("id")

    @property
    def name(self) -> str:
        return self.descriptor.name

    def get(self, path: str, default: Any = None) -> Any:
        """
        Read a nested attribute using a dotted path.

        Example:
        -------
            >>> instance.get("identityProfile.kubeletidentity.objectId")

        """
        current: Any = self.attributes
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current
