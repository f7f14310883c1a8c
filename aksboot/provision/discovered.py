"""Values discovered while reconciling, handed from the reconciler to later steps."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import SecretStr

from aksboot.any.exceptions import AKSBootError
from aksboot.types import ResourceInstance, ResourceKind


@dataclass
class DiscoveredValues:
    """
    Accumulator for identifiers, endpoints and credentials produced by reconciliation.

    Single writer (the reconciler), appended to as steps complete. Credentials are held
    as SecretStr so they never show up in reprs or log lines.
    """

    instances: dict[ResourceKind, ResourceInstance] = field(default_factory=dict)
    created: list[ResourceKind] = field(default_factory=list)
    updated: list[ResourceKind] = field(default_factory=list)

    cluster_connected: bool = False
    kubelet_object_id: str | None = None
    kubelet_client_id: str | None = None

    registry_server: str | None = None
    registry_username: str | None = None
    registry_password: SecretStr | None = None

    dns_zone_id: str | None = None

    database_host: str | None = None
    database_port: int = 3306
    database_username: str | None = None
    database_password: SecretStr | None = None

    storage_account_name: str | None = None
    storage_account_id: str | None = None
    storage_account_key: SecretStr | None = None

    def record(self, instance: ResourceInstance, report: bool = True) -> None:
        """
        Store a reconciled instance and add it to the run report.

        Args:
        ----
            instance: Reconciled resource
            report: If False, the instance is stored but not listed as created/updated
                    (children provisioned by their parent's create call)

        """
        kind = instance.descriptor.kind
        self.instances[kind] = instance
        if not report:
            return
        if instance.created:
            self.created.append(kind)
        if instance.updated:
            self.updated.append(kind)

    def require(self, name: str) -> Any:
        """
        Get a discovered value that a later step depends on.

        Raises
        ------
            AKSBootError: If the value has not been discovered yet

        """
        value = getattr(self, name)
        if value is None:
            raise AKSBootError(f"Value '{name}' has not been discovered yet. Did reconciliation run?")
        return value

    def resource_ids(self) -> dict[ResourceKind, str | None]:
        """Provider IDs of every reconciled resource, keyed by kind."""
        return {kind: instance.id for kind, instance in self.instances.items()}
