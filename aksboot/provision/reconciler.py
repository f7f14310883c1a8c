"""
Resource reconciliation.

The reconciler converges Azure to the desired state with check-then-create: each
resource is queried by name, created only when absent, and updated only where a
mutable field must change (the database admin password). Steps run in dependency
order and every later step reads what earlier ones recorded in DiscoveredValues.

Failure semantics: the first failure aborts the run and nothing is rolled back.
Re-running resumes from where it stopped because every step is idempotent.
"""

import secrets
import string
from typing import Any

from pydantic import SecretStr

from aksboot.any.exceptions import AKSBootProviderError
from aksboot.any.log import get_logger
from aksboot.cal.protocols import CloudProviderProtocol
from aksboot.cluster.protocols import ChartInstaller, KubernetesClient
from aksboot.config.schemas import EnvironmentConfig
from aksboot.provision.discovered import DiscoveredValues
from aksboot.types import ResourceDescriptor, ResourceInstance, ResourceKind

LOGGER = get_logger("aksboot.provision.reconciler")

CHART_REPOSITORIES = {
    "bitnami": "https://charts.bitnami.com/bitnami",
    "jetstack": "https://charts.jetstack.io",
}

# Shared by the services and workspaces node pools
NODE_POOL_SHAPE: dict[str, Any] = {
    "enable-cluster-autoscaler": True,
    "max-count": 50,
    "max-pods": 110,
    "min-count": 3,
    "node-osdisk-size": 100,
}

CERT_MANAGER_NAMESPACE = "cert-manager"
CERT_MANAGER_TIMEOUT = 300

DATABASE_NAME = "gitpod"
DATABASE_USER = "gitpod"
DATABASE_FIREWALL_RULE = "AllowAzureServices"
# 0.0.0.0-0.0.0.0 means "any Azure service", not "any address"
AZURE_SERVICES_RANGE = "0.0.0.0"

DNS_ZONE_ROLE = "DNS Zone Contributor"
STORAGE_ROLE = "Storage Blob Data Contributor"


def generate_password(length: int = 24) -> SecretStr:
    """Generate a database password with upper, lower and digit characters."""
    alphabet = string.ascii_letters + string.digits
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if (
            any(c.islower() for c in password)
            and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)
        ):
            return SecretStr(password)


class ResourceReconciler:
    """
    Creates or reuses every cloud resource a deployment needs.

    Example:
    -------
        ```python
        reconciler = ResourceReconciler(config, provider, kubernetes, charts)
        discovered = reconciler.reconcile_all()
        print(discovered.created)  # [ResourceKind.RESOURCE_GROUP, ...]
        ```

    """

    def __init__(
        self,
        config: EnvironmentConfig,
        provider: CloudProviderProtocol,
        kubernetes: KubernetesClient,
        charts: ChartInstaller,
        password_factory=generate_password,
    ):
        self._config = config
        self._provider = provider
        self._kubernetes = kubernetes
        self._charts = charts
        self._password_factory = password_factory

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    def resource_group_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            ResourceKind.RESOURCE_GROUP,
            self._config.resource_group,
            properties={"location": self._config.location},
        )

    def cluster_descriptor(self) -> ResourceDescriptor:
        cfg = self._config
        return ResourceDescriptor(
            ResourceKind.CLUSTER,
            cfg.cluster_name,
            scope=cfg.resource_group,
            properties={
                **NODE_POOL_SHAPE,
                "enable-managed-identity": True,
                "location": cfg.location,
                "kubernetes-version": cfg.aks_version,
                "node-vm-size": cfg.k8s_node_vm_size,
                "nodepool-labels": "gitpod.io/workload_services=true",
                "nodepool-name": cfg.services_pool,
                "no-ssh-key": True,
                "vm-set-type": "VirtualMachineScaleSets",
            },
        )

    def node_pool_descriptor(self) -> ResourceDescriptor:
        cfg = self._config
        return ResourceDescriptor(
            ResourceKind.NODE_POOL,
            cfg.workspaces_pool,
            scope=cfg.resource_group,
            parent=cfg.cluster_name,
            properties={
                **NODE_POOL_SHAPE,
                "kubernetes-version": cfg.aks_version,
                "labels": "gitpod.io/workload_workspaces=true",
                "node-vm-size": cfg.k8s_node_vm_size,
            },
        )

    def registry_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            ResourceKind.REGISTRY,
            self._config.registry_name,
            scope=self._config.resource_group,
            properties={"admin-enabled": "true", "location": self._config.location, "sku": "Premium"},
        )

    def dns_zone_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(ResourceKind.DNS_ZONE, self._config.domain, scope=self._config.resource_group)

    def database_server_descriptor(self, password: SecretStr | None = None) -> ResourceDescriptor:
        cfg = self._config
        return ResourceDescriptor(
            ResourceKind.DATABASE_SERVER,
            cfg.mysql_instance,
            scope=cfg.resource_group,
            properties={
                "admin-user": DATABASE_USER,
                "admin-password": password,
                # The database and the Azure services firewall rule are created together with the server
                "database-name": DATABASE_NAME,
                "location": cfg.location,
                "public-access": AZURE_SERVICES_RANGE,
                "sku-name": "Standard_D2ds_v4",
                "storage-auto-grow": "Enabled",
                "storage-size": 20,
                "tier": "GeneralPurpose",
                "version": "5.7",
                "yes": True,
            },
        )

    def database_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            ResourceKind.DATABASE,
            DATABASE_NAME,
            scope=self._config.resource_group,
            parent=self._config.mysql_instance,
        )

    def firewall_rule_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            ResourceKind.FIREWALL_RULE,
            DATABASE_FIREWALL_RULE,
            scope=self._config.resource_group,
            parent=self._config.mysql_instance,
            properties={"start-ip-address": AZURE_SERVICES_RANGE, "end-ip-address": AZURE_SERVICES_RANGE},
        )

    def storage_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            ResourceKind.STORAGE_ACCOUNT,
            self._config.storage_account,
            scope=self._config.resource_group,
            properties={
                "access-tier": "Hot",
                "kind": "StorageV2",
                "location": self._config.location,
                "sku": "Standard_LRS",
            },
        )

    # ------------------------------------------------------------------
    # Core check-then-act
    # ------------------------------------------------------------------

    def reconcile(self, descriptor: ResourceDescriptor, update: dict[str, Any] | None = None) -> ResourceInstance:
        """
        Converge one resource.

        Args:
        ----
            descriptor: Resource to converge
            update: Mutable properties to apply when the resource already exists

        Returns:
        -------
            Instance with the provider's attributes and whether it was created/updated

        Raises:
        ------
            AKSBootProviderError: If the existence query or any mutation fails

        """
        if self._provider.exists(descriptor):
            if update:
                LOGGER.info(f"{descriptor.kind.value.capitalize()} {descriptor.name} exists - updating...")
                attributes = self._provider.update(descriptor, update)
                return ResourceInstance(descriptor, attributes or self._provider.show(descriptor), updated=True)

            LOGGER.info(f"{descriptor.kind.value.capitalize()} {descriptor.name} exists...")
            return ResourceInstance(descriptor, self._provider.show(descriptor))

        LOGGER.info(f"Creating {descriptor.kind.value} {descriptor.name}...")
        attributes = self._provider.create(descriptor)
        return ResourceInstance(descriptor, attributes or self._provider.show(descriptor), created=True)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def authenticate(self) -> None:
        self._provider.login()

    def prepare_charts(self) -> None:
        LOGGER.info("Updating helm repositories...")
        for name, url in CHART_REPOSITORIES.items():
            self._charts.add_repo(name, url)
        self._charts.update_repos()

    def ensure_resource_group(self, discovered: DiscoveredValues) -> ResourceInstance:
        instance = self.reconcile(self.resource_group_descriptor())
        discovered.record(instance)
        return instance

    def ensure_cluster(self, discovered: DiscoveredValues) -> ResourceInstance:
        instance = self.reconcile(self.cluster_descriptor())
        discovered.record(instance)
        self._record_kubelet_identity(instance, discovered)
        return instance

    def ensure_node_pool(self, discovered: DiscoveredValues) -> ResourceInstance:
        instance = self.reconcile(self.node_pool_descriptor())
        discovered.record(instance)
        return instance

    def connect_cluster(self, discovered: DiscoveredValues) -> None:
        """Fetch cluster credentials into the local kube context."""
        LOGGER.info("Get Kubernetes credentials...")
        self._provider.get_cluster_credentials(self.cluster_descriptor())
        discovered.cluster_connected = True

    def install_cert_manager(self) -> None:
        LOGGER.info("Installing cert-manager...")
        self._charts.upgrade_install(
            "cert-manager",
            "jetstack/cert-manager",
            CERT_MANAGER_NAMESPACE,
            {
                "installCRDs": True,
                "extraArgs": [
                    "--dns01-recursive-nameservers-only=true",
                    "--dns01-recursive-nameservers=8.8.8.8:53,1.1.1.1:53",
                ],
            },
        )
        self._kubernetes.wait_for_deployment("cert-manager", CERT_MANAGER_NAMESPACE, timeout=CERT_MANAGER_TIMEOUT)

    def ensure_container_registry(self, discovered: DiscoveredValues) -> ResourceInstance:
        descriptor = self.registry_descriptor()
        instance = self.reconcile(descriptor)
        discovered.record(instance)

        username, password = self._provider.get_registry_credentials(descriptor)
        discovered.registry_server = instance.get("loginServer") or f"{descriptor.name}.azurecr.io"
        discovered.registry_username = username
        discovered.registry_password = SecretStr(password)
        return instance

    def ensure_managed_dns(self, discovered: DiscoveredValues) -> ResourceInstance | None:
        if not self._config.setup_managed_dns:
            LOGGER.debug("Managed DNS disabled, skipping DNS zone")
            return None

        LOGGER.info("Installing managed DNS...")
        instance = self.reconcile(self.dns_zone_descriptor())
        discovered.record(instance)
        discovered.dns_zone_id = instance.id

        LOGGER.info("Allow Kubernetes managed identity to make DNS changes...")
        self._provider.ensure_role_assignment(
            discovered.require("kubelet_object_id"), DNS_ZONE_ROLE, discovered.require("dns_zone_id")
        )

        cfg = self._config
        self._charts.upgrade_install(
            "external-dns",
            "bitnami/external-dns",
            "external-dns",
            {
                "provider": "azure",
                "azure": {
                    "resourceGroup": cfg.resource_group,
                    "aadClientId": cfg.azure_client_id,
                    "aadClientSecret": cfg.azure_client_secret.get_secret_value(),  # type: ignore[union-attr]
                    "subscriptionId": cfg.azure_subscription_id,
                    "tenantId": cfg.azure_tenant_id,
                },
                "domainFilters": [cfg.domain],
                "logFormat": "json",
            },
        )
        return instance

    def ensure_database(self, discovered: DiscoveredValues) -> ResourceInstance:
        """
        Converge the MySQL server, its database and the Azure services firewall rule.

        A new server is created with the database and the firewall rule in the same call,
        so the checks that follow only find them. An existing server gets a freshly issued
        admin password; the cluster secret is rewritten with it later in the same run.
        """
        password = self._password_factory()
        server = self.reconcile(
            self.database_server_descriptor(password),
            update={"admin-password": password},
        )
        discovered.record(server)

        discovered.record(self.reconcile(self.database_descriptor()))

        LOGGER.info("Allow Azure resources to access MySQL database...")
        discovered.record(self.reconcile(self.firewall_rule_descriptor()))

        discovered.database_host = (
            server.get("fullyQualifiedDomainName") or f"{server.name}.mysql.database.azure.com"
        )
        discovered.database_username = DATABASE_USER
        discovered.database_password = password
        return server

    def ensure_storage(self, discovered: DiscoveredValues) -> ResourceInstance:
        descriptor = self.storage_descriptor()
        instance = self.reconcile(descriptor)
        discovered.record(instance)
        discovered.storage_account_name = descriptor.name
        discovered.storage_account_id = instance.id

        LOGGER.info("Allow Kubernetes managed identity to access the storage account...")
        self._provider.ensure_role_assignment(
            discovered.require("kubelet_object_id"), STORAGE_ROLE, discovered.require("storage_account_id")
        )

        discovered.storage_account_key = SecretStr(self._provider.get_storage_account_key(descriptor))
        return instance

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def reconcile_all(self, discovered: DiscoveredValues | None = None) -> DiscoveredValues:
        """
        Run every step in dependency order.

        Returns
        -------
            DiscoveredValues with identifiers, credentials and the created/updated report

        """
        discovered = discovered or DiscoveredValues()

        self.authenticate()
        self.prepare_charts()

        self.ensure_resource_group(discovered)
        self.ensure_cluster(discovered)
        self.ensure_node_pool(discovered)
        self.connect_cluster(discovered)

        self.install_cert_manager()
        self.ensure_container_registry(discovered)
        self.ensure_managed_dns(discovered)
        self.ensure_database(discovered)
        self.ensure_storage(discovered)

        LOGGER.info(
            "Reconciliation complete",
            created=[kind.value for kind in discovered.created],
            updated=[kind.value for kind in discovered.updated],
        )
        return discovered

    def connect(self, discovered: DiscoveredValues | None = None) -> DiscoveredValues:
        """
        Read-only: log in and point the kube context at the cluster, creating nothing.

        ``discovered.cluster_connected`` is False when the cluster does not exist.
        """
        discovered = discovered or DiscoveredValues()
        self.authenticate()

        descriptor = self.cluster_descriptor()
        if not self._provider.exists(descriptor):
            LOGGER.warning(f"Kubernetes cluster {descriptor.name} not found in {descriptor.scope}")
            return discovered

        instance = ResourceInstance(descriptor, self._provider.show(descriptor))
        discovered.record(instance, report=False)
        self.connect_cluster(discovered)
        return discovered

    def _record_kubelet_identity(self, cluster: ResourceInstance, discovered: DiscoveredValues) -> None:
        identity = cluster.get("identityProfile.kubeletidentity") or {}
        if not identity.get("objectId"):
            raise AKSBootProviderError(
                f"Cluster {cluster.name} reports no kubelet managed identity. Was it created with managed identity?"
            )
        discovered.kubelet_object_id = identity["objectId"]
        discovered.kubelet_client_id = identity.get("clientId")
