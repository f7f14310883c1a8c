"""Tests for the resource reconciler."""

import pytest
from pydantic import SecretStr

from aksboot.any.exceptions import AKSBootProviderError
from aksboot.config.loaders import load_environment_config
from aksboot.provision.discovered import DiscoveredValues
from aksboot.provision.reconciler import ResourceReconciler, generate_password
from aksboot.types import ResourceDescriptor, ResourceKind

FRESH_INSTALL_CREATES = [
    ResourceKind.RESOURCE_GROUP,
    ResourceKind.CLUSTER,
    ResourceKind.NODE_POOL,
    ResourceKind.REGISTRY,
    ResourceKind.DATABASE_SERVER,
    ResourceKind.STORAGE_ACCOUNT,
]


@pytest.fixture
def reconciler(config, fake_provider, fake_kube, fake_charts):
    return ResourceReconciler(config, fake_provider, fake_kube, fake_charts, password_factory=lambda: SecretStr("pw"))


@pytest.fixture
def dns_config(write_env_file, env_values):
    return load_environment_config(
        write_env_file(
            {**env_values, "SETUP_MANAGED_DNS": "true", "AZURE_CLIENT_ID": "client", "AZURE_CLIENT_SECRET": "secret"}
        )
    )


class TestGeneratePassword:
    """Tests for generate_password."""

    def test_character_classes(self):
        """Test generated passwords mix upper, lower and digits."""
        password = generate_password().get_secret_value()

        assert len(password) == 24
        assert any(c.isupper() for c in password)
        assert any(c.islower() for c in password)
        assert any(c.isdigit() for c in password)


class TestReconcile:
    """Tests for the single-resource check-then-act."""

    def test_creates_absent_resource(self, reconciler, fake_provider):
        """Test an absent resource is created and flagged."""
        descriptor = ResourceDescriptor(ResourceKind.RESOURCE_GROUP, "gitpod-rg")

        instance = reconciler.reconcile(descriptor)

        assert instance.created and not instance.updated
        assert instance.id == fake_provider.resources[(ResourceKind.RESOURCE_GROUP, "gitpod-rg")]["id"]

    def test_reuses_existing_resource(self, reconciler, fake_provider, trace):
        """Test an existing resource is only read."""
        fake_provider.seed(ResourceKind.RESOURCE_GROUP, "gitpod-rg")

        instance = reconciler.reconcile(ResourceDescriptor(ResourceKind.RESOURCE_GROUP, "gitpod-rg"))

        assert not instance.created and not instance.updated
        assert trace.calls("az", "create") == []

    def test_updates_existing_resource(self, reconciler, fake_provider, trace):
        """Test mutable fields are applied to an existing resource."""
        fake_provider.seed(ResourceKind.DATABASE_SERVER, "gitpod-mysql")

        instance = reconciler.reconcile(
            ResourceDescriptor(ResourceKind.DATABASE_SERVER, "gitpod-mysql", scope="gitpod-rg"),
            update={"admin-password": SecretStr("new")},
        )

        assert instance.updated
        assert len(trace.calls("az", "update")) == 1

    def test_query_failure_propagates(self, reconciler, fake_provider):
        """Test a failed existence query aborts instead of creating."""
        fake_provider.fail_on.add(("exists", ResourceKind.REGISTRY))

        with pytest.raises(AKSBootProviderError):
            reconciler.reconcile(reconciler.registry_descriptor())
        assert (ResourceKind.REGISTRY, "gitpodregistry") not in fake_provider.resources


class TestReconcileAll:
    """Tests for the full reconciliation run."""

    def test_fresh_install_report(self, reconciler, trace):
        """Test a fresh install makes six create calls, no updates, and reports exactly those."""
        discovered = reconciler.reconcile_all()

        assert [c[2] for c in trace.calls("az", "create")] == FRESH_INSTALL_CREATES
        assert trace.calls("az", "update") == []
        assert discovered.created == FRESH_INSTALL_CREATES
        assert discovered.updated == []

    def test_new_server_brings_database_and_rule(self, reconciler):
        """Test the server create call also asks for the database and the Azure services rule."""
        properties = reconciler.database_server_descriptor().properties

        assert properties["database-name"] == "gitpod"
        assert properties["public-access"] == "0.0.0.0"
        rule = reconciler.firewall_rule_descriptor().properties
        assert rule == {"start-ip-address": "0.0.0.0", "end-ip-address": "0.0.0.0"}

    def test_discovered_values(self, reconciler):
        """Test later steps get the identifiers and credentials they need."""
        discovered = reconciler.reconcile_all()

        assert discovered.cluster_connected
        assert discovered.kubelet_object_id == "kubelet-object-id"
        assert discovered.kubelet_client_id == "kubelet-client-id"
        assert discovered.registry_server == "gitpodregistry.azurecr.io"
        assert discovered.registry_password.get_secret_value() == "registry-password"
        assert discovered.database_host == "gitpod-mysql.mysql.database.azure.com"
        assert discovered.database_password.get_secret_value() == "pw"
        assert discovered.storage_account_name == "gitpod"
        assert discovered.storage_account_key.get_secret_value() == "storage-account-key"

    def test_second_run_creates_nothing(self, reconciler):
        """Test re-running converges: same IDs, no creates, only the password rotation."""
        first = reconciler.reconcile_all()
        second = reconciler.reconcile_all()

        assert second.created == []
        assert second.updated == [ResourceKind.DATABASE_SERVER]
        assert second.resource_ids() == first.resource_ids()

    def test_existing_server_reports_children(self, reconciler, fake_provider):
        """Test database and firewall rule are reported when created for an existing server."""
        fake_provider.seed(ResourceKind.DATABASE_SERVER, "gitpod-mysql")

        discovered = reconciler.reconcile_all()

        assert ResourceKind.DATABASE in discovered.created
        assert ResourceKind.FIREWALL_RULE in discovered.created
        assert ResourceKind.DATABASE_SERVER in discovered.updated

    def test_credentials_before_cluster_writes(self, reconciler, trace):
        """Test cluster credentials are fetched before any helm or kubectl write."""
        reconciler.reconcile_all()

        credentials = trace.index_of("az", "get_cluster_credentials")
        assert credentials < trace.index_of("helm", "upgrade_install")
        assert credentials < trace.index_of("kubectl", "wait_for_deployment")

    def test_cert_manager_awaited(self, reconciler, fake_charts, trace):
        """Test cert-manager is installed with CRDs and awaited."""
        reconciler.reconcile_all()

        assert fake_charts.values["cert-manager"]["installCRDs"] is True
        assert ("kubectl", "wait_for_deployment", "cert-manager", "cert-manager") in trace

    def test_dns_skipped_by_default(self, reconciler, trace, fake_charts):
        """Test no DNS zone or external-dns without SETUP_MANAGED_DNS."""
        discovered = reconciler.reconcile_all()

        assert ResourceKind.DNS_ZONE not in discovered.instances
        assert "external-dns" not in fake_charts.values

    def test_managed_dns(self, dns_config, fake_provider, fake_kube, fake_charts, trace):
        """Test the DNS zone, the role grant and external-dns are set up."""
        reconciler = ResourceReconciler(dns_config, fake_provider, fake_kube, fake_charts)

        discovered = reconciler.reconcile_all()

        assert ResourceKind.DNS_ZONE in discovered.created
        assert discovered.dns_zone_id is not None
        assert ("az", "ensure_role_assignment", "DNS Zone Contributor") in trace
        values = fake_charts.values["external-dns"]
        assert values["azure"]["aadClientSecret"] == "secret"
        assert values["domainFilters"] == ["gitpod.example.com"]

    def test_fail_fast(self, reconciler, fake_provider, trace):
        """Test the first failure stops the run with nothing after it."""
        fake_provider.fail_on.add(("create", ResourceKind.REGISTRY))

        with pytest.raises(AKSBootProviderError):
            reconciler.reconcile_all()

        assert trace.calls("az", "create")[-1][2] == ResourceKind.REGISTRY
        assert (ResourceKind.STORAGE_ACCOUNT, "gitpod") not in fake_provider.resources

    def test_cluster_without_kubelet_identity(self, reconciler, fake_provider):
        """Test a cluster lacking a managed identity is rejected."""
        fake_provider.resources[(ResourceKind.CLUSTER, "gitpod")] = {"id": "/aks/gitpod"}

        with pytest.raises(AKSBootProviderError, match="kubelet managed identity"):
            reconciler.ensure_cluster(DiscoveredValues())


class TestConnect:
    """Tests for the read-only connect."""

    def test_connect_existing_cluster(self, reconciler, fake_provider, trace):
        """Test credentials are fetched and nothing is created."""
        fake_provider.seed(ResourceKind.CLUSTER, "gitpod")

        discovered = reconciler.connect()

        assert discovered.cluster_connected
        assert discovered.created == []
        assert trace.calls("az", "create") == []
        assert ("az", "get_cluster_credentials", "gitpod") in trace

    def test_connect_missing_cluster(self, reconciler, trace):
        """Test a missing cluster leaves cluster_connected False."""
        discovered = reconciler.connect()

        assert not discovered.cluster_connected
        assert trace.calls("az", "get_cluster_credentials") == []
