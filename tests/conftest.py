"""Pytest configuration and fixtures for aksboot tests.

The external tools (az, kubectl, helm, gitpod-installer) are replaced by recording
fakes that share one call trace, so tests can assert on what was called and in
which order.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml
from dependency_injector import providers

from aksboot.any.exceptions import AKSBootClusterError, AKSBootProviderError
from aksboot.config.loaders import load_environment_config
from aksboot.config.schemas import EnvironmentConfig
from aksboot.container import AKSBootIoCContainer, create_container
from aksboot.types import ResourceDescriptor, ResourceKind

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"

ENV_VALUES = {
    "AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID,
    "AZURE_TENANT_ID": "11111111-1111-1111-1111-111111111111",
    "RESOURCE_GROUP": "gitpod-rg",
    "CLUSTER_NAME": "gitpod",
    "DOMAIN": "gitpod.example.com",
    "LOCATION": "northeurope",
    "REGISTRY_NAME": "gitpodregistry",
}

# Every key EnvironmentConfig reads, cleared so the host environment cannot leak in
CONFIG_ENV_VARS = [name.upper() for name in EnvironmentConfig.model_fields]


class CallTrace(list):
    """Ordered (tool, method, *args) tuples recorded by the fakes."""

    def calls(self, tool: str, method: str | None = None) -> list[tuple]:
        return [c for c in self if c[0] == tool and (method is None or c[1] == method)]

    def index_of(self, tool: str, method: str) -> int:
        for i, call in enumerate(self):
            if call[0] == tool and call[1] == method:
                return i
        raise ValueError(f"{tool}.{method} was not called")


class FakeCloudProvider:
    """In-memory cloud provider keyed by (kind, name)."""

    def __init__(self, trace: CallTrace, resource_group: str = ENV_VALUES["RESOURCE_GROUP"]):
        self.trace = trace
        self.resource_group = resource_group
        self.resources: dict[tuple[ResourceKind, str], dict[str, Any]] = {}
        self.grants: set[tuple[str, str, str]] = set()
        self.fail_on: set[tuple[str, ResourceKind]] = set()

    def attributes(self, kind: ResourceKind, name: str) -> dict[str, Any]:
        attrs: dict[str, Any] = {
            "id": f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{self.resource_group}/{kind.name.lower()}/{name}",
            "name": name,
        }
        if kind is ResourceKind.CLUSTER:
            attrs["identityProfile"] = {
                "kubeletidentity": {"objectId": "kubelet-object-id", "clientId": "kubelet-client-id"}
            }
        elif kind is ResourceKind.REGISTRY:
            attrs["loginServer"] = f"{name}.azurecr.io"
        elif kind is ResourceKind.DATABASE_SERVER:
            attrs["fullyQualifiedDomainName"] = f"{name}.mysql.database.azure.com"
        return attrs

    def seed(self, kind: ResourceKind, name: str) -> None:
        """Make a resource exist without recording a call."""
        self.resources[(kind, name)] = self.attributes(kind, name)

    def _check(self, method: str, kind: ResourceKind) -> None:
        if (method, kind) in self.fail_on:
            raise AKSBootProviderError(f"{method} {kind.value} failed", returncode=1, stderr="boom")

    def login(self) -> None:
        self.trace.append(("az", "login"))

    def exists(self, descriptor: ResourceDescriptor) -> bool:
        self.trace.append(("az", "exists", descriptor.kind, descriptor.name))
        self._check("exists", descriptor.kind)
        return (descriptor.kind, descriptor.name) in self.resources

    def show(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        self.trace.append(("az", "show", descriptor.kind, descriptor.name))
        return dict(self.resources[(descriptor.kind, descriptor.name)])

    def create(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        self.trace.append(("az", "create", descriptor.kind, descriptor.name))
        self._check("create", descriptor.kind)
        self.seed(descriptor.kind, descriptor.name)
        # --database-name and --public-access 0.0.0.0 create the database and the
        # Azure services rule together with the server
        if descriptor.kind is ResourceKind.DATABASE_SERVER:
            if descriptor.properties.get("database-name"):
                self.seed(ResourceKind.DATABASE, descriptor.properties["database-name"])
            if descriptor.properties.get("public-access") == "0.0.0.0":
                self.seed(ResourceKind.FIREWALL_RULE, "AllowAzureServices")
        return dict(self.resources[(descriptor.kind, descriptor.name)])

    def update(self, descriptor: ResourceDescriptor, properties: dict[str, Any]) -> dict[str, Any]:
        self.trace.append(("az", "update", descriptor.kind, descriptor.name))
        return dict(self.resources[(descriptor.kind, descriptor.name)])

    def delete(self, descriptor: ResourceDescriptor) -> None:
        self.trace.append(("az", "delete", descriptor.kind, descriptor.name))
        self._check("delete", descriptor.kind)
        self.resources.pop((descriptor.kind, descriptor.name), None)

    def get_cluster_credentials(self, descriptor: ResourceDescriptor) -> None:
        self.trace.append(("az", "get_cluster_credentials", descriptor.name))

    def get_registry_credentials(self, descriptor: ResourceDescriptor) -> tuple[str, str]:
        self.trace.append(("az", "get_registry_credentials", descriptor.name))
        return descriptor.name, "registry-password"

    def get_storage_account_key(self, descriptor: ResourceDescriptor, key_name: str = "key1") -> str:
        self.trace.append(("az", "get_storage_account_key", descriptor.name))
        return "storage-account-key"

    def ensure_role_assignment(self, assignee: str, role: str, scope: str) -> bool:
        self.trace.append(("az", "ensure_role_assignment", role))
        if (assignee, role, scope) in self.grants:
            return False
        self.grants.add((assignee, role, scope))
        return True


class FakeKubernetes:
    """In-memory cluster keyed by (lowercase kind, name, namespace)."""

    def __init__(self, trace: CallTrace):
        self.trace = trace
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.fail_on: set[str] = set()

    def _check(self, method: str) -> None:
        if method in self.fail_on:
            raise AKSBootClusterError(f"kubectl {method} failed", returncode=1, stderr="boom")

    def _store(self, manifest: str) -> list[str]:
        names = []
        for doc in yaml.safe_load_all(manifest):
            if not doc:
                continue
            metadata = doc.get("metadata", {})
            key = (doc["kind"].lower(), metadata["name"], metadata.get("namespace", "default"))
            self.objects[key] = doc
            names.append(metadata["name"])
        return names

    def seed(self, kind: str, name: str, namespace: str = "default", **fields: Any) -> None:
        self.objects[(kind, name, namespace)] = {"kind": kind, "metadata": {"name": name}, **fields}

    def apply(self, manifest: str) -> None:
        self._check("apply")
        self.trace.append(("kubectl", "apply", tuple(self._store(manifest))))

    def apply_file(self, path: Path) -> None:
        self._check("apply_file")
        self.trace.append(("kubectl", "apply_file", tuple(self._store(Path(path).read_text()))))

    def exists(self, kind: str, name: str, namespace: str = "default") -> bool:
        self.trace.append(("kubectl", "exists", kind, name))
        return (kind.lower(), name, namespace) in self.objects

    def get_secret(self, name: str, namespace: str = "default") -> dict[str, str] | None:
        self.trace.append(("kubectl", "get_secret", name))
        secret = self.objects.get(("secret", name, namespace))
        if secret is None:
            return None
        return dict(secret.get("stringData") or {})

    def delete(self, kind: str, name: str, namespace: str = "default") -> None:
        self._check("delete")
        self.trace.append(("kubectl", "delete", kind, name))
        self.objects.pop((kind.lower(), name, namespace), None)

    def delete_by_label(self, kinds: list[str], selector: str, namespace: str = "default") -> None:
        self.trace.append(("kubectl", "delete_by_label", selector))
        self._check("delete_by_label")

    def rollout_restart(self, deployment: str, namespace: str = "default") -> None:
        self.trace.append(("kubectl", "rollout_restart", deployment))

    def wait_for_deployment(self, name: str, namespace: str, timeout: int = 300) -> None:
        self.trace.append(("kubectl", "wait_for_deployment", name, namespace))

    def patch_configmap(self, name: str, patch_file: Path, namespace: str = "default") -> None:
        self.trace.append(("kubectl", "patch_configmap", name, str(patch_file)))


class FakeCharts:
    def __init__(self, trace: CallTrace):
        self.trace = trace
        self.values: dict[str, dict[str, Any]] = {}

    def add_repo(self, name: str, url: str) -> None:
        self.trace.append(("helm", "add_repo", name))

    def update_repos(self) -> None:
        self.trace.append(("helm", "update_repos"))

    def upgrade_install(self, release: str, chart: str, namespace: str, values: dict[str, Any]) -> None:
        self.trace.append(("helm", "upgrade_install", release))
        self.values[release] = values


class FakeRenderer:
    """Renders the document into a single ConfigMap and remembers what it was given."""

    def __init__(self, trace: CallTrace):
        self.trace = trace
        self.documents: list[dict[str, Any]] = []

    def default_config(self) -> dict[str, Any]:
        self.trace.append(("installer", "default_config"))
        return {
            "apiVersion": "v1",
            "domain": "",
            "metadata": {"region": "local"},
            "containerRegistry": {"inCluster": True},
            "database": {"inCluster": True},
            "objectStorage": {"inCluster": True},
            "workspace": {"runtime": {"fsShiftMethod": "shiftfs"}},
        }

    def render(self, document: dict[str, Any]) -> str:
        self.trace.append(("installer", "render"))
        self.documents.append(document)
        return yaml.safe_dump(
            {
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": {"name": "gitpod", "namespace": "default", "labels": {"app": "gitpod"}},
                "data": {"domain": document.get("domain", "")},
            }
        )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host environment variables out of EnvironmentConfig."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def env_values() -> dict[str, str]:
    return dict(ENV_VALUES)


@pytest.fixture
def write_env_file(tmp_path) -> Callable[..., Path]:
    """Write a ``.env`` file from a mapping (None values are left out)."""

    def _write(values: dict[str, str | None], name: str = ".env") -> Path:
        path = tmp_path / name
        path.write_text("".join(f"{k}={v}\n" for k, v in values.items() if v is not None))
        return path

    return _write


@pytest.fixture
def env_file(write_env_file, env_values, tmp_path) -> Path:
    return write_env_file({**env_values, "WORK_DIR": str(tmp_path)})


@pytest.fixture
def config(env_file) -> EnvironmentConfig:
    return load_environment_config(env_file)


@pytest.fixture
def trace() -> CallTrace:
    return CallTrace()


@pytest.fixture
def fake_provider(trace) -> FakeCloudProvider:
    return FakeCloudProvider(trace)


@pytest.fixture
def fake_kube(trace) -> FakeKubernetes:
    return FakeKubernetes(trace)


@pytest.fixture
def fake_charts(trace) -> FakeCharts:
    return FakeCharts(trace)


@pytest.fixture
def fake_renderer(trace) -> FakeRenderer:
    return FakeRenderer(trace)


@pytest.fixture
def container_factory(fake_provider, fake_kube, fake_charts, fake_renderer) -> Callable[[EnvironmentConfig], Any]:
    """Build containers whose external clients are the shared fakes."""

    def _create(cfg: EnvironmentConfig) -> AKSBootIoCContainer:
        container = create_container(cfg)
        container.cloud_provider.override(providers.Object(fake_provider))
        container.kubernetes.override(providers.Object(fake_kube))
        container.charts.override(providers.Object(fake_charts))
        container.renderer.override(providers.Object(fake_renderer))
        return container

    return _create


@pytest.fixture
def container(container_factory, config) -> AKSBootIoCContainer:
    return container_factory(config)
