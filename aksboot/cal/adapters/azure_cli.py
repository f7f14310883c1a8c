"""
Azure CLI Cloud Adapter.

This module implements CloudProviderProtocol on top of the ``az`` command line. Every
resource kind maps onto an ``az`` command group; the adapter turns descriptors into
``show``/``create``/``update``/``delete`` invocations, parses their JSON output and
converts failures into AKSBootProviderError.

``az`` create commands block until the resource is provisioned (no ``--no-wait``), so
a returned ``create`` means the resource is ready.
"""

import json
import subprocess
from dataclasses import dataclass
from typing import Any

from pydantic import SecretStr

from aksboot.any.exceptions import AKSBootProviderError
from aksboot.any.log import get_logger
from aksboot.any.utils import run_command
from aksboot.config.schemas import EnvironmentConfig
from aksboot.types import ResourceDescriptor, ResourceKind

LOGGER = get_logger("aksboot.cal.adapters.azure_cli")

# stderr fragments az prints when a resource (or its resource group) is absent
NOT_FOUND_MARKERS = (
    "ResourceNotFound",
    "ResourceGroupNotFound",
    "ParentResourceNotFound",
    "could not be found",
    "was not found",
    "does not exist",
)


@dataclass(frozen=True)
class _CommandSpec:
    """How one resource kind is addressed on the ``az`` command line."""

    group: tuple[str, ...]
    create_verb: str = "create"
    name_flag: str = "--name"
    parent_flag: str | None = None
    scoped: bool = True
    confirm_delete: bool = True


COMMAND_SPECS: dict[ResourceKind, _CommandSpec] = {
    ResourceKind.RESOURCE_GROUP: _CommandSpec(("group",), scoped=False),
    ResourceKind.CLUSTER: _CommandSpec(("aks",)),
    ResourceKind.NODE_POOL: _CommandSpec(
        ("aks", "nodepool"), create_verb="add", parent_flag="--cluster-name", confirm_delete=False
    ),
    ResourceKind.REGISTRY: _CommandSpec(("acr",)),
    ResourceKind.DNS_ZONE: _CommandSpec(("network", "dns", "zone")),
    ResourceKind.DATABASE_SERVER: _CommandSpec(("mysql", "flexible-server")),
    ResourceKind.DATABASE: _CommandSpec(
        ("mysql", "flexible-server", "db"), name_flag="--database-name", parent_flag="--server-name"
    ),
    ResourceKind.FIREWALL_RULE: _CommandSpec(
        ("mysql", "flexible-server", "firewall-rule"), name_flag="--rule-name", parent_flag="--name"
    ),
    ResourceKind.STORAGE_ACCOUNT: _CommandSpec(("storage", "account")),
}


def property_flags(properties: dict[str, Any]) -> tuple[list[str], list[str]]:
    """
    Convert desired properties into ``az`` flags.

    ``True`` becomes a bare switch, ``False``/``None`` are omitted, lists expand into
    multiple values and SecretStr values are unwrapped (and reported for masking).

    Returns
    -------
        (flags, secret values to mask in logs)

    Example:
    -------
        >>> property_flags({"location": "northeurope", "no-ssh-key": True, "zones": [1, 2]})
        (['--location', 'northeurope', '--no-ssh-key', '--zones', '1', '2'], [])

    """
    flags: list[str] = []
    secrets: list[str] = []
    for key, value in properties.items():
        if value is None or value is False:
            continue
        if value is True:
            flags.append(f"--{key}")
        elif isinstance(value, list | tuple):
            flags.extend([f"--{key}", *(str(v) for v in value)])
        elif isinstance(value, SecretStr):
            secret = value.get_secret_value()
            secrets.append(secret)
            flags.extend([f"--{key}", secret])
        else:
            flags.extend([f"--{key}", str(value)])
    return flags, secrets


class AzureCLIProvider:
    """
    Cloud provider backed by the Azure CLI.

    Example:
    -------
        ```python
        provider = AzureCLIProvider(config)
        provider.login()

        group = ResourceDescriptor(ResourceKind.RESOURCE_GROUP, "gitpod", properties={"location": "northeurope"})
        if not provider.exists(group):
            provider.create(group)
        ```

    """

    def __init__(self, config: EnvironmentConfig, binary: str = "az", timeout: int | None = None):
        """
        Initialize the Azure CLI adapter.

        Args:
        ----
            config: Environment configuration (subscription, tenant, service principal)
            binary: ``az`` executable to invoke
            timeout: Optional per-command timeout in seconds

        """
        self._config = config
        self._binary = binary
        self._timeout = timeout

    def _execute(self, cmd: list[str], secrets: list[str] | None = None) -> subprocess.CompletedProcess:
        """Run ``cmd`` without checking its exit code; a missing or hung ``az`` raises AKSBootProviderError."""
        try:
            return run_command(cmd, check=False, timeout=self._timeout, secrets=secrets)
        except FileNotFoundError as e:
            raise AKSBootProviderError(f"Azure CLI binary not found: {self._binary}") from e
        except subprocess.TimeoutExpired as e:
            raise AKSBootProviderError(
                f"Azure CLI command timed out after {self._timeout}s: {' '.join(cmd[1:4])}",
                command=cmd if not secrets else [],
            ) from e

    def _run(self, args: list[str], secrets: list[str] | None = None, parse: bool = True) -> Any:
        """
        Run an ``az`` command and return its parsed JSON output.

        Raises
        ------
            AKSBootProviderError: If the command exits non-zero, times out or ``az`` is missing

        """
        cmd = [self._binary, *args]
        if parse:
            cmd.extend(["--output", "json"])

        result = self._execute(cmd, secrets=secrets)
        if result.returncode != 0:
            raise AKSBootProviderError(
                f"Azure CLI command failed: {' '.join(args[:3])}\nError: {result.stderr.strip()}",
                command=cmd if not secrets else [],
                returncode=result.returncode,
                stderr=result.stderr,
            )

        if not parse or not result.stdout.strip():
            return {}

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise AKSBootProviderError(f"Failed to parse Azure CLI output for: {' '.join(args[:3])}\nError: {e}") from e

    def _address(self, descriptor: ResourceDescriptor) -> tuple[_CommandSpec, list[str]]:
        """Build the flags that identify ``descriptor`` (name, parent, resource group)."""
        spec = COMMAND_SPECS[descriptor.kind]
        flags = [spec.name_flag, descriptor.name]
        if spec.parent_flag:
            if not descriptor.parent:
                raise AKSBootProviderError(f"{descriptor.kind.value} '{descriptor.name}' requires a parent resource")
            flags.extend([spec.parent_flag, descriptor.parent])
        if spec.scoped:
            flags.extend(["--resource-group", descriptor.scope or self._config.resource_group])
        return spec, flags

    def login(self) -> None:
        """Log in with the service principal (if configured) and select the subscription."""
        if self._config.has_service_principal:
            LOGGER.info("Log into Azure with Service Principal...")
            secret = self._config.azure_client_secret.get_secret_value()  # type: ignore[union-attr]
            self._run(
                [
                    "login",
                    "--service-principal",
                    "--username",
                    self._config.azure_client_id,  # type: ignore[list-item]
                    "--password",
                    secret,
                    "--tenant",
                    self._config.azure_tenant_id,
                ],
                secrets=[secret],
            )
        else:
            LOGGER.info("No service principal configured, using the current Azure CLI session...")

        LOGGER.info("Set Azure subscription...")
        self._run(["account", "set", "--subscription", self._config.azure_subscription_id], parse=False)

    def _query(self, cmd: list[str], descriptor: ResourceDescriptor) -> Any:
        """Run a read-only ``az`` query; None when the provider reports the resource absent."""
        result = self._execute(cmd)
        if result.returncode == 0:
            output = result.stdout.strip()
            # Some az versions exit 0 with empty output for an absent child resource
            if not output or output == "null":
                return None
            try:
                return json.loads(output)
            except json.JSONDecodeError as e:
                raise AKSBootProviderError(f"Failed to parse Azure CLI output for {descriptor}\nError: {e}") from e

        if any(marker in result.stderr for marker in NOT_FOUND_MARKERS):
            LOGGER.debug(f"{descriptor} not found")
            return None

        raise AKSBootProviderError(
            f"Failed to query {descriptor}\nError: {result.stderr.strip()}",
            command=cmd,
            returncode=result.returncode,
            stderr=result.stderr,
        )

    def _find_firewall_rule(self, descriptor: ResourceDescriptor) -> dict[str, Any] | None:
        """
        Firewall rule with the descriptor's name or covering the same address range.

        ``az mysql flexible-server create --public-access 0.0.0.0`` adds the Azure services
        rule under a generated name, so rules are matched by range as well as by name.
        """
        spec, _ = self._address(descriptor)
        cmd = [
            self._binary,
            *spec.group,
            "list",
            spec.parent_flag,
            descriptor.parent,
            "--resource-group",
            descriptor.scope or self._config.resource_group,
            "--output",
            "json",
        ]
        start = descriptor.properties.get("start-ip-address")
        end = descriptor.properties.get("end-ip-address")

        for rule in self._query(cmd, descriptor) or []:
            if rule.get("name") == descriptor.name:
                return rule
            if start is not None and rule.get("startIpAddress") == start and rule.get("endIpAddress") == end:
                LOGGER.debug(f"{descriptor} matched by address range as '{rule.get('name')}'")
                return rule
        return None

    def exists(self, descriptor: ResourceDescriptor) -> bool:
        """Check existence with ``az <group> show``; "not found" answers are False, other failures raise."""
        if descriptor.kind is ResourceKind.FIREWALL_RULE:
            return self._find_firewall_rule(descriptor) is not None

        spec, address = self._address(descriptor)
        return self._query([self._binary, *spec.group, "show", *address, "--output", "json"], descriptor) is not None

    def show(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        if descriptor.kind is ResourceKind.FIREWALL_RULE:
            rule = self._find_firewall_rule(descriptor)
            if rule is None:
                raise AKSBootProviderError(f"{descriptor} does not exist")
            return rule

        spec, address = self._address(descriptor)
        return self._run([*spec.group, "show", *address])

    def create(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        spec, address = self._address(descriptor)
        flags, secrets = property_flags(dict(descriptor.properties))
        return self._run([*spec.group, spec.create_verb, *address, *flags], secrets=secrets)

    def update(self, descriptor: ResourceDescriptor, properties: dict[str, Any]) -> dict[str, Any]:
        spec, address = self._address(descriptor)
        flags, secrets = property_flags(properties)
        return self._run([*spec.group, "update", *address, *flags], secrets=secrets)

    def delete(self, descriptor: ResourceDescriptor) -> None:
        spec, address = self._address(descriptor)
        confirm = ["--yes"] if spec.confirm_delete else []
        self._run([*spec.group, "delete", *address, *confirm], parse=False)

    def get_cluster_credentials(self, descriptor: ResourceDescriptor) -> None:
        _, address = self._address(descriptor)
        self._run(["aks", "get-credentials", *address, "--overwrite-existing"], parse=False)

    def get_registry_credentials(self, descriptor: ResourceDescriptor) -> tuple[str, str]:
        _, address = self._address(descriptor)
        credentials = self._run(["acr", "credential", "show", *address])
        try:
            return credentials["username"], credentials["passwords"][0]["value"]
        except (KeyError, IndexError, TypeError) as e:
            raise AKSBootProviderError(
                f"Registry '{descriptor.name}' returned no admin credentials. Is the admin user enabled?"
            ) from e

    def get_storage_account_key(self, descriptor: ResourceDescriptor, key_name: str = "key1") -> str:
        keys = self._run(
            [
                "storage",
                "account",
                "keys",
                "list",
                "--account-name",
                descriptor.name,
                "--resource-group",
                descriptor.scope or self._config.resource_group,
            ]
        )
        for key in keys or []:
            if key.get("keyName") == key_name:
                return key["value"]
        raise AKSBootProviderError(f"Storage account '{descriptor.name}' has no key named '{key_name}'")

    def ensure_role_assignment(self, assignee: str, role: str, scope: str) -> bool:
        existing = self._run(["role", "assignment", "list", "--assignee", assignee, "--role", role, "--scope", scope])
        if existing:
            LOGGER.debug(f"Role '{role}' already granted to {assignee}")
            return False

        self._run(
            [
                "role",
                "assignment",
                "create",
                "--assignee-object-id",
                assignee,
                "--assignee-principal-type",
                "ServicePrincipal",
                "--role",
                role,
                "--scope",
                scope,
            ]
        )
        return True

    def __repr__(self) -> str:
        """String representation."""
        return f"AzureCLIProvider(subscription='{self._config.azure_subscription_id}')"
