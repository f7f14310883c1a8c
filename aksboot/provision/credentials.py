"""
Credential propagation.

Turns the credentials and identifiers the reconciler discovered into named cluster
secrets. The secrets are the authoritative copy of each credential; nothing is
written to disk.

The database secret also carries ``encryptionKeys``, the key material the platform
uses for at-rest encryption. Regenerating it would make previously encrypted rows
unreadable, so an existing value is always reused and a new one is generated only
when the secret has never carried one.
"""

import base64
import json
import secrets
from pathlib import Path

from aksboot.any.exceptions import AKSBootConfigurationError
from aksboot.any.log import get_logger
from aksboot.cluster.protocols import KubernetesClient
from aksboot.config.schemas import EnvironmentConfig
from aksboot.provision.discovered import DiscoveredValues
from aksboot.provision.objects import (
    ClusterObjectSet,
    docker_config_json,
    docker_registry_secret,
    secret_object,
)

LOGGER = get_logger("aksboot.provision.credentials")

REGISTRY_SECRET = "image-builder-registry-secret"
DATABASE_SECRET = "database"
STORAGE_SECRET = "storage-azure"
IMAGE_PULL_SECRET = "gitpod-image-pull-secret"

CLUSTER_ISSUER = "azure-issuer"
ACME_SERVER = "https://acme-v02.api.letsencrypt.org/directory"


def image_pull_secret_file(config: EnvironmentConfig) -> Path | None:
    """IMAGE_PULL_SECRET_FILE when it is configured and present on disk."""
    path = config.image_pull_secret_file
    if path is None or not path.is_file():
        return None
    return path


def generate_encryption_keys() -> str:
    """New ``encryptionKeys`` value: one primary 256-bit key, base64 encoded."""
    material = base64.b64encode(secrets.token_bytes(32)).decode()
    return json.dumps([{"name": "general", "version": 1, "primary": True, "material": material}])


class CredentialPropagator:
    """
    Materializes discovered credentials as a Cluster Object Set.

    Example:
    -------
        ```python
        propagator = CredentialPropagator(config, kubernetes)
        objects = propagator.materialize(discovered)
        objects.names()  # ['image-builder-registry-secret', 'database', 'storage-azure']
        ```

    """

    def __init__(self, config: EnvironmentConfig, kubernetes: KubernetesClient):
        self._config = config
        self._kubernetes = kubernetes

    def materialize(self, discovered: DiscoveredValues) -> ClusterObjectSet:
        """
        Build one named object per credential.

        Requires the cluster credentials to be in place: the existing database secret
        is read to keep its encryption keys.
        """
        objects = ClusterObjectSet()
        objects.add(self.registry_secret(discovered))
        objects.add(self.database_secret(discovered))
        objects.add(self.storage_secret(discovered))

        pull_secret = self.image_pull_secret()
        if pull_secret is not None:
            objects.add(pull_secret)

        if self._config.setup_managed_dns:
            objects.add(self.cluster_issuer(discovered))

        LOGGER.debug(f"Materialized cluster objects: {', '.join(objects.names())}")
        return objects

    def registry_secret(self, discovered: DiscoveredValues) -> dict:
        dockerconfigjson = docker_config_json(
            discovered.require("registry_server"),
            discovered.require("registry_username"),
            discovered.require("registry_password").get_secret_value(),
        )
        return docker_registry_secret(REGISTRY_SECRET, dockerconfigjson)

    def database_secret(self, discovered: DiscoveredValues) -> dict:
        return secret_object(
            DATABASE_SECRET,
            {
                "host": discovered.require("database_host"),
                "port": str(discovered.database_port),
                "username": discovered.require("database_username"),
                "password": discovered.require("database_password").get_secret_value(),
                "encryptionKeys": self.encryption_keys(),
            },
        )

    def encryption_keys(self) -> str:
        """
        Existing ``encryptionKeys`` from the database secret, or a new value.

        Raises
        ------
            AKSBootConfigurationError: If the existing value is present but not a valid key list

        """
        existing = self._kubernetes.get_secret(DATABASE_SECRET)
        if not existing or not existing.get("encryptionKeys"):
            LOGGER.info("Generating database encryption keys...")
            return generate_encryption_keys()

        value = existing["encryptionKeys"]
        try:
            keys = json.loads(value)
        except json.JSONDecodeError as e:
            raise AKSBootConfigurationError(
                f"Secret '{DATABASE_SECRET}' holds unreadable encryptionKeys. "
                "Fix or remove it manually; regenerating would invalidate encrypted data."
            ) from e

        if not isinstance(keys, list) or not all(isinstance(k, dict) and k.get("material") for k in keys):
            raise AKSBootConfigurationError(
                f"Secret '{DATABASE_SECRET}' holds malformed encryptionKeys (expected a list of keys with material)."
            )

        LOGGER.debug("Reusing existing database encryption keys")
        return value

    def storage_secret(self, discovered: DiscoveredValues) -> dict:
        return secret_object(
            STORAGE_SECRET,
            {
                "accountName": discovered.require("storage_account_name"),
                "accountKey": discovered.require("storage_account_key").get_secret_value(),
            },
        )

    def image_pull_secret(self) -> dict | None:
        """Pull secret from IMAGE_PULL_SECRET_FILE, or None when not configured or absent."""
        path = image_pull_secret_file(self._config)
        if path is None:
            if self._config.image_pull_secret_file is not None:
                LOGGER.warning(
                    f"Image pull secret file {self._config.image_pull_secret_file} does not exist, "
                    f"skipping {IMAGE_PULL_SECRET}"
                )
            return None

        return docker_registry_secret(IMAGE_PULL_SECRET, path.read_text())

    def cluster_issuer(self, discovered: DiscoveredValues) -> dict:
        """ACME issuer solving DNS-01 challenges in the managed zone with the kubelet identity."""
        cfg = self._config
        return {
            "apiVersion": "cert-manager.io/v1",
            "kind": "ClusterIssuer",
            "metadata": {"name": CLUSTER_ISSUER},
            "spec": {
                "acme": {
                    "server": ACME_SERVER,
                    "privateKeySecretRef": {"name": f"{CLUSTER_ISSUER}-account-key"},
                    "solvers": [
                        {
                            "dns01": {
                                "azureDNS": {
                                    "subscriptionID": cfg.azure_subscription_id,
                                    "resourceGroupName": cfg.resource_group,
                                    "hostedZoneName": cfg.domain,
                                    "environment": "AzurePublicCloud",
                                    "managedIdentity": {"clientID": discovered.require("kubelet_client_id")},
                                }
                            }
                        }
                    ],
                }
            },
        }
