"""Manifest composition: installer configuration document plus discovered values."""

import copy
from pathlib import Path
from typing import Any

import yaml

from aksboot.any.exceptions import AKSBootConfigurationError
from aksboot.any.log import get_logger
from aksboot.cluster.protocols import ManifestRenderer
from aksboot.config.schemas import EnvironmentConfig
from aksboot.provision.credentials import (
    DATABASE_SECRET,
    IMAGE_PULL_SECRET,
    REGISTRY_SECRET,
    STORAGE_SECRET,
    image_pull_secret_file,
)
from aksboot.provision.discovered import DiscoveredValues

LOGGER = get_logger("aksboot.provision.composer")

CERTIFICATE_SECRET = "proxy-config-certificates"

# AKS nodes run containerd with the default state and socket paths
CONTAINERD_RUNTIME_DIR = "/var/lib/containerd/io.containerd.runtime.v2.task/k8s.io"
CONTAINERD_SOCKET = "/run/containerd/containerd.sock"


def secret_ref(name: str) -> dict[str, str]:
    return {"kind": "secret", "name": name}


def set_path(document: dict[str, Any], path: str, value: Any) -> None:
    """
    Assign ``value`` at a dotted ``path``, creating intermediate mappings.

    Raises
    ------
        AKSBootConfigurationError: If an intermediate key holds a non-mapping value

    """
    *parents, leaf = path.split(".")
    node = document
    for key in parents:
        child = node.get(key)
        if child is None:
            child = node[key] = {}
        elif not isinstance(child, dict):
            raise AKSBootConfigurationError(f"Cannot set {path}: '{key}' is not a mapping in the installer config")
        node = child
    node[leaf] = value


class ManifestComposer:
    """
    Builds the Deployment Configuration Document and renders it.

    The template is never modified; ``compose`` works on a deep copy so the same
    template can be composed again with different values.
    """

    def __init__(self, config: EnvironmentConfig, renderer: ManifestRenderer):
        self._config = config
        self._renderer = renderer

    def load_template(self) -> dict[str, Any]:
        """Installer config from INSTALLER_CONFIG_FILE, or the installer's default."""
        path: Path | None = self._config.installer_config_file
        if path is None:
            LOGGER.info("Generating default installer configuration...")
            return self._renderer.default_config()

        if not path.is_file():
            raise AKSBootConfigurationError(f"The installer configuration file {path} does not exist.")

        LOGGER.info(f"Using installer configuration {path}")
        document = yaml.safe_load(path.read_text())
        if not isinstance(document, dict):
            raise AKSBootConfigurationError(f"The installer configuration file {path} is not a YAML mapping.")
        return document

    def assignments(self, discovered: DiscoveredValues) -> list[tuple[str, Any]]:
        """Ordered (dotted path, value) pairs applied on top of the template."""
        values: list[tuple[str, Any]] = [
            ("certificate", secret_ref(CERTIFICATE_SECRET)),
            ("containerRegistry.inCluster", False),
            ("containerRegistry.external.url", discovered.require("registry_server")),
            ("containerRegistry.external.certificate", secret_ref(REGISTRY_SECRET)),
            ("database.inCluster", False),
            ("database.external.certificate", secret_ref(DATABASE_SECRET)),
            ("domain", self._config.domain),
            ("metadata.region", self._config.location),
            ("objectStorage.inCluster", False),
            ("objectStorage.azure.credentials", secret_ref(STORAGE_SECRET)),
            ("workspace.runtime.containerdRuntimeDir", CONTAINERD_RUNTIME_DIR),
            ("workspace.runtime.containerdSocket", CONTAINERD_SOCKET),
        ]
        if image_pull_secret_file(self._config) is not None:
            values.append(("imagePullSecrets", [secret_ref(IMAGE_PULL_SECRET)]))
        return values

    def compose(self, template: dict[str, Any], discovered: DiscoveredValues) -> dict[str, Any]:
        document = copy.deepcopy(template)
        for path, value in self.assignments(discovered):
            set_path(document, path, value)
        return document

    def render(self, document: dict[str, Any]) -> str:
        LOGGER.info("Rendering Gitpod manifest...")
        return self._renderer.render(document)
