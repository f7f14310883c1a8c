"""
Protocol definitions for cluster-side collaborators.

These protocols define the contracts the provisioning components depend on:
- KubernetesClient: the cluster control plane (kubectl)
- ChartInstaller: the chart package manager (helm)
- ManifestRenderer: the installer that turns a configuration document into objects

All protocols follow PEP 544 (Structural Subtyping / Protocol).
"""

from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KubernetesClient(Protocol):
    """
    Protocol for cluster object operations.

    Implementations:
    - cluster/kubectl.py - KubectlClient

    Every write uses apply (replace) semantics: submitting an object with an existing
    name converges it instead of failing with "already exists".
    """

    def apply(self, manifest: str) -> None:
        """Apply one or more YAML documents."""
        ...

    def apply_file(self, path: Path) -> None:
        """Apply a manifest file."""
        ...

    def exists(self, kind: str, name: str, namespace: str = "default") -> bool:
        """Check whether an object exists (NotFound is False, other failures raise)."""
        ...

    def get_secret(self, name: str, namespace: str = "default") -> dict[str, str] | None:
        """
        Read a secret's decoded data.

        Returns
        -------
            Mapping of key to decoded value, or None if the secret does not exist

        """
        ...

    def delete(self, kind: str, name: str, namespace: str = "default") -> None:
        """Delete one object."""
        ...

    def delete_by_label(self, kinds: list[str], selector: str, namespace: str = "default") -> None:
        """Delete every object of ``kinds`` matching the label selector (absent objects are ignored)."""
        ...

    def rollout_restart(self, deployment: str, namespace: str = "default") -> None:
        """Restart a deployment's pods."""
        ...

    def wait_for_deployment(self, name: str, namespace: str, timeout: int = 300) -> None:
        """Block until the deployment reports Available, or raise after ``timeout`` seconds."""
        ...

    def patch_configmap(self, name: str, patch_file: Path, namespace: str = "default") -> None:
        """Merge-patch a ConfigMap from a file."""
        ...


@runtime_checkable
class ChartInstaller(Protocol):
    """
    Protocol for chart installation.

    Implementations:
    - cluster/helm.py - HelmClient
    """

    def add_repo(self, name: str, url: str) -> None:
        """Register (or refresh) a chart repository."""
        ...

    def update_repos(self) -> None:
        """Refresh every chart repository index."""
        ...

    def upgrade_install(self, release: str, chart: str, namespace: str, values: dict[str, Any]) -> None:
        """Install the chart, or upgrade the release if it already exists."""
        ...


@runtime_checkable
class ManifestRenderer(Protocol):
    """
    Protocol for manifest rendering.

    Implementations:
    - cluster/installer.py - GitpodInstallerRenderer
    """

    def default_config(self) -> dict[str, Any]:
        """Return the renderer's default configuration document."""
        ...

    def render(self, document: dict[str, Any]) -> str:
        """
        Render a configuration document into a multi-document YAML manifest.

        Raises
        ------
            AKSBootRenderError: If the document is invalid

        """
        ...
