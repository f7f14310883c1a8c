"""
Cluster-side collaborators: kubectl, helm and the manifest renderer.

Each is reached through a small protocol so the provisioning components can be tested
with recording fakes.
"""

from aksboot.cluster.helm import HelmClient
from aksboot.cluster.installer import GitpodInstallerRenderer
from aksboot.cluster.kubectl import KubectlClient
from aksboot.cluster.protocols import ChartInstaller, KubernetesClient, ManifestRenderer

__all__ = [
    "KubernetesClient",
    "ChartInstaller",
    "ManifestRenderer",
    "KubectlClient",
    "HelmClient",
    "GitpodInstallerRenderer",
]
