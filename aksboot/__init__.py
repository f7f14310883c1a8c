"""
aksboot - Idempotent Gitpod provisioning on Azure Kubernetes Service.

Converges the Azure resources a Gitpod installation needs (resource group, AKS
cluster, container registry, MySQL, storage, optional managed DNS), propagates their
credentials into the cluster and applies the rendered Gitpod manifest. Every step is
check-then-create, so a failed run is recovered by running it again.
"""

from aksboot.any.exceptions import (
    AKSBootClusterError,
    AKSBootConfigurationError,
    AKSBootError,
    AKSBootProviderError,
    AKSBootRenderError,
)

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "AKSBootError",
    "AKSBootConfigurationError",
    "AKSBootProviderError",
    "AKSBootClusterError",
    "AKSBootRenderError",
    # Version
    "__version__",
]
