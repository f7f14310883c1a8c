"""
aksboot Cloud Abstraction Layer (CAL).

The reconciler only sees CloudProviderProtocol; the concrete adapter (Azure CLI) is
wired in by the IoC container and replaced by fakes in tests.
"""

from aksboot.cal.adapters import AzureCLIProvider
from aksboot.cal.protocols import CloudProviderProtocol

__all__ = [
    "CloudProviderProtocol",
    "AzureCLIProvider",
]
