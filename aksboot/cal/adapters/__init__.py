"""
Cloud provider adapters.

This module contains provider-specific implementations of CloudProviderProtocol:

- azure_cli: Azure via the ``az`` command line
"""

from aksboot.cal.adapters.azure_cli import AzureCLIProvider, property_flags

__all__ = [
    "AzureCLIProvider",
    "property_flags",
]
