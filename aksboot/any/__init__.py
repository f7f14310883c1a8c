"""
Any - Cross-cutting components for aksboot.

Exceptions, structured logging and the subprocess wrapper used by every adapter.
"""

from aksboot.any.exceptions import (
    AKSBootClusterError,
    AKSBootConfigurationError,
    AKSBootError,
    AKSBootProviderError,
    AKSBootRenderError,
)
from aksboot.any.log import bind_context, clear_context, configure_logging, get_logger
from aksboot.any.utils import mask_secrets, run_command

__all__ = [
    # Exceptions
    "AKSBootError",
    "AKSBootConfigurationError",
    "AKSBootProviderError",
    "AKSBootClusterError",
    "AKSBootRenderError",
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Utils
    "run_command",
    "mask_secrets",
]
