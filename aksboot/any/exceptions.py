"""
AKSBoot exception classes.

This module defines custom exceptions for aksboot so provisioning failures are never
confused with built-in Python errors, and so the CLI can tell a precondition failure
from a failed remote call.

All aksboot exceptions follow the naming convention AKSBoot*Error.
"""


class AKSBootError(Exception):
    """
    Base exception for all aksboot errors.

    The CLI catches this class, prints the message and exits with status 1.
    """

    pass


class AKSBootConfigurationError(AKSBootError):
    """
    Raised when configuration is missing or invalid.

    This is a precondition failure: it is always raised before any resource is
    created, updated or deleted.

    Example:
    -------
        >>> load_environment_config(Path(".env"))  # DOMAIN not set
        AKSBootConfigurationError: Missing DOMAIN environment variable.

    """

    pass


class AKSBootProviderError(AKSBootError):
    """
    Raised when a cloud provider query or mutation fails.

    A "not found" answer to an existence query is NOT an error; this is raised when
    the provider could not answer at all (auth failure, throttling, bad request) or
    rejected a create/update/delete.
    """

    def __init__(self, message: str, command: list[str] | None = None, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class AKSBootClusterError(AKSBootError):
    """Raised when a kubectl or helm call against the cluster fails."""

    def __init__(self, message: str, command: list[str] | None = None, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class AKSBootRenderError(AKSBootError):
    """Raised when the manifest renderer rejects the deployment configuration."""

    pass
