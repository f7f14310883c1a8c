"""
Configuration loading for aksboot.

The single source of truth is a ``.env`` file next to the operator (or passed with
``--env-file``). Values exported in the process environment take precedence over the
file, so CI systems can inject secrets without writing them to disk.
"""

from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aksboot.any.exceptions import AKSBootConfigurationError
from aksboot.any.log import get_logger
from aksboot.config.schemas import EnvironmentConfig

LOGGER = get_logger("aksboot.config.loaders")


def _env_var_name(field_name: str) -> str:
    return field_name.upper()


def _describe_validation_error(error: ValidationError) -> str:
    """
    Turn a pydantic ValidationError into the operator-facing message.

    Missing keys are reported first, one at a time, in declaration order.
    """
    errors = error.errors()

    for item in errors:
        if item["type"] == "missing" and item["loc"]:
            return f"Missing {_env_var_name(str(item['loc'][0]))} environment variable."

    first = errors[0]
    if first["loc"]:
        return f"Invalid value for {_env_var_name(str(first['loc'][0]))}: {first['msg']}"
    # Model-level validator (no field location)
    return first["msg"].removeprefix("Value error, ")


def load_environment_config(env_file: Path | None = Path(".env"), **overrides: Any) -> EnvironmentConfig:
    """
    Load and validate the Environment Configuration.

    Args:
    ----
        env_file: Path to the ``.env`` file. Must exist when given; pass None to read
                  only from the process environment.
        **overrides: Explicit values that win over both the file and the environment

    Returns:
    -------
        Frozen, validated EnvironmentConfig

    Raises:
    ------
        AKSBootConfigurationError: If the file is missing or any required key is absent

    Example:
    -------
        >>> config = load_environment_config(Path(".env"))
        >>> config.cluster_name
        'gitpod'

    """
    if env_file is not None and not Path(env_file).is_file():
        raise AKSBootConfigurationError(f"Missing {env_file} configuration file.")

    try:
        config = EnvironmentConfig(_env_file=env_file, **overrides)
    except ValidationError as e:
        raise AKSBootConfigurationError(_describe_validation_error(e)) from e

    LOGGER.debug(
        f"Loaded configuration for cluster '{config.cluster_name}' "
        f"(resource group: {config.resource_group}, location: {config.location})"
    )
    return config
