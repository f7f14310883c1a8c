"""aksboot configuration management."""

from aksboot.config.loaders import load_environment_config
from aksboot.config.schemas import REQUIRED_KEYS, EnvironmentConfig

__all__ = [
    "EnvironmentConfig",
    "REQUIRED_KEYS",
    "load_environment_config",
]
