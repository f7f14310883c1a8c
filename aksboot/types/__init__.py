"""aksboot type definitions (enums and resource descriptors)."""

from aksboot.types.resources import ResourceDescriptor, ResourceInstance, ResourceKind

__all__ = [
    "ResourceKind",
    "ResourceDescriptor",
    "ResourceInstance",
]
