"""Cluster Object Set: named declarative objects submitted to the cluster."""

import base64
import json
from collections.abc import Iterator
from typing import Any

import yaml

ObjectKey = tuple[str, str | None, str]


def object_key(obj: dict[str, Any]) -> ObjectKey:
    """(kind, namespace, name) identity of a declarative object."""
    metadata = obj.get("metadata") or {}
    return obj["kind"], metadata.get("namespace"), metadata["name"]


class ClusterObjectSet:
    """
    Ordered set of cluster objects with replace semantics.

    Adding an object whose (kind, namespace, name) is already present replaces the
    earlier one in place, so building the set twice never duplicates anything.

    Example:
    -------
        >>> objects = ClusterObjectSet()
        >>> objects.add(secret_object("database", {"host": "db"}))
        >>> objects.add(secret_object("database", {"host": "db2"}))
        >>> len(objects)
        1

    """

    def __init__(self, objects: list[dict[str, Any]] | None = None):
        self._objects: dict[ObjectKey, dict[str, Any]] = {}
        for obj in objects or []:
            self.add(obj)

    def add(self, obj: dict[str, Any]) -> None:
        self._objects[object_key(obj)] = obj

    def get(self, kind: str, name: str, namespace: str | None = "default") -> dict[str, Any] | None:
        return self._objects.get((kind, namespace, name))

    def names(self) -> list[str]:
        return [name for _, _, name in self._objects]

    def to_yaml(self) -> str:
        """Multi-document YAML suitable for ``kubectl apply -f -``."""
        return yaml.safe_dump_all(list(self._objects.values()), default_flow_style=False, sort_keys=False)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._objects.values())

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, name: object) -> bool:
        return name in self.names()

    def __repr__(self) -> str:
        """String representation (names only, never payloads)."""
        return f"ClusterObjectSet({', '.join(self.names())})"


def secret_object(
    name: str,
    string_data: dict[str, str],
    namespace: str = "default",
    secret_type: str = "Opaque",
) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": secret_type,
        "stringData": string_data,
    }


def docker_config_json(server: str, username: str, password: str) -> str:
    """``.dockerconfigjson`` payload for a single registry."""
    auth = base64.b64encode(f"{username}:{password}".encode()).decode()
    return json.dumps({"auths": {server: {"username": username, "password": password, "auth": auth}}})


def docker_registry_secret(name: str, dockerconfigjson: str, namespace: str = "default") -> dict[str, Any]:
    return secret_object(
        name,
        {".dockerconfigjson": dockerconfigjson},
        namespace=namespace,
        secret_type="kubernetes.io/dockerconfigjson",
    )
