"""
Kubernetes control plane access through kubectl.

This adapter implements the KubernetesClient protocol. It expects the local kube
context to point at the target cluster, which the reconciler guarantees by fetching
the cluster credentials before any cluster-object operation.
"""

import base64
import binascii
import json
import subprocess
from pathlib import Path

from aksboot.any.exceptions import AKSBootClusterError
from aksboot.any.log import get_logger
from aksboot.any.utils import run_command

LOGGER = get_logger("aksboot.cluster.kubectl")

FIELD_MANAGER = "aksboot"


class KubectlClient:
    """
    Cluster object operations via kubectl.

    Example:
    -------
        ```python
        kube = KubectlClient()
        if not kube.exists("secret", "gitpod-image-pull-secret"):
            kube.apply(secret_yaml)
        kube.rollout_restart("server")
        ```

    """

    def __init__(self, binary: str = "kubectl", context: str | None = None):
        """
        Initialize kubectl client.

        Args:
        ----
            binary: kubectl executable to invoke
            context: Optional kube context (defaults to the current context)

        """
        self._binary = binary
        self._context = context

    def _run(
        self,
        args: list[str],
        input: str | None = None,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess:
        cmd = [self._binary, *args]
        if self._context:
            cmd.extend(["--context", self._context])

        try:
            return run_command(cmd, check=True, input=input, timeout=timeout)
        except FileNotFoundError as e:
            raise AKSBootClusterError(f"kubectl binary not found: {self._binary}", command=cmd) from e
        except subprocess.CalledProcessError as e:
            raise AKSBootClusterError(
                f"kubectl {' '.join(args[:2])} failed\nError: {(e.stderr or '').strip()}",
                command=cmd,
                returncode=e.returncode,
                stderr=e.stderr or "",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise AKSBootClusterError(f"kubectl {' '.join(args[:2])} timed out after {timeout}s", command=cmd) from e

    def apply(self, manifest: str) -> None:
        """Server-side apply YAML from stdin (never written to disk)."""
        self._run(
            ["apply", "--server-side", "--force-conflicts", f"--field-manager={FIELD_MANAGER}", "-f", "-"],
            input=manifest,
        )

    def apply_file(self, path: Path) -> None:
        self._run(["apply", "--server-side", "--force-conflicts", f"--field-manager={FIELD_MANAGER}", "-f", str(path)])

    def exists(self, kind: str, name: str, namespace: str = "default") -> bool:
        cmd = [self._binary, "get", kind, name, "--namespace", namespace, "--output", "name"]
        if self._context:
            cmd.extend(["--context", self._context])

        try:
            result = run_command(cmd, check=False)
        except FileNotFoundError as e:
            raise AKSBootClusterError(f"kubectl binary not found: {self._binary}", command=cmd) from e

        if result.returncode == 0:
            return True
        if "NotFound" in result.stderr or "not found" in result.stderr:
            LOGGER.debug(f"{kind}/{name} not found in namespace {namespace}")
            return False
        raise AKSBootClusterError(
            f"Failed to query {kind}/{name}\nError: {result.stderr.strip()}",
            command=cmd,
            returncode=result.returncode,
            stderr=result.stderr,
        )

    def get_secret(self, name: str, namespace: str = "default") -> dict[str, str] | None:
        if not self.exists("secret", name, namespace):
            return None

        result = self._run(["get", "secret", name, "--namespace", namespace, "--output", "json"])

        try:
            data = json.loads(result.stdout).get("data") or {}
        except json.JSONDecodeError as e:
            raise AKSBootClusterError(f"Failed to parse secret JSON: {name}\nError: {e}") from e

        decoded = {}
        for key, encoded_value in data.items():
            try:
                decoded[key] = base64.b64decode(encoded_value).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise AKSBootClusterError(f"Secret {name} has an undecodable key '{key}': {e}") from e

        LOGGER.debug(f"Read secret {namespace}/{name} (keys: {', '.join(decoded.keys())})")
        return decoded

    def delete(self, kind: str, name: str, namespace: str = "default") -> None:
        self._run(["delete", kind, name, "--namespace", namespace])

    def delete_by_label(self, kinds: list[str], selector: str, namespace: str = "default") -> None:
        self._run(["delete", ",".join(kinds), "--selector", selector, "--namespace", namespace, "--ignore-not-found"])

    def rollout_restart(self, deployment: str, namespace: str = "default") -> None:
        self._run(["rollout", "restart", f"deployment/{deployment}", "--namespace", namespace])

    def wait_for_deployment(self, name: str, namespace: str, timeout: int = 300) -> None:
        self._run(
            [
                "wait",
                "--for=condition=available",
                f"--timeout={timeout}s",
                f"deployment/{name}",
                "--namespace",
                namespace,
            ],
            # kubectl enforces the wait; this only guards against a hung client
            timeout=timeout + 30,
        )

    def patch_configmap(self, name: str, patch_file: Path, namespace: str = "default") -> None:
        self._run(
            ["patch", "configmap", name, "--namespace", namespace, "--type", "merge", "--patch-file", str(patch_file)]
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"KubectlClient(context='{self._context or 'current'}')"
