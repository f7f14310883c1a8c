"""Chart installation through helm."""

import subprocess
from typing import Any

import yaml

from aksboot.any.exceptions import AKSBootClusterError
from aksboot.any.log import get_logger
from aksboot.any.utils import run_command

LOGGER = get_logger("aksboot.cluster.helm")


class HelmClient:
    """
    Implements the ChartInstaller protocol with the helm CLI.

    Values are passed on stdin (``--values -``) so credentials such as the
    external-dns client secret never appear on the command line.
    """

    def __init__(self, binary: str = "helm", timeout: int | None = None):
        self._binary = binary
        self._timeout = timeout

    def _run(self, args: list[str], input: str | None = None) -> subprocess.CompletedProcess:
        cmd = [self._binary, *args]
        try:
            return run_command(cmd, check=True, input=input, timeout=self._timeout)
        except FileNotFoundError as e:
            raise AKSBootClusterError(f"helm binary not found: {self._binary}", command=cmd) from e
        except subprocess.CalledProcessError as e:
            raise AKSBootClusterError(
                f"helm {' '.join(args[:2])} failed\nError: {(e.stderr or '').strip()}",
                command=cmd,
                returncode=e.returncode,
                stderr=e.stderr or "",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise AKSBootClusterError(f"helm {' '.join(args[:2])} timed out after {self._timeout}s", command=cmd) from e

    def add_repo(self, name: str, url: str) -> None:
        self._run(["repo", "add", name, url, "--force-update"])

    def update_repos(self) -> None:
        self._run(["repo", "update"])

    def upgrade_install(self, release: str, chart: str, namespace: str, values: dict[str, Any]) -> None:
        LOGGER.debug(f"Installing chart {chart} as release {release} in namespace {namespace}")
        self._run(
            [
                "upgrade",
                "--atomic",
                "--cleanup-on-fail",
                "--create-namespace",
                "--install",
                f"--namespace={namespace}",
                "--reset-values",
                "--values",
                "-",
                "--wait",
                release,
                chart,
            ],
            input=yaml.safe_dump(values, default_flow_style=False),
        )
