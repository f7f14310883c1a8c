"""
Manifest rendering through gitpod-installer.

The installer is a trusted collaborator: ``init`` prints its default configuration
document and ``render`` turns a configuration document into the platform manifest.
"""

import subprocess
import tempfile
from pathlib import Path
from typing import Any

import yaml

from aksboot.any.exceptions import AKSBootRenderError
from aksboot.any.log import get_logger
from aksboot.any.utils import run_command

LOGGER = get_logger("aksboot.cluster.installer")


class GitpodInstallerRenderer:
    """
    Implements the ManifestRenderer protocol with the gitpod-installer binary.

    Example:
    -------
        ```python
        renderer = GitpodInstallerRenderer()
        document = renderer.default_config()
        document["domain"] = "gitpod.example.com"
        manifest = renderer.render(document)
        ```

    """

    def __init__(self, binary: str = "gitpod-installer"):
        self._binary = binary

    def _run(self, args: list[str]) -> str:
        cmd = [self._binary, *args]
        try:
            return run_command(cmd, check=True).stdout
        except FileNotFoundError as e:
            raise AKSBootRenderError(f"Installer binary not found: {self._binary}") from e
        except subprocess.CalledProcessError as e:
            raise AKSBootRenderError(f"{self._binary} {args[0]} failed\nError: {(e.stderr or '').strip()}") from e

    def default_config(self) -> dict[str, Any]:
        output = self._run(["init"])
        try:
            document = yaml.safe_load(output)
        except yaml.YAMLError as e:
            raise AKSBootRenderError(f"Invalid YAML from {self._binary} init\nError: {e}") from e

        if not isinstance(document, dict):
            raise AKSBootRenderError(f"{self._binary} init did not produce a configuration document")
        return document

    def render(self, document: dict[str, Any]) -> str:
        # The config file only exists for the duration of the render call
        with tempfile.TemporaryDirectory(prefix="aksboot-") as tmp:
            config_file = Path(tmp) / "gitpod.config.yaml"
            config_file.write_text(yaml.safe_dump(document, default_flow_style=False))
            LOGGER.debug(f"Rendering manifest from {config_file}")
            return self._run(["render", "--config", str(config_file)])

    def __repr__(self) -> str:
        """String representation."""
        return f"GitpodInstallerRenderer(binary='{self._binary}')"
