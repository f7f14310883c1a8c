"""Utility functions for aksboot."""

import os
import subprocess
from collections.abc import Iterable

from aksboot.any.log import get_logger

LOGGER = get_logger("aksboot.utils")

REDACTED = "******"


def mask_secrets(cmd: list[str], secrets: Iterable[str] | None = None) -> str:
    """
    Render a command for logging with secret values replaced.

    Args:
    ----
        cmd: Command and arguments as a list
        secrets: Values that must never appear in logs

    Returns:
    -------
        Space-joined command with every secret occurrence masked

    Example:
    -------
        >>> mask_secrets(["az", "login", "-p", "hunter2"], secrets=["hunter2"])
        'az login -p ******'

    """
    rendered = " ".join(cmd)
    for secret in secrets or ():
        if secret:
            rendered = rendered.replace(secret, REDACTED)
    return rendered


def run_command(
    cmd: list[str],
    check: bool = True,
    capture: bool = True,
    env: dict[str, str] | None = None,
    timeout: int | None = None,
    input: str | None = None,
    secrets: Iterable[str] | None = None,
) -> subprocess.CompletedProcess:
    """
    Run a shell command with consistent handling.

    Args:
    ----
        cmd: Command and arguments as a list
        check: If True, raise CalledProcessError on non-zero exit
        capture: If True, capture stdout/stderr
        env: Optional environment variables (merged with os.environ)
        timeout: Optional timeout in seconds
        input: Optional text fed to the command's stdin (e.g. a manifest for ``kubectl apply -f -``)
        secrets: Values masked in the debug log line

    Returns:
    -------
        CompletedProcess instance with returncode, stdout, stderr

    Raises:
    ------
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded

    Example:
    -------
        ```python
        from aksboot.any.utils import run_command

        result = run_command(["az", "group", "show", "--name", "gitpod", "-o", "json"], check=False)
        if result.returncode != 0:
            print(f"Command failed: {result.stderr}")

        # Feed a manifest through stdin
        run_command(["kubectl", "apply", "-f", "-"], input=manifest_yaml)
        ```

    """
    command_env = os.environ.copy()
    if env:
        command_env.update(env)

    LOGGER.debug(f"Running command: {mask_secrets(cmd, secrets)}")

    return subprocess.run(
        cmd,
        capture_output=capture,
        text=True,
        check=check,
        env=command_env,
        timeout=timeout,
        input=input,
    )
