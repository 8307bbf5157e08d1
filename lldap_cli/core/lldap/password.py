"""Out-of-band password setting through the ``lldap_set_password`` tool.

The GraphQL API has no password mutation, so this shells out to the trusted
binary shipped with LLDAP. The password travels on stdin, never in argv.
"""
from __future__ import annotations
import subprocess
from typing import Callable

from lldap_cli.core import validators
from lldap_cli.core.redaction import redact
from .exceptions import ConfigError, LldapError

DEFAULT_SET_PASSWORD_COMMAND = "lldap_set_password"
PASSWORD_TOOL_TIMEOUT = 60


def set_password(
    user_id: str,
    password: str,
    http_url: str,
    token: str,
    command: str = DEFAULT_SET_PASSWORD_COMMAND,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> None:
    """Set a user's password with ``lldap_set_password``.

    Args:
        user_id: Target user ID
        password: New password (8-128 chars, a letter and a digit)
        http_url: LLDAP base URL passed to the tool
        token: Access token passed to the tool
        command: Tool executable name or path
        runner: ``subprocess.run`` compatible callable

    Raises:
        ValidationError: If any argument is unsafe or the password is weak
        ConfigError: If the tool is not installed
        LldapError: If the tool exits non-zero
    """
    validators.validate_shell_argument(user_id, "userId")
    validators.validate_password(password)
    validators.validate_shell_argument(http_url, "httpUrl")
    validators.validate_shell_argument(token, "token")

    # run() writes and closes stdin, then drains stdout/stderr before waiting
    try:
        result = runner(
            [command, "-b", http_url, f"--token={token}", "-u", user_id],
            input=password + "\n",
            capture_output=True,
            text=True,
            timeout=PASSWORD_TOOL_TIMEOUT,
            check=False,
        )
    except FileNotFoundError as e:
        raise ConfigError(
            f"{command} not found. Install it or set LLDAP_SET_PASSWORD_BIN."
        ) from e
    except subprocess.TimeoutExpired as e:
        raise LldapError(f"{command} did not finish within {PASSWORD_TOOL_TIMEOUT}s") from e

    if result.returncode != 0:
        raise LldapError(f"Failed to set password: {redact((result.stderr or '').strip())}")
