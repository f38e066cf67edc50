"""
Shell command runner — the one place adapters touch subprocess.

Runs a package-manager command and maps every way it can go wrong
onto a ``BackendError`` kind:

    binary missing        → unavailable
    timeout               → timeout
    permission problem    → permission_denied
    unknown package       → package_not_found
    any other non-zero    → command_failed(exit_code, stderr)
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import time
from collections.abc import Sequence

from supac.core.errors import BackendError

logger = logging.getLogger(__name__)

# stderr fragments that identify a permission problem
_PERMISSION_PATTERNS = re.compile(
    r"permission denied|you cannot perform this operation unless you are root"
    r"|operation not permitted|a password is required|not in the sudoers",
    re.IGNORECASE,
)

# stderr fragments that identify a package the manager does not know
_NOT_FOUND_PATTERNS = re.compile(
    r"target not found|could not find|no remote refs found|nothing matches"
    r"|not found in remote|no such ref",
    re.IGNORECASE,
)


def classify_failure(args: Sequence[str], returncode: int, stderr: str) -> BackendError:
    """Turn a non-zero exit into the matching BackendError."""
    command = " ".join(args)
    if _PERMISSION_PATTERNS.search(stderr):
        return BackendError.permission_denied(f"Permission denied: {command}", stderr=stderr)
    if _NOT_FOUND_PATTERNS.search(stderr):
        return BackendError.not_found(f"Package not found: {command}", stderr=stderr)
    return BackendError.command_failed(
        f"Command failed: {command}",
        exit_code=returncode,
        stderr=stderr,
    )


def run_command(
    args: Sequence[str],
    *,
    root: bool = False,
    interactive: bool = False,
    timeout: float | None = None,
) -> str:
    """Run a command and return its stdout.

    Args:
        args: Command and arguments.
        root: Prefix the command with ``sudo``.
        interactive: The command may prompt on the terminal (e.g. for a
            sudo password). Other commands run in their own process
            group with no stdin, so a Ctrl-C at the terminal does not
            reach them and they finish before cancellation takes effect.
        timeout: Seconds before the command is killed (None = unbounded).

    Returns:
        Captured stdout.

    Raises:
        BackendError: On any failure.
    """
    if not args:
        raise BackendError.command_failed("Cannot run an empty command", exit_code=-1)

    argv = (["sudo"] if root else []) + list(args)
    if shutil.which(argv[0]) is None:
        raise BackendError.unavailable(f"'{argv[0]}' not found on PATH")

    detached = not (root or interactive)
    logger.debug("Executing: %s", " ".join(argv))
    start = time.monotonic()

    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL if detached else None,
            process_group=0 if detached else None,
        )
    except subprocess.TimeoutExpired as e:
        raise BackendError.timeout(f"Command timed out after {timeout}s: {' '.join(argv)}") from e
    except FileNotFoundError as e:
        raise BackendError.unavailable(f"'{argv[0]}' could not be executed: {e}") from e
    except PermissionError as e:
        raise BackendError.permission_denied(f"Cannot execute '{argv[0]}': {e}") from e

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.debug("→ exit %d in %dms", result.returncode, elapsed_ms)

    if result.returncode != 0:
        raise classify_failure(argv, result.returncode, (result.stderr or "").strip())

    return result.stdout
