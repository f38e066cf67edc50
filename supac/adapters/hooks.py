"""
Hook runners — execute post-install hooks on behalf of the core.

The core treats a Hook as an opaque token and hands it to a HookRunner.
``ShellHookRunner`` is the default: string commands go through the
shell, argv tuples are executed directly.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod

from supac.core.errors import HookError
from supac.core.models.package import Hook

logger = logging.getLogger(__name__)


class HookRunner(ABC):
    """Runs hooks. Raises HookError on failure."""

    @abstractmethod
    def invoke(self, hook: Hook, timeout: float | None = None) -> None:
        """Run a hook to completion."""


class ShellHookRunner(HookRunner):
    """Run hook commands as subprocesses, inheriting the terminal."""

    def invoke(self, hook: Hook, timeout: float | None = None) -> None:
        use_shell = isinstance(hook.command, str)
        command = hook.command if use_shell else list(hook.command)

        logger.debug("Running hook: %s", hook)
        try:
            result = subprocess.run(
                command,
                shell=use_shell,
                stderr=subprocess.PIPE,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise HookError(f"Hook timed out after {timeout}s: {hook}") from e
        except OSError as e:
            raise HookError(f"Hook could not be started: {e}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise HookError(
                f"Hook exited with code {result.returncode}: {hook}",
                exit_code=result.returncode,
                stderr=stderr,
            )
