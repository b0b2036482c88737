from __future__ import annotations

import os
from pathlib import Path
import signal
import subprocess
import time
from typing import Mapping

from scenario_harness.adapters.errors import SpawnError, TimeoutExceeded
from scenario_harness.domain.command import Command
from scenario_harness.domain.outcome import ExecutionResult
from scenario_harness.shared.logging import get_logger

logger = get_logger(__name__)


def _kill(proc: subprocess.Popen[str]) -> None:
    # The child leads its own session so that helpers it forked die with it.
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError):
            pass
    proc.kill()


def _text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class SubprocessRunner:
    """Run a command to completion and capture its output.

    Exit codes are reported, not judged. The child is always reaped and its
    pipes closed before ``run`` returns or raises.
    """

    def run(
        self,
        command: Command,
        timeout: float | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ExecutionResult:
        workdir = cwd if cwd is not None else command.cwd
        display = command.display()
        logger.debug("spawn", command=display, cwd=str(workdir) if workdir else None)
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                list(command.argv),
                cwd=workdir,
                env={**os.environ, **env} if env else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            # ValueError covers argv that exec cannot take, e.g. embedded NULs.
            reason = getattr(e, "strerror", None) or e
            raise SpawnError(
                f"Could not start {command.program}: {reason}",
                details={"command": display, "cwd": str(workdir) if workdir else None},
                cause=e,
            ) from e

        with proc:
            try:
                stdout, stderr = proc.communicate(timeout=timeout)
            except subprocess.TimeoutExpired as e:
                _kill(proc)
                stdout, stderr = proc.communicate()
                logger.warning("timeout", command=display, timeout=timeout)
                raise TimeoutExceeded(
                    f"{command.program} did not finish within {timeout}s",
                    details={"command": display},
                    cause=e,
                    timeout=timeout,
                    stdout=_text(stdout) or _text(e.stdout),
                    stderr=_text(stderr) or _text(e.stderr),
                ) from e
            except KeyboardInterrupt:
                # The child is outside our process group and missed the SIGINT.
                _kill(proc)
                raise

        logger.debug(
            "exit",
            command=display,
            exit_code=proc.returncode,
            elapsed=round(time.monotonic() - started, 3),
        )
        return ExecutionResult(
            exit_code=proc.returncode,
            stdout=_text(stdout),
            stderr=_text(stderr),
        )
