from pathlib import Path
from typing import Mapping, Protocol

from scenario_harness.domain.command import Command
from scenario_harness.domain.outcome import ExecutionResult


class CommandRunnerPort(Protocol):
    def run(
        self,
        command: Command,
        timeout: float | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ExecutionResult: ...
