from __future__ import annotations

from dataclasses import dataclass
import difflib
from enum import Enum
from typing import Callable, Union


@dataclass(frozen=True)
class ExecutionResult:
    exit_code: int
    stdout: str
    stderr: str


def normalize_output(text: str) -> str:
    """Drop a single trailing newline and nothing else."""
    if text.endswith("\n"):
        return text[:-1]
    return text


def exact_match(expected: str, actual: str) -> bool:
    return expected == actual


MatchPredicate = Callable[[str, str], bool]

MATCHERS: dict[str, MatchPredicate] = {
    "exact": exact_match,
}

DEFAULT_MATCH = "exact"


class FailureKind(str, Enum):
    SPAWN_ERROR = "spawn_error"
    NON_ZERO_EXIT = "non_zero_exit"
    OUTPUT_MISMATCH = "output_mismatch"
    TIMEOUT_EXCEEDED = "timeout_exceeded"

    @property
    def code(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class Pass:
    actual: str

    @property
    def passed(self) -> bool:
        return True


@dataclass(frozen=True)
class Fail:
    kind: FailureKind
    expected: str
    actual: str
    stderr: str = ""
    message: str = ""
    exit_code: int | None = None

    @property
    def passed(self) -> bool:
        return False

    def diff(self) -> str:
        lines = difflib.unified_diff(
            self.expected.splitlines(),
            self.actual.splitlines(),
            fromfile="expected",
            tofile="actual",
            lineterm="",
        )
        return "\n".join(lines)


StepOutcome = Union[Pass, Fail]
