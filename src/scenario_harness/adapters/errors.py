from dataclasses import dataclass
from typing import Any


@dataclass
class AdapterError(Exception):
    message: str
    details: dict[str, Any] | None = None
    hint: str | None = None
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


class SpawnError(AdapterError):
    pass


@dataclass
class TimeoutExceeded(AdapterError):
    timeout: float | None = None
    stdout: str = ""
    stderr: str = ""


class ScenarioLoadError(AdapterError):
    pass
