from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
import shlex
from string import Template
from typing import Mapping


@dataclass(frozen=True)
class Command:
    """Program plus ordered arguments, with optional cwd and timeout overrides.

    Tokens may carry ``$name`` or ``${name}`` placeholders that are filled in by
    :meth:`render`. Braces alone are left untouched, so Candid literals such as
    ``record { id = 1 }`` survive rendering.
    """

    argv: tuple[str, ...]
    cwd: Path | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.argv:
            raise ValueError("Command requires at least a program name")
        object.__setattr__(self, "argv", tuple(str(token) for token in self.argv))

    @property
    def program(self) -> str:
        return self.argv[0]

    def placeholders(self) -> set[str]:
        names: set[str] = set()
        for token in self.argv:
            for match in Template.pattern.finditer(token):
                name = match.group("named") or match.group("braced")
                if name:
                    names.add(name)
        return names

    def render(self, params: Mapping[str, str]) -> Command:
        """Return a copy with every placeholder substituted.

        Raises ``KeyError`` naming the first placeholder with no value.
        """
        values = {key: str(value) for key, value in params.items()}
        argv = tuple(Template(token).substitute(values) for token in self.argv)
        return replace(self, argv=argv)

    def resolve_cwd(self, base: Path | None) -> Path | None:
        if self.cwd is None:
            return base
        if self.cwd.is_absolute() or base is None:
            return self.cwd
        return base / self.cwd

    def display(self) -> str:
        return shlex.join(self.argv)
