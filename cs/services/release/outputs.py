"""Step outputs reported to the CI runner.

On GitHub Actions outputs are appended to the file named by ``GITHUB_OUTPUT``
as ``name=value`` lines; values spanning lines use a heredoc delimiter.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from cs.output.console import ConsoleProtocol, Style


class OutputSink(Protocol):
    def set(self, name: str, value: str) -> None: ...


@dataclass(frozen=True, slots=True)
class GitHubOutputFile:
    path: Path

    def set(self, name: str, value: str) -> None:
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
        else:
            entry = f"{name}={value}\n"
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry)


@dataclass(frozen=True, slots=True)
class ConsoleOutputs:
    console: ConsoleProtocol

    def set(self, name: str, value: str) -> None:
        self.console.print(f"output {name}={value}", Style.DIM)


def _empty_values() -> dict[str, str]:
    return {}


@dataclass
class MemoryOutputs:
    """Keeps the last value per output name (tests, dry runs)."""

    values: dict[str, str] = field(default_factory=_empty_values)

    def set(self, name: str, value: str) -> None:
        self.values[name] = value


def output_sink(path: Path | None, console: ConsoleProtocol) -> OutputSink:
    if path is None:
        return ConsoleOutputs(console=console)
    return GitHubOutputFile(path=path)
