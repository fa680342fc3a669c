"""Subprocess execution with Result-based error handling.

Two entry points:

- ``run``: blocking, captured output. Used for git, where every step must
  finish before the next one starts.
- ``run_streaming``: async, used for the version and publish tools. Output is
  forwarded line by line while it is captured, because the publish tool's
  stdout is parsed afterwards.

Usage:
    result = await run_streaming(split_command("changeset publish"), cwd=root)
    match result:
        case Ok(stdout):
            events = parse_publish_output(stdout)
        case Err(error):
            print(f"publish failed: {error}")
"""

from __future__ import annotations

import asyncio
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from cs.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_streaming", "split_command"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, -1 when the process could not be started.
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def split_command(script: str) -> list[str]:
    """Split a configured command line into argv."""
    return shlex.split(script)


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)


async def _pump(
    stream: asyncio.StreamReader | None,
    sink: list[str],
    on_line: Callable[[str], None] | None,
) -> None:
    if stream is None:
        return
    while True:
        raw = await stream.readline()
        if not raw:
            break
        line = raw.decode("utf-8", errors="replace")
        sink.append(line)
        if on_line is not None:
            on_line(line.rstrip("\n"))


async def run_streaming(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    on_line: Callable[[str], None] | None = None,
) -> Result[str, ProcessError]:
    """Run a command asynchronously, forwarding and capturing its output.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        on_line: Called with every stdout and stderr line as it arrives.

    Returns:
        Ok(stdout) on exit code 0, Err(ProcessError) otherwise.
    """
    if not cmd:
        return Err(ProcessError(command=(), returncode=-1, stdout="", stderr="empty command"))

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    out: list[str] = []
    err: list[str] = []
    await asyncio.gather(_pump(proc.stdout, out, on_line), _pump(proc.stderr, err, on_line))
    returncode = await proc.wait()

    stdout = "".join(out)
    if returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=returncode,
                stdout=stdout,
                stderr="".join(err),
            )
        )
    return Ok(stdout)
