from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from cs.core.config import (
    HostBackend,
    HostEnvironment,
    ReleaseSettings,
    load_settings,
    resolve_backend,
)
from cs.core.result import Err, Ok, Result
from cs.output.console import ConsoleProtocol, RichConsole
from cs.services.release.errors import ConfigError


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    env: HostEnvironment
    backend: HostBackend
    settings: ReleaseSettings
    console: ConsoleProtocol


def build_console() -> ConsoleProtocol:
    return RichConsole(annotations=os.environ.get("GITHUB_ACTIONS") == "true")


def build_context(
    *,
    console: ConsoleProtocol,
    config_path: Path | None,
    cwd: Path | None,
) -> Result[CLIContext, ConfigError]:
    env = HostEnvironment.from_env(os.environ)
    if isinstance(env, Err):
        return env

    settings = load_settings(config_path, warn=console.warning)
    if isinstance(settings, Err):
        return settings

    root = (cwd or Path.cwd()).expanduser().resolve()
    if not root.is_dir():
        return Err(ConfigError(f"working directory does not exist: {root}"))

    return Ok(
        CLIContext(
            root=root,
            env=env.value,
            backend=resolve_backend(env.value),
            settings=settings.value,
            console=console,
        )
    )
