"""Credential setup on the CI runner.

- ``.netrc`` so that git can push to the hosting server with the token.
- ``.npmrc`` so that the publish command can authenticate to the npm
  registry. An existing registry auth line is left untouched.
"""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

from cs.core.config import Alternate, ConfigError, HostBackend
from cs.core.result import Err, Ok, Result
from cs.output.console import ConsoleProtocol

DEFAULT_GIT_HOST = "github.com"
NETRC_LOGIN = "github-actions[bot]"

_NPM_AUTH_LINE = re.compile(r"^\s*//registry\.npmjs\.org/:[_-]authToken=", re.IGNORECASE)


def git_host_for(backend: HostBackend) -> str:
    if isinstance(backend, Alternate):
        return urlparse(backend.base_url).hostname or DEFAULT_GIT_HOST
    return DEFAULT_GIT_HOST


def write_netrc(*, home: Path | None, host: str, token: str) -> Result[Path, ConfigError]:
    if home is None:
        return Err(ConfigError("HOME is not set; cannot write .netrc"))

    path = home / ".netrc"
    try:
        path.write_text(f"machine {host}\nlogin {NETRC_LOGIN}\npassword {token}", encoding="utf-8")
    except OSError as e:
        return Err(ConfigError(f"failed to write .netrc: {e}", path=path))
    return Ok(path)


def ensure_npm_auth(
    *,
    home: Path | None,
    npm_token: str | None,
    console: ConsoleProtocol,
) -> Result[Path, ConfigError]:
    """Make sure the user .npmrc carries a registry auth token."""
    if home is None:
        return Err(ConfigError("HOME is not set; cannot write .npmrc"))

    path = home / ".npmrc"
    auth_line = f"//registry.npmjs.org/:_authToken={npm_token or ''}"
    try:
        if not path.exists():
            console.print("No user .npmrc file found, creating one")
            path.write_text(f"{auth_line}\n", encoding="utf-8")
            return Ok(path)

        console.print("Found existing user .npmrc file")
        content = path.read_text(encoding="utf-8")
        if any(_NPM_AUTH_LINE.match(line) for line in content.split("\n")):
            console.print("Found existing auth token for the npm registry in the user .npmrc file")
            return Ok(path)

        console.print("No auth token for the npm registry in the user .npmrc file, adding one")
        with path.open("a", encoding="utf-8") as f:
            f.write(f"\n{auth_line}\n")
    except OSError as e:
        return Err(ConfigError(f"failed to update .npmrc: {e}", path=path))

    return Ok(path)
