"""Typed configuration loading and access.

Configuration comes from three places, resolved once at startup:

- an optional TOML file with a ``[release]`` table (``--config``),
- CLI options (which fall back to GitHub Actions ``INPUT_*`` variables),
- the host environment (token, repository, triggering ref and sha).

The host environment also decides which API backend is used: when
``GITEA_API_URL`` is set every host call goes to that alternate server,
otherwise to the GitHub REST API. That choice is made here and nowhere else.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeAlias

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_str, get_table

__all__ = [
    "Alternate",
    "ConfigError",
    "CreateReleases",
    "DEFAULT_COMMIT_MESSAGE",
    "DEFAULT_PR_TITLE",
    "DEFAULT_VERSION_COMMAND",
    "HostBackend",
    "HostEnvironment",
    "MAX_BODY_CHARACTERS",
    "Primary",
    "ReleaseSettings",
    "create_releases_or_disabled",
    "load_settings",
    "parse_create_releases",
    "resolve_backend",
]

# GitHub rejects issue/PR bodies above 65536 characters; stay well below.
MAX_BODY_CHARACTERS = 60_000

DEFAULT_PR_TITLE = "Version Packages"
DEFAULT_COMMIT_MESSAGE = "Version Packages"
DEFAULT_VERSION_COMMAND = "changeset version"
DEFAULT_API_URL = "https://api.github.com"

CreateReleases = Literal["disabled", "enabled", "aggregate"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Required configuration is missing or invalid."""

    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class ReleaseSettings:
    """Behaviour knobs of the version and publish runs."""

    version_command: str = DEFAULT_VERSION_COMMAND
    publish_command: str | None = None
    create_releases: CreateReleases = "enabled"
    release_tag_name: str | None = None
    release_name: str | None = None
    pr_title: str = DEFAULT_PR_TITLE
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    branch: str | None = None
    max_body_characters: int = MAX_BODY_CHARACTERS
    setup_git_user: bool = True

    @property
    def has_publish_command(self) -> bool:
        return bool(self.publish_command and self.publish_command.strip())

    @classmethod
    def from_dict(
        cls, data: Mapping[str, object], *, warn: Callable[[str], None]
    ) -> Result[ReleaseSettings, ConfigError]:
        """Create settings from a parsed TOML document (``[release]`` table)."""
        release: StrDict = get_table(data, "release") or {}

        create_releases: CreateReleases = "enabled"
        raw_mode = release.get("create_releases")
        if raw_mode is not None:
            create_releases = create_releases_or_disabled(str(raw_mode), warn=warn)

        max_chars = get_int(release, "max_body_characters")
        if max_chars is not None and max_chars <= 0:
            return Err(ConfigError(f"max_body_characters must be positive: {max_chars}"))

        setup_git_user = get_bool(release, "setup_git_user")

        return Ok(
            cls(
                version_command=get_str(release, "version") or DEFAULT_VERSION_COMMAND,
                publish_command=get_str(release, "publish"),
                create_releases=create_releases,
                release_tag_name=get_str(release, "release_tag_name"),
                release_name=get_str(release, "release_name"),
                pr_title=get_str(release, "title") or DEFAULT_PR_TITLE,
                commit_message=get_str(release, "commit") or DEFAULT_COMMIT_MESSAGE,
                branch=get_str(release, "branch"),
                max_body_characters=max_chars or MAX_BODY_CHARACTERS,
                setup_git_user=True if setup_git_user is None else setup_git_user,
            )
        )

    def with_overrides(self, **overrides: object) -> ReleaseSettings:
        """Return a copy where every non-None override replaces the field."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]

    def validate(self) -> Result[None, ConfigError]:
        if self.create_releases == "aggregate" and not self.release_tag_name:
            return Err(
                ConfigError(
                    "aggregate releases need a tag name",
                    hint="Set --release-tag-name (INPUT_GITHUBTAGNAME)",
                )
            )
        return Ok(None)


def parse_create_releases(value: str) -> Result[CreateReleases, ConfigError]:
    """Map the ``createGithubReleases`` input onto a release mode."""
    match value.strip().lower():
        case "true" | "enabled":
            return Ok("enabled")
        case "false" | "disabled" | "":
            return Ok("disabled")
        case "aggregate":
            return Ok("aggregate")
        case _:
            return Err(ConfigError(f"Invalid value for create releases: {value}"))


def create_releases_or_disabled(value: str, *, warn: Callable[[str], None]) -> CreateReleases:
    """Like ``parse_create_releases`` but an invalid value warns and disables releases."""
    mode = parse_create_releases(value)
    if isinstance(mode, Err):
        warn(f'Invalid value for create releases: {value}, assuming "false"...')
        return "disabled"
    return mode.value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_settings(
    path: Path | None, *, warn: Callable[[str], None]
) -> Result[ReleaseSettings, ConfigError]:
    """Load settings from ``path``, or defaults when no file is given."""
    if path is None:
        return Ok(ReleaseSettings())

    parsed = _parse_toml(path)
    if isinstance(parsed, Err):
        return parsed

    settings = ReleaseSettings.from_dict(parsed.value, warn=warn)
    if isinstance(settings, Err):
        return Err(dataclasses.replace(settings.error, path=path))
    return settings


# -----------------------------------------------------------------------------
# Host environment and backend selection
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Primary:
    """GitHub REST API."""

    api_url: str
    token: str


@dataclass(frozen=True, slots=True)
class Alternate:
    """Gitea-compatible API reached with plain HTTP."""

    base_url: str
    token: str


HostBackend: TypeAlias = Primary | Alternate


@dataclass(frozen=True, slots=True)
class HostEnvironment:
    """Values provided by the CI runner."""

    token: str
    repository: str
    ref: str
    sha: str
    api_url: str = DEFAULT_API_URL
    alternate_api_url: str | None = None
    output_file: Path | None = None
    npm_token: str | None = None
    home: Path | None = None

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.repository.split("/", 1)[1]

    @property
    def ref_branch(self) -> str:
        return self.ref.removeprefix("refs/heads/")

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> Result[HostEnvironment, ConfigError]:
        token = (env.get("GITHUB_TOKEN") or "").strip()
        if not token:
            return Err(
                ConfigError(
                    "GITHUB_TOKEN is not set",
                    hint="Pass it to the step: GITHUB_TOKEN: ${{ secrets.GITHUB_TOKEN }}",
                )
            )

        repository = (env.get("GITHUB_REPOSITORY") or "").strip()
        if repository.count("/") != 1:
            return Err(ConfigError(f"GITHUB_REPOSITORY must be owner/repo, got: {repository!r}"))

        output = (env.get("GITHUB_OUTPUT") or "").strip()
        home = (env.get("HOME") or "").strip()

        return Ok(
            cls(
                token=token,
                repository=repository,
                ref=(env.get("GITHUB_REF") or "").strip(),
                sha=(env.get("GITHUB_SHA") or "").strip(),
                api_url=(env.get("GITHUB_API_URL") or "").strip().rstrip("/") or DEFAULT_API_URL,
                alternate_api_url=(env.get("GITEA_API_URL") or "").strip().rstrip("/") or None,
                output_file=Path(output) if output else None,
                npm_token=(env.get("NPM_TOKEN") or "").strip() or None,
                home=Path(home) if home else None,
            )
        )


def resolve_backend(env: HostEnvironment) -> HostBackend:
    if env.alternate_api_url:
        return Alternate(base_url=env.alternate_api_url, token=env.token)
    return Primary(api_url=env.api_url, token=env.token)
