"""Tests for cs.core.config module."""

from __future__ import annotations

from pathlib import Path

from cs.core.config import (
    DEFAULT_API_URL,
    MAX_BODY_CHARACTERS,
    Alternate,
    HostEnvironment,
    Primary,
    ReleaseSettings,
    create_releases_or_disabled,
    load_settings,
    parse_create_releases,
    resolve_backend,
)
from cs.core.result import Err, Ok


def _unexpected_warning(message: str) -> None:
    raise AssertionError(f"unexpected warning: {message}")


def _env(**overrides: str) -> dict[str, str]:
    env = {
        "GITHUB_TOKEN": "ghs_token",
        "GITHUB_REPOSITORY": "acme/widgets",
        "GITHUB_REF": "refs/heads/main",
        "GITHUB_SHA": "0123abcd",
    }
    env.update(overrides)
    return env


class TestParseCreateReleases:
    def test_true_and_false(self) -> None:
        assert parse_create_releases("true") == Ok("enabled")
        assert parse_create_releases("false") == Ok("disabled")
        assert parse_create_releases("") == Ok("disabled")

    def test_aggregate_is_case_insensitive(self) -> None:
        assert parse_create_releases(" Aggregate ") == Ok("aggregate")

    def test_invalid(self) -> None:
        result = parse_create_releases("sometimes")
        assert isinstance(result, Err)
        assert "sometimes" in result.error.message

    def test_invalid_value_warns_and_disables(self) -> None:
        warnings: list[str] = []
        assert create_releases_or_disabled("sometimes", warn=warnings.append) == "disabled"
        assert warnings == ['Invalid value for create releases: sometimes, assuming "false"...']

        assert create_releases_or_disabled("true", warn=_unexpected_warning) == "enabled"


class TestReleaseSettings:
    def test_defaults(self) -> None:
        settings = ReleaseSettings()
        assert settings.version_command == "changeset version"
        assert settings.publish_command is None
        assert settings.has_publish_command is False
        assert settings.create_releases == "enabled"
        assert settings.max_body_characters == MAX_BODY_CHARACTERS
        assert settings.setup_git_user is True

    def test_from_dict(self) -> None:
        result = ReleaseSettings.from_dict(
            {
                "release": {
                    "version": "pnpm changeset version",
                    "publish": "pnpm release",
                    "create_releases": "aggregate",
                    "release_tag_name": "v2024.1",
                    "title": "Release",
                    "commit": "chore: release",
                    "branch": "develop",
                    "max_body_characters": 1000,
                    "setup_git_user": False,
                }
            },
            warn=_unexpected_warning,
        )
        assert isinstance(result, Ok)
        settings = result.value
        assert settings.version_command == "pnpm changeset version"
        assert settings.publish_command == "pnpm release"
        assert settings.has_publish_command is True
        assert settings.create_releases == "aggregate"
        assert settings.release_tag_name == "v2024.1"
        assert settings.pr_title == "Release"
        assert settings.commit_message == "chore: release"
        assert settings.branch == "develop"
        assert settings.max_body_characters == 1000
        assert settings.setup_git_user is False

    def test_from_dict_toml_boolean_create_releases(self) -> None:
        result = ReleaseSettings.from_dict(
            {"release": {"create_releases": False}}, warn=_unexpected_warning
        )
        assert isinstance(result, Ok)
        assert result.value.create_releases == "disabled"

    def test_from_dict_invalid_create_releases_warns(self) -> None:
        warnings: list[str] = []
        result = ReleaseSettings.from_dict(
            {"release": {"create_releases": "maybe"}}, warn=warnings.append
        )
        assert isinstance(result, Ok)
        assert result.value.create_releases == "disabled"
        assert len(warnings) == 1
        assert "maybe" in warnings[0]

    def test_from_dict_rejects_non_positive_limit(self) -> None:
        result = ReleaseSettings.from_dict(
            {"release": {"max_body_characters": 0}}, warn=_unexpected_warning
        )
        assert isinstance(result, Err)

    def test_blank_publish_command_is_absent(self) -> None:
        assert ReleaseSettings(publish_command="   ").has_publish_command is False

    def test_with_overrides_skips_none(self) -> None:
        settings = ReleaseSettings(pr_title="Keep").with_overrides(pr_title=None, branch="next")
        assert settings.pr_title == "Keep"
        assert settings.branch == "next"

    def test_aggregate_needs_tag_name(self) -> None:
        result = ReleaseSettings(create_releases="aggregate").validate()
        assert isinstance(result, Err)
        assert result.error.hint is not None

        ok = ReleaseSettings(create_releases="aggregate", release_tag_name="v1").validate()
        assert isinstance(ok, Ok)


class TestLoadSettings:
    def test_no_path_gives_defaults(self) -> None:
        assert load_settings(None, warn=_unexpected_warning) == Ok(ReleaseSettings())

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_settings(tmp_path / "missing.toml", warn=_unexpected_warning)
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "release.toml"
        path.write_text("[release\n", encoding="utf-8")
        result = load_settings(path, warn=_unexpected_warning)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message

    def test_invalid_value_reports_path(self, tmp_path: Path) -> None:
        path = tmp_path / "release.toml"
        path.write_text('[release]\nmax_body_characters = -5\n', encoding="utf-8")
        result = load_settings(path, warn=_unexpected_warning)
        assert isinstance(result, Err)
        assert result.error.path == path

    def test_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "release.toml"
        path.write_text('[release]\npublish = "changeset publish"\n', encoding="utf-8")
        result = load_settings(path, warn=_unexpected_warning)
        assert isinstance(result, Ok)
        assert result.value.publish_command == "changeset publish"


class TestHostEnvironment:
    def test_from_env(self, tmp_path: Path) -> None:
        result = HostEnvironment.from_env(
            _env(GITHUB_OUTPUT=str(tmp_path / "out"), HOME=str(tmp_path), NPM_TOKEN="npm_x")
        )
        assert isinstance(result, Ok)
        env = result.value
        assert env.owner == "acme"
        assert env.repo == "widgets"
        assert env.ref_branch == "main"
        assert env.sha == "0123abcd"
        assert env.api_url == DEFAULT_API_URL
        assert env.output_file == tmp_path / "out"
        assert env.home == tmp_path
        assert env.npm_token == "npm_x"

    def test_missing_token(self) -> None:
        env = _env()
        del env["GITHUB_TOKEN"]
        result = HostEnvironment.from_env(env)
        assert isinstance(result, Err)
        assert "GITHUB_TOKEN" in result.error.message

    def test_bad_repository(self) -> None:
        result = HostEnvironment.from_env(_env(GITHUB_REPOSITORY="widgets"))
        assert isinstance(result, Err)

    def test_primary_backend_by_default(self) -> None:
        result = HostEnvironment.from_env(_env(GITHUB_API_URL="https://ghe.example.com/api/v3/"))
        assert isinstance(result, Ok)
        assert resolve_backend(result.value) == Primary(
            api_url="https://ghe.example.com/api/v3", token="ghs_token"
        )

    def test_alternate_backend_when_configured(self) -> None:
        result = HostEnvironment.from_env(_env(GITEA_API_URL="https://git.example.com/api/v1"))
        assert isinstance(result, Ok)
        assert resolve_backend(result.value) == Alternate(
            base_url="https://git.example.com/api/v1", token="ghs_token"
        )
