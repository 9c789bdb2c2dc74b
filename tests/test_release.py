from pathlib import Path
from unittest import mock

import pytest

from moltpack.checksum import write_sidecar
from moltpack.errors import ReleaseError
from moltpack.release import Releaser, changelog_section
from moltpack.runner import CommandRunner

from conftest import RecordingRunner, make_npm_tarball, write_package_json

CHANGELOG = """# Changelog

## [2026.1.29] - 2026-01-29
- Windows packaging scripts
- Install smoke test

## 2026.1.27-beta.1
- First beta

## v2026.1.20

## 2026.1.1
- Initial release
"""


def git_reader(tags="v2026.1.1\nv2026.1.27-beta.1", status="", describe=None):
    responses = {
        ("git", "tag", "--list"): tags,
        ("git", "status", "--porcelain"): status,
        ("git", "describe"): describe if describe is not None else 128,
    }
    return RecordingRunner(responses)


@pytest.fixture
def release_project(project):
    (project / "CHANGELOG.md").write_text(CHANGELOG, encoding="utf-8")
    return project


def test_changelog_section_variants():
    assert changelog_section(CHANGELOG, "2026.1.29") == "- Windows packaging scripts\n- Install smoke test"
    assert changelog_section(CHANGELOG, "2026.1.27-beta.1") == "- First beta"
    assert changelog_section(CHANGELOG, "2026.1.20") == ""
    assert changelog_section(CHANGELOG, "9.9.9") is None


def test_changelog_section_stops_at_any_h2_heading():
    text = "## 2026.1.29\n- Packaging\n\n### Fixed\n- Install test\n\n## Links\n- https://example.com\n"
    assert changelog_section(text, "2026.1.29") == "- Packaging\n\n### Fixed\n- Install test"

    assert changelog_section("## 2026.1.30\n\n## Older releases\n- 2025.x\n", "2026.1.30") == ""


def test_validate_passes(config, release_project):
    result = Releaser(config, reader=git_reader()).validate()
    assert result.ok, [i.format() for i in result.issues]
    assert result.tag == "v2026.1.29"


def test_validate_flags_existing_tag_and_regression(config, release_project):
    reader = git_reader(tags="v2026.1.29\nv2026.2.0")
    result = Releaser(config, reader=reader).validate()
    messages = " ".join(i.message for i in result.issues)
    assert "already exists" in messages
    assert "not newer than the latest tag v2026.2.0" in messages


def test_validate_missing_changelog_entry(config, release_project):
    write_package_json(release_project, version="2026.2.0")
    result = Releaser(config, reader=git_reader()).validate()
    assert not result.ok
    assert "no section for 2026.2.0" in result.issues[0].message


def test_validate_empty_changelog_section(config, release_project):
    write_package_json(release_project, version="2026.1.20")
    result = Releaser(config, reader=git_reader()).validate()
    assert any("is empty" in i.message for i in result.issues)


def test_validate_invalid_version_and_missing_changelog(config, project):
    write_package_json(project, version="1.0")
    result = Releaser(config, reader=git_reader()).validate()
    messages = [i.message for i in result.issues]
    assert any("not a valid semantic version" in m for m in messages)
    assert any("Changelog not found" in m for m in messages)


def test_validate_dirty_tree(config, release_project):
    result = Releaser(config, reader=git_reader(status=" M package.json")).validate()
    assert [i.message for i in result.issues] == ["Working tree has uncommitted changes"]
    assert Releaser(config, reader=git_reader(status=" M package.json")).validate(allow_dirty=True).ok


def test_tag_mode(config, release_project, monkeypatch):
    monkeypatch.delenv("GITHUB_REF_NAME", raising=False)
    reader = git_reader(tags="v2026.1.1\nv2026.1.29", describe="v2026.1.29")
    assert Releaser(config, reader=reader).validate(mode="tag").ok

    result = Releaser(config, reader=git_reader()).validate(mode="tag")
    assert result.issues[0].message == "No release tag detected"

    result = Releaser(config, reader=git_reader()).validate(mode="tag", tag="v2026.1.28")
    assert "does not match" in result.issues[0].message


def test_tag_mode_reads_github_ref(config, release_project, monkeypatch):
    monkeypatch.setenv("GITHUB_REF_NAME", "v2026.1.29")
    monkeypatch.setenv("GITHUB_REF_TYPE", "tag")
    assert Releaser(config, reader=git_reader()).validate(mode="tag").ok


def test_git_failure_is_release_error(config, release_project):
    reader = RecordingRunner({("git", "tag"): 128})
    with pytest.raises(ReleaseError, match="git tag --list"):
        Releaser(config, reader=reader).validate()


@pytest.fixture
def packed(config, release_project):
    tarball = make_npm_tarball(
        config.resolve_output_dir(release_project) / "moltbot-2026.1.29.tgz",
        {"name": "moltbot", "version": "2026.1.29"},
    )
    write_sidecar(tarball)
    return tarball


def test_publish_creates_github_release(config, packed):
    notes_seen = {}

    def capture_notes(cmd, cwd):
        notes_seen["text"] = Path(cmd[cmd.index("--notes-file") + 1]).read_text(encoding="utf-8")
        return ""

    runner = RecordingRunner({("gh", "release", "create"): capture_notes})
    tag = Releaser(config, runner, reader=git_reader()).publish()

    assert tag == "v2026.1.29"
    cmd = runner.commands[0]
    assert cmd[:4] == ["gh", "release", "create", "v2026.1.29"]
    assert str(packed) in cmd
    assert str(packed) + ".sha256" in cmd
    assert cmd[cmd.index("--repo") + 1] == "moltbot/moltbot"
    assert "--prerelease" not in cmd
    assert notes_seen["text"].startswith("- Windows packaging scripts")
    assert len(runner.commands) == 1


def test_publish_npm_prerelease_defaults_to_beta(config, release_project):
    write_package_json(release_project, version="2026.1.30-beta.1")
    with open(release_project / "CHANGELOG.md", "a", encoding="utf-8") as fh:
        fh.write("\n## 2026.1.30-beta.1\n- beta\n")
    tarball = make_npm_tarball(
        config.resolve_output_dir(release_project) / "moltbot-2026.1.30-beta.1.tgz",
        {"name": "moltbot", "version": "2026.1.30-beta.1"},
    )
    runner = RecordingRunner()
    Releaser(config, runner, reader=git_reader()).publish(npm=True, draft=True)

    gh, npm = runner.commands
    assert "--prerelease" in gh and "--draft" in gh
    assert str(tarball) + ".sha256" not in gh
    assert npm == ["npm", "publish", str(tarball), "--tag", "beta"]


def test_publish_stops_on_validation_failure(config, packed, capsys):
    runner = RecordingRunner()
    with pytest.raises(ReleaseError, match="validation failed"):
        Releaser(config, runner, reader=git_reader(tags="v2026.1.29")).publish()
    assert runner.calls == []
    assert "Issues detected" in capsys.readouterr().out


def test_publish_missing_tarball(config, release_project):
    with pytest.raises(ReleaseError, match="Package not found"):
        Releaser(config, RecordingRunner(), reader=git_reader()).publish()


def test_publish_dry_run_executes_nothing(config, packed):
    with mock.patch("moltpack.runner.subprocess.run") as m_run:
        Releaser(config, CommandRunner(dry_run=True), reader=git_reader()).publish(npm=True)
    m_run.assert_not_called()
