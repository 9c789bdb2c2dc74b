"""Release readiness checks and publishing for packaged tarballs.

Validation covers:

1. The version in package.json is a well-formed semantic version.
2. The changelog has a populated section for that version.
3. Version progression is monotonic relative to existing git tags and, in tag
   mode, matches the tag being released.
4. The working tree is clean.

Publishing creates a GitHub release through the ``gh`` CLI with the tarball
and its checksum attached, and optionally publishes the tarball to npm.
"""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass, field
from functools import cmp_to_key
from pathlib import Path
from typing import List, Optional, Union

from .checksum import sidecar_path
from .config import Config
from .errors import CommandError, ReleaseError
from .logger import setup_logger
from .manifest import Manifest
from .runner import CommandRunner
from .versions import is_prerelease, is_semver, vercmp

_logger = setup_logger()

CHANGELOG_HEADING_RE = re.compile(
    r"^##\s*(?:\[\s*)?v?(?P<version>\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?)(?:\s*\])?(?:\s*-.*)?\s*$"
)


@dataclass
class ValidationIssue:
    message: str
    hint: Optional[str] = None

    def format(self) -> str:
        if self.hint:
            return f"{self.message} (Hint: {self.hint})"
        return self.message


@dataclass
class ValidationResult:
    mode: str
    version: str
    tag: str
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def report(self) -> None:
        header = "Release Check Summary"
        print(header)
        print("-" * len(header))
        print(f"Mode: {self.mode}")
        print(f"Version: {self.version or 'N/A'}")
        print(f"Tag: {self.tag or 'N/A'}")
        if not self.ok:
            print("\nIssues detected:")
            for idx, issue in enumerate(self.issues, start=1):
                print(f"  {idx}. {issue.format()}")
        else:
            print("\nAll required checks passed.")


def changelog_section(changelog: str, version: str) -> Optional[str]:
    """Return the body under the heading for version, or None if absent."""
    capture = False
    content: List[str] = []
    for line in changelog.splitlines():
        if capture and line.startswith("## "):
            break
        heading = CHANGELOG_HEADING_RE.match(line)
        if heading:
            if capture:
                break
            capture = heading.group("version") == version
            continue
        if capture:
            content.append(line.rstrip())
    if not capture:
        return None
    return "\n".join(content).strip()


class Releaser:
    def __init__(
        self,
        config: Config,
        runner: Optional[CommandRunner] = None,
        reader: Optional[CommandRunner] = None,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner()
        # Read-only queries run even when publishing is a dry run
        self.reader = reader or CommandRunner()

    def git(self, *args: str, cwd: Optional[Path] = None) -> str:
        try:
            res = self.reader.run(["git", *args], cwd=cwd, capture=True)
        except CommandError as e:
            raise ReleaseError(f"git {' '.join(args)} failed: {e.output.strip() or e}") from e
        return res.stdout.strip()

    def tag_for(self, version: str) -> str:
        return f"{self.config.tag_prefix}{version}"

    def existing_tags(self, project_dir: Path) -> List[str]:
        output = self.git("tag", "--list", f"{self.config.tag_prefix}*", cwd=project_dir)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def current_tag(self, project_dir: Path) -> Optional[str]:
        ref = os.environ.get("GITHUB_REF_NAME")
        if ref and os.environ.get("GITHUB_REF_TYPE", "tag") == "tag":
            return ref
        try:
            return self.git("describe", "--tags", "--exact-match", "HEAD", cwd=project_dir)
        except ReleaseError:
            return None

    # --------------------------------------------------------
    # Validation
    # --------------------------------------------------------

    def validate(
        self,
        project_dir: Optional[Union[str, Path]] = None,
        mode: str = "branch",
        tag: Optional[str] = None,
        changelog: Optional[Union[str, Path]] = None,
        allow_dirty: bool = False,
    ) -> ValidationResult:
        project = Path(project_dir or self.config.project_dir).resolve()
        manifest = Manifest.load(project)
        version = manifest.version
        expected_tag = self.tag_for(version)
        result = ValidationResult(mode=mode, version=version, tag=expected_tag)

        if not is_semver(version):
            result.issues.append(
                ValidationIssue(f"Version '{version}' is not a valid semantic version", "use X.Y.Z or X.Y.Z-pre.N")
            )

        changelog_path = Path(changelog or self.config.changelog)
        if not changelog_path.is_absolute():
            changelog_path = project / changelog_path
        if not changelog_path.is_file():
            result.issues.append(ValidationIssue(f"Changelog not found at {changelog_path}"))
        else:
            body = changelog_section(changelog_path.read_text(encoding="utf-8-sig"), version)
            if body is None:
                result.issues.append(
                    ValidationIssue(f"Changelog has no section for {version}", f"add a '## {version}' heading")
                )
            elif not body:
                result.issues.append(ValidationIssue(f"Changelog section for {version} is empty"))

        tags = self.existing_tags(project)
        if mode == "tag":
            actual = tag or self.current_tag(project)
            if not actual:
                result.issues.append(ValidationIssue("No release tag detected", "pass --tag or run on a tagged commit"))
            elif actual != expected_tag:
                result.issues.append(ValidationIssue(f"Tag {actual} does not match package version {version}"))
        elif expected_tag in tags:
            result.issues.append(ValidationIssue(f"Tag {expected_tag} already exists", "bump the version in package.json"))

        prefix = self.config.tag_prefix
        previous = [t[len(prefix):] for t in tags if t != expected_tag and is_semver(t[len(prefix):])]
        if previous and is_semver(version):
            latest = max(previous, key=cmp_to_key(vercmp))
            if vercmp(version, latest) <= 0:
                result.issues.append(
                    ValidationIssue(f"Version {version} is not newer than the latest tag {prefix}{latest}")
                )

        if not allow_dirty:
            status = self.git("status", "--porcelain", cwd=project)
            if status:
                result.issues.append(ValidationIssue("Working tree has uncommitted changes", "commit or stash them"))

        return result

    # --------------------------------------------------------
    # Publishing
    # --------------------------------------------------------

    def publish(
        self,
        tarball: Optional[Union[str, Path]] = None,
        project_dir: Optional[Union[str, Path]] = None,
        mode: str = "branch",
        tag: Optional[str] = None,
        npm: bool = False,
        dist_tag: Optional[str] = None,
        draft: bool = False,
        skip_validate: bool = False,
        allow_dirty: bool = False,
    ) -> str:
        project = Path(project_dir or self.config.project_dir).resolve()
        manifest = Manifest.load(project)
        version = manifest.version

        if not skip_validate:
            result = self.validate(project, mode=mode, tag=tag, allow_dirty=allow_dirty)
            if not result.ok:
                result.report()
                raise ReleaseError(f"Release validation failed with {len(result.issues)} issue(s)")

        if tarball is None:
            tarball = self.config.resolve_output_dir(project) / manifest.tarball_name
        tarball = Path(tarball)
        if not tarball.is_file():
            raise ReleaseError(f"Package not found: {tarball} (run 'moltpack build' first)")

        release_tag = self.tag_for(version)
        prerelease = is_prerelease(version)

        notes = ""
        changelog_path = project / self.config.changelog
        if changelog_path.is_file():
            notes = changelog_section(changelog_path.read_text(encoding="utf-8-sig"), version) or ""

        assets = [str(tarball)]
        if sidecar_path(tarball).is_file():
            assets.append(str(sidecar_path(tarball)))

        notes_file = tempfile.NamedTemporaryFile("w", suffix=".md", delete=False, encoding="utf-8")
        try:
            notes_file.write(notes or f"Release {release_tag}")
            notes_file.close()

            cmd = [
                "gh", "release", "create", release_tag, *assets,
                "--repo", self.config.github_repo,
                "--title", release_tag,
                "--notes-file", notes_file.name,
            ]
            if prerelease:
                cmd.append("--prerelease")
            if draft:
                cmd.append("--draft")
            _logger.info("Creating GitHub release %s on %s...", release_tag, self.config.github_repo)
            self.runner.run(cmd, cwd=project)
        finally:
            Path(notes_file.name).unlink(missing_ok=True)

        if npm:
            npm_tag = dist_tag or ("beta" if prerelease else "latest")
            _logger.info("Publishing %s to npm (dist-tag %s)...", tarball.name, npm_tag)
            self.runner.run(["npm", "publish", str(tarball), "--tag", npm_tag], cwd=project)

        _logger.info("Release %s published", release_tag)
        return release_tag

