from __future__ import annotations

from pathlib import Path
from typing import Optional

from .builder import PackageBuilder
from .config import Config
from .downloader import release_asset_url
from .errors import ManifestError, MoltpackError, PrerequisiteError, ReleaseError
from .installtest import InstallTester
from .logger import Colors, setup_logger
from .manifest import Manifest
from .prerequisites import doctor_report, print_report
from .release import Releaser
from .runner import CommandRunner

_logger = setup_logger()

# module-level singletons (initialized by init(cfg))
_cfg: Optional[Config] = None
runner: Optional[CommandRunner] = None
builder: Optional[PackageBuilder] = None
tester: Optional[InstallTester] = None
releaser: Optional[Releaser] = None


# -------------------------
# Initialization
# -------------------------
def init(config: Config) -> None:
    """Initialize singleton instances from config."""
    global _cfg, runner, builder, tester, releaser
    _cfg = config
    runner = CommandRunner()
    builder = PackageBuilder(_cfg, runner)
    tester = InstallTester(_cfg, runner)
    releaser = Releaser(_cfg, runner)
    _logger.debug("operations initialized (project=%s, package manager=%s)", _cfg.project_dir, _cfg.package_manager)


def _ensure_initialized() -> None:
    if not all((_cfg, runner, builder, tester, releaser)):
        raise RuntimeError("operations not initialized; call operations.init(config) first")


def _ok(label: str) -> None:
    print(f"[{Colors.GREEN}OK{Colors.RESET}] {label}")


# -------------------------
# Packaging
# -------------------------
def build(
    project_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    configuration: Optional[str] = None,
    skip_install: bool = False,
    skip_ui: bool = False,
    skip_tests: bool = False,
    skip_checks: bool = False,
) -> Path:
    _ensure_initialized()
    result = builder.build(
        configuration=configuration,
        project_dir=project_dir,
        output_dir=output_dir,
        skip_install=skip_install,
        skip_ui=skip_ui,
        skip_tests=skip_tests,
        skip_checks=skip_checks,
    )
    _ok(f"Built {result.tarball.name}")
    print(f"Package : {result.tarball}")
    print(f"Version : {result.version}")
    print(f"SHA256  : {result.sha256}")
    print(f"Steps   : {', '.join(result.steps)}")
    print(f"\nTest it with: moltpack test-install {result.tarball}")
    return result.tarball


def test_install(
    source: Optional[str] = None,
    method: str = "tarball",
    version_spec: Optional[str] = None,
    package: Optional[str] = None,
    cli_name: Optional[str] = None,
    uninstall_first: bool = False,
    cleanup: bool = False,
) -> None:
    _ensure_initialized()
    result = tester.test(
        source=source,
        method=method,
        version_spec=version_spec,
        package=package,
        cli_name=cli_name,
        uninstall_first=uninstall_first,
        cleanup=cleanup,
    )
    _ok(f"{result.cli} {result.version} installed and responding")
    if result.tarball:
        checksum = "verified" if result.checksum_verified else "not available"
        print(f"Package  : {result.tarball}")
        print(f"Checksum : {checksum}")


def doctor() -> None:
    _ensure_initialized()
    statuses = doctor_report(_cfg)
    print_report(statuses)
    failed = [st.name for st in statuses if st.required and not st.ok]
    if failed:
        raise PrerequisiteError(f"Required tools not ready: {', '.join(failed)}")


# -------------------------
# Release
# -------------------------
def release_check(
    project_dir: Optional[str] = None,
    mode: str = "branch",
    tag: Optional[str] = None,
    changelog: Optional[str] = None,
    allow_dirty: bool = False,
) -> None:
    _ensure_initialized()
    result = releaser.validate(project_dir, mode=mode, tag=tag, changelog=changelog, allow_dirty=allow_dirty)
    result.report()
    if not result.ok:
        raise ReleaseError(f"Release validation failed with {len(result.issues)} issue(s)")


def release(
    tarball: Optional[str] = None,
    project_dir: Optional[str] = None,
    mode: str = "branch",
    tag: Optional[str] = None,
    npm: bool = False,
    dist_tag: Optional[str] = None,
    draft: bool = False,
    skip_validate: bool = False,
    allow_dirty: bool = False,
    dry_run: bool = False,
) -> None:
    _ensure_initialized()
    rel = Releaser(_cfg, CommandRunner(dry_run=True)) if dry_run else releaser
    release_tag = rel.publish(
        tarball=tarball,
        project_dir=project_dir,
        mode=mode,
        tag=tag,
        npm=npm,
        dist_tag=dist_tag,
        draft=draft,
        skip_validate=skip_validate,
        allow_dirty=allow_dirty,
    )
    if dry_run:
        print(f"Dry run complete for {release_tag}; nothing was published.")
    else:
        _ok(f"Released {release_tag}")


def download(
    tag: Optional[str] = None,
    filename: Optional[str] = None,
    repo: Optional[str] = None,
    output_dir: Optional[str] = None,
) -> Path:
    """Fetch a published tarball (and its checksum, if any) from GitHub releases."""
    _ensure_initialized()
    manifest = None
    if not tag or not filename:
        try:
            manifest = Manifest.load(_cfg.project_dir)
        except ManifestError as e:
            raise MoltpackError(f"{e}; pass --tag and --filename explicitly") from e

    tag = tag or f"{_cfg.tag_prefix}{manifest.version}"
    filename = filename or manifest.tarball_name
    url = release_asset_url(repo or _cfg.github_repo, tag, filename)

    target_dir = Path(output_dir) if output_dir else _cfg.resolve_output_dir()
    path = tester.fetch(url, target_dir)
    _ok(f"Downloaded {path}")
    return path
