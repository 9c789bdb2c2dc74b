from __future__ import annotations

import json
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .checksum import sidecar_path, verify_tarball
from .config import Config
from .downloader import Downloader
from .errors import CommandError, InstallTestError, ManifestError
from .logger import setup_logger
from .manifest import Manifest
from .runner import CommandRunner
from .versions import find_semver, is_semver

_logger = setup_logger()

METHODS = ("tarball", "registry")


@dataclass
class InstallTestResult:
    package: str
    version: str
    cli: str
    tarball: Optional[Path] = None
    help_ok: bool = False
    checksum_verified: bool = False


def find_latest_tarball(directory: Union[str, Path]) -> Path:
    directory = Path(directory)
    candidates = [p for p in directory.glob("*.tgz") if p.is_file()]
    if not candidates:
        raise InstallTestError(f"No .tgz packages found in {directory}")
    return max(candidates, key=lambda p: p.stat().st_mtime)


def read_tarball_manifest(tarball: Union[str, Path]) -> Manifest:
    """Read package/package.json out of an npm tarball."""
    try:
        with tarfile.open(tarball, "r:gz") as tf:
            member = tf.extractfile("package/package.json")
            if member is None:
                raise InstallTestError(f"{tarball} has no package/package.json")
            data = json.loads(member.read().decode("utf-8-sig"))
    except (tarfile.TarError, KeyError, OSError, ValueError) as e:
        raise InstallTestError(f"Unable to read package.json from {tarball}: {e}") from e
    try:
        return Manifest.from_dict(data, path=Path("package/package.json"))
    except ManifestError as e:
        raise InstallTestError(str(e)) from e


class InstallTester:
    """
    Installs a package globally and checks that its CLI answers
    --version and --help.
    """

    def __init__(
        self,
        config: Config,
        runner: Optional[CommandRunner] = None,
        downloader: Optional[Downloader] = None,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner()
        self._downloader = downloader

    @property
    def downloader(self) -> Downloader:
        if self._downloader is None:
            self._downloader = Downloader(self.config, self.runner)
        return self._downloader

    # --------------------------------------------------------
    # Tarball discovery
    # --------------------------------------------------------

    def resolve_tarball(self, source: Optional[str], download_dir: Optional[Path] = None) -> Path:
        if not source:
            source = str(self.config.resolve_output_dir())

        if source.startswith(("http://", "https://")):
            return self.fetch(source, download_dir or self.config.resolve_output_dir())

        path = Path(source)
        if path.is_dir():
            tarball = find_latest_tarball(path)
            _logger.info("Using newest package in %s: %s", path, tarball.name)
            return tarball
        if path.is_file():
            return path
        raise InstallTestError(f"Package not found: {source}")

    def fetch(self, url: str, download_dir: Path) -> Path:
        filename = url.rstrip("/").rsplit("/", 1)[-1]
        if not filename.endswith(".tgz"):
            raise InstallTestError(f"URL does not point at a .tgz package: {url}")
        target = Path(download_dir) / filename
        _logger.info("Downloading %s...", url)
        self.downloader.download_to_file(url, target)

        sidecar = self.downloader.download_to_memory(url + ".sha256")
        if sidecar:
            sidecar_path(target).write_bytes(sidecar)
        else:
            # A leftover sidecar would describe some other build
            sidecar_path(target).unlink(missing_ok=True)
        return target

    # --------------------------------------------------------
    # Test
    # --------------------------------------------------------

    def test(
        self,
        source: Optional[str] = None,
        method: str = "tarball",
        version_spec: Optional[str] = None,
        package: Optional[str] = None,
        cli_name: Optional[str] = None,
        uninstall_first: bool = False,
        cleanup: bool = False,
    ) -> InstallTestResult:
        if method not in METHODS:
            raise InstallTestError(f"Unknown install method '{method}' (expected one of: {', '.join(METHODS)})")

        tarball: Optional[Path] = None
        checksum_ok = False

        if method == "tarball":
            if package or version_spec:
                raise InstallTestError("--package and --version-spec only apply to --method registry")
            tarball = self.resolve_tarball(source).resolve()
            checksum_ok = verify_tarball(tarball)
            manifest = read_tarball_manifest(tarball)
            name = manifest.name
            expected = manifest.version
            install_target = str(tarball)
        else:
            manifest = self._project_manifest()
            name = package or (manifest.name if manifest else None)
            if not name:
                raise InstallTestError("Registry install needs --package or a package.json in the project directory")
            spec = version_spec or (manifest.version if manifest else None)
            if not spec:
                raise InstallTestError("Registry install needs --version-spec")
            expected = spec if is_semver(spec) else None
            install_target = f"{name}@{spec}"

        cli = cli_name or (manifest.cli_names[0] if manifest and manifest.cli_names else self.config.cli_name)

        if uninstall_first:
            self.uninstall(name)

        _logger.info("Installing %s globally...", install_target)
        self.runner.run(["npm", "install", "-g", install_target])

        version = self.check_version(cli, expected)
        self.check_help(cli)

        _logger.info("Install test passed: %s %s", cli, version)

        if cleanup:
            self.uninstall(name)

        return InstallTestResult(
            package=name,
            version=version,
            cli=cli,
            tarball=tarball,
            help_ok=True,
            checksum_verified=checksum_ok,
        )

    def _project_manifest(self) -> Optional[Manifest]:
        try:
            return Manifest.load(self.config.project_dir)
        except ManifestError:
            return None

    def uninstall(self, name: str) -> None:
        _logger.info("Uninstalling %s...", name)
        try:
            self.runner.run(["npm", "uninstall", "-g", name])
        except CommandError as e:
            # Not installed is not a failure
            _logger.warning("Uninstall of %s failed (%s); continuing", name, e)

    def check_version(self, cli: str, expected: Optional[str] = None) -> str:
        try:
            res = self.runner.run([cli, "--version"], capture=True)
        except CommandError as e:
            raise InstallTestError(f"'{cli} --version' failed with exit code {e.returncode}") from e

        found = find_semver(res.output)
        if not found:
            raise InstallTestError(f"'{cli} --version' did not report a version: {res.output.strip()!r}")
        if expected and found != expected:
            raise InstallTestError(f"Installed {cli} reports {found}, expected {expected}")
        _logger.info("Version check passed: %s", found)
        return found

    def check_help(self, cli: str) -> None:
        try:
            res = self.runner.run([cli, "--help"], capture=True)
        except CommandError as e:
            raise InstallTestError(f"'{cli} --help' failed with exit code {e.returncode}") from e

        text = res.output.lower()
        if "usage" not in text and cli.lower() not in text:
            raise InstallTestError(f"'{cli} --help' output does not look like help text")
        _logger.info("Help check passed")
