from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .checksum import write_sidecar
from .config import Config
from .errors import BuildError
from .logger import setup_logger
from .manifest import Manifest
from .prerequisites import check_prerequisites
from .runner import CommandRunner

_logger = setup_logger()

CONFIGURATIONS = {
    "Release": "production",
    "Debug": "development",
}


@dataclass
class BuildResult:
    tarball: Path
    version: str
    sha256: str
    steps: List[str] = field(default_factory=list)


class PackageBuilder:
    """
    Linear packaging pipeline:
      1. Check node / package manager versions
      2. Install dependencies
      3. Build UI assets (optional)
      4. Run tests (optional)
      5. Build
      6. Verify build outputs
      7. npm pack into the output directory
    Any non-zero exit code aborts the pipeline.
    """

    def __init__(self, config: Config, runner: Optional[CommandRunner] = None) -> None:
        self.config = config
        self.runner = runner or CommandRunner()
        self.pm = config.package_manager

    def build(
        self,
        configuration: Optional[str] = None,
        project_dir: Optional[Union[str, Path]] = None,
        output_dir: Optional[Union[str, Path]] = None,
        skip_install: bool = False,
        skip_ui: bool = False,
        skip_tests: bool = False,
        skip_checks: bool = False,
    ) -> BuildResult:
        configuration = configuration or self.config.configuration
        if configuration not in CONFIGURATIONS:
            raise BuildError(
                f"Unknown configuration '{configuration}' (expected one of: {', '.join(CONFIGURATIONS)})"
            )
        project = Path(project_dir or self.config.project_dir).resolve()
        out = Path(output_dir) if output_dir else self.config.resolve_output_dir(project)
        if not out.is_absolute():
            out = project / out

        manifest = Manifest.load(project)
        _logger.info("Packaging %s %s (%s)", manifest.name, manifest.version, configuration)
        steps: List[str] = []

        if not skip_checks:
            check_prerequisites(self.config)
            steps.append("prerequisites")

        if not skip_install:
            self.install_dependencies(manifest)
            steps.append("install")

        if skip_ui:
            _logger.info("Skipping UI build (--skip-ui)")
        elif not manifest.has_script("ui:build"):
            _logger.info("No 'ui:build' script; skipping UI build")
        else:
            self._step("Building UI", self.script_cmd("ui:build"), project)
            steps.append("ui")

        if skip_tests:
            _logger.info("Skipping tests (--skip-tests)")
        else:
            self._step("Running tests", self.script_cmd("test"), project)
            steps.append("test")

        env = {"NODE_ENV": CONFIGURATIONS[configuration]}
        self._step("Building", self.script_cmd("build"), project, env=env)
        steps.append("build")

        self.verify_outputs(manifest)
        steps.append("verify")

        tarball = self.pack(manifest, out)
        steps.append("pack")

        digest = write_sidecar(tarball)
        _logger.info("Package created: %s", tarball)
        _logger.info("SHA256: %s", digest)
        return BuildResult(tarball=tarball, version=manifest.version, sha256=digest, steps=steps)

    def script_cmd(self, script: str) -> List[str]:
        # npm needs "run" for non-lifecycle scripts; pnpm/yarn/bun accept the bare name
        if self.pm == "npm":
            return ["npm", "run", script]
        return [self.pm, script]

    def _step(self, title: str, cmd: List[str], cwd: Path, env=None) -> None:
        _logger.info("%s...", title)
        self.runner.run(cmd, cwd=cwd, env=env)

    def install_dependencies(self, manifest: Manifest) -> None:
        lockfile = manifest.lockfile(self.pm)
        if lockfile.is_file():
            if self.pm == "npm":
                cmd = ["npm", "ci"]
            else:
                cmd = [self.pm, "install", "--frozen-lockfile"]
        else:
            _logger.warning("No %s found; installing without a frozen lockfile", lockfile.name)
            cmd = [self.pm, "install"]
        self._step("Installing dependencies", cmd, manifest.project_dir)

    def verify_outputs(self, manifest: Manifest) -> None:
        project = manifest.project_dir
        expected = [project / "dist"] + [project / target for target in manifest.bin.values()]
        missing = [str(p.relative_to(project)) for p in expected if not p.exists()]
        if missing:
            raise BuildError(f"Build outputs missing: {', '.join(missing)}")
        _logger.debug("Build outputs present: %s", ", ".join(str(p) for p in expected))

    def pack(self, manifest: Manifest, output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        _logger.info("Creating tarball in %s...", output_dir)
        res = self.runner.run(
            ["npm", "pack", "--pack-destination", str(output_dir)],
            cwd=manifest.project_dir,
            capture=True,
        )

        # npm prints the tarball filename as the last stdout line
        reported = [line.strip() for line in res.stdout.splitlines() if line.strip().endswith(".tgz")]
        name = reported[-1] if reported else manifest.tarball_name
        tarball = output_dir / Path(name).name
        if not tarball.is_file():
            raise BuildError(f"npm pack did not produce {tarball}")
        return tarball
