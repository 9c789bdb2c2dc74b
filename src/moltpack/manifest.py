import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from .errors import ManifestError

MANIFEST_FILE = "package.json"
LOCKFILES = {
    "pnpm": "pnpm-lock.yaml",
    "npm": "package-lock.json",
    "yarn": "yarn.lock",
    "bun": "bun.lockb",
}


@dataclass(frozen=True)
class Manifest:
    """
    The parts of package.json the packaging pipeline cares about.

    Usage:
      Manifest.load("path/to/project")
      Manifest.from_dict({"name": "moltbot", "version": "1.0.0"})
    """

    name: str
    version: str
    bin: Dict[str, str] = field(default_factory=dict)
    scripts: Dict[str, str] = field(default_factory=dict)
    files: List[str] = field(default_factory=list)
    path: Path = Path(MANIFEST_FILE)

    @classmethod
    def load(cls, project_dir: Union[str, Path]) -> "Manifest":
        path = Path(project_dir) / MANIFEST_FILE
        if not path.is_file():
            raise ManifestError(f"{MANIFEST_FILE} not found in {Path(project_dir).resolve()}")
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
        except (OSError, ValueError) as e:
            raise ManifestError(f"Unable to read {path}: {e}") from e
        return cls.from_dict(data, path=path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], path: Path = Path(MANIFEST_FILE)) -> "Manifest":
        if not isinstance(data, dict):
            raise ManifestError(f"{path} must contain a JSON object")

        name = data.get("name")
        version = data.get("version")
        if not isinstance(name, str) or not name.strip():
            raise ManifestError(f"{path} has no package name")
        if not isinstance(version, str) or not version.strip():
            raise ManifestError(f"{path} has no package version")

        raw_bin = data.get("bin") or {}
        if isinstance(raw_bin, str):
            # A string bin maps to the unscoped package name
            bin_map = {name.split("/")[-1]: raw_bin}
        elif isinstance(raw_bin, dict):
            bin_map = {str(k): str(v) for k, v in raw_bin.items()}
        else:
            raise ManifestError(f"{path} has an invalid 'bin' entry")

        return cls(
            name=name.strip(),
            version=version.strip(),
            bin=bin_map,
            scripts=dict(data.get("scripts") or {}),
            files=list(data.get("files") or []),
            path=path,
        )

    @property
    def project_dir(self) -> Path:
        return self.path.parent

    @property
    def tarball_name(self) -> str:
        """npm pack naming: '@scope/name' -> 'scope-name-<version>.tgz'."""
        base = self.name.lstrip("@").replace("/", "-")
        return f"{base}-{self.version}.tgz"

    @property
    def cli_names(self) -> List[str]:
        return list(self.bin)

    def has_script(self, script: str) -> bool:
        return script in self.scripts

    def lockfile(self, package_manager: str) -> Path:
        return self.project_dir / LOCKFILES.get(package_manager, LOCKFILES["npm"])
