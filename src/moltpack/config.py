import configparser
from pathlib import Path
from typing import Optional, Union

from .logger import setup_logger

_logger = setup_logger()

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "moltpack"


class Config:
    def __init__(self, config_path: Optional[Union[str, Path]] = None) -> None:
        if config_path is None:
            self.config_path = DEFAULT_CONFIG_DIR / "moltpack.conf"
        else:
            self.config_path = Path(config_path)
        self.config_dir = self.config_path.parent
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # [general]
        self.project_dir: Path = Path(".")
        self.output_dir: Path = Path("dist-packages")
        self.package_manager: str = "pnpm"
        self.configuration: str = "Release"
        self.cli_name: str = "moltbot"

        # [tools]
        self.node_min_version: str = "22.0.0"
        self.pnpm_min_version: str = "9.0.0"

        # [release]
        self.github_repo: str = "moltbot/moltbot"
        self.changelog: str = "CHANGELOG.md"
        self.tag_prefix: str = "v"

        # [network]
        self.downloader: str = "python"
        self.timeout_connect: int = 10
        self.timeout_read: int = 60
        self.retries: int = 3
        self.use_sspi: bool = False
        self.verify_ssl: bool = True
        self.proxy_url: Optional[str] = None
        self.ca_bundle: Optional[str] = None

        self.load()

    def load(self) -> None:
        parser = configparser.ConfigParser()
        if not self.config_path.exists():
            _logger.warning(f"Config file {self.config_path} not found. Creating default config.")
            self._write_default_config()

        parser.read(self.config_path)

        # [general]
        self.project_dir = Path(parser.get("general", "project_dir", fallback=str(self.project_dir)))
        self.output_dir = Path(parser.get("general", "output_dir", fallback=str(self.output_dir)))
        self.package_manager = parser.get("general", "package_manager", fallback=self.package_manager)
        self.configuration = parser.get("general", "configuration", fallback=self.configuration)
        self.cli_name = parser.get("general", "cli_name", fallback=self.cli_name)

        # [tools]
        self.node_min_version = parser.get("tools", "node_min_version", fallback=self.node_min_version)
        self.pnpm_min_version = parser.get("tools", "pnpm_min_version", fallback=self.pnpm_min_version)

        # [release]
        self.github_repo = parser.get("release", "github_repo", fallback=self.github_repo)
        self.changelog = parser.get("release", "changelog", fallback=self.changelog)
        self.tag_prefix = parser.get("release", "tag_prefix", fallback=self.tag_prefix)

        # [network]
        if parser.has_section("network"):
            self.downloader = parser.get("network", "downloader", fallback=self.downloader)
            self.timeout_connect = parser.getint("network", "timeout_connect", fallback=10)
            self.timeout_read = parser.getint("network", "timeout_read", fallback=60)
            self.retries = parser.getint("network", "retries", fallback=3)
            self.use_sspi = parser.getboolean("network", "use_sspi", fallback=False)
            self.verify_ssl = parser.getboolean("network", "verify_ssl", fallback=True)

            # Empty strings map to None
            ca = parser.get("network", "ca_bundle", fallback=None)
            self.ca_bundle = ca if ca else None
            p_url = parser.get("network", "proxy_url", fallback=None)
            self.proxy_url = p_url if p_url else None

    def _write_default_config(self) -> None:
        parser = configparser.ConfigParser()
        parser["general"] = {
            "project_dir": str(self.project_dir),
            "output_dir": str(self.output_dir),
            "package_manager": self.package_manager,
            "configuration": self.configuration,
            "cli_name": self.cli_name,
        }
        parser["tools"] = {
            "node_min_version": self.node_min_version,
            "pnpm_min_version": self.pnpm_min_version,
        }
        parser["release"] = {
            "github_repo": self.github_repo,
            "changelog": self.changelog,
            "tag_prefix": self.tag_prefix,
        }
        parser["network"] = {
            "downloader": self.downloader,
            "timeout_connect": str(self.timeout_connect),
            "timeout_read": str(self.timeout_read),
            "retries": str(self.retries),
            "use_sspi": str(self.use_sspi).lower(),
            "verify_ssl": str(self.verify_ssl).lower(),
            "ca_bundle": self.ca_bundle or "",
            "proxy_url": self.proxy_url or "",
        }
        with self.config_path.open("w") as f:
            parser.write(f)
        _logger.info(f"Default config written to {self.config_path}")

    def resolve_output_dir(self, project_dir: Optional[Union[str, Path]] = None) -> Path:
        """Relative output directories are anchored at the project root."""
        if self.output_dir.is_absolute():
            return self.output_dir
        return Path(project_dir or self.project_dir).resolve() / self.output_dir
