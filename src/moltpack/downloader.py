from __future__ import annotations

import atexit
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import requests
import urllib3
from requests.adapters import HTTPAdapter, Retry
from tqdm import tqdm

# Optional: SSPI Authentication (NTLM/Kerberos) behind corporate proxies
try:
    from requests_negotiate_sspi import HttpNegotiateAuth
except ImportError:
    HttpNegotiateAuth = None

from .config import Config
from .errors import MoltpackError
from .logger import setup_logger
from .runner import CommandRunner

_logger = setup_logger()

GITHUB_RELEASE_URL = "https://github.com/{repo}/releases/download/{tag}/{filename}"


class DownloaderType(Enum):
    POWERSHELL = "powershell"
    PYTHON = "python"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return bool(value) and value.lower() in (item.value for item in cls)


def release_asset_url(repo: str, tag: str, filename: str) -> str:
    return GITHUB_RELEASE_URL.format(repo=repo.strip("/"), tag=tag, filename=filename)


class Downloader:
    """
    Fetches release tarballs. The python backend renews its session once on
    proxy auth or connection failures.
    """

    def __init__(self, config: Config, runner: Optional[CommandRunner] = None) -> None:
        self.config = config
        self.runner = runner or CommandRunner()

        dtype = (getattr(self.config, "downloader", "python") or "python").lower()
        if not DownloaderType.has_value(dtype):
            raise MoltpackError(f"Invalid downloader '{dtype}'")
        self.backend = DownloaderType(dtype)

        self.use_sspi = getattr(self.config, "use_sspi", False)
        self.proxy_url = getattr(self.config, "proxy_url", None)
        self.verify_ssl = getattr(self.config, "verify_ssl", True)
        self.ca_bundle = getattr(self.config, "ca_bundle", None)
        self.retries = getattr(self.config, "retries", 3)

        # (connect, read)
        self.timeout = (
            getattr(self.config, "timeout_connect", 10),
            getattr(self.config, "timeout_read", 60),
        )

        self.session: Optional[requests.Session] = None

        if self.backend == DownloaderType.PYTHON:
            self._init_session()
            atexit.register(self.close)

    def _init_session(self) -> None:
        """Create (or hard-reset) the requests Session."""
        if self.session:
            self.session.close()

        self.session = requests.Session()

        # Ignore environment proxies; the config is authoritative
        self.session.trust_env = False

        if self.proxy_url:
            self.session.proxies.update({"http": self.proxy_url, "https": self.proxy_url})

        retry_strategy = Retry(
            total=self.retries,
            backoff_factor=0.3,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        if not self.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            self.session.verify = False
            _logger.warning("SSL verification disabled (Insecure).")
        else:
            self.session.verify = self.ca_bundle if self.ca_bundle else True

        if self.use_sspi:
            if HttpNegotiateAuth:
                _logger.debug("Enabling SSPI (Negotiate/Kerberos) authentication")
                self.session.auth = HttpNegotiateAuth()
            else:
                _logger.warning("SSPI requested but 'requests-negotiate-sspi' not found.")

    def close(self) -> None:
        if self.session:
            self.session.close()

    # --------------------------------------------------------
    # Download Methods
    # --------------------------------------------------------

    def download_to_file(self, url: str, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if self.backend == DownloaderType.PYTHON:
            self._download_python(url, output_path)
        else:
            self._download_powershell(url, output_path)
        return output_path

    def _download_python(self, url: str, output_path: Path) -> None:
        max_logic_retries = 2
        # Stream into a side file; only a complete download gets the real name
        part_path = output_path.with_name(output_path.name + ".part")

        try:
            for attempt in range(1, max_logic_retries + 1):
                try:
                    if not self.session:
                        self._init_session()

                    _logger.debug("Downloading %s (Attempt %d)", url, attempt)

                    with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                        if resp.status_code == 407:
                            raise requests.exceptions.ProxyError("407 Proxy Auth Required - Session Expired")

                        resp.raise_for_status()

                        total = int(resp.headers.get("content-length", 0) or 0)
                        with open(part_path, "wb") as fh:
                            with tqdm(total=total, unit="B", unit_scale=True, desc=output_path.name) as bar:
                                for chunk in resp.iter_content(chunk_size=8192):
                                    if chunk:
                                        fh.write(chunk)
                                        bar.update(len(chunk))

                    part_path.replace(output_path)
                    _logger.debug("Downloaded %s -> %s", url, output_path)
                    return

                except (
                    requests.exceptions.ProxyError,
                    requests.exceptions.ChunkedEncodingError,
                    requests.exceptions.ConnectionError,
                    requests.exceptions.SSLError,
                ) as e:
                    if attempt < max_logic_retries:
                        _logger.warning("Connection rejected (%s). Renewing session and retrying...", e)
                        self._init_session()
                    else:
                        _logger.error("Failed to download %s after %d attempts.", url, max_logic_retries)
                        raise MoltpackError(f"Download failed for {url}: {e}") from e
                except requests.exceptions.HTTPError as e:
                    raise MoltpackError(f"Download failed for {url}: {e}") from e
        finally:
            part_path.unlink(missing_ok=True)

    def download_to_memory(self, url: str, max_size_mb: int = 1) -> Optional[bytes]:
        """
        Fetch a small file (checksum sidecars). Returns None on 404.
        """
        if self.backend != DownloaderType.PYTHON:
            return self._download_powershell_memory(url)

        if not self.session:
            self._init_session()
        _logger.debug("Downloading %s to memory", url)
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                if resp.status_code == 404:
                    return None
                resp.raise_for_status()
                content_len = int(resp.headers.get("content-length", 0) or 0)
                if content_len > max_size_mb * 1024 * 1024:
                    raise MoltpackError(f"File too large ({content_len} bytes) for memory download")
                return resp.content
        except requests.exceptions.RequestException as e:
            raise MoltpackError(f"Download failed for {url}: {e}") from e

    # --------------------------------------------------------
    # PowerShell backend
    # --------------------------------------------------------

    def _download_powershell(self, url: str, output_path: Path) -> None:
        ps_cmd = (
            "$ProgressPreference = 'SilentlyContinue'; "
            "[Net.ServicePointManager]::SecurityProtocol = [Net.SecurityProtocolType]::Tls12; "
            f"Invoke-WebRequest -Uri '{url}' -OutFile '{output_path}' -UseDefaultCredentials"
        )
        if self.proxy_url:
            ps_cmd += f" -Proxy '{self.proxy_url}'"

        self.runner.run_powershell(ps_cmd)
        _logger.debug("Downloaded %s (PowerShell)", url)

    def _download_powershell_memory(self, url: str) -> Optional[bytes]:
        tf = tempfile.NamedTemporaryFile(delete=False)
        tf.close()
        try:
            try:
                self._download_powershell(url, Path(tf.name))
            except MoltpackError as e:
                # Invoke-WebRequest offers no status code here; treat failure as absent
                _logger.debug("PowerShell fetch of %s failed: %s", url, e)
                return None
            return Path(tf.name).read_bytes()
        finally:
            Path(tf.name).unlink(missing_ok=True)
