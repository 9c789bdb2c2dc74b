import hashlib
from pathlib import Path
from typing import Optional, Union

from .errors import InstallTestError
from .logger import setup_logger

_logger = setup_logger()

SIDECAR_SUFFIX = ".sha256"


def sha256_file(path: Union[str, Path], chunk_size: int = 65536) -> str:
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def sidecar_path(tarball: Union[str, Path]) -> Path:
    tarball = Path(tarball)
    return tarball.with_name(tarball.name + SIDECAR_SUFFIX)


def write_sidecar(tarball: Union[str, Path]) -> str:
    """Write '<hex>  <filename>' (sha256sum format) next to the tarball."""
    tarball = Path(tarball)
    digest = sha256_file(tarball)
    sidecar_path(tarball).write_text(f"{digest}  {tarball.name}\n", encoding="utf-8")
    return digest


def read_sidecar(tarball: Union[str, Path]) -> Optional[str]:
    path = sidecar_path(tarball)
    if not path.is_file():
        return None
    text = path.read_text(encoding="utf-8").strip()
    return text.split()[0].lower() if text else None


def verify_tarball(tarball: Union[str, Path]) -> bool:
    """
    Verify the tarball against its .sha256 sidecar.
    Returns False when no sidecar exists; raises on mismatch.
    """
    expected = read_sidecar(tarball)
    if expected is None:
        _logger.debug("No checksum sidecar for %s", tarball)
        return False
    calculated = sha256_file(tarball)
    if calculated != expected:
        _logger.critical("Checksum Mismatch! Expected %s, got %s", expected, calculated)
        raise InstallTestError(f"Checksum mismatch for {Path(tarball).name}")
    _logger.info("Checksum verified (%s)", calculated)
    return True
