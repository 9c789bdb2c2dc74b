import re
from typing import Optional

# First dotted numeric token in a tool's --version output ("v22.12.0", "git version 2.44.0.windows.1")
TOOL_VERSION_RE = re.compile(r"(\d+(?:\.\d+)*)")

# major.minor.patch with optional -prerelease and +build metadata
SEMVER_RE = re.compile(
    r"""
    (?<![0-9.])
    (?P<major>0|[1-9][0-9]*)
    \.
    (?P<minor>0|[1-9][0-9]*)
    \.
    (?P<patch>0|[1-9][0-9]*)
    (?:-(?P<prerelease>[0-9A-Za-z.-]+))?
    (?:\+(?P<build>[0-9A-Za-z.-]+))?
    """,
    re.VERBOSE,
)


def parse_tool_version(text: str) -> Optional[str]:
    m = TOOL_VERSION_RE.search(text or "")
    return m.group(1) if m else None


def find_semver(text: str) -> Optional[str]:
    """Return the first semantic version found in text, without build metadata."""
    m = SEMVER_RE.search(text or "")
    if not m:
        return None
    core = f"{m.group('major')}.{m.group('minor')}.{m.group('patch')}"
    if m.group("prerelease"):
        core += f"-{m.group('prerelease')}"
    return core


def is_semver(version: str) -> bool:
    m = SEMVER_RE.fullmatch(version or "")
    return m is not None


def is_prerelease(version: str) -> bool:
    m = SEMVER_RE.fullmatch(version or "")
    return bool(m and m.group("prerelease"))


def _chunkcmp(a: str, b: str) -> int:
    """
    Compare two strings chunk by chunk: digit runs as integers, everything else
    lexicographically. If all shared chunks are equal the longer sequence wins.
    """
    pa = re.findall(r"[0-9]+|[A-Za-z]+", a or "")
    pb = re.findall(r"[0-9]+|[A-Za-z]+", b or "")

    for xa, xb in zip(pa, pb):
        if xa.isdigit() and xb.isdigit():
            na, nb = int(xa), int(xb)
            if na != nb:
                return (na > nb) - (na < nb)
        elif xa.isdigit() != xb.isdigit():
            # numeric identifiers sort below alphanumeric ones
            return -1 if xa.isdigit() else 1
        elif xa != xb:
            return (xa > xb) - (xa < xb)

    return (len(pa) > len(pb)) - (len(pa) < len(pb))


def vercmp(a: str, b: str) -> int:
    """
    Compare two versions.
    Returns:
      - negative if a < b
      - zero if equal
      - positive if a > b
    A leading 'v' is ignored, and a pre-release sorts before its release
    (1.2.3-beta.1 < 1.2.3). Missing trailing segments count as zero.
    """
    a = (a or "").lstrip("vV").split("+", 1)[0]
    b = (b or "").lstrip("vV").split("+", 1)[0]
    core_a, _, pre_a = a.partition("-")
    core_b, _, pre_b = b.partition("-")

    na = [int(x) for x in re.findall(r"[0-9]+", core_a)]
    nb = [int(x) for x in re.findall(r"[0-9]+", core_b)]
    width = max(len(na), len(nb))
    na += [0] * (width - len(na))
    nb += [0] * (width - len(nb))
    if na != nb:
        return (na > nb) - (na < nb)

    if pre_a == pre_b:
        return 0
    if not pre_a:
        return 1
    if not pre_b:
        return -1
    return _chunkcmp(pre_a, pre_b)
