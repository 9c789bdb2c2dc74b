from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .config import Config
from .errors import CommandError, PrerequisiteError, ToolNotFoundError
from .logger import Colors, setup_logger
from .runner import CommandRunner, which
from .versions import parse_tool_version, vercmp

_logger = setup_logger()

INSTALL_HINTS = {
    "node": "install Node.js from https://nodejs.org/",
    "pnpm": "run 'corepack enable' or 'npm install -g pnpm'",
    "npm": "npm ships with Node.js",
    "git": "install Git for Windows from https://git-scm.com/",
    "gh": "install the GitHub CLI from https://cli.github.com/",
}


@dataclass
class ToolStatus:
    name: str
    path: Optional[str]
    version: Optional[str]
    min_version: Optional[str]
    ok: bool
    required: bool = True

    @property
    def status(self) -> str:
        if self.ok:
            return "OK"
        if self.path is None:
            return "MISSING"
        return "TOO OLD"


def check_tool(tool: str, min_version: Optional[str] = None, required: bool = True) -> ToolStatus:
    """Locate a tool and compare its reported --version against min_version."""
    try:
        path = which(tool)
    except ToolNotFoundError:
        return ToolStatus(tool, None, None, min_version, ok=False, required=required)

    try:
        res = CommandRunner().run([tool, "--version"], capture=True)
    except CommandError as e:
        _logger.debug("'%s --version' failed: %s", tool, e)
        return ToolStatus(tool, path, None, min_version, ok=False, required=required)

    version = parse_tool_version(res.stdout or res.stderr)
    ok = version is not None
    if ok and min_version:
        ok = vercmp(version, min_version) >= 0
    return ToolStatus(tool, path, version, min_version, ok=ok, required=required)


def required_tools(config: Config) -> List[Tuple[str, Optional[str]]]:
    tools: List[Tuple[str, Optional[str]]] = [("node", config.node_min_version)]
    pm = config.package_manager
    if pm == "pnpm":
        tools.append((pm, config.pnpm_min_version))
    elif pm != "npm":
        tools.append((pm, None))
    # npm performs the pack and global install steps regardless of package manager
    tools.append(("npm", None))
    return tools


def check_prerequisites(config: Config, extra: Iterable[str] = ()) -> List[ToolStatus]:
    """
    Check every required tool. Raises on the first missing or outdated one,
    after all have been probed and logged.
    """
    statuses = [check_tool(name, minv) for name, minv in required_tools(config)]
    statuses += [check_tool(name) for name in extra]

    for st in statuses:
        if st.ok:
            _logger.info("%s %s (%s)", st.name, st.version, st.path)

    for st in statuses:
        if st.path is None:
            raise ToolNotFoundError(st.name, INSTALL_HINTS.get(st.name))
        if not st.ok:
            if st.version is None:
                raise PrerequisiteError(f"Could not determine the version of '{st.name}'")
            raise PrerequisiteError(
                f"{st.name} {st.version} is too old; version {st.min_version} or newer is required"
            )
    return statuses


def doctor_report(config: Config) -> List[ToolStatus]:
    """Probe required tools plus the optional release tooling (git, gh)."""
    statuses = [check_tool(name, minv) for name, minv in required_tools(config)]
    statuses += [check_tool(name, required=False) for name in ("git", "gh")]
    return statuses


def print_report(statuses: List[ToolStatus]) -> None:
    print(f"{'TOOL':<8} {'VERSION':<16} {'REQUIRED':<10} {'STATUS':<10} {'PATH'}")
    print("-" * 80)
    for st in statuses:
        color = Colors.GREEN if st.ok else (Colors.RED if st.required else Colors.YELLOW)
        req = st.min_version or ("-" if st.required else "optional")
        print(
            f"{st.name:<8} {st.version or '-':<16} {req:<10} "
            f"{color}{st.status:<10}{Colors.RESET} {st.path or ''}"
        )
