from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .errors import CommandError, ToolNotFoundError
from .logger import setup_logger

_logger = setup_logger()

PathLike = Union[str, Path]


@dataclass
class CommandResult:
    cmd: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def which(tool: str) -> str:
    """
    Resolve an executable on PATH.
    On Windows shutil.which honours PATHEXT, so 'npm' resolves to 'npm.cmd'.
    """
    path = shutil.which(tool)
    if not path:
        raise ToolNotFoundError(tool)
    return path


class CommandRunner:
    """
    Synchronous subprocess wrapper: run, check the exit code, raise on failure.
    In dry-run mode commands are only logged.
    """

    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def run(
        self,
        cmd: Sequence[str],
        cwd: Optional[PathLike] = None,
        capture: bool = False,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
    ) -> CommandResult:
        cmd = [str(c) for c in cmd]
        display = " ".join(cmd)

        if self.dry_run:
            _logger.info("[dry-run] %s", display)
            return CommandResult(cmd, 0)

        _logger.debug("$ %s%s", display, f"  (cwd={cwd})" if cwd else "")

        # Resolve the executable up front so a missing tool is reported by name
        resolved = [which(cmd[0])] + cmd[1:]

        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        proc = subprocess.run(
            resolved,
            cwd=str(cwd) if cwd else None,
            env=full_env,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.PIPE if capture else None,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
        result = CommandResult(cmd, proc.returncode, proc.stdout or "", proc.stderr or "")

        if check and result.returncode != 0:
            if result.output:
                _logger.debug(result.output)
            raise CommandError(cmd, result.returncode, result.output)
        return result

    def run_powershell(self, script: str, check: bool = True) -> CommandResult:
        return self.run(["powershell", "-NoProfile", "-Command", script], capture=True, check=check)
