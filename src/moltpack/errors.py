from typing import Optional, Sequence


class MoltpackError(Exception):
    """Base exception for every failure the CLI reports."""


class CommandError(MoltpackError):
    def __init__(self, cmd: Sequence[str], returncode: int, output: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        super().__init__(f"'{' '.join(self.cmd)}' failed with exit code {returncode}")


class ToolNotFoundError(MoltpackError):
    def __init__(self, tool: str, hint: Optional[str] = None) -> None:
        self.tool = tool
        msg = f"Required tool '{tool}' not found on PATH"
        if hint:
            msg += f" ({hint})"
        super().__init__(msg)


class PrerequisiteError(MoltpackError):
    pass


class ManifestError(MoltpackError):
    pass


class BuildError(MoltpackError):
    pass


class InstallTestError(MoltpackError):
    pass


class ReleaseError(MoltpackError):
    pass
