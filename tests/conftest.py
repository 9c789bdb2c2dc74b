import io
import json
import tarfile
from pathlib import Path

import pytest

from moltpack.config import Config
from moltpack.errors import CommandError
from moltpack.runner import CommandResult, CommandRunner


class RecordingRunner(CommandRunner):
    """
    Stand-in for CommandRunner: records every command and answers from a table
    of (command prefix -> stdout | exit code | callable).
    """

    def __init__(self, responses=None, dry_run=False):
        super().__init__(dry_run=dry_run)
        self.calls = []
        self.responses = dict(responses or {})

    def run(self, cmd, cwd=None, capture=False, env=None, check=True):
        cmd = [str(c) for c in cmd]
        self.calls.append({"cmd": cmd, "cwd": cwd, "env": env})

        answer = ""
        for prefix in sorted(self.responses, key=len, reverse=True):
            if tuple(cmd[: len(prefix)]) == prefix:
                answer = self.responses[prefix]
                break

        if callable(answer):
            answer = answer(cmd, cwd)
        if isinstance(answer, int):
            if check and answer != 0:
                raise CommandError(cmd, answer)
            return CommandResult(cmd, answer)
        return CommandResult(cmd, 0, stdout=answer)

    @property
    def commands(self):
        return [c["cmd"] for c in self.calls]


@pytest.fixture
def config(tmp_path):
    cfg_path = tmp_path / "cfg" / "moltpack.conf"
    cfg = Config(cfg_path)
    cfg.project_dir = tmp_path / "project"
    cfg.project_dir.mkdir()
    return cfg


@pytest.fixture
def runner():
    return RecordingRunner()


def write_package_json(project_dir: Path, **overrides) -> Path:
    data = {
        "name": "moltbot",
        "version": "2026.1.29",
        "bin": {"moltbot": "moltbot.mjs"},
        "scripts": {"build": "tsc", "test": "vitest run", "ui:build": "vite build"},
        "files": ["dist", "moltbot.mjs"],
    }
    data.update(overrides)
    path = Path(project_dir) / "package.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def make_npm_tarball(path: Path, manifest: dict) -> Path:
    """Create a minimal npm-style tarball containing package/package.json."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(manifest).encode("utf-8")
    with tarfile.open(path, "w:gz") as tf:
        info = tarfile.TarInfo("package/package.json")
        info.size = len(payload)
        tf.addfile(info, io.BytesIO(payload))
    return path


@pytest.fixture
def project(config):
    write_package_json(config.project_dir)
    return config.project_dir
