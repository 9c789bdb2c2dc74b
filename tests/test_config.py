from pathlib import Path

from moltpack.config import Config


def test_default_config_is_written(tmp_path):
    path = tmp_path / "moltpack.conf"
    cfg = Config(path)
    assert path.is_file()
    assert cfg.package_manager == "pnpm"
    assert cfg.configuration == "Release"
    assert cfg.cli_name == "moltbot"
    assert cfg.downloader == "python"
    assert cfg.proxy_url is None


def test_values_are_read_back(tmp_path):
    path = tmp_path / "moltpack.conf"
    path.write_text(
        "[general]\n"
        "package_manager = npm\n"
        "output_dir = out\n"
        "cli_name = clawdbot\n"
        "[tools]\n"
        "node_min_version = 20.0.0\n"
        "[release]\n"
        "github_repo = clawdbot/clawdbot\n"
        "[network]\n"
        "downloader = powershell\n"
        "retries = 5\n"
        "verify_ssl = false\n"
        "proxy_url =\n",
        encoding="utf-8",
    )
    cfg = Config(path)
    assert cfg.package_manager == "npm"
    assert cfg.output_dir == Path("out")
    assert cfg.cli_name == "clawdbot"
    assert cfg.node_min_version == "20.0.0"
    assert cfg.pnpm_min_version == "9.0.0"
    assert cfg.github_repo == "clawdbot/clawdbot"
    assert cfg.downloader == "powershell"
    assert cfg.retries == 5
    assert cfg.verify_ssl is False
    assert cfg.proxy_url is None


def test_relative_output_dir_is_anchored_at_project(tmp_path):
    cfg = Config(tmp_path / "moltpack.conf")
    cfg.project_dir = tmp_path / "proj"
    assert cfg.resolve_output_dir() == (tmp_path / "proj").resolve() / "dist-packages"

    cfg.output_dir = tmp_path / "abs"
    assert cfg.resolve_output_dir() == tmp_path / "abs"
