from unittest import mock

import pytest

from moltpack.errors import CommandError, PrerequisiteError, ToolNotFoundError
from moltpack.prerequisites import ToolStatus, check_prerequisites, check_tool, doctor_report, required_tools
from moltpack.runner import CommandResult

VERSIONS = {"node": "v22.12.0", "pnpm": "9.15.4", "npm": "10.9.0", "git": "git version 2.47.1", "gh": "gh version 2.63.2"}


def fake_which(tool):
    return f"/usr/bin/{tool}" if tool in VERSIONS else None


def fake_run(self, cmd, cwd=None, capture=False, env=None, check=True):
    return CommandResult(cmd, 0, stdout=VERSIONS[cmd[0]])


@pytest.fixture
def tools():
    with mock.patch("moltpack.runner.shutil.which", side_effect=fake_which), mock.patch(
        "moltpack.runner.CommandRunner.run", fake_run
    ):
        yield VERSIONS


def test_check_tool_ok(tools):
    st = check_tool("node", "22.0.0")
    assert st.ok
    assert st.version == "22.12.0"
    assert st.status == "OK"


def test_check_tool_too_old(tools):
    st = check_tool("node", "24.0.0")
    assert not st.ok
    assert st.status == "TOO OLD"


def test_check_tool_missing(tools):
    st = check_tool("bun")
    assert st.path is None
    assert st.status == "MISSING"


def test_check_tool_version_command_fails():
    def failing(self, cmd, **kwargs):
        raise CommandError(cmd, 1)

    with mock.patch("moltpack.prerequisites.which", return_value="/usr/bin/node"), mock.patch(
        "moltpack.runner.CommandRunner.run", failing
    ):
        st = check_tool("node", "22.0.0")
    assert not st.ok
    assert st.version is None


def test_required_tools_follow_package_manager(config):
    assert [t for t, _ in required_tools(config)] == ["node", "pnpm", "npm"]
    config.package_manager = "npm"
    assert [t for t, _ in required_tools(config)] == ["node", "npm"]


def test_check_prerequisites_passes(config, tools):
    statuses = check_prerequisites(config)
    assert all(st.ok for st in statuses)


def test_check_prerequisites_old_node(config, tools):
    config.node_min_version = "99.0.0"
    with pytest.raises(PrerequisiteError, match="node 22.12.0 is too old"):
        check_prerequisites(config)


def test_check_prerequisites_missing_tool(config, tools):
    config.package_manager = "yarn"
    with pytest.raises(ToolNotFoundError, match="yarn"):
        check_prerequisites(config)


def test_doctor_report_marks_release_tools_optional(config, tools):
    statuses = doctor_report(config)
    optional = {st.name for st in statuses if not st.required}
    assert optional == {"git", "gh"}
    assert isinstance(statuses[0], ToolStatus)
