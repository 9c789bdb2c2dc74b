# tests/run.py
"""
Manual end-to-end run against a real moltbot checkout.

    python tests/run.py C:\\src\\moltbot

Needs node, pnpm, npm (and git for the release check) on PATH.
"""
import io
import sys
from contextlib import redirect_stdout
from pathlib import Path

from moltpack import cli


def run(*args, expect_ok=True):
    """Run a CLI command, capture stdout and report the exit status."""
    print(f"\033[36m[CMD]\033[0m moltpack {' '.join(args)}")

    buf = io.StringIO()
    code = 0
    try:
        with redirect_stdout(buf):
            cli.main(list(args))
    except SystemExit as e:
        code = e.code or 0

    out = buf.getvalue()
    if out:
        print(out)
    if expect_ok is not None and (code == 0) != expect_ok:
        print(f"\033[31mUnexpected exit code {code}\033[0m")
        sys.exit(1)
    return out


def main():
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    project = sys.argv[1]
    # Default output location, so the release step finds the tarball
    output_dir = Path(project).resolve() / "dist-packages"

    run("doctor")

    # Build without tests to keep the run short
    run("-v", "build", "-p", project, "--skip-tests")

    # Install the newest tarball from the output directory and smoke-test it
    run("test-install", str(output_dir), "--uninstall-first", "--cleanup")
    run("test-install", str(output_dir / "does-not-exist.tgz"), expect_ok=False)

    # Release tooling: the check may legitimately fail on an unreleased checkout
    run("release-check", "-p", project, "--allow-dirty", expect_ok=None)
    run("release", "-p", project, "--skip-validate", "--npm", "--dry-run")

    print("\033[32mAll steps completed.\033[0m")


if __name__ == "__main__":
    main()
