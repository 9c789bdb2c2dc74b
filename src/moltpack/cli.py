# cli.py
import argparse
import sys

from . import __version__, operations
from .builder import CONFIGURATIONS
from .config import Config
from .errors import MoltpackError
from .installtest import METHODS
from .logger import set_verbosity, setup_logger

_logger = setup_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="moltpack", description="Package, install-test and release the moltbot CLI")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output and executed commands")
    parser.add_argument("--config", "-c", dest="config_path", help="Path to moltpack.conf")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # ------------------------
    # Packaging
    # ------------------------

    # build / b
    p_build = subparsers.add_parser("build", aliases=["b"], help="Build the npm tarball")
    p_build.add_argument("--configuration", "-C", choices=list(CONFIGURATIONS))
    p_build.add_argument("--project-dir", "-p", help="Project root containing package.json")
    p_build.add_argument("--output-dir", "-o", help="Where the tarball is written")
    p_build.add_argument("--skip-install", action="store_true", help="Do not install dependencies")
    p_build.add_argument("--skip-ui", action="store_true", help="Do not build the UI bundle")
    p_build.add_argument("--skip-tests", action="store_true", help="Do not run the test suite")
    p_build.add_argument("--skip-checks", action="store_true", help="Do not check tool versions")
    p_build.set_defaults(func=operations.build)

    # test-install / ti
    p_test = subparsers.add_parser("test-install", aliases=["ti"], help="Install a package globally and smoke-test it")
    p_test.add_argument("source", nargs="?", help="Tarball path, directory with tarballs, or URL")
    p_test.add_argument("--method", "-m", choices=METHODS, default="tarball")
    p_test.add_argument("--version-spec", help="Version or range for --method registry")
    p_test.add_argument("--package", help="Package name for --method registry")
    p_test.add_argument("--cli-name", help="Executable to invoke (default: first 'bin' entry)")
    p_test.add_argument("--uninstall-first", "-U", action="store_true")
    p_test.add_argument("--cleanup", action="store_true", help="Uninstall after a successful test")
    p_test.set_defaults(func=operations.test_install)

    # doctor / dr
    p_doctor = subparsers.add_parser("doctor", aliases=["dr"], help="Check installed build tools")
    p_doctor.set_defaults(func=operations.doctor)

    # ------------------------
    # Release
    # ------------------------

    # release-check / rc
    p_check = subparsers.add_parser("release-check", aliases=["rc"], help="Validate release readiness")
    p_check.add_argument("--project-dir", "-p")
    p_check.add_argument("--mode", choices=("branch", "tag"), default="branch")
    p_check.add_argument("--tag", help="Release tag (tag mode; defaults to GITHUB_REF_NAME or HEAD's tag)")
    p_check.add_argument("--changelog")
    p_check.add_argument("--allow-dirty", action="store_true")
    p_check.set_defaults(func=operations.release_check)

    # release / rel
    p_release = subparsers.add_parser("release", aliases=["rel"], help="Create the GitHub release (and npm publish)")
    p_release.add_argument("tarball", nargs="?")
    p_release.add_argument("--project-dir", "-p")
    p_release.add_argument("--mode", choices=("branch", "tag"), default="branch")
    p_release.add_argument("--tag")
    p_release.add_argument("--npm", action="store_true", help="Also run 'npm publish'")
    p_release.add_argument("--dist-tag", help="npm dist-tag (default: beta for prereleases, else latest)")
    p_release.add_argument("--draft", action="store_true")
    p_release.add_argument("--skip-validate", action="store_true")
    p_release.add_argument("--allow-dirty", action="store_true")
    p_release.add_argument("--dry-run", "-n", action="store_true")
    p_release.set_defaults(func=operations.release)

    # download / dl
    p_download = subparsers.add_parser("download", aliases=["dl"], help="Download a released tarball")
    p_download.add_argument("--tag", "-t")
    p_download.add_argument("--filename", "-f")
    p_download.add_argument("--repo", "-r", help="GitHub repository (owner/name)")
    p_download.add_argument("--output-dir", "-o")
    p_download.set_defaults(func=operations.download)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    set_verbosity(args.verbose)

    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        sys.exit(1)

    config_path = args.config_path
    arg_dict = vars(args)
    for key in ("func", "command", "verbose", "config_path"):
        arg_dict.pop(key, None)

    try:
        config = Config(config_path)
        operations.init(config)
        func(**arg_dict)
    except MoltpackError as e:
        _logger.error("error: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        _logger.error("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
