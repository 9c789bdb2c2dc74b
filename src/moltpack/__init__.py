"""
moltpack - packaging and release tooling for the moltbot CLI on Windows.

Builds the npm tarball, smoke-tests a global install of it, and publishes
GitHub/npm releases by driving pnpm, npm, git and gh.

Modules:
- cli: Command-line interface entry point.
- operations: Command implementations behind the CLI.
- builder: Package build pipeline.
- installtest: Global install smoke test.
- release: Release validation and publishing.
- prerequisites: Tool presence and version checks.
- downloader: Release asset download engine.
- config: Configuration management.
"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main", "__version__"]
