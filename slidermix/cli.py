"""Command-line entry point."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from slidermix.app import Deej
from slidermix.logger import new_logger

# Filled in by the build process.
GIT_COMMIT = ""
VERSION_TAG = ""
BUILD_TYPE = ""


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse the command-line flags."""
    parser = argparse.ArgumentParser(
        prog="slidermix", description="Control audio volumes with physical sliders."
    )
    parser.add_argument(
        "-v",
        "-verbose",
        "--verbose",
        dest="verbose",
        action="store_true",
        help="show verbose logs (useful for debugging serial)",
    )
    return parser.parse_args(argv)


def version_string(build_type: str, version_tag: str, git_commit: str) -> Optional[str]:
    """The version shown to the user, or None when the build carries no version info."""
    if not build_type or not (version_tag or git_commit):
        return None
    identifier = version_tag or git_commit
    return f"Version {build_type}-{identifier}"


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the application and return its exit code."""
    args = parse_args(argv)

    try:
        logger = new_logger(BUILD_TYPE)
    except OSError as exc:
        raise RuntimeError(f"Failed to create logger: {exc}") from exc

    named = logger.getChild("main")
    named.debug("Created logger")
    named.info(
        "Version info: gitCommit=%s versionTag=%s buildType=%s", GIT_COMMIT, VERSION_TAG, BUILD_TYPE
    )

    if args.verbose:
        named.debug("Verbose flag provided, all log messages will be shown")

    try:
        app = Deej(logger, args.verbose)
    except Exception as exc:
        named.critical("Failed to create the application object: %s", exc)
        return 1

    version = version_string(BUILD_TYPE, VERSION_TAG, GIT_COMMIT)
    if version is not None:
        app.set_version(version)

    try:
        return app.initialize()
    except Exception as exc:
        named.critical("Failed to initialize: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())