"""Command-line entry point.

    assetkiln [--watch] [-q | -v | -d] [--config PATH] [--no-color]

Builds styles, scripts and images once. With --watch, keeps running and
rebuilds a stage whenever its source directory changes, until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path
from typing import Any

from assetkiln import __version__
from assetkiln.build import BuildContext, build_all, create_coordinator
from assetkiln.core.config import DEFAULT_CONFIG_FILE, BuildConfig, ConfigResolver
from assetkiln.core.errors import AssetKilnError, ConfigError
from assetkiln.core.logging import get_logger, set_colors, set_verbosity
from assetkiln.core.results import StageStatus

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assetkiln",
        description="Compile styles, minify scripts and transcode images.",
    )
    parser.add_argument("--watch", action="store_true", help="rebuild on source changes")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILE),
        help=f"project config file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument("--no-color", action="store_true", help="disable colored output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_const", const="quiet", dest="level")
    verbosity.add_argument("-v", "--verbose", action="store_const", const="verbose", dest="level")
    verbosity.add_argument("-d", "--debug", action="store_const", const="debug", dest="level")
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Turn parsed flags into nested ConfigResolver cli_args."""
    overrides: dict[str, Any] = {}
    if args.level:
        overrides["logging"] = {"level": args.level}
    return overrides


async def run(ctx: BuildContext, watch: bool) -> int:
    """Initial build, then watch mode if requested.

    Returns:
        Process exit code
    """
    results = await build_all(ctx)
    for result in results:
        for failure in result.failures:
            log.verbose(f"  {failure.stage}: {failure.source}: {failure.error}")

    if any(r.status == StageStatus.FAILED_FATAL for r in results):
        return EXIT_FAILED

    failed = sum(r.failed_count for r in results)
    if failed:
        log.warning(f"Build finished with {failed} failed item(s)")
    else:
        log.info("Build finished")

    if not watch:
        return EXIT_OK

    coordinator = create_coordinator(ctx)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, coordinator.stop)

    log.info("watching for changes...")
    await coordinator.run()
    log.info("Stopped watching")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.no_color:
        set_colors(False)

    try:
        resolver = ConfigResolver(cli_args=cli_overrides(args), config_path=args.config)
        config = BuildConfig.from_resolver(resolver)
        set_verbosity(config.logging_level)
    except ConfigError as e:
        log.error(str(e))
        return EXIT_CONFIG

    ctx = BuildContext.create(config)
    try:
        return asyncio.run(run(ctx, args.watch))
    except AssetKilnError as e:
        log.error(str(e))
        return EXIT_FAILED
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
