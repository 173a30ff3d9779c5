"""Entry point for Build Uploader.

Usage:
    python -m build_uploader                  Poll for new builds until stopped
    python -m build_uploader --once           Run a single pass and exit
    python -m build_uploader --config PATH    Use a specific config.json
"""

import argparse
import logging
import sys
from pathlib import Path

from build_uploader import __app_name__, __version__
from build_uploader.errors import ConfigurationError

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="build-uploader", description=__app_name__)
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--once", action="store_true", help="run one pass and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the uploader; returns the process exit status."""
    args = parse_args(argv)

    from build_uploader.app import App

    app = App(args.config)
    try:
        if args.once:
            app.run_once()
        else:
            app.run()
    except ConfigurationError as exc:
        logger.error("%s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
