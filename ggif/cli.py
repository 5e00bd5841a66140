"""Command-line interface for ggif.

Options given on the command line override the JSON config file
(``~/.ggif.json`` or the file named by ``--load``), which in turn
overrides the built-in defaults.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from ggif import __app_name__, __version__
from ggif.app import App, setup_logging
from ggif.config import Config, load_config_file
from ggif.errors import GgifError

logger = logging.getLogger(__name__)

# Process exit statuses
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=__app_name__,
        description="Convert movies to GIFs and upload them.",
    )
    p.add_argument(
        "video",
        nargs="?",
        help="Video to convert (default: newest video in --src)",
    )
    p.add_argument("--log", dest="log_level", help="Log level (default: ERROR)")
    p.add_argument("--src", help="Source folder for movie files (default: cwd)")
    p.add_argument("--dist", help="Output folder for GIFs (default: --src)")
    p.add_argument(
        "--gcp-bucket", "--bucket", dest="gcp_bucket",
        help="Google Cloud Storage bucket name",
    )
    p.add_argument("--s3-bucket", dest="s3_bucket", help="AWS S3 bucket name")
    p.add_argument("--width", type=int, help="GIF width in pixels")
    p.add_argument("--frames", type=int, help="GIF frame rate")
    p.add_argument("--quality", type=int, help="GIF quality, 1-100")
    p.add_argument(
        "--watch", action="store_true", default=None,
        help="Watch --src for new files",
    )
    p.add_argument(
        "--upload-only", dest="upload_only", action="store_true", default=None,
        help="Upload the video itself without converting it",
    )
    p.add_argument(
        "--timeout", dest="command_timeout", type=float,
        help="Seconds each external command may run (0 = no limit)",
    )
    p.add_argument(
        "--load", type=Path,
        help="Configuration file to load (default: ~/.ggif.json)",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def resolve_config(args: argparse.Namespace) -> Config:
    """Merge defaults, the config file and command-line options."""
    file_data = load_config_file(args.load, required=args.load is not None)
    overrides: dict[str, Any] = {
        key: value
        for key, value in vars(args).items()
        if key not in ("video", "load")
    }
    return Config.resolve(file_data, overrides)


def main(argv: list[str] | None = None) -> int:
    """Run ggif and return the process exit status."""
    args = build_parser().parse_args(argv)
    try:
        config = resolve_config(args)
    except GgifError as exc:
        print(f"{__app_name__}: {exc}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(config)
    try:
        App(config).run(args.video)
    except GgifError as exc:
        logger.critical("%s", exc)
        return EXIT_ERROR
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    return EXIT_OK
