#!/usr/bin/env python3
"""
Entry point for the Family Menu Planner.
"""

import argparse
import logging
from dataclasses import replace

from .config import Settings
from .controller import AppController
from .data.database import SnapshotDatabase
from .interactive import InteractiveSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Family Menu Planner")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory for the local database (default: FAMILY_MENU_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    parser.add_argument(
        "--no-delay",
        action="store_true",
        help="Skip the pause between generation steps",
    )
    return parser


def main(argv=None):
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings()

    if args.data_dir:
        settings = replace(settings, data_dir=args.data_dir)
    if args.no_delay:
        settings = replace(settings, step_delay=0.0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    controller = AppController(SnapshotDatabase(db_dir=settings.data_dir), settings=settings)
    controller.load()
    logger.info(f"Loaded state from {settings.data_dir} (view={controller.state.view})")

    InteractiveSession(controller).run()


if __name__ == "__main__":
    main()
