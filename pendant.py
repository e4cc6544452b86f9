#!/usr/bin/env python3
"""
Unified CLI for the pet memorial pendant engraver.

Usage:
    pendant engrave <image>                  # Render engravings for every style
    pendant engrave <image> --style bold     # Render one style
    pendant crop <image> --box CX CY W H     # Crop around a known face box
    pendant composite a.png b.png --type double --name Rex --name Mia
    pendant process <image> --detector fallback --store local
"""

import argparse
import logging
import sys

from logging_utils import configure_logging, add_logging_args
from cli.engrave import add_engrave_subparser
from cli.crop import add_crop_subparser
from cli.composite import add_composite_subparser
from cli.process import add_process_subparser

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pendant",
        description="Pendant engraver - turn pet photos into engravings and pendant previews",
    )
    add_logging_args(parser)
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    add_engrave_subparser(subparsers)
    add_crop_subparser(subparsers)
    add_composite_subparser(subparsers)
    add_process_subparser(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.verbose, args.quiet)

    cmd = getattr(args, "_cmd", None)
    if args.command is None or cmd is None:
        parser.print_help()
        return 1
    return cmd(args)


if __name__ == "__main__":
    sys.exit(main())
