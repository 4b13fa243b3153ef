#!/usr/bin/env python3
"""Repair converted markdown in the PM² guidance JSON files.

Runs the selected cleanup steps over every *.json file in a directory.
Steps run in the order given.

Usage:
    python scripts/clean_guidance.py path/to/guidance --steps figures blockquotes
    python scripts/clean_guidance.py path/to/guidance --steps figure-paths --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.pm2.modules.guidance.service import STEPS, process_guidance_dir, resolve_steps


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Clean guidance markdown in JSON files")
    parser.add_argument("directory", type=Path, help="Folder holding guidance *.json files")
    parser.add_argument(
        "--steps",
        nargs="+",
        choices=list(STEPS),
        default=["figures", "blockquotes", "figure-paths"],
        help="Cleanup steps to run, in order",
    )
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing files")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    if not args.directory.is_dir():
        print(f"ERROR: {args.directory} is not a directory", file=sys.stderr)
        return 2

    result = process_guidance_dir(args.directory, resolve_steps(args.steps), dry_run=args.dry_run)

    mode = "DRY RUN: " if args.dry_run else ""
    print(f"{mode}{len(result.updated)} updated, {len(result.unchanged)} unchanged, {len(result.failed)} failed")
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
