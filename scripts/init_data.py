#!/usr/bin/env python3
"""Create the data folders, the default artefact registry and empty logs.

Idempotent: existing files are never overwritten.

Usage:
    python scripts/init_data.py
    python scripts/init_data.py --root /path/to/project
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.pm2.constants import AUDIT_DIR, INITIATING_DIR
from app.pm2.modules.artefacts.registry import ArtefactRegistry
from app.pm2.modules.logs.service import ensure_logs
from app.pm2.storage import JsonStorage, LocalJsonStorage


def seed_only(storage: JsonStorage) -> dict:
    """Seed data files in an idempotent way. Returns a summary."""
    storage.ensure_folder(INITIATING_DIR)
    storage.ensure_folder(AUDIT_DIR)
    artefacts = ArtefactRegistry(storage).load()
    created_logs = ensure_logs(storage)
    return {"artefacts": len(artefacts), "created_logs": created_logs}


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialise the PM² data folder")
    parser.add_argument("--root", default=os.environ.get("PM2_DATA_ROOT") or os.getcwd(), help="Project data root")
    args = parser.parse_args()

    summary = seed_only(LocalJsonStorage(root=Path(args.root)))
    print(f"Initialized data under {args.root}")
    print(f"Artefacts registered: {summary['artefacts']}")
    for path in summary["created_logs"]:
        print(f"Created {path}")


if __name__ == "__main__":
    main()
