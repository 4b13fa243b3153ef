from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from app.pm2.modules.guidance.markdown import (
    clean_figure_markup,
    markdown_clean,
    remove_blockquotes,
    update_figure_paths,
)

logger = logging.getLogger(__name__)

Step = Callable[[str], str]

STEPS: dict[str, Step] = {
    "figures": clean_figure_markup,
    "blockquotes": remove_blockquotes,
    "figure-paths": update_figure_paths,
    "markdown": markdown_clean,
}


def resolve_steps(names: Sequence[str]) -> list[Step]:
    unknown = [n for n in names if n not in STEPS]
    if unknown:
        raise ValueError(f"Unknown step(s): {', '.join(unknown)}. Must be one of: {', '.join(STEPS)}")
    return [STEPS[n] for n in names]


def _apply(text: str, steps: Sequence[Step]) -> str:
    for step in steps:
        text = step(text)
    return text


def process_guidance_document(doc: dict[str, Any], steps: Sequence[Step]) -> bool:
    """
    Apply steps in place to every section's markdown, or to the top-level
    markdown when the document has no sections. Returns True if anything changed.
    """
    changed = False
    sections = doc.get("sections")
    if isinstance(sections, list):
        for section in sections:
            if isinstance(section, dict) and isinstance(section.get("markdown"), str) and section["markdown"]:
                processed = _apply(section["markdown"], steps)
                if processed != section["markdown"]:
                    section["markdown"] = processed
                    changed = True
    elif isinstance(doc.get("markdown"), str) and doc["markdown"]:
        processed = _apply(doc["markdown"], steps)
        if processed != doc["markdown"]:
            doc["markdown"] = processed
            changed = True
    return changed


@dataclass
class GuidanceRunResult:
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


def process_guidance_file(path: Path, steps: Sequence[Step], *, dry_run: bool = False) -> bool:
    doc = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(doc, dict):
        raise ValueError(f"{path.name} does not hold a JSON object")
    changed = process_guidance_document(doc, steps)
    if changed and not dry_run:
        path.write_text(json.dumps(doc, indent=2, ensure_ascii=False), encoding="utf-8")
    return changed


def process_guidance_dir(directory: Path, steps: Sequence[Step], *, dry_run: bool = False) -> GuidanceRunResult:
    """Run steps over every *.json file in directory. A bad file is logged and skipped."""
    result = GuidanceRunResult()
    for path in sorted(directory.glob("*.json")):
        try:
            changed = process_guidance_file(path, steps, dry_run=dry_run)
        except (OSError, ValueError) as e:
            logger.error("Error processing %s: %s", path.name, e)
            result.failed.append((path.name, str(e)))
            continue
        if changed:
            logger.info("%s %s", "Would update" if dry_run else "Updated", path.name)
            result.updated.append(path.name)
        else:
            result.unchanged.append(path.name)
    return result
