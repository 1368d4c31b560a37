"""Read-only access to the rubric documents for each role family.

A rubric document is a JSON file named ``<slug>.json``:

    {"roleFamily": {"slug": ..., "name": ...},
     "dimensions": [{"slug", "name", "description", "levels": [...]}, ...],
     "redFlags": [{"slug", "name", "description"}, ...]}
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

from flask import current_app

from ..errors import RubricNotFound

BUNDLED_RUBRIC_DIR = Path(__file__).resolve().parent.parent / "rubrics"
SLUG_RE = re.compile(r"^[a-z0-9_\-]+$")


def rubric_dir() -> Path:
    configured = None
    try:
        configured = current_app.config.get("RUBRIC_DIR")
    except RuntimeError:
        configured = None
    return Path(configured) if configured else BUNDLED_RUBRIC_DIR


def load_rubric_for_role_family(slug: str, directory: Optional[Path] = None) -> Dict[str, Any]:
    if not slug or not SLUG_RE.match(slug):
        raise RubricNotFound(f"Invalid role family slug: {slug!r}")
    path = Path(directory or rubric_dir()) / f"{slug}.json"
    if not path.exists():
        raise RubricNotFound(f"Rubric not found for role family: {slug}")
    with path.open("r", encoding="utf-8") as f:
        rubric = json.load(f)

    dimensions = rubric.get("dimensions")
    if not isinstance(dimensions, list) or not dimensions:
        raise ValueError(f"Rubric {slug} must contain a non-empty 'dimensions' list.")
    rubric.setdefault("roleFamily", {"slug": slug, "name": slug})
    rubric.setdefault("redFlags", [])
    return rubric


def load_rubric_with_fallback(slug: Optional[str]) -> Dict[str, Any]:
    """Load ``slug``'s rubric, falling back to the configured default family."""
    default_slug = current_app.config.get("DEFAULT_ROLE_FAMILY", "engineering")
    try:
        return load_rubric_for_role_family(slug or default_slug)
    except RubricNotFound:
        if not slug or slug == default_slug:
            raise
        current_app.logger.warning('Role family "%s" not found, falling back to "%s"', slug, default_slug)
        return load_rubric_for_role_family(default_slug)
