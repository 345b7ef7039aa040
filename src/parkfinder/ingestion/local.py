"""
Local snapshot loaders.

The dashboard ships with static snapshots of the open datasets (JSON arrays and a
GeoJSON FeatureCollection of bay outlines). These helpers only read and shape-check
the files; turning rows into typed records is `parkfinder.ingestion.sources`' job.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from parkfinder.core.env import resolve_project_path

logger = logging.getLogger(__name__)


def load_json(path: str | Path) -> list[dict[str, Any]]:
    """Load a JSON file whose root is an array of flat objects."""
    resolved = resolve_project_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"{resolved}: expected a JSON array at the root")
    rows = [row for row in payload if isinstance(row, dict)]
    logger.info("Loaded %d rows from %s", len(rows), resolved.name)
    return rows


def load_geojson(path: str | Path) -> list[dict[str, Any]]:
    """Load a GeoJSON FeatureCollection and return its features."""
    resolved = resolve_project_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    if not isinstance(payload, dict) or payload.get("type") != "FeatureCollection":
        raise ValueError(f"{resolved}: expected a GeoJSON FeatureCollection")
    features = [f for f in payload.get("features") or [] if isinstance(f, dict)]
    logger.info("Loaded %d features from %s", len(features), resolved.name)
    return features
