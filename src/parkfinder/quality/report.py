"""
Offline data quality report utilities.

Goal: a deterministic view of "do the loaded sources join up sanely?"
Used by:
- CLI debugging (`parkfinder quality-report`)
- API status endpoint for the web UI
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import Any

from parkfinder.config.settings import Settings
from parkfinder.core.errors import SourceLoadError
from parkfinder.fusion.engine import fuse_bays_with_stats, load_sources
from parkfinder.ingestion.socrata_client import SocrataClient
from parkfinder.ingestion.sources import SourceBundle


@dataclass(frozen=True)
class Issue:
    severity: str  # "info" | "warning" | "error"
    code: str
    message: str
    count: int = 1
    sample: list[str] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
            "count": int(self.count),
            "sample": list(self.sample or []),
        }


def bundle_issues(bundle: SourceBundle) -> tuple[list[Issue], dict[str, Any]]:
    """Check join coverage and fan-out for an already loaded source bundle."""
    issues: list[Issue] = []
    records, stats = fuse_bays_with_stats(
        bundle.bays, bundle.occupancy, bundle.disability, bundle.segments, bundle.restrictions
    )

    ids = [b.bay_id for b in bundle.bays]
    dup = sorted(i for i, n in Counter(ids).items() if n > 1)
    if dup:
        issues.append(
            Issue(
                severity="warning",
                code="BAYS_DUPLICATE_ID",
                message="Duplicate bay ids in the geometry source; the first outline wins.",
                count=len(dup),
                sample=dup[:8],
            )
        )

    if stats.collapsed_duplicates:
        issues.append(
            Issue(
                severity="info",
                code="FUSION_FANOUT_COLLAPSED",
                message="Join keys matched several rows; extra rows were dropped (first wins).",
                count=stats.collapsed_duplicates,
            )
        )

    bay_ids = set(ids)
    orphan_sensors = sorted({r.bay_id for r in bundle.occupancy} - bay_ids)
    if orphan_sensors:
        issues.append(
            Issue(
                severity="warning",
                code="SENSORS_UNKNOWN_BAY",
                message="Sensor rows reference bays missing from the geometry source.",
                count=len(orphan_sensors),
                sample=orphan_sensors[:8],
            )
        )

    zones = {r.pay_stay_zone for r in bundle.restrictions}
    unpriced = sorted({s.pay_stay_zone for s in bundle.segments} - zones)
    if unpriced:
        issues.append(
            Issue(
                severity="warning",
                code="ZONES_WITHOUT_RESTRICTIONS",
                message="Pay-stay zones with no cost/duration rows (their bays count as free).",
                count=len(unpriced),
                sample=unpriced[:8],
            )
        )

    bad_coords = [r.bay_id for r in records if math.isnan(r.latitude) or math.isnan(r.longitude)]
    if bad_coords:
        issues.append(
            Issue(
                severity="error",
                code="BAYS_INVALID_CENTROID",
                message="Bays with a NaN centroid can never be shown.",
                count=len(bad_coords),
                sample=bad_coords[:8],
            )
        )

    summary = {
        "bays": stats.bays,
        "records": stats.records,
        "joined_rows": stats.joined_rows,
        "occupied": sum(1 for r in records if r.is_occupied),
        "accessible": sum(1 for r in records if r.is_accessible),
        "with_zone": sum(1 for r in records if r.pay_stay_zone is not None),
        "free": sum(1 for r in records if r.is_free),
    }
    return issues, summary


def build_quality_report(settings: Settings, *, client: SocrataClient | None = None) -> dict[str, Any]:
    try:
        bundle = load_sources(settings, client=client)
    except SourceLoadError as e:
        issue = Issue(severity="error", code="SOURCE_LOAD_FAILED", message=str(e), sample=[e.source])
        return {"ok": False, "mode": settings.data.mode, "summary": {}, "issues": [issue.as_dict()]}

    issues, summary = bundle_issues(bundle)
    return {
        "ok": not any(i.severity == "error" for i in issues),
        "mode": settings.data.mode,
        "summary": summary,
        "issues": [i.as_dict() for i in issues],
    }
