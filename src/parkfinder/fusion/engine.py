"""
Data fusion engine.

Joins the five normalized sources into one canonical `BayRecord` per bay:

    bays  ⟕ occupancy      on bay_id
          ⟕ disability     on bay_id
          ⟕ zone segments  on rd_seg_id
          ⟕ restrictions   on pay_stay_zone

Every bay in the geometry source is kept, even when no other source mentions it.
Joins are expected to be many-to-zero-or-one; when a key matches several right-hand
rows the bay fans out and the result is collapsed back to one record per `bay_id`,
keeping the first record in join order (geometry order, then right-hand row order).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence, TypeVar

from parkfinder.config.settings import Settings
from parkfinder.core.cache import FileCache
from parkfinder.core.env import resolve_project_path
from parkfinder.core.errors import SourceLoadError
from parkfinder.domain.models import BayRecord
from parkfinder.domain.sources import (
    BayGeometry,
    DisabilityRecord,
    OccupancyRecord,
    PayStayRestriction,
    PayStaySegment,
)
from parkfinder.ingestion import sources
from parkfinder.ingestion.socrata_client import SocrataClient
from parkfinder.ingestion.sources import SourceBundle

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


@dataclass(frozen=True)
class FusionStats:
    """Row counts observed while fusing (used by logs and the quality report)."""

    bays: int
    joined_rows: int
    records: int

    @property
    def collapsed_duplicates(self) -> int:
        return self.joined_rows - self.records


def _index(rows: Iterable[T], key: Callable[[T], K | None]) -> dict[K, list[T]]:
    out: dict[K, list[T]] = {}
    for row in rows:
        k = key(row)
        if k is None:
            continue
        out.setdefault(k, []).append(row)
    return out


def _left(matches: list[T] | None) -> list[T | None]:
    # Left join: a bay with no match still yields one row.
    return list(matches) if matches else [None]


def _join_rows(
    bays: Sequence[BayGeometry],
    occupancy: Sequence[OccupancyRecord],
    disability: Sequence[DisabilityRecord],
    segments: Sequence[PayStaySegment],
    restrictions: Sequence[PayStayRestriction],
) -> Iterable[BayRecord]:
    by_bay_occ = _index(occupancy, lambda r: r.bay_id)
    by_bay_dis = _index(disability, lambda r: r.bay_id)
    by_seg = _index(segments, lambda r: r.rd_seg_id)
    by_zone = _index(restrictions, lambda r: r.pay_stay_zone)

    for bay in bays:
        for occ in _left(by_bay_occ.get(bay.bay_id)):
            for dis in _left(by_bay_dis.get(bay.bay_id)):
                for seg in _left(by_seg.get(bay.rd_seg_id) if bay.rd_seg_id else None):
                    zone = seg.pay_stay_zone if seg else None
                    for res in _left(by_zone.get(zone) if zone else None):
                        yield BayRecord(
                            bay_id=bay.bay_id,
                            rd_seg_id=bay.rd_seg_id,
                            latitude=bay.latitude,
                            longitude=bay.longitude,
                            marker_id=bay.marker_id,
                            meter_id=bay.meter_id,
                            occupied_id=occ.occupied_id if occ else None,
                            disability_deviceid=dis.disability_deviceid if dis else None,
                            pay_stay_zone=zone,
                            street=seg.street if seg else None,
                            cost_per_hour=res.cost_per_hour if res else None,
                            maximum_stay=res.maximum_stay if res else None,
                            start_time=res.start_time if res else None,
                            end_time=res.end_time if res else None,
                        )


def dedupe_first(records: Iterable[BayRecord]) -> list[BayRecord]:
    """Keep the first record for each `bay_id`, preserving order."""
    seen: set[str] = set()
    out: list[BayRecord] = []
    for r in records:
        if r.bay_id in seen:
            continue
        seen.add(r.bay_id)
        out.append(r)
    return out


def fuse_bays_with_stats(
    bays: Sequence[BayGeometry],
    occupancy: Sequence[OccupancyRecord],
    disability: Sequence[DisabilityRecord],
    segments: Sequence[PayStaySegment],
    restrictions: Sequence[PayStayRestriction],
) -> tuple[list[BayRecord], FusionStats]:
    """Fuse sources and also report how many fan-out rows were collapsed."""
    joined = list(_join_rows(bays, occupancy, disability, segments, restrictions))
    records = dedupe_first(joined)
    stats = FusionStats(bays=len(bays), joined_rows=len(joined), records=len(records))
    if stats.collapsed_duplicates:
        logger.info(
            "Collapsed %d fan-out duplicates (%d joined rows -> %d bays)",
            stats.collapsed_duplicates,
            stats.joined_rows,
            stats.records,
        )
    return records, stats


def fuse_bays(
    bays: Sequence[BayGeometry],
    occupancy: Sequence[OccupancyRecord],
    disability: Sequence[DisabilityRecord],
    segments: Sequence[PayStaySegment],
    restrictions: Sequence[PayStayRestriction],
) -> list[BayRecord]:
    """Join the five sources into one canonical record per bay."""
    records, _ = fuse_bays_with_stats(bays, occupancy, disability, segments, restrictions)
    return records


def fuse_bundle(bundle: SourceBundle) -> list[BayRecord]:
    return fuse_bays(bundle.bays, bundle.occupancy, bundle.disability, bundle.segments, bundle.restrictions)


# Loading --------------------------------------------------------------------------


def build_cache(settings: Settings) -> FileCache:
    return FileCache(
        resolve_project_path(settings.cache.dir),
        enabled=settings.cache.enabled,
        default_ttl_seconds=settings.cache.default_ttl_seconds,
    )


def _load_source(name: str, loader: Callable[[], list[T]]) -> list[T]:
    try:
        rows = loader()
    except SourceLoadError:
        raise
    except Exception as exc:
        raise SourceLoadError(name, exc) from exc
    logger.info("Source %s: %d records", name, len(rows))
    return rows


def load_sources(settings: Settings, *, client: SocrataClient | None = None) -> SourceBundle:
    """Load all five sources, failing with `SourceLoadError` on the first failure."""
    if settings.data.mode == "remote":
        remote = client or SocrataClient(settings, build_cache(settings))
        loaders: dict[str, Callable[[], list]] = {
            "bays": lambda: sources.load_remote_bays(settings, remote),
            "sensors": lambda: sources.load_remote_occupancy(settings, remote),
            "disability": lambda: sources.load_remote_disability(settings, remote),
            "paystay_segments": lambda: sources.load_remote_segments(settings, remote),
            "paystay_restrictions": lambda: sources.load_remote_restrictions(settings, remote),
        }
    else:
        loaders = {
            "bays": lambda: sources.load_local_bays(settings),
            "sensors": lambda: sources.load_local_occupancy(settings),
            "disability": lambda: sources.load_local_disability(settings),
            "paystay_segments": lambda: sources.load_local_segments(settings),
            "paystay_restrictions": lambda: sources.load_local_restrictions(settings),
        }

    loaded = {name: _load_source(name, loader) for name, loader in loaders.items()}
    return SourceBundle(
        bays=loaded["bays"],
        occupancy=loaded["sensors"],
        disability=loaded["disability"],
        segments=loaded["paystay_segments"],
        restrictions=loaded["paystay_restrictions"],
    )


def load_master_data(settings: Settings, *, client: SocrataClient | None = None) -> list[BayRecord]:
    """Load every source and fuse them. Never fuses partial data."""
    return fuse_bundle(load_sources(settings, client=client))
