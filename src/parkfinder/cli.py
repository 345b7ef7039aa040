"""
ParkFinder CLI entrypoint.

This CLI is intended for quick local queries and debugging without the map UI.
It drives the same `ParkingStateController` the API uses.
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any

import httpx

from parkfinder.config.settings import get_settings
from parkfinder.core.errors import ParkFinderError, SourceLoadError
from parkfinder.core.logging import configure_logging
from parkfinder.fusion.engine import build_cache, load_master_data
from parkfinder.ingestion.geocoder import NominatimGeocoder
from parkfinder.ingestion.socrata_client import SocrataClient
from parkfinder.quality.report import build_quality_report
from parkfinder.state.controller import ParkingStateController

logger = logging.getLogger(__name__)


def _build_controller(args: argparse.Namespace) -> ParkingStateController:
    """Load the fused collection and apply CLI criteria flags in UI order."""
    settings = get_settings()
    ctrl = ParkingStateController(load_master_data(settings), settings=settings)

    if args.search:
        geocoder = NominatimGeocoder(settings, build_cache(settings))
        if ctrl.search_place(args.search, geocoder) is None:
            raise ValueError(f"No place found for '{args.search}'")
    elif args.lat is not None or args.lon is not None:
        if args.lat is None or args.lon is None:
            raise ValueError("--lat and --lon must be given together")
        ctrl.set_reference_location(args.lat, args.lon)

    criteria = ctrl.current_criteria()
    rmin, rmax = criteria.radius_range
    cmin, cmax = criteria.cost_range
    changes: dict[str, Any] = {
        "free_only": bool(args.free),
        "accessible_only": bool(args.accessible),
        "radius_range": (
            args.radius_min if args.radius_min is not None else rmin,
            args.radius_max if args.radius_max is not None else rmax,
        ),
        "cost_range": (
            round(args.cost_min * 100) if args.cost_min is not None else cmin,
            round(args.cost_max * 100) if args.cost_max is not None else cmax,
        ),
    }
    if args.duration is not None:
        changes["duration_minimum"] = round(args.duration * 60)
    ctrl.update(**changes)
    return ctrl


def _cmd_filter(args: argparse.Namespace) -> int:
    ctrl = _build_controller(args)
    rows = ctrl.current_visible_with_distances()

    if args.json:
        payload = [{**bay.model_dump(mode="json"), "distance_km": round(d, 4)} for bay, d in rows]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    lat, lon = ctrl.current_reference_location()
    print(f"Reference location: {lat:.6f}, {lon:.6f}")
    print(f"Visible bays: {len(rows)} of {len(ctrl.collection)}")
    limit = args.limit if args.limit is not None else len(rows)
    for bay, distance in rows[:limit]:
        cost = f"${bay.cost_per_hour / 100:.2f}/h" if bay.cost_per_hour is not None else "free"
        stay = f"{bay.maximum_stay}min" if bay.maximum_stay is not None else "unrestricted"
        flags = " accessible" if bay.is_accessible else ""
        print(f"  {bay.bay_id:>8}  {distance * 1000:6.0f}m  {cost:>9}  {stay:>12}  {bay.street or ''}{flags}")
    return 0


def _cmd_bay(args: argparse.Namespace) -> int:
    ctrl = _build_controller(args)
    details = ctrl.select_bay(args.bay_lat, args.bay_lon)
    if details is None:
        print("No visible bay at that location.")
        return 1
    print(json.dumps(details.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


def _cmd_fetch(args: argparse.Namespace) -> int:
    settings = get_settings()
    client = SocrataClient(settings, build_cache(settings))
    datasets = args.dataset or sorted(settings.socrata.datasets)
    for name in datasets:
        params = {"$where": settings.socrata.where[name]} if name in settings.socrata.where else None
        try:
            rows = client.fetch(name, params)
        except httpx.HTTPError as e:
            raise SourceLoadError(name, e) from e
        print(f"{name}: {len(rows)} rows")
    return 0


def _cmd_quality_report(_: argparse.Namespace) -> int:
    report = build_quality_report(get_settings())
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0 if report["ok"] else 1


def _add_criteria_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--lat", type=float, default=None, help="Reference latitude")
    p.add_argument("--lon", type=float, default=None, help="Reference longitude")
    p.add_argument("--search", type=str, default=None, help="Place name to centre on")
    p.add_argument("--radius-min", type=float, default=None, help="km, 0..1")
    p.add_argument("--radius-max", type=float, default=None, help="km, 0..1")
    p.add_argument("--cost-min", type=float, default=None, help="Dollars per hour")
    p.add_argument("--cost-max", type=float, default=None, help="Dollars per hour")
    p.add_argument("--duration", type=float, default=None, help="Minimum stay needed, in hours")
    p.add_argument("--free", action="store_true", help="Only free bays")
    p.add_argument("--accessible", action="store_true", help="Only disability permit bays")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ParkFinder CLI."""
    parser = argparse.ArgumentParser(prog="parkfinder")
    sub = parser.add_subparsers(dest="command", required=True)

    flt = sub.add_parser("filter", help="List vacant bays matching the given criteria.")
    _add_criteria_arguments(flt)
    flt.add_argument("--limit", type=int, default=None)
    flt.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    flt.set_defaults(func=_cmd_filter)

    bay = sub.add_parser("bay", help="Show details of the visible bay at a coordinate.")
    _add_criteria_arguments(bay)
    bay.add_argument("--bay-lat", required=True, type=float)
    bay.add_argument("--bay-lon", required=True, type=float)
    bay.set_defaults(func=_cmd_bay)

    fetch = sub.add_parser("fetch", help="Download remote datasets into the local cache.")
    fetch.add_argument("--dataset", action="append", default=[], help="Repeatable. Omit to fetch all.")
    fetch.set_defaults(func=_cmd_fetch)

    q = sub.add_parser("quality-report", help="Join coverage report for the configured sources.")
    q.set_defaults(func=_cmd_quality_report)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m parkfinder.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except (ParkFinderError, ValueError) as e:
        logger.error("%s", e)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
