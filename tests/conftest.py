import json

import pytest
import yaml

from parkfinder.config.settings import Settings, get_settings

SQUARE = {
    "type": "Polygon",
    "coordinates": [
        [[144.960, -37.810], [144.962, -37.810], [144.962, -37.812], [144.960, -37.812], [144.960, -37.810]]
    ],
}


def write_snapshot(base) -> dict[str, str]:
    """Write a tiny five-file local snapshot under `base`; return the source paths."""
    files = {
        "bays": base / "bays.geojson",
        "sensors": base / "sensors.json",
        "disability": base / "disability.json",
        "paystay_segments": base / "segments.json",
        "paystay_restrictions": base / "restrictions.json",
    }
    files["bays"].write_text(
        json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    {"type": "Feature", "properties": {"bay_id": 101, "rd_seg_id": 20001}, "geometry": SQUARE},
                    {"type": "Feature", "properties": {"bay_id": 102, "rd_seg_id": 20002}, "geometry": SQUARE},
                    {"type": "Feature", "properties": {"bay_id": 103}, "geometry": None},
                ],
            }
        ),
        encoding="utf-8",
    )
    files["sensors"].write_text(
        json.dumps([{"bayid": "101", "deviceid": "9001", "status": "Present"}]), encoding="utf-8"
    )
    files["disability"].write_text(json.dumps([{"bayid": 102, "deviceid": 7001}]), encoding="utf-8")
    files["paystay_segments"].write_text(
        json.dumps([{"street_segment_id": "20001", "pay_stay_zone": "7", "street_name": "Lonsdale St"}]),
        encoding="utf-8",
    )
    files["paystay_restrictions"].write_text(
        json.dumps(
            [
                {
                    "pay_stay_zone": "7",
                    "cost_per_hour": "320",
                    "maximum_stay": "120.0",
                    "start_time": "07:30:00",
                    "end_time": "18:30:00",
                    "day_of_week": "Friday",
                }
            ]
        ),
        encoding="utf-8",
    )
    return {k: str(v) for k, v in files.items()}


@pytest.fixture
def snapshot_settings(tmp_path) -> Settings:
    return Settings(data={"mode": "local", "local": write_snapshot(tmp_path)})


@pytest.fixture
def snapshot_config(tmp_path, monkeypatch):
    """Point `get_settings()` at a YAML config that reads the local snapshot."""
    config = tmp_path / "parkfinder.yaml"
    config.write_text(
        yaml.safe_dump({"data": {"mode": "local", "local": write_snapshot(tmp_path)}, "cache": {"enabled": False}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("PARKFINDER_CONFIG_PATH", str(config))
    get_settings.cache_clear()
    yield config
    get_settings.cache_clear()
