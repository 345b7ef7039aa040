import json

import pytest

from parkfinder.core.errors import SourceLoadError
from parkfinder.fusion.engine import load_master_data, load_sources
from parkfinder.ingestion import sources

SQUARE = {
    "type": "Polygon",
    "coordinates": [
        [[144.960, -37.810], [144.962, -37.810], [144.962, -37.812], [144.960, -37.812], [144.960, -37.810]]
    ],
}


def test_parse_occupancy_renames_and_normalizes_ids():
    rows = [{"bayid": 1234, "deviceid": 55.0}, {"bayid": " 1235 ", "deviceid": "56"}, {"deviceid": "57"}]
    out = sources.parse_occupancy(rows)
    assert [(r.bay_id, r.occupied_id) for r in out] == [("1234", "55"), ("1235", "56")]


def test_parse_restrictions_coerces_numbers_and_blanks():
    out = sources.parse_restrictions(
        [
            {"pay_stay_zone": 7, "cost_per_hour": "550", "maximum_stay": "60"},
            {"pay_stay_zone": "8", "cost_per_hour": "", "maximum_stay": None},
            {"pay_stay_zone": "9", "cost_per_hour": "n/a"},
        ]
    )
    assert [(r.pay_stay_zone, r.cost_per_hour, r.maximum_stay) for r in out] == [
        ("7", 550, 60),
        ("8", None, None),
        ("9", None, None),
    ]


def test_parse_segments_renames_street_segment_id():
    out = sources.parse_segments([{"street_segment_id": 20001, "pay_stay_zone": "7", "street_name": "Lonsdale St"}])
    assert out[0].rd_seg_id == "20001"
    assert out[0].street == "Lonsdale St"


def test_parse_bay_rows_reads_the_geom_column():
    out = sources.parse_bay_rows([{"bay_id": "5", "rd_seg_id": "9", "the_geom": SQUARE}, {"bay_id": "6"}])
    assert len(out) == 1
    assert out[0].latitude == pytest.approx(-37.811)
    assert out[0].longitude == pytest.approx(144.961)


def test_parse_live_occupancy_keeps_present_only():
    rows = [
        {"bay_id": "1", "st_marker_id": "M1", "status": "Present"},
        {"bay_id": "2", "st_marker_id": "M2", "status": "Unoccupied"},
    ]
    out = sources.parse_live_occupancy(rows)
    assert [(r.bay_id, r.occupied_id) for r in out] == [("1", "M1")]


def test_distinct_by_keeps_first():
    rows = [{"deviceid": "a", "n": 1}, {"deviceid": "a", "n": 2}, {"deviceid": "b", "n": 3}]
    assert [r["n"] for r in sources.distinct_by(rows, "deviceid")] == [1, 3]


def test_load_master_data_from_local_snapshot(snapshot_settings):
    fused = load_master_data(snapshot_settings)

    # Bay 103 has no geometry and is skipped by the bay parser.
    assert [r.bay_id for r in fused] == ["101", "102"]
    b101, b102 = fused
    assert b101.occupied_id == "9001"
    assert b101.pay_stay_zone == "7"
    assert b101.cost_per_hour == 320
    assert b101.maximum_stay == 120
    assert b101.street == "Lonsdale St"
    assert b102.disability_deviceid == "7001"
    assert b102.pay_stay_zone is None


def test_missing_source_raises_named_source_load_error(tmp_path, snapshot_settings):
    settings = snapshot_settings
    (tmp_path / "disability.json").unlink()

    with pytest.raises(SourceLoadError) as excinfo:
        load_sources(settings)
    assert excinfo.value.source == "disability"
    assert "disability" in str(excinfo.value)


def test_wrong_container_shape_is_a_source_load_error(tmp_path, snapshot_settings):
    settings = snapshot_settings
    (tmp_path / "sensors.json").write_text(json.dumps({"rows": []}), encoding="utf-8")

    with pytest.raises(SourceLoadError) as excinfo:
        load_master_data(settings)
    assert excinfo.value.source == "sensors"


def test_source_with_no_valid_rows_is_a_source_load_error(tmp_path, snapshot_settings):
    # Upstream renamed `bayid`; every sensor row now lacks its join key.
    (tmp_path / "sensors.json").write_text(
        json.dumps([{"bay": "101", "deviceid": "9001"}, {"bay": "102", "deviceid": "9002"}]), encoding="utf-8"
    )

    with pytest.raises(SourceLoadError) as excinfo:
        load_master_data(snapshot_settings)
    assert excinfo.value.source == "sensors"
    assert "no valid rows out of 2" in str(excinfo.value)


def test_empty_source_is_not_an_error():
    assert sources.parse_occupancy([]) == []


def test_restrictions_keep_rows_in_force_at_snapshot():
    rows = sources.parse_restrictions(
        [
            {"pay_stay_zone": "7", "cost_per_hour": "0", "day_of_week": "Sunday", "start_time": "07:30:00", "end_time": "18:30:00"},
            {"pay_stay_zone": "7", "cost_per_hour": "150", "day_of_week": "Friday", "start_time": "18:30:00", "end_time": "23:00:00"},
            {"pay_stay_zone": "7", "cost_per_hour": "320", "day_of_week": "Friday", "start_time": "07:30:00", "end_time": "18:30:00"},
            {"pay_stay_zone": "8", "cost_per_hour": "200"},
        ]
    )
    kept = sources.select_restrictions(rows, "2019-09-27T08:00:00.000")
    assert [(r.pay_stay_zone, r.cost_per_hour) for r in kept] == [("7", 320), ("8", 200)]


def test_local_restrictions_fuse_with_snapshot_day_cost(tmp_path, snapshot_settings):
    (tmp_path / "restrictions.json").write_text(
        json.dumps(
            [
                {"pay_stay_zone": "7", "cost_per_hour": "0", "day_of_week": "Sunday", "start_time": "07:30", "end_time": "18:30"},
                {"pay_stay_zone": "7", "cost_per_hour": "320", "day_of_week": "Friday", "start_time": "07:30", "end_time": "18:30"},
            ]
        ),
        encoding="utf-8",
    )
    b101 = load_master_data(snapshot_settings)[0]
    assert b101.cost_per_hour == 320
    assert b101.is_free is False


def test_remote_restrictions_are_narrowed_to_snapshot(snapshot_settings):
    class Client:
        def fetch(self, dataset, params=None):
            assert dataset == "paystay_restrictions"
            return [
                {"pay_stay_zone": "7", "cost_per_hour": "0", "day_of_week": "Sunday"},
                {"pay_stay_zone": "7", "cost_per_hour": "320", "day_of_week": "Friday"},
            ]

    out = sources.load_remote_restrictions(snapshot_settings, Client())
    assert [r.cost_per_hour for r in out] == [320]
