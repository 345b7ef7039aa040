import json

import httpx

from parkfinder.cli import build_parser, main


def test_parser_reads_criteria_flags():
    parser = build_parser()
    args = parser.parse_args(["filter", "--free", "--radius-max", "0.5", "--cost-max", "3.5"])
    assert args.free is True
    assert args.radius_max == 0.5
    assert args.cost_max == 3.5


def test_filter_json_lists_vacant_bays(snapshot_config, capsys):
    assert main(["filter", "--json"]) == 0
    rows = json.loads(capsys.readouterr().out)
    # Bay 101 is occupied; bay 102 is free and accessible.
    assert [r["bay_id"] for r in rows] == ["102"]
    assert rows[0]["distance_km"] < 1


def test_filter_cost_minimum_in_dollars_hides_bays_without_cost(snapshot_config, capsys):
    assert main(["filter", "--json", "--cost-min", "1"]) == 0
    assert json.loads(capsys.readouterr().out) == []


def test_bay_command_prints_details(snapshot_config, capsys):
    assert main(["bay", "--bay-lat", "-37.811", "--bay-lon", "144.961"]) == 0
    details = json.loads(capsys.readouterr().out)
    assert details["bay_id"] == "102"
    assert details["is_accessible"] is True
    assert details["has_restrictions"] is False


def test_invalid_criteria_exit_code(snapshot_config):
    assert main(["filter", "--radius-min", "0.9", "--radius-max", "0.1"]) == 2
    assert main(["filter", "--lat", "-37.8"]) == 2


def test_quality_report_command(snapshot_config, capsys):
    assert main(["quality-report"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["ok"] is True


def test_fetch_upstream_failure_exit_code(snapshot_config, monkeypatch):
    def failing(url, **_kwargs):
        raise httpx.ConnectError("down", request=httpx.Request("GET", url))

    monkeypatch.setattr("parkfinder.ingestion.socrata_client.get_json", failing)
    assert main(["fetch", "--dataset", "bays"]) == 2


def test_filter_accepts_fractional_duration(snapshot_config, capsys):
    assert main(["filter", "--json", "--duration", "1.5"]) == 0
    assert [r["bay_id"] for r in json.loads(capsys.readouterr().out)] == ["102"]
