import httpx
import pytest

from parkfinder.config.settings import get_settings
from parkfinder.core.cache import FileCache
from parkfinder.core.errors import UnrecognisedDatasetError
from parkfinder.ingestion import sources
from parkfinder.ingestion.socrata_client import SocrataClient


def _settings(**socrata):
    settings = get_settings()
    return settings.model_copy(update={"socrata": settings.socrata.model_copy(update=socrata)})


def test_resource_url_maps_dataset_names(tmp_path):
    client = SocrataClient(_settings(), FileCache(tmp_path, enabled=False))
    assert client.resource_url("sensors_2019") == "https://data.melbourne.vic.gov.au/resource/7pgd-bdf2.json"


def test_unknown_dataset_fails_fast(tmp_path):
    client = SocrataClient(_settings(), FileCache(tmp_path, enabled=False))
    with pytest.raises(UnrecognisedDatasetError, match="Unrecognised dataset parking_fines"):
        client.fetch("parking_fines")


def test_fetch_pages_until_short_page(monkeypatch, tmp_path):
    calls: list[dict] = []

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=15):  # noqa: ARG001
        calls.append(dict(params or {}))
        offset = int(params["$offset"])
        data = [{"bay_id": str(i)} for i in range(5)]
        return data[offset : offset + int(params["$limit"])]

    monkeypatch.setattr("parkfinder.ingestion.socrata_client.get_json", fake_get_json)

    client = SocrataClient(_settings(page_size=2, app_token="tok"), FileCache(tmp_path, enabled=False))
    rows = client.fetch("bays", {"$where": "bay_id > 0"})

    assert [r["bay_id"] for r in rows] == ["0", "1", "2", "3", "4"]
    assert [c["$offset"] for c in calls] == [0, 2, 4]
    assert all(c["$where"] == "bay_id > 0" for c in calls)


def test_fetch_sends_app_token(monkeypatch, tmp_path):
    seen_headers: list[dict] = []

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=15):  # noqa: ARG001
        seen_headers.append(dict(headers or {}))
        return []

    monkeypatch.setattr("parkfinder.ingestion.socrata_client.get_json", fake_get_json)
    SocrataClient(_settings(app_token="tok"), FileCache(tmp_path, enabled=False)).fetch("bays")
    assert seen_headers == [{"X-App-Token": "tok"}]


def test_fetch_serves_stale_cache_when_upstream_fails(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=1)
    client = SocrataClient(_settings(cache_ttl_seconds=1), cache)

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 0)
    monkeypatch.setattr(
        "parkfinder.ingestion.socrata_client.get_json",
        lambda *_a, **_k: [{"bay_id": "1"}],
    )
    assert client.fetch("bays") == [{"bay_id": "1"}]

    def failing(url, **_kwargs):
        request = httpx.Request("GET", url)
        raise httpx.ConnectError("down", request=request)

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 100)
    monkeypatch.setattr("parkfinder.ingestion.socrata_client.get_json", failing)
    assert client.fetch("bays") == [{"bay_id": "1"}]


class _StubClient:
    def __init__(self, rows):
        self.rows = rows
        self.calls: list[tuple[str, dict]] = []

    def fetch(self, dataset, params=None):
        self.calls.append((dataset, dict(params or {})))
        return self.rows


def test_remote_occupancy_queries_snapshot_and_dedupes_devices():
    settings = get_settings()
    client = _StubClient(
        [
            {"bayid": "1", "deviceid": "A"},
            {"bayid": "1", "deviceid": "A"},
            {"bayid": "2", "deviceid": "B"},
        ]
    )
    out = sources.load_remote_occupancy(settings, client)

    assert [(r.bay_id, r.occupied_id) for r in out] == [("1", "A"), ("2", "B")]
    dataset, params = client.calls[0]
    assert dataset == "sensors_2019"
    assert params["$where"] == (
        "arrivaltime <= '2019-09-27T08:00:00.000' and departuretime > '2019-09-27T08:00:00.000'"
    )
