from parkfinder.config.settings import get_settings
from parkfinder.core.cache import FileCache
from parkfinder.domain.models import GeoPoint
from parkfinder.ingestion.geocoder import NominatimGeocoder


def test_search_is_bounded_to_city_viewbox(monkeypatch, tmp_path):
    seen: list[dict] = []

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=15):  # noqa: ARG001
        seen.append(dict(params or {}))
        return [
            {"lat": "-37.8076", "lon": "144.9568", "display_name": "Queen Victoria Market"},
            {"lat": "bad", "lon": "144.9"},
        ]

    monkeypatch.setattr("parkfinder.ingestion.geocoder.get_json", fake_get_json)
    geocoder = NominatimGeocoder(get_settings(), FileCache(tmp_path, enabled=False))

    matches = geocoder.search("  Queen Victoria Market ")
    assert [m.name for m in matches] == ["Queen Victoria Market"]
    assert seen[0]["q"] == "Queen Victoria Market"
    assert seen[0]["countrycodes"] == "au"
    assert seen[0]["bounded"] == 1
    assert seen[0]["viewbox"].split(",")[0] == "144.93366"


def test_resolve_returns_first_match_or_none(monkeypatch, tmp_path):
    monkeypatch.setattr(
        "parkfinder.ingestion.geocoder.get_json",
        lambda *_a, **_k: [{"lat": "-37.8183", "lon": "144.9671"}, {"lat": "-37.0", "lon": "144.0"}],
    )
    geocoder = NominatimGeocoder(get_settings(), FileCache(tmp_path, enabled=False))
    assert geocoder.resolve("Flinders Street Station") == GeoPoint(lat=-37.8183, lon=144.9671)

    monkeypatch.setattr("parkfinder.ingestion.geocoder.get_json", lambda *_a, **_k: [])
    assert geocoder.resolve("nowhere") is None


def test_blank_term_skips_http(monkeypatch, tmp_path):
    def fail(*_a, **_k):
        raise AssertionError("no request expected")

    monkeypatch.setattr("parkfinder.ingestion.geocoder.get_json", fail)
    geocoder = NominatimGeocoder(get_settings(), FileCache(tmp_path, enabled=False))
    assert geocoder.search("   ") == []
