import pytest

from parkfinder.core.cache import FileCache


def test_file_cache_returns_fresh_value_without_calling_builder(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=60)

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 0)
    cache.set("socrata", "bays", [{"bay_id": "1"}])

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 30)

    def builder():
        raise AssertionError("builder must not run for a fresh entry")

    assert cache.get_or_set("socrata", "bays", builder) == [{"bay_id": "1"}]


def test_file_cache_stale_if_error_returns_expired_value(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=1)

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 0)
    cache.set("ns", "k", {"v": 1}, ttl_seconds=1)

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 100)

    def builder():
        raise RuntimeError("upstream down")

    val = cache.get_or_set(
        "ns",
        "k",
        builder,
        ttl_seconds=1,
        stale_if_error=True,
        stale_predicate=lambda exc: isinstance(exc, RuntimeError),
    )
    assert val == {"v": 1}


def test_file_cache_stale_if_error_respects_predicate(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=1)

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 0)
    cache.set("ns", "k", {"v": 1}, ttl_seconds=1)

    monkeypatch.setattr("parkfinder.core.cache.time.time", lambda: 100)

    def builder():
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError):
        cache.get_or_set(
            "ns",
            "k",
            builder,
            ttl_seconds=1,
            stale_if_error=True,
            stale_predicate=lambda exc: isinstance(exc, ValueError),
        )


def test_disabled_cache_always_rebuilds(tmp_path):
    cache = FileCache(tmp_path, enabled=False)
    calls = []

    def builder():
        calls.append(1)
        return {"n": len(calls)}

    assert cache.get_or_set("ns", "k", builder) == {"n": 1}
    assert cache.get_or_set("ns", "k", builder) == {"n": 2}
    assert not any(tmp_path.iterdir())


def test_unreadable_entry_is_treated_as_miss(tmp_path):
    cache = FileCache(tmp_path, enabled=True)
    cache.set("ns", "k", {"v": 1})
    path = next((tmp_path / "ns").glob("*.json"))
    path.write_text("{not json", encoding="utf-8")

    assert cache.get("ns", "k") is None
    assert cache.get_or_set("ns", "k", lambda: {"v": 2}) == {"v": 2}
