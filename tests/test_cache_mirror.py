"""Tests for the local cache mirror and its backends."""

from unittest.mock import patch

from pitchboard.services.cache_mirror import (
    LocalCacheMirror,
    _FileBackend,
    _MemoryBackend,
    build_backend,
)

KEY = "stitchAndPitchWinners"


def test_get_missing_key_returns_none():
    assert LocalCacheMirror().get(KEY) is None


def test_set_then_get_roundtrip():
    mirror = LocalCacheMirror()
    mirror.set(KEY, [{"id": "1", "name": "Ada"}])
    assert mirror.get(KEY) == [{"id": "1", "name": "Ada"}]


def test_remove():
    mirror = LocalCacheMirror()
    mirror.set(KEY, [{"id": "1"}])
    mirror.remove(KEY)
    assert mirror.get(KEY) is None


def test_corrupt_json_treated_as_empty():
    backend = _MemoryBackend()
    backend.set(KEY, "{not json")
    assert LocalCacheMirror(backend).get(KEY) is None


def test_unexpected_shape_treated_as_empty():
    backend = _MemoryBackend()
    backend.set(KEY, '{"winners": []}')
    assert LocalCacheMirror(backend).get(KEY) is None
    backend.set(KEY, '[1, 2, 3]')
    assert LocalCacheMirror(backend).get(KEY) is None


def test_backend_read_error_treated_as_empty():
    backend = _MemoryBackend()
    with patch.object(backend, "get", side_effect=OSError("disk gone")):
        assert LocalCacheMirror(backend).get(KEY) is None


def test_backend_write_error_is_swallowed():
    backend = _MemoryBackend()
    with patch.object(backend, "set", side_effect=OSError("read-only")):
        LocalCacheMirror(backend).set(KEY, [{"id": "1"}])
    assert backend.get(KEY) is None


def test_file_backend_survives_new_instance(tmp_path):
    LocalCacheMirror(_FileBackend(str(tmp_path))).set(KEY, [{"id": "1"}])
    reopened = LocalCacheMirror(_FileBackend(str(tmp_path)))
    assert reopened.get(KEY) == [{"id": "1"}]


def test_file_backend_leaves_no_temp_files(tmp_path):
    mirror = LocalCacheMirror(_FileBackend(str(tmp_path)))
    mirror.set(KEY, [{"id": "1"}])
    mirror.set(KEY, [{"id": "2"}])
    assert sorted(p.name for p in tmp_path.iterdir()) == [f"{KEY}.json"]


def test_build_backend_from_urls(tmp_path):
    assert build_backend("memory://").name == "memory"
    assert build_backend(None).name == "memory"
    file_backend = build_backend(f"file://{tmp_path}/cache")
    assert file_backend.name == "file"
    assert file_backend.directory == f"{tmp_path}/cache"


def test_unreachable_redis_falls_back_to_file_backend(tmp_path):
    with patch("redis.from_url", side_effect=ConnectionError("refused")), \
            patch("pitchboard.services.cache_mirror._default_file_dir", return_value=str(tmp_path)):
        backend = build_backend("redis://localhost:6399/0")
    assert backend.name == "file"


def test_health_check_reports_backend():
    assert LocalCacheMirror().health_check() == {"status": "ok", "backend": "memory"}
