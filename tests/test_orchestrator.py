"""Tests for the per-series acquisition loop."""

import errno
import os
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from theme_song_pipeline.chain import ResolutionChain
from theme_song_pipeline.errors import ExternalToolError, NetworkError, PlacementError
from theme_song_pipeline.models import ErrorCategory, Outcome, SeriesRecord
from theme_song_pipeline.orchestrator import ThemeCache, acquire_one, place_theme, run_batch
from theme_song_pipeline.providers.base import ThemeSongProvider


class StaticProvider(ThemeSongProvider):
    """Returns a URL for every series whose name is in urls."""

    name = "static"

    def __init__(self, urls: dict[str, str]):
        super().__init__(priority=1)
        self.urls = urls

    def resolve(self, series):
        return self.urls.get(series.name)


class ListSource:
    def __init__(self, series):
        self.series = series

    def list_series(self):
        return list(self.series)


def _series(tmp_path: Path, name: str, has_theme: bool = False, tvdb_id: str = "1") -> SeriesRecord:
    folder = tmp_path / "tv" / name
    folder.mkdir(parents=True, exist_ok=True)
    return SeriesRecord(id=name, name=name, path=folder, tvdb_id=tvdb_id, has_theme=has_theme)


def _fake_download(url: str, dest: Path) -> None:
    dest.write_bytes(f"audio from {url}".encode())


def _passthrough(path: Path) -> Path:
    return path


class TestThemeCache:
    def test_created_lazily(self, tmp_path):
        cache = ThemeCache(tmp_path / "cache" / "ThemeSongs")
        assert not cache.cache_dir.exists()
        cache.ensure()
        assert cache.cache_dir.is_dir()

    def test_temp_path_deterministic(self, tmp_path):
        cache = ThemeCache(tmp_path / "cache")
        series = SeriesRecord(id="x", name="Lost", path=tmp_path, tvdb_id="73739")
        assert cache.temp_path(series) == tmp_path / "cache" / "Lost_73739.mp3"
        assert cache.temp_path(series) == cache.temp_path(series)

    def test_same_name_different_ids(self, tmp_path):
        cache = ThemeCache(tmp_path / "cache")
        a = SeriesRecord(id="a", name="The Office", path=tmp_path, tvdb_id="73244")
        b = SeriesRecord(id="b", name="The Office", path=tmp_path, tvdb_id="78107")
        assert cache.temp_path(a) != cache.temp_path(b)

    def test_long_names_with_shared_prefix(self, tmp_path):
        cache = ThemeCache(tmp_path / "cache")
        a = SeriesRecord(id="a", name="長い題名" * 30, path=tmp_path, tvdb_id="111111")
        b = SeriesRecord(id="b", name="長い題名" * 30 + "x", path=tmp_path, tvdb_id="222222")
        assert cache.temp_path(a) != cache.temp_path(b)
        assert cache.temp_path(a).name.endswith("_111111.mp3")

    def test_concurrent_ensure(self, tmp_path):
        cache = ThemeCache(tmp_path / "cache")
        threads = [threading.Thread(target=cache.ensure) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert cache.cache_dir.is_dir()


class TestPlaceTheme:
    def test_moves_and_overwrites(self, tmp_path):
        src = tmp_path / "src.mp3"
        src.write_bytes(b"new")
        dest = tmp_path / "theme.mp3"
        dest.write_bytes(b"partial")
        place_theme(src, dest)
        assert dest.read_bytes() == b"new"
        assert not src.exists()

    def test_missing_series_folder(self, tmp_path):
        src = tmp_path / "src.mp3"
        src.write_bytes(b"new")
        with pytest.raises(PlacementError):
            place_theme(src, tmp_path / "gone" / "theme.mp3")
        assert src.exists()

    def test_cross_device_falls_back_to_copy(self, tmp_path):
        src = tmp_path / "src.mp3"
        src.write_bytes(b"new")
        dest_dir = tmp_path / "show"
        dest_dir.mkdir()
        dest = dest_dir / "theme.mp3"

        real_replace = os.replace
        calls = []

        def fake_replace(a, b):
            calls.append((Path(a), Path(b)))
            if Path(a) == src:
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            return real_replace(a, b)

        with patch("theme_song_pipeline.orchestrator.os.replace", side_effect=fake_replace):
            place_theme(src, dest)

        assert dest.read_bytes() == b"new"
        assert not src.exists()
        assert not (dest_dir / ".theme.mp3.partial").exists()
        assert calls[-1] == (dest_dir / ".theme.mp3.partial", dest)


class TestAcquireOne:
    def test_skips_series_with_theme(self, tmp_path):
        series = _series(tmp_path, "Lost", has_theme=True)
        provider = StaticProvider({"Lost": "http://x/lost.mp3"})
        result = acquire_one(
            series, ResolutionChain([provider]), ThemeCache(tmp_path / "cache"),
            _fake_download, _passthrough,
        )
        assert result.outcome == Outcome.SKIPPED
        assert not (tmp_path / "cache").exists()

    def test_not_found(self, tmp_path):
        series = _series(tmp_path, "Lost")
        result = acquire_one(
            series, ResolutionChain([StaticProvider({})]), ThemeCache(tmp_path / "cache"),
            _fake_download, _passthrough,
        )
        assert result.outcome == Outcome.NOT_FOUND
        assert result.category == ErrorCategory.NOT_FOUND

    def test_places_theme_and_cleans_cache(self, tmp_path):
        series = _series(tmp_path, "Lost", tvdb_id="73739")
        cache = ThemeCache(tmp_path / "cache")
        result = acquire_one(
            series, ResolutionChain([StaticProvider({"Lost": "http://x/lost.mp3"})]),
            cache, _fake_download, _passthrough,
        )
        assert result.outcome == Outcome.PLACED
        assert result.provider == "static"
        assert (series.path / "theme.mp3").read_bytes() == b"audio from http://x/lost.mp3"
        assert list(cache.cache_dir.iterdir()) == []

    def test_places_normalized_output(self, tmp_path):
        series = _series(tmp_path, "Lost")
        cache = ThemeCache(tmp_path / "cache")

        def normalize(path):
            out = path.with_name(f"normalized_{path.name}")
            out.write_bytes(b"normalized")
            return out

        result = acquire_one(
            series, ResolutionChain([StaticProvider({"Lost": "http://x/lost.mp3"})]),
            cache, _fake_download, normalize,
        )
        assert result.outcome == Outcome.PLACED
        assert (series.path / "theme.mp3").read_bytes() == b"normalized"
        assert list(cache.cache_dir.iterdir()) == []

    def test_download_failure(self, tmp_path):
        series = _series(tmp_path, "Lost")
        cache = ThemeCache(tmp_path / "cache")

        def download(url, dest):
            dest.write_bytes(b"half")
            raise NetworkError(url, "connection reset")

        result = acquire_one(
            series, ResolutionChain([StaticProvider({"Lost": "http://x/lost.mp3"})]),
            cache, download, _passthrough,
        )
        assert result.outcome == Outcome.FAILED
        assert result.category == ErrorCategory.TRANSIENT_NETWORK
        assert not (series.path / "theme.mp3").exists()
        assert list(cache.cache_dir.iterdir()) == []

    def test_normalization_failure(self, tmp_path):
        series = _series(tmp_path, "Lost")
        cache = ThemeCache(tmp_path / "cache")

        def normalize(path):
            raise ExternalToolError("ffmpeg", 1, "bad audio")

        result = acquire_one(
            series, ResolutionChain([StaticProvider({"Lost": "http://x/lost.mp3"})]),
            cache, _fake_download, normalize,
        )
        assert result.outcome == Outcome.FAILED
        assert result.category == ErrorCategory.PROCESS
        assert not (series.path / "theme.mp3").exists()
        assert list(cache.cache_dir.iterdir()) == []


class TestRunBatch:
    def _urls(self):
        return {
            "Archer": "http://x/archer.mp3",
            "Lost": "http://x/lost.mp3",
            "Monk": "http://x/monk.mp3",
        }

    def test_failure_isolated(self, tmp_path):
        series = [_series(tmp_path, n) for n in ("Archer", "Lost", "Monk")]

        def normalize(path):
            if path.name.startswith("Lost"):
                raise ExternalToolError("ffmpeg", 1, "corrupt")
            return path

        result = run_batch(
            ListSource(series),
            ResolutionChain([StaticProvider(self._urls())]),
            tmp_path / "cache",
            _fake_download,
            normalize,
        )
        assert result.total == 3
        assert result.placed == 2
        assert result.failed == 1
        assert [r.outcome for r in result.results] == [
            Outcome.PLACED, Outcome.FAILED, Outcome.PLACED,
        ]
        assert (series[0].path / "theme.mp3").exists()
        assert not (series[1].path / "theme.mp3").exists()
        assert (series[2].path / "theme.mp3").exists()

    def test_mixed_outcomes(self, tmp_path):
        series = [
            _series(tmp_path, "Archer", has_theme=True),
            _series(tmp_path, "Dexter"),
            _series(tmp_path, "Monk"),
        ]
        result = run_batch(
            ListSource(series),
            ResolutionChain([StaticProvider(self._urls())]),
            tmp_path / "cache",
            _fake_download,
            _passthrough,
        )
        assert (result.skipped, result.not_found, result.placed, result.failed) == (1, 1, 1, 0)

    def test_unexpected_error_isolated(self, tmp_path):
        series = [_series(tmp_path, n) for n in ("Archer", "Lost")]
        inner = ResolutionChain([StaticProvider(self._urls())])

        class BrokenChain:
            def resolve(self, s):
                if s.name == "Archer":
                    raise RuntimeError("chain bug")
                return inner.resolve(s)

        result = run_batch(
            ListSource(series), BrokenChain(), tmp_path / "cache",
            _fake_download, _passthrough,
        )
        assert result.failed == 1
        assert result.placed == 1

    def test_empty_source(self, tmp_path):
        result = run_batch(
            ListSource([]), ResolutionChain([]), tmp_path / "cache",
            _fake_download, _passthrough,
        )
        assert result.total == 0
        assert not (tmp_path / "cache").exists()

    def test_cancel_checked_between_series(self, tmp_path):
        series = [_series(tmp_path, n) for n in ("Archer", "Lost", "Monk")]
        cancel = threading.Event()

        def download(url, dest):
            _fake_download(url, dest)
            cancel.set()

        result = run_batch(
            ListSource(series),
            ResolutionChain([StaticProvider(self._urls())]),
            tmp_path / "cache",
            download,
            _passthrough,
            cancel=cancel,
        )
        assert result.cancelled is True
        assert result.placed == 1
        assert len(result.results) == 1

    def test_parallel_workers(self, tmp_path):
        names = [f"Show {i}" for i in range(6)]
        series = [_series(tmp_path, n, tvdb_id=str(i)) for i, n in enumerate(names)]
        urls = {n: f"http://x/{i}.mp3" for i, n in enumerate(names)}

        def normalize(path):
            if path.name.startswith("Show 3"):
                raise ExternalToolError("ffmpeg", 1, "corrupt")
            return path

        result = run_batch(
            ListSource(series),
            ResolutionChain([StaticProvider(urls)]),
            tmp_path / "cache",
            _fake_download,
            normalize,
            max_workers=3,
        )
        assert result.placed == 5
        assert result.failed == 1
        for s in series:
            assert (s.path / "theme.mp3").exists() == (s.name != "Show 3")
