import time
from unittest.mock import patch

from clipdash.utils import compute_hash, ensure_dirs, extension_for_mime, now_ms, single_line


class TestComputeHash:
    def test_string_input(self):
        h = compute_hash("hello")
        assert isinstance(h, str)
        assert len(h) == 64  # SHA-256 hex digest

    def test_same_content_same_hash(self):
        assert compute_hash(b"test") == compute_hash(b"test")

    def test_different_content_different_hash(self):
        assert compute_hash("abc") != compute_hash("xyz")

    def test_string_and_bytes_same_hash(self):
        assert compute_hash("hello") == compute_hash(b"hello")


class TestNowMs:
    def test_close_to_wall_clock(self):
        assert abs(now_ms() - int(time.time() * 1000)) < 1000


class TestSingleLine:
    def test_replaces_tabs_and_newlines(self):
        assert single_line("a\tb\r\nc") == "a b  c"

    def test_plain_text_unchanged(self):
        assert single_line("hello world") == "hello world"


class TestExtensionForMime:
    def test_png(self):
        assert extension_for_mime("image/png", ".bin") == ".png"

    def test_jpeg(self):
        assert extension_for_mime("image/jpeg", ".bin") in (".jpg", ".jpeg")

    def test_missing_mime_uses_fallback(self):
        assert extension_for_mime(None, ".png") == ".png"

    def test_unknown_mime_uses_fallback(self):
        assert extension_for_mime("application/x-clipdash-unknown", ".bin") == ".bin"

    def test_parameters_ignored(self):
        assert extension_for_mime("text/html; charset=utf-8", ".bin") in (".html", ".htm")


class TestEnsureDirs:
    def test_creates_directories(self, tmp_path):
        data_dir = tmp_path / "data"
        cache_dir = tmp_path / "cache"
        blob_dir = cache_dir / "blobs"

        with patch("clipdash.utils.DATA_DIR", data_dir), patch("clipdash.utils.CACHE_DIR", cache_dir), patch(
            "clipdash.utils.BLOB_DIR", blob_dir
        ):
            ensure_dirs()

        assert data_dir.exists()
        assert blob_dir.exists()

    def test_idempotent(self, tmp_path):
        with patch("clipdash.utils.DATA_DIR", tmp_path / "d"), patch("clipdash.utils.CACHE_DIR", tmp_path / "c"), patch(
            "clipdash.utils.BLOB_DIR", tmp_path / "c" / "b"
        ):
            ensure_dirs()
            ensure_dirs()
