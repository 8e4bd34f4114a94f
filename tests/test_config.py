import os
from unittest.mock import patch

from clipdash.config import DaemonConfig, _parse_bool_env, _parse_int_env


class TestParseIntEnv:
    def test_default_when_not_set(self):
        env = os.environ.copy()
        env.pop("CLIPDASH_TEST_INT", None)
        with patch.dict("os.environ", env, clear=True):
            assert _parse_int_env("CLIPDASH_TEST_INT", 10) == 10

    def test_valid_value(self):
        with patch.dict("os.environ", {"CLIPDASH_TEST_INT": "20"}):
            assert _parse_int_env("CLIPDASH_TEST_INT", 10) == 20

    def test_clamped_below_minimum(self):
        with patch.dict("os.environ", {"CLIPDASH_TEST_INT": "-5"}):
            assert _parse_int_env("CLIPDASH_TEST_INT", 10, minimum=1) == 1

    def test_invalid_non_integer(self):
        with patch.dict("os.environ", {"CLIPDASH_TEST_INT": "abc"}):
            assert _parse_int_env("CLIPDASH_TEST_INT", 10) == 10


class TestParseBoolEnv:
    def test_truthy(self):
        for raw in ("1", "true", "YES", "on"):
            with patch.dict("os.environ", {"CLIPDASH_TEST_BOOL": raw}):
                assert _parse_bool_env("CLIPDASH_TEST_BOOL", False) is True

    def test_falsy(self):
        for raw in ("0", "false", "No", "off"):
            with patch.dict("os.environ", {"CLIPDASH_TEST_BOOL": raw}):
                assert _parse_bool_env("CLIPDASH_TEST_BOOL", True) is False

    def test_garbage_keeps_default(self):
        with patch.dict("os.environ", {"CLIPDASH_TEST_BOOL": "maybe"}):
            assert _parse_bool_env("CLIPDASH_TEST_BOOL", True) is True


class TestDaemonConfig:
    def test_defaults(self):
        config = DaemonConfig()
        assert config.max_items == 200
        assert config.ttl_secs == 0
        assert config.image_inline_max == 200_000
        assert config.html_inline_max == 100_000
        assert config.watch_any is True

    def test_from_env(self):
        env = {
            "CLIPDASH_MAX_ITEMS": "50",
            "CLIPDASH_TTL_SECS": "3600",
            "CLIPDASH_WATCH_IMAGES": "0",
            "CLIPDASH_POLL_INTERVAL": "0.5",
        }
        with patch.dict("os.environ", env):
            config = DaemonConfig.from_env()
        assert config.max_items == 50
        assert config.ttl_secs == 3600
        assert config.watch_images is False
        assert config.watch_text is True
        assert config.poll_interval == 0.5

    def test_from_env_max_items_at_least_one(self):
        with patch.dict("os.environ", {"CLIPDASH_MAX_ITEMS": "0"}):
            assert DaemonConfig.from_env().max_items == 1

    def test_watch_any_false_when_all_off(self):
        config = DaemonConfig(watch_text=False, watch_html=False, watch_images=False)
        assert config.watch_any is False
