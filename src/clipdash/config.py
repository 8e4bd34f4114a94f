import os
from dataclasses import dataclass
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPDASH_DATA_DIR", Path.home() / ".local" / "share" / "clipdash"))
CACHE_DIR = Path(os.environ.get("CLIPDASH_CACHE_DIR", Path.home() / ".cache" / "clipdash"))
HISTORY_PATH = DATA_DIR / "history.v1"
LOG_PATH = DATA_DIR / "clipdash.log"
SOCKET_PATH = CACHE_DIR / "daemon.sock"
BLOB_DIR = CACHE_DIR / "blobs"

POLL_INTERVAL = 1.0  # seconds between clipboard checks
MAX_REQUEST_SIZE = 10 * 1024 * 1024  # bytes accepted before a newline
REQUEST_TIMEOUT = 5.0  # seconds a client may take to send its command
HELPER_TIMEOUT = 1.5  # seconds allowed for wl-paste / xclip invocations


def _parse_int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _parse_float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return default


@dataclass
class DaemonConfig:
    watch_text: bool = True
    watch_html: bool = True
    watch_images: bool = True
    max_items: int = 200
    max_text_bytes: int = 100_000
    max_html_bytes: int = 1_000_000
    max_image_bytes: int = 2_000_000
    ttl_secs: int = 0  # 0 disables age-based pruning
    image_inline_max: int = 200_000  # larger images go to the blob cache
    html_inline_max: int = 100_000
    image_cache_max_bytes: int = 200_000_000
    html_cache_max_bytes: int = 50_000_000
    poll_interval: float = POLL_INTERVAL

    @property
    def watch_any(self) -> bool:
        return self.watch_text or self.watch_html or self.watch_images

    @classmethod
    def from_env(cls) -> "DaemonConfig":
        """Build a config from CLIPDASH_* environment variables.

        Unset or unparsable variables fall back to the defaults above.
        """
        defaults = cls()
        return cls(
            watch_text=_parse_bool_env("CLIPDASH_WATCH_TEXT", defaults.watch_text),
            watch_html=_parse_bool_env("CLIPDASH_WATCH_HTML", defaults.watch_html),
            watch_images=_parse_bool_env("CLIPDASH_WATCH_IMAGES", defaults.watch_images),
            max_items=_parse_int_env("CLIPDASH_MAX_ITEMS", defaults.max_items, minimum=1),
            max_text_bytes=_parse_int_env("CLIPDASH_MAX_TEXT_BYTES", defaults.max_text_bytes),
            max_html_bytes=_parse_int_env("CLIPDASH_MAX_HTML_BYTES", defaults.max_html_bytes),
            max_image_bytes=_parse_int_env("CLIPDASH_MAX_IMAGE_BYTES", defaults.max_image_bytes),
            ttl_secs=_parse_int_env("CLIPDASH_TTL_SECS", defaults.ttl_secs),
            image_inline_max=_parse_int_env("CLIPDASH_IMAGE_INLINE_MAX", defaults.image_inline_max),
            html_inline_max=_parse_int_env("CLIPDASH_HTML_INLINE_MAX", defaults.html_inline_max),
            image_cache_max_bytes=_parse_int_env("CLIPDASH_IMAGE_CACHE_MAX_BYTES", defaults.image_cache_max_bytes),
            html_cache_max_bytes=_parse_int_env("CLIPDASH_HTML_CACHE_MAX_BYTES", defaults.html_cache_max_bytes),
            poll_interval=_parse_float_env("CLIPDASH_POLL_INTERVAL", defaults.poll_interval, minimum=0.1),
        )
