import hashlib
import mimetypes
import time

from clipdash.config import BLOB_DIR, CACHE_DIR, DATA_DIR


def compute_hash(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def single_line(text: str) -> str:
    """Replace tabs and line breaks so a value fits in one tab-separated row."""
    return text.replace("\r", " ").replace("\n", " ").replace("\t", " ")


def extension_for_mime(mime: str | None, fallback: str) -> str:
    if not mime:
        return fallback
    extension = mimetypes.guess_extension(mime.split(";")[0].strip())
    if extension in (None, "", ".jpe"):
        return ".jpeg" if mime == "image/jpeg" else fallback
    return extension


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    CACHE_DIR.mkdir(parents=True, exist_ok=True)
    BLOB_DIR.mkdir(parents=True, exist_ok=True)
