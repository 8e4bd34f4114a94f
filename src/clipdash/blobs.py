import logging
from pathlib import Path

from clipdash.config import BLOB_DIR, DaemonConfig
from clipdash.models import EntryKind
from clipdash.utils import extension_for_mime, now_ms

logger = logging.getLogger(__name__)

KIND_DIRS = {EntryKind.IMAGE: "images", EntryKind.HTML: "html"}
KIND_EXTENSIONS = {EntryKind.IMAGE: ".png", EntryKind.HTML: ".html"}


def cleanup(directory: str | Path, max_bytes: int) -> int:
    """Delete the oldest-modified files in ``directory`` until it fits in ``max_bytes``.

    Returns the number of files removed.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return 0

    files = []
    total = 0
    for path in directory.iterdir():
        try:
            stat = path.stat()
        except OSError:
            continue
        if not path.is_file():
            continue
        files.append((stat.st_mtime, stat.st_size, path))
        total += stat.st_size

    if total <= max_bytes:
        return 0

    removed = 0
    for _mtime, size, path in sorted(files, key=lambda f: (f[0], f[2].name)):
        if total <= max_bytes:
            break
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove cached blob %s", path)
            continue
        total -= size
        removed += 1

    if removed:
        logger.info("Removed %d cached blob(s) from %s", removed, directory)
    return removed


class BlobCache:
    def __init__(
        self,
        root: str | Path | None = None,
        image_inline_max: int = 200_000,
        html_inline_max: int = 100_000,
        image_max_bytes: int = 200_000_000,
        html_max_bytes: int = 50_000_000,
    ):
        self._root = Path(root) if root else BLOB_DIR
        self._inline_max = {EntryKind.IMAGE: image_inline_max, EntryKind.HTML: html_inline_max}
        self._quota = {EntryKind.IMAGE: image_max_bytes, EntryKind.HTML: html_max_bytes}

    @classmethod
    def from_config(cls, config: DaemonConfig, root: str | Path | None = None) -> "BlobCache":
        return cls(
            root=root,
            image_inline_max=config.image_inline_max,
            html_inline_max=config.html_inline_max,
            image_max_bytes=config.image_cache_max_bytes,
            html_max_bytes=config.html_cache_max_bytes,
        )

    @property
    def root(self) -> Path:
        return self._root

    def directory(self, kind: EntryKind) -> Path:
        return self._root / KIND_DIRS[kind]

    def should_externalize(self, kind: EntryKind, size: int) -> bool:
        limit = self._inline_max.get(kind)
        return limit is not None and size > limit

    def externalize(self, kind: EntryKind, data: bytes, mime: str | None = None) -> str | None:
        """Write ``data`` to a new file in the cache and return its path.

        Returns None when the write fails; the caller then keeps the payload inline.
        """
        directory = self.directory(kind)
        extension = extension_for_mime(mime, KIND_EXTENSIONS[kind])
        try:
            directory.mkdir(parents=True, exist_ok=True)
            stem = str(now_ms())
            path = directory / f"{stem}{extension}"
            suffix = 1
            while path.exists():
                path = directory / f"{stem}-{suffix}{extension}"
                suffix += 1
            path.write_bytes(data)
        except OSError:
            logger.exception("Could not write %s blob to %s, keeping it inline", kind.value, directory)
            return None

        cleanup(directory, self._quota[kind])
        return str(path)

    def cleanup_all(self) -> int:
        return sum(cleanup(self.directory(kind), self._quota[kind]) for kind in KIND_DIRS)

    def discard(self, path: str | None) -> None:
        if not path:
            return
        p = Path(path)
        try:
            if self._root.resolve() not in p.resolve().parents:
                return
            p.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove cached blob %s", p)
