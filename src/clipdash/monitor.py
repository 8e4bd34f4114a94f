import logging
import threading

from clipdash.clipboard import ClipboardBackend, ClipData
from clipdash.daemon import DaemonState
from clipdash.models import EntryKind
from clipdash.utils import compute_hash

logger = logging.getLogger(__name__)


class ClipboardWatcher:
    """Polls the system clipboard and feeds new content into the daemon state."""

    def __init__(self, state: DaemonState, backend: ClipboardBackend, poll_interval: float | None = None):
        self._state = state
        self._backend = backend
        self._interval = poll_interval if poll_interval is not None else state.config.poll_interval
        self._last_hash: str | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _watching(self, kind: EntryKind) -> bool:
        config = self._state.config
        if kind == EntryKind.TEXT:
            return config.watch_text
        if kind == EntryKind.HTML:
            return config.watch_html
        return config.watch_images

    def check_clipboard(self) -> bool:
        try:
            clip: ClipData | None = self._backend.read()
            if clip is None or not clip.data or not self._watching(clip.kind):
                return False

            content_hash = compute_hash(clip.data)
            if content_hash == self._last_hash:
                return False
            self._last_hash = content_hash

            entry_id = self._state.capture(clip.kind, clip.data, clip.mime)
            if entry_id is None:
                logger.info("%s capture too large (%d bytes), skipping", clip.kind.value, len(clip.data))
                return False
            return True
        except Exception:
            logger.exception("Error reading clipboard")
            return False

    def _run(self) -> None:
        while not self._stop.is_set():
            self.check_clipboard()
            self._stop.wait(self._interval)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="clipboard-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
