import base64
import logging
import threading
from dataclasses import replace
from pathlib import Path

from clipdash.blobs import BlobCache
from clipdash.clipboard import ClipboardBackend, ClipboardError
from clipdash.config import DaemonConfig
from clipdash.history import HistoryStore
from clipdash.models import Entry, EntryKind
from clipdash.storage import HistoryLog
from clipdash.utils import single_line

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
# Pin flags are a single byte; any non-zero value pins
MAX_PIN_FLAG = 255


def _parse_id(raw: str) -> int | None:
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def matches_query(entry: Entry, query: str) -> bool:
    if entry.kind == EntryKind.TEXT:
        return query in entry.payload.decode("utf-8", errors="replace").lower()
    return query in entry.title().lower()


class DaemonState:
    """The daemon's single shared state: history, persistence, and the command protocol.

    Every public method takes ``self._lock`` for its in-memory work and the
    save that follows a mutation. Blob writes and clipboard helper calls
    happen outside the lock.
    """

    def __init__(
        self,
        config: DaemonConfig | None = None,
        persist: HistoryLog | None = None,
        blobs: BlobCache | None = None,
        clipboard: ClipboardBackend | None = None,
    ):
        self.config = config or DaemonConfig()
        self._persist = persist
        self._blobs = blobs
        self.clipboard = clipboard
        self._lock = threading.Lock()
        self.history = HistoryStore.from_config(self.config, on_remove=self._on_remove)
        self._handlers = {
            "ADD_TEXT": self._cmd_add_text,
            "ADD_HTML": self._cmd_add_html,
            "LIST": self._cmd_list,
            "GET": self._cmd_get,
            "PASTE": self._cmd_paste,
            "PIN": self._cmd_pin,
            "DELETE": self._cmd_delete,
            "CLEAR": self._cmd_clear,
        }

    @classmethod
    def with_file_persist(
        cls,
        path: str | Path,
        config: DaemonConfig | None = None,
        blobs: BlobCache | None = None,
        clipboard: ClipboardBackend | None = None,
    ) -> "DaemonState":
        state = cls(config=config, persist=HistoryLog(path), blobs=blobs, clipboard=clipboard)
        entries = state._persist.load()
        state.history.rebuild_from(entries)
        logger.info("Loaded %d entries from %s", len(entries), path)
        return state

    def persist(self) -> None:
        with self._lock:
            self._persist_locked()

    def _persist_locked(self) -> None:
        if self._persist is None:
            return
        try:
            self._persist.save(self.history.entries())
        except OSError:
            logger.exception("Failed to persist history to %s", self._persist.path)

    def _on_remove(self, entry: Entry) -> None:
        if self._blobs and entry.external_path:
            self._blobs.discard(entry.external_path)

    def capture(self, kind: EntryKind, data: bytes, mime: str | None = None) -> int | None:
        """Insert clipboard content, externalizing large blobs first.

        Returns the entry id, or None when the content exceeds the size ceiling
        for its kind.
        """
        external_path = None
        if self._blobs and self._blobs.should_externalize(kind, len(data)):
            if len(data) <= self.history.max_bytes(kind):
                with self._lock:
                    duplicate = self.history.find_same(kind, data) is not None
                # A refresh reuses the stored copy; writing a new blob could evict it
                if not duplicate:
                    external_path = self._blobs.externalize(kind, data, mime)

        candidate = Entry(id=0, kind=kind, payload=data, mime=mime, external_path=external_path)
        with self._lock:
            entry_id = self.history.try_insert(candidate)
            if entry_id is not None:
                self._persist_locked()
            stored = self.history.get(entry_id) if entry_id is not None else None

        if external_path and (stored is None or stored.external_path != external_path):
            # Rejected, or merged into an entry that already has its own copy
            self._blobs.discard(external_path)
        return entry_id

    def handle_command(self, line: str) -> str:
        verb, _, rest = line.rstrip("\r\n").partition(" ")
        handler = self._handlers.get(verb.upper())
        if handler is None:
            return "ERR unknown"
        return handler(rest)

    def _add(self, kind: EntryKind, rest: str, mime: str | None) -> str:
        if not rest:
            return "ERR empty content"
        entry_id = self.capture(kind, rest.encode("utf-8"), mime)
        if entry_id is None:
            return f"ERR {kind.value.lower()} too large"
        return f"OK {entry_id}"

    def _cmd_add_text(self, rest: str) -> str:
        return self._add(EntryKind.TEXT, rest, None)

    def _cmd_add_html(self, rest: str) -> str:
        return self._add(EntryKind.HTML, rest, "text/html")

    def _cmd_list(self, rest: str) -> str:
        limit_s, _, query = rest.partition(" ")
        limit = _parse_id(limit_s) if limit_s else None
        if limit is None:
            limit = DEFAULT_LIST_LIMIT
        query = query.lower()

        rows = []
        with self._lock:
            for entry in self.history.recent():
                if len(rows) >= limit:
                    break
                if query and not matches_query(entry, query):
                    continue
                rows.append(
                    f"{entry.id}\t{entry.kind.value}\t{int(entry.pinned)}\t"
                    f"{single_line(entry.title())}\t{entry.effective_mime}\n"
                )
        return f"OK {len(rows)}\n" + "".join(rows)

    def _lookup(self, rest: str) -> Entry | None:
        entry_id = _parse_id(rest.strip())
        if entry_id is None:
            return None
        entry = self.history.get(entry_id)
        if entry is None:
            return None
        # Copy so the metadata can be used after the lock is released
        return replace(entry)

    def _read_entry(self, rest: str) -> tuple[Entry | None, bytes | str]:
        """Look up an entry and read its content, both under the lock.

        Returns ``(entry, data)``, or ``(None, error_response)``.
        """
        with self._lock:
            entry = self._lookup(rest)
            if entry is None:
                return None, "ERR not found"
            try:
                return entry, entry.content()
            except OSError as e:
                return None, f"ERR cannot read {entry.external_path}: {e.strerror or e}"

    def _cmd_get(self, rest: str) -> str:
        entry, data = self._read_entry(rest)
        if entry is None:
            return data

        if entry.kind == EntryKind.TEXT:
            return "TEXT\n" + data.decode("utf-8", errors="replace")
        if entry.kind == EntryKind.HTML:
            return "HTML\n" + data.decode("utf-8", errors="replace")
        if entry.kind == EntryKind.IMAGE:
            return f"IMAGE\n{entry.effective_mime}\n" + base64.b64encode(data).decode("ascii")
        return "ERR unsupported kind"

    def _cmd_paste(self, rest: str) -> str:
        entry, data = self._read_entry(rest)
        if entry is None:
            return data
        if self.clipboard is None:
            return "ERR no clipboard backend"
        try:
            self.clipboard.write(data, entry.effective_mime, entry.kind)
        except ClipboardError as e:
            logger.warning("Paste of entry %d failed: %s", entry.id, e)
            return f"ERR {e}"
        return "OK"

    def _cmd_pin(self, rest: str) -> str:
        parts = rest.split()
        if len(parts) != 2:
            return "ERR invalid args"
        entry_id = _parse_id(parts[0])
        flag = _parse_id(parts[1])
        if entry_id is None or flag is None or flag > MAX_PIN_FLAG:
            return "ERR invalid args"
        with self._lock:
            self.history.pin(entry_id, flag != 0)
            self._persist_locked()
        return "OK"

    def _cmd_delete(self, rest: str) -> str:
        entry_id = _parse_id(rest.strip())
        if entry_id is None:
            return "ERR invalid args"
        with self._lock:
            if not self.history.delete(entry_id):
                return "ERR not found"
            self._persist_locked()
        return "OK"

    def _cmd_clear(self, rest: str) -> str:
        with self._lock:
            self.history.clear()
            self._persist_locked()
        return "OK"
