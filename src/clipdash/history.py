from collections.abc import Callable, Iterable

from clipdash.config import DaemonConfig
from clipdash.models import Entry, EntryKind
from clipdash.utils import now_ms


class HistoryStore:
    """Ordered clipboard history, oldest entry first.

    Entries are deduplicated by kind and byte content. Capacity trim and TTL
    pruning only ever evict unpinned entries, so the store may hold more than
    ``max_items`` entries when the pinned ones alone exceed it.
    """

    def __init__(
        self,
        max_items: int = 200,
        max_text_bytes: int = 100_000,
        max_html_bytes: int = 1_000_000,
        max_image_bytes: int = 2_000_000,
        ttl_secs: int = 0,
        on_remove: Callable[[Entry], None] | None = None,
    ):
        self.max_items = max_items
        self.ttl_secs = ttl_secs
        self._max_bytes = {
            EntryKind.TEXT: max_text_bytes,
            EntryKind.HTML: max_html_bytes,
            EntryKind.IMAGE: max_image_bytes,
        }
        self._on_remove = on_remove
        self._entries: list[Entry] = []
        self._next_id = 1

    @classmethod
    def from_config(cls, config: DaemonConfig, on_remove: Callable[[Entry], None] | None = None) -> "HistoryStore":
        return cls(
            max_items=config.max_items,
            max_text_bytes=config.max_text_bytes,
            max_html_bytes=config.max_html_bytes,
            max_image_bytes=config.max_image_bytes,
            ttl_secs=config.ttl_secs,
            on_remove=on_remove,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def max_bytes(self, kind: EntryKind) -> int:
        return self._max_bytes[kind]

    def entries(self) -> list[Entry]:
        return list(self._entries)

    def recent(self) -> list[Entry]:
        return self._entries[::-1]

    def get(self, entry_id: int) -> Entry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def find_same(self, kind: EntryKind, data: bytes) -> Entry | None:
        for entry in self._entries:
            if entry.same_content(kind, data):
                return entry
        return None

    def try_insert(self, candidate: Entry) -> int | None:
        """Insert ``candidate`` or merge it into an identical existing entry.

        Returns the id of the new or refreshed entry, or None when the payload
        exceeds the ceiling for its kind. The dedup lookup runs before the size
        check, so content that was accepted once can always be refreshed.
        """
        for pos, existing in enumerate(self._entries):
            if existing.same_content(candidate.kind, candidate.payload):
                del self._entries[pos]
                existing.pinned = existing.pinned or candidate.pinned
                existing.created_at = now_ms()
                if existing.mime is None:
                    existing.mime = candidate.mime
                # An inline entry never adopts the candidate's blob
                if existing.external_path is None and not existing.payload:
                    existing.external_path = candidate.external_path
                self._entries.append(existing)
                return existing.id

        if len(candidate.payload) > self._max_bytes[candidate.kind]:
            return None

        candidate.id = self._next_id
        self._next_id += 1
        candidate.created_at = now_ms()
        if candidate.external_path:
            candidate.payload = b""
        self._entries.append(candidate)
        self.prune_ttl()
        self.trim()
        return candidate.id

    def trim(self) -> int:
        removed = 0
        pos = 0
        while len(self._entries) > self.max_items and pos < len(self._entries):
            if self._entries[pos].pinned:
                pos += 1
                continue
            self._removed(self._entries.pop(pos))
            removed += 1
        return removed

    def prune_ttl(self) -> int:
        if self.ttl_secs <= 0:
            return 0
        cutoff = now_ms() - self.ttl_secs * 1000
        expired = [e for e in self._entries if not e.pinned and e.created_at < cutoff]
        if expired:
            self._entries = [e for e in self._entries if e.pinned or e.created_at >= cutoff]
            for entry in expired:
                self._removed(entry)
        return len(expired)

    def pin(self, entry_id: int, pinned: bool) -> None:
        entry = self.get(entry_id)
        if entry is not None:
            entry.pinned = pinned

    def delete(self, entry_id: int) -> bool:
        for pos, entry in enumerate(self._entries):
            if entry.id == entry_id:
                self._removed(self._entries.pop(pos))
                return True
        return False

    def clear(self) -> None:
        removed, self._entries = self._entries, []
        for entry in removed:
            self._removed(entry)

    def rebuild_from(self, entries: Iterable[Entry]) -> None:
        self._entries = list(entries)
        self._next_id = max((e.id for e in self._entries), default=0) + 1

    def _removed(self, entry: Entry) -> None:
        if self._on_remove:
            self._on_remove(entry)
