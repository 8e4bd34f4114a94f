import os
from dataclasses import dataclass
from enum import Enum

TITLE_LENGTH = 40  # characters shown for text entries in LIST


class EntryKind(str, Enum):
    TEXT = "Text"
    HTML = "Html"
    IMAGE = "Image"

    @property
    def tag(self) -> str:
        return _KIND_TAGS[self]

    @property
    def default_mime(self) -> str:
        return _DEFAULT_MIMES[self]

    @classmethod
    def from_tag(cls, tag: str) -> "EntryKind":
        for kind, kind_tag in _KIND_TAGS.items():
            if kind_tag == tag:
                return kind
        raise ValueError(f"unknown kind tag: {tag!r}")


_KIND_TAGS = {EntryKind.TEXT: "T", EntryKind.HTML: "H", EntryKind.IMAGE: "I"}
_DEFAULT_MIMES = {EntryKind.TEXT: "text/plain", EntryKind.HTML: "text/html", EntryKind.IMAGE: "image/png"}


@dataclass
class Entry:
    id: int
    kind: EntryKind
    payload: bytes
    pinned: bool = False
    created_at: int = 0  # ms since epoch, refreshed on dedup
    mime: str | None = None
    external_path: str | None = None

    @property
    def effective_mime(self) -> str:
        return self.mime or self.kind.default_mime

    @property
    def is_external(self) -> bool:
        return not self.payload and bool(self.external_path)

    def title(self) -> str:
        if self.kind == EntryKind.TEXT:
            return self.payload.decode("utf-8", errors="replace")[:TITLE_LENGTH]
        if self.kind == EntryKind.IMAGE:
            return "[image]"
        return "[html]"

    def content(self) -> bytes:
        """Return the entry bytes, reading the external file when the payload was externalized.

        Raises:
            OSError: if the external file is missing or unreadable
        """
        if self.is_external:
            with open(self.external_path, "rb") as f:
                return f.read()
        return self.payload

    def same_content(self, kind: EntryKind, data: bytes) -> bool:
        if self.kind != kind:
            return False
        if not self.is_external:
            return self.payload == data
        # Compare sizes before touching the blob itself
        try:
            if os.path.getsize(self.external_path) != len(data):
                return False
            return self.content() == data
        except OSError:
            return False
