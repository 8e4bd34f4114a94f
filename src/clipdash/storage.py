import logging
import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path

from clipdash.config import HISTORY_PATH
from clipdash.models import Entry, EntryKind
from clipdash.utils import now_ms

logger = logging.getLogger(__name__)

HEADER = "clipdash-history v3"
# Older daemons wrote these tags; their records are still readable
KNOWN_HEADERS = frozenset({"clipdash-history v1", "clipdash-history v2", HEADER})

FIELD_SEP = "|"
_ESCAPES = {"\\": "\\\\", "|": "\\|", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", "|": "|", "n": "\n", "r": "\r"}


def escape_field(value: str | None) -> str:
    if not value:
        return ""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def split_fields(line: str) -> list[str]:
    """Split a record on unescaped separators, unescaping each field."""
    fields: list[str] = []
    current: list[str] = []
    chars = iter(line)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, None)
            if nxt is None or nxt not in _UNESCAPES:
                raise ValueError(f"bad escape sequence in record: {line!r}")
            current.append(_UNESCAPES[nxt])
        elif ch == FIELD_SEP:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))
    return fields


def _decode_payload(length: str, hex_payload: str) -> bytes:
    declared = int(length)
    payload = bytes.fromhex(hex_payload)
    if len(payload) != declared:
        raise ValueError(f"payload length {len(payload)} != declared {declared}")
    return payload


def _parse_id(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError(f"negative id: {value}")
    return value


def _parse_pinned(raw: str) -> bool:
    if raw not in ("0", "1"):
        raise ValueError(f"bad pinned flag: {raw!r}")
    return raw == "1"


def decode_v3(fields: list[str]) -> Entry:
    if len(fields) != 8:
        raise ValueError("v3 records have 8 fields")
    entry_id, tag, pinned, ts, mime, path, length, hex_payload = fields
    return Entry(
        id=_parse_id(entry_id),
        kind=EntryKind.from_tag(tag),
        payload=_decode_payload(length, hex_payload),
        pinned=_parse_pinned(pinned),
        created_at=int(ts),
        mime=mime or None,
        external_path=path or None,
    )


def decode_v2(fields: list[str]) -> Entry:
    if len(fields) != 6:
        raise ValueError("v2 records have 6 fields")
    entry_id, tag, pinned, ts, length, hex_payload = fields
    return Entry(
        id=_parse_id(entry_id),
        kind=EntryKind.from_tag(tag),
        payload=_decode_payload(length, hex_payload),
        pinned=_parse_pinned(pinned),
        created_at=int(ts),
    )


def decode_v1(fields: list[str]) -> Entry:
    if len(fields) != 5:
        raise ValueError("v1 records have 5 fields")
    entry_id, tag, pinned, length, hex_payload = fields
    return Entry(
        id=_parse_id(entry_id),
        kind=EntryKind.from_tag(tag),
        payload=_decode_payload(length, hex_payload),
        pinned=_parse_pinned(pinned),
        created_at=now_ms(),
    )


# Newest layout first
DECODERS: tuple[Callable[[list[str]], Entry], ...] = (decode_v3, decode_v2, decode_v1)


def decode_record(line: str) -> Entry:
    fields = split_fields(line)
    errors = []
    for decoder in DECODERS:
        try:
            return decoder(fields)
        except ValueError as e:
            errors.append(str(e))
    raise ValueError("; ".join(errors))


def encode_record(entry: Entry) -> str:
    return FIELD_SEP.join(
        (
            str(entry.id),
            entry.kind.tag,
            "1" if entry.pinned else "0",
            str(entry.created_at),
            escape_field(entry.mime),
            escape_field(entry.external_path),
            str(len(entry.payload)),
            entry.payload.hex(),
        )
    )


class HistoryLog:
    """Flat-file snapshot of the whole history, rewritten atomically on every save."""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else HISTORY_PATH

    @property
    def path(self) -> Path:
        return self._path

    def save(self, entries: Iterable[Entry]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(HEADER + "\n")
                for entry in entries:
                    f.write(encode_record(entry) + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def load(self) -> list[Entry]:
        try:
            text = self._path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return []

        # Only "\n" ends a record; str.splitlines() would also split on U+2028 and friends
        lines = text.split("\n")
        if lines[0].strip() not in KNOWN_HEADERS:
            logger.warning("Unrecognized history header in %s, ignoring file", self._path)
            return []

        entries: list[Entry] = []
        skipped = 0
        for lineno, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            try:
                entries.append(decode_record(line))
            except ValueError as e:
                skipped += 1
                logger.debug("Skipping %s:%d: %s", self._path, lineno, e)
        if skipped:
            logger.warning("Skipped %d malformed record(s) in %s", skipped, self._path)
        return entries
