"""System clipboard access through external helpers or the macOS pasteboard.

The daemon only needs two things from a backend: read the current clipboard
as bytes plus a mime type, and replace the clipboard with given bytes.
"""

import importlib.util
import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass

from clipdash.config import HELPER_TIMEOUT
from clipdash.models import EntryKind

logger = logging.getLogger(__name__)

IMAGE_TARGETS = ("image/png", "image/jpeg", "image/gif", "image/webp", "image/bmp")
TEXT_TARGETS = ("text/plain;charset=utf-8", "text/plain", "UTF8_STRING", "STRING", "TEXT")
HTML_TARGETS = ("text/html",)


class ClipboardError(Exception):
    """Raised when writing to the system clipboard fails."""


@dataclass
class ClipData:
    kind: EntryKind
    data: bytes
    mime: str | None = None


def classify(mime: str | None) -> EntryKind:
    base = (mime or "").split(";")[0].strip().lower()
    if base.startswith("image/"):
        return EntryKind.IMAGE
    if base == "text/html":
        return EntryKind.HTML
    return EntryKind.TEXT


def pick_target(offered: list[str]) -> str | None:
    """Choose which offered clipboard target to read: images, then plain text, then HTML."""
    lowered = {t.lower(): t for t in offered}
    for group in (IMAGE_TARGETS, TEXT_TARGETS, HTML_TARGETS):
        for target in group:
            if target.lower() in lowered:
                return lowered[target.lower()]
    return None


def _run_command(command: list[str], timeout: float = HELPER_TIMEOUT) -> bytes | None:
    try:
        result = subprocess.run(command, capture_output=True, timeout=timeout, check=False)
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def _write_command(command: list[str], data: bytes, timeout: float = HELPER_TIMEOUT) -> None:
    # wl-copy and xclip fork a child that keeps serving the selection; it must
    # not inherit our pipes or run() would wait for it to exit.
    try:
        result = subprocess.run(
            command,
            input=data,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise ClipboardError(f"{command[0]} timed out")
    except OSError as e:
        raise ClipboardError(f"{command[0]} failed: {e}")
    if result.returncode != 0:
        raise ClipboardError(f"{command[0]} exited with status {result.returncode}")


def _mime_arg(mime: str | None, kind: EntryKind) -> str:
    if kind == EntryKind.TEXT:
        return "text/plain;charset=utf-8"
    return mime or kind.default_mime


class ClipboardBackend:
    name = "none"

    @classmethod
    def available(cls) -> bool:
        return False

    def read(self) -> ClipData | None:
        raise NotImplementedError

    def write(self, data: bytes, mime: str | None, kind: EntryKind) -> None:
        raise NotImplementedError


class _HelperClipboard(ClipboardBackend):
    """Backend driven by a command line helper that lists targets and reads one."""

    def _list_command(self) -> list[str]:
        raise NotImplementedError

    def _read_command(self, target: str) -> list[str]:
        raise NotImplementedError

    def read(self) -> ClipData | None:
        listing = _run_command(self._list_command())
        if not listing:
            return None
        offered = [t.strip() for t in listing.decode("utf-8", errors="replace").splitlines() if t.strip()]
        target = pick_target(offered)
        if target is None:
            return None
        data = _run_command(self._read_command(target))
        if not data:
            return None
        kind = classify(target)
        mime = target.lower() if kind != EntryKind.TEXT else None
        return ClipData(kind=kind, data=data, mime=mime)


class WaylandClipboard(_HelperClipboard):
    name = "wl-clipboard"

    @classmethod
    def available(cls) -> bool:
        return bool(os.environ.get("WAYLAND_DISPLAY")) and bool(shutil.which("wl-paste")) and bool(shutil.which("wl-copy"))

    def _list_command(self) -> list[str]:
        return ["wl-paste", "--list-types"]

    def _read_command(self, target: str) -> list[str]:
        command = ["wl-paste", "--type", target]
        if classify(target) != EntryKind.IMAGE:
            command.append("--no-newline")
        return command

    def write(self, data: bytes, mime: str | None, kind: EntryKind) -> None:
        _write_command(["wl-copy", "--type", _mime_arg(mime, kind)], data)


class XclipClipboard(_HelperClipboard):
    name = "xclip"

    @classmethod
    def available(cls) -> bool:
        return bool(os.environ.get("DISPLAY")) and bool(shutil.which("xclip"))

    def _list_command(self) -> list[str]:
        return ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"]

    def _read_command(self, target: str) -> list[str]:
        return ["xclip", "-selection", "clipboard", "-t", target, "-o"]

    def write(self, data: bytes, mime: str | None, kind: EntryKind) -> None:
        target = "UTF8_STRING" if kind == EntryKind.TEXT else _mime_arg(mime, kind)
        _write_command(["xclip", "-selection", "clipboard", "-t", target, "-i"], data)


class PasteboardClipboard(ClipboardBackend):
    """macOS general pasteboard via pyobjc."""

    name = "pasteboard"
    HTML_TYPE = "public.html"

    @classmethod
    def available(cls) -> bool:
        return sys.platform == "darwin" and importlib.util.find_spec("AppKit") is not None

    def __init__(self):
        from AppKit import NSPasteboard

        self._pasteboard = NSPasteboard.generalPasteboard()

    def read(self) -> ClipData | None:
        from AppKit import NSPasteboardTypePNG, NSPasteboardTypeString, NSPasteboardTypeTIFF

        types = self._pasteboard.types()
        if types is None:
            return None

        for img_type, mime in ((NSPasteboardTypePNG, "image/png"), (NSPasteboardTypeTIFF, "image/tiff")):
            if img_type in types:
                data = self._pasteboard.dataForType_(img_type)
                if data is not None and len(data):
                    return ClipData(kind=EntryKind.IMAGE, data=bytes(data), mime=mime)

        if NSPasteboardTypeString in types:
            text = self._pasteboard.stringForType_(NSPasteboardTypeString)
            if text:
                return ClipData(kind=EntryKind.TEXT, data=text.encode("utf-8"))

        if self.HTML_TYPE in types:
            data = self._pasteboard.dataForType_(self.HTML_TYPE)
            if data is not None and len(data):
                return ClipData(kind=EntryKind.HTML, data=bytes(data), mime="text/html")

        return None

    def write(self, data: bytes, mime: str | None, kind: EntryKind) -> None:
        from AppKit import NSPasteboardTypePNG, NSPasteboardTypeString, NSPasteboardTypeTIFF
        from Foundation import NSData

        self._pasteboard.clearContents()
        if kind == EntryKind.TEXT:
            ok = self._pasteboard.setString_forType_(data.decode("utf-8", errors="replace"), NSPasteboardTypeString)
        else:
            if kind == EntryKind.HTML:
                pb_type = self.HTML_TYPE
            elif mime == "image/tiff":
                pb_type = NSPasteboardTypeTIFF
            else:
                pb_type = NSPasteboardTypePNG
            ok = self._pasteboard.setData_forType_(NSData.dataWithBytes_length_(data, len(data)), pb_type)
        if not ok:
            raise ClipboardError("pasteboard rejected the data")


BACKENDS: tuple[type[ClipboardBackend], ...] = (WaylandClipboard, XclipClipboard, PasteboardClipboard)


def detect_backend() -> ClipboardBackend | None:
    for backend_cls in BACKENDS:
        if backend_cls.available():
            logger.info("Using %s clipboard backend", backend_cls.name)
            return backend_cls()
    logger.warning("No clipboard backend available (tried %s)", ", ".join(b.name for b in BACKENDS))
    return None
