import pytest

from clipdash.blobs import BlobCache
from clipdash.config import DaemonConfig
from clipdash.daemon import DaemonState
from clipdash.history import HistoryStore
from clipdash.models import Entry, EntryKind


@pytest.fixture
def make_entry():
    """Factory fixture to create Entry instances for testing."""

    def _make_entry(
        text: str | bytes = "hello world",
        kind: EntryKind = EntryKind.TEXT,
        entry_id: int = 0,
        pinned: bool = False,
        created_at: int = 0,
        mime: str | None = None,
        external_path: str | None = None,
    ) -> Entry:
        payload = text.encode("utf-8") if isinstance(text, str) else text
        return Entry(
            id=entry_id,
            kind=kind,
            payload=payload,
            pinned=pinned,
            created_at=created_at,
            mime=mime,
            external_path=external_path,
        )

    return _make_entry


@pytest.fixture
def history():
    return HistoryStore(max_items=10, max_text_bytes=100, max_html_bytes=100, max_image_bytes=1000)


@pytest.fixture
def state():
    return DaemonState(DaemonConfig())


@pytest.fixture
def blobs(tmp_path):
    return BlobCache(root=tmp_path / "blobs", image_inline_max=10, html_inline_max=10)


@pytest.fixture
def persisted_state(tmp_path, blobs):
    config = DaemonConfig(image_inline_max=10, html_inline_max=10)
    return DaemonState.with_file_persist(tmp_path / "history.v1", config=config, blobs=blobs)
