import logging
import signal
import threading
from pathlib import Path

from clipdash import __version__
from clipdash.blobs import BlobCache
from clipdash.clipboard import ClipboardBackend, detect_backend
from clipdash.config import BLOB_DIR, HISTORY_PATH, SOCKET_PATH, DaemonConfig
from clipdash.daemon import DaemonState
from clipdash.monitor import ClipboardWatcher
from clipdash.server import ConnectionServer
from clipdash.utils import ensure_dirs

logger = logging.getLogger(__name__)


class ClipdashApp:
    def __init__(
        self,
        config: DaemonConfig | None = None,
        history_path: str | Path | None = None,
        socket_path: str | Path | None = None,
        blob_dir: str | Path | None = None,
        backend: ClipboardBackend | None = None,
        detect: bool = True,
    ):
        self.config = config or DaemonConfig()
        self._history_path = Path(history_path) if history_path else HISTORY_PATH
        self._socket_path = Path(socket_path) if socket_path else SOCKET_PATH
        self._blob_dir = Path(blob_dir) if blob_dir else BLOB_DIR
        if backend is None and detect:
            backend = detect_backend()
        self._backend = backend
        self._init_app()

    def _init_app(self) -> None:
        """Initialize app components. Separated for testability."""
        ensure_dirs()
        self._blobs = BlobCache.from_config(self.config, root=self._blob_dir)
        self._blobs.cleanup_all()
        self.state = DaemonState.with_file_persist(
            self._history_path, config=self.config, blobs=self._blobs, clipboard=self._backend
        )
        self.server = ConnectionServer(self.state, self._socket_path)
        self.watcher: ClipboardWatcher | None = None
        if self._backend is not None and self.config.watch_any:
            self.watcher = ClipboardWatcher(self.state, self._backend)

    def _install_signal_handlers(self) -> None:
        # Handlers only flip the stop flag; logging here is not signal safe
        def _signal_handler(signum, frame):
            self.server.stop()

        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)

    def run(self) -> None:
        self.server.bind()
        if threading.current_thread() is threading.main_thread():
            self._install_signal_handlers()
        if self.watcher:
            self.watcher.start()
        logger.info("clipdash v%s daemon started", __version__)
        try:
            self.server.serve_forever()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        if self.watcher:
            self.watcher.stop()
        self.state.persist()
        self.server.close()
        logger.info("Daemon stopped")
