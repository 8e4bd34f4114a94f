import errno
import logging
import os
import socket
import threading
from pathlib import Path

from clipdash.config import MAX_REQUEST_SIZE, REQUEST_TIMEOUT, SOCKET_PATH
from clipdash.daemon import DaemonState

logger = logging.getLogger(__name__)

ACCEPT_TIMEOUT = 1.0  # seconds between checks of the stop flag


def read_request(conn: socket.socket, max_size: int = MAX_REQUEST_SIZE) -> bytes | None:
    """Read up to the first newline (or EOF). Returns None if the request is too large."""
    data = b""
    while b"\n" not in data:
        chunk = conn.recv(4096)
        if not chunk:
            break
        data += chunk
        if len(data) > max_size and b"\n" not in data:
            return None
    return data.split(b"\n", 1)[0]


class ConnectionServer:
    """Unix socket front end: one command per connection, one thread per connection."""

    def __init__(self, state: DaemonState, socket_path: str | Path | None = None):
        self._state = state
        self.socket_path = Path(socket_path) if socket_path else SOCKET_PATH
        self._socket: socket.socket | None = None
        self._stop = threading.Event()

    def bind(self) -> None:
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(self.socket_path))
        except OSError as e:
            if e.errno != errno.EADDRINUSE:
                sock.close()
                raise
            if self._daemon_alive():
                sock.close()
                raise RuntimeError(f"Another daemon is already listening on {self.socket_path}")
            # Stale socket left by a crashed daemon
            self.socket_path.unlink(missing_ok=True)
            sock.bind(str(self.socket_path))
        os.chmod(self.socket_path, 0o600)
        sock.listen(16)
        sock.settimeout(ACCEPT_TIMEOUT)
        self._socket = sock
        logger.info("Listening on %s", self.socket_path)

    def _daemon_alive(self) -> bool:
        probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            probe.connect(str(self.socket_path))
        except (ConnectionRefusedError, FileNotFoundError):
            return False
        finally:
            probe.close()
        return True

    def serve_forever(self) -> None:
        if self._socket is None:
            self.bind()
        while not self._stop.is_set():
            self.handle_one_connection()

    def handle_one_connection(self) -> None:
        try:
            conn, _ = self._socket.accept()
        except socket.timeout:
            return
        except OSError:
            if not self._stop.is_set():
                logger.exception("Error accepting connection")
            return
        thread = threading.Thread(target=self._handle_client, args=(conn,), daemon=True)
        thread.start()

    def _handle_client(self, conn: socket.socket) -> None:
        try:
            conn.settimeout(REQUEST_TIMEOUT)
            line = read_request(conn)
            if line is None:
                logger.warning("Request exceeded %d bytes, rejecting", MAX_REQUEST_SIZE)
                response = "ERR request too large"
            elif not line.strip():
                return
            else:
                response = self._state.handle_command(line.decode("utf-8", errors="replace"))
            conn.sendall(response.encode("utf-8"))
            conn.shutdown(socket.SHUT_WR)
        except socket.timeout:
            logger.debug("Client timed out before sending a command")
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Client disconnected before receiving response")
        except Exception:
            logger.exception("Error handling connection")
        finally:
            conn.close()

    def stop(self) -> None:
        self._stop.set()

    def close(self) -> None:
        if self._socket:
            self._socket.close()
            self._socket = None
        self.socket_path.unlink(missing_ok=True)
        logger.info("Socket cleaned up")
