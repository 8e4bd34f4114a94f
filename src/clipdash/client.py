import socket
from pathlib import Path

from clipdash.config import SOCKET_PATH


def send(command: str, socket_path: str | Path | None = None, timeout: float = 10.0) -> str:
    """Send one protocol command to the daemon and return its full response."""
    path = str(socket_path or SOCKET_PATH)
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        sock.connect(path)
        sock.sendall(command.encode("utf-8") + b"\n")
        sock.shutdown(socket.SHUT_WR)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks).decode("utf-8", errors="replace")
