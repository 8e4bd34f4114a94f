import socket
import threading

import pytest

from clipdash.client import send


@pytest.fixture
def echo_server(tmp_path):
    """A one-shot server that records the request and answers with a canned response."""
    path = tmp_path / "c.sock"
    listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    listener.bind(str(path))
    listener.listen(1)
    received = []

    def serve():
        conn, _ = listener.accept()
        with conn:
            data = b""
            while True:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                data += chunk
            received.append(data)
            conn.sendall(b"OK 7")

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield path, received
    thread.join(5)
    listener.close()


class TestSend:
    def test_sends_line_and_reads_to_eof(self, echo_server):
        path, received = echo_server
        assert send("ADD_TEXT hi", path) == "OK 7"
        assert received == [b"ADD_TEXT hi\n"]

    def test_missing_socket(self, tmp_path):
        with pytest.raises(OSError):
            send("LIST", tmp_path / "absent.sock")
