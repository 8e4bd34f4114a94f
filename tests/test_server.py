import socket
import threading

import pytest

from clipdash.client import send
from clipdash.server import ConnectionServer, read_request


@pytest.fixture
def server(state, tmp_path):
    srv = ConnectionServer(state, tmp_path / "d.sock")
    srv.bind()
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.stop()
    thread.join(5)
    srv.close()


class FakeConn:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def recv(self, size):
        return self._chunks.pop(0) if self._chunks else b""


class TestReadRequest:
    def test_stops_at_newline(self):
        conn = FakeConn([b"LIST 10\nignored"])
        assert read_request(conn) == b"LIST 10"

    def test_joins_chunks(self):
        conn = FakeConn([b"ADD_TE", b"XT hi", b"\n"])
        assert read_request(conn) == b"ADD_TEXT hi"

    def test_eof_without_newline(self):
        assert read_request(FakeConn([b"CLEAR"])) == b"CLEAR"

    def test_too_large(self):
        conn = FakeConn([b"x" * 8, b"x" * 8])
        assert read_request(conn, max_size=10) is None


class TestServer:
    def test_round_trip(self, server):
        path = server.socket_path
        assert send("ADD_TEXT hello", path) == "OK 1"
        assert send("LIST 10", path) == "OK 1\n1\tText\t0\thello\ttext/plain\n"
        assert send("GET 1", path) == "TEXT\nhello"
        assert send("DELETE 1", path) == "OK"
        assert send("GET 1", path) == "ERR not found"

    def test_socket_permissions(self, server):
        assert server.socket_path.stat().st_mode & 0o777 == 0o600

    def test_client_without_shutdown(self, server):
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(5)
            sock.connect(str(server.socket_path))
            sock.sendall(b"ADD_TEXT kept open\n")
            data = b""
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                data += chunk
        assert data == b"OK 1"

    def test_concurrent_clients(self, server):
        responses = []
        lock = threading.Lock()

        def worker(n):
            r = send(f"ADD_TEXT client {n}", server.socket_path)
            with lock:
                responses.append(r)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)
        assert sorted(responses) == sorted(f"OK {i}" for i in range(1, 11))

    def test_unknown_command(self, server):
        assert send("HELLO", server.socket_path) == "ERR unknown"

    def test_empty_request_gets_no_response(self, server):
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(5)
            sock.connect(str(server.socket_path))
            sock.shutdown(socket.SHUT_WR)
            assert sock.recv(4096) == b""


class TestBind:
    def test_stale_socket_replaced(self, state, tmp_path):
        path = tmp_path / "stale.sock"
        stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        stale.bind(str(path))
        stale.close()  # file stays behind, nobody listening

        srv = ConnectionServer(state, path)
        srv.bind()
        srv.close()
        assert not path.exists()

    def test_live_daemon_refused(self, server, state):
        other = ConnectionServer(state, server.socket_path)
        with pytest.raises(RuntimeError):
            other.bind()
