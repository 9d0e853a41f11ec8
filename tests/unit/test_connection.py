import socket
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "render"))
sys.path.insert(0, str(ROOT / "packages" / "device"))

from strand_core.connection import ACK_REPLY, ConnectionHandler, ConnectionState


class ConnectionHandlerTests(unittest.TestCase):
    def setUp(self):
        self.server_sock, self.client_sock = socket.socketpair()
        self.handler = ConnectionHandler(self.server_sock, ("127.0.0.1", 5555), read_timeout_s=0.05)

    def tearDown(self):
        self.handler.close()
        self.client_sock.close()

    def test_initial_state(self):
        self.assertEqual(self.handler.state, ConnectionState.ACCEPTED)
        self.assertEqual(self.handler.peer, "127.0.0.1:5555")

    def test_timeout_returns_none_and_stays_open(self):
        self.assertIsNone(self.handler.read_message())
        self.assertFalse(self.handler.closed)
        self.assertEqual(self.handler.state, ConnectionState.READING)

    def test_message_and_ack(self):
        self.client_sock.sendall(b"ping")
        self.assertEqual(self.handler.read_message(), b"ping")
        self.assertEqual(self.handler.state, ConnectionState.RESPONDING)
        self.assertEqual(self.handler.acknowledge(), len(ACK_REPLY))
        self.assertEqual(self.client_sock.recv(64), ACK_REPLY)
        self.assertEqual(self.handler.messages, 1)

    def test_disconnect_closes(self):
        self.client_sock.close()
        self.assertIsNone(self.handler.read_message())
        self.assertTrue(self.handler.closed)
        self.assertEqual(self.handler.acknowledge(), 0)
        self.assertIsNone(self.handler.read_message())


if __name__ == "__main__":
    unittest.main()
