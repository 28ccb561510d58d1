from datetime import datetime, timedelta, timezone
import socket
import ssl
import threading
import time
import unittest
from unittest import mock

from cert_inspector.errors import (HandshakeError, TlsConnectionError,
                                   TlsTimeoutError)
from cert_inspector.fetch import fetch, fetch_chain

from tests.certs import (CA_CERT, LEAF_CERT, LEAF_KEY, der, make_cert,
                         make_inverted)
from tests.server import TIMEOUT, TlsServer, listener


class FetchTest(unittest.TestCase):
    def test_01(self):
        server = TlsServer([LEAF_CERT, CA_CERT], LEAF_KEY)
        try:
            chain = fetch_chain('127.0.0.1', server.port, timeout=TIMEOUT)
        finally:
            server.close()

        self.assertEqual([x.raw_der for x in chain],
                         [der(LEAF_CERT), der(CA_CERT)])
        self.assertEqual(chain[0].subject.common_name, 'www.example.org')
        # no SNI for an IP literal
        self.assertEqual([x for x in server.server_names if x], [])

    def test_02(self):
        server = TlsServer([LEAF_CERT, CA_CERT], LEAF_KEY)
        try:
            r = fetch('127.0.0.1', server.port, timeout=TIMEOUT,
                      server_name='www.example.org')
        finally:
            server.close()

        self.assertEqual(server.server_names, ['www.example.org'])
        self.assertEqual(r.server_name, 'www.example.org')
        self.assertEqual(len(r.chain), 2)
        self.assertIsNotNone(r.tls_version)
        self.assertIsNotNone(r.cipher)

    def test_03(self):
        # expired, self-signed: returned anyway
        past = datetime.now(timezone.utc) - timedelta(days=400)
        cert, key = make_cert('expired.example.org', not_before=past,
                              not_after=past + timedelta(days=90))
        server = TlsServer([cert], key)
        try:
            chain = fetch_chain('127.0.0.1', server.port, timeout=TIMEOUT)
        finally:
            server.close()

        self.assertEqual(len(chain), 1)
        self.assertLess(chain[0].not_after, datetime.now(timezone.utc))

    def test_04(self):
        # accepts TCP, never answers the ClientHello
        sock = listener()
        port = sock.getsockname()[1]
        start = time.monotonic()
        try:
            with self.assertRaises(TlsTimeoutError) as e:
                fetch_chain('127.0.0.1', port, timeout=0.5)
        finally:
            sock.close()
        self.assertLess(time.monotonic() - start, 3)
        self.assertIsInstance(e.exception, TimeoutError)
        self.assertEqual(e.exception.port, port)

    def test_05(self):
        sock = listener()
        port = sock.getsockname()[1]
        sock.close()
        with self.assertRaises(TlsConnectionError) as e:
            fetch_chain('127.0.0.1', port, timeout=TIMEOUT)
        self.assertIsInstance(e.exception, ConnectionError)

    def test_06(self):
        x = socket.gaierror(socket.EAI_NONAME, 'Name or service not known')
        with mock.patch('cert_inspector.fetch.socket.create_connection',
                        side_effect=x):
            with self.assertRaises(TlsConnectionError) as e:
                fetch_chain('nonexistent.invalid', 443, timeout=2)
        self.assertEqual(e.exception.host, 'nonexistent.invalid')
        self.assertIn('nonexistent.invalid:443', str(e.exception))

    def test_07(self):
        # plain text server: protocol failure, nothing returned
        sock = listener()
        port = sock.getsockname()[1]

        def serve():
            conn, _ = sock.accept()
            with conn:
                conn.settimeout(TIMEOUT)
                try:
                    conn.recv(4096)
                    conn.sendall(b'HTTP/1.1 400 Bad Request\r\n'
                                 b'Connection: close\r\n\r\n')
                except OSError:
                    pass

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        try:
            with self.assertRaises(HandshakeError):
                fetch_chain('127.0.0.1', port, timeout=TIMEOUT)
        finally:
            thread.join(TIMEOUT)
            sock.close()

    def test_08(self):
        # notBefore after notAfter: kept as sent, reported undecoded
        cert, key = make_inverted('inverted.example.org')
        server = TlsServer([cert], key)
        try:
            r = fetch('127.0.0.1', server.port, timeout=TIMEOUT)
        finally:
            server.close()

        self.assertEqual(r.chain, ())
        self.assertEqual(r.ders, (der(cert),))
        self.assertEqual(len(r.undecoded), 1)
        self.assertEqual(r.undecoded[0].position, 0)
        self.assertEqual(r.undecoded[0].raw_der, der(cert))
        self.assertIn('notAfter', r.undecoded[0].error)

    def test_09(self):
        # one bad intermediate does not cost the rest of the chain
        bad, _ = make_inverted('Inverted CA')
        server = TlsServer([LEAF_CERT, bad, CA_CERT], LEAF_KEY)
        try:
            r = fetch('127.0.0.1', server.port, timeout=TIMEOUT)
        finally:
            server.close()

        self.assertEqual([x.raw_der for x in r.chain],
                         [der(LEAF_CERT), der(CA_CERT)])
        self.assertEqual(r.ders, (der(LEAF_CERT), der(bad), der(CA_CERT)))
        self.assertEqual([x.position for x in r.undecoded], [1])

    def test_10(self):
        # server demands a client certificate and aborts the handshake
        # after its own chain went out
        server = TlsServer([LEAF_CERT, CA_CERT], LEAF_KEY, client_ca=CA_CERT,
                           max_version=ssl.TLSVersion.TLSv1_2)
        try:
            r = fetch('127.0.0.1', server.port, timeout=TIMEOUT)
        finally:
            server.close()

        self.assertEqual([x.raw_der for x in r.chain],
                         [der(LEAF_CERT), der(CA_CERT)])
        self.assertIsNone(r.tls_version)
        self.assertIsNone(r.cipher)


if __name__ == '__main__':
    unittest.main()
