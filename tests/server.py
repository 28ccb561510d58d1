# Local TLS endpoints for the fetch tests.

import os
import socket
import ssl
import tempfile
import threading

from tests.certs import key_pem, pem

TIMEOUT = 5.0


def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    sock.listen(1)
    return sock


class TlsServer:
    # One connection: TLS handshake with the given chain, then close.
    def __init__(self, chain, key, *, client_ca=None, max_version=None):
        self.dir = tempfile.TemporaryDirectory()
        certfile = os.path.join(self.dir.name, 'chain.pem')
        keyfile = os.path.join(self.dir.name, 'key.pem')
        with open(certfile, 'w') as f:
            f.write(''.join(pem(x) for x in chain))
        with open(keyfile, 'w') as f:
            f.write(key_pem(key))

        self.server_names = []
        self.ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self.ctx.load_cert_chain(certfile, keyfile)
        self.ctx.sni_callback = self._sni
        if client_ca is not None:
            # demand a client certificate the fetcher never sends
            self.ctx.verify_mode = ssl.CERT_REQUIRED
            self.ctx.load_verify_locations(cadata=pem(client_ca))
        if max_version is not None:
            self.ctx.maximum_version = max_version

        self.sock = listener()
        self.port = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _sni(self, sslobj, server_name, ctx):
        self.server_names.append(server_name)

    def _serve(self):
        conn, _ = self.sock.accept()
        conn.settimeout(TIMEOUT)
        try:
            with self.ctx.wrap_socket(conn, server_side=True) as s:
                s.recv(1)
        except OSError:
            pass
        finally:
            conn.close()

    def close(self):
        self.thread.join(TIMEOUT)
        self.sock.close()
        self.dir.cleanup()
