from __future__ import annotations

import ipaddress
import select
import socket
import time

from OpenSSL import SSL, crypto

from .decode import decode_certificate
from .errors import (DecodeError, HandshakeError, TlsConnectionError,
                     TlsTimeoutError)
from .models import (CertificateChain, FetchResult, PemBlock, PemLabel,
                     UndecodedCertificate)

DEFAULT_PORT = 443
DEFAULT_TIMEOUT = 10.0


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


def _sni_bytes(name: str) -> bytes:
    try:
        return name.encode("idna")
    except UnicodeError:
        # labels the idna codec rejects, such as _acme-challenge
        return name.encode("ascii")


def _context() -> SSL.Context:
    # Inspection only: the presented chain is captured, never verified.
    ctx = SSL.Context(SSL.TLS_CLIENT_METHOD)
    ctx.set_verify(SSL.VERIFY_NONE)
    return ctx


def _wait(sock: socket.socket, deadline: float, *, write: bool) -> bool:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        return False
    if write:
        _, ready, _ = select.select([], [sock], [], remaining)
    else:
        ready, _, _ = select.select([sock], [], [], remaining)
    return bool(ready)


def _der(cert: crypto.X509) -> bytes:
    # bytes as OpenSSL holds them; no second parse
    return crypto.dump_certificate(crypto.FILETYPE_ASN1, cert)


def _peer_chain(conn: SSL.Connection) -> list[bytes]:
    chain = conn.get_peer_cert_chain() or []
    ders = [_der(c) for c in chain]

    # some stacks leave the leaf out of the chain or put it later
    leaf = conn.get_peer_certificate()
    if leaf is not None:
        leaf_der = _der(leaf)
        if not ders or ders[0] != leaf_der:
            ders = [leaf_der] + [d for d in ders if d != leaf_der]

    return ders


def _decode(ders: list[bytes]) -> tuple[CertificateChain,
                                      tuple[UndecodedCertificate, ...]]:
    chain = []
    undecoded = []
    for i, der in enumerate(ders):
        block = PemBlock(label=PemLabel.CERTIFICATE, body=der)
        try:
            chain.append(decode_certificate(block))
        except DecodeError as e:
            undecoded.append(UndecodedCertificate(position=i, raw_der=der,
                                                  error=str(e)))

    return tuple(chain), tuple(undecoded)


def _handshake(conn: SSL.Connection, sock: socket.socket,
               deadline: float, host: str, port: int) -> None:
    while True:
        try:
            conn.do_handshake()
            return
        except SSL.WantReadError:
            ready = _wait(sock, deadline, write=False)
        except SSL.WantWriteError:
            ready = _wait(sock, deadline, write=True)

        if not ready:
            raise TlsTimeoutError("TLS handshake timed out",
                                  host=host, port=port)


def fetch(hostname: str,
          port: int = DEFAULT_PORT,
          timeout: float = DEFAULT_TIMEOUT,
          server_name: str | None = None) -> FetchResult:
    """
    Connect to hostname:port, complete a TLS handshake with SNI and
    return the certificate chain the server presented, leaf first.

    The chain is not validated; expired, self-signed or mismatched
    certificates are returned as sent.  A certificate that cannot be
    decoded is left out of chain and reported in undecoded; ders always
    holds every certificate presented.  timeout bounds the TCP
    connect and the handshake separately.  Nothing is sent after the
    handshake and the socket is always closed.
    """
    sni = server_name or hostname
    if _is_ip(sni):
        # IP literals are not permitted in SNI
        sni = None

    try:
        sock = socket.create_connection((hostname, port), timeout=timeout)
    except socket.timeout:
        raise TlsTimeoutError("connect timed out after %ss" % timeout,
                              host=hostname, port=port)
    except (socket.gaierror, OSError) as e:
        raise TlsConnectionError(str(e) or type(e).__name__,
                                 host=hostname, port=port)

    with sock:
        sock.setblocking(False)
        conn = SSL.Connection(_context(), sock)
        if sni is not None:
            conn.set_tlsext_host_name(_sni_bytes(sni))
        conn.set_connect_state()

        deadline = time.monotonic() + timeout
        try:
            _handshake(conn, sock, deadline, hostname, port)
        except SSL.Error as e:
            # A server asking for a client certificate fails the
            # handshake after sending its own chain; keep that chain.
            ders = _peer_chain(conn)
            if not ders:
                msg = str(e) or type(e).__name__
                raise HandshakeError(msg, host=hostname, port=port)
            version = None
            cipher = None
        else:
            ders = _peer_chain(conn)
            version = conn.get_protocol_version_name()
            cipher = conn.get_cipher_name()

    if not ders:
        raise HandshakeError("server presented no certificates",
                             host=hostname, port=port)

    chain, undecoded = _decode(ders)

    return FetchResult(host=hostname, port=port, server_name=sni,
                       chain=chain, tls_version=version, cipher=cipher,
                       ders=tuple(ders), undecoded=undecoded)


def fetch_chain(hostname: str,
                port: int = DEFAULT_PORT,
                timeout: float = DEFAULT_TIMEOUT,
                server_name: str | None = None) -> CertificateChain:
    return fetch(hostname, port=port, timeout=timeout,
                 server_name=server_name).chain
