from __future__ import annotations

import secrets
from typing import Sequence

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from .decode import decode_csr
from .errors import InvalidHostnameError
from .models import Csr, KeyPair, PemBlock, PemLabel
from .pem import encode

DEFAULT_KEY_BITS = 2048
DEFAULT_COUNTRY = "GB"


def _hostnames(hostnames: Sequence[str]) -> list[str]:
    if isinstance(hostnames, str):
        raise InvalidHostnameError("hostnames must be a list, not a string")

    names = []
    for x in hostnames:
        name = x.strip() if isinstance(x, str) else ""
        if not name:
            raise InvalidHostnameError("empty hostname in %r" % (
                list(hostnames),))
        names.append(name)

    if not names:
        raise InvalidHostnameError("at least one hostname is required")

    return names


def build_csr(hostnames: Sequence[str],
              key_bits: int = DEFAULT_KEY_BITS,
              country: str = DEFAULT_COUNTRY,
              organizational_unit: str | None = None,
              encrypt_key: bool = True,
              passphrase: bytes | str | None = None,
              ) -> tuple[KeyPair, Csr]:
    """
    Generate an RSA key and a SHA-256 signed CSR for hostnames.

    The first hostname is the subject CN; every hostname, the first
    included, is a DNS SAN in the order given.  The key is returned as
    PKCS#8 PEM, encrypted with passphrase unless encrypt_key is false.
    Without a passphrase a random one is generated and returned on the
    KeyPair.  Nothing is written to disk.
    """
    names = _hostnames(hostnames)

    if len(country) != 2:
        raise ValueError("country must be a 2 letter code: %r" % country)

    generated = None
    if encrypt_key:
        if not passphrase:
            generated = secrets.token_urlsafe(24).encode("ascii")
            passphrase = generated
        if isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        encryption = serialization.BestAvailableEncryption(passphrase)
    else:
        encryption = serialization.NoEncryption()

    key = rsa.generate_private_key(public_exponent=65537, key_size=key_bits)

    attributes = [x509.NameAttribute(NameOID.COUNTRY_NAME, country.upper())]
    if organizational_unit:
        attributes.append(x509.NameAttribute(
            NameOID.ORGANIZATIONAL_UNIT_NAME, organizational_unit))
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, names[0]))

    builder = x509.CertificateSigningRequestBuilder().subject_name(
        x509.Name(attributes))
    builder = builder.add_extension(
        x509.SubjectAlternativeName([x509.DNSName(x) for x in names]),
        critical=False)

    request = builder.sign(key, hashes.SHA256())

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption)
    der = request.public_bytes(serialization.Encoding.DER)
    csr = decode_csr(PemBlock(label=PemLabel.CERTIFICATE_REQUEST, body=der))

    key_pair = KeyPair(private_key_pem=key_pem, encrypted=encrypt_key,
                       passphrase=generated)

    return key_pair, csr


def csr_pem(csr: Csr) -> str:
    return encode(PemLabel.CERTIFICATE_REQUEST, csr.raw_der)
