from __future__ import annotations

import base64
import binascii
import re

from cryptography import x509

from .errors import MalformedInputError
from .models import PemBlock, PemLabel

BEGIN = "-----BEGIN"

_PEM_RE = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----"
    r"(?P<body>.*?)"
    r"-----END (?P=label)-----",
    re.DOTALL,
)

_LABELS = {
    "CERTIFICATE": PemLabel.CERTIFICATE,
    "X509 CERTIFICATE": PemLabel.CERTIFICATE,
    "CERTIFICATE REQUEST": PemLabel.CERTIFICATE_REQUEST,
    "NEW CERTIFICATE REQUEST": PemLabel.CERTIFICATE_REQUEST,
}

_LOADERS = {
    PemLabel.CERTIFICATE: x509.load_der_x509_certificate,
    PemLabel.CERTIFICATE_REQUEST: x509.load_der_x509_csr,
}

_NOT_BASE64 = re.compile(r"[^A-Za-z0-9+/=]")


def _to_text(data: bytes | str) -> str:
    if isinstance(data, str):
        return data.removeprefix("\ufeff")
    try:
        return data.removeprefix(b"\xef\xbb\xbf").decode("ascii")
    except UnicodeDecodeError as e:
        raise MalformedInputError("input is not PEM text", offset=e.start)


def _trim(text: str) -> str:
    # leading whitespace only; the rest of each line is kept as is
    lines = (line.lstrip(" \t") for line in text.splitlines())
    return "\n".join(lines).lstrip("\n")


def _wrap(text: str, label: PemLabel) -> str:
    return "%s %s-----\n%s\n-----END %s-----\n" % (
        BEGIN, label.value, text.strip(), label.value)


def check_der(der: bytes, label: PemLabel) -> None:
    """
    Check that der is a complete DER encoding of the structure label
    names, with no trailing bytes.
    """
    if der[:1] != b"\x30":
        raise MalformedInputError("DER does not start with a SEQUENCE",
                                  offset=0)
    try:
        _LOADERS[label](der)
    except ValueError as e:
        raise MalformedInputError("invalid %s DER: %s" % (
            label.value.lower(), e))


def _block(label: str, body: str) -> PemBlock:
    if label not in _LABELS:
        raise MalformedInputError('unsupported PEM label "%s"' % label)

    b64 = "".join(body.split())
    bad = _NOT_BASE64.search(b64)
    if bad is not None:
        raise MalformedInputError(
            "invalid base64 character %r" % bad.group(), offset=bad.start())
    try:
        der = base64.b64decode(b64, validate=True)
    except binascii.Error as e:
        raise MalformedInputError("invalid base64: %s" % e)

    check_der(der, _LABELS[label])

    return PemBlock(label=_LABELS[label], body=der)


def normalize(data: bytes | str, expected_label: PemLabel) -> PemBlock:
    """
    Turn PEM text, possibly indented and possibly missing its
    BEGIN/END lines, into a PemBlock.

    Text that does not start with a BEGIN line is wrapped whole in
    BEGIN/END lines for expected_label.  When the text has its own
    delimiters the first block is used and its label is kept as found.
    """
    text = _trim(_to_text(data))
    if text[:10] != BEGIN:
        text = _wrap(text, expected_label)

    match = _PEM_RE.search(text)
    if match is None:
        raise MalformedInputError("no complete PEM block found")

    return _block(match.group("label"), match.group("body"))


def normalize_all(data: bytes | str,
                  expected_label: PemLabel) -> list[PemBlock]:
    """
    Like normalize() but return every supported block of a bundle.
    Blocks with other labels (private keys, parameters) are skipped.
    """
    text = _trim(_to_text(data))
    if text[:10] != BEGIN:
        return [normalize(text, expected_label)]

    blocks = []
    for match in _PEM_RE.finditer(text):
        if match.group("label") not in _LABELS:
            continue
        blocks.append(_block(match.group("label"), match.group("body")))

    if not blocks:
        raise MalformedInputError("no certificate or request PEM block found")

    return blocks


def encode(label: PemLabel, der: bytes) -> str:
    b64 = base64.b64encode(der).decode("ascii")
    lines = [b64[i:i + 64] for i in range(0, len(b64), 64)]
    return "%s %s-----\n%s\n-----END %s-----\n" % (
        BEGIN, label.value, "\n".join(lines), label.value)


def looks_like_der(data: bytes) -> bool:
    return isinstance(data, bytes) and data[:1] == b"\x30"
