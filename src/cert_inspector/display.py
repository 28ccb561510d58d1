from __future__ import annotations

from typing import Any, Iterable

from .classify import summarize
from .fingerprint import fingerprint, fingerprints
from .models import (Certificate, Classification, Csr, DigestAlgorithm,
                     DistinguishedName, Extension, FetchResult,
                     UndecodedCertificate)
from .utils import b64_der, dt_to_openssl, dt_to_utc_iso, serial_hex

INDENT = "    "


def _dn_lines(dn: DistinguishedName, depth: int) -> list[str]:
    pad = INDENT * depth
    return ["%s%s" % (pad, a) for a in dn]


def _extension_lines(extensions: Iterable[Extension],
                     depth: int) -> list[str]:
    pad = INDENT * depth
    lines = []
    for ext in extensions:
        lines.append("%s%s:%s" % (pad, ext.name,
                                  " critical" if ext.critical else ""))
        if ext.value:
            lines.append("%s%s%s" % (pad, INDENT, ext.value))
    return lines


def _public_key_line(algorithm: str, bits: int | None) -> str:
    if bits is None:
        return algorithm
    return "%s (%d bit)" % (algorithm, bits)


def certificate_text(cert: Certificate, full: bool = True) -> str:
    """
    Render a certificate the way `openssl x509 -text` lays it out
    (full) or as a short summary of the fields people look for.
    """
    if not full:
        return certificate_summary(cert)

    lines = [
        "Certificate:",
        "%sData:" % INDENT,
        "%sVersion: %d (0x%x)" % (INDENT * 2, cert.version,
                                  cert.version - 1),
    ]
    if cert.serial_number.bit_length() < 64:
        lines.append("%sSerial Number: %d (0x%x)" % (
            INDENT * 2, cert.serial_number, cert.serial_number))
    else:
        lines += [
            "%sSerial Number:" % (INDENT * 2),
            "%s%s" % (INDENT * 3, serial_hex(cert.serial_number)),
        ]
    lines += [
        "%sSignature Algorithm: %s" % (INDENT * 2, cert.signature_algorithm),
        "%sIssuer: %s" % (INDENT * 2, cert.issuer),
    ]
    lines.extend(_dn_lines(cert.issuer, 3))
    lines += [
        "%sValidity" % (INDENT * 2),
        "%sNot Before: %s" % (INDENT * 3, dt_to_openssl(cert.not_before)),
        "%sNot After : %s" % (INDENT * 3, dt_to_openssl(cert.not_after)),
        "%sSubject: %s" % (INDENT * 2, cert.subject),
    ]
    lines.extend(_dn_lines(cert.subject, 3))
    lines += [
        "%sSubject Public Key Info:" % (INDENT * 2),
        "%sPublic Key Algorithm: %s" % (
            INDENT * 3, _public_key_line(cert.public_key_algorithm,
                                         cert.public_key_bits)),
    ]
    if cert.extensions:
        lines.append("%sX509v3 extensions:" % (INDENT * 2))
        lines.extend(_extension_lines(cert.extensions, 3))
    lines.append("%sSignature Algorithm: %s" % (INDENT,
                                                cert.signature_algorithm))
    lines.extend(fingerprint_lines(cert))

    return "\n".join(lines)


def certificate_summary(cert: Certificate) -> str:
    lines = [
        "subject=%s" % cert.subject,
        "issuer=%s" % cert.issuer,
        "notBefore=%s" % dt_to_openssl(cert.not_before),
        "notAfter=%s" % dt_to_openssl(cert.not_after),
    ]
    if cert.subject_alt_names:
        lines.append("subjectAltName=%s" % ", ".join(
            str(x) for x in cert.subject_alt_names_typed))
    lines.append("signatureAlgorithm=%s" % cert.signature_algorithm)
    lines.append(str(fingerprint(cert, DigestAlgorithm.SHA256)))

    return "\n".join(lines)


def csr_text(csr: Csr, full: bool = True) -> str:
    if not full:
        lines = ["subject=%s" % csr.subject]
        if csr.subject_alt_names:
            lines.append("subjectAltName=%s" % ", ".join(
                str(x) for x in csr.subject_alt_names_typed))
        return "\n".join(lines)

    lines = [
        "Certificate Request:",
        "%sData:" % INDENT,
        "%sSubject: %s" % (INDENT * 2, csr.subject),
    ]
    lines.extend(_dn_lines(csr.subject, 3))
    lines += [
        "%sSubject Public Key Info:" % (INDENT * 2),
        "%sPublic Key Algorithm: %s" % (
            INDENT * 3, _public_key_line(csr.public_key_algorithm,
                                         csr.public_key_bits)),
    ]
    if csr.extensions:
        lines.append("%sRequested Extensions:" % (INDENT * 2))
        lines.extend(_extension_lines(csr.extensions, 3))
    lines.append("%sSignature Algorithm: %s" % (INDENT,
                                                csr.signature_algorithm))
    lines.append("%sSignature: %s" % (
        INDENT, "ok" if csr.signature_valid else "INVALID"))

    return "\n".join(lines)


def fingerprint_lines(cert: Certificate | Csr) -> list[str]:
    return [str(x) for x in fingerprints(cert)]


def _chain_entry(i: int, cert: Certificate, full: bool) -> str:
    if full:
        return "%d: %s" % (i, certificate_text(cert))
    # s:/i: as openssl s_client -showcerts prints them
    return "%2d s:%s\n   i:%s\n   %s\n   notAfter=%s" % (
        i, cert.subject, cert.issuer, cert.signature_algorithm,
        dt_to_openssl(cert.not_after))


def _undecoded_entry(x: UndecodedCertificate) -> str:
    return "%2d undecodable: %s\n   %s" % (
        x.position, x.error, fingerprint(x, DigestAlgorithm.SHA256))


def fetch_text(result: FetchResult, full: bool = False) -> str:
    """
    Render a fetched chain in presented order, certificates that could
    not be decoded included.
    """
    undecoded = {x.position: x for x in result.undecoded}
    certs = iter(result.chain)
    out = []
    for i in range(len(result.chain) + len(undecoded)):
        if i in undecoded:
            out.append(_undecoded_entry(undecoded[i]))
        else:
            out.append(_chain_entry(i, next(certs), full))
    return "\n".join(out)


def classification_text(classifications: Iterable[Classification]) -> str:
    classifications = list(classifications)
    lines = []
    for i, x in enumerate(classifications):
        lines.append("%2d %-5s %-24s %s" % (
            i, x.hash_family.value, x.certificate.signature_algorithm,
            x.certificate.subject))
    lines.append("status: %s" % summarize(classifications))
    return "\n".join(lines)


def _dn_dict(dn: DistinguishedName) -> list[dict[str, str]]:
    return [{"type": a.attribute_type, "value": a.value} for a in dn]


def certificate_dict(cert: Certificate) -> dict[str, Any]:
    return {
        "sha256": fingerprint(cert).digest.hex(),
        "der_b64": b64_der(cert.raw_der),
        "summary": {
            "subject": cert.subject.rfc4514,
            "subject_dn": _dn_dict(cert.subject),
            "issuer": cert.issuer.rfc4514,
            "issuer_dn": _dn_dict(cert.issuer),
            "serial_number": hex(cert.serial_number),
            "not_before": dt_to_utc_iso(cert.not_before),
            "not_after": dt_to_utc_iso(cert.not_after),
            "san": [{"type": x.kind, "value": x.value}
                    for x in cert.subject_alt_names_typed],
            "is_ca": cert.is_ca,
            "signature_algorithm": cert.signature_algorithm,
            "signature_hash_algorithm": cert.signature_hash_algorithm,
            "public_key_type": cert.public_key_algorithm,
            "public_key_bits": cert.public_key_bits,
            "extensions": [
                {"name": x.name, "oid": x.oid, "critical": x.critical,
                 "value": x.value}
                for x in cert.extensions],
        },
    }


def csr_dict(csr: Csr) -> dict[str, Any]:
    return {
        "sha256": fingerprint(csr).digest.hex(),
        "der_b64": b64_der(csr.raw_der),
        "summary": {
            "subject": csr.subject.rfc4514,
            "subject_dn": _dn_dict(csr.subject),
            "san": [{"type": x.kind, "value": x.value}
                    for x in csr.subject_alt_names_typed],
            "signature_algorithm": csr.signature_algorithm,
            "signature_valid": csr.signature_valid,
            "public_key_type": csr.public_key_algorithm,
            "public_key_bits": csr.public_key_bits,
        },
    }


def fetch_dict(result: FetchResult) -> dict[str, Any]:
    return {
        "target": {"host": result.host, "port": result.port,
                   "sni": result.server_name},
        "tls": {"version": result.tls_version, "cipher": result.cipher},
        "chain": {
            "presented_count": len(result.chain) + len(result.undecoded),
            "certs": [certificate_dict(x) for x in result.chain],
            "undecoded": [
                {"position": x.position, "error": x.error,
                 "sha256": fingerprint(x).digest.hex(),
                 "der_b64": b64_der(x.raw_der)}
                for x in result.undecoded],
        },
    }
