from __future__ import annotations

import hashlib

from .models import (Certificate, Csr, DigestAlgorithm, Fingerprint,
                     UndecodedCertificate)

# MD5 and SHA1 are for identifying certificates in legacy tooling
# output, not for integrity.
ALGORITHMS = (DigestAlgorithm.MD5, DigestAlgorithm.SHA1,
              DigestAlgorithm.SHA256)


def fingerprint(cert: Certificate | Csr | UndecodedCertificate,
                algorithm: DigestAlgorithm = DigestAlgorithm.SHA256,
                ) -> Fingerprint:
    h = hashlib.new(algorithm.value, cert.raw_der, usedforsecurity=False)
    return Fingerprint(algorithm=algorithm, digest=h.digest())


def fingerprints(cert: Certificate | Csr) -> list[Fingerprint]:
    return [fingerprint(cert, x) for x in ALGORITHMS]


def sha256_hex(cert: Certificate | Csr) -> str:
    # uppercase without separators, the form CCADB and crt.sh use
    return fingerprint(cert).digest.hex().upper()
