from __future__ import annotations

import re
from typing import Iterable

from .models import Certificate, Classification, HashFamily

# sha1WithRSAEncryption, ecdsa-with-SHA1, dsa-with-SHA1, sha-1
_SHA1_RE = re.compile(r"sha-?1(?!\d)", re.IGNORECASE)
# sha256WithRSAEncryption, ecdsa-with-SHA384, dsa_with_SHA224;
# SHA-3 (sha3-256) is not SHA-2.
_SHA2_RE = re.compile(r"sha-?(224|256|384|512)", re.IGNORECASE)


def hash_family(signature_algorithm: str | None) -> HashFamily:
    if not signature_algorithm:
        return HashFamily.OTHER
    if _SHA1_RE.search(signature_algorithm):
        return HashFamily.SHA1
    if _SHA2_RE.search(signature_algorithm):
        return HashFamily.SHA2

    return HashFamily.OTHER


def classify(chain: Iterable[Certificate]) -> tuple[Classification, ...]:
    """
    Bucket each certificate of a chain, in chain order, by the hash
    family of its signature algorithm.
    """
    return tuple(Classification(certificate=c,
                                hash_family=hash_family(c.signature_algorithm))
                 for c in chain)


def summarize(classifications: Iterable[Classification]) -> str:
    # self-issued certificates after the leaf are not counted
    families = [x.hash_family for i, x in enumerate(classifications)
                if i == 0 or not x.certificate.self_issued]
    if not families:
        return "no certificates"

    if HashFamily.SHA1 in families:
        if all(x == HashFamily.SHA1 for x in families):
            return "SHA-1 only"
        return "SHA-1 present"
    if all(x == HashFamily.SHA2 for x in families):
        return "SHA-2 only"
    if HashFamily.SHA2 in families:
        return "SHA-2 with other algorithms"

    return "no SHA-1 or SHA-2 signatures"
