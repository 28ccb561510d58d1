from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .utils import hex_pairs


class PemLabel(str, Enum):
    CERTIFICATE = "CERTIFICATE"
    CERTIFICATE_REQUEST = "CERTIFICATE REQUEST"


class DigestAlgorithm(str, Enum):
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"


class HashFamily(str, Enum):
    SHA1 = "SHA1"
    SHA2 = "SHA2"
    OTHER = "OTHER"


@dataclass(frozen=True)
class PemBlock:
    label: PemLabel
    body: bytes  # DER


@dataclass(frozen=True)
class NameAttribute:
    attribute_type: str  # short name (C, O, OU, CN, ...) or dotted OID
    value: str

    def __str__(self) -> str:
        return f"{self.attribute_type}={self.value}"


@dataclass(frozen=True)
class DistinguishedName:
    attributes: tuple[NameAttribute, ...] = ()
    rfc4514: str = ""

    def __str__(self) -> str:
        return ", ".join(str(a) for a in self.attributes)

    def __iter__(self):
        return iter(self.attributes)

    def __len__(self) -> int:
        return len(self.attributes)

    def get(self, attribute_type: str) -> list[str]:
        return [a.value for a in self.attributes
                if a.attribute_type == attribute_type]

    @property
    def common_name(self) -> str | None:
        cn = self.get("CN")
        return cn[-1] if cn else None


@dataclass(frozen=True)
class GeneralName:
    """
    One Subject Alternative Name entry with its original type.
    """
    kind: str  # DNS, IP, email, URI, DirName, RID, otherName
    value: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"


@dataclass(frozen=True)
class Extension:
    name: str
    oid: str
    critical: bool
    value: str


@dataclass(frozen=True)
class Certificate:
    """
    Parsed fields from an X.509 certificate (DER).
    """
    subject: DistinguishedName
    issuer: DistinguishedName
    serial_number: int
    not_before: datetime  # UTC
    not_after: datetime   # UTC
    public_key_algorithm: str
    signature_algorithm: str
    raw_der: bytes = field(repr=False)
    subject_alt_names: tuple[str, ...] = ()
    subject_alt_names_typed: tuple[GeneralName, ...] = ()
    public_key_bits: int | None = None
    signature_hash_algorithm: str | None = None
    extensions: tuple[Extension, ...] = ()
    version: int = 3
    is_ca: bool = False

    @property
    def self_issued(self) -> bool:
        return self.subject.rfc4514 == self.issuer.rfc4514


@dataclass(frozen=True)
class Csr:
    subject: DistinguishedName
    public_key_algorithm: str
    raw_der: bytes = field(repr=False)
    subject_alt_names: tuple[str, ...] = ()
    subject_alt_names_typed: tuple[GeneralName, ...] = ()
    public_key_bits: int | None = None
    signature_algorithm: str | None = None
    signature_valid: bool = False
    extensions: tuple[Extension, ...] = ()


# Server-presented chain: leaf first, then whatever else was sent.
CertificateChain = tuple[Certificate, ...]


@dataclass(frozen=True)
class Fingerprint:
    algorithm: DigestAlgorithm
    digest: bytes

    @property
    def hex(self) -> str:
        return hex_pairs(self.digest)

    def __str__(self) -> str:
        return f"{self.algorithm.name} Fingerprint={self.hex}"


@dataclass(frozen=True)
class KeyPair:
    private_key_pem: bytes = field(repr=False)
    encrypted: bool
    # generated when encryption was asked for without one
    passphrase: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True)
class Classification:
    certificate: Certificate
    hash_family: HashFamily


@dataclass(frozen=True)
class UndecodedCertificate:
    """A presented certificate the decoder rejected, kept as sent."""
    position: int  # index in the presented chain
    raw_der: bytes = field(repr=False)
    error: str


@dataclass(frozen=True)
class FetchResult:
    host: str
    port: int
    server_name: str | None
    chain: CertificateChain
    tls_version: str | None = None
    cipher: str | None = None
    # every presented DER, leaf first, decodable or not
    ders: tuple[bytes, ...] = field(default=(), repr=False)
    undecoded: tuple[UndecodedCertificate, ...] = ()
