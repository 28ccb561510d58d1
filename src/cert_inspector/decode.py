from __future__ import annotations

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import (dsa, ec, ed448,
                                                       ed25519, rsa)
from cryptography.x509.oid import (AuthorityInformationAccessOID,
                                   ExtendedKeyUsageOID, ExtensionOID, NameOID)

from .errors import DecodeError
from .models import (Certificate, Csr, DistinguishedName, Extension,
                     GeneralName, NameAttribute, PemBlock, PemLabel)
from .pem import check_der, looks_like_der, normalize, normalize_all
from .utils import hex_pairs

# OpenSSL long names
SIGNATURE_ALGORITHMS = {
    "1.2.840.113549.1.1.2": "md2WithRSAEncryption",
    "1.2.840.113549.1.1.4": "md5WithRSAEncryption",
    "1.2.840.113549.1.1.5": "sha1WithRSAEncryption",
    "1.2.840.113549.1.1.14": "sha224WithRSAEncryption",
    "1.2.840.113549.1.1.11": "sha256WithRSAEncryption",
    "1.2.840.113549.1.1.12": "sha384WithRSAEncryption",
    "1.2.840.113549.1.1.13": "sha512WithRSAEncryption",
    "1.2.840.113549.1.1.10": "rsassaPss",
    "1.2.840.10045.4.1": "ecdsa-with-SHA1",
    "1.2.840.10045.4.3.1": "ecdsa-with-SHA224",
    "1.2.840.10045.4.3.2": "ecdsa-with-SHA256",
    "1.2.840.10045.4.3.3": "ecdsa-with-SHA384",
    "1.2.840.10045.4.3.4": "ecdsa-with-SHA512",
    "1.2.840.10040.4.3": "dsa-with-SHA1",
    "2.16.840.1.101.3.4.3.1": "dsa_with_SHA224",
    "2.16.840.1.101.3.4.3.2": "dsa_with_SHA256",
    "1.3.101.112": "ED25519",
    "1.3.101.113": "ED448",
}

_NAME_ATTRIBUTES = {
    NameOID.COUNTRY_NAME: "C",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.LOCALITY_NAME: "L",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.COMMON_NAME: "CN",
    NameOID.STREET_ADDRESS: "street",
    NameOID.DOMAIN_COMPONENT: "DC",
    NameOID.USER_ID: "UID",
    NameOID.EMAIL_ADDRESS: "emailAddress",
    NameOID.SERIAL_NUMBER: "serialNumber",
    NameOID.BUSINESS_CATEGORY: "businessCategory",
    NameOID.JURISDICTION_COUNTRY_NAME: "jurisdictionC",
    NameOID.JURISDICTION_STATE_OR_PROVINCE_NAME: "jurisdictionST",
    NameOID.JURISDICTION_LOCALITY_NAME: "jurisdictionL",
    NameOID.ORGANIZATION_IDENTIFIER: "organizationIdentifier",
    NameOID.POSTAL_CODE: "postalCode",
    NameOID.GIVEN_NAME: "GN",
    NameOID.SURNAME: "SN",
    NameOID.TITLE: "title",
}

_EXTENSION_NAMES = {
    ExtensionOID.SUBJECT_ALTERNATIVE_NAME: "X509v3 Subject Alternative Name",
    ExtensionOID.BASIC_CONSTRAINTS: "X509v3 Basic Constraints",
    ExtensionOID.KEY_USAGE: "X509v3 Key Usage",
    ExtensionOID.EXTENDED_KEY_USAGE: "X509v3 Extended Key Usage",
    ExtensionOID.SUBJECT_KEY_IDENTIFIER: "X509v3 Subject Key Identifier",
    ExtensionOID.AUTHORITY_KEY_IDENTIFIER: "X509v3 Authority Key Identifier",
    ExtensionOID.AUTHORITY_INFORMATION_ACCESS: "Authority Information Access",
    ExtensionOID.CRL_DISTRIBUTION_POINTS: "X509v3 CRL Distribution Points",
    ExtensionOID.CERTIFICATE_POLICIES: "X509v3 Certificate Policies",
    ExtensionOID.NAME_CONSTRAINTS: "X509v3 Name Constraints",
    ExtensionOID.PRECERT_SIGNED_CERTIFICATE_TIMESTAMPS:
        "CT Precertificate SCTs",
    ExtensionOID.PRECERT_POISON: "CT Precertificate Poison",
    ExtensionOID.TLS_FEATURE: "TLS Feature",
}

_EKU_NAMES = {
    ExtendedKeyUsageOID.SERVER_AUTH: "TLS Web Server Authentication",
    ExtendedKeyUsageOID.CLIENT_AUTH: "TLS Web Client Authentication",
    ExtendedKeyUsageOID.CODE_SIGNING: "Code Signing",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "E-mail Protection",
    ExtendedKeyUsageOID.TIME_STAMPING: "Time Stamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSP Signing",
}


def _name(name: x509.Name) -> DistinguishedName:
    attributes = []
    for rdn in name.rdns:
        for attr in rdn:
            type_ = _NAME_ATTRIBUTES.get(attr.oid, attr.oid.dotted_string)
            value = attr.value
            if isinstance(value, bytes):
                value = value.hex()
            attributes.append(NameAttribute(attribute_type=type_,
                                            value=value))

    return DistinguishedName(attributes=tuple(attributes),
                             rfc4514=name.rfc4514_string())


def _general_name(gn: x509.GeneralName) -> GeneralName:
    if isinstance(gn, x509.DNSName):
        return GeneralName("DNS", gn.value)
    if isinstance(gn, x509.IPAddress):
        return GeneralName("IP", str(gn.value))
    if isinstance(gn, x509.RFC822Name):
        return GeneralName("email", gn.value)
    if isinstance(gn, x509.UniformResourceIdentifier):
        return GeneralName("URI", gn.value)
    if isinstance(gn, x509.DirectoryName):
        return GeneralName("DirName", gn.value.rfc4514_string())
    if isinstance(gn, x509.RegisteredID):
        return GeneralName("RID", gn.value.dotted_string)
    if isinstance(gn, x509.OtherName):
        return GeneralName("otherName", "%s;%s" % (
            gn.type_id.dotted_string, gn.value.hex()))

    return GeneralName(type(gn).__name__, str(gn.value))


def _san(extensions: x509.Extensions) -> tuple[GeneralName, ...]:
    try:
        ext = extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return ()

    return tuple(_general_name(x) for x in ext.value)


def _is_ca(extensions: x509.Extensions) -> bool:
    try:
        bc = extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        return False

    return bc.ca


def _key_usage(ku: x509.KeyUsage) -> list[str]:
    flags = []
    if ku.digital_signature: flags.append("Digital Signature")
    if ku.content_commitment: flags.append("Non Repudiation")
    if ku.key_encipherment: flags.append("Key Encipherment")
    if ku.data_encipherment: flags.append("Data Encipherment")
    if ku.key_agreement:
        flags.append("Key Agreement")
        # only defined when key_agreement is set
        if ku.encipher_only: flags.append("Encipher Only")
        if ku.decipher_only: flags.append("Decipher Only")
    if ku.key_cert_sign: flags.append("Certificate Sign")
    if ku.crl_sign: flags.append("CRL Sign")
    return flags


def _extension_value(ext: x509.Extension) -> str:
    value = ext.value

    if isinstance(value, x509.SubjectAlternativeName):
        return ", ".join(str(_general_name(x)) for x in value)
    if isinstance(value, x509.BasicConstraints):
        x = "CA:TRUE" if value.ca else "CA:FALSE"
        if value.path_length is not None:
            x += ", pathlen:%d" % value.path_length
        return x
    if isinstance(value, x509.KeyUsage):
        return ", ".join(_key_usage(value))
    if isinstance(value, x509.ExtendedKeyUsage):
        return ", ".join(_EKU_NAMES.get(oid, oid.dotted_string)
                         for oid in value)
    if isinstance(value, x509.SubjectKeyIdentifier):
        return hex_pairs(value.digest)
    if isinstance(value, x509.AuthorityKeyIdentifier):
        if value.key_identifier is None:
            return ""
        return hex_pairs(value.key_identifier)
    if isinstance(value, x509.AuthorityInformationAccess):
        methods = {
            AuthorityInformationAccessOID.OCSP: "OCSP",
            AuthorityInformationAccessOID.CA_ISSUERS: "CA Issuers",
        }
        return ", ".join(
            "%s - %s" % (methods.get(x.access_method,
                                     x.access_method.dotted_string),
                         _general_name(x.access_location))
            for x in value)
    if isinstance(value, x509.CRLDistributionPoints):
        names = []
        for dp in value:
            for x in dp.full_name or []:
                names.append(str(_general_name(x)))
        return ", ".join(names)
    if isinstance(value, x509.CertificatePolicies):
        return ", ".join("Policy: %s" % x.policy_identifier.dotted_string
                         for x in value)
    if isinstance(value, x509.UnrecognizedExtension):
        return hex_pairs(value.value)

    return ", ".join(str(x) for x in _iter_or_self(value))


def _iter_or_self(value):
    try:
        return list(value)
    except TypeError:
        return [value]


def _extensions(extensions: x509.Extensions) -> tuple[Extension, ...]:
    out = []
    for ext in extensions:
        out.append(Extension(
            name=_EXTENSION_NAMES.get(ext.oid, ext.oid.dotted_string),
            oid=ext.oid.dotted_string,
            critical=ext.critical,
            value=_extension_value(ext)))

    return tuple(out)


def _public_key(key) -> tuple[str, int | None]:
    if isinstance(key, rsa.RSAPublicKey):
        return "rsaEncryption", key.key_size
    if isinstance(key, ec.EllipticCurvePublicKey):
        return "id-ecPublicKey", key.key_size
    if isinstance(key, dsa.DSAPublicKey):
        return "dsaEncryption", key.key_size
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "ED25519", 256
    if isinstance(key, ed448.Ed448PublicKey):
        return "ED448", 456

    return key.__class__.__name__, None


def _signature_algorithm(oid: x509.ObjectIdentifier) -> str:
    return SIGNATURE_ALGORITHMS.get(oid.dotted_string, oid.dotted_string)


def _signature_hash(obj) -> str | None:
    try:
        alg = obj.signature_hash_algorithm
    except UnsupportedAlgorithm:
        return None
    return alg.name if alg is not None else None


def _expect(block: PemBlock, label: PemLabel) -> None:
    if block.label != label:
        raise DecodeError('expected %s, got %s' % (
            label.value, block.label.value), field="label")


def decode_certificate(block: PemBlock) -> Certificate:
    _expect(block, PemLabel.CERTIFICATE)

    try:
        c = x509.load_der_x509_certificate(block.body)
    except ValueError as e:
        raise DecodeError(str(e), field="certificate")

    try:
        extensions = c.extensions
    except ValueError as e:
        raise DecodeError(str(e), field="extensions")

    try:
        public_key = c.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise DecodeError(str(e), field="subjectPublicKeyInfo")
    key_algorithm, key_bits = _public_key(public_key)

    not_before = c.not_valid_before_utc
    not_after = c.not_valid_after_utc
    if not_before > not_after:
        raise DecodeError("notBefore %s is after notAfter %s" % (
            not_before, not_after), field="validity")

    san = _san(extensions)

    return Certificate(
        subject=_name(c.subject),
        issuer=_name(c.issuer),
        serial_number=c.serial_number,
        not_before=not_before,
        not_after=not_after,
        public_key_algorithm=key_algorithm,
        public_key_bits=key_bits,
        signature_algorithm=_signature_algorithm(c.signature_algorithm_oid),
        signature_hash_algorithm=_signature_hash(c),
        subject_alt_names=tuple(x.value for x in san),
        subject_alt_names_typed=san,
        extensions=_extensions(extensions),
        version=c.version.value + 1,
        is_ca=_is_ca(extensions),
        raw_der=block.body,
    )


def decode_csr(block: PemBlock) -> Csr:
    _expect(block, PemLabel.CERTIFICATE_REQUEST)

    try:
        r = x509.load_der_x509_csr(block.body)
    except ValueError as e:
        raise DecodeError(str(e), field="request")

    try:
        extensions = r.extensions
    except ValueError as e:
        raise DecodeError(str(e), field="extensions")

    try:
        public_key = r.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise DecodeError(str(e), field="subjectPublicKeyInfo")
    key_algorithm, key_bits = _public_key(public_key)

    try:
        signature_valid = r.is_signature_valid
    except UnsupportedAlgorithm:
        signature_valid = False

    san = _san(extensions)

    return Csr(
        subject=_name(r.subject),
        public_key_algorithm=key_algorithm,
        public_key_bits=key_bits,
        signature_algorithm=_signature_algorithm(r.signature_algorithm_oid),
        signature_valid=signature_valid,
        subject_alt_names=tuple(x.value for x in san),
        subject_alt_names_typed=san,
        extensions=_extensions(extensions),
        raw_der=block.body,
    )


def _blocks(data: bytes | str, label: PemLabel,
            all_: bool = False) -> list[PemBlock]:
    if looks_like_der(data):
        check_der(data, label)
        return [PemBlock(label=label, body=data)]

    if all_:
        return normalize_all(data, label)
    return [normalize(data, label)]


def load_certificate(data: bytes | str) -> Certificate:
    """
    Decode a certificate given as DER bytes or PEM text (delimiters
    optional).
    """
    return decode_certificate(_blocks(data, PemLabel.CERTIFICATE)[0])


def load_certificates(data: bytes | str) -> list[Certificate]:
    return [decode_certificate(x)
            for x in _blocks(data, PemLabel.CERTIFICATE, all_=True)]


def load_csr(data: bytes | str) -> Csr:
    return decode_csr(_blocks(data, PemLabel.CERTIFICATE_REQUEST)[0])
