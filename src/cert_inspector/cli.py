from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from . import __version__, title
from .classify import classify
from .csr import DEFAULT_COUNTRY, DEFAULT_KEY_BITS, build_csr, csr_pem
from .decode import load_certificates, load_csr
from .display import (certificate_dict, certificate_text,
                      classification_text, csr_dict, csr_text, fetch_dict,
                      fetch_text,
                      fingerprint_lines)
from .errors import InspectError, InvalidHostnameError
from .fetch import DEFAULT_PORT, DEFAULT_TIMEOUT, fetch
from .models import PemLabel
from .pem import encode

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2  # same as argparse
EXIT_FORCE = 3

logger = logging.getLogger(__name__)


class UsageError(Exception):
    pass


def _write_text(out_path: str | None, text: str) -> None:
    if out_path:
        Path(out_path).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def _write_output(out_path: str | None, payload: Any) -> None:
    _write_text(out_path, json.dumps(payload, indent=2, ensure_ascii=False))


def _read_input(path: str | None) -> bytes:
    if path is None or path == "-":
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def _parse_target(target: str, port: int | None = None) -> tuple[str, int]:
    target = target.strip()
    host, port_s = target, None
    if target.startswith("["):
        # [2001:db8::1]:8443
        host, _, rest = target[1:].partition("]")
        if rest.startswith(":"):
            port_s = rest[1:]
        elif rest:
            raise UsageError("malformed target: %s" % target)
    elif target.count(":") == 1:
        host, port_s = target.rsplit(":", 1)

    host = host.strip()
    if not host:
        raise UsageError("host is empty")

    if port_s is not None:
        port_s = port_s.strip()
        if not port_s.isdigit():
            raise UsageError("port must be a number")
        if port is not None and port != int(port_s):
            raise UsageError("conflicting ports %s and %d" % (port_s, port))
        port = int(port_s)

    if port is None:
        port = DEFAULT_PORT
    if not (1 <= port <= 65535):
        raise UsageError("port out of range")

    return host, port


def _read_hostnames(path: str) -> list[str]:
    text = _read_input(path).decode("utf-8")
    return [x.strip() for x in text.splitlines() if x.strip()]


def _base_name(hostname: str) -> str:
    name = hostname.strip().rstrip(".")
    if name.startswith("*."):
        name = "wildcard" + name[1:]
    return name.replace("/", "_")


def _passphrase(args: argparse.Namespace) -> bytes:
    if args.passphrase_file:
        lines = _read_input(args.passphrase_file).splitlines()
        if not lines or not lines[0]:
            raise UsageError("%s: empty passphrase" % args.passphrase_file)
        return lines[0]

    if not sys.stdin.isatty():
        raise UsageError("no terminal to prompt for a passphrase; "
                         "use --passphrase-file or --no-encrypt")
    x = getpass.getpass("Enter PEM pass phrase: ")
    if x != getpass.getpass("Verifying - Enter PEM pass phrase: "):
        raise UsageError("passphrases do not match")
    if not x:
        raise UsageError("empty passphrase")
    return x.encode("utf-8")


def _write_key(path: Path, data: bytes, force: bool) -> None:
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    if not force:
        flags |= os.O_EXCL
    fd = os.open(path, flags, 0o600)
    with os.fdopen(fd, "wb") as f:
        # existing file on --force keeps its old mode unless reset
        os.fchmod(f.fileno(), 0o600)
        f.write(data)


def cmd_show(args: argparse.Namespace) -> int:
    data = _read_input(args.path)

    if args.csr:
        csr = load_csr(data)
        if args.json:
            _write_output(args.out, csr_dict(csr))
        else:
            _write_text(args.out, csr_text(csr, full=not args.summary))
        return EXIT_OK

    certs = load_certificates(data)
    if args.json:
        _write_output(args.out, [certificate_dict(x) for x in certs])
        return EXIT_OK

    _write_text(args.out, "\n\n".join(
        certificate_text(x, full=not args.summary) for x in certs))

    return EXIT_OK


def cmd_fingerprint(args: argparse.Namespace) -> int:
    data = _read_input(args.path)
    for i, cert in enumerate(load_certificates(data)):
        if i:
            print()
        for line in fingerprint_lines(cert):
            print(line)

    return EXIT_OK


def _fetch(args: argparse.Namespace):
    host, port = _parse_target(args.target, args.port)
    logger.info("connecting to %s:%d (sni %s)", host, port,
                args.sni or host)
    result = fetch(host, port=port, timeout=args.timeout,
                   server_name=args.sni)
    logger.info("%d certificates, %s %s", len(result.chain),
                result.tls_version, result.cipher)
    return result


def cmd_fetch(args: argparse.Namespace) -> int:
    result = _fetch(args)
    for x in result.undecoded:
        logger.warning("certificate %d not decoded: %s", x.position, x.error)

    if args.json:
        _write_output(args.out, fetch_dict(result))
    elif args.pem:
        _write_text(args.out, "".join(
            encode(PemLabel.CERTIFICATE, der) for der in result.ders).rstrip())
    else:
        _write_text(args.out, fetch_text(result, full=args.full))

    return EXIT_OK


def cmd_sha(args: argparse.Namespace) -> int:
    if args.file:
        chain = load_certificates(_read_input(args.file))
    elif args.target:
        chain = _fetch(args).chain
    else:
        raise UsageError("a target or --file is required")

    print(classification_text(classify(chain)))

    return EXIT_OK


def cmd_csr(args: argparse.Namespace) -> int:
    hostnames = list(args.hostnames)
    if args.file:
        hostnames.extend(_read_hostnames(args.file))
    if not hostnames:
        raise UsageError("no hostnames given")

    out_dir = Path(args.out_dir)
    name = _base_name(hostnames[0])
    key_path = out_dir / (name + ".key")
    csr_path = out_dir / (name + ".csr")

    existing = [str(x) for x in (key_path, csr_path) if x.exists()]
    if existing and not args.force:
        print("%s: %s exists, use --force to overwrite" % (
            title, ", ".join(existing)), file=sys.stderr)
        return EXIT_FORCE

    encrypt = not args.no_encrypt
    passphrase = _passphrase(args) if encrypt else None

    logger.info("generating %d bit key for %s", args.bits,
                ", ".join(hostnames))
    key_pair, csr = build_csr(hostnames,
                              key_bits=args.bits,
                              country=args.country,
                              organizational_unit=args.ou,
                              encrypt_key=encrypt,
                              passphrase=passphrase)

    _write_key(key_path, key_pair.private_key_pem, args.force)
    logger.info("wrote %s key %s",
                "encrypted" if key_pair.encrypted else "unencrypted",
                key_path)
    csr_path.write_text(csr_pem(csr), encoding="ascii")
    logger.info("wrote %s", csr_path)

    if args.verbose:
        print(key_path)
        print(csr_path)
    if args.dump:
        print(csr_text(csr))

    return EXIT_OK


def _add_fetch_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--port", "-p", type=int,
                   help="Port (default: %d, or :PORT in target)"
                   % DEFAULT_PORT)
    p.add_argument("--sni", help="Override SNI/server name (default: host)")
    p.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                   help="Connect and handshake timeout seconds "
                   "(default: %s)" % DEFAULT_TIMEOUT)


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog=title,
        description="Inspect X.509 certificates and CSRs, fetch TLS "
                    "certificate chains and generate CSRs.",
    )
    p.add_argument("--debug", type=int, choices=[0, 1, 2, 3], default=0,
                   help="enable debug")
    p.add_argument("--version", action="version",
                   version="%s %s" % (title, __version__),
                   help="display version")
    sub = p.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    x = sub.add_parser("show", help="display a certificate or CSR")
    x.add_argument("path", nargs="?", default="-",
                   help="PEM or DER file (default: stdin)")
    x.add_argument("--summary", "-s", action="store_true",
                   help="selected fields only")
    x.add_argument("--csr", action="store_true",
                   help="input is a certificate signing request")
    x.add_argument("--json", action="store_true", help="JSON output")
    x.add_argument("--out", "-o", help="Write output to file")
    x.set_defaults(func=cmd_show)

    x = sub.add_parser("fingerprint", help="MD5, SHA1 and SHA256 "
                       "fingerprints of a certificate")
    x.add_argument("path", nargs="?", default="-",
                   help="PEM or DER file (default: stdin)")
    x.set_defaults(func=cmd_fingerprint)

    x = sub.add_parser("fetch", help="fetch the chain a TLS server presents")
    x.add_argument("target", help="host, host:port or [ipv6]:port")
    _add_fetch_args(x)
    x.add_argument("--full", action="store_true",
                   help="all fields of every certificate")
    x.add_argument("--pem", action="store_true", help="print PEM")
    x.add_argument("--json", action="store_true", help="JSON output")
    x.add_argument("--out", "-o", help="Write output to file")
    x.set_defaults(func=cmd_fetch)

    x = sub.add_parser("sha", help="SHA-1/SHA-2 signatures in a chain")
    x.add_argument("target", nargs="?", help="host, host:port or "
                   "[ipv6]:port")
    x.add_argument("--file", "-f", metavar="PATH",
                   help="read the chain from a PEM bundle instead")
    _add_fetch_args(x)
    x.set_defaults(func=cmd_sha)

    x = sub.add_parser("csr", help="generate a private key and CSR")
    x.add_argument("hostnames", nargs="*", metavar="HOSTNAME",
                   help="first is the CN, all are SANs")
    x.add_argument("--file", "-f", metavar="PATH",
                   help="read hostnames from file, one per line")
    x.add_argument("--country", "-c", default=DEFAULT_COUNTRY,
                   help="country (default: %s)" % DEFAULT_COUNTRY)
    x.add_argument("--ou", "-u", help="organizational unit")
    x.add_argument("--bits", type=int, default=DEFAULT_KEY_BITS,
                   help="RSA key size (default: %d)" % DEFAULT_KEY_BITS)
    x.add_argument("--no-encrypt", "-n", action="store_true",
                   help="do not encrypt the private key")
    x.add_argument("--passphrase-file", metavar="PATH",
                   help="read the key passphrase from the first line "
                   "of PATH")
    x.add_argument("--force", action="store_true",
                   help="overwrite existing files")
    x.add_argument("--dump", "-d", action="store_true",
                   help="display the generated CSR")
    x.add_argument("--out-dir", default=".", metavar="DIR",
                   help="directory for the .key and .csr files")
    x.add_argument("--verbose", "-v", action="store_true",
                   help="enable verbosity")
    x.set_defaults(func=cmd_csr)

    args = p.parse_args(argv)

    if args.debug:
        print(args, file=sys.stderr)

    return args


def _setup_logging(debug: int) -> None:
    log = logging.getLogger(__package__)
    if debug >= 2:
        log.setLevel(logging.DEBUG)
    elif debug == 1:
        log.setLevel(logging.INFO)
    else:
        return

    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        log.addHandler(handler)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    _setup_logging(args.debug)

    try:
        return args.func(args)
    except (UsageError, InvalidHostnameError) as e:
        print("%s: %s" % (title, e), file=sys.stderr)
        return EXIT_USAGE
    except (InspectError, OSError, ValueError) as e:
        logger.debug("%s failed", args.command, exc_info=True)
        print("%s: %s" % (title, e), file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
