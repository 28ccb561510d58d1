from __future__ import annotations

import base64
from datetime import datetime, timezone


def b64_der(der: bytes) -> str:
    return base64.b64encode(der).decode("ascii")


def hex_pairs(data: bytes) -> str:
    # AB:CD:EF, as openssl prints fingerprints and serials
    return ":".join(f"{b:02X}" for b in data)


def serial_hex(serial: int) -> str:
    length = max(1, (serial.bit_length() + 7) // 8)
    return hex_pairs(serial.to_bytes(length, "big"))


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def dt_to_utc_iso(dt: datetime) -> str:
    return as_utc(dt).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def dt_to_openssl(dt: datetime) -> str:
    # Jan  2 03:04:05 2026 GMT
    dt = as_utc(dt)
    return f"{dt:%b} {dt.day:2d} {dt:%H:%M:%S %Y} GMT"
