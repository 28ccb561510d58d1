from __future__ import annotations


class InspectError(Exception):
    pass


class MalformedInputError(InspectError):
    """Input is not a well-formed PEM/DER structure."""

    def __init__(self, message: str, *, offset: int | None = None) -> None:
        super().__init__(message)
        self.offset = offset

    def __str__(self) -> str:
        msg = super().__str__()
        if self.offset is not None:
            return f"{msg} (at byte {self.offset})"
        return msg


class DecodeError(InspectError):
    """DER is present but is not the expected certificate or CSR."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def __str__(self) -> str:
        msg = super().__str__()
        if self.field is not None:
            return f"{self.field}: {msg}"
        return msg


class FetchError(InspectError):
    def __init__(self, message: str, *, host: str, port: int) -> None:
        super().__init__(message)
        self.host = host
        self.port = port

    def __str__(self) -> str:
        return f"{self.host}:{self.port}: {super().__str__()}"


class TlsConnectionError(FetchError, ConnectionError):
    pass


class HandshakeError(FetchError):
    pass


class TlsTimeoutError(FetchError, TimeoutError):
    pass


class InvalidHostnameError(InspectError, ValueError):
    pass
