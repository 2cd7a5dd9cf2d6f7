"""Errors that end a run. Verification failures are recorded, not raised."""


class SslVrfyError(Exception):
    """Base class for fatal sslvrfy errors."""


class ChainConnectionError(SslVrfyError):
    """The presented chain could not be retrieved (DNS, TCP or TLS handshake)."""

    def __init__(self, hostname, port, reason):
        super().__init__(f"{hostname}:{port}: {reason}")
        self.hostname = hostname
        self.port = port
        self.reason = reason


class TrustStoreError(SslVrfyError):
    """A CA bundle that was asked for explicitly could not be loaded."""
