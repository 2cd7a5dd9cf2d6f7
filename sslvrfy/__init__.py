"""sslvrfy: inspect and independently verify the certificate chain a TLS server presents."""

from .exceptions import ChainConnectionError, SslVrfyError, TrustStoreError
from .fetch import fetch_presented_chain
from .models import PresentedChain, ReportVerdict, TriState, VerificationOutcome
from .truststore import load_trust_store
from .verify import verify_chain

__version__ = "0.1.0"

__all__ = [
    "ChainConnectionError",
    "PresentedChain",
    "ReportVerdict",
    "SslVrfyError",
    "TriState",
    "TrustStoreError",
    "VerificationOutcome",
    "fetch_presented_chain",
    "load_trust_store",
    "verify_chain",
]
