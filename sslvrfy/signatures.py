"""Pairwise signature checks between presented certificates."""

import structlog
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm

log = structlog.get_logger(__name__)


def is_signed_by(child, parent):
    """Return True if ``child`` names ``parent`` as issuer and carries its signature."""
    try:
        child.verify_directly_issued_by(parent)
    except InvalidSignature:
        return False
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        # issuer name mismatch or a key/signature type cryptography cannot check
        log.debug("signature.unverifiable", reason=str(e))
        return False
    return True


def is_self_signed(cert):
    """Return True if ``cert`` verifies against its own public key."""
    return is_signed_by(cert, cert)
