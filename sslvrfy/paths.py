"""
Trust path search.

Given a certificate and a set of anchors, find every path that climbs
from the certificate through anchors that issued it. Each anchor reached
ends one path, and the search keeps climbing through anchors issued by
other anchors. With anchors {intermediate, root} a leaf therefore yields
both (leaf, intermediate) and (leaf, intermediate, root).

Candidate paths are only linked by signature here. Each one is then handed
to OpenSSL with its last certificate as the sole trust anchor, and kept only
when OpenSSL verifies exactly that chain at ``now``: validity windows, CA
flags, path length and name constraints, unhandled critical extensions.
When a DNS name is requested the evaluated certificate must also pass
cryptography's server verifier for that name over the same path.
"""

from __future__ import annotations

import ipaddress
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

import structlog
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.verification import PolicyBuilder, Store, VerificationError
from OpenSSL import crypto

from .models import ValidatedPath
from .signatures import is_signed_by

log = structlog.get_logger(__name__)

MAX_PATH_DEPTH = 10


def build_paths(
    cert: x509.Certificate,
    anchors: Iterable[x509.Certificate],
    dns_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[ValidatedPath, ...]:
    """Return every validated path from ``cert`` to one of ``anchors``."""
    if now is None:
        now = datetime.now(timezone.utc)
    anchors = tuple(anchors)

    if cert in anchors:
        candidates = [(cert,)]
    else:
        candidates = []
        _climb((cert,), anchors, candidates)

    found = []
    for path in candidates:
        if not verify_path(path, now):
            continue
        if dns_name is not None and not verify_server_name(path, dns_name, now):
            continue
        found.append(path)
    return tuple(found)


def _climb(path, anchors, found: List[ValidatedPath]):
    if len(path) >= MAX_PATH_DEPTH:
        return
    child = path[-1]
    for candidate in anchors:
        if candidate in path:
            continue
        if not is_signed_by(child, candidate):
            continue
        extended = path + (candidate,)
        found.append(extended)
        _climb(extended, anchors, found)


def verify_path(path, now):
    """
    Let OpenSSL verify ``path[0]`` with ``path[-1]`` as the only trust anchor.

    The certificates in between are offered as untrusted intermediates. The
    path is accepted only when OpenSSL built exactly this chain.
    """
    store = crypto.X509Store()
    store.add_cert(crypto.X509.from_cryptography(path[-1]))
    # anchors are not necessarily self-signed roots
    store.set_flags(crypto.X509StoreFlags.PARTIAL_CHAIN)
    store.set_time(now)

    intermediates = [crypto.X509.from_cryptography(c) for c in path[1:-1]]
    store_ctx = crypto.X509StoreContext(
        store,
        crypto.X509.from_cryptography(path[0]),
        chain=intermediates if intermediates else None,
    )
    try:
        verified = store_ctx.get_verified_chain()
    except crypto.X509StoreContextError as e:
        log.debug(
            "paths.rejected",
            subject=path[0].subject.rfc4514_string(),
            anchor=path[-1].subject.rfc4514_string(),
            reason=str(e),
        )
        return False

    expected = [c.public_bytes(Encoding.DER) for c in path]
    got = [c.to_cryptography().public_bytes(Encoding.DER) for c in verified]
    if got != expected:
        log.debug("paths.other_chain_built", subject=path[0].subject.rfc4514_string(), length=len(got))
        return False
    return True


def server_name(hostname):
    """The verifier subject for ``hostname``: an IP address or a DNS name."""
    try:
        return x509.IPAddress(ipaddress.ip_address(hostname))
    except ValueError:
        return x509.DNSName(hostname.rstrip(".").lower())


def verify_server_name(path, hostname, now):
    """
    Check ``hostname`` against ``path[0]`` with cryptography's server verifier.

    Names come from the subjectAltName extension only; the subject common
    name is never consulted.
    """
    # the verifier takes naive datetimes as UTC
    when = now.astimezone(timezone.utc).replace(tzinfo=None)
    try:
        verifier = (
            PolicyBuilder()
            .store(Store([path[-1]]))
            .time(when)
            .build_server_verifier(server_name(hostname))
        )
        verifier.verify(path[0], list(path[1:-1]))
    except (VerificationError, ValueError) as e:
        log.debug(
            "paths.server_name_rejected",
            subject=path[0].subject.rfc4514_string(),
            hostname=hostname,
            reason=str(e),
        )
        return False
    return True
