"""Retrieve the certificate chain a TLS server presents."""

import ipaddress
import select
import socket
import time

import structlog
from OpenSSL import SSL

from .exceptions import ChainConnectionError
from .models import PresentedChain

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 5.0


def fetch_presented_chain(hostname, port, timeout=DEFAULT_TIMEOUT):
    """
    Connect to ``hostname:port`` and return the chain in wire order.

    Certificate verification is disabled for the handshake; the chain is
    judged separately by ``sslvrfy.verify``. SNI carries ``hostname`` unless
    it is an IP literal.
    ``timeout`` bounds the TCP connect and the handshake.
    """
    log.info("fetch.connecting", hostname=hostname, port=port, timeout=timeout)
    deadline = time.monotonic() + timeout

    context = SSL.Context(SSL.TLS_CLIENT_METHOD)
    # Do not verify certificates to get the full chain
    context.set_verify(SSL.VERIFY_NONE, lambda *args: True)

    try:
        sock = socket.create_connection((hostname, port), timeout=timeout)
    except OSError as e:
        log.warning("fetch.connect_failed", hostname=hostname, port=port, error=str(e))
        raise ChainConnectionError(hostname, port, e) from e

    conn = SSL.Connection(context, sock)
    try:
        if not _is_ip_literal(hostname):
            conn.set_tlsext_host_name(hostname.encode("idna"))
        conn.set_connect_state()
        _handshake(conn, sock, deadline)
        certs = conn.get_peer_cert_chain(as_cryptography=True) or []
    except (SSL.Error, OSError, UnicodeError) as e:
        log.warning("fetch.handshake_failed", hostname=hostname, port=port, error=repr(e))
        raise ChainConnectionError(hostname, port, e) from e
    finally:
        _close(conn, sock)

    log.info("fetch.chain_received", hostname=hostname, port=port, certificates=len(certs))
    return PresentedChain(certs)


def _is_ip_literal(hostname):
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def _handshake(conn, sock, deadline):
    # The socket has a timeout, so OpenSSL sees it as non-blocking and asks
    # to be called again once it is readable or writable.
    while True:
        try:
            conn.do_handshake()
            return
        except SSL.WantReadError:
            wait_read = True
        except SSL.WantWriteError:
            wait_read = False

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("TLS handshake timed out")
        if wait_read:
            ready = select.select([sock], [], [], remaining)[0]
        else:
            ready = select.select([], [sock], [], remaining)[1]
        if not ready:
            raise socket.timeout("TLS handshake timed out")


def _close(conn, sock):
    try:
        conn.shutdown()
    except (SSL.Error, OSError):
        # peer may already be gone; the socket is closed below either way
        pass
    sock.close()
