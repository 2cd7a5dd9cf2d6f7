"""Loading the root certificates used for the outermost presented certificate."""

import os
import ssl
from pathlib import Path

import certifi
import structlog
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from .exceptions import TrustStoreError

log = structlog.get_logger(__name__)

PEM_BEGIN = b"-----BEGIN CERTIFICATE-----"
PEM_END = b"-----END CERTIFICATE-----"


def load_trust_store(ca_file=None):
    """
    Return the root certificates to trust, deduplicated by DER.

    An explicit ``ca_file`` replaces the system defaults and must be
    readable. Otherwise the OpenSSL default CA file is used, falling back
    to the certifi bundle, and every PEM file in the OpenSSL default CA
    directory is added.
    """
    certs = []
    if ca_file is not None:
        try:
            data = Path(ca_file).read_bytes()
        except OSError as e:
            raise TrustStoreError(f"cannot read CA bundle {ca_file}: {e}") from e
        certs.extend(parse_pem_bundle(data, source=str(ca_file)))
        if not certs:
            raise TrustStoreError(f"no certificates found in CA bundle {ca_file}")
    else:
        paths = ssl.get_default_verify_paths()
        cafile = paths.cafile or paths.openssl_cafile
        if not cafile or not os.path.isfile(cafile):
            cafile = certifi.where()
        certs.extend(_read_bundle(cafile))

        capath = paths.capath or paths.openssl_capath
        if capath and os.path.isdir(capath):
            for entry in sorted(os.listdir(capath)):
                full = os.path.join(capath, entry)
                if os.path.isfile(full):
                    certs.extend(_read_bundle(full))

    unique = _deduplicate(certs)
    log.info("truststore.loaded", certificates=len(unique), explicit=ca_file is not None)
    return unique


def _read_bundle(path):
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        log.debug("truststore.unreadable", path=path, error=str(e))
        return []
    return parse_pem_bundle(data, source=path)


def parse_pem_bundle(data, source="<memory>"):
    """
    Parse every PEM certificate in ``data``.

    A bundle that fails to load as a whole is retried block by block, and
    only the blocks that fail are skipped.
    """
    try:
        return x509.load_pem_x509_certificates(data)
    except ValueError as e:
        log.debug("truststore.bundle_retry_per_block", source=source, error=str(e))

    certs = []
    for block in split_pem_certificates(data):
        try:
            certs.append(x509.load_pem_x509_certificate(block))
        except ValueError as e:
            log.debug("truststore.skipped_certificate", source=source, error=str(e))
    return certs


def split_pem_certificates(data):
    blocks = []
    start = data.find(PEM_BEGIN)
    while start != -1:
        end = data.find(PEM_END, start)
        if end == -1:
            break
        end += len(PEM_END)
        blocks.append(data[start:end] + b"\n")
        start = data.find(PEM_BEGIN, end)
    return blocks


def _deduplicate(certs):
    seen = set()
    unique = []
    for cert in certs:
        der = cert.public_bytes(Encoding.DER)
        if der in seen:
            continue
        seen.add(der)
        unique.append(cert)
    return tuple(unique)
