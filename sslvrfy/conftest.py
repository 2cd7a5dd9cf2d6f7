"""
Shared fixtures for the sslvrfy test suite.

Builds small in-memory PKIs (root, intermediate, leaf) with cryptography
so the verifier can be exercised without touching the network.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from sslvrfy.cli import configure_structlog

# Certificates carry whole seconds only
NOW = datetime.now(timezone.utc).replace(microsecond=0)

LEAF_HOSTNAME = "www.example.test"


def pytest_configure(config):
    config.addinivalue_line("markers", "network: talks to hosts on the internet")
    configure_structlog("WARNING")


def new_key():
    return ec.generate_private_key(ec.SECP256R1())


def make_name(common_name, organization="sslvrfy tests"):
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "SK"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


def _key_usage(ca):
    return x509.KeyUsage(
        digital_signature=not ca,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=ca,
        crl_sign=ca,
        encipher_only=False,
        decipher_only=False,
    )


def make_cert(
    name,
    key,
    issuer_name=None,
    issuer_key=None,
    ca=False,
    path_length=None,
    not_before=None,
    not_after=None,
    dns_names=(),
    ip_addresses=(),
    basic_constraints=True,
    extensions=(),
):
    """
    Issue a certificate for ``key``; self-signed when no issuer is given.

    CA certificates carry keyCertSign, certificates with names carry the
    serverAuth usage of a TLS server. ``extensions`` holds extra
    (extension, critical) pairs.
    """
    if issuer_name is None:
        issuer_name, issuer_key = name, key
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or NOW - timedelta(days=30))
        .not_valid_after(not_after or NOW + timedelta(days=365))
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
            critical=False,
        )
    )
    if basic_constraints:
        builder = builder.add_extension(
            x509.BasicConstraints(ca=ca, path_length=path_length if ca else None),
            critical=True,
        )
    general_names = [x509.DNSName(n) for n in dns_names]
    general_names += [x509.IPAddress(ipaddress.ip_address(a)) for a in ip_addresses]
    if ca or general_names:
        builder = builder.add_extension(_key_usage(ca), critical=True)
    if general_names:
        builder = builder.add_extension(x509.SubjectAlternativeName(general_names), critical=False)
        builder = builder.add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False,
        )
    for extension, critical in extensions:
        builder = builder.add_extension(extension, critical=critical)
    return builder.sign(private_key=issuer_key, algorithm=hashes.SHA256())


def tamper_signature(cert):
    """Return a copy of ``cert`` whose signature no longer verifies."""
    der = bytearray(cert.public_bytes(Encoding.DER))
    der[-1] ^= 0x01
    return x509.load_der_x509_certificate(bytes(der))


@dataclass
class Pki:
    root: x509.Certificate
    root_key: ec.EllipticCurvePrivateKey
    intermediate: x509.Certificate
    intermediate_key: ec.EllipticCurvePrivateKey
    leaf: x509.Certificate
    leaf_key: ec.EllipticCurvePrivateKey

    @property
    def chain(self):
        return [self.leaf, self.intermediate, self.root]


def build_pki(
    leaf_not_after=None,
    leaf_not_before=None,
    dns_names=(LEAF_HOSTNAME,),
    intermediate_extensions=(),
):
    root_key, intermediate_key, leaf_key = new_key(), new_key(), new_key()
    root_name = make_name("sslvrfy Test Root CA")
    intermediate_name = make_name("sslvrfy Test Intermediate CA")

    root = make_cert(root_name, root_key, ca=True, not_after=NOW + timedelta(days=3650))
    intermediate = make_cert(
        intermediate_name, intermediate_key, root_name, root_key, ca=True, path_length=0,
        extensions=intermediate_extensions,
    )
    leaf = make_cert(
        make_name(LEAF_HOSTNAME),
        leaf_key,
        intermediate_name,
        intermediate_key,
        not_before=leaf_not_before,
        not_after=leaf_not_after,
        dns_names=dns_names,
    )
    return Pki(root, root_key, intermediate, intermediate_key, leaf, leaf_key)


@pytest.fixture(scope="session")
def pki() -> Pki:
    """A valid root -> intermediate -> leaf hierarchy for LEAF_HOSTNAME."""
    return build_pki()


@pytest.fixture()
def now() -> datetime:
    return NOW
