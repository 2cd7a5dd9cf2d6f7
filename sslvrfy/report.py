"""Plain-text report for a verified chain."""

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import AuthorityInformationAccessOID, NameOID

from .models import TriState

# (label, oid) in the order the name fields are printed
NAME_FIELDS = (
    ("C", NameOID.COUNTRY_NAME),
    ("O", NameOID.ORGANIZATION_NAME),
    ("OU", NameOID.ORGANIZATIONAL_UNIT_NAME),
    ("L", NameOID.LOCALITY_NAME),
    ("P", NameOID.STATE_OR_PROVINCE_NAME),
    ("A", NameOID.STREET_ADDRESS),
    ("PC", NameOID.POSTAL_CODE),
)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def format_name(name):
    """Format a distinguished name, one line per non-empty attribute value."""
    lines = []
    for label, oid in NAME_FIELDS:
        for attribute in name.get_attributes_for_oid(oid):
            if attribute.value:
                lines.append(f"    {label}={attribute.value}")
    for attribute in name.get_attributes_for_oid(NameOID.COMMON_NAME):
        if attribute.value:
            lines.append(f"  CN={attribute.value}")
    for attribute in name.get_attributes_for_oid(NameOID.SERIAL_NUMBER):
        if attribute.value:
            lines.append(f"  SN={attribute.value}")
    return lines


def _extension_value(cert, ext_class):
    try:
        return cert.extensions.get_extension_for_class(ext_class).value
    except x509.ExtensionNotFound:
        return None


def signature_algorithm(cert):
    """Hash name and OID of the signature, or the OID alone when it has no hash."""
    oid = cert.signature_algorithm_oid.dotted_string
    try:
        hash_algorithm = cert.signature_hash_algorithm
    except UnsupportedAlgorithm:
        hash_algorithm = None
    if hash_algorithm is None:
        return oid
    return f"{hash_algorithm.name} ({oid})"


def format_cert_fields(cert):
    """Validity window, AIA URLs and subjectAltName entries of ``cert``."""
    lines = [
        f"  notBefore: {cert.not_valid_before_utc.strftime(TIME_FORMAT)}",
        f"  notAfter : {cert.not_valid_after_utc.strftime(TIME_FORMAT)}",
    ]

    aia = _extension_value(cert, x509.AuthorityInformationAccess)
    if aia is not None:
        for description in aia:
            if description.access_method == AuthorityInformationAccessOID.CA_ISSUERS:
                lines.append(f"  IssuingCertificateURL: {description.access_location.value}")
        for description in aia:
            if description.access_method == AuthorityInformationAccessOID.OCSP:
                lines.append(f"  OCSPServer: {description.access_location.value}")

    san = _extension_value(cert, x509.SubjectAlternativeName)
    if san is not None:
        for dns_name in san.get_values_for_type(x509.DNSName):
            lines.append(f"  DNSNames: {dns_name}")
        for email in san.get_values_for_type(x509.RFC822Name):
            lines.append(f"  EmailAddresses: {email}")
        for address in san.get_values_for_type(x509.IPAddress):
            lines.append(f"  IPAddresses: {address}")

    lines.append(f"  SignatureAlgorithm: {signature_algorithm(cert)}")
    return lines


def format_certificate(cert, index, outcome=None, mismatch_index=None):
    """The block printed for one presented certificate."""
    lines = ["", f"Certificate {index}"]
    lines.extend(format_cert_fields(cert))
    lines.append("  Issuer:")
    lines.extend(format_name(cert.issuer))
    lines.append("  Subject:")
    lines.extend(format_name(cert.subject))

    if outcome is not None:
        if outcome.signed_by_parent is TriState.TRUE:
            lines.append("  Signed by Parent: OK")
        elif outcome.signed_by_parent is TriState.FALSE:
            lines.append("  Signed by Parent: --- FAILED ---")
        if outcome.self_signed:
            lines.append("  Signed by Self: --- SELF SIGNED ---")
        if outcome.verify_result is TriState.TRUE:
            lines.append("  Verify: OK")
        else:
            lines.append("  Verify: --- FAILED ---")

    if index == 0 and mismatch_index is not None:
        lines.append(f"Certificate chain fail: {mismatch_index}")

    lines.append(cert.public_bytes(Encoding.PEM).decode("ascii").rstrip("\n"))
    return "\n".join(lines)


def format_verdict(verdict):
    """The summary block closing every successful run."""
    (root_known, chain_validated, validated,
     selfsigned, in_order, days) = verdict.as_ints()
    return f"""isRootKnownCert:  {root_known}
isChainValidated: {chain_validated}
isValidated:      {validated}
isSelfsigned:     {selfsigned}
isChainInOrder:   {in_order}
notAfterInDays:   {days} days"""


def format_report(chain, verdict):
    """Every certificate block, outermost first, followed by the summary."""
    blocks = []
    for index, cert in chain.walk():
        blocks.append(format_certificate(
            cert,
            index,
            outcome=verdict.outcome_for(index),
            mismatch_index=verdict.order_mismatch_index,
        ))
    blocks.append(format_verdict(verdict))
    return "\n".join(blocks)
