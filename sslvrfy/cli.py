"""
Command line entry point: ``sslvrfy <HOSTNAME> <PORT>``.

Fetches the presented chain, verifies it against the local trust store
and prints one block per certificate followed by the verdict summary.
"""

import logging
import sys

import structlog
from pydantic import ValidationError

from .config import VerifierSettings
from .exceptions import ChainConnectionError, TrustStoreError
from .fetch import fetch_presented_chain
from .report import format_report
from .truststore import load_trust_store
from .verify import verify_chain

USAGE = "usage: sslvrfy <HOSTNAME> <PORT>"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def configure_structlog(log_level="WARNING"):
    """Human-readable structlog output on stderr, keeping stdout for the report."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.WARNING)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def parse_args(argv):
    """Return (hostname, port) or None when the arguments are unusable."""
    if len(argv) != 2:
        return None
    hostname, port = argv
    if not hostname:
        return None
    try:
        port = int(port)
    except ValueError:
        return None
    if not 0 < port < 65536:
        return None
    return hostname, port


def run(hostname, port, settings, out=None):
    """Fetch, verify and print; returns the verdict."""
    out = out or sys.stdout
    chain = fetch_presented_chain(hostname, port, timeout=settings.timeout_seconds)
    trust_store = load_trust_store(settings.ca_file)
    verdict = verify_chain(
        chain,
        trust_store,
        hostname=hostname,
        legacy_validated_product=settings.legacy_validated_product,
    )
    print(format_report(chain, verdict), file=out)
    return verdict


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    args = parse_args(argv)
    if args is None:
        print(USAGE)
        return EXIT_USAGE
    hostname, port = args

    try:
        settings = VerifierSettings()
    except ValidationError as e:
        print(f"FATAL: Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    configure_structlog(settings.log_level)
    log = structlog.get_logger(__name__)
    log.info("app.starting", hostname=hostname, port=port, timeout=settings.timeout_seconds)

    try:
        run(hostname, port, settings)
    except ChainConnectionError as e:
        print(e, file=sys.stderr)
        return EXIT_FAILURE
    except TrustStoreError as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
