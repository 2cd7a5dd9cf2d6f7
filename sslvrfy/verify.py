"""
Chain verification walk.

Certificates are visited from the outermost one to the leaf. Each step
checks the certificate against its presented parent and against itself,
searches trust paths against the current anchors, and then adds the
certificate to the trust pool used by the following steps. The outermost
certificate is the only one checked against the system trust store.

Once the leaf has been evaluated its validated paths decide whether the
server sent the chain in canonical order, and its notAfter gives the
remaining validity in days.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

import structlog
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from .models import (
    PresentedChain,
    ReportVerdict,
    TriState,
    TrustPool,
    ValidatedPath,
    VerificationOutcome,
)
from .paths import build_paths
from .signatures import is_self_signed, is_signed_by

log = structlog.get_logger(__name__)


@dataclass
class _WalkState:
    """Verdicts folded step by step; frozen into a ReportVerdict at the end."""

    root_seen_true: bool = False
    root_seen_false: bool = False
    chain_seen_true: bool = False
    chain_seen_false: bool = False
    selfsigned: bool = False
    outcomes: List[VerificationOutcome] = field(default_factory=list)

    def record(self, outcome: VerificationOutcome, is_leaf: bool) -> None:
        self.outcomes.append(outcome)

        if outcome.signed_by_parent is TriState.FALSE:
            self.chain_seen_false = True
        if outcome.self_signed:
            self.selfsigned = True

        if outcome.verify_result is TriState.TRUE:
            self.chain_seen_true = True
            if not is_leaf and outcome.is_trust_anchor_step:
                self.root_seen_true = True
        elif outcome.verify_result is TriState.FALSE:
            self.chain_seen_false = True
            if not is_leaf:
                self.root_seen_false = True

    @property
    def root_known(self) -> TriState:
        if self.root_seen_false:
            return TriState.FALSE
        if self.root_seen_true:
            return TriState.TRUE
        return TriState.UNKNOWN

    @property
    def chain_validated(self) -> TriState:
        if self.chain_seen_false:
            return TriState.FALSE
        if self.chain_seen_true:
            return TriState.TRUE
        return TriState.UNKNOWN


def verify_chain(
    chain: Iterable[x509.Certificate],
    trust_store: Iterable[x509.Certificate],
    hostname: Optional[str] = None,
    now: Optional[datetime] = None,
    legacy_validated_product: bool = False,
) -> ReportVerdict:
    """
    Evaluate a presented chain and return the aggregate verdict.

    ``hostname`` is matched against the leaf only. ``now`` defaults to the
    current UTC time; pass it explicitly for reproducible results.
    """
    if not isinstance(chain, PresentedChain):
        chain = PresentedChain(chain)
    if now is None:
        now = datetime.now(timezone.utc)
    if not chain:
        log.warning("verify.empty_chain")
        return ReportVerdict()

    trust_store = tuple(trust_store)
    pool = TrustPool()
    state = _WalkState()
    leaf_paths: Tuple[ValidatedPath, ...] = ()

    for index, cert in chain.walk():
        outcome = evaluate_certificate(chain, index, trust_store, pool, hostname, now)
        pool.add(cert)
        state.record(outcome, is_leaf=index == 0)
        if index == 0:
            leaf_paths = outcome.paths
        log.info(
            "verify.step",
            index=index,
            subject=cert.subject.rfc4514_string(),
            signed_by_parent=outcome.signed_by_parent.name,
            self_signed=outcome.self_signed,
            verify=outcome.verify_result.name,
            trust_store_tier=outcome.is_trust_anchor_step,
            paths=len(outcome.paths),
        )

    in_order, mismatch_index = judge_order(chain, leaf_paths)
    if in_order is TriState.FALSE:
        log.info("verify.chain_order_mismatch", index=mismatch_index, leaf_paths=len(leaf_paths))

    root_known = state.root_known
    chain_validated = state.chain_validated & in_order

    return ReportVerdict(
        is_root_known_cert=root_known,
        is_chain_validated=chain_validated,
        is_validated=combine_validated(root_known, chain_validated, legacy_validated_product),
        is_selfsigned=state.selfsigned,
        is_chain_in_order=in_order,
        not_after_in_days=days_remaining(chain.leaf, now),
        outcomes=tuple(state.outcomes),
        order_mismatch_index=mismatch_index,
    )


def evaluate_certificate(chain, index, trust_store, pool, hostname, now) -> VerificationOutcome:
    """Run the pairwise checks and the trust path search for one certificate."""
    cert = chain[index]
    parent = chain.parent_of(index)

    signed_by_parent = TriState.UNKNOWN
    self_signed = False
    if parent is not None:
        signed_by_parent = TriState.from_bool(is_signed_by(cert, parent))
        self_signed = is_self_signed(cert)

    anchor_step = chain.is_outermost(index)
    anchors = trust_store if anchor_step else tuple(pool)
    paths = build_paths(
        cert,
        anchors,
        dns_name=hostname if index == 0 else None,
        now=now,
    )

    return VerificationOutcome(
        index=index,
        signed_by_parent=signed_by_parent,
        self_signed=self_signed,
        verify_result=TriState.from_bool(bool(paths)),
        is_trust_anchor_step=anchor_step,
        paths=paths,
    )


def judge_order(chain, paths) -> Tuple[TriState, Optional[int]]:
    """
    Compare the presented order with the leaf's validated paths.

    Only paths as long as the presented chain are considered. Returns
    TRUE when one of them matches position by position, otherwise FALSE
    together with the first differing index of a same-length path (None
    when there was no same-length path at all).
    """
    presented = [c.public_bytes(Encoding.DER) for c in chain]
    mismatch_index = None
    for path in paths:
        if len(path) != len(presented):
            continue
        for position, cert in enumerate(path):
            if cert.public_bytes(Encoding.DER) != presented[position]:
                if mismatch_index is None:
                    mismatch_index = position
                break
        else:
            return TriState.TRUE, None
    return TriState.FALSE, mismatch_index


def days_remaining(cert, now) -> int:
    """Whole days until notAfter, truncated toward zero; negative once expired."""
    hours = int((cert.not_valid_after_utc - now) / timedelta(hours=1))
    return int(hours / 24)


def combine_validated(root_known, chain_validated, legacy_product=False) -> TriState:
    """
    Fold the root and chain verdicts into isValidated.

    The default is a three-valued AND: TRUE only when both inputs are TRUE.
    ``legacy_product`` multiplies the -1/0/1 encodings instead, which turns
    two UNKNOWN inputs into TRUE.
    """
    conjunction = root_known & chain_validated
    product = TriState(int(root_known) * int(chain_validated))
    if conjunction is not product:
        log.warning(
            "verify.validated_rule_discrepancy",
            root_known=root_known.name,
            chain_validated=chain_validated.name,
            conjunction=conjunction.name,
            product=product.name,
            using="product" if legacy_product else "conjunction",
        )
    return product if legacy_product else conjunction
