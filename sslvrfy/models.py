"""Value objects shared by the collector, the verifier and the report."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

from cryptography import x509


class TriState(enum.Enum):
    """A verdict that may not have been decided yet."""

    UNKNOWN = -1
    FALSE = 0
    TRUE = 1

    @classmethod
    def from_bool(cls, value: bool) -> TriState:
        return cls.TRUE if value else cls.FALSE

    def __and__(self, other: TriState) -> TriState:
        if self is TriState.FALSE or other is TriState.FALSE:
            return TriState.FALSE
        if self is TriState.TRUE and other is TriState.TRUE:
            return TriState.TRUE
        return TriState.UNKNOWN

    def __int__(self) -> int:
        return self.value


ValidatedPath = Tuple[x509.Certificate, ...]


class PresentedChain(Sequence):
    """
    Certificates in the order the server sent them.

    Index 0 is the leaf, the last index is the outermost certificate,
    usually the root or the certificate closest to it.
    """

    __slots__ = ("_certs",)

    def __init__(self, certs):
        self._certs = tuple(certs)

    def __getitem__(self, index):
        return self._certs[index]

    def __len__(self):
        return len(self._certs)

    def __iter__(self) -> Iterator[x509.Certificate]:
        return iter(self._certs)

    def __repr__(self):
        return f"PresentedChain(length={len(self._certs)})"

    @property
    def leaf(self) -> Optional[x509.Certificate]:
        return self._certs[0] if self._certs else None

    @property
    def outermost(self) -> Optional[x509.Certificate]:
        return self._certs[-1] if self._certs else None

    def is_outermost(self, index: int) -> bool:
        return index == len(self._certs) - 1

    def parent_of(self, index: int) -> Optional[x509.Certificate]:
        """The next certificate toward the root, or None for the outermost."""
        if self.is_outermost(index):
            return None
        return self._certs[index + 1]

    def walk(self) -> Iterator[Tuple[int, x509.Certificate]]:
        """Yield (index, certificate) from the outermost certificate to the leaf."""
        for index in range(len(self._certs) - 1, -1, -1):
            yield index, self._certs[index]


class TrustPool:
    """Append-only set of anchors grown while walking toward the leaf."""

    def __init__(self):
        self._certs = []

    def add(self, cert: x509.Certificate) -> None:
        self._certs.append(cert)

    def __iter__(self):
        return iter(self._certs)

    def __len__(self):
        return len(self._certs)

    def __contains__(self, cert):
        return cert in self._certs


@dataclass(frozen=True)
class VerificationOutcome:
    """Everything the walk learned about one presented certificate."""

    index: int
    signed_by_parent: TriState = TriState.UNKNOWN
    self_signed: bool = False
    verify_result: TriState = TriState.UNKNOWN
    is_trust_anchor_step: bool = False
    paths: Tuple[ValidatedPath, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class ReportVerdict:
    """
    Aggregate result of one verification run.

    The tri-state fields are converted to the -1/0/1 integers of the
    summary block only by ``as_ints``.
    """

    is_root_known_cert: TriState = TriState.UNKNOWN
    is_chain_validated: TriState = TriState.UNKNOWN
    is_validated: TriState = TriState.UNKNOWN
    is_selfsigned: bool = False
    is_chain_in_order: TriState = TriState.FALSE
    not_after_in_days: int = -1
    outcomes: Tuple[VerificationOutcome, ...] = field(default=(), repr=False)
    order_mismatch_index: Optional[int] = None

    def outcome_for(self, index: int) -> Optional[VerificationOutcome]:
        for outcome in self.outcomes:
            if outcome.index == index:
                return outcome
        return None

    def as_ints(self) -> Tuple[int, int, int, int, int, int]:
        return (
            int(self.is_root_known_cert),
            int(self.is_chain_validated),
            int(self.is_validated),
            int(self.is_selfsigned),
            int(self.is_chain_in_order),
            self.not_after_in_days,
        )
