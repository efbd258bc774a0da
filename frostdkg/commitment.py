"""
Feldman polynomial commitments and the per-participant commitment table.

For a dealer polynomial  f(x) = a_0 + a_1 x + … + a_{t-1} x^{t-1}  the
public commitment is the vector

    C_k = a_k · G      for  k = 0, …, t-1

and a share  s = f(x)  verifies when  s · G == Σ_k C_k · x^k.

The table a participant keeps of everyone's commitments is write-once
per sender: the same vector may be delivered twice (idempotent), a
different one is a protocol violation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .curve import Scalar, Point, G, POINT_BYTES
from .errors import CommitmentConflictError, ConfigurationError
from .polynomial import commit_polynomial, evaluate_commitment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolynomialCommitment:
    """Feldman commitment to one dealer's polynomial."""

    points: Tuple[Point, ...]

    @classmethod
    def from_coefficients(cls, coeffs: Sequence[Scalar]) -> PolynomialCommitment:
        return cls(points=tuple(commit_polynomial(coeffs)))

    @classmethod
    def from_points(cls, points: Sequence[Point]) -> PolynomialCommitment:
        return cls(points=tuple(points))

    @property
    def threshold(self) -> int:
        return len(self.points)

    @property
    def constant(self) -> Point:
        """C_0 = a_0 · G, the dealer's contribution to the group key."""
        return self.points[0]

    def evaluate(self, x: int) -> Point:
        return evaluate_commitment(self.points, Scalar(x))

    def verify_share(self, share: Scalar, x: int) -> bool:
        return share * G == self.evaluate(x)

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, k: int) -> Point:
        return self.points[k]

    def to_bytes(self) -> bytes:
        parts = [len(self.points).to_bytes(4, "big")]
        parts.extend(p.to_bytes() for p in self.points)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> PolynomialCommitment:
        if len(data) < 4:
            raise ValueError("truncated commitment")
        count = int.from_bytes(data[:4], "big")
        if len(data) != 4 + count * POINT_BYTES:
            raise ValueError(
                f"commitment of {count} points needs "
                f"{4 + count * POINT_BYTES} bytes, got {len(data)}"
            )
        return cls(points=tuple(
            Point.from_bytes(data[4 + k * POINT_BYTES: 4 + (k + 1) * POINT_BYTES])
            for k in range(count)
        ))


class CommitmentTable:
    """
    Commitments of dealers 1..``dealers``, one write-once slot each.

    Slot 0 is unused so that ``table[i]`` is dealer *i*.  Unset slots
    hold ``None``.
    """

    def __init__(self, dealers: int, threshold: int) -> None:
        if dealers < 1:
            raise ConfigurationError("need at least one dealer")
        self.dealers = dealers
        self.threshold = threshold
        self._slots: List[Optional[PolynomialCommitment]] = [None] * (dealers + 1)

    def register(
        self,
        sender: int,
        commitment: Sequence[Point],
    ) -> bool:
        """
        Store *sender*'s commitment.

        Returns True when the slot was newly filled, False for a repeated
        identical delivery.  Raises ``CommitmentConflictError`` when the
        sender already registered a different vector.
        """
        if not 1 <= sender <= self.dealers:
            raise ConfigurationError(
                f"sender {sender} outside 1..{self.dealers}"
            )
        if not isinstance(commitment, PolynomialCommitment):
            commitment = PolynomialCommitment.from_points(commitment)
        if len(commitment) != self.threshold:
            raise ConfigurationError(
                f"sender {sender} committed to {len(commitment)} "
                f"coefficients, expected {self.threshold}"
            )

        current = self._slots[sender]
        if current is not None:
            if current == commitment:
                return False
            logger.warning(f"Conflicting commitment registration from {sender}")
            raise CommitmentConflictError(
                f"sender {sender} already registered a different commitment",
                offenders=[sender],
            )
        self._slots[sender] = commitment
        return True

    def get(self, sender: int) -> Optional[PolynomialCommitment]:
        if not 1 <= sender <= self.dealers:
            raise ConfigurationError(
                f"sender {sender} outside 1..{self.dealers}"
            )
        return self._slots[sender]

    def __getitem__(self, sender: int) -> PolynomialCommitment:
        commitment = self.get(sender)
        if commitment is None:
            raise KeyError(sender)
        return commitment

    def __contains__(self, sender: object) -> bool:
        return (
            isinstance(sender, int)
            and 1 <= sender <= self.dealers
            and self._slots[sender] is not None
        )

    def __len__(self) -> int:
        return sum(1 for c in self._slots if c is not None)

    def senders(self) -> List[int]:
        return [i for i in range(1, self.dealers + 1) if self._slots[i] is not None]

    def missing(self) -> List[int]:
        return [i for i in range(1, self.dealers + 1) if self._slots[i] is None]

    def is_complete(self) -> bool:
        return not self.missing()

    def items(self) -> Iterator[Tuple[int, PolynomialCommitment]]:
        for i in range(1, self.dealers + 1):
            c = self._slots[i]
            if c is not None:
                yield i, c
