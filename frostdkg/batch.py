"""
Batched verification of a participant's inbox of secret shares.

Checking each of the n received shares on its own costs one base-point
multiplication plus t commitment multiplications and one comparison
per sender.  The small-exponent batch test folds all n Feldman equations
into one, using independent random 128-bit weights  r_i:

    (Σ_i r_i s_i) · G   ==   Σ_k x^k · ( Σ_i r_i C_{i,k} )

The left side is a single base-point multiplication.  On the right the
per-sender multiplications use half-length scalars and are grouped by
degree, so the powers  x^k  come straight from the power map and only
t full multiplications remain.

A wrong share passes only if it satisfies the weighted equation for the
weights drawn afterwards, which happens with probability ≤ 2^-128.
Weights are fresh for every call, so a rejected batch can be bisected
with the same equation until every inconsistent sender is isolated;
the batch is never accepted by dropping the bad contributors.

References
----------
- Bellare, Garay, Rabin (1998). "Fast Batch Verification for Modular
  Exponentiation and Digital Signatures."  EUROCRYPT 1998.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence, Tuple

from .curve import Scalar, Point, G
from .commitment import CommitmentTable
from .errors import ConfigurationError
from .field import powers

logger = logging.getLogger(__name__)

WEIGHT_BITS = 128


class PowerMap:
    """
    Rows  ``[x^0, x^1, …, x^(t-1)]``  for every share index x in 1..n.

    Depends only on (n, t); computed once and shared read-only by every
    verification and public-share evaluation afterwards.
    """

    def __init__(self, rows: Sequence[Optional[Tuple[Scalar, ...]]], threshold: int):
        self._rows = list(rows)
        self.threshold = threshold

    @classmethod
    def derive(cls, n: int, threshold: int) -> PowerMap:
        rows: List[Optional[Tuple[Scalar, ...]]] = [None]
        for x in range(1, n + 1):
            rows.append(tuple(powers(Scalar(x), threshold)))
        return cls(rows, threshold)

    @property
    def size(self) -> int:
        return len(self._rows) - 1

    def __getitem__(self, x: int) -> Tuple[Scalar, ...]:
        if not 1 <= x < len(self._rows):
            raise ConfigurationError(f"index {x} outside 1..{self.size}")
        return self._rows[x]  # type: ignore[return-value]


def _batch_holds(
    senders: Sequence[int],
    inbox: Mapping[int, Scalar],
    commitments: CommitmentTable,
    row: Sequence[Scalar],
) -> bool:
    if not senders:
        return True
    if len(senders) == 1:
        weights = {senders[0]: Scalar.one()}
    else:
        weights = {i: Scalar.random_bits(WEIGHT_BITS) for i in senders}

    lhs_scalar = Scalar.zero()
    for i in senders:
        lhs_scalar = lhs_scalar + weights[i] * inbox[i]
    lhs = lhs_scalar * G

    terms: List[Point] = []
    for k, x_pow in enumerate(row):
        column = Point.lincomb(
            [weights[i] for i in senders], [commitments[i][k] for i in senders],
        )
        terms.append(column if k == 0 else x_pow * column)
    return lhs == Point.sum_points(terms)


def verify_batch(
    inbox: Mapping[int, Scalar],
    commitments: CommitmentTable,
    row: Sequence[Scalar],
) -> bool:
    """True iff every share in *inbox* matches its sender's commitment."""
    return _batch_holds(sorted(inbox), inbox, commitments, row)


def find_invalid_shares(
    inbox: Mapping[int, Scalar],
    commitments: CommitmentTable,
    row: Sequence[Scalar],
) -> List[int]:
    """
    Senders whose share fails its Feldman check.

    Bisects the sender set with the batch equation, so k bad shares cost
    O(k log n) batch checks rather than n single ones.
    """
    def bisect(senders: List[int]) -> List[int]:
        if _batch_holds(senders, inbox, commitments, row):
            return []
        if len(senders) == 1:
            return senders
        mid = len(senders) // 2
        return bisect(senders[:mid]) + bisect(senders[mid:])

    offenders = bisect(sorted(inbox))
    logger.debug(f"Bisection isolated {len(offenders)} invalid share(s)")
    return offenders
