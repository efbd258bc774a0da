"""
Q map and W map: public aggregates of the complete commitment set.

The joint polynomial  F(x) = Σ_i f_i(x)  is never materialised, but its
Feldman commitment is the coefficient-wise sum of every dealer's:

    Q_k = Σ_i C_{i,k}                     (Q map, t points)

Evaluating it in the exponent gives the public signing share of any
share index  x  without touching a secret:

    W[x] = Σ_k x^k · Q_k = F(x) · G       (W map, n points)

Both are pure functions of public data, so every honest participant
obtains the same bytes.  One node derives them and the others import a
snapshot; ``verify=True`` on import recomputes locally and compares.

Snapshot layout (big-endian)::

    count:u32 ‖ point_1 ‖ … ‖ point_count ‖ digest:32

where ``digest`` is a tagged hash over the kind and the body.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import List, Tuple

from .curve import Point, POINT_BYTES
from .batch import PowerMap
from .commitment import CommitmentTable
from .errors import MapFormatError, ProtocolStateError
from .hash import hash_map_snapshot

_KIND_Q = b"Q"
_KIND_W = b"W"
_DIGEST_BYTES = 32


def _pack(kind: bytes, points: Tuple[Point, ...]) -> bytes:
    body = len(points).to_bytes(4, "big") + b"".join(p.to_bytes() for p in points)
    return body + hash_map_snapshot(kind, body)


def _unpack(kind: bytes, data: bytes) -> Tuple[Point, ...]:
    if len(data) < 4 + _DIGEST_BYTES:
        raise MapFormatError(f"{kind.decode()} map snapshot truncated")
    body, digest = data[:-_DIGEST_BYTES], data[-_DIGEST_BYTES:]
    if not hmac.compare_digest(digest, hash_map_snapshot(kind, body)):
        raise MapFormatError(f"{kind.decode()} map snapshot digest mismatch")
    count = int.from_bytes(body[:4], "big")
    if len(body) != 4 + count * POINT_BYTES:
        raise MapFormatError(
            f"{kind.decode()} map declares {count} points, "
            f"body holds {len(body) - 4} bytes"
        )
    try:
        return tuple(
            Point.from_bytes(body[4 + i * POINT_BYTES: 4 + (i + 1) * POINT_BYTES])
            for i in range(count)
        )
    except ValueError as exc:
        raise MapFormatError(f"bad point in {kind.decode()} map: {exc}") from exc


@dataclass(frozen=True)
class QMap:
    """Commitment to the joint polynomial,  ``points[k] = Q_k``."""

    points: Tuple[Point, ...]

    @classmethod
    def derive(cls, commitments: CommitmentTable) -> QMap:
        missing = commitments.missing()
        if missing:
            raise ProtocolStateError(
                f"Q map needs every dealer's commitment, missing {missing}"
            )
        columns: List[List[Point]] = [[] for _ in range(commitments.threshold)]
        for _, commitment in commitments.items():
            for k, point in enumerate(commitment.points):
                columns[k].append(point)
        return cls(points=tuple(Point.sum_points(col) for col in columns))

    @property
    def threshold(self) -> int:
        return len(self.points)

    @property
    def group_public_key(self) -> Point:
        return self.points[0]

    def evaluate(self, row) -> Point:
        """Σ_k row[k] · Q_k  for a power-map row  ``[1, x, …]``."""
        if len(row) != len(self.points):
            raise ValueError(
                f"power row has {len(row)} entries, Q map {len(self.points)}"
            )
        return Point.lincomb(row, self.points)

    def to_bytes(self) -> bytes:
        return _pack(_KIND_Q, self.points)

    @classmethod
    def from_bytes(cls, data: bytes) -> QMap:
        points = _unpack(_KIND_Q, data)
        if not points:
            raise MapFormatError("Q map is empty")
        return cls(points=points)

    def fingerprint(self) -> str:
        return self.to_bytes()[-_DIGEST_BYTES:].hex()[:16]


@dataclass(frozen=True)
class WMap:
    """Public signing share of every share index,  ``shares[x - 1] = F(x)·G``."""

    shares: Tuple[Point, ...]

    @classmethod
    def derive(cls, qmap: QMap, power_map: PowerMap) -> WMap:
        if power_map.threshold != qmap.threshold:
            raise ValueError("power map and Q map disagree on the threshold")
        return cls(shares=tuple(
            qmap.evaluate(power_map[x]) for x in range(1, power_map.size + 1)
        ))

    @property
    def size(self) -> int:
        return len(self.shares)

    def __getitem__(self, index: int) -> Point:
        if not 1 <= index <= len(self.shares):
            raise KeyError(index)
        return self.shares[index - 1]

    def to_bytes(self) -> bytes:
        return _pack(_KIND_W, self.shares)

    @classmethod
    def from_bytes(cls, data: bytes) -> WMap:
        return cls(shares=_unpack(_KIND_W, data))

    def fingerprint(self) -> str:
        return self.to_bytes()[-_DIGEST_BYTES:].hex()[:16]
