"""
secp256k1 scalars and points for the key-generation protocol.

Group operations go through ``coincurve`` (Bitcoin Core's libsecp256k1);
only reductions modulo the group order are done in Python.  Every
participant in a simulated run performs O(n·t) point operations, so the
C backend is what keeps a few hundred simulated participants tractable.

Install
-------
    pip install coincurve>=18.0.0

References
----------
- SEC 2 v2 §2.4.1  secp256k1 domain parameters
- SEC 1 v2 §2.3.3  point compression
"""

from __future__ import annotations

import secrets
from typing import Iterable, List, Optional, Sequence, Union

from coincurve import PrivateKey as _SK, PublicKey as _PK

# ── secp256k1 constants ─────────────────────────────────────────────────
ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SCALAR_BYTES = 32
POINT_BYTES = 33
_IDENTITY_BYTES = b"\x00" * POINT_BYTES


def _as_int(o: object) -> Optional[int]:
    """Residue of a Scalar or plain int operand, None for anything else."""
    if isinstance(o, Scalar):
        return o._v
    if isinstance(o, int) and not isinstance(o, bool):
        return o % ORDER
    return None


# ── Scalar  (Z_q) ───────────────────────────────────────────────────────
class Scalar:
    """Element of  Z_q,  q = ``ORDER``.  Arithmetic wraps, never overflows.

    Plain ints are accepted on either side of ``+ - *`` so that share
    indices can be mixed in directly (``x * coeff + 1``).
    """

    __slots__ = ("_v",)

    def __init__(self, value: int) -> None:
        self._v = value % ORDER

    @classmethod
    def zero(cls) -> Scalar:
        return cls(0)

    @classmethod
    def one(cls) -> Scalar:
        return cls(1)

    @classmethod
    def random(cls) -> Scalar:
        """Uniform in [1, q-1]."""
        c = 0
        while not 0 < c < ORDER:
            c = int.from_bytes(secrets.token_bytes(SCALAR_BYTES), "big")
        return cls(c)

    @classmethod
    def random_bits(cls, bits: int) -> Scalar:
        """Non-zero scalar below 2^bits, for small-exponent batch tests."""
        c = 0
        while c == 0:
            c = secrets.randbits(bits)
        return cls(c)

    @classmethod
    def from_bytes(cls, data: bytes) -> Scalar:
        """Strict 32-byte decoding; values ≥ q are rejected, not reduced."""
        if len(data) != SCALAR_BYTES:
            raise ValueError(f"scalar encoding is {len(data)} bytes, want {SCALAR_BYTES}")
        v = int.from_bytes(data, "big")
        if v >= ORDER:
            raise ValueError("scalar encoding not below the group order")
        return cls(v)

    @classmethod
    def from_bytes_reduce(cls, data: bytes) -> Scalar:
        """Any big-endian byte string, reduced modulo q (hash outputs)."""
        return cls(int.from_bytes(data, "big"))

    def to_bytes(self) -> bytes:
        return self._v.to_bytes(SCALAR_BYTES, "big")

    @property
    def value(self) -> int:
        return self._v

    def __int__(self) -> int:
        return self._v

    def is_zero(self) -> bool:
        return self._v == 0

    # ring operations --------------------------------------------------------
    def __add__(self, o):
        v = _as_int(o)
        return NotImplemented if v is None else Scalar(self._v + v)

    __radd__ = __add__

    def __sub__(self, o):
        v = _as_int(o)
        return NotImplemented if v is None else Scalar(self._v - v)

    def __rsub__(self, o):
        v = _as_int(o)
        return NotImplemented if v is None else Scalar(v - self._v)

    def __mul__(self, o):
        if isinstance(o, Point):
            return o._smul(self)
        v = _as_int(o)
        return NotImplemented if v is None else Scalar(self._v * v)

    def __rmul__(self, o):
        v = _as_int(o)
        return NotImplemented if v is None else Scalar(v * self._v)

    def __neg__(self) -> Scalar:
        return Scalar(-self._v)

    def __truediv__(self, o):
        v = _as_int(o)
        return NotImplemented if v is None else self * Scalar(v).inv()

    def __pow__(self, e: int) -> Scalar:
        if e < 0:
            return self.inv() ** (-e)
        return Scalar(pow(self._v, e, ORDER))

    def inv(self) -> Scalar:
        if self._v == 0:
            raise ZeroDivisionError("zero has no inverse modulo the group order")
        return Scalar(pow(self._v, -1, ORDER))

    def __eq__(self, o: object) -> bool:
        v = _as_int(o)
        return v is not None and self._v == v

    def __hash__(self) -> int:
        return hash(self._v)

    def __bool__(self) -> bool:
        return self._v != 0

    def __repr__(self) -> str:
        digits = f"{self._v:x}"
        if len(digits) > 12:
            digits = digits[:8] + "…"
        return f"Scalar(0x{digits})"


# ── Point  (secp256k1 group element) ────────────────────────────────────
class Point:
    """
    Point on secp256k1.

    The identity is a flag, never a ``coincurve.PublicKey``; libsecp256k1
    has no encoding for it.  On the wire it is 33 zero bytes.
    """

    __slots__ = ("_pk", "_inf")

    def __init__(self, *, pk: Optional[_PK] = None, infinity: bool = False):
        self._pk: Optional[_PK] = pk
        self._inf: bool = infinity or pk is None

    @classmethod
    def generator(cls) -> Point:
        return cls.from_scalar(Scalar.one())

    @classmethod
    def identity(cls) -> Point:
        return cls(infinity=True)

    @classmethod
    def from_scalar(cls, s: Scalar) -> Point:
        """Base-point multiplication  s · G."""
        if s.is_zero():
            return cls.identity()
        return cls(pk=_SK(s.to_bytes()).public_key)

    @classmethod
    def from_bytes(cls, data: bytes) -> Point:
        """Parse a 33-byte SEC 1 compressed encoding (zeros = identity)."""
        if len(data) != POINT_BYTES:
            raise ValueError(f"point encoding is {len(data)} bytes, want {POINT_BYTES}")
        if data == _IDENTITY_BYTES:
            return cls.identity()
        return cls(pk=_PK(data))

    def to_bytes(self) -> bytes:
        if self._inf:
            return _IDENTITY_BYTES
        return self._pk.format(compressed=True)  # type: ignore[union-attr]

    def is_inf(self) -> bool:
        return self._inf

    # group operations -------------------------------------------------------
    def _smul(self, s: Scalar) -> Point:
        if self._inf or s.is_zero():
            return Point.identity()
        return Point(pk=self._pk.multiply(s.to_bytes()))  # type: ignore[union-attr]

    def __neg__(self) -> Point:
        if self._inf:
            return self
        enc = bytearray(self.to_bytes())
        enc[0] ^= 0x01            # 0x02 <-> 0x03
        return Point(pk=_PK(bytes(enc)))

    def __add__(self, o: Point) -> Point:
        if not isinstance(o, Point):
            return NotImplemented
        return Point.sum_points((self, o))

    def __sub__(self, o: Point) -> Point:
        if not isinstance(o, Point):
            return NotImplemented
        return Point.sum_points((self, -o))

    def __mul__(self, s: Union[Scalar, int]) -> Point:
        if isinstance(s, Scalar):
            return self._smul(s)
        if isinstance(s, int) and not isinstance(s, bool):
            return self._smul(Scalar(s))
        return NotImplemented

    __rmul__ = __mul__

    def __eq__(self, o: object) -> bool:
        if not isinstance(o, Point):
            return False
        return self.to_bytes() == o.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self) -> str:
        if self._inf:
            return "Point(∞)"
        return f"Point({self.to_bytes()[:8].hex()}…)"

    # aggregates -------------------------------------------------------------
    @staticmethod
    def sum_points(points: Iterable[Point]) -> Point:
        """Multi-point addition in a single libsecp256k1 call."""
        real: List[Point] = [p for p in points if not p._inf]
        if not real:
            return Point.identity()
        if len(real) == 1:
            return real[0]
        try:
            return Point(pk=_PK.combine_keys([p._pk for p in real]))  # type: ignore
        except ValueError:
            pass
        # the sum, or a partial sum libsecp256k1 hit, is the identity
        acc = real[0]
        for p in real[1:]:
            if acc._inf:
                acc = p
            elif acc.to_bytes() == (-p).to_bytes():
                acc = Point.identity()
            else:
                acc = Point(pk=_PK.combine_keys([acc._pk, p._pk]))  # type: ignore
        return acc

    @staticmethod
    def lincomb(scalars: Sequence[Scalar], points: Sequence[Point]) -> Point:
        """Σ_i scalars[i] · points[i]."""
        if len(scalars) != len(points):
            raise ValueError(f"{len(scalars)} scalars for {len(points)} points")
        return Point.sum_points(p._smul(s) for s, p in zip(scalars, points))


G = Point.generator()
