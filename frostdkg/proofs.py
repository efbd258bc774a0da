"""
Schnorr proof of knowledge of a dealer's constant term.

Each dealer proves it knows  a_{i,0}  with  C_{i,0} = a_{i,0} · G.  The
challenge binds the dealer's position and a run context, so a proof
cannot be replayed by another position or in another run (rogue-key
defence from FROST §5.1).

Made non-interactive via Fiat-Shamir in the Random Oracle Model.

References
----------
- Schnorr (1989). "Efficient Identification and Signatures for Smart
  Cards."  CRYPTO 1989.
- Komlo, Goldberg (2020). "FROST: Flexible Round-Optimized Schnorr
  Threshold Signatures."  SAC 2020.
"""

from __future__ import annotations

from dataclasses import dataclass

from .curve import Scalar, Point, G, POINT_BYTES, SCALAR_BYTES
from .hash import hash_secret_proof


@dataclass(frozen=True)
class SecretProof:
    """
    Transcript  (R, z)  with  R = k·G,  c = H(ctx, i, R, C_0),  z = k + c·a_0.

    Verification:  z·G  ==  R + c·C_0.
    """

    R: Point
    z: Scalar

    @staticmethod
    def prove(
        secret: Scalar,
        public: Point,
        position: int,
        context: bytes = b"",
    ) -> SecretProof:
        k = Scalar.random()
        R = k * G
        c = hash_secret_proof(context, position, R, public)
        return SecretProof(R=R, z=k + c * secret)

    def challenge(self, public: Point, position: int, context: bytes = b"") -> Scalar:
        return hash_secret_proof(context, position, self.R, public)

    def verify(self, public: Point, position: int, context: bytes = b"") -> bool:
        if public.is_inf() or self.R.is_inf():
            return False
        c = self.challenge(public, position, context)
        return self.z * G == self.R + (c * public)

    def to_bytes(self) -> bytes:
        return self.R.to_bytes() + self.z.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> SecretProof:
        if len(data) != POINT_BYTES + SCALAR_BYTES:
            raise ValueError(
                f"expected {POINT_BYTES + SCALAR_BYTES} bytes, got {len(data)}"
            )
        return cls(
            R=Point.from_bytes(data[:POINT_BYTES]),
            z=Scalar.from_bytes(data[POINT_BYTES:]),
        )
