"""
frostdkg: dealerless threshold key generation for FROST and WSTS.

Simulates the FROST key-generation protocol over secp256k1:

- **Feldman VSS** commitments with a Schnorr proof of knowledge of each
  dealer's secret [Feldman, FOCS 1987; Komlo & Goldberg, SAC 2020]
- **Batched share verification** with small random exponents
  [Bellare, Garay & Rabin, EUROCRYPT 1998]
- **Q/W maps** so that one node derives every public signing share and
  the others import the result
- **Weighted participants** (WSTS): parties owning several key slots

The signing phase that consumes the derived shares is out of scope.

Quick start
-----------
::

    from frostdkg import DKGConfig, run_frost_dkg

    result = run_frost_dkg(DKGConfig(participants=4, threshold=3))
    print(result.group_public_key)
    print(result.public_signing_shares[1])
"""

__version__ = "0.1.0"

# ── core types ──────────────────────────────────────────────────────────
from .curve import Scalar, Point, G, ORDER

# ── configuration & errors ──────────────────────────────────────────────
from .config import DKGConfig, MapMode
from .errors import (
    DKGError,
    ConfigurationError,
    ProtocolStateError,
    MapFormatError,
    VerificationError,
    ProofVerificationError,
    ShareVerificationError,
    CommitmentConflictError,
    MapMismatchError,
    PublicShareMismatchError,
    RoundAbortedError,
)

# ── participants ────────────────────────────────────────────────────────
from .participant import Participant, Stage
from .wsts import (
    WstsParticipant,
    derive_shares_of_keys,
    derive_range_of_keys,
    validate_key_partition,
)

# ── orchestration ───────────────────────────────────────────────────────
from .protocol import DKGResult, FrostDKG, WstsDKG, run_frost_dkg, run_wsts_dkg

# ── cryptographic building blocks ───────────────────────────────────────
from .field import powers, lagrange_coefficient, lagrange_coefficients, interpolate
from .polynomial import (
    sample_polynomial,
    evaluate,
    commit_polynomial,
    evaluate_commitment,
    verify_share_feldman,
)
from .commitment import PolynomialCommitment, CommitmentTable
from .proofs import SecretProof
from .batch import PowerMap, verify_batch, find_invalid_shares
from .maps import QMap, WMap

__all__ = [
    "__version__",
    # core
    "Scalar", "Point", "G", "ORDER",
    # config & errors
    "DKGConfig", "MapMode",
    "DKGError", "ConfigurationError", "ProtocolStateError", "MapFormatError",
    "VerificationError", "ProofVerificationError", "ShareVerificationError",
    "CommitmentConflictError", "MapMismatchError", "PublicShareMismatchError",
    "RoundAbortedError",
    # participants
    "Participant", "Stage", "WstsParticipant",
    "derive_shares_of_keys", "derive_range_of_keys", "validate_key_partition",
    # orchestration
    "DKGResult", "FrostDKG", "WstsDKG", "run_frost_dkg", "run_wsts_dkg",
    # building blocks
    "powers", "lagrange_coefficient", "lagrange_coefficients", "interpolate",
    "sample_polynomial", "evaluate", "commit_polynomial",
    "evaluate_commitment", "verify_share_feldman",
    "PolynomialCommitment", "CommitmentTable", "SecretProof",
    "PowerMap", "verify_batch", "find_invalid_shares",
    "QMap", "WMap",
]
