"""
Domain-separated hash functions.

Every hash call carries its own tag so that outputs for different
protocol roles are independent even when fed identical data.

Convention follows BIP-340 tagged hashes:

    H_tag(x) = SHA-256( SHA-256(tag) ‖ SHA-256(tag) ‖ x )
"""

from __future__ import annotations

import hashlib
from typing import Any

from .curve import Scalar, Point, SCALAR_BYTES


# ── domain tags ─────────────────────────────────────────────────────────
_TAG_PROOF    = b"FROSTDKG/v1/secret_proof"
_TAG_CONTEXT  = b"FROSTDKG/v1/context"
_TAG_SNAPSHOT = b"FROSTDKG/v1/map_snapshot"


def _tagged_hasher(tag: bytes) -> "hashlib._Hash":
    tag_hash = hashlib.sha256(tag).digest()
    h = hashlib.sha256()
    h.update(tag_hash)
    h.update(tag_hash)
    return h


def _encode_item(item: Any) -> bytes:
    """
    Canonical encoding of a protocol element.

    Variable-length items (bytes, lists) are length-prefixed so that the
    concatenation parses unambiguously.
    """
    if isinstance(item, bytes):
        return len(item).to_bytes(4, "big") + item
    if isinstance(item, int):
        return item.to_bytes(SCALAR_BYTES, "big")
    if isinstance(item, Scalar):
        return item.to_bytes()
    if isinstance(item, Point):
        return item.to_bytes()
    if isinstance(item, (list, tuple)):
        parts = b"".join(_encode_item(x) for x in item)
        return len(item).to_bytes(4, "big") + parts
    raise TypeError(f"cannot hash {type(item).__name__}")


def _tagged_hash(tag: bytes, *args: Any) -> bytes:
    h = _tagged_hasher(tag)
    for a in args:
        h.update(_encode_item(a))
    return h.digest()


def _tagged_scalar(tag: bytes, *args: Any) -> Scalar:
    return Scalar.from_bytes_reduce(_tagged_hash(tag, *args))


# ── public hash functions ───────────────────────────────────────────────

def hash_secret_proof(
    context: bytes,
    position: int,
    R: Point,
    constant_commitment: Point,
) -> Scalar:
    """Proof-of-knowledge challenge  c = H(ctx, i, R, C_{i,0})."""
    return _tagged_scalar(_TAG_PROOF, context, position, R, constant_commitment)


def hash_dkg_context(
    context: bytes,
    num_indices: int,
    num_dealers: int,
    threshold: int,
) -> bytes:
    """Bind a caller-supplied run tag to the run's parameters."""
    return _tagged_hash(_TAG_CONTEXT, context, num_indices, num_dealers, threshold)


def hash_map_snapshot(kind: bytes, body: bytes) -> bytes:
    """Digest appended to a Q/W map snapshot."""
    return _tagged_hash(_TAG_SNAPSHOT, kind, body)
