"""
Weighted threshold key generation (WSTS).

A smaller set of physical parties controls the key slots of an ordinary
FROST instance with ``n_keys`` indices: each party deals once (its
position is 1..n_parties) and owns a disjoint set of slots whose union
is 1..n_keys.  The wrapper fans every per-index operation out over the
owned slots and collects the results; all arithmetic is the wrapped
:class:`~frostdkg.participant.Participant`'s.

Example
-------
::

    shares = derive_shares_of_keys(n_parties=3, n_keys=10)   # {1: 4, 2: 3, 3: 3}
    ranges = derive_range_of_keys(shares)                     # {1: (1, 5), …}
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .curve import Scalar, Point
from .errors import ConfigurationError, ProtocolStateError, ShareVerificationError
from .participant import Participant, Stage

logger = logging.getLogger(__name__)


# ── key partition ───────────────────────────────────────────────────────

def derive_shares_of_keys(n_parties: int, n_keys: int) -> Dict[int, int]:
    """Slot count per party: an even split, remainder to the lowest positions."""
    if n_parties < 1:
        raise ConfigurationError("need at least one party")
    if n_keys < n_parties:
        raise ConfigurationError(
            f"{n_keys} key slots cannot cover {n_parties} parties"
        )
    base, extra = divmod(n_keys, n_parties)
    return {p: base + (1 if p <= extra else 0) for p in range(1, n_parties + 1)}


def derive_range_of_keys(shares: Mapping[int, int]) -> Dict[int, Tuple[int, int]]:
    """Consecutive half-open slot ranges ``[start, end)`` starting at slot 1."""
    ranges: Dict[int, Tuple[int, int]] = {}
    start = 1
    for position in sorted(shares):
        end = start + shares[position]
        ranges[position] = (start, end)
        start = end
    return ranges


def validate_key_partition(
    parties: Sequence["WstsParticipant"],
    n_keys: int,
) -> None:
    """Owned slot sets must be disjoint and together cover 1..n_keys."""
    owner: Dict[int, int] = {}
    for party in parties:
        for key in party.keys:
            if key in owner:
                raise ConfigurationError(
                    f"key {key} owned by both {owner[key]} and {party.position}"
                )
            owner[key] = party.position
    uncovered = sorted(set(range(1, n_keys + 1)) - set(owner))
    if uncovered:
        raise ConfigurationError(f"keys without an owner: {uncovered}")


# ── weighted participant ────────────────────────────────────────────────

class WstsParticipant:
    """
    A party owning several key slots of a FROST instance.

    The wrapped participant must be sized for the slots
    (``frost.n == n_keys``) and the parties (``frost.dealers == n_parties``).
    Every owned slot has its own :class:`Stage`; the wrapped participant
    only advances once every owned slot has.
    """

    def __init__(self, n_parties: int, frost: Participant) -> None:
        if frost.dealers != n_parties:
            raise ConfigurationError(
                f"participant deals among {frost.dealers} parties, "
                f"expected {n_parties}"
            )
        self.n_parties = n_parties
        self.frost = frost
        self.keys: Set[int] = set()

        n_keys = frost.n
        self._secret_shares: List[Optional[Dict[int, Scalar]]] = [None] * (n_keys + 1)
        self._signing_shares: List[Optional[Scalar]] = [None] * (n_keys + 1)
        self._slot_stages: List[Optional[Stage]] = [None] * (n_keys + 1)

    def __repr__(self) -> str:
        return f"WstsParticipant(position={self.position}, keys={len(self.keys)})"

    @property
    def position(self) -> int:
        return self.frost.position

    @property
    def n_keys(self) -> int:
        return self.frost.n

    def assign_keys(self, keys: Iterable[int]) -> None:
        for key in keys:
            if not 1 <= key <= self.n_keys:
                raise ConfigurationError(f"key {key} outside 1..{self.n_keys}")
            self.keys.add(key)
            if self._slot_stages[key] is None:
                self._slot_stages[key] = Stage.CREATED
        logger.debug(f"Party {self.position} owns {len(self.keys)} key slot(s)")

    def _require_owned(self, key: int) -> None:
        if key not in self.keys:
            raise ConfigurationError(f"party {self.position} does not own key {key}")

    def slot_stage(self, key: int) -> Stage:
        self._require_owned(key)
        return self._slot_stages[key] or Stage.CREATED

    def _advance_slots(self, stage: Stage, keys: Iterable[int]) -> None:
        for key in keys:
            if stage > self.slot_stage(key):
                self._slot_stages[key] = stage

    # ── shares ────────────────────────────────────────────────────────

    def store_secret_shares(self, key: int, per_sender: Mapping[int, Scalar]) -> None:
        """Record the shares every party dealt to owned slot *key*."""
        self._require_owned(key)
        self.frost.require_stage(Stage.CREATED)
        if self.slot_stage(key) >= Stage.SHARES_VERIFIED:
            raise ProtocolStateError(f"key {key}: shares already verified")
        for sender in per_sender:
            if not 1 <= sender <= self.n_parties:
                raise ConfigurationError(
                    f"sender {sender} outside 1..{self.n_parties}"
                )
        self._secret_shares[key] = dict(per_sender)
        self._advance_slots(Stage.SHARES_DISTRIBUTED, [key])

    def get_secret_shares_map(self, key: int) -> Dict[int, Scalar]:
        self._require_owned(key)
        stored = self._secret_shares[key]
        if stored is None:
            raise ProtocolStateError(f"no shares stored for key {key}")
        return dict(stored)

    def verify_secret_shares(self) -> None:
        """
        Batch-verify the inbox of every owned slot.

        Every slot is checked so that all offenders are named; the party
        reaches ``SHARES_VERIFIED`` only if every slot passed, and any
        failure aborts it.
        """
        self.frost.require_stage(Stage.SHARES_DISTRIBUTED)
        offenders: Set[int] = set()
        failed: List[int] = []
        for key in sorted(self.keys):
            try:
                self.frost.check_secret_shares(self.get_secret_shares_map(key), key)
            except ShareVerificationError as exc:
                offenders.update(exc.offenders)
                failed.append(key)
            else:
                self._advance_slots(Stage.SHARES_VERIFIED, [key])
        if failed:
            err = ShareVerificationError(
                f"party {self.position}: share verification failed for keys {failed}",
                offenders=offenders,
            )
            self.frost.abort(err)
            raise err
        self.frost.advance(Stage.SHARES_VERIFIED)

    def calculate_signing_shares(self) -> Dict[int, Scalar]:
        """Per-slot signing share  s_k = Σ_m f_m(k)."""
        self.frost.require_stage(Stage.SHARES_VERIFIED)
        out: Dict[int, Scalar] = {}
        for key in sorted(self.keys):
            shares = self.get_secret_shares_map(key)
            out[key] = sum(shares.values(), Scalar.zero())
        for key, share in out.items():
            self._signing_shares[key] = share
        self._advance_slots(Stage.SIGNING_SHARE_COMPUTED, out)
        self.frost.advance(Stage.SIGNING_SHARE_COMPUTED)
        return out

    def get_signing_share(self, key: int) -> Optional[Scalar]:
        self._require_owned(key)
        return self._signing_shares[key]

    # ── public signing shares ─────────────────────────────────────────

    def calculate_internal_public_signing_shares(self) -> Dict[int, Point]:
        self.frost.require_stage(Stage.SIGNING_SHARE_COMPUTED)
        out: Dict[int, Point] = {}
        for key in sorted(self.keys):
            share = self._signing_shares[key]
            if share is None:
                raise ProtocolStateError(f"signing share of key {key} not calculated")
            out[key] = self.frost.calculate_internal_public_signing_shares(share, key)
        self._advance_slots(Stage.PUBLIC_SHARES_COMPUTED, out)
        return out

    def calculate_batch_public_signing_shares(self) -> Dict[int, Point]:
        """Public signing shares of every slot this party does not own."""
        return self.frost.calculate_batch_public_signing_shares(exclude=self.keys)

    def get_public_signing_shares(self, key: int) -> Optional[Point]:
        return self.frost.get_public_signing_shares(key)

    def calculate_group_public_key(self) -> Point:
        key = self.frost.calculate_group_public_key()
        self._advance_slots(Stage.GROUP_KEY_DERIVED, self.keys)
        return key
