"""
One participant of the dealerless key generation (FROST KeyGen with
Feldman VSS).

Every participant is also a dealer: it samples a private polynomial of
degree t-1, publishes its Feldman commitment with a proof of knowledge of
the constant term, and hands each share index  x  the value  f_i(x).
The recipient of index  x  ends up with

    s_x = Σ_i f_i(x)          (signing share, never leaves its owner)
    Y_x = s_x · G             (public signing share)
    Y   = Σ_i C_{i,0}         (group public key)

A participant is sized by two numbers: ``n`` share indices and
``dealers`` commitment publishers.  Plain FROST has ``dealers == n``;
under WSTS a party deals once but owns several of the ``n`` key slots.

Per-index and per-dealer state lives in fixed arrays indexed 1..n
(slot 0 unused, ``None`` while unset).  A participant only mutates its
own fields; delivering commitments, shares and map snapshots is the
orchestrator's job (see :pymod:`protocol`).

References
----------
- Komlo, Goldberg (2020). "FROST: Flexible Round-Optimized Schnorr
  Threshold Signatures."  SAC 2020, Figure 1.
- Gennaro, Jarecki, Krawczyk, Rabin (2007). "Secure Distributed Key
  Generation for Discrete-Log Based Cryptosystems."  J. Cryptology.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .curve import Scalar, Point, G
from .batch import PowerMap, find_invalid_shares, verify_batch
from .commitment import CommitmentTable, PolynomialCommitment
from .errors import (
    ConfigurationError,
    DKGError,
    MapFormatError,
    MapMismatchError,
    ProtocolStateError,
    PublicShareMismatchError,
    ShareVerificationError,
)
from .hash import hash_dkg_context
from .maps import QMap, WMap
from .polynomial import evaluate, sample_polynomial
from .proofs import SecretProof

logger = logging.getLogger(__name__)


class Stage(IntEnum):
    """Protocol progress of a participant.  Only ever moves forward."""

    CREATED = 0
    COMMITMENTS_EXCHANGED = 1
    SHARES_DISTRIBUTED = 2
    SHARES_VERIFIED = 3
    SIGNING_SHARE_COMPUTED = 4
    PUBLIC_SHARES_COMPUTED = 5
    GROUP_KEY_DERIVED = 6


class Participant:
    """
    Protocol state for a single participant.

    Parameters
    ----------
    n : int
        Number of share indices (key slots under WSTS).
    threshold : int
        t, shares needed to reconstruct; polynomials have t coefficients.
    position : int
        This participant's dealer position, 1..dealers.
    dealers : int or None
        Number of commitment publishers; defaults to *n*.
    context : bytes
        Run tag bound into every proof of knowledge.
    """

    def __init__(
        self,
        n: int,
        threshold: int,
        position: int,
        dealers: Optional[int] = None,
        context: bytes = b"",
    ) -> None:
        dealers = n if dealers is None else dealers
        if n < 1:
            raise ConfigurationError("need at least one share index")
        if not 1 <= threshold <= n:
            raise ConfigurationError(f"threshold {threshold} outside 1..{n}")
        if not 1 <= dealers <= n:
            raise ConfigurationError(f"dealers {dealers} outside 1..{n}")
        if not 1 <= position <= dealers:
            raise ConfigurationError(f"position {position} outside 1..{dealers}")

        self.n = n
        self.threshold = threshold
        self.position = position
        self.dealers = dealers
        self.context = context

        self._polynomial = sample_polynomial(threshold - 1)
        self.commitments = CommitmentTable(dealers, threshold)
        self.commitments.register(
            position, PolynomialCommitment.from_coefficients(self._polynomial),
        )

        self._secret_shares_out: List[Optional[Scalar]] = [None] * (n + 1)
        self._secret_shares_in: List[Optional[Scalar]] = [None] * (dealers + 1)
        self._signing_share: Optional[Scalar] = None
        self._public_signing_shares: List[Optional[Point]] = [None] * (n + 1)

        self.power_map: Optional[PowerMap] = None
        self.q_map: Optional[QMap] = None
        self.w_map: Optional[WMap] = None
        self.group_public_key: Optional[Point] = None
        self.stage = Stage.CREATED
        self.failure: Optional[DKGError] = None

        if self.commitments.is_complete():
            self.advance(Stage.COMMITMENTS_EXCHANGED)

    def __repr__(self) -> str:
        return (
            f"Participant(position={self.position}, n={self.n}, "
            f"t={self.threshold}, dealers={self.dealers}, stage={self.stage.name})"
        )

    # ── helpers ───────────────────────────────────────────────────────

    def advance(self, stage: Stage) -> None:
        """Move forward to *stage*; never backwards."""
        if stage > self.stage:
            logger.debug(f"Participant {self.position}: {self.stage.name} -> {stage.name}")
            self.stage = stage

    @property
    def aborted(self) -> bool:
        return self.failure is not None

    def abort(self, failure: DKGError) -> None:
        """Record a failed verification; every later operation refuses to run."""
        if self.failure is None:
            logger.warning(f"Participant {self.position}: run aborted: {failure}")
            self.failure = failure

    def require_stage(self, stage: Stage) -> None:
        if self.failure is not None:
            raise ProtocolStateError(
                f"participant {self.position} aborted after a failed "
                f"verification: {self.failure}"
            )
        if self.stage < stage:
            raise ProtocolStateError(
                f"participant {self.position} is at {self.stage.name}, "
                f"operation needs {stage.name}"
            )

    def _check_index(self, index: int) -> None:
        if not 1 <= index <= self.n:
            raise ConfigurationError(f"share index {index} outside 1..{self.n}")

    def _require_power_map(self) -> PowerMap:
        if self.power_map is None:
            raise ProtocolStateError("power map not derived; call derive_power_map()")
        return self.power_map

    def _require_complete_commitments(self) -> None:
        missing = self.commitments.missing()
        if missing:
            raise ProtocolStateError(f"commitments missing from dealers {missing}")

    def _run_context(self, context: Optional[bytes]) -> bytes:
        tag = self.context if context is None else context
        return hash_dkg_context(tag, self.n, self.dealers, self.threshold)

    def _commit_public_shares(self, points: Mapping[int, Point]) -> None:
        """Store every point, or none of them if any disagrees with a stored one."""
        conflicts = [
            x for x, point in points.items()
            if self._public_signing_shares[x] is not None
            and self._public_signing_shares[x] != point
        ]
        if conflicts:
            err = PublicShareMismatchError(
                f"participant {self.position}: public signing shares disagree "
                "with stored values",
                offenders=conflicts,
            )
            self.abort(err)
            raise err
        for x, point in points.items():
            self._public_signing_shares[x] = point

    # ── commitment exchange ───────────────────────────────────────────

    @property
    def polynomial_commitment(self) -> PolynomialCommitment:
        """This participant's own published commitment."""
        return self.commitments[self.position]

    def update_polynomial_commitments(
        self,
        sender: int,
        commitment: Sequence[Point],
    ) -> None:
        """Register *sender*'s commitment (idempotent, write-once)."""
        if self.commitments.register(sender, commitment):
            logger.debug(f"Participant {self.position}: commitment from {sender}")
        if self.commitments.is_complete():
            self.advance(Stage.COMMITMENTS_EXCHANGED)

    # ── proof of knowledge ────────────────────────────────────────────

    def calculate_secret_proofs(self, context: Optional[bytes] = None) -> SecretProof:
        """Prove knowledge of  a_0  for  C_0 = a_0 · G  under *context*."""
        return SecretProof.prove(
            self._polynomial[0],
            self.polynomial_commitment.constant,
            self.position,
            self._run_context(context),
        )

    def verify_secret_proofs(
        self,
        context: Optional[bytes],
        proof: SecretProof,
        peer_position: int,
        peer_constant_commitment: Point,
    ) -> bool:
        """
        Check *peer_position*'s proof against its constant commitment.

        Also fails when the constant passed in differs from the one the
        peer registered here.
        """
        registered = self.commitments.get(peer_position)
        if registered is not None and registered.constant != peer_constant_commitment:
            logger.warning(
                f"Participant {self.position}: constant commitment of "
                f"{peer_position} does not match its registration"
            )
            return False
        ok = proof.verify(
            peer_constant_commitment, peer_position, self._run_context(context),
        )
        if not ok:
            logger.warning(
                f"Participant {self.position}: proof from {peer_position} rejected"
            )
        return ok

    # ── share distribution ────────────────────────────────────────────

    def calculate_secret_shares(self) -> None:
        """Evaluate the private polynomial at every share index 1..n."""
        self.require_stage(Stage.COMMITMENTS_EXCHANGED)
        for x in range(1, self.n + 1):
            self._secret_shares_out[x] = evaluate(self._polynomial, Scalar(x))
        self.advance(Stage.SHARES_DISTRIBUTED)

    def get_secret_shares(self, index: int) -> Scalar:
        """The share  f_i(index)  destined for the owner of *index*."""
        self._check_index(index)
        share = self._secret_shares_out[index]
        if share is None:
            raise ProtocolStateError("secret shares not calculated yet")
        return share

    def receive_secret_shares(self, inbox: Mapping[int, Scalar]) -> None:
        """Store the shares dealt to this participant's own position."""
        if self.stage >= Stage.SHARES_VERIFIED:
            raise ProtocolStateError("shares already verified; inbox is closed")
        for sender, share in inbox.items():
            if not 1 <= sender <= self.dealers:
                raise ConfigurationError(f"sender {sender} outside 1..{self.dealers}")
            self._secret_shares_in[sender] = share

    @property
    def secret_shares_in(self) -> Dict[int, Scalar]:
        return {
            i: s for i, s in enumerate(self._secret_shares_in) if s is not None
        }

    # ── verification ──────────────────────────────────────────────────

    def derive_power_map(self) -> PowerMap:
        if self.power_map is None:
            self.power_map = PowerMap.derive(self.n, self.threshold)
        return self.power_map

    def check_secret_shares(self, inbox: Mapping[int, Scalar], index: int) -> None:
        """
        Batch-check *inbox* as the shares dealt to *index*.

        Stateless: raises ``ShareVerificationError`` naming each sender
        whose share is missing or inconsistent with its commitment.
        """
        self._check_index(index)
        power_map = self._require_power_map()
        self._require_complete_commitments()

        expected = set(range(1, self.dealers + 1))
        received = set(inbox)
        if received != expected:
            raise ShareVerificationError(
                f"index {index}: share set does not match the dealer set",
                offenders=expected ^ received,
            )

        row = power_map[index]
        if verify_batch(inbox, self.commitments, row):
            logger.debug(f"Participant {self.position}: shares for index {index} verified")
            return

        offenders = find_invalid_shares(inbox, self.commitments, row)
        if not offenders:
            offenders = [
                i for i in sorted(inbox)
                if not self.commitments[i].verify_share(inbox[i], index)
            ]
        raise ShareVerificationError(
            f"index {index}: batch share verification failed",
            offenders=offenders,
        )

    def verify_batch_public_secret_shares(
        self,
        inbox: Optional[Mapping[int, Scalar]] = None,
        index: Optional[int] = None,
    ) -> None:
        """
        Verify every share dealt to *index* in one batched check.

        Defaults to this participant's own inbox and position.  A failure
        aborts the participant before ``ShareVerificationError`` is raised.
        """
        index = self.position if index is None else index
        inbox = self.secret_shares_in if inbox is None else inbox
        self._require_power_map()
        self._require_complete_commitments()
        self.require_stage(Stage.SHARES_DISTRIBUTED)
        try:
            self.check_secret_shares(inbox, index)
        except ShareVerificationError as exc:
            self.abort(exc)
            raise
        self.advance(Stage.SHARES_VERIFIED)

    # ── signing shares ────────────────────────────────────────────────

    def calculate_signing_share(self) -> Scalar:
        """s = Σ_i f_i(position)  over the verified inbox."""
        self.require_stage(Stage.SHARES_VERIFIED)
        missing = [
            i for i in range(1, self.dealers + 1) if self._secret_shares_in[i] is None
        ]
        if missing:
            raise ProtocolStateError(f"no secret share received from {missing}")
        self._signing_share = sum(self.secret_shares_in.values(), Scalar.zero())
        self.advance(Stage.SIGNING_SHARE_COMPUTED)
        return self._signing_share

    @property
    def signing_share(self) -> Optional[Scalar]:
        return self._signing_share

    def calculate_internal_public_signing_shares(
        self,
        signing_share: Optional[Scalar] = None,
        index: Optional[int] = None,
    ) -> Point:
        """Public signing share of an index whose signing share is known here."""
        self.require_stage(Stage.SIGNING_SHARE_COMPUTED)
        index = self.position if index is None else index
        self._check_index(index)
        if signing_share is None:
            signing_share = self._signing_share
        if signing_share is None:
            raise ProtocolStateError("signing share not calculated yet")
        point = signing_share * G
        self._commit_public_shares({index: point})
        return point

    # ── Q / W maps ────────────────────────────────────────────────────

    def derive_external_q_map(self) -> QMap:
        self.require_stage(Stage.COMMITMENTS_EXCHANGED)
        self.q_map = QMap.derive(self.commitments)
        logger.info(
            f"Participant {self.position}: derived Q map {self.q_map.fingerprint()}"
        )
        return self.q_map

    def derive_external_w_map(self) -> WMap:
        self.require_stage(Stage.COMMITMENTS_EXCHANGED)
        if self.q_map is None:
            raise ProtocolStateError("Q map not derived; call derive_external_q_map()")
        self.w_map = WMap.derive(self.q_map, self._require_power_map())
        logger.info(
            f"Participant {self.position}: derived W map {self.w_map.fingerprint()}"
        )
        return self.w_map

    def copy_q_map(self) -> bytes:
        """Immutable snapshot of the Q map for other participants."""
        if self.q_map is None:
            raise ProtocolStateError("no Q map to copy")
        return self.q_map.to_bytes()

    def copy_w_map(self) -> bytes:
        if self.w_map is None:
            raise ProtocolStateError("no W map to copy")
        return self.w_map.to_bytes()

    def parse_q_map(self, snapshot: bytes, verify: bool = False) -> QMap:
        """Import a Q map snapshot; with *verify*, recompute and compare first."""
        self.require_stage(Stage.COMMITMENTS_EXCHANGED)
        qmap = QMap.from_bytes(snapshot)
        if qmap.threshold != self.threshold:
            raise MapFormatError(
                f"Q map has {qmap.threshold} points, threshold is {self.threshold}"
            )
        if verify and QMap.derive(self.commitments) != qmap:
            err = MapMismatchError(
                f"participant {self.position}: imported Q map differs "
                "from the local derivation"
            )
            self.abort(err)
            raise err
        self.q_map = qmap
        return qmap

    def parse_w_map(self, snapshot: bytes, verify: bool = False) -> WMap:
        """Import a W map snapshot; with *verify*, recompute and compare first."""
        self.require_stage(Stage.COMMITMENTS_EXCHANGED)
        wmap = WMap.from_bytes(snapshot)
        if wmap.size != self.n:
            raise MapFormatError(f"W map covers {wmap.size} indices, expected {self.n}")
        if verify:
            qmap = self.q_map if self.q_map is not None else QMap.derive(self.commitments)
            local = WMap.derive(qmap, self._require_power_map())
            if local != wmap:
                err = MapMismatchError(
                    f"participant {self.position}: imported W map differs "
                    "from the local derivation",
                    offenders=[x for x in range(1, self.n + 1) if local[x] != wmap[x]],
                )
                self.abort(err)
                raise err
        self.w_map = wmap
        return wmap

    # ── public signing shares ─────────────────────────────────────────

    def calculate_batch_public_signing_shares(
        self,
        exclude: Iterable[int] = (),
    ) -> Dict[int, Point]:
        """
        Public signing share of every index not in *exclude*.

        Read from the W map when one is present, otherwise evaluated from
        the Q map.  Every value is computed before any is stored; if one
        disagrees with a stored value (e.g. from the internal path) none
        is stored and ``PublicShareMismatchError`` names the indices.
        """
        self.require_stage(Stage.SIGNING_SHARE_COMPUTED)
        skip = set(exclude)
        if self.w_map is None and self.q_map is None:
            raise ProtocolStateError("neither a W map nor a Q map is available")

        computed: Dict[int, Point] = {}
        for x in range(1, self.n + 1):
            if x in skip:
                continue
            if self.w_map is not None:
                computed[x] = self.w_map[x]
            else:
                computed[x] = self.q_map.evaluate(self._require_power_map()[x])  # type: ignore[union-attr]

        self._commit_public_shares(computed)
        self.advance(Stage.PUBLIC_SHARES_COMPUTED)
        logger.debug(
            f"Participant {self.position}: {len(computed)} external public shares"
        )
        return computed

    def get_public_signing_shares(self, index: int) -> Optional[Point]:
        self._check_index(index)
        return self._public_signing_shares[index]

    @property
    def public_signing_shares(self) -> Dict[int, Point]:
        return {
            i: p for i, p in enumerate(self._public_signing_shares) if p is not None
        }

    # ── group key ─────────────────────────────────────────────────────

    def calculate_group_public_key(self) -> Point:
        """Y = Σ_i C_{i,0}  over every dealer."""
        self.require_stage(Stage.PUBLIC_SHARES_COMPUTED)
        self._require_complete_commitments()
        if self.group_public_key is None:
            self.group_public_key = Point.sum_points(
                c.constant for _, c in self.commitments.items()
            )
        self.advance(Stage.GROUP_KEY_DERIVED)
        return self.group_public_key
