"""
Round-by-round orchestration of a simulated key generation.

All participants live in one process.  Work inside a round runs in
parallel, one task per participant, and the round is joined before the
next one starts, because every round reads what the previous round
produced for *all* participants.  Anything that crosses participants
(commitment registration, share delivery, map propagation) is done here,
between rounds, by a single writer.

Usage
-----
::

    from frostdkg import DKGConfig, run_frost_dkg, run_wsts_dkg

    result = run_frost_dkg(DKGConfig(participants=4, threshold=3))
    result.group_public_key

    weighted = run_wsts_dkg(DKGConfig(participants=3, threshold=5, keys=8))

A round in which any participant reports a verification failure raises
:class:`~frostdkg.errors.RoundAbortedError`; the run is not resumable.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, TypeVar, Union

from .curve import Scalar, Point
from .config import DKGConfig, MapMode
from .errors import (
    ConfigurationError,
    DKGError,
    ProofVerificationError,
    PublicShareMismatchError,
    RoundAbortedError,
)
from .participant import Participant
from .proofs import SecretProof
from .wsts import (
    WstsParticipant,
    derive_range_of_keys,
    derive_shares_of_keys,
    validate_key_partition,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_WORKERS = 32


@dataclass
class DKGResult:
    """Output of a successful run."""

    group_public_key: Point
    public_signing_shares: Dict[int, Point]     # share index → Y_x
    participants: List[Union[Participant, WstsParticipant]]
    timings: Dict[str, float] = field(default_factory=dict)   # round → ms


class _RoundRunner:
    """Shared round machinery: parallel fan-out, join, failure collection."""

    def __init__(self, config: DKGConfig) -> None:
        self.config = config
        self.timings: Dict[str, float] = {}

    def _parallel(
        self,
        name: str,
        fn: Callable[[T], None],
        members: Sequence[T],
    ) -> None:
        """
        Run *fn* for every member and join.

        Protocol failures (``DKGError``) are collected per position and
        re-raised as one ``RoundAbortedError``; anything else propagates.
        """
        def task(member: T) -> Optional[DKGError]:
            try:
                fn(member)
            except DKGError as exc:
                return exc
            return None

        workers = min(len(members), self.config.max_workers or _DEFAULT_WORKERS)
        start = time.perf_counter()
        with ThreadPoolExecutor(max_workers=max(workers, 1)) as executor:
            outcomes = list(executor.map(task, members))
        self._record(name, start)

        failures = {
            member.position: exc                     # type: ignore[attr-defined]
            for member, exc in zip(members, outcomes)
            if exc is not None
        }
        if failures:
            logger.error(f"Round '{name}' failed for positions {sorted(failures)}")
            raise RoundAbortedError(name, failures)

    def _record(self, name: str, start: float) -> None:
        elapsed = (time.perf_counter() - start) * 1000.0
        self.timings[name] = self.timings.get(name, 0.0) + elapsed
        logger.info(f"Round '{name}' finished in {elapsed:.1f} ms")

    def _verify_proofs(self, frosts: Sequence[Participant], members: Sequence) -> None:
        context = self.config.context
        proofs: Dict[int, SecretProof] = {}
        for p in frosts:
            proofs[p.position] = p.calculate_secret_proofs(context)

        def check(member) -> None:
            me = member.frost if isinstance(member, WstsParticipant) else member
            bad = [
                peer.position
                for peer in frosts
                if not me.verify_secret_proofs(
                    context,
                    proofs[peer.position],
                    peer.position,
                    me.commitments[peer.position].constant,
                )
            ]
            if bad:
                raise ProofVerificationError(
                    f"participant {me.position} rejected proofs", offenders=bad,
                )

        self._parallel("verify-secret-proofs", check, members)

    @staticmethod
    def _exchange_commitments(frosts: Sequence[Participant]) -> None:
        for sender in frosts:
            for receiver in frosts:
                if receiver is sender:
                    continue
                receiver.update_polynomial_commitments(
                    sender.position, sender.polynomial_commitment,
                )

    def _propagate_maps(self, frosts: Sequence[Participant]) -> None:
        """Designated node derives Q/W once; everyone else imports a copy."""
        start = time.perf_counter()
        designated = frosts[0]
        designated.derive_external_q_map()
        designated.derive_external_w_map()
        q_snapshot = designated.copy_q_map()
        w_snapshot = designated.copy_w_map()
        self._record("derive-external-q-w-map", start)

        verify = self.config.map_mode is MapMode.RECOMPUTE

        def load(p: Participant) -> None:
            p.parse_q_map(q_snapshot, verify=verify)
            p.parse_w_map(w_snapshot, verify=verify)

        self._parallel("parse-q-w-map", load, list(frosts[1:]))


# ── plain FROST ─────────────────────────────────────────────────────────

class FrostDKG(_RoundRunner):
    """
    n participants, one share index each.

    The round methods can be called one at a time (tests use this to
    interfere between rounds); :meth:`run` calls them in order.
    """

    def __init__(self, config: DKGConfig) -> None:
        if config.weighted:
            raise ConfigurationError("weighted configuration; use WstsDKG")
        super().__init__(config)
        n, t = config.participants, config.threshold
        self.participants: List[Participant] = [
            Participant(n, t, i, context=config.context) for i in range(1, n + 1)
        ]
        self.inboxes: Dict[int, Dict[int, Scalar]] = {i: {} for i in range(1, n + 1)}

    def exchange_commitments(self) -> None:
        self._exchange_commitments(self.participants)

    def verify_proofs(self) -> None:
        self._verify_proofs(self.participants, self.participants)

    def distribute_shares(self) -> None:
        self._parallel(
            "calculate-secret-shares",
            lambda p: p.calculate_secret_shares(),
            self.participants,
        )
        for sender in self.participants:
            for receiver in self.participants:
                self.inboxes[receiver.position][sender.position] = (
                    sender.get_secret_shares(receiver.position)
                )
        for receiver in self.participants:
            receiver.receive_secret_shares(self.inboxes[receiver.position])

    def verify_shares(self) -> None:
        self._parallel("derive-power-map", lambda p: p.derive_power_map(), self.participants)
        self._parallel(
            "verify-batch-public-secret-shares",
            lambda p: p.verify_batch_public_secret_shares(),
            self.participants,
        )

    def derive_public_shares(self) -> None:
        def internal(p: Participant) -> None:
            p.calculate_signing_share()
            p.calculate_internal_public_signing_shares()

        self._parallel("calculate-internal-public-signing-shares", internal, self.participants)
        self._propagate_maps(self.participants)
        self._parallel(
            "calculate-batch-public-signing-shares",
            lambda p: p.calculate_batch_public_signing_shares(exclude=[p.position]),
            self.participants,
        )

    def derive_group_key(self) -> DKGResult:
        self._parallel(
            "calculate-group-public-key",
            lambda p: p.calculate_group_public_key(),
            self.participants,
        )
        reference = self.participants[0]

        def cross_check(p: Participant) -> None:
            if p.group_public_key != reference.group_public_key:
                raise PublicShareMismatchError(
                    f"participant {p.position} derived a different group key",
                    offenders=[p.position],
                )
            mine = p.get_public_signing_shares(p.position)
            for other in self.participants:
                if other.get_public_signing_shares(p.position) != mine:
                    raise PublicShareMismatchError(
                        f"public signing share of {p.position} differs at "
                        f"participant {other.position}",
                        offenders=[p.position],
                    )

        self._parallel("cross-check", cross_check, self.participants)
        return DKGResult(
            group_public_key=reference.group_public_key,  # type: ignore[arg-type]
            public_signing_shares=reference.public_signing_shares,
            participants=list(self.participants),
            timings=dict(self.timings),
        )

    def run(self) -> DKGResult:
        logger.info(
            f"Starting FROST key generation: n={self.config.participants}, "
            f"t={self.config.threshold}"
        )
        self.exchange_commitments()
        self.verify_proofs()
        self.distribute_shares()
        self.verify_shares()
        self.derive_public_shares()
        return self.derive_group_key()


# ── weighted (WSTS) ─────────────────────────────────────────────────────

class WstsDKG(_RoundRunner):
    """``participants`` parties sharing ``keys`` key slots."""

    def __init__(self, config: DKGConfig) -> None:
        if not config.weighted:
            raise ConfigurationError("configuration has no key slots; use FrostDKG")
        super().__init__(config)
        n_p, n_keys, t = config.participants, config.share_indices, config.threshold
        self.parties: List[WstsParticipant] = [
            WstsParticipant(
                n_p, Participant(n_keys, t, i, dealers=n_p, context=config.context),
            )
            for i in range(1, n_p + 1)
        ]
        ranges = derive_range_of_keys(derive_shares_of_keys(n_p, n_keys))
        for party in self.parties:
            start, end = ranges[party.position]
            party.assign_keys(range(start, end))
        validate_key_partition(self.parties, n_keys)

    @property
    def frosts(self) -> List[Participant]:
        return [p.frost for p in self.parties]

    def owner_of(self, key: int) -> WstsParticipant:
        for party in self.parties:
            if key in party.keys:
                return party
        raise KeyError(key)

    def exchange_commitments(self) -> None:
        self._exchange_commitments(self.frosts)

    def verify_proofs(self) -> None:
        self._verify_proofs(self.frosts, self.parties)

    def distribute_shares(self) -> None:
        self._parallel(
            "calculate-secret-shares",
            lambda party: party.frost.calculate_secret_shares(),
            self.parties,
        )
        for party in self.parties:
            for key in sorted(party.keys):
                party.store_secret_shares(key, {
                    dealer.position: dealer.frost.get_secret_shares(key)
                    for dealer in self.parties
                })

    def verify_shares(self) -> None:
        self._parallel(
            "derive-power-map",
            lambda party: party.frost.derive_power_map(),
            self.parties,
        )
        self._parallel(
            "verify-batch-public-secret-shares",
            lambda party: party.verify_secret_shares(),
            self.parties,
        )

    def derive_public_shares(self) -> None:
        def internal(party: WstsParticipant) -> None:
            party.calculate_signing_shares()
            party.calculate_internal_public_signing_shares()

        self._parallel("calculate-internal-public-signing-shares", internal, self.parties)
        self._propagate_maps(self.frosts)
        self._parallel(
            "calculate-batch-public-signing-shares",
            lambda party: party.calculate_batch_public_signing_shares(),
            self.parties,
        )

    def derive_group_key(self) -> DKGResult:
        self._parallel(
            "calculate-group-public-key",
            lambda party: party.calculate_group_public_key(),
            self.parties,
        )
        reference = self.parties[0].frost

        def cross_check(party: WstsParticipant) -> None:
            if party.frost.group_public_key != reference.group_public_key:
                raise PublicShareMismatchError(
                    f"party {party.position} derived a different group key",
                    offenders=[party.position],
                )
            for key in party.keys:
                mine = party.get_public_signing_shares(key)
                for other in self.parties:
                    if other.get_public_signing_shares(key) != mine:
                        raise PublicShareMismatchError(
                            f"public signing share of key {key} differs at "
                            f"party {other.position}",
                            offenders=[key],
                        )

        self._parallel("cross-check", cross_check, self.parties)
        return DKGResult(
            group_public_key=reference.group_public_key,  # type: ignore[arg-type]
            public_signing_shares=reference.public_signing_shares,
            participants=list(self.parties),
            timings=dict(self.timings),
        )

    def run(self) -> DKGResult:
        logger.info(
            f"Starting WSTS key generation: parties={self.config.participants}, "
            f"keys={self.config.keys}, t={self.config.threshold}"
        )
        self.exchange_commitments()
        self.verify_proofs()
        self.distribute_shares()
        self.verify_shares()
        self.derive_public_shares()
        return self.derive_group_key()


def run_frost_dkg(config: DKGConfig) -> DKGResult:
    """Run every round of a plain FROST key generation."""
    return FrostDKG(config).run()


def run_wsts_dkg(config: DKGConfig) -> DKGResult:
    """Run every round of a weighted key generation."""
    return WstsDKG(config).run()
