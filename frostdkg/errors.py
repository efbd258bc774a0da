"""Error types for frostdkg."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional


class DKGError(Exception):
    """Base exception for all key-generation errors."""
    pass


class ConfigurationError(DKGError, ValueError):
    """Invalid parameters: threshold, positions, key indices, config files."""
    pass


class ProtocolStateError(DKGError, RuntimeError):
    """An operation was called before the data it consumes exists."""
    pass


class MapFormatError(DKGError, ValueError):
    """A Q/W map snapshot could not be parsed."""
    pass


class VerificationError(DKGError):
    """A check against published data failed.

    ``offenders`` lists the positions (or share indices) that the failing
    check can attribute the failure to.
    """

    def __init__(self, message: str, offenders: Optional[Iterable[int]] = None):
        self.offenders: List[int] = sorted(set(offenders or ()))
        if self.offenders:
            message = f"{message} (offenders: {self.offenders})"
        super().__init__(message)


class ProofVerificationError(VerificationError):
    """A Schnorr proof of knowledge did not verify."""
    pass


class ShareVerificationError(VerificationError):
    """A secret share is inconsistent with its sender's commitment."""
    pass


class CommitmentConflictError(VerificationError):
    """A sender registered two different commitment vectors."""
    pass


class MapMismatchError(VerificationError):
    """An imported Q/W map differs from the locally recomputed one."""
    pass


class PublicShareMismatchError(VerificationError):
    """External and internal public signing shares disagree."""
    pass


class RoundAbortedError(DKGError):
    """One protocol round failed; the run has to restart from scratch."""

    def __init__(self, round_name: str, failures: Dict[int, DKGError]):
        self.round_name = round_name
        self.failures = dict(failures)
        detail = ", ".join(
            f"{pos}: {err}" for pos, err in sorted(self.failures.items())
        )
        super().__init__(f"round '{round_name}' aborted: {detail}")

    @property
    def offenders(self) -> List[int]:
        found = set()
        for err in self.failures.values():
            found.update(getattr(err, "offenders", ()))
        return sorted(found)
