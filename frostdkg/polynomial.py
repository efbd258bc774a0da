"""
Shamir polynomials and Feldman commitments over Z_q.

A dealer's polynomial is stored as its coefficient list,
``coeffs[k] = a_k`` so that  f(x) = a_0 + a_1 x + … + a_{t-1} x^{t-1},
and its Feldman commitment is  C_k = a_k · G.

References
----------
- Shamir (1979). "How to Share a Secret."  CACM 22(11).
- Feldman (1987). "A Practical Scheme for Non-Interactive Verifiable
  Secret Sharing."  FOCS 1987.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .curve import Scalar, Point, G


def sample_polynomial(
    degree: int,
    constant: Optional[Scalar] = None,
) -> List[Scalar]:
    """
    Sample a uniformly random polynomial of the given degree.

    Parameters
    ----------
    degree : int  (≥ 0)
        Polynomial degree  d;  result has  d+1  coefficients.
    constant : Scalar or None
        If given, force a_0 = constant.
    """
    if degree < 0:
        raise ValueError("degree must be ≥ 0")
    a0 = constant if constant is not None else Scalar.random()
    return [a0] + [Scalar.random() for _ in range(degree)]


def evaluate(coeffs: Sequence[Scalar], x: Scalar) -> Scalar:
    """Evaluate f(x) via Horner's method."""
    if not coeffs:
        return Scalar.zero()
    result = coeffs[-1]
    for c in reversed(coeffs[:-1]):
        result = result * x + c
    return result


def commit_polynomial(coeffs: Sequence[Scalar]) -> List[Point]:
    """Feldman commitment  C_k = a_k · G  for each coefficient."""
    return [c * G for c in coeffs]


def evaluate_commitment(commitments: Sequence[Point], x: Scalar) -> Point:
    """
    f(x) · G  computed from the commitments alone (Horner in the exponent):

        Σ_k  x^k · C_k  =  C_0 + x·(C_1 + x·(C_2 + …))
    """
    if not commitments:
        return Point.identity()
    acc = commitments[-1]
    for c in reversed(commitments[:-1]):
        acc = (x * acc) + c
    return acc


def verify_share_feldman(
    share: Scalar,
    eval_point: int,
    commitments: Sequence[Point],
) -> bool:
    """Single-sender check:  share · G  ==  Σ_k C_k · eval_point^k."""
    return share * G == evaluate_commitment(commitments, Scalar(eval_point))
