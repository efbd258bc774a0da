"""
Scalar-field utilities for Z_q  (q = secp256k1 curve order).

Batch helpers used by share verification and by Lagrange reconstruction
of the joint polynomial.  Single-element arithmetic lives in
:pymod:`curve`.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .curve import Scalar


def powers(x: Scalar, count: int) -> List[Scalar]:
    """``[1, x, x^2, …, x^(count-1)]``."""
    if count < 0:
        raise ValueError("count must be ≥ 0")
    out: List[Scalar] = []
    acc = Scalar.one()
    for _ in range(count):
        out.append(acc)
        acc = acc * x
    return out


# ── batch inverse (Montgomery's trick) ──────────────────────────────────
def batch_inverse(scalars: Sequence[Scalar]) -> List[Scalar]:
    """
    Invert a list of non-zero scalars with a single modular
    exponentiation.

    Cost: 3(n-1) multiplications + 1 inversion  vs  n inversions naïvely.
    Raises ``ZeroDivisionError`` if any element is zero.
    """
    n = len(scalars)
    if n == 0:
        return []
    if n == 1:
        return [scalars[0].inv()]

    prefix = [Scalar.zero()] * n
    prefix[0] = scalars[0]
    for i in range(1, n):
        prefix[i] = prefix[i - 1] * scalars[i]

    inv_all = prefix[-1].inv()

    result = [Scalar.zero()] * n
    for i in range(n - 1, 0, -1):
        result[i] = prefix[i - 1] * inv_all
        inv_all = inv_all * scalars[i]
    result[0] = inv_all
    return result


# ── Lagrange interpolation ──────────────────────────────────────────────
def lagrange_coefficient(
    target: int,
    indices: Sequence[int],
    at: int = 0,
) -> Scalar:
    r"""
    Lagrange basis polynomial of *target* over *indices*, evaluated at *at*:

    .. math::
        \lambda_i(a) = \prod_{j \ne i} \frac{a - j}{i - j}
    """
    if target not in indices:
        raise ValueError(f"target {target} not in indices")
    if len(set(indices)) != len(indices):
        raise ValueError("indices must be distinct")
    xi = Scalar(target)
    xa = Scalar(at)
    num = Scalar.one()
    den = Scalar.one()
    for j in indices:
        if j == target:
            continue
        xj = Scalar(j)
        num = num * (xa - xj)
        den = den * (xi - xj)
    return num / den


def lagrange_coefficients(
    indices: Sequence[int],
    at: int = 0,
) -> Dict[int, Scalar]:
    """All coefficients for *indices* with one shared inversion."""
    if len(set(indices)) != len(indices):
        raise ValueError("indices must be distinct")
    xa = Scalar(at)
    nums: List[Scalar] = []
    dens: List[Scalar] = []
    for i in indices:
        xi = Scalar(i)
        num = Scalar.one()
        den = Scalar.one()
        for j in indices:
            if j == i:
                continue
            xj = Scalar(j)
            num = num * (xa - xj)
            den = den * (xi - xj)
        nums.append(num)
        dens.append(den)
    return {
        i: num * inv
        for i, num, inv in zip(indices, nums, batch_inverse(dens))
    }


def interpolate(points: Sequence[Tuple[int, Scalar]], at: int = 0) -> Scalar:
    """Evaluate at *at* the unique polynomial through ``(index, value)`` pairs."""
    if not points:
        raise ValueError("need at least one point")
    coeffs = lagrange_coefficients([i for i, _ in points], at)
    return sum((coeffs[i] * v for i, v in points), Scalar.zero())
