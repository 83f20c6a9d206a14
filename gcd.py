"""
Greatest common divisor primitives.

Three interchangeable algorithms that agree on every non-negative input:
1. Euclidean: repeated (a, b) -> (b, a mod b)
2. Extended Euclidean: gcd together with Bezout coefficients x, y (a*x + b*y = gcd)
3. Binary (Stein): shifts and subtraction only, no division on the hot path
   - Used by the cycle-finding factorization methods once per step

All of them satisfy gcd(a, 0) = a, gcd(0, 0) = 0 and gcd(a, b) = gcd(b, a).
Negative operands are rejected with ValueError.
"""
from typing import Callable, NamedTuple


class Bezout(NamedTuple):
    """Result of the extended Euclidean algorithm: a*x + b*y == gcd."""
    gcd: int
    x: int
    y: int


def _check_operands(a: int, b: int) -> None:
    if a < 0 or b < 0:
        raise ValueError(f"gcd operands must be non-negative, got ({a}, {b})")


def euclidean(a: int, b: int) -> int:
    _check_operands(a, b)
    while b:
        a, b = b, a % b
    return a


def _extended(a: int, b: int) -> Bezout:
    if a == 0:
        return Bezout(b, 0, 1)
    g, x1, y1 = _extended(b % a, a)
    # back-substitute: b = (b // a) * a + b % a
    return Bezout(g, y1 - (b // a) * x1, x1)


def extended_euclidean(a: int, b: int) -> Bezout:
    """
    Extended Euclidean algorithm.

    Recursion depth is logarithmic in min(a, b), so plain recursion is fine
    for any integer that fits in memory.

    Args:
        a, b: Non-negative integers

    Returns:
        Bezout(gcd, x, y) with a*x + b*y == gcd
    """
    _check_operands(a, b)
    return _extended(a, b)


def binary(a: int, b: int) -> int:
    """
    Stein's binary GCD.

    Removes the common power of two first, then alternates stripping factors
    of two and subtracting the smaller operand from the larger one.

    Args:
        a, b: Non-negative integers

    Returns:
        gcd(a, b)
    """
    _check_operands(a, b)
    if a == 0:
        return b
    if b == 0:
        return a

    # common factors of two
    shift: int = 0
    while ((a | b) & 1) == 0:
        a >>= 1
        b >>= 1
        shift += 1

    while (a & 1) == 0:
        a >>= 1

    while b != 0:
        while (b & 1) == 0:
            b >>= 1
        if a > b:
            a, b = b, a
        b -= a

    return a << shift


GCD_METHODS: dict[str, Callable[[int, int], int]] = {
    "euclidean": euclidean,
    "extended": lambda a, b: extended_euclidean(a, b).gcd,
    "binary": binary,
}


def gcd(a: int, b: int, method: str = "binary") -> int:
    """Compute gcd(a, b) with one of the GCD_METHODS."""
    try:
        func = GCD_METHODS[method]
    except KeyError:
        raise ValueError(f"unknown gcd method {method!r}, expected one of {sorted(GCD_METHODS)}") from None
    return func(a, b)
