"""
Prime generation with five interchangeable sieves.

SIEVES:
1. Simple (Eratosthenes): baseline and reference oracle for the others
2. Odd-only Eratosthenes: half the memory, even numbers never stored
3. Segmented: base primes up to sqrt(n), then segments of width ~sqrt(n)
   - Peak working memory O(sqrt(n)) with segmented_primes()
   - Segments are independent and can be spread over a process pool
4. Sundaram: i + j + 2ij elimination, odd primes 2i + 1, 2 prepended
5. Atkin: quadratic-form toggles by residue mod 60, then square-multiple pass

Every sieve returns a PrimalityTable of length `bound` and all five agree on
membership for every index. Tables are read-only once built and owned by the
caller; nothing is cached at module level.
"""
import logging
import operator
from math import isqrt
from multiprocessing import Pool
from typing import Callable, Iterator, Optional

import numpy as np

from simd_operations import INT64_MAX, _mark_segment_simd, _sundaram_simd

logger = logging.getLogger(__name__)

# Residue classes mod 60 handled by each Atkin quadratic form
_ATKIN_4X2_PLUS_Y2 = np.array([1, 13, 17, 29, 37, 41, 49, 53])
_ATKIN_3X2_PLUS_Y2 = np.array([7, 19, 31, 43])
_ATKIN_3X2_MINUS_Y2 = np.array([11, 23, 47, 59])


class PrimalityTable:
    """
    Read-only "is prime" flags for the integers 0 .. bound - 1.

    Indexing gives the flag of a single index, `p in table` tests prime
    membership (False outside the table) and iteration yields the primes in
    ascending order. is_prime() extends the lookup up to bound**2 by checking
    divisibility against the table's own primes.
    """

    __slots__ = ("_flags", "_primes")

    def __init__(self, flags: np.ndarray):
        flags = np.array(flags, dtype=bool)
        if flags.ndim != 1:
            raise ValueError(f"primality flags must be one-dimensional, got shape {flags.shape}")
        flags[:2] = False
        flags.setflags(write=False)
        self._flags = flags
        self._primes: Optional[np.ndarray] = None

    @property
    def bound(self) -> int:
        return len(self._flags)

    @property
    def flags(self) -> np.ndarray:
        return self._flags

    def __len__(self) -> int:
        return len(self._flags)

    def __getitem__(self, index: int) -> bool:
        index = operator.index(index)
        if not 0 <= index < len(self._flags):
            raise IndexError(f"index {index} outside table of bound {self.bound}")
        return bool(self._flags[index])

    def __contains__(self, value: int) -> bool:
        return 0 <= value < len(self._flags) and bool(self._flags[value])

    def __iter__(self) -> Iterator[int]:
        return (int(p) for p in self.primes())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrimalityTable):
            return NotImplemented
        return bool(np.array_equal(self._flags, other._flags))

    __hash__ = None

    def __repr__(self) -> str:
        return f"PrimalityTable(bound={self.bound}, primes={self.count()})"

    def primes(self) -> np.ndarray:
        """Ascending array of the primes below bound."""
        if self._primes is None:
            primes = np.flatnonzero(self._flags).astype(np.int64)
            primes.setflags(write=False)
            self._primes = primes
        return self._primes

    def count(self) -> int:
        return len(self.primes())

    def covers(self, n: int) -> bool:
        """True if the table holds every prime up to sqrt(n)."""
        return isqrt(n) < len(self._flags)

    def is_prime(self, value: int) -> bool:
        """
        Primality of `value` decided from this table alone.

        Args:
            value: Non-negative integer below bound**2

        Returns:
            True if value is prime

        Raises:
            ValueError: value is negative or too large for the table to decide
        """
        if value < 0:
            raise ValueError(f"primality is undefined for negative value {value}")
        if value < len(self._flags):
            return bool(self._flags[value])
        root = isqrt(value)
        if root >= len(self._flags):
            raise ValueError(
                f"{value} is beyond a table of bound {self.bound}; need bound > {root}"
            )
        primes = self.primes()
        primes = primes[: np.searchsorted(primes, root, side="right")]
        if value <= INT64_MAX:
            return not np.any(value % primes == 0)
        return all(value % int(p) for p in primes)


def _check_bound(bound: int) -> int:
    bound = operator.index(bound)
    if bound < 0:
        raise ValueError(f"sieve bound must be non-negative, got {bound}")
    return bound


def _empty_table(bound: int) -> PrimalityTable:
    return PrimalityTable(np.zeros(bound, dtype=bool))


def simple_sieve(bound: int) -> PrimalityTable:
    """
    Sieve of Eratosthenes over 0 .. bound - 1.

    Every f with f*f < bound that is still marked prime clears its multiples
    from f*f upwards.
    """
    bound = _check_bound(bound)
    if bound <= 2:
        return _empty_table(bound)

    flags = np.ones(bound, dtype=bool)
    flags[:2] = False
    for f in range(2, isqrt(bound - 1) + 1):
        if flags[f]:
            flags[f * f::f] = False
    return PrimalityTable(flags)


def odd_sieve(bound: int) -> PrimalityTable:
    """
    Eratosthenes over odd numbers only.

    odd[k] stands for 2k + 1; an odd prime p starts at index (p*p) // 2 and
    steps by p, since consecutive odd multiples of p are 2p apart.
    """
    bound = _check_bound(bound)
    if bound <= 2:
        return _empty_table(bound)

    odd = np.ones(bound // 2, dtype=bool)
    odd[0] = False  # 1
    for p in range(3, isqrt(bound - 1) + 1, 2):
        if odd[p >> 1]:
            odd[(p * p) >> 1::p] = False

    flags = np.zeros(bound, dtype=bool)
    flags[1::2] = odd
    flags[2] = True
    return PrimalityTable(flags)


def sundaram(k: int) -> np.ndarray:
    """
    Raw Sieve of Sundaram.

    Removes every i + j + 2ij < k with 1 <= i <= j from 1 .. k - 1 and maps the
    survivors to 2i + 1. The transform only yields odd primes, so 2 is put in
    front explicitly.

    Args:
        k: Size of the index range

    Returns:
        Ascending int64 array: 2 followed by the odd primes below 2k
    """
    k = _check_bound(k)
    survivors = np.flatnonzero(_sundaram_simd(k))
    return np.concatenate((np.array([2], dtype=np.int64), 2 * survivors.astype(np.int64) + 1))


def sundaram_sieve(bound: int) -> PrimalityTable:
    bound = _check_bound(bound)
    if bound <= 2:
        return _empty_table(bound)

    # odd p = 2i + 1 < bound needs i < bound // 2
    flags = np.zeros(bound, dtype=bool)
    flags[sundaram(bound // 2)] = True
    return PrimalityTable(flags)


def _toggle(flags: np.ndarray, candidates: np.ndarray, residues: np.ndarray) -> None:
    # candidates are distinct for a fixed x, so a fancy-indexed xor is safe
    candidates = candidates[np.isin(candidates % 60, residues)]
    flags[candidates] ^= True


def atkin_sieve(bound: int) -> PrimalityTable:
    """
    Sieve of Atkin.

    Each number coprime to 60 is flipped once per solution of the quadratic
    form matching its residue class:
        4x^2 + y^2 = m   for m mod 60 in {1, 13, 17, 29, 37, 41, 49, 53}
        3x^2 + y^2 = m   for m mod 60 in {7, 19, 31, 43}
        3x^2 - y^2 = m   for m mod 60 in {11, 23, 47, 59}, x > y
    An odd number of solutions only makes m a squarefree candidate, so the
    multiples of r^2 are cleared for every surviving r afterwards. 2, 3 and 5
    are not coprime to 60 and are set directly.
    """
    bound = _check_bound(bound)
    if bound <= 2:
        return _empty_table(bound)

    flags = np.zeros(bound, dtype=bool)
    top = bound - 1

    x = 1
    while 4 * x * x + 1 <= top:
        y = np.arange(1, isqrt(top - 4 * x * x) + 1, dtype=np.int64)
        _toggle(flags, 4 * x * x + y * y, _ATKIN_4X2_PLUS_Y2)
        x += 1

    x = 1
    while 3 * x * x + 1 <= top:
        y = np.arange(1, isqrt(top - 3 * x * x) + 1, dtype=np.int64)
        _toggle(flags, 3 * x * x + y * y, _ATKIN_3X2_PLUS_Y2)
        x += 1

    # smallest value of 3x^2 - y^2 for y < x is at y = x - 1
    x = 2
    while 2 * x * x + 2 * x - 1 <= top:
        y = np.arange(1, x, dtype=np.int64)
        m = 3 * x * x - y * y
        _toggle(flags, m[m <= top], _ATKIN_3X2_MINUS_Y2)
        x += 1

    for r in range(7, isqrt(top) + 1):
        if flags[r]:
            flags[r * r::r * r] = False

    for p in (2, 3, 5):
        if p < bound:
            flags[p] = True
    return PrimalityTable(flags)


def _segment_width(bound: int, segment_size: Optional[int]) -> int:
    if segment_size is None:
        return isqrt(bound - 1) + 1
    if segment_size < 1:
        raise ValueError(f"segment size must be positive, got {segment_size}")
    return segment_size


def _sieve_segment(args: tuple[int, int, np.ndarray]) -> np.ndarray:
    """Worker function for one segment (must be at module level for the pool)."""
    low, high, primes = args
    return _mark_segment_simd(low, high, primes)


def segmented_sieve(bound: int, segment_size: Optional[int] = None,
                    processes: Optional[int] = None) -> PrimalityTable:
    """
    Segmented Sieve of Eratosthenes.

    The primes below sqrt(bound) come from the simple sieve; the rest of
    [0, bound) is classified segment by segment, each prime marking from its
    first multiple at or above the segment start.

    Args:
        bound: Exclusive upper limit
        segment_size: Segment width (default: isqrt(bound - 1) + 1)
        processes: Spread the segments over a process pool of this size

    Returns:
        PrimalityTable of length bound
    """
    bound = _check_bound(bound)
    if bound <= 2:
        return _empty_table(bound)

    limit = isqrt(bound - 1) + 1
    base = simple_sieve(limit)
    primes = base.primes()
    width = _segment_width(bound, segment_size)

    segments = [(low, min(low + width, bound), primes) for low in range(limit, bound, width)]
    logger.debug("segmented sieve below %d: %d base primes, %d segments of width %d",
                 bound, len(primes), len(segments), width)

    flags = np.zeros(bound, dtype=bool)
    flags[:limit] = base.flags
    if processes is not None and processes > 1 and len(segments) > 1:
        with Pool(processes) as pool:
            marks = pool.map(_sieve_segment, segments)
    else:
        marks = map(_sieve_segment, segments)

    for (low, high, _), mark in zip(segments, marks):
        flags[low:high] = mark
    return PrimalityTable(flags)


def _iter_segmented(bound: int, width: int) -> Iterator[int]:
    limit = isqrt(bound - 1) + 1
    primes = simple_sieve(limit).primes()
    yield from (int(p) for p in primes)
    for low in range(limit, bound, width):
        mark = _mark_segment_simd(low, min(low + width, bound), primes)
        for offset in np.flatnonzero(mark):
            yield low + int(offset)


def segmented_primes(bound: int, segment_size: Optional[int] = None) -> Iterator[int]:
    """
    Stream the primes below `bound` in ascending order.

    Only the base primes and the current segment are held in memory, so this
    is the way to walk ranges whose full table would not fit.
    """
    bound = _check_bound(bound)
    if bound <= 2:
        return iter(())
    return _iter_segmented(bound, _segment_width(bound, segment_size))


SIEVES: dict[str, Callable[..., PrimalityTable]] = {
    "simple": simple_sieve,
    "odd": odd_sieve,
    "segmented": segmented_sieve,
    "sundaram": sundaram_sieve,
    "atkin": atkin_sieve,
}


def sieve(bound: int, method: str = "simple", **options) -> PrimalityTable:
    """
    Build a PrimalityTable for 0 .. bound - 1 with one of the SIEVES.

    Args:
        bound: Exclusive upper limit
        method: Key of SIEVES
        **options: Passed through (segment_size / processes for "segmented")

    Returns:
        PrimalityTable of length bound
    """
    try:
        func = SIEVES[method]
    except KeyError:
        raise ValueError(f"unknown sieve {method!r}, expected one of {sorted(SIEVES)}") from None
    return func(bound, **options)


def primes_below(bound: int, method: str = "simple", **options) -> np.ndarray:
    """Ascending array of the primes strictly less than bound."""
    return sieve(bound, method, **options).primes()
