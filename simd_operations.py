"""
JIT-compiled kernels for the sieve and factorization hot loops.

These are the inner loops that do not vectorize cleanly with NumPy slicing,
so they are compiled with Numba instead of running in the interpreter.

OPTIMIZATION TARGETS:
1. Sundaram marking: i + j + 2ij for every i <= j
2. Segment marking: multiples of each base prime inside [low, high)
3. Prime exponent scan: trial division against a prime array (int64 inputs only)

All kernels take and return NumPy arrays; index arithmetic is bounded by the
array sizes so it stays inside int64.
"""

import numpy as np
from numba import njit
from typing import List, Tuple

INT64_MAX: int = int(np.iinfo(np.int64).max)


# ============================================================================
# PART 1: SUNDARAM MARKING (Numba JIT)
# ============================================================================

@njit
def _sundaram_simd(k: int) -> np.ndarray:
    """
    Sundaram survivor flags for indices 0 .. k-1.

    Index i survives iff it is not of the form i' + j + 2i'j with
    1 <= i' <= j; survivors i >= 1 map to the odd prime 2i + 1.

    Args:
        k: Table length

    Returns:
        Boolean array of length k (index 0 is always False)
    """
    flags = np.ones(k, dtype=np.bool_)
    if k > 0:
        flags[0] = False

    i = 1
    while 2 * i * (i + 1) < k:
        # j = i gives i + i + 2i*i; each further j adds 2i + 1
        step = 2 * i + 1
        idx = 2 * i * (i + 1)
        while idx < k:
            flags[idx] = False
            idx += step
        i += 1
    return flags


# ============================================================================
# PART 2: SEGMENT MARKING (Numba JIT)
# ============================================================================

@njit
def _mark_segment_simd(low: int, high: int, primes: np.ndarray) -> np.ndarray:
    """
    Primality flags for the segment [low, high) given all primes below sqrt(high).

    Each prime marks from the first multiple >= low, but never below p*p so
    that the base primes themselves survive when the segment overlaps them.

    Args:
        low: Segment start (inclusive)
        high: Segment end (exclusive)
        primes: Ascending int64 array of base primes

    Returns:
        Boolean array of length high - low, True where low + i is prime
    """
    size = high - low
    mark = np.ones(size, dtype=np.bool_)
    # 0 and 1 are never prime
    for v in range(low, min(high, 2)):
        mark[v - low] = False

    for p in primes:
        if p * p >= high:
            break
        start = ((low + p - 1) // p) * p
        if start < p * p:
            start = p * p
        for j in range(start - low, size, p):
            mark[j] = False
    return mark


# ============================================================================
# PART 3: PRIME EXPONENT SCAN (Numba JIT)
# ============================================================================

@njit
def _prime_exponents_simd(n: int, primes: np.ndarray) -> Tuple[np.ndarray, int]:
    """
    JIT-compiled trial division against an ascending prime array.

    Stops as soon as p*p exceeds the remaining cofactor, which is then 1 or prime.

    Args:
        n: Number to factor (must fit in int64)
        primes: NumPy array of primes to test (must be int64)

    Returns:
        (exponent of each prime in n, remaining cofactor)
    """
    exponents = np.zeros(len(primes), dtype=np.int64)
    for i in range(len(primes)):
        p = primes[i]
        if p * p > n:
            break
        while n % p == 0:
            n //= p
            exponents[i] += 1
    return exponents, n


__all__: List[str] = [
    'INT64_MAX',
    '_sundaram_simd',
    '_mark_segment_simd',
    '_prime_exponents_simd',
]
