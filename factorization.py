"""
Integer factorization using trial division, wheel factorization and Pollard's Rho
(Floyd's cycle detection and Brent's variant).

METHODS:
1. Trial division: factors of 2 by shifting, then odd candidates up to sqrt(n)
   - Deterministic, factors come out in ascending order
2. Wheel factorization: 2, 3, 5 first, then only candidates coprime to 30
   - Increment cycle (4, 2, 4, 2, 4, 6, 2, 6) from 7
3. Pollard's Rho: x -> x^2 + c (mod n), y moves twice as fast, gcd(|x - y|, n) per step
4. Brent: same walk, power-of-two rounds, one gcd per batch of differences
   - Backtracks from the checkpoint ys when a batch swallows every factor at once
5. Sieve-assisted prime powers: divisor count and Euler's totient from a PrimalityTable

The randomized searches are explicit state machines (CyclePhase) with an
iteration ceiling: a search either finds a divisor, reseeds after a collapse
(gcd == n) or gives up as INCONCLUSIVE. CycleFactorizer drives them until n is
divided down to 1 and falls back to the wheel when a search gives up.

All modular arithmetic runs on Python ints, so v*v + c never overflows.
"""
import logging
import random
from dataclasses import dataclass
from enum import Enum
from itertools import cycle
from math import isqrt, prod
from typing import Callable, Optional, Type

import numpy as np

from gcd import binary
from sieve import PrimalityTable, simple_sieve
from simd_operations import INT64_MAX, _prime_exponents_simd

logger = logging.getLogger(__name__)

# Ceiling on walk steps per search before it is declared inconclusive
DEFAULT_MAX_ITERATIONS: int = 1 << 20
# Brent's m: differences multiplied together between two gcd calls
DEFAULT_BATCH_SIZE: int = 128

WHEEL_INCREMENTS: tuple[int, ...] = (4, 2, 4, 2, 4, 6, 2, 6)
_WHEEL_BASIS: tuple[int, ...] = (2, 3, 5)
_WHEEL_START: int = 7


class FactorizationInconclusive(ArithmeticError):
    """A randomized search hit its iteration ceiling without splitting n."""

    def __init__(self, n: int, iterations: int):
        super().__init__(f"no factor of {n} found within {iterations} iterations")
        self.n = n
        self.iterations = iterations


def _check_positive(n: int) -> None:
    if n < 1:
        raise ValueError(f"cannot factorize {n}: expected a positive integer")


def _require_cover(table: PrimalityTable, n: int) -> None:
    if not table.covers(n):
        raise ValueError(
            f"primality table of bound {table.bound} is too small for {n}; need bound > {isqrt(n)}"
        )


def _table_for(n: int) -> PrimalityTable:
    logger.debug("building primality table up to %d for n=%d", isqrt(n), n)
    return simple_sieve(isqrt(n) + 1)


# trial division
def trial_division(n: int) -> list[int]:
    _check_positive(n)
    factors: list[int] = []

    while (n & 1) == 0:
        factors.append(2)
        n >>= 1

    f: int = 3
    while f * f <= n:
        while n % f == 0:
            factors.append(f)
            n //= f
        f += 2

    if n > 1:
        factors.append(n)
    return factors


def wheel_factorization(n: int) -> list[int]:
    """
    Trial division restricted to candidates coprime with 30.

    After removing 2, 3 and 5 the candidates 7, 11, 13, 17, 19, 23, 29, 31,
    37, ... are reached by cycling through WHEEL_INCREMENTS from index 0.

    Args:
        n: Positive integer

    Returns:
        Prime factors in ascending order (empty for n == 1)
    """
    _check_positive(n)
    factors: list[int] = []

    for p in _WHEEL_BASIS:
        while n % p == 0:
            factors.append(p)
            n //= p

    k: int = _WHEEL_START
    increments = cycle(WHEEL_INCREMENTS)
    while k * k <= n:
        if n % k == 0:
            factors.append(k)
            n //= k
        else:
            k += next(increments)

    if n > 1:
        factors.append(n)
    return factors


class CyclePhase(Enum):
    SEEDED = "seeded"
    CYCLING = "cycling"
    FACTOR_FOUND = "factor_found"
    EXHAUSTED = "exhausted"
    INCONCLUSIVE = "inconclusive"


@dataclass
class CycleState:
    """
    Position of one pseudo-random walk v -> (v*v + c) mod n.

    x and y are the two pointers, g the last gcd and steps the number of walk
    steps taken since the seed. r, k, q and ys are only used by Brent's search:
    round length, progress inside the round, running product of differences
    and the checkpoint the backtrack restarts from.
    """
    n: int
    c: int
    x: int
    y: int
    g: int = 1
    steps: int = 0
    phase: CyclePhase = CyclePhase.SEEDED
    r: int = 1
    k: int = 0
    q: int = 1
    ys: int = 0

    def advance(self, v: int) -> int:
        return (v * v + self.c) % self.n


class RhoSearch:
    """
    Pollard's Rho with Floyd cycle detection.

    Each step() moves x once and y twice and computes gcd(|x - y|, n) with the
    binary GCD:
        1 < gcd < n   -> FACTOR_FOUND
        gcd == n      -> the cycle closed on every factor at once, reseed (SEEDED)
        gcd == 1      -> CYCLING
    Once `max_iterations` steps are spent without a factor the phase becomes
    INCONCLUSIVE. Even n short-circuits to 2 in run().
    """

    def __init__(self, n: int, rng: Optional[random.Random] = None,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS):
        if n < 2:
            raise ValueError(f"cycle search needs n >= 2, got {n}")
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {max_iterations}")
        self.n = n
        self.rng = rng if rng is not None else random.Random()
        self.max_iterations = max_iterations
        self.iterations: int = 0
        self.reseeds: int = 0
        self.state: CycleState = self.seed()

    def seed(self) -> CycleState:
        x = self.rng.randrange(1, self.n)
        c = self.rng.randrange(1, self.n)
        return CycleState(self.n, c, x, x)

    def step(self) -> CyclePhase:
        s = self.state
        s.x = s.advance(s.x)
        s.y = s.advance(s.advance(s.y))
        s.steps += 1
        self.iterations += 1
        return self._settle(binary(abs(s.x - s.y), self.n))

    def _settle(self, g: int) -> CyclePhase:
        s = self.state
        s.g = g
        if 1 < g < self.n:
            s.phase = CyclePhase.FACTOR_FOUND
            return s.phase

        if g == self.n:
            self.reseeds += 1
            logger.debug("collapse on n=%d after %d steps (c=%d), reseeding", self.n, s.steps, s.c)
            s = self.state = self.seed()
            s.phase = CyclePhase.SEEDED
        else:
            s.phase = CyclePhase.CYCLING

        if self.iterations >= self.max_iterations:
            s.phase = CyclePhase.INCONCLUSIVE
        return s.phase

    def run(self) -> Optional[int]:
        """
        Step until a divisor is found or the ceiling is reached.

        Returns:
            A divisor 1 < d < n (2 for even n), or None if inconclusive
        """
        if (self.n & 1) == 0:
            self.state.g = 2
            self.state.phase = CyclePhase.FACTOR_FOUND
            return 2

        while True:
            phase = self.step()
            if phase is CyclePhase.FACTOR_FOUND:
                return self.state.g
            if phase is CyclePhase.INCONCLUSIVE:
                logger.debug("no factor of %d after %d iterations and %d reseeds",
                             self.n, self.iterations, self.reseeds)
                return None


class BrentSearch(RhoSearch):
    """
    Brent's improvement of Pollard's Rho.

    x is parked while y runs rounds of r steps (r doubling every round). The
    differences |x - y| are multiplied into q and gcd(q, n) is computed once
    per batch of `batch_size` steps, so each step() processes one batch.
    If a batch gcd comes out as n, the batch is replayed one difference at a
    time from the checkpoint ys to recover a proper factor.
    """

    def __init__(self, n: int, rng: Optional[random.Random] = None,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size
        super().__init__(n, rng, max_iterations)

    def seed(self) -> CycleState:
        y = self.rng.randrange(1, self.n)
        c = self.rng.randrange(1, self.n)
        state = CycleState(self.n, c, x=y, y=y)
        # first round: r = 1
        state.y = state.advance(state.y)
        return state

    def step(self) -> CyclePhase:
        s = self.state
        s.ys = s.y
        count = min(self.batch_size, s.r - s.k)
        for _ in range(count):
            s.y = s.advance(s.y)
            s.q = s.q * abs(s.x - s.y) % self.n
        s.k += count
        s.steps += count
        self.iterations += count

        g = binary(s.q, self.n)
        if g == self.n:
            g = self._backtrack(s, count)
        elif g == 1 and s.k >= s.r:
            # next round: park x at y and run y r steps ahead
            s.r <<= 1
            s.k = 0
            s.x = s.y
            for _ in range(s.r):
                s.y = s.advance(s.y)
            s.steps += s.r
            self.iterations += s.r
        return self._settle(g)

    def _backtrack(self, s: CycleState, count: int) -> int:
        logger.debug("batch gcd swallowed n=%d, backtracking %d steps from ys", self.n, count)
        for _ in range(count):
            s.ys = s.advance(s.ys)
            g = binary(abs(s.x - s.ys), self.n)
            if g > 1:
                return g
        return self.n


def pollard_rho(n: int, rng: Optional[random.Random] = None,
                max_iterations: int = DEFAULT_MAX_ITERATIONS) -> Optional[int]:
    """
    Pollard's Rho (Floyd) for a single divisor of n.

    Args:
        n: Integer >= 2, expected to be composite
        rng: Random source for the seeds (a fresh one if omitted)
        max_iterations: Walk steps before giving up

    Returns:
        A divisor 1 < d < n, 2 for even n, or None if the ceiling was reached
    """
    return RhoSearch(n, rng, max_iterations).run()


def brent(n: int, rng: Optional[random.Random] = None,
          max_iterations: int = DEFAULT_MAX_ITERATIONS,
          batch_size: int = DEFAULT_BATCH_SIZE) -> Optional[int]:
    """Brent's variant of pollard_rho(); same contract."""
    return BrentSearch(n, rng, max_iterations, batch_size).run()


class CycleFactorizer:
    """
    Complete factorization by repeated cycle searches.

    Cofactors wait on a work list. Each advance() takes one: a prime (checked
    against the primality table) is recorded, a composite gets its own search
    and both parts of the split go back on the list. The driver is EXHAUSTED
    once the list is empty, i.e. n has been divided down to 1.

    A search that reaches its ceiling is recovered with wheel factorization,
    or surfaced as FactorizationInconclusive when `fallback` is False.
    """

    def __init__(self, n: int, table: Optional[PrimalityTable] = None,
                 search: Type[RhoSearch] = BrentSearch,
                 rng: Optional[random.Random] = None,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 fallback: bool = True, **search_options):
        _check_positive(n)
        self.table = table if table is not None else _table_for(n)
        _require_cover(self.table, n)
        self.n = n
        self.search = search
        self.rng = rng if rng is not None else random.Random()
        self.max_iterations = max_iterations
        self.fallback = fallback
        self.search_options = search_options

        self.factors: list[int] = []
        self.pending: list[int] = [n] if n > 1 else []
        self.searches: int = 0
        self.phase = CyclePhase.SEEDED if self.pending else CyclePhase.EXHAUSTED

    def advance(self) -> CyclePhase:
        if self.pending:
            m = self.pending.pop()
            if self.table.is_prime(m):
                self.factors.append(m)
            else:
                d = self._split(m)
                self.pending.extend((d, m // d))
        self.phase = CyclePhase.FACTOR_FOUND if self.pending else CyclePhase.EXHAUSTED
        return self.phase

    def _split(self, m: int) -> int:
        search = self.search(m, rng=self.rng, max_iterations=self.max_iterations,
                             **self.search_options)
        self.searches += 1
        d = search.run()
        if d is not None:
            return d
        if not self.fallback:
            raise FactorizationInconclusive(m, search.iterations)
        logger.warning("%s gave up on %d after %d iterations (%d reseeds), falling back to the wheel",
                       type(search).__name__, m, search.iterations, search.reseeds)
        return wheel_factorization(m)[0]

    def run(self) -> list[int]:
        while self.phase is not CyclePhase.EXHAUSTED:
            self.advance()
        return self.factors


DETERMINISTIC_METHODS: dict[str, Callable[[int], list[int]]] = {
    "trial": trial_division,
    "wheel": wheel_factorization,
}

CYCLE_SEARCHES: dict[str, Type[RhoSearch]] = {
    "rho": RhoSearch,
    "brent": BrentSearch,
}


def factorize(n: int, table: Optional[PrimalityTable] = None, method: str = "trial",
              rng: Optional[random.Random] = None,
              max_iterations: int = DEFAULT_MAX_ITERATIONS,
              fallback: bool = True, **options) -> list[int]:
    """
    Factorize n into prime factors.

    Deterministic methods ("trial", "wheel") return the factors in ascending
    order and ignore `table`. Randomized methods ("rho", "brent") return them
    in discovery order and certify every factor against `table`, which must
    cover sqrt(n); one is built for the call if omitted.

    Args:
        n: Positive integer
        table: PrimalityTable covering sqrt(n) (randomized methods)
        method: "trial", "wheel", "rho" or "brent"
        rng: Random source for the randomized methods
        max_iterations: Ceiling per search (randomized methods)
        fallback: Recover inconclusive searches with the wheel instead of raising
        **options: Extra search options (batch_size for "brent")

    Returns:
        Prime factors with multiplicity; empty for n == 1

    Raises:
        ValueError: n < 1, unknown method or table too small
        FactorizationInconclusive: a search gave up and fallback is False
    """
    _check_positive(n)
    if method in DETERMINISTIC_METHODS:
        return DETERMINISTIC_METHODS[method](n)
    try:
        search = CYCLE_SEARCHES[method]
    except KeyError:
        methods = sorted({*DETERMINISTIC_METHODS, *CYCLE_SEARCHES})
        raise ValueError(f"unknown factorization method {method!r}, expected one of {methods}") from None
    return CycleFactorizer(n, table, search, rng, max_iterations, fallback, **options).run()


def largest_prime_factor(n: int, table: Optional[PrimalityTable] = None,
                         method: str = "trial", **options) -> int:
    """Largest prime factor of n (1 for n == 1)."""
    return max(factorize(n, table, method, **options), default=1)


def prime_powers(n: int, table: PrimalityTable) -> list[tuple[int, int]]:
    """
    Prime-power decomposition of n using the primes of a precomputed table.

    Every prime p <= sqrt(n) from the table is divided out as often as it
    goes; whatever is left above 1 is a single prime larger than all of them.

    Args:
        n: Positive integer
        table: PrimalityTable covering sqrt(n)

    Returns:
        (prime, exponent) pairs in ascending order of prime
    """
    _check_positive(n)
    _require_cover(table, n)
    primes = table.primes()
    primes = primes[: np.searchsorted(primes, isqrt(n), side="right")]

    powers: list[tuple[int, int]] = []
    if n <= INT64_MAX:
        exponents, rest = _prime_exponents_simd(n, primes)
        powers.extend((int(p), int(e)) for p, e in zip(primes, exponents) if e)
        rest = int(rest)
    else:
        rest = n
        for p in map(int, primes):
            if p * p > rest:
                break
            e = 0
            while rest % p == 0:
                rest //= p
                e += 1
            if e:
                powers.append((p, e))

    if rest > 1:
        powers.append((rest, 1))
    return powers


def divisor_count(n: int, table: PrimalityTable) -> int:
    """
    Number of positive divisors of n, prod(e + 1) over its prime powers.

    Note this returns a count, not the factors themselves; use factorize()
    or prime_powers() for those.
    """
    return prod(e + 1 for _, e in prime_powers(n, table))


def totient(n: int, table: Optional[PrimalityTable] = None) -> int:
    """Euler's phi(n) in exact integer arithmetic."""
    _check_positive(n)
    if table is None:
        table = _table_for(n)
    result = n
    for p, _ in prime_powers(n, table):
        # n * (1 - 1/p) without leaving the integers
        result = result // p * (p - 1)
    return result
