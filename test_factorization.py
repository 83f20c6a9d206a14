import math
import random
import time
import unittest

from factorization import (
    DEFAULT_BATCH_SIZE,
    BrentSearch,
    CycleFactorizer,
    CyclePhase,
    CycleState,
    FactorizationInconclusive,
    RhoSearch,
    brent,
    divisor_count,
    factorize,
    largest_prime_factor,
    pollard_rho,
    prime_powers,
    totient,
    trial_division,
    wheel_factorization,
)
from sieve import sieve

ALL_METHODS = ("trial", "wheel", "rho", "brent")
RANDOMIZED_METHODS = ("rho", "brent")


def product(factors):
    result = 1
    for f in factors:
        result *= f
    return result


class TestTrialDivision(unittest.TestCase):
    """Test trial division factorization"""

    def test_small_number(self):
        """Test factoring a small number completely"""
        # 360 = 2^3 * 3^2 * 5
        self.assertEqual(trial_division(360), [2, 2, 2, 3, 3, 5])

    def test_prime(self):
        """A prime is its own factorization"""
        self.assertEqual(trial_division(97), [97])
        self.assertEqual(trial_division(2), [2])
        self.assertEqual(trial_division(1000003), [1000003])

    def test_one(self):
        """1 has no prime factors"""
        self.assertEqual(trial_division(1), [])

    def test_power_of_two(self):
        """Test number that is a power of a small prime"""
        self.assertEqual(trial_division(1024), [2] * 10)

    def test_product_of_small_primes(self):
        """Test product of several small primes"""
        self.assertEqual(trial_division(2310), [2, 3, 5, 7, 11])

    def test_mixed_factors(self):
        """Small factors followed by a large prime cofactor"""
        self.assertEqual(trial_division(6000018), [2, 3, 1000003])

    def test_invalid_input(self):
        """Zero and negative numbers are rejected"""
        with self.assertRaises(ValueError):
            trial_division(0)
        with self.assertRaises(ValueError):
            trial_division(-12)


class TestWheelFactorization(unittest.TestCase):
    """Test the mod-30 wheel"""

    def test_wheel_primes(self):
        """2, 3 and 5 are removed before the wheel starts"""
        self.assertEqual(wheel_factorization(2 ** 3 * 3 ** 2 * 5 ** 4), [2, 2, 2, 3, 3, 5, 5, 5, 5])

    def test_every_residue_is_reached(self):
        """Squares of the candidates 7 .. 37 cover one full turn of the wheel"""
        for k in (7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 49):
            expected = trial_division(k * k)
            self.assertEqual(wheel_factorization(k * k), expected, k)

    def test_matches_trial_division(self):
        """Same ascending factor list as trial division"""
        for n in range(1, 3000):
            self.assertEqual(wheel_factorization(n), trial_division(n), n)

    def test_large_prime_cofactor(self):
        """A large prime left after the wheel is appended"""
        self.assertEqual(wheel_factorization(7 * 1000003), [7, 1000003])
        self.assertEqual(wheel_factorization(600851475143), [71, 839, 1471, 6857])

    def test_invalid_input(self):
        with self.assertRaises(ValueError):
            wheel_factorization(0)


class TestPollardRho(unittest.TestCase):
    """Test Pollard's Rho algorithm"""

    def test_even_number(self):
        """Test that even numbers return 2"""
        self.assertEqual(pollard_rho(100), 2)
        self.assertEqual(pollard_rho(2 ** 40), 2)

    def test_semiprime(self):
        """Test on a semiprime (product of two primes)"""
        # 10403 = 101 * 103
        for seed in range(10):
            d = pollard_rho(10403, rng=random.Random(seed))
            self.assertIn(d, (101, 103))

    def test_finds_factor(self):
        """The divisor is always non-trivial"""
        for n in (1073, 8051, 455459, 1000003 * 1000033):
            d = pollard_rho(n, rng=random.Random(n))
            self.assertTrue(1 < d < n)
            self.assertEqual(n % d, 0)

    def test_prime_is_inconclusive(self):
        """A prime never splits, so the search runs into its ceiling"""
        self.assertIsNone(pollard_rho(10007, rng=random.Random(0), max_iterations=500))

    def test_invalid_input(self):
        with self.assertRaises(ValueError):
            pollard_rho(1)
        with self.assertRaises(ValueError):
            pollard_rho(15, max_iterations=0)


class TestBrent(unittest.TestCase):
    """Test Brent's variant"""

    def test_even_number(self):
        self.assertEqual(brent(1000), 2)

    def test_semiprime(self):
        """Test on a semiprime (product of two primes)"""
        for seed in range(10):
            d = brent(10403, rng=random.Random(seed))
            self.assertIn(d, (101, 103))

    def test_batch_sizes(self):
        """Any batch size finds a proper factor, including ones that force backtracking"""
        for batch_size in (1, 2, 7, DEFAULT_BATCH_SIZE, 10 ** 4):
            for seed in range(5):
                d = brent(1073, rng=random.Random(seed), batch_size=batch_size)
                self.assertIn(d, (29, 37), (batch_size, seed))

    def test_beyond_machine_integers(self):
        """Modular squaring of values above 2^64 stays exact"""
        p, q = 1000003, 2 ** 61 - 1
        n = p * q
        self.assertGreater(n, 2 ** 64)
        d = brent(n, rng=random.Random(5))
        self.assertIn(d, (p, q))

    def test_rounds_double(self):
        """The round length r is always a power of two"""
        search = BrentSearch(1000003 * 1000033, rng=random.Random(1))
        for _ in range(50):
            if search.step() is CyclePhase.FACTOR_FOUND:
                break
            self.assertEqual(search.state.r & (search.state.r - 1), 0)

    def test_prime_is_inconclusive(self):
        search = BrentSearch(10007, rng=random.Random(0), max_iterations=500)
        self.assertIsNone(search.run())
        self.assertIs(search.state.phase, CyclePhase.INCONCLUSIVE)
        self.assertGreaterEqual(search.iterations, 500)

    def test_invalid_batch_size(self):
        with self.assertRaises(ValueError):
            brent(15, batch_size=0)


class TestCycleStateMachine(unittest.TestCase):
    """Transitions of the randomized searches in isolation"""

    def test_starts_seeded(self):
        search = RhoSearch(8051, rng=random.Random(1))
        self.assertIs(search.state.phase, CyclePhase.SEEDED)
        self.assertEqual(search.state.steps, 0)
        self.assertEqual(search.iterations, 0)
        self.assertTrue(1 <= search.state.c < 8051)
        self.assertEqual(search.state.x, search.state.y)

    def test_cycling_then_factor_found(self):
        """gcd 1 keeps cycling; 1 < gcd < n is a factor"""
        search = RhoSearch(15, rng=random.Random(0))
        # f(v) = v^2 + 1 mod 15: x = 1, y = 2, then x = 2, y = 11
        search.state = CycleState(15, c=1, x=0, y=0)
        self.assertIs(search.step(), CyclePhase.CYCLING)
        self.assertEqual(search.state.g, 1)
        self.assertIs(search.step(), CyclePhase.FACTOR_FOUND)
        self.assertEqual(search.state.g, 3)
        self.assertEqual(search.state.steps, 2)

    def test_collapse_reseeds(self):
        """gcd == n goes back to SEEDED with a fresh state"""
        search = RhoSearch(15, rng=random.Random(0))
        # 2 is a fixed point of v^2 + 13 mod 15, so x == y after one step
        stuck = CycleState(15, c=13, x=2, y=2)
        search.state = stuck
        self.assertIs(search.step(), CyclePhase.SEEDED)
        self.assertEqual(search.reseeds, 1)
        self.assertIsNot(search.state, stuck)
        self.assertEqual(search.state.steps, 0)
        self.assertEqual(stuck.g, 15)

    def test_brent_collapse_reseeds(self):
        """A batch that swallows n backtracks, then reseeds"""
        search = BrentSearch(15, rng=random.Random(0))
        stuck = CycleState(15, c=13, x=2, y=2)
        search.state = stuck
        self.assertIs(search.step(), CyclePhase.SEEDED)
        self.assertEqual(search.reseeds, 1)
        self.assertEqual(search.state.r, 1)
        self.assertEqual(search.state.q, 1)

    def test_iteration_ceiling(self):
        """The search stops exactly at the ceiling"""
        search = RhoSearch(10007, rng=random.Random(0), max_iterations=50)
        self.assertIsNone(search.run())
        self.assertIs(search.state.phase, CyclePhase.INCONCLUSIVE)
        self.assertEqual(search.iterations, 50)

    def test_even_short_circuit(self):
        search = RhoSearch(4, rng=random.Random(0))
        self.assertEqual(search.run(), 2)
        self.assertIs(search.state.phase, CyclePhase.FACTOR_FOUND)
        self.assertEqual(search.iterations, 0)


class TestCycleFactorizer(unittest.TestCase):
    """The driver that repeats searches until n is divided down to 1"""

    def test_runs_to_exhaustion(self):
        driver = CycleFactorizer(3642, rng=random.Random(1))
        self.assertIs(driver.phase, CyclePhase.SEEDED)
        factors = driver.run()
        self.assertIs(driver.phase, CyclePhase.EXHAUSTED)
        self.assertEqual(sorted(factors), [2, 3, 607])
        self.assertEqual(driver.pending, [])

    def test_one_is_exhausted_immediately(self):
        driver = CycleFactorizer(1)
        self.assertIs(driver.phase, CyclePhase.EXHAUSTED)
        self.assertEqual(driver.run(), [])
        self.assertEqual(driver.searches, 0)

    def test_advance_reports_progress(self):
        driver = CycleFactorizer(97 * 89, search=RhoSearch, rng=random.Random(2))
        self.assertIs(driver.advance(), CyclePhase.FACTOR_FOUND)
        self.assertEqual(driver.searches, 1)
        self.assertEqual(sorted(driver.pending), [89, 97])
        driver.run()
        self.assertEqual(sorted(driver.factors), [89, 97])

    def test_inconclusive_raises_without_fallback(self):
        """The recoverable failure surfaces as FactorizationInconclusive"""
        n = 1000003 * 1000033
        driver = CycleFactorizer(n, search=RhoSearch, rng=random.Random(12345),
                                 max_iterations=1, fallback=False)
        with self.assertRaises(FactorizationInconclusive) as ctx:
            driver.run()
        self.assertEqual(ctx.exception.n, n)
        self.assertEqual(ctx.exception.iterations, 1)

    def test_inconclusive_falls_back_to_wheel(self):
        """With fallback the deterministic wheel finishes the job"""
        n = 1000003 * 1000033
        with self.assertLogs("factorization", level="WARNING"):
            factors = factorize(n, method="rho", rng=random.Random(12345), max_iterations=1)
        self.assertEqual(sorted(factors), [1000003, 1000033])

    def test_table_too_small(self):
        with self.assertRaises(ValueError):
            factorize(10 ** 6, table=sieve(10), method="rho")


class TestFactorize(unittest.TestCase):
    """Test the complete factorization function"""

    def test_concrete_scenario(self):
        """3642 = 2 * 3 * 607 with every method"""
        for method in ALL_METHODS:
            self.assertEqual(sorted(factorize(3642, method=method)), [2, 3, 607], method)

    def test_factor_one(self):
        for method in ALL_METHODS:
            self.assertEqual(factorize(1, method=method), [], method)

    def test_factor_prime(self):
        for method in ALL_METHODS:
            self.assertEqual(factorize(97, method=method), [97], method)
            self.assertEqual(factorize(2, method=method), [2], method)

    def test_deterministic_methods_ascending(self):
        """trial and wheel return ascending lists, identical on repeat calls"""
        for method in ("trial", "wheel"):
            first = factorize(5040, method=method)
            self.assertEqual(first, [2, 2, 2, 2, 3, 3, 5, 7])
            self.assertEqual(factorize(5040, method=method), first)

    def test_randomized_methods_same_multiset(self):
        """Different seeds may change the order but not the multiset"""
        n = 2 * 2 * 3 * 101 * 103 * 9973
        table = sieve(isqrt_plus_one(n))
        for method in RANDOMIZED_METHODS:
            runs = [factorize(n, table, method=method, rng=random.Random(seed)) for seed in range(5)]
            for factors in runs:
                self.assertEqual(sorted(factors), [2, 2, 3, 101, 103, 9973])

    def test_product_and_primality(self):
        """Product of factors is n and every factor is prime per the sieve"""
        rng = random.Random(42)
        numbers = [4, 15, 100, 1001, 9999, 65536, 999983, 123456789, 600851475143]
        numbers += [rng.randint(2, 10 ** 9) for _ in range(20)]
        for n in numbers:
            table = sieve(isqrt_plus_one(n))
            for method in ALL_METHODS:
                factors = factorize(n, table, method=method, rng=random.Random(n))
                self.assertEqual(product(factors), n, (n, method))
                for f in factors:
                    self.assertTrue(table.is_prime(f), (f, n, method))

    def test_perfect_powers(self):
        for method in ALL_METHODS:
            self.assertEqual(sorted(factorize(3 ** 12, method=method)), [3] * 12, method)
            self.assertEqual(sorted(factorize(10007 ** 2, method=method)), [10007, 10007], method)

    def test_brent_options(self):
        factors = factorize(455459, method="brent", rng=random.Random(3), batch_size=4)
        self.assertEqual(sorted(factors), [613, 743])

    def test_unknown_method(self):
        with self.assertRaises(ValueError):
            factorize(12, method="ecm")

    def test_invalid_input(self):
        for method in ALL_METHODS:
            with self.assertRaises(ValueError):
                factorize(0, method=method)

    def test_factorization_speed(self):
        """Test factorization of moderately large numbers"""
        n = 1000003 * 1000033

        start = time.time()
        factors = factorize(n, method="brent", rng=random.Random(7))
        elapsed = time.time() - start

        self.assertEqual(sorted(factors), [1000003, 1000033])
        self.assertLess(elapsed, 10.0, "Should factor semiprime in reasonable time")


class TestLargestPrimeFactor(unittest.TestCase):

    def test_values(self):
        for method in ALL_METHODS:
            self.assertEqual(largest_prime_factor(3642, method=method), 607, method)
            self.assertEqual(largest_prime_factor(97, method=method), 97, method)
            self.assertEqual(largest_prime_factor(1, method=method), 1, method)
            self.assertEqual(largest_prime_factor(600851475143, method=method), 6857, method)


class TestPrimePowers(unittest.TestCase):
    """Sieve-assisted prime powers, divisor count and totient"""

    def setUp(self):
        self.table = sieve(1001)

    def test_prime_powers(self):
        self.assertEqual(prime_powers(1, self.table), [])
        self.assertEqual(prime_powers(3642, self.table), [(2, 1), (3, 1), (607, 1)])
        self.assertEqual(prime_powers(5040, self.table), [(2, 4), (3, 2), (5, 1), (7, 1)])
        self.assertEqual(prime_powers(999983, self.table), [(999983, 1)])
        self.assertEqual(prime_powers(997 * 997, self.table), [(997, 2)])

    def test_divisor_count_values(self):
        """d(n) is the product of (exponent + 1)"""
        cases = {1: 1, 2: 2, 12: 6, 97: 2, 3642: 8, 5040: 60, 10 ** 6: 49, 999983: 2}
        for n, expected in cases.items():
            self.assertEqual(divisor_count(n, self.table), expected, n)

    def test_divisor_count_brute_force(self):
        for n in range(1, 600):
            expected = sum(1 for d in range(1, n + 1) if n % d == 0)
            self.assertEqual(divisor_count(n, self.table), expected, n)

    def test_totient_values(self):
        cases = {1: 1, 2: 1, 9: 6, 36: 12, 97: 96, 3642: 1212}
        for n, expected in cases.items():
            self.assertEqual(totient(n, self.table), expected, n)

    def test_totient_brute_force(self):
        for n in range(1, 400):
            expected = sum(1 for k in range(1, n + 1) if math.gcd(k, n) == 1)
            self.assertEqual(totient(n, self.table), expected, n)

    def test_totient_exact_for_large_n(self):
        """Products of large primes stay exact"""
        p, q = 999983, 1000003
        self.assertEqual(totient(p * q), (p - 1) * (q - 1))
        self.assertEqual(totient(101 ** 2 * q), 101 * 100 * (q - 1))

    def test_table_too_small(self):
        with self.assertRaises(ValueError):
            divisor_count(10 ** 6, sieve(100))
        with self.assertRaises(ValueError):
            prime_powers(2 ** 40, sieve(1000))

    def test_invalid_input(self):
        with self.assertRaises(ValueError):
            divisor_count(0, self.table)
        with self.assertRaises(ValueError):
            totient(-5)


def isqrt_plus_one(n):
    return math.isqrt(n) + 1


if __name__ == "__main__":
    unittest.main()
