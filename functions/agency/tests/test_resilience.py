import unittest

from agency.errors import CircuitOpenError
from agency.resilience import BreakerState, CircuitBreaker, retrying


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CircuitBreakerTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.breaker = CircuitBreaker(threshold=3, reset_timeout=60, clock=self.clock)

    def _fail(self):
        def boom():
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            self.breaker.call(boom)

    def test_opens_after_threshold(self):
        for _ in range(2):
            self._fail()
        self.assertEqual(self.breaker.state, BreakerState.CLOSED)

        self._fail()

        self.assertEqual(self.breaker.state, BreakerState.OPEN)
        with self.assertRaises(CircuitOpenError):
            self.breaker.call(lambda: "never")

    def test_success_resets_failure_count(self):
        self._fail()
        self._fail()

        self.assertEqual(self.breaker.call(lambda: "ok"), "ok")

        self.assertEqual(self.breaker.status()["failure_count"], 0)

    def test_half_open_success_closes(self):
        for _ in range(3):
            self._fail()
        self.clock.now += 60

        self.assertEqual(self.breaker.call(lambda: "ok"), "ok")

        self.assertEqual(self.breaker.state, BreakerState.CLOSED)

    def test_half_open_failure_reopens(self):
        for _ in range(3):
            self._fail()
        self.clock.now += 61

        self._fail()

        self.assertEqual(self.breaker.state, BreakerState.OPEN)
        with self.assertRaises(CircuitOpenError):
            self.breaker.before_call()

    def test_stays_open_before_timeout(self):
        for _ in range(3):
            self._fail()
        self.clock.now += 30

        with self.assertRaises(CircuitOpenError):
            self.breaker.before_call()

    def test_force_close_and_status(self):
        for _ in range(3):
            self._fail()
        self.assertTrue(self.breaker.status()["is_open"])

        self.breaker.force_close()

        status = self.breaker.status()
        self.assertEqual(status["state"], "CLOSED")
        self.assertFalse(status["is_open"])
        self.assertIsNone(status["last_failure_at"])


class RetryingTests(unittest.TestCase):
    def test_retries_only_matching_errors(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "done"

        policy = retrying(
            max_attempts=5,
            base_delay=0,
            max_delay=0,
            should_retry=lambda e: isinstance(e, ConnectionError),
        )

        self.assertEqual(policy(flaky), "done")
        self.assertEqual(len(calls), 3)

    def test_reraises_original_error(self):
        calls = []

        def broken():
            calls.append(1)
            raise ValueError("bad input")

        policy = retrying(
            max_attempts=5,
            base_delay=0,
            max_delay=0,
            should_retry=lambda e: isinstance(e, ConnectionError),
        )

        with self.assertRaises(ValueError):
            policy(broken)
        self.assertEqual(len(calls), 1)


if __name__ == "__main__":
    unittest.main()
