import threading
import time
import unittest

from app.errors import ParseError, RateLimitedError
from app.services.bounded_fetch import bounded


class BoundedFetchTest(unittest.TestCase):
    def setUp(self):
        self.release = threading.Event()
        self.addCleanup(self.release.set)

    def test_fast_call_returns_ok(self):
        outcome = bounded(lambda: 42, 1.0, label="fast")

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value, 42)
        self.assertIsNone(outcome.error)

    def test_hung_call_times_out_without_waiting_for_it(self):
        def hang():
            self.release.wait(5)
            return "late"

        started = time.monotonic()
        outcome = bounded(hang, 0.1, label="hung")

        self.assertEqual(outcome.status, "timed-out")
        self.assertIsNone(outcome.value)
        self.assertLess(time.monotonic() - started, 1.0)

    def test_late_result_is_discarded(self):
        sink: list[str] = []
        done = threading.Event()

        def slow():
            self.release.wait(5)
            sink.append("ran")
            done.set()
            return ["late"]

        outcome = bounded(slow, 0.05, label="slow")
        self.release.set()
        self.assertTrue(done.wait(1.0))

        self.assertEqual(outcome.status, "timed-out")
        self.assertIsNone(outcome.value)
        self.assertEqual(sink, ["ran"])

    def test_source_error_kind_is_reported(self):
        def fail():
            raise RateLimitedError("slow down", source="api")

        outcome = bounded(fail, 1.0, label="limited")

        self.assertEqual(outcome.status, "errored")
        self.assertEqual(outcome.error_kind, "rate-limited")
        self.assertIn("slow down", outcome.error)

    def test_parse_error_kind(self):
        def fail():
            raise ParseError("bad page")

        self.assertEqual(bounded(fail, 1.0).error_kind, "parse")

    def test_timeout_raised_by_call_is_an_error_not_a_deadline(self):
        def fail():
            raise TimeoutError("socket timeout")

        outcome = bounded(fail, 1.0, label="socket")

        self.assertEqual(outcome.status, "errored")
        self.assertEqual(outcome.error_kind, "network")


if __name__ == '__main__':
    unittest.main()
