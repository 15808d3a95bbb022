import unittest

from app.services.pacer import DispatchPacer


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class DispatchPacerTest(unittest.TestCase):
    def test_same_source_dispatches_are_spaced(self):
        clock = FakeClock()
        pacer = DispatchPacer({"api": 0.5}, clock=clock, sleep_fn=clock.sleep)

        waited = [pacer.acquire("api") for _ in range(3)]

        self.assertEqual(waited, [0.0, 0.5, 0.5])
        self.assertEqual(clock.now, 101.0)

    def test_other_sources_are_not_delayed(self):
        clock = FakeClock()
        pacer = DispatchPacer({"api": 1.0, "listing": 0.0}, clock=clock, sleep_fn=clock.sleep)

        pacer.acquire("api")
        self.assertEqual(pacer.acquire("listing"), 0.0)
        self.assertEqual(pacer.acquire("unknown"), 0.0)
        self.assertEqual(clock.sleeps, [])

    def test_reserve_hands_out_increasing_slots(self):
        clock = FakeClock()
        pacer = DispatchPacer({"api": 0.25}, clock=clock, sleep_fn=clock.sleep)

        slots = [pacer.reserve("api") for _ in range(4)]

        self.assertEqual(slots, [100.0, 100.25, 100.5, 100.75])

    def test_idle_source_does_not_accumulate_delay(self):
        clock = FakeClock()
        pacer = DispatchPacer({"api": 0.5}, clock=clock, sleep_fn=clock.sleep)

        pacer.acquire("api")
        clock.now += 10
        self.assertEqual(pacer.acquire("api"), 0.0)


if __name__ == '__main__':
    unittest.main()
