import threading
import time

import pytest

from domains.hot_folder.stability import StabilityDetector


class FakeClock:
    def __init__(self, on_sleep=None):
        self.now = 0.0
        self.sleeps: list[float] = []
        self.on_sleep = on_sleep

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))


def make_detector(clock: FakeClock, timeout: float = 10.0) -> StabilityDetector:
    return StabilityDetector(
        initial_delay=0.5, poll_interval=0.15, timeout=timeout, clock=clock, sleep=clock.sleep
    )


def test_unchanged_file_is_stable_after_two_samples(tmp_path):
    path = tmp_path / "part.igs"
    path.write_bytes(b"x" * 10)
    clock = FakeClock()

    outcome = make_detector(clock).check(path)

    assert outcome.stable is True
    assert outcome.final_size == 10
    assert clock.sleeps == [0.5, 0.15]


def test_missing_file_is_not_stable(tmp_path):
    clock = FakeClock()

    outcome = make_detector(clock).check(tmp_path / "gone.json")

    assert outcome.stable is False
    assert clock.sleeps == [0.5]


def test_file_deleted_mid_check_returns_false(tmp_path):
    path = tmp_path / "job.json"
    path.write_text("{}")

    def on_sleep(count):
        if count == 2:
            path.unlink()

    clock = FakeClock(on_sleep)
    assert make_detector(clock).is_stable(path) is False


def test_growing_file_times_out_within_bound(tmp_path):
    path = tmp_path / "big.igs"
    path.write_bytes(b"")

    def on_sleep(count):
        with path.open("ab") as handle:
            handle.write(b"x")

    clock = FakeClock(on_sleep)
    outcome = make_detector(clock, timeout=2.0).check(path)

    assert outcome.stable is False
    assert clock.now <= 2.0 + 0.15 + 1e-9


def test_stable_once_growth_stops(tmp_path):
    path = tmp_path / "growing.igs"
    path.write_bytes(b"")

    def on_sleep(count):
        if count <= 4:
            with path.open("ab") as handle:
                handle.write(b"chunk")

    clock = FakeClock(on_sleep)
    outcome = make_detector(clock).check(path)

    assert outcome.stable is True
    assert outcome.final_size == 4 * len(b"chunk")


def test_rejects_non_positive_poll_interval():
    with pytest.raises(ValueError):
        StabilityDetector(poll_interval=0)


def test_real_writer_growing_in_bursts(tmp_path):
    path = tmp_path / "panel.igs"
    path.write_bytes(b"")
    chunks = [b"a" * 1024, b"b" * 2048, b"c" * 4096]
    finished_at = {}

    def writer():
        for index, chunk in enumerate(chunks):
            if index:
                time.sleep(0.2)
            with path.open("ab") as handle:
                handle.write(chunk)
        finished_at["t"] = time.monotonic()

    thread = threading.Thread(target=writer)
    thread.start()
    detector = StabilityDetector(initial_delay=0.5, poll_interval=0.15, timeout=10.0)

    outcome = detector.check(path)
    returned_at = time.monotonic()
    thread.join()

    assert outcome.stable is True
    assert outcome.final_size == sum(len(c) for c in chunks)
    assert returned_at >= finished_at["t"]
