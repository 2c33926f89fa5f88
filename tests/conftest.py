from __future__ import annotations

import time

import pytest


class FakeClock:
    """Manually advanced clock; callable like ``time.monotonic``."""

    def __init__(self, start=0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


def wait_until(predicate, timeout=5.0, interval=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fake_clock():
    return FakeClock(0.0)


@pytest.fixture
def make_files(tmp_path):
    def _make(sizes, prefix="in"):
        paths = []
        for idx, size in enumerate(sizes):
            path = tmp_path / f"{prefix}-{idx:03d}.bin"
            path.write_bytes(bytes([idx % 256]) * size)
            paths.append(str(path))
        return paths

    return _make
