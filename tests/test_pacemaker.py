import threading

from conftest import FakeClock

from iobench.pacemaker import Pacemaker

BEAT_NS = 100_000_000  # 10 fps


def test_not_due_before_first_interval():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, clock=clock)
    clock.advance(BEAT_NS - 1)
    assert not pacemaker.is_due()
    clock.advance(1)
    assert pacemaker.is_due()
    assert not pacemaker.is_due()


def test_unfetched_beats_are_dropped_by_default():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, clock=clock)
    for _ in range(4):
        clock.advance(5 * BEAT_NS)
        results = [pacemaker.is_due() for _ in range(10)]
        assert results.count(True) == 1
        assert results[0] is True


def test_dropping_resynchronises_to_beat_grid():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, clock=clock)
    clock.advance(int(2.5 * BEAT_NS))
    assert pacemaker.is_due()
    # last beat sits on the grid at 2 beats, so 3 beats is due again
    clock.now = 3 * BEAT_NS
    assert pacemaker.is_due()


def test_unfetched_beats_accumulate_when_requested():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, accumulate_unfetched=True, clock=clock)
    clock.advance(5 * BEAT_NS)
    results = [pacemaker.is_due() for _ in range(10)]
    assert results.count(True) == 5
    assert results[:5] == [True] * 5


def test_accumulated_rate_matches_wall_time():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, accumulate_unfetched=True, clock=clock)
    hits = 0
    # irregular polling over exactly one second
    for step in (30, 250, 20, 400, 300):
        clock.advance(step * 1_000_000)
        while pacemaker.is_due():
            hits += 1
    assert hits == 10


def test_zero_fps_is_never_due():
    clock = FakeClock(0)
    pacemaker = Pacemaker(0, clock=clock)
    clock.advance(10 * BEAT_NS)
    assert not pacemaker.is_due()


def test_negative_fps_is_always_due():
    pacemaker = Pacemaker(-1, clock=FakeClock(0))
    assert all(pacemaker() for _ in range(100))


def test_pause_and_resume():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, clock=clock)
    pacemaker.pause()
    assert pacemaker.paused
    clock.advance(2 * BEAT_NS)
    assert not pacemaker.is_due()
    pacemaker.resume()
    assert pacemaker.is_due()


def test_reset_restarts_the_interval():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, clock=clock)
    clock.advance(BEAT_NS + BEAT_NS // 2)
    pacemaker.reset()
    clock.advance(BEAT_NS // 2)
    assert not pacemaker.is_due()
    clock.advance(BEAT_NS // 2)
    assert pacemaker.is_due()


def test_target_fps_can_change_at_runtime():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, clock=clock)
    pacemaker.set_target_fps(1)
    assert pacemaker.target_fps == 1.0
    clock.advance(5 * BEAT_NS)
    assert not pacemaker.is_due()
    clock.advance(5 * BEAT_NS)
    assert pacemaker.is_due()


def test_concurrent_callers_get_a_single_beat():
    clock = FakeClock(0)
    pacemaker = Pacemaker(10, clock=clock)
    clock.advance(BEAT_NS)
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def poll():
        barrier.wait()
        due = pacemaker.is_due()
        with lock:
            results.append(due)

    threads = [threading.Thread(target=poll) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert results.count(True) == 1
