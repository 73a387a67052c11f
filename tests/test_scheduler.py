import threading
from rankkeeper.scheduler import ManualScheduler, ThreadScheduler


def test_manual_scheduler_runs_on_drain_in_order():
    scheduler = ManualScheduler()
    calls = []

    def first():
        calls.append("first")
        scheduler.submit(lambda: calls.append("nested"))

    scheduler.submit(first)
    scheduler.submit(lambda: calls.append("second"))
    assert calls == []
    assert scheduler.pending == 2

    scheduler.drain()

    assert calls == ["first", "second", "nested"]
    assert scheduler.pending == 0


def test_manual_scheduler_survives_failing_task():
    scheduler = ManualScheduler()
    calls = []

    def broken():
        raise RuntimeError("boom")

    scheduler.submit(broken)
    scheduler.submit(lambda: calls.append("after"))
    scheduler.drain()

    assert calls == ["after"]


def test_thread_scheduler_runs_off_the_calling_thread():
    scheduler = ThreadScheduler()
    caller = threading.current_thread()
    seen = []

    scheduler.submit(lambda: seen.append(threading.current_thread()))
    scheduler.drain(timeout=5)

    assert len(seen) == 1
    assert seen[0] is not caller
    assert seen[0].daemon is True
