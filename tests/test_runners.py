import threading

import pytest

from edhighway.runners import Runner, current_thread_id, for_each_parallel, start_new_runner
from edhighway.threadpool import ThreadPool


def test_runner_stops_and_joins():
    ticks = []

    def loop(stop):
        while not stop.is_set():
            ticks.append(1)
            stop.wait(0.01)

    runner = start_new_runner(loop)
    assert runner.is_alive() is True
    runner.stop()
    assert runner.is_alive() is False
    assert runner.stop_event.is_set()
    assert len(ticks) >= 1


def test_runner_context_manager():
    seen = threading.Event()

    def loop(stop):
        seen.set()
        stop.wait(5)

    with Runner(loop) as runner:
        assert seen.wait(5)
    assert runner.is_alive() is False


def test_current_thread_id_differs_between_threads():
    main_id = current_thread_id()
    other = []
    t = threading.Thread(target=lambda: other.append(current_thread_id()))
    t.start()
    t.join()
    assert main_id == threading.get_ident()
    assert other[0] != main_id


def test_for_each_parallel_visits_all_items():
    items = list(range(50))
    seen = []
    lock = threading.Lock()

    def todo(value):
        with lock:
            seen.append(value)

    with ThreadPool(4) as pool:
        count = for_each_parallel(pool, items, todo)
    assert count == len(items)
    assert sorted(seen) == items


def test_for_each_parallel_empty():
    with ThreadPool(2) as pool:
        assert for_each_parallel(pool, [], lambda v: None) == 0


def test_for_each_parallel_reports_exceptions(capsys):
    def todo(value):
        if value == 3:
            raise RuntimeError("broken item")

    with ThreadPool(1) as pool:
        count = for_each_parallel(pool, [1, 2, 3, 4, 5], todo)
    err = capsys.readouterr().err
    assert "Exception into ForEachParallel: broken item" in err
    assert count < 5


def test_for_each_parallel_needs_threads():
    pool = ThreadPool(0)
    with pytest.raises(ValueError):
        for_each_parallel(pool, [1], lambda v: None)