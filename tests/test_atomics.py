import threading

import pytest

from edhighway.atomics import AtomicFlag


def test_default_is_false():
    flag = AtomicFlag()
    assert not flag
    assert flag.test_and_flip(False)
    assert flag


def test_store():
    flag = AtomicFlag()
    flag.store(True)
    assert flag
    assert flag.test_and_flip(True)
    assert not flag
    flag.store(False)
    assert not flag
    assert not flag.test_and_flip(True)


@pytest.mark.parametrize("initial", [False, True])
def test_test_and_flip_matching(initial):
    flag = AtomicFlag(initial)
    assert flag.test_and_flip(initial) is True
    assert bool(flag) is (not initial)


@pytest.mark.parametrize("initial", [False, True])
def test_test_and_flip_not_matching(initial):
    flag = AtomicFlag(initial)
    assert flag.test_and_flip(not initial) is False
    assert bool(flag) is initial


@pytest.mark.parametrize("initial", [False, True])
@pytest.mark.parametrize("value", [False, True])
def test_or_equal(initial, value):
    flag = AtomicFlag(initial)
    flag.or_equal(value)
    assert bool(flag) is (initial or value)


@pytest.mark.parametrize("initial", [False, True])
@pytest.mark.parametrize("value", [False, True])
def test_and_equal(initial, value):
    flag = AtomicFlag(initial)
    flag.and_equal(value)
    assert bool(flag) is (initial and value)


def test_only_one_thread_wins_flip():
    flag = AtomicFlag(False)
    outcomes = []
    lock = threading.Lock()

    def worker():
        won = flag.test_and_flip(False)
        with lock:
            outcomes.append(won)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(outcomes) == [False] * 15 + [True]
    assert flag.test_and_flip(True)