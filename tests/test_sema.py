import threading

from tlsrelay.sema import Semaphore


def _start_waiter(sem, done):
    def run():
        sem.wait()
        done.set()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


def test_initial_count_allows_waits():
    sem = Semaphore(2)
    sem.wait()
    sem.wait()
    assert sem.count == 0


def test_default_count_is_zero():
    assert Semaphore().count == 0


def test_signal_default_adds_one():
    sem = Semaphore()
    sem.signal()
    assert sem.count == 1
    sem.wait()
    assert sem.count == 0


def test_signal_many_adds_units():
    sem = Semaphore()
    sem.signal(3)
    assert sem.count == 3
    for _ in range(3):
        sem.wait()
    assert sem.count == 0


def test_wait_blocks_until_signal():
    sem = Semaphore()
    done = threading.Event()
    thread = _start_waiter(sem, done)
    assert not done.wait(0.1)
    sem.signal()
    assert done.wait(2)
    thread.join(2)
    assert sem.count == 0


def test_signal_many_wakes_many_waiters():
    sem = Semaphore()
    events = [threading.Event() for _ in range(3)]
    threads = [_start_waiter(sem, event) for event in events]
    assert not any(event.wait(0.05) for event in events)
    sem.signal(3)
    assert all(event.wait(2) for event in events)
    for thread in threads:
        thread.join(2)
    assert sem.count == 0