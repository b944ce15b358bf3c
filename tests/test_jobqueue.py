import threading

import pytest

from cryptdrop.jobqueue import FILE_NAME_LEN, JobQueue


def test_new_queue_is_empty():
    queue = JobQueue()
    assert queue.is_empty()
    assert len(queue) == 0


def test_fifo_order():
    queue = JobQueue()
    for name in ("a", "b", "c"):
        queue.push(name)
    assert [queue.pop(), queue.pop(), queue.pop()] == ["a", "b", "c"]
    assert queue.is_empty()


def test_pop_empty_raises():
    with pytest.raises(IndexError):
        JobQueue().pop()


def test_none_is_ignored():
    queue = JobQueue()
    queue.push(None)
    assert queue.is_empty()


def test_long_names_are_truncated():
    queue = JobQueue()
    queue.push("x" * (FILE_NAME_LEN + 10))
    assert queue.pop() == "x" * (FILE_NAME_LEN - 1)


def test_uuid_pair_name_fits():
    name = "12345678-1234-5678-1234-567812345678_87654321-4321-8765-4321-876543218765"
    queue = JobQueue()
    queue.push(name)
    assert queue.pop() == name


def test_clear_empties_queue():
    queue = JobQueue()
    queue.push("a")
    queue.push("b")
    queue.clear()
    assert queue.is_empty()
    with pytest.raises(IndexError):
        queue.pop()


def test_iteration_does_not_consume():
    queue = JobQueue()
    queue.push("a")
    queue.push("b")
    assert list(queue) == ["a", "b"]
    assert len(queue) == 2


def test_wait_times_out_on_empty_queue():
    assert JobQueue().wait(timeout=0.01) is False


def test_wait_wakes_when_item_arrives():
    queue = JobQueue()
    timer = threading.Timer(0.05, queue.push, args=("job",))
    timer.start()
    try:
        assert queue.wait(timeout=5) is True
        assert queue.pop() == "job"
    finally:
        timer.cancel()


def test_concurrent_pushes_are_all_kept():
    queue = JobQueue()

    def produce(prefix):
        for index in range(200):
            queue.push(f"{prefix}{index}")

    threads = [threading.Thread(target=produce, args=(p,)) for p in "abcd"]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    names = []
    while not queue.is_empty():
        names.append(queue.pop())
    assert len(names) == 800
    assert len(set(names)) == 800
    for prefix in "abcd":
        own = [int(n[1:]) for n in names if n[0] == prefix]
        assert own == sorted(own)