import threading
import time

import pytest

from dlq_console.directory import DEFAULT_PAGE_SIZE, QueueDirectory, ReadWriteLock
from dlq_console.exceptions import QueueNotFound
from dlq_console.model import COUNT_UNAVAILABLE, Queue

from conftest import url_for


def test_starts_empty(directory):
    assert not directory.is_populated
    assert directory.refreshed_at is None
    assert directory.snapshot() == ()
    with pytest.raises(QueueNotFound):
        directory.lookup_by_name("orders")


def test_refresh_follows_next_token(directory, gateway):
    gateway.queue_pages = {
        None: ([url_for("a"), url_for("b")], "t1"),
        "t1": ([url_for("c")], None),
    }
    assert directory.refresh() is True
    assert [q.name for q in directory.snapshot()] == ["a", "b", "c"]
    assert directory.is_populated
    assert [c for c in gateway.calls if c[0] == "list_queues"] == [("list_queues", None), ("list_queues", "t1")]


def test_refresh_retries_failed_page_at_same_token(directory, gateway):
    gateway.queue_pages = {
        None: ([url_for("a")], "t1"),
        "t1": ([url_for("b")], None),
    }
    gateway.list_failures = {"t1": 2}
    assert directory.refresh() is True
    tokens = [c[1] for c in gateway.calls if c[0] == "list_queues"]
    assert tokens == [None, "t1", "t1", "t1"]
    assert [q.name for q in directory.snapshot()] == ["a", "b"]


def test_refresh_replaces_snapshot_wholesale(directory, gateway):
    gateway.set_queues("orders", "billing")
    directory.refresh()
    gateway.set_queues("payments")
    directory.refresh()
    assert directory.snapshot() == (Queue(name="payments", url=url_for("payments")),)
    with pytest.raises(QueueNotFound):
        directory.lookup_by_name("orders")


def test_cancelled_refresh_keeps_previous_snapshot(directory, gateway):
    gateway.set_queues("orders")
    directory.refresh()
    gateway.set_queues("payments")
    gateway.list_failures = {None: 1}
    cancel = threading.Event()
    cancel.set()
    assert directory.refresh(cancel_event=cancel) is False
    assert [q.name for q in directory.snapshot()] == ["orders"]


def test_refresh_applies_name_prefix(gateway, logger):
    gateway.set_queues("team-a-orders", "team-b-orders")
    directory = QueueDirectory(gateway, logger, name_prefix="team-a")
    directory.refresh()
    assert [q.name for q in directory.snapshot()] == ["team-a-orders"]


def test_lookup_by_name_is_exact(directory, gateway):
    gateway.set_queues("orders", "orders-dlq")
    directory.refresh()
    assert directory.lookup_by_name("orders-dlq").url == url_for("orders-dlq")
    with pytest.raises(QueueNotFound):
        directory.lookup_by_name("order")


def test_lookup_missing_leaves_cache_untouched(directory, gateway):
    gateway.set_queues("orders", "billing")
    directory.refresh()
    before = directory.snapshot()
    with pytest.raises(QueueNotFound) as excinfo:
        directory.lookup_by_name("missing")
    assert excinfo.value.queue_name == "missing"
    assert directory.snapshot() == before


def test_list_filters_by_substring(directory, gateway):
    gateway.set_queues("orders", "orders-dlq", "billing")
    gateway.counts = {url_for("orders"): 3, url_for("orders-dlq"): 7}
    directory.refresh()
    queues, total = directory.list_queues(1, 10, "orders")
    assert [q.name for q in queues] == ["orders", "orders-dlq"]
    assert [q.message_count for q in queues] == [3, 7]
    assert total == 2


def test_list_count_failure_degrades_single_queue(directory, gateway):
    gateway.set_queues("orders", "orders-dlq", "billing")
    gateway.count_failures = {url_for("orders-dlq")}
    directory.refresh()
    queues, total = directory.list_queues(1, 10, "")
    assert [q.message_count for q in queues] == [0, COUNT_UNAVAILABLE, 0]
    assert total == 3


def test_list_only_counts_the_window(directory, gateway):
    gateway.set_queues(*[f"q{i:02d}" for i in range(25)])
    directory.refresh()
    gateway.calls.clear()
    queues, _ = directory.list_queues(2, 10, "")
    assert [q.name for q in queues] == [f"q{i:02d}" for i in range(10, 20)]
    assert len([c for c in gateway.calls if c[0] == "count"]) == 10


@pytest.mark.parametrize(
    "page,size,search,expected_len,expected_total",
    [
        (1, 10, "", 10, 23),
        (3, 10, "", 3, 23),
        (4, 10, "", 0, 23),
        (0, 5, "", 5, 23),
        (-2, 5, "", 5, 23),
        (1, 0, "", DEFAULT_PAGE_SIZE, 23),
        (2, -1, "", DEFAULT_PAGE_SIZE, 23),
        (1, 100, "", 23, 23),
        (1, 4, "dlq", 4, 8),
        (2, 4, "dlq", 4, 8),
        (3, 4, "dlq", 0, 8),
        (1, 10, "nomatch", 0, 0),
    ],
)
def test_list_window_size(directory, gateway, page, size, search, expected_len, expected_total):
    names = [f"svc{i}" for i in range(15)] + [f"svc{i}-dlq" for i in range(8)]
    gateway.set_queues(*names)
    directory.refresh()
    queues, total = directory.list_queues(page, size, search)
    effective_page = max(page, 1)
    effective_size = size if size >= 1 else DEFAULT_PAGE_SIZE
    assert total == expected_total
    assert len(queues) == expected_len
    assert len(queues) == min(effective_size, max(0, total - (effective_page - 1) * effective_size))


def test_readers_never_observe_mixed_generations(directory, gateway):
    generation_a = [url_for(f"a-{i}") for i in range(50)]
    generation_b = [url_for(f"b-{i}") for i in range(50)]
    gateway.queue_pages = {None: (generation_a, None)}
    directory.refresh()

    stop = threading.Event()
    mixed = []

    def reader():
        while not stop.is_set():
            prefixes = {q.name.split("-")[0] for q in directory.snapshot()}
            if len(prefixes) != 1:
                mixed.append(prefixes)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for i in range(50):
        gateway.queue_pages = {None: (generation_b if i % 2 == 0 else generation_a, None)}
        directory.refresh()
    stop.set()
    for t in threads:
        t.join()
    assert mixed == []


def test_write_lock_waits_for_readers():
    lock = ReadWriteLock()
    acquired = threading.Event()

    def writer():
        with lock.write_locked():
            acquired.set()

    with lock.read_locked():
        t = threading.Thread(target=writer)
        t.start()
        assert not acquired.wait(0.1)
    t.join(timeout=2)
    assert acquired.is_set()


def test_pending_writer_blocks_new_readers():
    lock = ReadWriteLock()
    order = []
    first_reader_in = threading.Event()
    release_first_reader = threading.Event()

    def first_reader():
        with lock.read_locked():
            first_reader_in.set()
            release_first_reader.wait(2)
            order.append("reader-1")

    def writer():
        with lock.write_locked():
            order.append("writer")

    def late_reader():
        with lock.read_locked():
            order.append("reader-2")

    t1 = threading.Thread(target=first_reader)
    t1.start()
    first_reader_in.wait(2)
    tw = threading.Thread(target=writer)
    tw.start()
    time.sleep(0.05)
    t2 = threading.Thread(target=late_reader)
    t2.start()
    time.sleep(0.05)
    release_first_reader.set()
    for t in (t1, tw, t2):
        t.join(timeout=2)
    assert order == ["reader-1", "writer", "reader-2"]
