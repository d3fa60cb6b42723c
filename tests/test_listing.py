import queue
import threading

import pytest
import requests
from upyun_transfer.exceptions import ExhaustedRetriesError, PermanentRemoteError, ValidationError
from upyun_transfer.listing import END_OF_LISTING, ListConfig, ListingTraversal

from .fakes import FULL_TREE_ORDER


class CancelAfter:
    """Cancellation flag that trips after ``checks`` calls of is_set."""

    def __init__(self, checks: int):
        self.checks = checks

    def is_set(self) -> bool:
        self.checks -= 1
        return self.checks < 0


class FailingPathExecutor:
    """Delegates to the fake storage, but raises ``error`` for requests to ``path``."""

    def __init__(self, storage, path: str, error: Exception):
        self.storage = storage
        self.path = path
        self.error = error

    def execute(self, method, uri, headers=None, body=None, query=None, stream=False):
        if uri == self.path:
            raise self.error
        return self.storage.execute(method, uri, headers, body, query, stream)


def drain(objects: queue.Queue) -> list:
    items = []
    while not objects.empty():
        items.append(objects.get_nowait())
    return items


def run_listing(traversal, config, cancel=None):
    objects: queue.Queue = queue.Queue()
    state = traversal.list(config, objects, cancel)
    items = drain(objects)
    assert items.count(END_OF_LISTING) == 1
    assert items[-1] is END_OF_LISTING
    return state, items[:-1]


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    delays: list[float] = []
    monkeypatch.setattr("upyun_transfer.listing.time.sleep", delays.append)
    return delays


@pytest.fixture
def traversal(listing_tree) -> ListingTraversal:
    return ListingTraversal(listing_tree)


class TestRecursiveListing:
    def test_full_traversal(self, traversal):
        state, entries = run_listing(traversal, ListConfig(path="/root"))

        assert [e.name for e in entries] == FULL_TREE_ORDER
        assert state.objects_emitted == len(FULL_TREE_ORDER)
        assert state.retry_count == 0

        by_name = {e.name: e for e in entries}
        assert by_name["empty"].is_dir and by_name["empty"].empty_dir
        assert by_name["dir1"].is_dir and not by_name["dir1"].empty_dir
        assert by_name["dir1/sub"].is_dir and not by_name["dir1/sub"].empty_dir
        assert not by_name["dir1/sub/c.txt"].is_dir
        assert by_name["z.txt"].size == 4

    @pytest.mark.parametrize("page_size", [1, 2, 3, 50])
    def test_pagination_is_transparent(self, traversal, listing_tree, page_size):
        _state, entries = run_listing(traversal, ListConfig(path="/root", page_size=page_size))

        assert [e.name for e in entries] == FULL_TREE_ORDER
        limits = {r[2]["X-List-Limit"] for r in listing_tree.requests}
        assert limits == {str(page_size)}

    def test_first_level_only(self, traversal):
        """
        GIVEN a tree with nested directories
        WHEN it is listed with max_list_level 1
        THEN only the entries of the root are emitted and no directory is expanded
        """
        _state, entries = run_listing(traversal, ListConfig(path="/root", max_list_level=1))

        assert [e.name for e in entries] == ["a.txt", "dir1", "empty", "z.txt"]
        assert not any(e.empty_dir for e in entries)

    def test_two_levels(self, traversal, listing_tree):
        _state, entries = run_listing(traversal, ListConfig(path="/root", max_list_level=2))

        assert [e.name for e in entries] == ["a.txt", "dir1/b.txt", "dir1/sub", "dir1", "empty", "z.txt"]
        assert "/root/dir1/sub" not in [r[1] for r in listing_tree.requests]

    @pytest.mark.parametrize("cap", range(1, len(FULL_TREE_ORDER) + 1))
    def test_object_cap(self, traversal, cap):
        state, entries = run_listing(traversal, ListConfig(path="/root", max_list_objects=cap))

        assert [e.name for e in entries] == FULL_TREE_ORDER[:cap]
        assert state.objects_emitted == cap

    def test_object_cap_above_total(self, traversal):
        _state, entries = run_listing(traversal, ListConfig(path="/root", max_list_objects=100))

        assert [e.name for e in entries] == FULL_TREE_ORDER

    def test_desc_order(self, traversal, listing_tree):
        _state, entries = run_listing(traversal, ListConfig(path="/root", max_list_level=1, desc_order=True))

        assert [e.name for e in entries] == ["z.txt", "empty", "dir1", "a.txt"]
        assert all(r[2]["X-List-Order"] == "desc" for r in listing_tree.requests)

    def test_extra_headers_forwarded(self, traversal, listing_tree):
        run_listing(traversal, ListConfig(path="/root", headers={"X-Trace": "abc"}))

        assert all(r[2]["X-Trace"] == "abc" for r in listing_tree.requests)
        assert all(r[2]["Accept"] == "application/json" for r in listing_tree.requests)

    def test_empty_root(self, storage):
        storage.add_dir("/nothing")

        state, entries = run_listing(ListingTraversal(storage), ListConfig(path="/nothing"))

        assert entries == []
        assert state.objects_emitted == 0

    @pytest.mark.parametrize("level", [0, -2])
    def test_invalid_level(self, level):
        with pytest.raises(ValidationError):
            ListConfig(path="/root", max_list_level=level)


class TestRetries:
    @pytest.fixture
    def flat_dir(self, storage):
        for i in range(6):
            storage.add_file(f"/flat/f{i}", b"x")
        return storage

    def test_transient_error_retried(self, flat_dir, sleeps):
        """
        GIVEN a listing of three pages whose second page fails three times
        WHEN the directory is listed
        THEN all entries are emitted once and three retries are counted
        """
        flat_dir.list_failures = {("/flat", "2"): 3}

        state, entries = run_listing(ListingTraversal(flat_dir), ListConfig(path="/flat", page_size=2))

        assert [e.name for e in entries] == [f"f{i}" for i in range(6)]
        assert state.retry_count == 3
        assert sleeps == [0.01] * 3

    def test_succeeds_after_four_retries(self, flat_dir, sleeps):
        flat_dir.list_failures = {("/flat", "2"): 4}

        state, entries = run_listing(ListingTraversal(flat_dir), ListConfig(path="/flat", page_size=2))

        assert len(entries) == 6
        assert state.retry_count == 4

    def test_exhausted(self, flat_dir, sleeps):
        flat_dir.list_failures = {("/flat", "2"): 5}
        objects: queue.Queue = queue.Queue()

        with pytest.raises(ExhaustedRetriesError):
            ListingTraversal(flat_dir).list(ListConfig(path="/flat", page_size=2), objects)

        items = drain(objects)
        assert [e.name for e in items[:-1]] == ["f0", "f1"]
        assert items[-1] is END_OF_LISTING
        assert len(sleeps) == 4

    def test_budget_shared_across_directories(self, listing_tree, sleeps):
        listing_tree.list_failures = {("/root/dir1", ""): 3, ("/root/empty", ""): 2}

        with pytest.raises(ExhaustedRetriesError):
            run_listing(ListingTraversal(listing_tree), ListConfig(path="/root"))

    def test_unlimited_tries(self, listing_tree, sleeps):
        listing_tree.list_failures = {("/root/dir1", ""): 3, ("/root/empty", ""): 9}

        state, entries = run_listing(ListingTraversal(listing_tree), ListConfig(path="/root", max_list_tries=0))

        assert [e.name for e in entries] == FULL_TREE_ORDER
        assert state.retry_count == 12

    def test_permanent_error(self, listing_tree, sleeps):
        listing_tree.permanent_list_failures = {"/root/dir1/sub"}
        objects: queue.Queue = queue.Queue()

        with pytest.raises(PermanentRemoteError):
            ListingTraversal(listing_tree).list(ListConfig(path="/root"), objects)

        items = drain(objects)
        assert [e.name for e in items[:-1]] == ["a.txt", "dir1/b.txt"]
        assert items.count(END_OF_LISTING) == 1
        assert sleeps == []


class TestCancellation:
    def test_cancel_before_emitting(self, traversal):
        state, entries = run_listing(traversal, ListConfig(path="/root"), cancel=CancelAfter(3))

        assert [e.name for e in entries] == FULL_TREE_ORDER[:3]
        assert state.objects_emitted == 3

    def test_already_cancelled(self, traversal):
        cancel = threading.Event()
        cancel.set()

        state, entries = run_listing(traversal, ListConfig(path="/root"), cancel=cancel)

        assert entries == []
        assert state.objects_emitted == 0

    def test_cancel_blocked_producer(self, traversal):
        """
        GIVEN a producer blocked on a full queue
        WHEN the consumer cancels and keeps draining
        THEN the producer returns without error and the queue is closed once
        """
        objects: queue.Queue = queue.Queue(maxsize=1)
        cancel = threading.Event()
        errors = []

        def produce():
            try:
                traversal.list(ListConfig(path="/root"), objects, cancel)
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        producer = threading.Thread(target=produce)
        producer.start()

        received = [objects.get(timeout=5), objects.get(timeout=5)]
        cancel.set()
        while (entry := objects.get(timeout=5)) is not END_OF_LISTING:
            received.append(entry)
        producer.join(timeout=5)

        assert not producer.is_alive()
        assert errors == []
        assert END_OF_LISTING not in received
        assert len(received) < len(FULL_TREE_ORDER)

    def test_cancel_with_full_queue_drops_marker(self, traversal):
        objects: queue.Queue = queue.Queue(maxsize=2)
        cancel = CancelAfter(2)

        traversal.list(ListConfig(path="/root"), objects, cancel)

        assert [e.name for e in drain(objects)] == FULL_TREE_ORDER[:2]


class TestIterObjects:
    def test_yields_all(self, traversal):
        assert [e.name for e in traversal.iter_objects(ListConfig(path="/root"), queue_size=2)] == FULL_TREE_ORDER

    def test_early_close(self, traversal):
        entries = traversal.iter_objects(ListConfig(path="/root"), queue_size=1)

        assert next(entries).name == "a.txt"
        entries.close()

    def test_error_after_entries(self, listing_tree):
        listing_tree.permanent_list_failures = {"/root/empty"}
        received = []

        with pytest.raises(PermanentRemoteError):
            for entry in ListingTraversal(listing_tree).iter_objects(ListConfig(path="/root")):
                received.append(entry.name)

        assert received == FULL_TREE_ORDER[:5]

    def test_unexpected_error_reaches_consumer(self, listing_tree):
        """
        GIVEN an executor that fails with an exception outside the transfer error hierarchy
        WHEN the listing is consumed through iter_objects
        THEN the entries before the failure are yielded and the exception is raised to the consumer
        """
        error = requests.exceptions.ChunkedEncodingError("connection broken")
        executor = FailingPathExecutor(listing_tree, "/root/dir1/sub", error)
        received = []

        with pytest.raises(requests.exceptions.ChunkedEncodingError):
            for entry in ListingTraversal(executor).iter_objects(ListConfig(path="/root")):
                received.append(entry.name)

        assert received == ["a.txt", "dir1/b.txt"]


class TestListObjects:
    @pytest.fixture
    def flat_dir(self, storage):
        for i in range(5):
            storage.add_file(f"/flat/f{i}", b"x")
        return storage

    def test_manual_paging(self, flat_dir):
        traversal = ListingTraversal(flat_dir)

        names, cursor = [], ""
        while True:
            entries, cursor = traversal.list_objects("/flat", cursor=cursor, limit=2)
            names.extend(e.name for e in entries)
            if not cursor:
                break

        assert names == [f"f{i}" for i in range(5)]
        assert len(flat_dir.requests) == 3

    @pytest.mark.parametrize(
        "limit,expected",
        [(0, "256"), (-1, "256"), (4097, "256"), (4096, "4096"), (10, "10")],
    )
    def test_limit(self, flat_dir, limit, expected):
        ListingTraversal(flat_dir).list_objects("/flat", limit=limit)

        assert flat_dir.requests[0][2]["X-List-Limit"] == expected

    def test_last_page_cursor_is_empty(self, flat_dir):
        entries, cursor = ListingTraversal(flat_dir).list_objects("/flat")

        assert len(entries) == 5
        assert cursor == ""

    def test_default_tries(self, flat_dir, sleeps):
        flat_dir.list_failures = {("/flat", ""): 10}

        with pytest.raises(ExhaustedRetriesError):
            ListingTraversal(flat_dir).list_objects("/flat", max_list_tries=0)

        assert len(sleeps) == 4
        assert flat_dir.list_failures[("/flat", "")] == 5
