"""
Directory listings.

``ListingTraversal.list`` walks a remote directory tree depth first and streams every entry into a
bounded queue, ``ListingTraversal.list_objects`` fetches a single page for callers that page manually.
"""

from __future__ import annotations

import logging
import posixpath
import queue
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from .constants import (
    DEFAULT_LIMIT,
    LIST_END_ITER,
    LIST_RETRY_DELAY,
    MAX_LIMIT,
    MAX_LIST_TRIES,
    TRAVERSAL_PAGE_SIZE,
)
from .decoder import decode_listing
from .exceptions import ExhaustedRetriesError, TransientNetworkError, ValidationError
from .executor import RequestExecutor
from .models.objects import ObjectMetadata

log = logging.getLogger(__name__)

# Put on the output queue once a traversal has finished, however it finished
END_OF_LISTING = None

ListingDecoder = Callable[[bytes], tuple[str, list[ObjectMetadata]]]


@dataclass
class ListConfig:
    """Caller-facing options of a recursive listing."""

    path: str
    headers: dict[str, str] = field(default_factory=dict)

    # stop after this many entries, 0 means no limit
    max_list_objects: int = 0

    # attempts for failed page requests over the whole traversal, 0 means no limit
    max_list_tries: int = MAX_LIST_TRIES

    # -1 recurses without limit, 1 lists only the first level
    max_list_level: int = -1

    desc_order: bool = False
    page_size: int = TRAVERSAL_PAGE_SIZE

    def __post_init__(self):
        if self.max_list_level == 0 or self.max_list_level < -1:
            raise ValidationError(f"Invalid max_list_level {self.max_list_level}, use -1 or a positive depth")
        if self.page_size <= 0:
            raise ValidationError(f"Invalid page_size {self.page_size}")


@dataclass
class TraversalState:
    """Counters of one traversal, handed down to and back up from every directory level."""

    objects_emitted: int = 0
    retry_count: int = 0
    depth: int = 0
    name_prefix: str = ""
    halted: bool = False

    def descend(self, name: str) -> TraversalState:
        """State for the sub-directory ``name`` of the current level."""
        return TraversalState(
            objects_emitted=self.objects_emitted,
            retry_count=self.retry_count,
            depth=self.depth + 1,
            name_prefix=posixpath.join(self.name_prefix, name),
        )

    def merge(self, child: TraversalState) -> None:
        """Take over the counters of a finished sub-directory."""
        self.objects_emitted = child.objects_emitted
        self.retry_count = child.retry_count
        self.halted = child.halted


def listing_headers(
    extra: dict[str, str] | None, limit: int, desc_order: bool, cursor: str | None
) -> dict[str, str]:
    headers = dict(extra or {})
    headers["X-List-Limit"] = str(limit)
    if desc_order:
        headers["X-List-Order"] = "desc"
    if cursor:
        headers["X-List-Iter"] = cursor
    headers["X-UpYun-Folder"] = "true"
    headers["Accept"] = "application/json"
    return headers


class ListingTraversal:
    """Recursive and paged directory listings with bounded retries."""

    __log = log.getChild("ListingTraversal")

    def __init__(
        self,
        executor: RequestExecutor,
        decoder: ListingDecoder = decode_listing,
        retry_delay: float = LIST_RETRY_DELAY,
        put_timeout: float = 0.1,
    ):
        """
        :param executor: executor for the REST requests
        :param decoder: decoder of listing pages
        :param retry_delay: pause in seconds between attempts of a failed page request
        :param put_timeout: interval in seconds at which a blocked producer re-checks cancellation
        """
        self._executor = executor
        self._decoder = decoder
        self._retry_delay = retry_delay
        self._put_timeout = put_timeout

    def _fetch_page(self, path: str, headers: dict[str, str], tries: int, max_tries: int) -> tuple[bytes, int]:
        """
        Request one page, retrying network errors.

        :param tries: failed attempts so far
        :param max_tries: budget of attempts, 0 means no limit
        :returns: the raw page and the updated number of failed attempts
        """
        while True:
            try:
                response = self._executor.execute("GET", path, headers=headers)
                return response.content, tries
            except TransientNetworkError as e:
                tries += 1
                if max_tries == 0 or tries < max_tries:
                    self.__log.warning("Listing %s failed (attempt %d), retrying: %s", path, tries, e)
                    time.sleep(self._retry_delay)
                    continue
                raise ExhaustedRetriesError(f"Listing {path} failed after {tries} attempts") from e

    def list(
        self,
        config: ListConfig,
        objects: queue.Queue,
        cancel: threading.Event | None = None,
    ) -> TraversalState:
        """
        List ``config.path`` recursively into ``objects``.

        Entries of a directory follow its descendants, names are relative to ``config.path``.
        ``END_OF_LISTING`` is put on the queue when the traversal ends, also on errors and cancellation.

        :param config: listing options
        :param objects: output queue, may be bounded
        :param cancel: stops the traversal before the next entry is emitted once set
        :returns: the final counters of the traversal
        :raises ExhaustedRetriesError: if a page could not be fetched within the retry budget
        :raises PermanentRemoteError: if the service rejected a page request
        :raises DecodeError: if a page could not be decoded
        """
        cancel = cancel or threading.Event()
        state = TraversalState()
        try:
            self._walk(config, config.path, state, objects, cancel)
        finally:
            self._close(objects, cancel)

        self.__log.debug(
            "Listed %d entries of %s (%d retries%s)",
            state.objects_emitted,
            config.path,
            state.retry_count,
            ", cancelled" if cancel.is_set() else "",
        )
        return state

    def _walk(
        self,
        config: ListConfig,
        path: str,
        state: TraversalState,
        objects: queue.Queue,
        cancel: threading.Event,
    ) -> None:
        cursor: str | None = None
        while True:
            headers = listing_headers(config.headers, config.page_size, config.desc_order, cursor)
            body, state.retry_count = self._fetch_page(path, headers, state.retry_count, config.max_list_tries)
            cursor, entries = self._decoder(body)

            for entry in entries:
                if entry.is_dir and (config.max_list_level == -1 or state.depth + 1 < config.max_list_level):
                    child = state.descend(entry.name)
                    self._walk(config, posixpath.join(path, entry.name), child, objects, cancel)
                    if child.objects_emitted == state.objects_emitted:
                        entry.empty_dir = True
                    state.merge(child)
                    if state.halted:
                        return

                if state.name_prefix:
                    entry.name = posixpath.join(state.name_prefix, entry.name)

                if not self._emit(entry, objects, cancel):
                    state.halted = True
                    return

                state.objects_emitted += 1
                if 0 < config.max_list_objects <= state.objects_emitted:
                    state.halted = True
                    return

            if not cursor or cursor == LIST_END_ITER:
                return

    def _emit(self, entry: ObjectMetadata, objects: queue.Queue, cancel: threading.Event) -> bool:
        while not cancel.is_set():
            try:
                objects.put(entry, timeout=self._put_timeout)
                return True
            except queue.Full:
                continue
        return False

    def _close(self, objects: queue.Queue, cancel: threading.Event) -> None:
        while True:
            try:
                objects.put(END_OF_LISTING, timeout=self._put_timeout)
                return
            except queue.Full:
                if cancel.is_set():
                    # the consumer has stopped reading
                    self.__log.debug("Output queue full after cancellation, end marker dropped")
                    return

    def iter_objects(self, config: ListConfig, queue_size: int = 1000) -> Iterator[ObjectMetadata]:
        """
        Run a recursive listing on a worker thread and yield its entries.

        Closing the generator early cancels the traversal.
        Errors of the traversal are raised once all entries emitted before the error have been yielded.
        """
        objects: queue.Queue = queue.Queue(maxsize=queue_size)
        cancel = threading.Event()
        errors: list[Exception] = []

        def produce():
            try:
                self.list(config, objects, cancel)
            except Exception as e:
                # re-raised on the consumer side
                errors.append(e)

        producer = threading.Thread(target=produce, name=f"list:{config.path}", daemon=True)
        producer.start()
        try:
            while (entry := objects.get()) is not END_OF_LISTING:
                yield entry
        finally:
            cancel.set()
            producer.join()

        if errors:
            raise errors[0]

    def list_objects(
        self,
        path: str,
        cursor: str = "",
        desc_order: bool = False,
        limit: int = 0,
        max_list_tries: int = 0,
        headers: dict[str, str] | None = None,
    ) -> tuple[list[ObjectMetadata], str]:
        """
        Fetch a single page of the directory ``path``.

        :param cursor: cursor returned with the previous page, empty for the first page
        :param desc_order: list in descending order
        :param limit: page size, values outside 1..4096 select 256
        :param max_list_tries: attempts for network errors, values below 1 select 5
        :returns: the entries of the page and the cursor of the next page, empty after the last page
        """
        if limit <= 0 or limit > MAX_LIMIT:
            limit = DEFAULT_LIMIT
        if max_list_tries <= 0:
            max_list_tries = MAX_LIST_TRIES

        request_headers = listing_headers(headers, limit, desc_order, cursor)
        body, _ = self._fetch_page(path, request_headers, 0, max_list_tries)
        next_cursor, entries = self._decoder(body)

        if next_cursor == LIST_END_ITER:
            return entries, ""
        return entries, next_cursor
