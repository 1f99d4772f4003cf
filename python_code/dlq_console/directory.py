"""
The queue directory cache.

Holds an in-memory snapshot of every known queue (name + URL). The snapshot
is rebuilt from scratch by `refresh()` and swapped in wholesale, so readers
always see one complete generation. Lookups and listings are served from
the snapshot; only message counts are fetched live.
"""

import random
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

from aws_lambda_powertools import Logger

from .exceptions import GatewayFailure, QueueNotFound
from .gateway import SQSGateway
from .model import COUNT_UNAVAILABLE, Queue, QueueInfo

DEFAULT_PAGE_SIZE = 10


class ReadWriteLock:
    """
    A writer-preferring reader/writer lock.

    Any number of readers may hold the lock at once; a writer waits for them
    to drain and blocks new readers while it is waiting, so a pending swap is
    never starved by a steady stream of lookups.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class QueueDirectory:
    """
    Lock-protected snapshot of the queue namespace.

    Args:
        gateway: The SQS gateway used for listing queues and counting messages.
        logger: The Powertools Logger instance for structured logging.
        name_prefix: Only queues whose names start with this prefix are cached.
        page_size: MaxResults for each ListQueues call.
        retry_base_seconds: First backoff delay after a failed ListQueues page.
        retry_max_seconds: Cap for the backoff delay.
    """

    def __init__(
        self,
        gateway: SQSGateway,
        logger: Logger,
        name_prefix: Optional[str] = None,
        page_size: int = 1000,
        retry_base_seconds: float = 0.5,
        retry_max_seconds: float = 60.0,
    ):
        self._gateway = gateway
        self._logger = logger
        self._name_prefix = name_prefix
        self._page_size = page_size
        self._retry_base_seconds = retry_base_seconds
        self._retry_max_seconds = retry_max_seconds
        self._lock = ReadWriteLock()
        self._queues: Tuple[Queue, ...] = ()
        self._refreshed_at: Optional[datetime] = None

    @property
    def is_populated(self) -> bool:
        with self._lock.read_locked():
            return self._refreshed_at is not None

    @property
    def refreshed_at(self) -> Optional[datetime]:
        with self._lock.read_locked():
            return self._refreshed_at

    def snapshot(self) -> Tuple[Queue, ...]:
        with self._lock.read_locked():
            return self._queues

    def refresh(self, cancel_event: Optional[threading.Event] = None) -> bool:
        """
        Rebuilds the queue list from ListQueues and swaps it in.

        A failed page is retried at the same pagination point until it
        succeeds, waiting with capped exponential backoff and jitter between
        attempts. The cache is never left empty because SQS was briefly
        unreachable; it is only ever replaced by a complete listing.

        Args:
            cancel_event: When set, the cycle is abandoned at the next wait
                          and the current snapshot is kept.

        Returns:
            True if a new snapshot was swapped in, False if cancelled.
        """
        gathered: List[Queue] = []
        next_token: Optional[str] = None
        pages = 0
        while True:
            attempt = 0
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    self._logger.info("Queue directory refresh cancelled.", extra={"pages_fetched": pages})
                    return False
                try:
                    urls, next_token = self._gateway.list_queues(
                        name_prefix=self._name_prefix,
                        next_token=next_token,
                        max_results=self._page_size,
                    )
                    break
                except GatewayFailure as e:
                    attempt += 1
                    wait_time = self._backoff(attempt)
                    self._logger.error(
                        "Failed to list queues; retrying the same page.",
                        extra={"attempt": attempt, "error": str(e), "wait_seconds": round(wait_time, 2)},
                    )
                    if self._wait(wait_time, cancel_event):
                        self._logger.info("Queue directory refresh cancelled.", extra={"pages_fetched": pages})
                        return False
            pages += 1
            gathered.extend(Queue.from_url(url) for url in urls)
            if not next_token:
                break

        with self._lock.write_locked():
            self._queues = tuple(gathered)
            self._refreshed_at = datetime.now(timezone.utc)

        self._logger.info("Queue directory refreshed.", extra={"queues": len(gathered), "pages": pages})
        return True

    def lookup_by_name(self, name: str) -> Queue:
        with self._lock.read_locked():
            for queue in self._queues:
                if queue.name == name:
                    return queue
        raise QueueNotFound(name)

    def list_queues(self, page: int, size: int, search: str = "") -> Tuple[List[QueueInfo], int]:
        """
        Returns one page of queues with their live approximate message counts.

        Args:
            page: 1-indexed page number; values below 1 are treated as 1.
            size: Page size; values below 1 fall back to DEFAULT_PAGE_SIZE.
            search: Case-sensitive substring filter on the queue name.

        Returns:
            The page of QueueInfo and the size of the filtered set. A queue
            whose count cannot be fetched is reported with COUNT_UNAVAILABLE.
        """
        if page < 1:
            page = 1
        if size < 1:
            size = DEFAULT_PAGE_SIZE

        with self._lock.read_locked():
            matching = [q for q in self._queues if search in q.name] if search else list(self._queues)
        start = (page - 1) * size
        window = matching[start:start + size]

        infos = []
        for queue in window:
            try:
                count = self._gateway.get_approximate_message_count(queue.url)
            except GatewayFailure as e:
                self._logger.warning(
                    "Failed to get message count.", extra={"queue": queue.name, "error": str(e)}
                )
                count = COUNT_UNAVAILABLE
            infos.append(QueueInfo(url=queue.url, name=queue.name, message_count=count))
        return infos, len(matching)

    def _backoff(self, attempt: int) -> float:
        delay = min(self._retry_max_seconds, self._retry_base_seconds * (2 ** (attempt - 1)))
        return delay + random.uniform(0.0, delay * 0.1)

    @staticmethod
    def _wait(seconds: float, cancel_event: Optional[threading.Event]) -> bool:
        """Sleeps for `seconds`; returns True if cancelled meanwhile."""
        if cancel_event is None:
            time.sleep(seconds)
            return False
        return cancel_event.wait(seconds)
