"""
Message retrieval: browse every message on a queue.

SQS has no "list messages" call. The reader asks for the approximate depth,
then receives in batches of ten until it has seen at least that many raw
messages. Each receive hides the returned messages for a few seconds so a
concurrent browse of the same queue mostly sees different messages, but SQS
may still redeliver one within a session, hence the dedup pass.
"""

from typing import Dict, List, Tuple

from aws_lambda_powertools import Logger

from .directory import QueueDirectory
from .exceptions import CountUnavailable, GatewayFailure, MessageNotFound
from .gateway import MAX_RECEIVE_BATCH, SQSGateway
from .model import Message


def dedupe_messages(messages: List[Message]) -> List[Message]:
    """Keeps the first occurrence of each message_id, preserving order."""
    seen: Dict[str, Message] = {}
    for message in messages:
        if message.message_id not in seen:
            seen[message.message_id] = message
    return list(seen.values())


class MessageReader:
    def __init__(
        self,
        directory: QueueDirectory,
        gateway: SQSGateway,
        logger: Logger,
        visibility_timeout: int = 3,
        wait_time_seconds: int = 1,
    ):
        self._directory = directory
        self._gateway = gateway
        self._logger = logger
        self._visibility_timeout = visibility_timeout
        self._wait_time_seconds = wait_time_seconds

    def fetch_messages(self, queue_name: str) -> Tuple[List[Message], int]:
        """
        Receives every message currently on a queue.

        Args:
            queue_name: The queue to browse, resolved through the directory.

        Returns:
            The deduplicated messages in first-seen order, and the approximate
            count SQS reported before fetching. The count is not adjusted for
            duplicates or for messages that were in flight.

        Raises:
            QueueNotFound: If the queue is not in the directory snapshot.
            CountUnavailable: If the approximate count cannot be fetched.
            GatewayFailure: If any receive fails. No partial list is returned.
        """
        queue = self._directory.lookup_by_name(queue_name)
        try:
            approximate_total = self._gateway.get_approximate_message_count(queue.url)
        except GatewayFailure as e:
            raise CountUnavailable(queue_name, e.cause) from e

        raw: List[Message] = []
        receive_calls = 0
        while len(raw) < approximate_total:
            batch = self._gateway.receive_messages(
                queue.url,
                max_messages=MAX_RECEIVE_BATCH,
                visibility_timeout=self._visibility_timeout,
                wait_time_seconds=self._wait_time_seconds,
            )
            receive_calls += 1
            if not batch:
                break
            raw.extend(batch)

        messages = dedupe_messages(raw)
        self._logger.info(
            "Fetched messages.",
            extra={
                "queue": queue_name,
                "approximate_total": approximate_total,
                "received": len(raw),
                "unique": len(messages),
                "receive_calls": receive_calls,
            },
        )
        return messages, approximate_total

    def find_message(self, queue_name: str, message_id: str) -> Message:
        messages, _ = self.fetch_messages(queue_name)
        for message in messages:
            if message.message_id == message_id:
                return message
        raise MessageNotFound(queue_name, message_id)
