"""
Redrive and housekeeping operations on dead-letter queues.

A redrive copies a message from a dead-letter queue to every source queue
whose RedrivePolicy targets it, and only then deletes the original. The
publish steps are not transactional: copies already sent are never rolled
back, which is why each redrive reports a RedriveOutcome.
"""

from typing import List, Optional

from aws_lambda_powertools import Logger

from .directory import QueueDirectory
from .exceptions import GatewayFailure, NoRedriveQueues, RedriveFailed, Unimplemented
from .gateway import SQSGateway
from .messages import MessageReader
from .model import QueueInfo, RedriveOutcome, queue_name_from_url

DEFAULT_REDRIVE_VISIBILITY_TIMEOUT = 30


class RedriveOrchestrator:
    def __init__(
        self,
        directory: QueueDirectory,
        reader: MessageReader,
        gateway: SQSGateway,
        logger: Logger,
        visibility_timeout: int = DEFAULT_REDRIVE_VISIBILITY_TIMEOUT,
    ):
        self._directory = directory
        self._reader = reader
        self._gateway = gateway
        self._logger = logger
        self._visibility_timeout = visibility_timeout

    def list_redrive_sources(self, queue_name: str) -> List[QueueInfo]:
        """
        Lists every queue configured to dead-letter into `queue_name`.

        Source queues are reported with COUNT_UNAVAILABLE; their depth is not
        fetched.
        """
        queue = self._directory.lookup_by_name(queue_name)
        sources: List[QueueInfo] = []
        next_token: Optional[str] = None
        while True:
            urls, next_token = self._gateway.list_redrive_sources(queue.url, next_token=next_token)
            sources.extend(QueueInfo(url=url, name=queue_name_from_url(url)) for url in urls)
            if not next_token:
                break
        return sources

    def _require_sources(self, queue_name: str) -> List[QueueInfo]:
        sources = self.list_redrive_sources(queue_name)
        if not sources:
            raise NoRedriveQueues(queue_name)
        return sources

    def retry_message(self, queue_name: str, message_id: str) -> RedriveOutcome:
        """
        Redrives one message from a dead-letter queue to all of its sources.

        The original is deleted only after every publish succeeded. Before the
        first publish the message is hidden for `visibility_timeout` seconds so
        that a concurrent browse cannot receive it and invalidate the receipt
        handle. A fan-out that outlasts that window can still lose the final
        delete to a newer receipt; SQS then keeps the original and the
        redrive leaves a duplicate.

        Returns:
            The completed RedriveOutcome.

        Raises:
            NoRedriveQueues: If no queue redrives into `queue_name`. Nothing is
                             received, published or deleted.
            MessageNotFound: If the message is not currently on the queue.
            RedriveFailed: If hiding the message, a publish or the final delete
                           failed. Its `outcome` lists the sources already
                           published to.
        """
        dlq = self._directory.lookup_by_name(queue_name)
        sources = self._require_sources(queue_name)
        message = self._reader.find_message(queue_name, message_id)
        outcome = RedriveOutcome(queue_name=queue_name, message_id=message_id, sources=sources)

        try:
            self._gateway.change_message_visibility(dlq.url, message.receipt_handle, self._visibility_timeout)
        except GatewayFailure as e:
            self._logger.error(
                "Could not hide message before redrive; nothing was published.",
                extra={"queue": queue_name, "message_id": message_id, "error": str(e)},
            )
            raise RedriveFailed("ChangeMessageVisibility", outcome, e.cause) from e

        for source in sources:
            try:
                new_id = self._gateway.send_message(
                    source.url,
                    message.body,
                    attributes=message.attributes,
                    system_attributes=message.system_attributes,
                    attribute_types=message.attribute_types,
                )
            except GatewayFailure as e:
                outcome.failed_source = source
                self._logger.error(
                    "Redrive publish failed; original message kept on the dead-letter queue.",
                    extra={
                        "queue": queue_name,
                        "message_id": message_id,
                        "failed_source": source.name,
                        "published_to": [q.name for q in outcome.published_to],
                        "error": str(e),
                    },
                )
                raise RedriveFailed("SendMessage", outcome, e.cause) from e
            outcome.published_to.append(source)
            self._logger.info(
                "Redrove message to source queue.",
                extra={"queue": queue_name, "message_id": message_id, "source": source.name, "new_message_id": new_id},
            )

        try:
            self._gateway.delete_message(dlq.url, message.receipt_handle)
        except GatewayFailure as e:
            self._logger.critical(
                "Message redriven but not deleted from the dead-letter queue; it is now duplicated.",
                extra={"queue": queue_name, "message_id": message_id, "error": str(e)},
            )
            raise RedriveFailed("DeleteMessage", outcome, e.cause) from e

        outcome.deleted = True
        self._logger.info(
            "Message redriven.",
            extra={"queue": queue_name, "message_id": message_id, "sources": len(sources)},
        )
        return outcome

    def retry_all_messages(self, queue_name: str) -> List[RedriveOutcome]:
        # SQS has no atomic bulk redrive; a batched design with its own
        # partial-failure handling is needed before this can be offered.
        self._require_sources(queue_name)
        raise Unimplemented(f"Redriving all messages from '{queue_name}' is not supported.")

    def delete_message(self, queue_name: str, message_id: str) -> None:
        message = self._reader.find_message(queue_name, message_id)
        queue = self._directory.lookup_by_name(queue_name)
        self._gateway.delete_message(queue.url, message.receipt_handle)
        self._logger.info("Deleted message.", extra={"queue": queue_name, "message_id": message_id})

    def purge_queue(self, queue_name: str) -> None:
        """Issues a purge. SQS completes it asynchronously; this does not wait."""
        queue = self._directory.lookup_by_name(queue_name)
        self._gateway.purge_queue(queue.url)
        self._logger.info("Purge requested.", extra={"queue": queue_name})
