"""
The DLQ console service object.

One DLQService is built at startup and handed to the request layer. It owns
the SQS gateway, the queue directory and its refresher, and exposes the
operations the UI needs. Everything except the directory snapshot is
stateless, so the methods are safe to call from concurrent requests.
"""

from typing import List, Optional, Tuple

from aws_lambda_powertools import Logger
from mypy_boto3_sqs import SQSClient

from . import clients
from .config import Settings
from .directory import QueueDirectory
from .gateway import SQSGateway
from .messages import MessageReader
from .model import Message, QueueInfo, RedriveOutcome
from .redrive import RedriveOrchestrator
from .refresher import QueueRefresher


class DLQService:
    """
    Facade over the directory cache, message reader and redrive orchestrator.

    Args:
        settings: Runtime settings; defaults to Settings.from_env().
        sqs_client: An SQS client to use instead of building one from settings.
                    Tests pass a stubbed or moto-backed client here.
        logger: The Powertools Logger shared by every collaborator.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sqs_client: Optional[SQSClient] = None,
        logger: Optional[Logger] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.logger = logger or Logger(service=self.settings.service_name, level=self.settings.log_level)
        if sqs_client is None:
            sqs_client = clients.get_sqs_client(self.settings.aws_region, self.settings.sqs_endpoint_url)

        self.gateway = SQSGateway(sqs_client)
        self.directory = QueueDirectory(
            self.gateway,
            self.logger,
            name_prefix=self.settings.queue_name_prefix,
            page_size=self.settings.list_page_size,
            retry_base_seconds=self.settings.refresh_retry_base_seconds,
            retry_max_seconds=self.settings.refresh_retry_max_seconds,
        )
        self.refresher = QueueRefresher(self.directory, self.settings.refresh_interval_seconds, self.logger)
        self.reader = MessageReader(
            self.directory,
            self.gateway,
            self.logger,
            visibility_timeout=self.settings.receive_visibility_timeout,
            wait_time_seconds=self.settings.receive_wait_seconds,
        )
        self.redrive = RedriveOrchestrator(
            self.directory,
            self.reader,
            self.gateway,
            self.logger,
            visibility_timeout=self.settings.redrive_visibility_timeout,
        )

    def start(self) -> None:
        """
        Starts the periodic directory refresh.

        With `refresh_on_start` the first refresh runs synchronously, so the
        directory is populated before the first request is served; the
        background thread then waits a full interval before its next cycle.
        """
        if self.settings.refresh_on_start:
            self.refresher.run_once()
            self.refresher.start(run_immediately=False)
        else:
            self.refresher.start(run_immediately=True)

    def stop(self, timeout: Optional[float] = None) -> None:
        self.refresher.stop(timeout=timeout)

    def refresh_now(self) -> bool:
        return self.refresher.run_once()

    def list_queues(self, page: int = 1, size: int = 10, search: str = "") -> Tuple[List[QueueInfo], int]:
        return self.directory.list_queues(page, size, search)

    def fetch_messages(self, queue_name: str) -> Tuple[List[Message], int]:
        return self.reader.fetch_messages(queue_name)

    def delete_message(self, queue_name: str, message_id: str) -> None:
        self.redrive.delete_message(queue_name, message_id)

    def purge_queue(self, queue_name: str) -> None:
        self.redrive.purge_queue(queue_name)

    def list_redrive_sources(self, queue_name: str) -> List[QueueInfo]:
        return self.redrive.list_redrive_sources(queue_name)

    def retry_message(self, queue_name: str, message_id: str) -> RedriveOutcome:
        return self.redrive.retry_message(queue_name, message_id)

    def retry_all_messages(self, queue_name: str) -> List[RedriveOutcome]:
        return self.redrive.retry_all_messages(queue_name)
