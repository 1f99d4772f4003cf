from typing import Dict, List, Optional, Sequence, Tuple

import boto3
import pytest
from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from dlq_console.config import Settings
from dlq_console.directory import QueueDirectory
from dlq_console.exceptions import GatewayFailure
from dlq_console.messages import MessageReader
from dlq_console.model import AttributeMap, Message
from dlq_console.redrive import RedriveOrchestrator

REGION = "us-east-1"
ACCOUNT_URL = "https://sqs.us-east-1.amazonaws.com/123456789012"


def url_for(name: str) -> str:
    return f"{ACCOUNT_URL}/{name}"


def make_message(message_id: str, body: Optional[str] = None, **attributes: str) -> Message:
    return Message(
        message_id=message_id,
        body=body if body is not None else f"body-{message_id}",
        receipt_handle=f"rh-{message_id}",
        attributes=AttributeMap(attributes),
        system_attributes=AttributeMap(),
    )


def _failure(operation: str) -> GatewayFailure:
    cause = ClientError({"Error": {"Code": "ServiceUnavailable", "Message": "boom"}}, operation)
    return GatewayFailure(operation, cause)


class FakeGateway:
    """In-memory SQSGateway double that records every call in order."""

    def __init__(self):
        self.calls: List[Tuple] = []
        self.queue_pages: Dict[Optional[str], Tuple[List[str], Optional[str]]] = {None: ([], None)}
        self.list_failures: Dict[Optional[str], int] = {}
        self.counts: Dict[str, int] = {}
        self.count_failures: set = set()
        self.receive_batches: Dict[str, List[List[Message]]] = {}
        self.receive_failures: set = set()
        self.source_pages: Dict[str, Dict[Optional[str], Tuple[List[str], Optional[str]]]] = {}
        self.send_failures: set = set()
        self.delete_failures: set = set()
        self.visibility_failures: set = set()
        self.sent: List[Tuple[str, str, AttributeMap, AttributeMap]] = []
        self.deleted: List[Tuple[str, str]] = []
        self.purged: List[str] = []
        self.sent_types: List[Dict[str, str]] = []
        self.hidden: List[Tuple[str, str, int]] = []

    def set_queues(self, *names: str) -> None:
        self.queue_pages = {None: ([url_for(n) for n in names], None)}

    def list_queues(self, name_prefix=None, next_token=None, max_results=1000):
        self.calls.append(("list_queues", next_token))
        if self.list_failures.get(next_token, 0) > 0:
            self.list_failures[next_token] -= 1
            raise _failure("ListQueues")
        urls, token = self.queue_pages[next_token]
        if name_prefix:
            urls = [u for u in urls if u.rsplit("/", 1)[-1].startswith(name_prefix)]
        return list(urls), token

    def get_approximate_message_count(self, queue_url: str) -> int:
        self.calls.append(("count", queue_url))
        if queue_url in self.count_failures:
            raise _failure("GetQueueAttributes")
        return self.counts.get(queue_url, 0)

    def receive_messages(self, queue_url, max_messages=10, visibility_timeout=3, wait_time_seconds=1,
                         system_attribute_names: Sequence[str] = ()):
        self.calls.append(("receive", queue_url))
        if queue_url in self.receive_failures:
            raise _failure("ReceiveMessage")
        batches = self.receive_batches.get(queue_url, [])
        return batches.pop(0) if batches else []

    def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        self.calls.append(("delete", queue_url, receipt_handle))
        if queue_url in self.delete_failures:
            raise _failure("DeleteMessage")
        self.deleted.append((queue_url, receipt_handle))

    def change_message_visibility(self, queue_url: str, receipt_handle: str, visibility_timeout: int) -> None:
        self.calls.append(("visibility", queue_url, receipt_handle))
        if queue_url in self.visibility_failures:
            raise _failure("ChangeMessageVisibility")
        self.hidden.append((queue_url, receipt_handle, visibility_timeout))

    def purge_queue(self, queue_url: str) -> None:
        self.calls.append(("purge", queue_url))
        self.purged.append(queue_url)

    def list_redrive_sources(self, queue_url, next_token=None):
        self.calls.append(("sources", queue_url, next_token))
        pages = self.source_pages.get(queue_url, {None: ([], None)})
        return pages[next_token]

    def send_message(self, queue_url, body, attributes=None, system_attributes=None, attribute_types=None) -> str:
        self.calls.append(("send", queue_url))
        if queue_url in self.send_failures:
            raise _failure("SendMessage")
        self.sent.append((queue_url, body, attributes or AttributeMap(), system_attributes or AttributeMap()))
        self.sent_types.append(dict(attribute_types or {}))
        return f"new-{len(self.sent)}"


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Dummy credentials so no test can ever reach a real AWS account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_REGION", REGION)
    monkeypatch.setenv("POWERTOOLS_METRICS_NAMESPACE", "DLQConsoleTest")


@pytest.fixture
def logger():
    return Logger(service="dlq-console-test", level="DEBUG")


@pytest.fixture
def settings():
    return Settings(
        aws_region=REGION,
        refresh_on_start=False,
        refresh_retry_base_seconds=0,
        refresh_retry_max_seconds=0,
        receive_wait_seconds=0,
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def directory(gateway, logger):
    return QueueDirectory(gateway, logger, retry_base_seconds=0, retry_max_seconds=0)


@pytest.fixture
def reader(directory, gateway, logger):
    return MessageReader(directory, gateway, logger, wait_time_seconds=0)


@pytest.fixture
def orchestrator(directory, reader, gateway, logger):
    return RedriveOrchestrator(directory, reader, gateway, logger)


@pytest.fixture
def sqs_client():
    return boto3.client("sqs", region_name=REGION)


@pytest.fixture
def stubber(sqs_client):
    with Stubber(sqs_client) as stub:
        yield stub
        stub.assert_no_pending_responses()
