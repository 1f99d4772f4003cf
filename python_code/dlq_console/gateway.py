"""
Thin wrapper around the SQS API.

Every method maps one SQS call onto the console's data model and converts
botocore failures into `GatewayFailure`. No retries happen here beyond the
client's own retry configuration (see clients.BOTO_CONFIG_RETRYABLE).
"""

import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_sqs import SQSClient
from mypy_boto3_sqs.type_defs import MessageTypeDef

from .exceptions import GatewayFailure
from .model import AttributeMap, Message

MAX_RECEIVE_BATCH = 10

# System attributes requested on every receive. Only some of them can be
# sent back; see SEND_PARAMETER_SYSTEM_ATTRIBUTES and SENDABLE_SYSTEM_ATTRIBUTES.
RECEIVE_SYSTEM_ATTRIBUTES = (
    "MessageDeduplicationId",
    "MessageGroupId",
    "AWSTraceHeader",
    "SentTimestamp",
    "ApproximateReceiveCount",
)

# FIFO properties travel as top-level SendMessage parameters. A copy gets a
# fresh MessageDeduplicationId: SQS silently drops a send that repeats an id
# seen within the last five minutes.
SEND_PARAMETER_SYSTEM_ATTRIBUTES = ("MessageGroupId",)
REGENERATED_SYSTEM_ATTRIBUTES = ("MessageDeduplicationId",)
# SendMessage accepts only this one as a MessageSystemAttribute.
SENDABLE_SYSTEM_ATTRIBUTES = ("AWSTraceHeader",)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (ClientError, BotoCoreError) as e:
        raise GatewayFailure(operation, e) from e


def message_from_sqs(raw: MessageTypeDef) -> Message:
    """Converts a ReceiveMessage entry into a Message."""
    attributes = AttributeMap()
    attribute_types = AttributeMap()
    for key, value in raw.get("MessageAttributes", {}).items():
        # Binary attributes have no string form and are not republished.
        attributes[key] = value.get("StringValue", "")
        attribute_types[key] = value.get("DataType", "String")
    return Message(
        message_id=raw["MessageId"],
        body=raw.get("Body", ""),
        receipt_handle=raw["ReceiptHandle"],
        attributes=attributes,
        system_attributes=AttributeMap(raw.get("Attributes", {})),
        attribute_types=attribute_types,
    )


class SQSGateway:
    """The subset of the SQS API the console depends on."""

    def __init__(self, client: SQSClient):
        self._client = client

    def list_queues(
        self,
        name_prefix: Optional[str] = None,
        next_token: Optional[str] = None,
        max_results: int = 1000,
    ) -> Tuple[List[str], Optional[str]]:
        kwargs: Dict[str, Any] = {"MaxResults": max_results}
        if name_prefix:
            kwargs["QueueNamePrefix"] = name_prefix
        if next_token:
            kwargs["NextToken"] = next_token
        with _translate_errors("ListQueues"):
            response = self._client.list_queues(**kwargs)
        return list(response.get("QueueUrls", [])), response.get("NextToken")

    def get_approximate_message_count(self, queue_url: str) -> int:
        with _translate_errors("GetQueueAttributes"):
            response = self._client.get_queue_attributes(
                QueueUrl=queue_url, AttributeNames=["ApproximateNumberOfMessages"]
            )
        raw = response.get("Attributes", {}).get("ApproximateNumberOfMessages", "0")
        try:
            return max(0, int(raw))
        except ValueError as e:
            raise GatewayFailure("GetQueueAttributes", e) from e

    def receive_messages(
        self,
        queue_url: str,
        max_messages: int = MAX_RECEIVE_BATCH,
        visibility_timeout: int = 3,
        wait_time_seconds: int = 1,
        system_attribute_names: Sequence[str] = RECEIVE_SYSTEM_ATTRIBUTES,
    ) -> List[Message]:
        with _translate_errors("ReceiveMessage"):
            response = self._client.receive_message(
                QueueUrl=queue_url,
                MaxNumberOfMessages=max_messages,
                VisibilityTimeout=visibility_timeout,
                WaitTimeSeconds=wait_time_seconds,
                MessageAttributeNames=["All"],
                MessageSystemAttributeNames=list(system_attribute_names),
            )
        return [message_from_sqs(m) for m in response.get("Messages", [])]

    def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        with _translate_errors("DeleteMessage"):
            self._client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt_handle)

    def change_message_visibility(self, queue_url: str, receipt_handle: str, visibility_timeout: int) -> None:
        with _translate_errors("ChangeMessageVisibility"):
            self._client.change_message_visibility(
                QueueUrl=queue_url, ReceiptHandle=receipt_handle, VisibilityTimeout=visibility_timeout
            )

    def purge_queue(self, queue_url: str) -> None:
        with _translate_errors("PurgeQueue"):
            self._client.purge_queue(QueueUrl=queue_url)

    def list_redrive_sources(
        self, queue_url: str, next_token: Optional[str] = None
    ) -> Tuple[List[str], Optional[str]]:
        kwargs: Dict[str, Any] = {"QueueUrl": queue_url}
        if next_token:
            kwargs["NextToken"] = next_token
        with _translate_errors("ListDeadLetterSourceQueues"):
            response = self._client.list_dead_letter_source_queues(**kwargs)
        return list(response.get("queueUrls", [])), response.get("NextToken")

    def send_message(
        self,
        queue_url: str,
        body: str,
        attributes: Optional[AttributeMap] = None,
        system_attributes: Optional[AttributeMap] = None,
        attribute_types: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Publishes a message, dropping empty attribute values first.

        Message attributes keep their received DataType (Number, custom
        String.x types); attributes without a known type are sent as String.

        Returns:
            The MessageId assigned by SQS.
        """
        attrs = (attributes or AttributeMap()).non_empty()
        types = attribute_types or {}
        system_attrs = (system_attributes or AttributeMap()).non_empty()

        kwargs: Dict[str, Any] = {"QueueUrl": queue_url, "MessageBody": body}
        if attrs:
            kwargs["MessageAttributes"] = {
                k: {"DataType": types.get(k, "String"), "StringValue": v} for k, v in attrs.items()
            }
        for name in SEND_PARAMETER_SYSTEM_ATTRIBUTES:
            if name in system_attrs:
                kwargs[name] = system_attrs[name]
        for name in REGENERATED_SYSTEM_ATTRIBUTES:
            if name in system_attrs:
                kwargs[name] = uuid.uuid4().hex
        sendable = {
            k: {"DataType": "String", "StringValue": v}
            for k, v in system_attrs.items()
            if k in SENDABLE_SYSTEM_ATTRIBUTES
        }
        if sendable:
            kwargs["MessageSystemAttributes"] = sendable

        with _translate_errors("SendMessage"):
            response = self._client.send_message(**kwargs)
        return response["MessageId"]
