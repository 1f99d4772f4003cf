"""
Data models for the DLQ console.

This module defines the structures passed between the directory cache, the
message reader, the redrive orchestrator and the request layer. Dataclasses
keep the contracts explicit and self-documenting; `to_dict` methods produce
the JSON shapes served to the UI.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Sentinel message count for a queue whose attributes could not be fetched.
COUNT_UNAVAILABLE = -1


def queue_name_from_url(url: str) -> str:
    """Returns the queue name, i.e. the last path segment of an SQS queue URL."""
    return url.rstrip("/").rsplit("/", 1)[-1]


class AttributeMap(Dict[str, str]):
    """
    A string-to-string attribute mapping as surfaced to the UI.

    SQS rejects attributes with empty values, so anything destined for a
    SendMessage call must go through `non_empty()` first.
    """

    def non_empty(self) -> "AttributeMap":
        return AttributeMap({k: v for k, v in self.items() if v != ""})


@dataclass(frozen=True)
class Queue:
    """
    A queue observed during a directory refresh.

    Attributes:
        name: The queue name, unique within the directory.
        url: The queue URL used for every SQS call.
    """

    name: str
    url: str

    @classmethod
    def from_url(cls, url: str) -> "Queue":
        return cls(name=queue_name_from_url(url), url=url)


@dataclass
class QueueInfo:
    """A queue together with its approximate, possibly stale, message count."""

    url: str
    name: str
    message_count: int = COUNT_UNAVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "name": self.name, "messageCount": self.message_count}


@dataclass
class Message:
    """
    A transient view of one received message. Never cached.

    Attributes:
        message_id: Identity used for deduplication within a retrieval session.
        body: The raw message body.
        receipt_handle: Single-use token authorizing one delete.
        attributes: Custom message attributes (string values only).
        system_attributes: SQS system attributes such as MessageGroupId.
        attribute_types: DataType of each custom attribute as received
                         (String, Number or a custom String.x type).
    """

    message_id: str
    body: str
    receipt_handle: str
    attributes: AttributeMap = field(default_factory=AttributeMap)
    system_attributes: AttributeMap = field(default_factory=AttributeMap)
    attribute_types: AttributeMap = field(default_factory=AttributeMap)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messageId": self.message_id,
            "body": self.body,
            "receiptHandle": self.receipt_handle,
            "attributes": dict(self.attributes),
            "systemAttributes": dict(self.system_attributes),
        }


@dataclass
class RedriveOutcome:
    """
    The step-by-step result of redriving one message.

    This structure is critical for data loss prevention. A redrive is not a
    transaction: publishes that succeeded are never rolled back, and a failed
    delete leaves a duplicate on the source queue. Callers inspect these
    fields to tell the cases apart.

    Attributes:
        queue_name: The dead-letter queue the message was taken from.
        message_id: The redriven message.
        sources: Every source queue discovered for the dead-letter queue.
        published_to: Source queues that accepted a copy of the message.
        failed_source: The source queue whose publish failed, if any.
        deleted: True once the original was removed from the dead-letter queue.
    """

    queue_name: str
    message_id: str
    sources: List[QueueInfo] = field(default_factory=list)
    published_to: List[QueueInfo] = field(default_factory=list)
    failed_source: Optional[QueueInfo] = None
    deleted: bool = False

    @property
    def succeeded(self) -> bool:
        return self.deleted and len(self.published_to) == len(self.sources)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queueName": self.queue_name,
            "messageId": self.message_id,
            "sources": [q.name for q in self.sources],
            "publishedTo": [q.name for q in self.published_to],
            "failedSource": self.failed_source.name if self.failed_source else None,
            "deleted": self.deleted,
            "succeeded": self.succeeded,
        }
