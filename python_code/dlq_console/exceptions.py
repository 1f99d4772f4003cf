"""
Error taxonomy for the DLQ console.

Callers need to distinguish "resource absent" from "upstream unavailable"
from "feature not supported"; the request layer maps each family to its own
HTTP status.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .model import RedriveOutcome


class DLQConsoleError(Exception):
    """Base class for every error raised by the console core."""

    kind = "error"


class NotFound(DLQConsoleError):
    kind = "not_found"


class QueueNotFound(NotFound):
    def __init__(self, queue_name: str):
        self.queue_name = queue_name
        super().__init__(f"Queue '{queue_name}' not found.")


class MessageNotFound(NotFound):
    def __init__(self, queue_name: str, message_id: str):
        self.queue_name = queue_name
        self.message_id = message_id
        super().__init__(f"Message '{message_id}' not found on queue '{queue_name}'.")


class GatewayFailure(DLQConsoleError):
    """An SQS API call failed. The botocore error is kept as `cause`."""

    kind = "gateway_failure"

    def __init__(self, operation: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(message or f"SQS {operation} failed: {cause}")


class CountUnavailable(GatewayFailure):
    def __init__(self, queue_name: str, cause: Optional[BaseException] = None):
        self.queue_name = queue_name
        super().__init__(
            "GetQueueAttributes",
            cause,
            f"Could not get the approximate message count of '{queue_name}': {cause}",
        )


class RedriveFailed(GatewayFailure):
    """
    A redrive stopped part way. `outcome` records which steps completed.

    When `outcome.published_to` covers every source but `outcome.deleted` is
    False, the message now exists both on the source queues and on the
    dead-letter queue; retrying the redrive will publish it again.
    """

    def __init__(self, operation: str, outcome: "RedriveOutcome", cause: Optional[BaseException] = None):
        self.outcome = outcome
        super().__init__(
            operation,
            cause,
            f"Redrive of message '{outcome.message_id}' from '{outcome.queue_name}' failed at {operation}: {cause}",
        )


class PreconditionFailed(DLQConsoleError):
    kind = "precondition_failed"


class NoRedriveQueues(PreconditionFailed):
    def __init__(self, queue_name: str):
        self.queue_name = queue_name
        super().__init__(f"No source queues redrive into '{queue_name}'.")


class Unimplemented(DLQConsoleError, NotImplementedError):
    kind = "unimplemented"
