"""
Configuration for the DLQ console.

All settings are read from environment variables once, when the service is
constructed. Required values fail fast with a ValueError; everything has a
sensible default so a bare Lambda deployment only needs AWS credentials.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_REFRESH_INTERVAL_SECONDS = 120 * 60
# SQS ListQueues hard maximum.
MAX_LIST_QUEUES_PAGE_SIZE = 1000

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Gets an environment variable or raises a ValueError for fast-failure.

    Args:
        name: The name of the environment variable.
        default: An optional default value. If not provided, the variable is required.

    Returns:
        The value of the environment variable.

    Raises:
        ValueError: If the required environment variable is not set.
    """
    value = os.environ.get(name, default)
    if value is None:
        raise ValueError(f"FATAL: Environment variable '{name}' is not set.")
    return value


def get_int_env_var(name: str, default: int, minimum: int = 0) -> int:
    raw = get_env_var(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"FATAL: Environment variable '{name}' must be an integer, got '{raw}'.") from None
    if value < minimum:
        raise ValueError(f"FATAL: Environment variable '{name}' must be >= {minimum}, got {value}.")
    return value


def get_float_env_var(name: str, default: float) -> float:
    raw = get_env_var(name, str(default))
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"FATAL: Environment variable '{name}' must be a number, got '{raw}'.") from None
    if value < 0:
        raise ValueError(f"FATAL: Environment variable '{name}' must not be negative, got {value}.")
    return value


def get_bool_env_var(name: str, default: bool) -> bool:
    raw = get_env_var(name, "true" if default else "false").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"FATAL: Environment variable '{name}' must be a boolean, got '{raw}'.")


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for the console.

    Attributes:
        aws_region: Region for the SQS client. None lets boto3 resolve it.
        sqs_endpoint_url: Optional alternative endpoint (LocalStack, ElasticMQ).
        queue_name_prefix: Restricts the directory to queues with this prefix.
        refresh_interval_seconds: Period between queue directory refreshes.
        refresh_on_start: Whether start() populates the directory synchronously.
        list_page_size: MaxResults for each ListQueues call.
        refresh_retry_base_seconds: First backoff delay after a failed refresh page.
        refresh_retry_max_seconds: Upper bound for the refresh backoff delay.
        receive_visibility_timeout: Seconds a browsed message stays hidden from
                                    other receivers.
        receive_wait_seconds: Long-poll wait for each ReceiveMessage call.
        redrive_visibility_timeout: Seconds a message being redriven stays hidden
                                    while it is copied to its source queues.
        log_level: Level for the Powertools logger.
        service_name: Service name stamped on every log line and metric.
        metrics_namespace: CloudWatch namespace for EMF metrics.
    """

    aws_region: Optional[str] = None
    sqs_endpoint_url: Optional[str] = None
    queue_name_prefix: Optional[str] = None
    refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL_SECONDS
    refresh_on_start: bool = True
    list_page_size: int = MAX_LIST_QUEUES_PAGE_SIZE
    refresh_retry_base_seconds: float = 0.5
    refresh_retry_max_seconds: float = 60.0
    receive_visibility_timeout: int = 3
    receive_wait_seconds: int = 1
    redrive_visibility_timeout: int = 30
    log_level: str = "INFO"
    service_name: str = "dlq-console"
    metrics_namespace: str = "DLQConsole"

    @classmethod
    def from_env(cls) -> "Settings":
        list_page_size = get_int_env_var("LIST_QUEUES_PAGE_SIZE", MAX_LIST_QUEUES_PAGE_SIZE, minimum=1)
        if list_page_size > MAX_LIST_QUEUES_PAGE_SIZE:
            raise ValueError(
                f"FATAL: LIST_QUEUES_PAGE_SIZE must be <= {MAX_LIST_QUEUES_PAGE_SIZE}, got {list_page_size}."
            )
        return cls(
            aws_region=os.environ.get("AWS_REGION") or None,
            sqs_endpoint_url=os.environ.get("SQS_ENDPOINT_URL") or None,
            queue_name_prefix=os.environ.get("QUEUE_NAME_PREFIX") or None,
            refresh_interval_seconds=get_int_env_var(
                "REFRESH_INTERVAL_SECONDS", DEFAULT_REFRESH_INTERVAL_SECONDS, minimum=1
            ),
            refresh_on_start=get_bool_env_var("REFRESH_ON_START", True),
            list_page_size=list_page_size,
            refresh_retry_base_seconds=get_float_env_var("REFRESH_RETRY_BASE_SECONDS", 0.5),
            refresh_retry_max_seconds=get_float_env_var("REFRESH_RETRY_MAX_SECONDS", 60.0),
            receive_visibility_timeout=get_int_env_var("RECEIVE_VISIBILITY_TIMEOUT", 3),
            receive_wait_seconds=get_int_env_var("RECEIVE_WAIT_SECONDS", 1),
            redrive_visibility_timeout=get_int_env_var("REDRIVE_VISIBILITY_TIMEOUT", 30),
            log_level=get_env_var("LOG_LEVEL", "INFO").upper(),
            service_name=get_env_var("SERVICE_NAME", "dlq-console"),
            metrics_namespace=get_env_var("METRICS_NAMESPACE", "DLQConsole"),
        )
