"""
A factory module for creating the boto3 SQS client.

The service receives its client from here, so tests can either hand in a
client wrapped in a botocore Stubber or let `moto` intercept the calls made by
a client built by this factory. Nothing else in the package constructs AWS
clients.
"""

import logging
import os
from typing import Optional

import boto3
import botocore.config
from mypy_boto3_sqs import SQSClient

logger = logging.getLogger(__name__)

# A shared, robust retry configuration. Throttling and transient 5xx errors
# are absorbed here; the service layer itself does not retry SQS calls.
BOTO_CONFIG_RETRYABLE = botocore.config.Config(
    retries={"max_attempts": 5, "mode": "adaptive"}
)


def get_sqs_client(
    region_name: Optional[str] = None, endpoint_url: Optional[str] = None
) -> SQSClient:
    """
    Returns an SQS client configured with the shared retry policy.

    Args:
        region_name: AWS region. Falls back to AWS_REGION, then to boto3's own
                     resolution chain.
        endpoint_url: Optional endpoint override for SQS-compatible servers
                      such as LocalStack or ElasticMQ.

    Returns:
        A boto3 SQS client.
    """
    aws_region = region_name or os.environ.get("AWS_REGION")
    if not aws_region:
        logger.warning("AWS_REGION not set, boto3 will attempt to resolve it.")

    # In a test run with moto active, this log confirms the mocked backend.
    if os.environ.get("USE_MOTO"):
        logger.info("MOTO ENABLED: Returning mocked SQS client.")

    sqs_client: SQSClient = boto3.client(
        "sqs",
        region_name=aws_region,
        endpoint_url=endpoint_url,
        config=BOTO_CONFIG_RETRYABLE,
    )
    return sqs_client
