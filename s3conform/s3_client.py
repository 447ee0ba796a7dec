"""S3 client factory for fixture provisioning.

Bucket creation and teardown are setup steps outside the probes under test,
so they go through a regular boto3 client configured for the server's
endpoint, credentials, region and addressing style.
"""

import boto3
from botocore.client import Config

from s3conform.models import ServerConfig


def build_s3_client(config: ServerConfig):
    """Build a boto3 S3 client for the server under test.

    Args:
        config: Server configuration containing endpoint, credentials,
               region, and addressing style.

    Returns:
        A boto3 S3 client configured for the server.
    """
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": config.addressing_style},
        retries={"max_attempts": 1},
    )

    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.aws_access_key_id,
        aws_secret_access_key=config.aws_secret_access_key,
        region_name=config.region_name,
        config=boto_config,
    )
