"""Scoped provisioning and teardown of the run's buckets.

BucketFixture is a context manager: entering creates the test bucket and
publishes it in the suite state; leaving applies the teardown policy on
every exit path, including exceptions and failed runs:

- always: remove the bucket and everything left in it
- on-success: only when the run passed, so failures can be inspected
- never: leave everything in place
"""

import logging
import random
import string
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from s3conform.models import BucketInfo, TeardownPolicy
from s3conform.registry import BUCKET, SuiteState

logger = logging.getLogger(__name__)

BUCKET_PREFIX = "s3conform-"

# S3 bucket names are at most 63 characters
BUCKET_NAME_LENGTH = 60

_NAME_ALPHABET = string.ascii_lowercase + string.digits


def random_bucket_name(prefix: str = BUCKET_PREFIX, length: int = BUCKET_NAME_LENGTH) -> str:
    """Random DNS-compatible bucket name starting with prefix."""
    suffix = "".join(random.choices(_NAME_ALPHABET, k=length - len(prefix)))
    return prefix + suffix


class BucketFixture:
    """Creates the test bucket and guarantees its teardown policy.

    Usage:
        with BucketFixture(s3_client, state, TeardownPolicy.ALWAYS) as fixture:
            ...
            fixture.mark_failed()  # when the run fails without raising
    """

    def __init__(
        self,
        s3_client: Any,
        state: SuiteState,
        policy: TeardownPolicy = TeardownPolicy.ALWAYS,
        bucket_name: Optional[str] = None,
    ):
        self.s3_client = s3_client
        self.state = state
        self.policy = policy
        self.bucket_name = bucket_name or random_bucket_name()
        self.created = False
        self.failed = False

    def create(self) -> BucketInfo:
        """Create the bucket and publish it as the run's bucket fixture."""
        params: dict[str, Any] = {"Bucket": self.bucket_name}
        region = self.state.config.region_name
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        self.s3_client.create_bucket(**params)
        self.created = True
        logger.info("Created bucket %s", self.bucket_name)

        bucket = BucketInfo(name=self.bucket_name)
        registry = self.state.registry
        registry.allocate(BUCKET, 1)
        registry.append(BUCKET, 0, bucket)
        registry.publish(BUCKET)
        return bucket

    def mark_failed(self) -> None:
        self.failed = True

    def should_teardown(self) -> bool:
        if not self.created or self.policy == TeardownPolicy.NEVER:
            return False
        if self.policy == TeardownPolicy.ON_SUCCESS:
            return not self.failed
        return True

    def _abort_uploads(self) -> None:
        response = self.s3_client.list_multipart_uploads(Bucket=self.bucket_name)
        for upload in response.get("Uploads", []):
            self.s3_client.abort_multipart_upload(
                Bucket=self.bucket_name,
                Key=upload["Key"],
                UploadId=upload["UploadId"],
            )

    def _delete_objects(self) -> None:
        paginator = self.s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name):
            for obj in page.get("Contents", []):
                self.s3_client.delete_object(Bucket=self.bucket_name, Key=obj["Key"])

    def teardown(self) -> bool:
        """Best-effort removal of the bucket and its contents.

        Each step is attempted even if an earlier one failed. Failures are
        logged, not raised, so they never mask the run's own outcome.

        Returns:
            True if every step succeeded.
        """
        ok = True
        for step in (self._abort_uploads, self._delete_objects):
            try:
                step()
            except (BotoCoreError, ClientError) as e:
                ok = False
                logger.warning("Teardown of %s: %s failed: %s", self.bucket_name, step.__name__, e)

        try:
            self.s3_client.delete_bucket(Bucket=self.bucket_name)
            logger.info("Removed bucket %s", self.bucket_name)
        except (BotoCoreError, ClientError) as e:
            ok = False
            logger.warning("Could not remove bucket %s: %s", self.bucket_name, e)
        return ok

    def __enter__(self) -> "BucketFixture":
        """Enter context manager - creates the bucket."""
        try:
            self.create()
        except BaseException:
            self.failed = True
            self.__exit__(None, None, None)
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit context manager - applies the teardown policy."""
        if exc_type is not None:
            self.failed = True
        if self.should_teardown():
            self.teardown()
        elif self.created:
            logger.info("Leaving bucket %s in place (teardown=%s)", self.bucket_name, self.policy.value)
        return False  # Don't suppress exceptions
