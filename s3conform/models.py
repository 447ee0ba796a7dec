"""Data models for the S3 conformance harness."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ResultStatus(Enum):
    """Status of a test case or of the whole run."""

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"
    SKIP = "skip"


class TeardownPolicy(Enum):
    """When provisioned fixtures are removed at the end of a run."""

    ALWAYS = "always"
    ON_SUCCESS = "on-success"
    NEVER = "never"


@dataclass(frozen=True)
class ServerConfig:
    """Connection details of the server under test. Read-only for a run."""

    endpoint_url: str
    aws_access_key_id: str
    aws_secret_access_key: str
    region_name: str = "us-east-1"
    addressing_style: str = "path"


@dataclass
class RunSettings:
    """Knobs controlling how the catalogue is executed."""

    object_count: int = 50
    object_size: int = 60
    multipart_count: int = 2
    max_in_flight: int = 16
    cancel_on_failure: bool = True
    teardown: TeardownPolicy = TeardownPolicy.ALWAYS
    timeout: float = 60.0


@dataclass(frozen=True)
class BucketInfo:
    """A bucket provisioned for the run."""

    name: str


@dataclass(frozen=True)
class ObjectInfo:
    """An object uploaded by the harness.

    The ETag is stored without its surrounding quotes.
    """

    key: str
    body: bytes
    etag: str = ""
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class MultipartObject:
    """An object with an initiated (or completed) multipart upload."""

    key: str
    upload_id: str
    etag: str = ""


@dataclass(frozen=True)
class PartInfo:
    """A part uploaded to a multipart upload."""

    part_number: int
    etag: str
    size: int


@dataclass(frozen=True)
class CompletedPart:
    """The (part number, ETag) pair sent when completing an upload."""

    part_number: int
    etag: str


@dataclass(frozen=True)
class TaskResult:
    """Outcome of one concurrent probe task.

    index identifies the fixture slot the task worked on; it is what the
    aggregation point uses to place entity, never the arrival order.
    """

    index: int
    entity: Any = None
    error: Optional[Exception] = None


@dataclass
class CaseResult:
    """Result of a single test case execution."""

    case_id: str
    case_name: str
    status: ResultStatus
    probes: int = 0
    duration_seconds: float = 0.0
    error_message: Optional[str] = None


@dataclass
class RunResult:
    """Aggregated results for a conformance run."""

    endpoint_url: str
    status: ResultStatus
    cases: dict[str, CaseResult] = field(default_factory=dict)
    duration_seconds: float = 0.0
    error_message: Optional[str] = None

    @property
    def all_passed(self) -> bool:
        """Check if every case passed."""
        return self.status == ResultStatus.PASS
