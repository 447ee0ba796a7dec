"""Conformance case catalogue and probe execution.

This module contains:
- ProbeSession: builds, sends and verifies single probes for a server
- One run_* function per test case, each fanning probes out over its
  fixtures through the orchestrator
- CASE_CATALOGUE: the cases with the fixture kinds they produce, consume
  and retire
- sequence_cases: orders the catalogue so every case runs after the cases
  whose fixtures it needs
"""

import logging
import os
import random
import string
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Iterable, Optional, Sequence

import httpx

from s3conform.errors import CatalogueError, FixtureError, VerificationError
from s3conform.executor import Executor
from s3conform.headers import HeaderValidator, verify_standard_headers
from s3conform.models import (
    CompletedPart,
    MultipartObject,
    ObjectInfo,
    PartInfo,
    TaskResult,
)
from s3conform.orchestrator import CaseOutcome, Orchestrator, check_cancelled
from s3conform.registry import (
    BUCKET,
    MULTIPART_OBJECT,
    MULTIPART_UPLOAD,
    OBJECT,
    OBJECT_STAT,
    PART,
    FixtureRegistry,
    SuiteState,
)
from s3conform.request_builder import (
    USER_AGENT,
    RequestDescription,
    new_complete_multipart_request,
    new_get_object_if_match_request,
    new_get_object_if_modified_since_request,
    new_get_object_if_none_match_request,
    new_get_object_range_request,
    new_get_object_request,
    new_head_object_request,
    new_initiate_multipart_request,
    new_put_object_request,
    new_remove_object_request,
    new_upload_part_request,
)
from s3conform.verifier import Operation, verify

logger = logging.getLogger(__name__)

# An ETag no object will ever have
INVALID_ETAG = "1234567890"

# A date before any object was written
PAST_DATE = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Part payloads are sized uniformly in [MIN_PART_SIZE, MAX_PART_SIZE)
MIN_PART_SIZE = 4 * 1024 * 1024
MAX_PART_SIZE = 5 * 1024 * 1024

OBJECT_KEY_PREFIX = "s3conform-put-parallel"
MULTIPART_KEY_PREFIX = "s3conform-multipart"

_BODY_ALPHABET = string.ascii_letters + string.digits


def random_body(size: int) -> bytes:
    """Random printable payload of the given size."""
    return "".join(random.choices(_BODY_ALPHABET, k=size)).encode("ascii")


def random_part_payload() -> bytes:
    """Random binary payload sized for a single multipart part."""
    return os.urandom(random.randrange(MIN_PART_SIZE, MAX_PART_SIZE))


def strip_etag(value: Optional[str]) -> str:
    """Remove the surrounding quotes from an ETag header value."""
    if not value:
        return ""
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def quote_etag(etag: str) -> str:
    return f'"{etag}"'


@dataclass
class ProbeResponse:
    """What a verified probe hands back to its task."""

    status_code: int
    headers: httpx.Headers
    fields: dict[str, str]


class ProbeSession:
    """Runs probes for one server.

    Shared read-only by every task of every case: the executor's client and
    signer are safe to use from several threads at once.
    """

    def __init__(
        self,
        executor: Executor,
        orchestrator: Orchestrator,
        user_agent: str = USER_AGENT,
        header_validator: HeaderValidator = verify_standard_headers,
    ):
        self.executor = executor
        self.orchestrator = orchestrator
        self.user_agent = user_agent
        self.header_validator = header_validator

    def probe(
        self,
        request: RequestDescription,
        operation: Operation,
        payload: bytes = b"",
        byte_range: Optional[tuple[int, int]] = None,
    ) -> ProbeResponse:
        """Send one request and verify its response.

        Raises:
            TransportError: If the exchange fails.
            VerificationError: If the response breaks the contract.
        """
        with self.executor.execute(request) as response:
            fields = verify(
                response,
                operation,
                payload=payload,
                byte_range=byte_range,
                header_validator=self.header_validator,
            )
            return ProbeResponse(
                status_code=response.status_code,
                headers=httpx.Headers(response.headers),
                fields=fields,
            )

    def fan_out(
        self,
        fixtures: Sequence,
        task: Callable,
        registry: Optional[FixtureRegistry] = None,
        kind: Optional[str] = None,
    ) -> CaseOutcome:
        """Run task over fixtures, storing produced entities under kind."""
        on_result = None
        if registry is not None and kind is not None:
            registry.allocate(kind, len(fixtures))

            def on_result(result: TaskResult) -> None:
                registry.append(kind, result.index, result.entity)

        return self.orchestrator.run(fixtures, task, on_result=on_result)


# === OBJECT CASES ===


def run_put_object(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """Upload object_count small objects in parallel."""
    bucket = state.bucket
    size = state.settings.object_size
    fixtures = [
        ObjectInfo(key=f"{OBJECT_KEY_PREFIX}{i}", body=random_body(size))
        for i in range(state.settings.object_count)
    ]

    def task(index: int, obj: ObjectInfo, cancel: threading.Event) -> ObjectInfo:
        request = new_put_object_request(bucket, obj.key, obj.body, session.user_agent)
        response = session.probe(request, Operation.PUT_OBJECT)
        etag = strip_etag(response.headers.get("ETag"))
        if not etag:
            raise VerificationError(
                "header", f"PUT {obj.key} returned no ETag", expected="ETag", actual=None
            )
        return replace(obj, etag=etag, size=len(obj.body))

    return session.fan_out(fixtures, task, state.registry, OBJECT)


def run_head_object(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """HEAD every uploaded object and record its Last-Modified time."""
    bucket = state.bucket
    objects = state.registry.get(OBJECT)

    def task(index: int, obj: ObjectInfo, cancel: threading.Event) -> ObjectInfo:
        request = new_head_object_request(bucket, obj.key, session.user_agent)
        response = session.probe(request, Operation.HEAD_OBJECT)

        etag = strip_etag(response.headers.get("ETag"))
        if etag != obj.etag:
            raise VerificationError(
                "header",
                f"Unexpected ETag for {obj.key}: wanted {obj.etag}, got {etag}",
                expected=obj.etag,
                actual=etag,
            )

        content_length = response.headers.get("Content-Length")
        if content_length != str(obj.size):
            raise VerificationError(
                "header",
                f"Unexpected Content-Length for {obj.key}: wanted {obj.size}, got {content_length}",
                expected=obj.size,
                actual=content_length,
            )

        last_modified = response.headers.get("Last-Modified")
        try:
            modified_at = parsedate_to_datetime(last_modified)
        except (TypeError, ValueError) as e:
            raise VerificationError(
                "header",
                f"Malformed Last-Modified for {obj.key}: {last_modified!r}",
                expected="HTTP-date",
                actual=last_modified,
            ) from e

        return replace(obj, last_modified=modified_at)

    return session.fan_out(objects, task, state.registry, OBJECT_STAT)


def run_get_object(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """GET every object and compare the body with what was uploaded."""
    bucket = state.bucket

    def task(index: int, obj: ObjectInfo, cancel: threading.Event) -> None:
        request = new_get_object_request(bucket, obj.key, session.user_agent)
        session.probe(request, Operation.GET_OBJECT, payload=obj.body)

    return session.fan_out(state.registry.get(OBJECT), task)


def run_get_object_if_match(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """If-Match with the object's ETag returns it; a wrong ETag gets 412."""
    bucket = state.bucket
    user_agent = session.user_agent

    def task(index: int, obj: ObjectInfo, cancel: threading.Event) -> None:
        request = new_get_object_if_match_request(
            bucket, obj.key, quote_etag(obj.etag), user_agent
        )
        session.probe(request, Operation.GET_IF_MATCH_PASS, payload=obj.body)

        check_cancelled(cancel, index)
        bad_request = new_get_object_if_match_request(
            bucket, obj.key, quote_etag(INVALID_ETAG), user_agent
        )
        session.probe(bad_request, Operation.GET_IF_MATCH_FAIL)

    return session.fan_out(state.registry.get(OBJECT), task)


def run_get_object_if_none_match(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """If-None-Match with the object's ETag gets 304; a wrong ETag returns it."""
    bucket = state.bucket
    user_agent = session.user_agent

    def task(index: int, obj: ObjectInfo, cancel: threading.Event) -> None:
        request = new_get_object_if_none_match_request(
            bucket, obj.key, quote_etag(obj.etag), user_agent
        )
        session.probe(request, Operation.GET_IF_NONE_MATCH_PASS)

        check_cancelled(cancel, index)
        other_request = new_get_object_if_none_match_request(
            bucket, obj.key, quote_etag(INVALID_ETAG), user_agent
        )
        session.probe(other_request, Operation.GET_IF_NONE_MATCH_FAIL, payload=obj.body)

    return session.fan_out(state.registry.get(OBJECT), task)


def run_get_object_if_modified_since(
    session: ProbeSession, state: SuiteState
) -> CaseOutcome:
    """Not modified since Last-Modified gets 304; modified since 1970 returns it."""
    bucket = state.bucket
    user_agent = session.user_agent

    def task(index: int, obj: ObjectInfo, cancel: threading.Event) -> None:
        request = new_get_object_if_modified_since_request(
            bucket, obj.key, obj.last_modified, user_agent
        )
        session.probe(request, Operation.GET_IF_MODIFIED_SINCE_FAIL)

        check_cancelled(cancel, index)
        past_request = new_get_object_if_modified_since_request(
            bucket, obj.key, PAST_DATE, user_agent
        )
        session.probe(past_request, Operation.GET_IF_MODIFIED_SINCE_PASS, payload=obj.body)

    return session.fan_out(state.registry.get(OBJECT_STAT), task)


def random_byte_range(size: int) -> tuple[int, int]:
    """Pick 0 <= start <= end < size uniformly."""
    start = random.randrange(size)
    end = random.randrange(start, size)
    return start, end


def run_get_object_range(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """GET a random inclusive byte range of every object."""
    bucket = state.bucket

    def task(index: int, obj: ObjectInfo, cancel: threading.Event) -> None:
        start, end = random_byte_range(len(obj.body))
        request = new_get_object_range_request(bucket, obj.key, start, end, session.user_agent)
        session.probe(
            request, Operation.GET_RANGE, payload=obj.body, byte_range=(start, end)
        )

    return session.fan_out(state.registry.get(OBJECT), task)


# === MULTIPART CASES ===


def run_initiate_multipart(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """Start multipart_count uploads and record their upload IDs."""
    bucket = state.bucket
    keys = [f"{MULTIPART_KEY_PREFIX}{i}" for i in range(state.settings.multipart_count)]

    def task(index: int, key: str, cancel: threading.Event) -> MultipartObject:
        request = new_initiate_multipart_request(bucket, key, session.user_agent)
        response = session.probe(request, Operation.INITIATE_MULTIPART)
        return MultipartObject(key=key, upload_id=response.fields["UploadId"])

    return session.fan_out(keys, task, state.registry, MULTIPART_UPLOAD)


def run_upload_part(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """Upload one part to every initiated upload.

    The produced parts land in the slot of the upload they belong to, so
    they stay paired with it however the tasks finish.
    """
    bucket = state.bucket
    uploads = state.registry.get(MULTIPART_UPLOAD)

    def task(index: int, upload: MultipartObject, cancel: threading.Event) -> tuple:
        payload = random_part_payload()
        request = new_upload_part_request(
            bucket, upload.key, upload.upload_id, 1, payload, session.user_agent
        )
        response = session.probe(request, Operation.UPLOAD_PART)
        etag = strip_etag(response.headers.get("ETag"))
        if not etag:
            raise VerificationError(
                "header",
                f"Upload-Part for {upload.key} returned no ETag",
                expected="ETag",
                actual=None,
            )
        return (PartInfo(part_number=1, etag=etag, size=len(payload)),)

    return session.fan_out(uploads, task, state.registry, PART)


def run_complete_multipart(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """Complete every upload from the parts recorded for it."""
    bucket = state.bucket
    uploads = state.registry.get(MULTIPART_UPLOAD)
    parts = state.registry.get(PART)
    if len(uploads) != len(parts):
        raise FixtureError(
            f"{len(uploads)} multipart uploads but parts for {len(parts)}"
        )

    def task(index: int, fixture: tuple, cancel: threading.Event) -> MultipartObject:
        upload, upload_parts = fixture
        completed = [CompletedPart(p.part_number, p.etag) for p in upload_parts]
        request = new_complete_multipart_request(
            bucket, upload.key, upload.upload_id, completed, session.user_agent
        )
        response = session.probe(request, Operation.COMPLETE_MULTIPART)
        return replace(upload, etag=strip_etag(response.fields["ETag"]))

    return session.fan_out(
        list(zip(uploads, parts)), task, state.registry, MULTIPART_OBJECT
    )


# === REMOVAL ===


def run_remove_object(session: ProbeSession, state: SuiteState) -> CaseOutcome:
    """DELETE every plain and multipart object."""
    bucket = state.bucket
    keys = [obj.key for obj in state.registry.get(OBJECT)]
    keys += [obj.key for obj in state.registry.get(MULTIPART_OBJECT)]

    def task(index: int, key: str, cancel: threading.Event) -> None:
        request = new_remove_object_request(bucket, key, session.user_agent)
        session.probe(request, Operation.REMOVE_OBJECT)

    return session.fan_out(keys, task)


@dataclass(frozen=True)
class ConformanceCase:
    """A test case and the fixture kinds it depends on."""

    case_id: str
    name: str
    description: str
    run: Callable[[ProbeSession, SuiteState], CaseOutcome]
    produces: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()
    retires: tuple[str, ...] = ()


CASE_CATALOGUE = [
    ConformanceCase(
        case_id="put_object",
        name="PutObject",
        description="Upload objects in parallel; each must return 200 and an ETag.",
        run=run_put_object,
        produces=(OBJECT,),
        consumes=(BUCKET,),
    ),
    ConformanceCase(
        case_id="head_object",
        name="HeadObject",
        description="HEAD returns the uploaded ETag, size and Last-Modified.",
        run=run_head_object,
        produces=(OBJECT_STAT,),
        consumes=(BUCKET, OBJECT),
    ),
    ConformanceCase(
        case_id="get_object",
        name="GetObject",
        description="GET returns the uploaded body byte for byte.",
        run=run_get_object,
        consumes=(BUCKET, OBJECT),
    ),
    ConformanceCase(
        case_id="get_object_if_match",
        name="GetObject (If-Match)",
        description="Matching ETag returns 200; a wrong ETag returns 412 PreconditionFailed.",
        run=run_get_object_if_match,
        consumes=(BUCKET, OBJECT),
    ),
    ConformanceCase(
        case_id="get_object_if_none_match",
        name="GetObject (If-None-Match)",
        description="Matching ETag returns 304; a wrong ETag returns the body.",
        run=run_get_object_if_none_match,
        consumes=(BUCKET, OBJECT),
    ),
    ConformanceCase(
        case_id="get_object_if_modified_since",
        name="GetObject (If-Modified-Since)",
        description="Last-Modified returns 304; an earlier date returns the body.",
        run=run_get_object_if_modified_since,
        consumes=(BUCKET, OBJECT_STAT),
    ),
    ConformanceCase(
        case_id="get_object_range",
        name="GetObject (Range)",
        description="A byte range returns 206 and exactly that slice.",
        run=run_get_object_range,
        consumes=(BUCKET, OBJECT),
    ),
    ConformanceCase(
        case_id="initiate_multipart",
        name="Multipart (Initiate)",
        description="Initiating an upload returns an UploadId.",
        run=run_initiate_multipart,
        produces=(MULTIPART_UPLOAD,),
        consumes=(BUCKET,),
    ),
    ConformanceCase(
        case_id="upload_part",
        name="Multipart (Upload-Part)",
        description="Each part upload returns 200, an empty body and an ETag.",
        run=run_upload_part,
        produces=(PART,),
        consumes=(BUCKET, MULTIPART_UPLOAD),
    ),
    ConformanceCase(
        case_id="complete_multipart",
        name="Multipart (Complete)",
        description="Completing from the uploaded parts returns a result document.",
        run=run_complete_multipart,
        produces=(MULTIPART_OBJECT,),
        consumes=(BUCKET, MULTIPART_UPLOAD, PART),
    ),
    ConformanceCase(
        case_id="remove_object",
        name="RemoveObject",
        description="DELETE of every object returns 204 and an empty body.",
        run=run_remove_object,
        consumes=(BUCKET, OBJECT, MULTIPART_OBJECT),
        retires=(OBJECT, OBJECT_STAT, MULTIPART_OBJECT),
    ),
]

CASE_DEFINITIONS = {case.case_id: case for case in CASE_CATALOGUE}


def sequence_cases(
    cases: Sequence[ConformanceCase],
    available: Iterable[str] = (BUCKET,),
) -> list[ConformanceCase]:
    """Order cases so each runs after the cases its fixtures depend on.

    A case runs after every producer of a kind it consumes, and a case that
    retires a kind runs after every other case consuming it. Ties keep the
    catalogue order.

    Args:
        cases: The catalogue, in preferred order.
        available: Kinds provided before any case runs.

    Returns:
        The cases in a valid execution order.

    Raises:
        CatalogueError: If a consumed kind has no producer or the
            dependencies form a cycle.
    """
    available = set(available)
    producers: dict[str, list[int]] = {}
    for position, case in enumerate(cases):
        for kind in case.produces:
            producers.setdefault(kind, []).append(position)

    edges: dict[int, set[int]] = {position: set() for position in range(len(cases))}
    for position, case in enumerate(cases):
        for kind in case.consumes:
            if kind not in available and kind not in producers:
                raise CatalogueError(
                    f"Case '{case.case_id}' consumes '{kind}' but nothing produces it"
                )
            for producer in producers.get(kind, []):
                if producer != position:
                    edges[producer].add(position)
        for kind in case.retires:
            for other, other_case in enumerate(cases):
                if other != position and kind in other_case.consumes:
                    edges[other].add(position)

    indegree = {position: 0 for position in edges}
    for targets in edges.values():
        for target in targets:
            indegree[target] += 1

    ready = sorted(position for position, degree in indegree.items() if degree == 0)
    ordered: list[ConformanceCase] = []
    while ready:
        position = ready.pop(0)
        ordered.append(cases[position])
        for target in sorted(edges[position]):
            indegree[target] -= 1
            if indegree[target] == 0:
                ready.append(target)
        ready.sort()

    if len(ordered) != len(cases):
        stuck = [cases[p].case_id for p, degree in indegree.items() if degree > 0]
        raise CatalogueError(f"Cyclic fixture dependencies between cases: {stuck}")

    return ordered
