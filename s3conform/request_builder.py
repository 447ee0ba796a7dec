"""Request descriptions for every probe in the catalogue.

Each constructor returns a fresh RequestDescription that is owned by the
task that built it. Every request carries the harness User-Agent and the
X-Amz-Content-Sha256 payload hash; each variant adds exactly the header or
query parameters that distinguish it. Signing and URL construction happen
later, in the executor.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import BinaryIO, Sequence, Union
from xml.etree import ElementTree

from s3conform import __version__
from s3conform.digest import compute_digest
from s3conform.models import CompletedPart

USER_AGENT = f"s3conform/{__version__}"

S3_XML_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"

Payload = Union[bytes, BinaryIO, None]


@dataclass
class RequestDescription:
    """Protocol-neutral description of one S3 request."""

    method: str
    bucket: str
    key: str = ""
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    content_length: int = 0

    @property
    def path(self) -> str:
        """Resource path used in log lines and diagnostics."""
        if self.key:
            return f"/{self.bucket}/{self.key}"
        return f"/{self.bucket}"


def http_date(moment: datetime) -> str:
    """Format a datetime in the HTTP-date format (RFC 7231).

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)


def _new_request(
    method: str,
    bucket: str,
    key: str,
    payload: Payload = None,
    user_agent: str = USER_AGENT,
    with_md5: bool = False,
) -> RequestDescription:
    digest = compute_digest(payload)

    request = RequestDescription(
        method=method,
        bucket=bucket,
        key=key,
        body=digest.body,
        content_length=digest.content_length,
    )
    request.headers["User-Agent"] = user_agent
    request.headers["X-Amz-Content-Sha256"] = digest.sha256_hex
    if with_md5:
        request.headers["Content-MD5"] = digest.content_md5
    return request


def new_get_object_request(
    bucket: str, key: str, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a plain GET object request."""
    return _new_request("GET", bucket, key, user_agent=user_agent)


def new_get_object_if_match_request(
    bucket: str, key: str, etag: str, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a GET object request with an If-Match header."""
    request = _new_request("GET", bucket, key, user_agent=user_agent)
    request.headers["If-Match"] = etag
    return request


def new_get_object_if_none_match_request(
    bucket: str, key: str, etag: str, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a GET object request with an If-None-Match header."""
    request = _new_request("GET", bucket, key, user_agent=user_agent)
    request.headers["If-None-Match"] = etag
    return request


def new_get_object_if_modified_since_request(
    bucket: str, key: str, since: datetime, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a GET object request with an If-Modified-Since header."""
    request = _new_request("GET", bucket, key, user_agent=user_agent)
    request.headers["If-Modified-Since"] = http_date(since)
    return request


def new_get_object_range_request(
    bucket: str,
    key: str,
    start: int,
    end: int,
    user_agent: str = USER_AGENT,
) -> RequestDescription:
    """Build a GET object request for the inclusive byte range [start, end].

    Raises:
        ValueError: If the range is negative or inverted.
    """
    if start < 0 or end < start:
        raise ValueError(f"Invalid byte range: {start}-{end}")
    request = _new_request("GET", bucket, key, user_agent=user_agent)
    request.headers["Range"] = f"bytes={start}-{end}"
    return request


def new_head_object_request(
    bucket: str, key: str, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a HEAD object request."""
    return _new_request("HEAD", bucket, key, user_agent=user_agent)


def new_put_object_request(
    bucket: str, key: str, payload: Payload, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a PUT object request uploading payload."""
    return _new_request("PUT", bucket, key, payload, user_agent, with_md5=True)


def new_remove_object_request(
    bucket: str, key: str, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a DELETE object request."""
    return _new_request("DELETE", bucket, key, user_agent=user_agent)


def new_initiate_multipart_request(
    bucket: str, key: str, user_agent: str = USER_AGENT
) -> RequestDescription:
    """Build a request starting a multipart upload (POST ?uploads)."""
    request = _new_request("POST", bucket, key, user_agent=user_agent)
    request.query["uploads"] = ""
    return request


def new_upload_part_request(
    bucket: str,
    key: str,
    upload_id: str,
    part_number: int,
    payload: Payload,
    user_agent: str = USER_AGENT,
) -> RequestDescription:
    """Build a request uploading one part of a multipart upload.

    Args:
        bucket: Target bucket.
        key: Object key the upload was initiated for.
        upload_id: Opaque upload identifier returned at initiation.
        part_number: 1-based part number.
        payload: Part data.
        user_agent: Identity sent in the User-Agent header.

    Returns:
        The RequestDescription for the part upload.
    """
    if part_number < 1:
        raise ValueError(f"Part numbers start at 1, got {part_number}")
    request = _new_request("PUT", bucket, key, payload, user_agent, with_md5=True)
    request.query["partNumber"] = str(part_number)
    request.query["uploadId"] = upload_id
    return request


def complete_multipart_body(parts: Sequence[CompletedPart]) -> bytes:
    """Render the CompleteMultipartUpload document for parts.

    Parts are listed in ascending part-number order as S3 requires.
    """
    root = ElementTree.Element("CompleteMultipartUpload", xmlns=S3_XML_NAMESPACE)
    for part in sorted(parts, key=lambda p: p.part_number):
        element = ElementTree.SubElement(root, "Part")
        ElementTree.SubElement(element, "PartNumber").text = str(part.part_number)
        ElementTree.SubElement(element, "ETag").text = f'"{part.etag}"'
    return ElementTree.tostring(root, encoding="utf-8", xml_declaration=True)


def new_complete_multipart_request(
    bucket: str,
    key: str,
    upload_id: str,
    parts: Sequence[CompletedPart],
    user_agent: str = USER_AGENT,
) -> RequestDescription:
    """Build a request finalizing a multipart upload from its parts."""
    request = _new_request(
        "POST",
        bucket,
        key,
        complete_multipart_body(parts),
        user_agent,
        with_md5=True,
    )
    request.query["uploadId"] = upload_id
    request.headers["Content-Type"] = "application/xml"
    return request
