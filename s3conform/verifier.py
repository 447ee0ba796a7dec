"""Response verification rules.

A response is checked in a fixed order, stopping at the first mismatch:

1. Status: exact match against the operation's expected code
2. Headers: the standard headers every S3 response carries
3. Body: an operation-specific rule

Body rules:
- PUT, DELETE, Upload-Part, HEAD and every 304: body must be empty
- Plain GET and conditional GETs that return the object: full payload
- Range GET: payload[start..end], both bounds inclusive
- 412 Precondition Failed: error document with Code PreconditionFailed
- Initiate/Complete multipart: the named XML result document
"""

from enum import Enum
from typing import Optional, Sequence
from xml.etree import ElementTree

from s3conform.errors import VerificationError
from s3conform.executor import ResponseDescriptor
from s3conform.headers import HeaderValidator, verify_standard_headers

PRECONDITION_FAILED = "PreconditionFailed"

# How much of a mismatching body to show in diagnostics
PREVIEW_BYTES = 64


class Operation(Enum):
    """Every probe kind with a distinct expected outcome."""

    PUT_OBJECT = "put_object"
    REMOVE_OBJECT = "remove_object"
    UPLOAD_PART = "upload_part"
    HEAD_OBJECT = "head_object"
    GET_OBJECT = "get_object"
    GET_IF_MATCH_PASS = "get_if_match_pass"
    GET_IF_MATCH_FAIL = "get_if_match_fail"
    GET_IF_NONE_MATCH_PASS = "get_if_none_match_pass"
    GET_IF_NONE_MATCH_FAIL = "get_if_none_match_fail"
    GET_IF_MODIFIED_SINCE_PASS = "get_if_modified_since_pass"
    GET_IF_MODIFIED_SINCE_FAIL = "get_if_modified_since_fail"
    GET_RANGE = "get_range"
    INITIATE_MULTIPART = "initiate_multipart"
    COMPLETE_MULTIPART = "complete_multipart"


EXPECTED_STATUS = {
    Operation.PUT_OBJECT: 200,
    Operation.REMOVE_OBJECT: 204,
    Operation.UPLOAD_PART: 200,
    Operation.HEAD_OBJECT: 200,
    Operation.GET_OBJECT: 200,
    Operation.GET_IF_MATCH_PASS: 200,
    Operation.GET_IF_MATCH_FAIL: 412,
    Operation.GET_IF_NONE_MATCH_PASS: 304,
    Operation.GET_IF_NONE_MATCH_FAIL: 200,
    Operation.GET_IF_MODIFIED_SINCE_PASS: 200,
    Operation.GET_IF_MODIFIED_SINCE_FAIL: 304,
    Operation.GET_RANGE: 206,
    Operation.INITIATE_MULTIPART: 200,
    Operation.COMPLETE_MULTIPART: 200,
}

EMPTY_BODY_OPERATIONS = {
    Operation.PUT_OBJECT,
    Operation.REMOVE_OBJECT,
    Operation.UPLOAD_PART,
    Operation.HEAD_OBJECT,
}

FULL_BODY_OPERATIONS = {
    Operation.GET_OBJECT,
    Operation.GET_IF_MATCH_PASS,
    Operation.GET_IF_NONE_MATCH_FAIL,
    Operation.GET_IF_MODIFIED_SINCE_PASS,
}

RESULT_DOCUMENTS = {
    Operation.INITIATE_MULTIPART: ("InitiateMultipartUploadResult", ("UploadId",)),
    Operation.COMPLETE_MULTIPART: ("CompleteMultipartUploadResult", ("ETag",)),
}


def _preview(data: bytes) -> str:
    if len(data) <= PREVIEW_BYTES:
        return repr(data)
    return f"{data[:PREVIEW_BYTES]!r}... ({len(data)} bytes)"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_xml_fields(body: bytes, root_tag: str, fields: Sequence[str]) -> dict[str, str]:
    """Parse an S3 XML document and pull out top-level text fields.

    Namespaces are ignored so both namespaced result documents and
    namespace-less error documents can be read.

    Args:
        body: Raw response body.
        root_tag: Required local name of the root element.
        fields: Local names of child elements that must be present.

    Returns:
        Mapping of field name to its text (stripped).

    Raises:
        VerificationError: If the body is not XML, has a different root
            or misses a field.
    """
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as e:
        raise VerificationError(
            "body",
            f"Response body is not a valid XML document: {e}",
            expected=root_tag,
            actual=_preview(body),
        ) from e

    if _local_name(root.tag) != root_tag:
        raise VerificationError(
            "body",
            f"Unexpected XML document: wanted {root_tag}, got {_local_name(root.tag)}",
            expected=root_tag,
            actual=_local_name(root.tag),
        )

    children = {_local_name(child.tag): (child.text or "").strip() for child in root}
    values = {}
    for name in fields:
        if name not in children:
            raise VerificationError(
                "body",
                f"{root_tag} document is missing {name}",
                expected=name,
                actual=sorted(children),
            )
        values[name] = children[name]
    return values


def verify_status(status_code: int, expected: int) -> None:
    if status_code != expected:
        raise VerificationError(
            "status",
            f"Unexpected Response Status Code: wanted {expected}, got {status_code}",
            expected=expected,
            actual=status_code,
        )


def verify_empty_body(body: bytes) -> None:
    if body:
        raise VerificationError(
            "body",
            f"Unexpected Body Received: expected empty body, got {_preview(body)}",
            expected=b"",
            actual=_preview(body),
        )


def verify_body_equals(body: bytes, expected: bytes) -> None:
    if body != expected:
        raise VerificationError(
            "body",
            f"Unexpected Body Received: wanted {_preview(expected)}, got {_preview(body)}",
            expected=len(expected),
            actual=len(body),
        )


def verify_error_code(body: bytes, code: str) -> None:
    """Verify an S3 error document carries the given error code."""
    actual = parse_xml_fields(body, "Error", ("Code",))["Code"]
    if actual != code:
        raise VerificationError(
            "body",
            f"Unexpected Error Response: wanted {code}, got {actual}",
            expected=code,
            actual=actual,
        )


def verify_body(
    operation: Operation,
    body: bytes,
    payload: bytes = b"",
    byte_range: Optional[tuple[int, int]] = None,
) -> dict[str, str]:
    """Apply the body rule for an operation.

    Returns:
        The fields extracted from a result document, empty otherwise.
    """
    if operation in EMPTY_BODY_OPERATIONS or EXPECTED_STATUS[operation] == 304:
        verify_empty_body(body)
    elif operation in FULL_BODY_OPERATIONS:
        verify_body_equals(body, payload)
    elif operation == Operation.GET_RANGE:
        if byte_range is None:
            raise ValueError("Range verification requires a byte range")
        start, end = byte_range
        verify_body_equals(body, payload[start : end + 1])
    elif operation == Operation.GET_IF_MATCH_FAIL:
        verify_error_code(body, PRECONDITION_FAILED)
    elif operation in RESULT_DOCUMENTS:
        root_tag, fields = RESULT_DOCUMENTS[operation]
        return parse_xml_fields(body, root_tag, fields)
    return {}


def verify(
    response: ResponseDescriptor,
    operation: Operation,
    payload: bytes = b"",
    byte_range: Optional[tuple[int, int]] = None,
    header_validator: HeaderValidator = verify_standard_headers,
) -> dict[str, str]:
    """Verify a response against the contract for an operation.

    Args:
        response: The response to check. Its body is consumed.
        operation: Which probe produced the response.
        payload: The object's full uploaded payload, for body comparisons.
        byte_range: Inclusive (start, end) for range requests.
        header_validator: Check applied to the response headers.

    Returns:
        Fields extracted from XML result documents (e.g. UploadId).

    Raises:
        VerificationError: On the first failing check.
        TransportError: If the body cannot be read.
    """
    verify_status(response.status_code, EXPECTED_STATUS[operation])
    header_validator(response.headers)
    return verify_body(operation, response.read(), payload, byte_range)
