"""Tests for verifier.py module."""

import httpx
import pytest

from s3conform.errors import VerificationError
from s3conform.executor import ResponseDescriptor
from s3conform.verifier import (
    EXPECTED_STATUS,
    Operation,
    parse_xml_fields,
    verify,
    verify_body,
)

HEADERS = {
    "Date": "Tue, 05 Mar 2024 14:07:09 GMT",
    "x-amz-request-id": "req-1",
}

PRECONDITION_FAILED_BODY = b"""<?xml version="1.0" encoding="UTF-8"?>
<Error><Code>PreconditionFailed</Code><Message>At least one of the
pre-conditions you specified did not hold</Message></Error>"""

INITIATE_BODY = b"""<?xml version="1.0" encoding="UTF-8"?>
<InitiateMultipartUploadResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Bucket>bucket</Bucket><Key>key</Key><UploadId>upload-123</UploadId>
</InitiateMultipartUploadResult>"""

COMPLETE_BODY = b"""<?xml version="1.0" encoding="UTF-8"?>
<CompleteMultipartUploadResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">
  <Location>http://localhost/bucket/key</Location><Bucket>bucket</Bucket>
  <Key>key</Key><ETag>"abc-1"</ETag>
</CompleteMultipartUploadResult>"""


def make_response(status, content=b"", headers=None):
    return ResponseDescriptor(
        httpx.Response(status, headers=HEADERS if headers is None else headers, content=content),
        "GET",
        "/bucket/key",
    )


class TestExpectedStatus:
    """The status table covers every operation."""

    def test_every_operation_has_status(self):
        assert set(EXPECTED_STATUS) == set(Operation)

    @pytest.mark.parametrize(
        "operation,status",
        [
            (Operation.PUT_OBJECT, 200),
            (Operation.REMOVE_OBJECT, 204),
            (Operation.UPLOAD_PART, 200),
            (Operation.GET_OBJECT, 200),
            (Operation.GET_IF_MATCH_PASS, 200),
            (Operation.GET_IF_MATCH_FAIL, 412),
            (Operation.GET_IF_NONE_MATCH_PASS, 304),
            (Operation.GET_IF_NONE_MATCH_FAIL, 200),
            (Operation.GET_IF_MODIFIED_SINCE_PASS, 200),
            (Operation.GET_IF_MODIFIED_SINCE_FAIL, 304),
            (Operation.GET_RANGE, 206),
        ],
    )
    def test_status_table(self, operation, status):
        assert EXPECTED_STATUS[operation] == status


class TestVerifyOrder:
    """Status, then headers, then body; the first failure wins."""

    def test_status_checked_first(self):
        """A wrong status is reported even if headers and body are also wrong."""
        response = make_response(500, content=b"oops", headers={})

        with pytest.raises(VerificationError) as exc_info:
            verify(response, Operation.PUT_OBJECT)

        assert exc_info.value.check == "status"
        assert exc_info.value.expected == 200
        assert exc_info.value.actual == 500
        assert "wanted 200, got 500" in str(exc_info.value)

    def test_headers_checked_before_body(self):
        response = make_response(200, content=b"unexpected", headers={"Date": HEADERS["Date"]})

        with pytest.raises(VerificationError) as exc_info:
            verify(response, Operation.PUT_OBJECT)

        assert exc_info.value.check == "header"

    def test_body_checked_last(self):
        response = make_response(200, content=b"unexpected")

        with pytest.raises(VerificationError) as exc_info:
            verify(response, Operation.PUT_OBJECT)

        assert exc_info.value.check == "body"

    def test_custom_header_validator(self):
        """The header check can be swapped out."""
        calls = []
        response = make_response(200, headers={})

        verify(response, Operation.PUT_OBJECT, header_validator=calls.append)

        assert len(calls) == 1


class TestBodyRules:
    """Tests for per-operation body rules."""

    @pytest.mark.parametrize(
        "operation",
        [
            Operation.PUT_OBJECT,
            Operation.REMOVE_OBJECT,
            Operation.UPLOAD_PART,
            Operation.HEAD_OBJECT,
            Operation.GET_IF_NONE_MATCH_PASS,
            Operation.GET_IF_MODIFIED_SINCE_FAIL,
        ],
    )
    def test_empty_body_required(self, operation):
        assert verify_body(operation, b"") == {}
        with pytest.raises(VerificationError, match="expected empty body"):
            verify_body(operation, b"x")

    @pytest.mark.parametrize(
        "operation",
        [
            Operation.GET_OBJECT,
            Operation.GET_IF_MATCH_PASS,
            Operation.GET_IF_NONE_MATCH_FAIL,
            Operation.GET_IF_MODIFIED_SINCE_PASS,
        ],
    )
    def test_full_body_required(self, operation):
        verify_body(operation, b"payload", payload=b"payload")
        with pytest.raises(VerificationError, match="Unexpected Body Received"):
            verify_body(operation, b"payloa", payload=b"payload")

    def test_range_bounds_are_inclusive(self):
        payload = b"0123456789"
        verify_body(Operation.GET_RANGE, b"345", payload=payload, byte_range=(3, 5))

        with pytest.raises(VerificationError):
            verify_body(Operation.GET_RANGE, b"34", payload=payload, byte_range=(3, 5))

    def test_range_whole_object(self):
        payload = b"0123456789"
        verify_body(Operation.GET_RANGE, payload, payload=payload, byte_range=(0, 9))

    def test_range_requires_bounds(self):
        with pytest.raises(ValueError):
            verify_body(Operation.GET_RANGE, b"", payload=b"abc")

    def test_precondition_failed_document(self):
        verify_body(Operation.GET_IF_MATCH_FAIL, PRECONDITION_FAILED_BODY)

    def test_wrong_error_code(self):
        body = b"<Error><Code>NoSuchKey</Code></Error>"
        with pytest.raises(VerificationError, match="wanted PreconditionFailed, got NoSuchKey"):
            verify_body(Operation.GET_IF_MATCH_FAIL, body)

    def test_412_without_document(self):
        with pytest.raises(VerificationError, match="not a valid XML document"):
            verify_body(Operation.GET_IF_MATCH_FAIL, b"")

    def test_initiate_result_fields(self):
        fields = verify_body(Operation.INITIATE_MULTIPART, INITIATE_BODY)
        assert fields == {"UploadId": "upload-123"}

    def test_complete_result_fields(self):
        fields = verify_body(Operation.COMPLETE_MULTIPART, COMPLETE_BODY)
        assert fields == {"ETag": '"abc-1"'}

    def test_complete_with_error_document_fails(self):
        """A 200 carrying an Error document is not a completed upload."""
        body = b"<Error><Code>InternalError</Code></Error>"
        with pytest.raises(VerificationError, match="wanted CompleteMultipartUploadResult"):
            verify_body(Operation.COMPLETE_MULTIPART, body)


class TestParseXmlFields:
    """Tests for parse_xml_fields."""

    def test_missing_field(self):
        body = b"<InitiateMultipartUploadResult><Bucket>b</Bucket></InitiateMultipartUploadResult>"
        with pytest.raises(VerificationError, match="missing UploadId"):
            parse_xml_fields(body, "InitiateMultipartUploadResult", ("UploadId",))

    def test_text_is_stripped(self):
        body = b"<Error><Code>\n  SlowDown \n</Code></Error>"
        assert parse_xml_fields(body, "Error", ("Code",)) == {"Code": "SlowDown"}


class TestVerifyReturnsFields:
    """verify() hands back parsed result fields."""

    def test_initiate(self):
        response = make_response(200, content=INITIATE_BODY)
        assert verify(response, Operation.INITIATE_MULTIPART) == {"UploadId": "upload-123"}

    def test_range(self):
        response = make_response(206, content=b"bcd")
        assert verify(response, Operation.GET_RANGE, payload=b"abcdef", byte_range=(1, 3)) == {}
