"""Tests for headers.py module."""

import httpx
import pytest

from s3conform.errors import VerificationError
from s3conform.headers import STANDARD_HEADERS, verify_standard_headers

VALID = {
    "Date": "Tue, 05 Mar 2024 14:07:09 GMT",
    "x-amz-request-id": "4442587FB7D0A2F9",
}


class TestVerifyStandardHeaders:
    """Tests for verify_standard_headers."""

    def test_valid_headers_pass(self):
        verify_standard_headers(httpx.Headers(VALID))

    def test_lookup_is_case_insensitive(self):
        headers = httpx.Headers({"date": VALID["Date"], "X-Amz-Request-Id": "abc"})
        verify_standard_headers(headers)

    @pytest.mark.parametrize("missing", STANDARD_HEADERS)
    def test_missing_header_fails(self, missing):
        headers = httpx.Headers({k: v for k, v in VALID.items() if k != missing})

        with pytest.raises(VerificationError) as exc_info:
            verify_standard_headers(headers)

        assert exc_info.value.check == "header"
        assert missing in str(exc_info.value)

    def test_empty_header_counts_as_missing(self):
        headers = httpx.Headers({**VALID, "x-amz-request-id": ""})
        with pytest.raises(VerificationError, match="x-amz-request-id"):
            verify_standard_headers(headers)

    def test_malformed_date_fails(self):
        headers = httpx.Headers({**VALID, "Date": "yesterday"})

        with pytest.raises(VerificationError, match="Malformed Date") as exc_info:
            verify_standard_headers(headers)

        assert exc_info.value.actual == "yesterday"
