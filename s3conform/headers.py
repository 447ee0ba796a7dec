"""Checks for the headers every S3 response must carry."""

from email.utils import parsedate_to_datetime
from typing import Callable, Mapping

from s3conform.errors import VerificationError

# Headers required on every response, regardless of operation
STANDARD_HEADERS = ("Date", "x-amz-request-id")

HeaderValidator = Callable[[Mapping[str, str]], None]


def verify_standard_headers(headers: Mapping[str, str]) -> None:
    """Verify the standard response headers are present and well formed.

    Args:
        headers: Case-insensitive response headers.

    Raises:
        VerificationError: If a standard header is missing or the Date
            header is not a valid HTTP date.
    """
    for name in STANDARD_HEADERS:
        if not headers.get(name):
            raise VerificationError(
                "header",
                f"Missing standard header: {name}",
                expected=name,
                actual=None,
            )

    date = headers["Date"]
    try:
        parsedate_to_datetime(date)
    except (TypeError, ValueError) as e:
        raise VerificationError(
            "header",
            f"Malformed Date header: {date!r}",
            expected="HTTP-date",
            actual=date,
        ) from e
