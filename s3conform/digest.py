"""Payload digests for request integrity and signing.

S3 requests carry two digests of the body:
- Content-MD5: base64 of the raw MD5 digest, checked by the server
- X-Amz-Content-Sha256: hex SHA-256, part of the SigV4 signature

Bodiless requests (GET, HEAD, DELETE) still send the SHA-256 of the
empty payload.
"""

import base64
import hashlib
from dataclasses import dataclass
from typing import BinaryIO, Union

from s3conform.errors import ConstructionError

# Read size when digesting a file-like payload
READ_CHUNK_SIZE = 1024 * 1024

EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()


@dataclass(frozen=True)
class Digest:
    """Digests and length of a single request payload."""

    body: bytes
    content_md5: str
    sha256_hex: str
    content_length: int


def compute_digest(payload: Union[bytes, BinaryIO, None]) -> Digest:
    """Compute the integrity checksum, payload hash and length of a payload.

    Args:
        payload: Raw bytes, a readable binary stream, or None for no body.

    Returns:
        Digest holding the payload bytes and their digests.

    Raises:
        ConstructionError: If reading from the payload stream fails.
    """
    md5 = hashlib.md5()
    sha256 = hashlib.sha256()

    if payload is None:
        payload = b""

    if isinstance(payload, (bytes, bytearray, memoryview)):
        body = bytes(payload)
        md5.update(body)
        sha256.update(body)
    else:
        chunks = []
        try:
            while True:
                chunk = payload.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                md5.update(chunk)
                sha256.update(chunk)
                chunks.append(chunk)
        except OSError as e:
            raise ConstructionError(f"Failed to read request payload: {e}") from e
        body = b"".join(chunks)

    return Digest(
        body=body,
        content_md5=base64.b64encode(md5.digest()).decode("ascii"),
        sha256_hex=sha256.hexdigest(),
        content_length=len(body),
    )
