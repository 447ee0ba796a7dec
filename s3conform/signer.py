"""Request signing.

The harness treats signing as an opaque collaborator: given the method, the
full URL, the headers and the body, a Signer returns the header set to put
on the wire, authorization included. The default implementation signs with
AWS Signature Version 4 through botocore.
"""

from abc import ABC, abstractmethod

from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from s3conform.models import ServerConfig


class Signer(ABC):
    """Produces signed headers for a request."""

    @abstractmethod
    def sign(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes,
    ) -> dict[str, str]:
        """Return the headers to send, including authorization."""
        pass


class SigV4Signer(Signer):
    """Signs requests with S3 SigV4 using botocore's signer.

    The caller's X-Amz-Content-Sha256 is always honoured: botocore would
    otherwise switch to UNSIGNED-PAYLOAD for HTTPS requests carrying a
    Content-MD5 header.
    """

    def __init__(self, access_key: str, secret_key: str, region: str):
        self._credentials = Credentials(access_key, secret_key)
        self._region = region

    @classmethod
    def from_config(cls, config: ServerConfig) -> "SigV4Signer":
        return cls(
            config.aws_access_key_id,
            config.aws_secret_access_key,
            config.region_name,
        )

    def sign(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes,
    ) -> dict[str, str]:
        request = AWSRequest(method=method, url=url, data=body, headers=headers)
        request.context["payload_signing_enabled"] = True
        S3SigV4Auth(self._credentials, "s3", self._region).add_auth(request)
        return dict(request.headers.items())
