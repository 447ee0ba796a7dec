"""Sending request descriptions over the network.

The Executor turns a RequestDescription into a signed httpx request, sends
it on the shared client and hands back a ResponseDescriptor. The response
is streamed and always closed when the caller's ``with`` block exits,
whether the verification inside succeeded, failed or raised.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from s3conform.errors import TransportError
from s3conform.models import ServerConfig
from s3conform.request_builder import RequestDescription
from s3conform.signer import Signer

logger = logging.getLogger(__name__)


class ResponseDescriptor:
    """Status, headers and (lazily read) body of a response.

    The body can be consumed once; later calls return the cached bytes.
    """

    def __init__(self, response: httpx.Response, method: str = "", path: str = ""):
        self._response = response
        self._body: Optional[bytes] = None
        self.method = method
        self.path = path

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    def read(self) -> bytes:
        """Read the full response body.

        Raises:
            TransportError: If the connection fails while reading.
        """
        if self._body is None:
            try:
                self._body = self._response.read()
            except httpx.HTTPError as e:
                raise TransportError(
                    f"Failed reading response body for {self.method} {self.path}: {e}",
                    self.method,
                    self.path,
                ) from e
        return self._body

    def close(self) -> None:
        self._response.close()


def _quote_key(key: str) -> str:
    return quote(key, safe="/~")


def build_query_string(query: dict[str, str]) -> str:
    """Encode query parameters, leaving value-less flags (``uploads``) bare."""
    parts = []
    for name, value in query.items():
        if value == "":
            parts.append(quote(name, safe="~"))
        else:
            parts.append(f"{quote(name, safe='~')}={quote(value, safe='~')}")
    return "&".join(parts)


def build_target_url(config: ServerConfig, request: RequestDescription) -> str:
    """Build the absolute URL for a request against the configured endpoint.

    Path-style addressing puts the bucket in the path; virtual-host style
    prefixes it to the endpoint host.
    """
    scheme, netloc, base_path, _, _ = urlsplit(config.endpoint_url)
    base_path = base_path.rstrip("/")

    if config.addressing_style == "virtual":
        netloc = f"{request.bucket}.{netloc}"
        path = base_path + "/"
    else:
        path = f"{base_path}/{request.bucket}"
        if request.key:
            path += "/"

    if request.key:
        path += _quote_key(request.key)

    return urlunsplit((scheme, netloc, path, build_query_string(request.query), ""))


class Executor:
    """Sends requests for a single server with a shared client and signer."""

    def __init__(
        self,
        config: ServerConfig,
        http_client: httpx.Client,
        signer: Signer,
    ):
        self.config = config
        self.http_client = http_client
        self.signer = signer

    def prepare(self, request: RequestDescription) -> httpx.Request:
        """Sign a request description and turn it into an httpx request."""
        url = build_target_url(self.config, request)
        headers = self.signer.sign(request.method, url, dict(request.headers), request.body)
        return self.http_client.build_request(
            request.method,
            url,
            headers=headers,
            content=request.body,
        )

    @contextmanager
    def execute(self, request: RequestDescription) -> Iterator[ResponseDescriptor]:
        """Send a request and yield its response descriptor.

        The response is released when the block exits on every path.

        Raises:
            TransportError: If the request could not be sent.
        """
        http_request = self.prepare(request)
        try:
            response = self.http_client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(
                f"{request.method} {request.path} failed: {e}",
                request.method,
                request.path,
            ) from e

        logger.debug("%s %s -> %s", request.method, request.path, response.status_code)
        descriptor = ResponseDescriptor(response, request.method, request.path)
        try:
            yield descriptor
        finally:
            descriptor.close()
