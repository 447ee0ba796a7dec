"""Tests for signer.py module."""

import hashlib

from s3conform.models import ServerConfig
from s3conform.signer import Signer, SigV4Signer


class TestSigV4Signer:
    """Tests for SigV4Signer."""

    def test_implements_signer(self):
        assert isinstance(SigV4Signer("ak", "sk", "us-east-1"), Signer)

    def test_from_config(self):
        config = ServerConfig(
            endpoint_url="http://localhost:9000",
            aws_access_key_id="access",
            aws_secret_access_key="secret",
            region_name="eu-west-1",
        )
        signer = SigV4Signer.from_config(config)
        headers = signer.sign("GET", "http://localhost:9000/b/k", {}, b"")

        assert "Credential=access/" in headers["Authorization"]
        assert "/eu-west-1/s3/aws4_request" in headers["Authorization"]

    def test_adds_authorization_and_date(self):
        signer = SigV4Signer("AKIDEXAMPLE", "secret", "us-east-1")
        headers = signer.sign(
            "GET",
            "http://localhost:9000/bucket/key",
            {"User-Agent": "s3conform/test"},
            b"",
        )

        assert headers["Authorization"].startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
        assert "X-Amz-Date" in headers
        assert headers["User-Agent"] == "s3conform/test"

    def test_payload_hash_is_signed_over_https_with_md5(self):
        """The body hash is kept even where S3 would allow UNSIGNED-PAYLOAD."""
        body = b"payload"
        signer = SigV4Signer("ak", "sk", "us-east-1")
        headers = signer.sign(
            "PUT",
            "https://s3.example.com/bucket/key",
            {"Content-MD5": "irrelevant", "X-Amz-Content-Sha256": hashlib.sha256(body).hexdigest()},
            body,
        )

        assert headers["X-Amz-Content-SHA256"] == hashlib.sha256(body).hexdigest()
        assert "x-amz-content-sha256" in headers["Authorization"]

    def test_caller_headers_not_mutated(self):
        signer = SigV4Signer("ak", "sk", "us-east-1")
        original = {"User-Agent": "ua"}
        signer.sign("GET", "http://localhost/b/k", original, b"")
        assert original == {"User-Agent": "ua"}
