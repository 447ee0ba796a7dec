"""
S3 API Conformance Harness.

Runs an ordered catalogue of signed S3 requests against an S3-compatible
server and checks each response's status, headers and body against what
the S3 API specifies.
"""

__version__ = "2.0.0"

from s3conform.cli import main

__all__ = ["main", "__version__"]
