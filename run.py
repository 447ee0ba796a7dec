#!/usr/bin/env python3
"""
S3 API Conformance Harness

Run this script to check an S3-compatible server against the S3 API.

Usage:
    python run.py                                  # Use config.json / S3_* env vars
    python run.py -c custom.json                   # Use custom config
    python run.py --url http://localhost:9000 \
        --access minio --secret minio123           # Explicit server
    python run.py -q                               # Quiet mode (summary only)
    python run.py -j results.json                  # Output JSON results
    python run.py --teardown on-success            # Keep the bucket when a case fails
"""

import sys
from s3conform.cli import main

if __name__ == "__main__":
    sys.exit(main())
