"""Allow running the harness with ``python -m s3conform``."""

import sys

from s3conform.cli import main

sys.exit(main())
