"""Shared pytest configuration."""

import os

# Keep throttling out of the way of unit tests; read at import time.
os.environ.setdefault("GARAGE_RATE_LIMIT_PER_SECOND", "10000")
os.environ.setdefault("K8S_RATE_LIMIT_PER_SECOND", "10000")
