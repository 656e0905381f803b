"""Root conftest - shared test configuration."""

import os

# Ensure tests never reach real infrastructure or partner credentials
os.environ.setdefault("LOCKER_API_KEY", "test-locker-secret")
os.environ.setdefault("S3_BUCKET_NAME", "test-bucket")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
