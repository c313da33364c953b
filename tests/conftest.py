from __future__ import annotations

import os
import tempfile

# The engine is built at import time from settings, so point it at SQLite first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("PUBLIC_API_KEY", "test-api-key")
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="staffhub-storage-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
