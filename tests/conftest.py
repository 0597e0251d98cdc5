import os
import tempfile

# database.py builds its engine at import time; keep it away from ./data.
os.environ.setdefault("TRACKER_DATA_DIR", tempfile.mkdtemp(prefix="tracker-tests-"))
os.environ.setdefault("TRACKER_SESSION_SECRET", "tests-only-secret")
