"""
Test settings: in-memory SQLite, throwaway upload directory, no SMTP.
Environment is set before any project module reads `config.settings`.
"""
import os
import sys
import tempfile

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="loan-intake-uploads-")
os.environ["LOG_LEVEL"] = "WARNING"
for key in ("EMAIL_HOST", "EMAIL_PORT", "EMAIL_USER", "EMAIL_PASS", "EMAIL_FROM"):
    os.environ.pop(key, None)
