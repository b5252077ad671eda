"""Local-disk upload store. Files are written before the intake pipeline sees them."""
from __future__ import annotations

import logging
import re
import time
import uuid
from pathlib import Path

from fastapi.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from schemas.documents import UploadedFile

logger = logging.getLogger(__name__)


def _safe_part(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "-", text).strip("-") or "file"


class LocalUploadStore:
    def __init__(self, upload_dir: str):
        self.root = Path(upload_dir)

    def stored_name(self, field_name: str, filename: str) -> str:
        """`<field>-<millis>-<random><ext>`; unique per call."""
        suffix = Path(filename or "").suffix.lower()
        if not re.fullmatch(r"\.[a-z0-9]{1,8}", suffix):
            suffix = ""
        return f"{_safe_part(field_name)}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}{suffix}"

    async def save(self, field_name: str, upload: UploadFile) -> UploadedFile:
        self.root.mkdir(parents=True, exist_ok=True)
        stored = self.stored_name(field_name, upload.filename or "")
        content = await upload.read()
        await run_in_threadpool((self.root / stored).write_bytes, content)
        logger.debug("Stored upload %s (%d bytes) for field %s", stored, len(content), field_name)
        return UploadedFile(
            field_name=field_name,
            original_filename=upload.filename or stored,
            stored_filename=stored,
        )
