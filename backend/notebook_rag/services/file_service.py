import os
import re
import logging
from datetime import datetime
from typing import Iterable, Optional

from docling.document_converter import DocumentConverter

from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import ExtractionError

logger = logging.getLogger(__name__)

DOCLING_EXTENSIONS = {".pdf", ".docx", ".doc", ".png", ".jpg", ".jpeg", ".html", ".htm", ".pptx", ".md"}
PLAIN_TEXT_EXTENSIONS = {".txt", ".json", ".csv", ".py", ".js", ".css", ".sql", ".xml", ".yaml", ".yml", ".log"}

_UNSAFE_CHARS = re.compile(r"[^\w.\- ]")


def build_storage_path(notebook_id: int, filename: str, now: Optional[datetime] = None) -> str:
    """<notebook_id>/<YYYY-MM-DD>/<timestamp>_<filename>, relative to the storage root."""
    now = now or datetime.now()
    safe_name = _UNSAFE_CHARS.sub("_", os.path.basename(filename or "upload")) or "upload"
    return f"{notebook_id}/{now.strftime('%Y-%m-%d')}/{int(now.timestamp() * 1000)}_{safe_name}"


class LocalFileStorage:
    """Blob storage for raw uploads on the local filesystem."""

    def __init__(self, root: str = None):
        self.root = os.path.abspath(root or settings.UPLOAD_DIR)
        os.makedirs(self.root, exist_ok=True)

    def full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([full, self.root]) != self.root:
            raise ValueError(f"Path escapes storage root: {path}")
        return full

    def put(self, path: str, data: bytes) -> int:
        full = self.full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as buffer:
            buffer.write(data)
        return len(data)

    def get(self, path: str) -> bytes:
        with open(self.full_path(path), "rb") as f:
            return f.read()

    def delete(self, paths: Iterable[str]) -> int:
        """Removes the given blobs; missing ones are skipped. Returns the number removed."""
        removed = 0
        for path in paths:
            if not path:
                continue
            try:
                os.remove(self.full_path(path))
                removed += 1
            except FileNotFoundError:
                logger.warning(f"Stored file already gone: {path}")
        return removed


_converter = None


def get_converter() -> DocumentConverter:
    # Docling loads its models on construction, so build it on first use
    global _converter
    if _converter is None:
        _converter = DocumentConverter()
    return _converter


def extract_text_from_file(file_path: str) -> str:
    """
    Extracts text using Docling for better structural preservation. Plain text
    formats are read directly.
    """
    ext = os.path.splitext(file_path)[1].lower()

    if ext in PLAIN_TEXT_EXTENSIONS:
        try:
            with open(file_path, "r", encoding="utf-8", errors="ignore") as f:
                return f.read()
        except OSError as e:
            raise ExtractionError(f"Could not read {os.path.basename(file_path)}", detail=str(e))

    if ext not in DOCLING_EXTENSIONS:
        raise ExtractionError(f"Unsupported file type: {ext or 'unknown'}")

    logger.info(f"Converting {file_path} with Docling...")
    try:
        result = get_converter().convert(file_path)
        # Markdown export is cleaner for LLMs
        return result.document.export_to_markdown()
    except Exception as e:
        logger.error(f"Extraction error: {e}")
        raise ExtractionError(f"Could not extract text from {os.path.basename(file_path)}", detail=str(e))
