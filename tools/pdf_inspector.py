"""PDF inspection tool for verifying rendered contracts.

Uses pdfplumber to read back what the browser produced: page count,
extracted text and document metadata.
"""

import io
from typing import Dict

import msgspec
import pdfplumber
from loguru import logger

from contractgen.error_handling import RenderError, handle_errors


class PDFSummary(msgspec.Struct, frozen=True):
    page_count: int
    text: str
    metadata: Dict[str, str] = {}

    def contains(self, fragment: str) -> bool:
        """Whether ``fragment`` occurs in the extracted text, ignoring whitespace runs."""
        return " ".join(fragment.split()) in " ".join(self.text.split())


class PDFInspector:
    """Reads rendered PDF bytes back for verification."""

    def __init__(self, max_pages: int = 50):
        self.max_pages = max_pages

    @handle_errors(RenderError)
    def inspect(self, pdf_bytes: bytes) -> PDFSummary:
        """Extract page count, text and metadata from PDF bytes.

        Raises:
            RenderError: If the bytes are not a readable PDF
        """
        if not pdf_bytes:
            raise RenderError("Cannot inspect an empty document")

        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            page_count = len(pdf.pages)
            pages = pdf.pages[: self.max_pages]
            text = "\n".join(page.extract_text() or "" for page in pages)
            metadata = {str(k): str(v) for k, v in (pdf.metadata or {}).items()}

        logger.debug("Inspected PDF", page_count=page_count, text_length=len(text))
        return PDFSummary(page_count=page_count, text=text, metadata=metadata)

    def count_pages(self, pdf_bytes: bytes) -> int:
        return self.inspect(pdf_bytes).page_count
