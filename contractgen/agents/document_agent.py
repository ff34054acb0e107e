"""
Document Agent - Publishes the rendered contract.

Renders the contract HTML to PDF through the shared browser and uploads
the bytes to object storage under ``contracts/{file}.pdf``. When either
step fails, the HTML itself is returned as an inline
``data:text/html;base64,...`` document so the generated content is never
lost; the caller gets a warning describing why.
"""

import asyncio
import base64
import secrets
import time
from typing import Optional

from contractgen.error_handling import StorageError
from contractgen.logging_config import get_request_logger, log_stage_execution
from contractgen.models import ContractData, PublishedDocument
from storage.object_store import ObjectStore
from tools.pdf_inspector import PDFInspector
from tools.pdf_renderer import CONTRACT_PDF_OPTIONS, PDFRenderer, PDFRenderOptions

PDF_CONTENT_TYPE = "application/pdf"


def inline_html_document(html: str) -> str:
    """Self-contained data URL carrying the HTML document."""
    encoded = base64.b64encode(html.encode("utf-8")).decode("ascii")
    return f"data:text/html;base64,{encoded}"


def document_file_name(contract_data: ContractData) -> str:
    return f"contract_{int(time.time() * 1000)}_{secrets.token_hex(4)}_{contract_data.contract_id}"


class DocumentAgent:
    """Render, upload, or fall back to an inline document."""

    def __init__(
        self,
        renderer: PDFRenderer,
        object_store: ObjectStore,
        storage_timeout_seconds: float = 30.0,
        pdf_options: PDFRenderOptions = CONTRACT_PDF_OPTIONS,
        inspector: Optional[PDFInspector] = None
    ):
        self.renderer = renderer
        self.object_store = object_store
        self.storage_timeout_seconds = storage_timeout_seconds
        self.pdf_options = pdf_options
        self.inspector = inspector

    async def _upload(self, path: str, pdf_bytes: bytes) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.object_store.put, path, pdf_bytes, PDF_CONTENT_TYPE),
                timeout=self.storage_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise StorageError(f"Upload of {path} timed out after {self.storage_timeout_seconds}s") from e

    async def _count_pages(self, pdf_bytes: bytes, doc_logger) -> Optional[int]:
        """Page count diagnostic; a failure here never discards the published PDF."""
        if self.inspector is None:
            return None
        try:
            return await asyncio.to_thread(self.inspector.count_pages, pdf_bytes)
        except Exception as e:
            doc_logger.warning("PDF page count unavailable", error=str(e), error_type=type(e).__name__)
            return None

    @log_stage_execution("DocumentRendering")
    async def publish(self, contract_data: ContractData, html: str, lead_id: str = "unknown") -> PublishedDocument:
        """Publish the contract document. Never raises for render or storage failures."""
        doc_logger = get_request_logger(lead_id, "DocumentRendering")

        try:
            pdf_bytes = await self.renderer.render_to_pdf(html, self.pdf_options)
            path = f"contracts/{document_file_name(contract_data)}.pdf"
            url = await self._upload(path, pdf_bytes)
        except Exception as e:
            doc_logger.warning(
                "Document publishing failed, using inline HTML document",
                error=str(e),
                error_type=type(e).__name__
            )
            return PublishedDocument(
                url=inline_html_document(html),
                kind="inline_html",
                warning=f"{type(e).__name__}: {e}",
            )

        page_count = await self._count_pages(pdf_bytes, doc_logger)
        doc_logger.info("Contract PDF published", path=path, size_bytes=len(pdf_bytes), page_count=page_count)
        return PublishedDocument(url=url, kind="pdf", page_count=page_count)
