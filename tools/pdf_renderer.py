"""HTML to PDF rendering through a shared headless Chromium.

One browser process serves the whole application. ``BrowserManager``
launches it lazily on first use under an asyncio lock, so concurrent
first requests never start a second process, and relaunches it only if
it has disconnected. Every render gets its own page, which is closed
when the render finishes, fails, times out or is cancelled.

Call ``shutdown_browser()`` at process exit.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable, Literal, Optional

import msgspec
from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from contractgen.error_handling import RenderError

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]
VIEWPORT = {"width": 1200, "height": 1600}
PAGE_LOAD_TIMEOUT_MS = 30_000

HEADER_TEMPLATE = (
    '<div style="font-size: 9px; width: 100%; text-align: center; color: #6b7280;">'
    "VirtualEstate - Premium Real Estate Solutions</div>"
)
FOOTER_TEMPLATE = (
    '<div style="font-size: 9px; width: 100%; text-align: center; color: #6b7280;">'
    "Generated by VirtualEstate AI Contract System | Page "
    '<span class="pageNumber"></span> of <span class="totalPages"></span></div>'
)


class PDFMargins(msgspec.Struct, frozen=True):
    top: str = "20mm"
    right: str = "20mm"
    bottom: str = "20mm"
    left: str = "20mm"


class PDFRenderOptions(msgspec.Struct, frozen=True, kw_only=True):
    """Page setup for a single render."""
    format: Literal["A4", "A3", "Letter", "Legal"] = "A4"
    landscape: bool = False
    margins: PDFMargins = PDFMargins()
    print_background: bool = True
    display_header_footer: bool = True
    header_template: str = HEADER_TEMPLATE
    footer_template: str = FOOTER_TEMPLATE
    timeout_ms: int = PAGE_LOAD_TIMEOUT_MS


CONTRACT_PDF_OPTIONS = PDFRenderOptions(
    margins=PDFMargins(top="30mm", right="20mm", bottom="25mm", left="20mm")
)


class BrowserManager:
    """Owns the Playwright driver and the single Chromium process."""

    def __init__(
        self,
        playwright_factory: Callable[[], Any] = async_playwright,
        launch_args: Optional[list] = None
    ):
        self._playwright_factory = playwright_factory
        self._launch_args = launch_args or BROWSER_ARGS
        self._lock = asyncio.Lock()
        self._playwright = None
        self._browser = None
        self.launch_count = 0

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def init(self):
        """Launch the browser if it is not already running."""
        if self.is_running:
            return self._browser

        async with self._lock:
            if self.is_running:
                return self._browser

            if self._playwright is None:
                self._playwright = await self._playwright_factory().start()

            logger.info("Launching headless Chromium", args=self._launch_args)
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=self._launch_args
            )
            self.launch_count += 1
            return self._browser

    @asynccontextmanager
    async def page(self):
        """Yield a fresh page from the shared browser; always closes it."""
        browser = await self.init()
        page = await browser.new_page()
        try:
            yield page
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.warning("Failed to close browser page", error=str(e))

    async def shutdown(self):
        """Close the browser and stop the Playwright driver."""
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except PlaywrightError as e:
                    logger.warning("Error while closing browser", error=str(e))
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
        logger.info("Browser shut down")


class PDFRenderer:
    """Renders HTML documents to PDF bytes."""

    def __init__(self, browser_manager: Optional["BrowserManager"] = None):
        self.browser_manager = browser_manager or get_browser_manager()

    async def render_to_pdf(
        self,
        html: str,
        options: Optional[PDFRenderOptions] = None
    ) -> bytes:
        """Render ``html`` to PDF.

        Raises:
            RenderError: If the page cannot be loaded or printed, or the
                output is not a PDF
        """
        options = options or PDFRenderOptions()
        try:
            async with self.browser_manager.page() as page:
                await page.set_viewport_size(VIEWPORT)
                await page.set_content(html, wait_until="networkidle", timeout=options.timeout_ms)
                pdf_bytes = await page.pdf(
                    format=options.format,
                    landscape=options.landscape,
                    print_background=options.print_background,
                    display_header_footer=options.display_header_footer,
                    header_template=options.header_template,
                    footer_template=options.footer_template,
                    margin=msgspec.to_builtins(options.margins),
                )
        except PlaywrightError as e:
            raise RenderError(f"PDF rendering failed: {e}") from e

        if not pdf_bytes or not pdf_bytes.startswith(b"%PDF"):
            raise RenderError("Browser returned an empty or non-PDF document")

        logger.debug("Rendered PDF", size_bytes=len(pdf_bytes), format=options.format)
        return pdf_bytes


# Process-wide browser manager
_browser_manager: Optional[BrowserManager] = None


def get_browser_manager() -> BrowserManager:
    """Get or create the process-wide browser manager."""
    global _browser_manager
    if _browser_manager is None:
        _browser_manager = BrowserManager()
    return _browser_manager


async def shutdown_browser():
    """Shut down the process-wide browser, if one was created."""
    global _browser_manager
    if _browser_manager is not None:
        await _browser_manager.shutdown()
        _browser_manager = None
