import asyncio

import pytest

from contractgen.error_handling import RenderError
from tools.pdf_inspector import PDFInspector
from tools.pdf_renderer import CONTRACT_PDF_OPTIONS, BrowserManager, PDFRenderer, PDFRenderOptions

HTML = "<!DOCTYPE html><html><body><h1>Property Service Agreement</h1></body></html>"


@pytest.mark.asyncio
async def test_render_returns_pdf_bytes(browser_manager, fake_playwright):
    pdf = await PDFRenderer(browser_manager).render_to_pdf(HTML, CONTRACT_PDF_OPTIONS)

    assert pdf.startswith(b"%PDF")
    page = fake_playwright.playwright.pages[0]
    assert page.content == HTML
    assert page.viewport == {"width": 1200, "height": 1600}
    assert page.pdf_kwargs["format"] == "A4"
    assert page.pdf_kwargs["print_background"] is True
    assert page.pdf_kwargs["display_header_footer"] is True
    assert page.pdf_kwargs["margin"] == {"top": "30mm", "right": "20mm", "bottom": "25mm", "left": "20mm"}
    assert 'class="pageNumber"' in page.pdf_kwargs["footer_template"]
    assert page.closed


@pytest.mark.asyncio
async def test_fifty_sequential_renders_launch_one_browser(browser_manager, fake_playwright):
    renderer = PDFRenderer(browser_manager)
    for _ in range(50):
        await renderer.render_to_pdf(HTML)

    assert browser_manager.launch_count == 1
    assert fake_playwright.starts == 1
    assert len(fake_playwright.playwright.pages) == 50
    assert all(page.closed for page in fake_playwright.playwright.pages)


@pytest.mark.asyncio
async def test_concurrent_first_use_launches_once(browser_manager, fake_playwright):
    renderer = PDFRenderer(browser_manager)
    results = await asyncio.gather(*(renderer.render_to_pdf(HTML) for _ in range(10)))

    assert all(result.startswith(b"%PDF") for result in results)
    assert browser_manager.launch_count == 1


@pytest.mark.asyncio
async def test_page_load_timeout_raises_and_closes_page(browser_manager, fake_playwright):
    fake_playwright.playwright.load_timeout = True

    with pytest.raises(RenderError, match="PDF rendering failed"):
        await PDFRenderer(browser_manager).render_to_pdf(HTML, PDFRenderOptions(timeout_ms=100))

    assert [page.closed for page in fake_playwright.playwright.pages] == [True]
    assert browser_manager.is_running


@pytest.mark.asyncio
async def test_cancelled_render_closes_page(browser_manager, fake_playwright):
    fake_playwright.playwright.load_delay = 10
    task = asyncio.create_task(PDFRenderer(browser_manager).render_to_pdf(HTML))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert [page.closed for page in fake_playwright.playwright.pages] == [True]


@pytest.mark.asyncio
async def test_non_pdf_output_is_rejected(browser_manager, fake_playwright):
    fake_playwright.playwright.pdf_bytes = b"<html>not a pdf</html>"

    with pytest.raises(RenderError, match="non-PDF"):
        await PDFRenderer(browser_manager).render_to_pdf(HTML)


@pytest.mark.asyncio
async def test_disconnected_browser_is_relaunched(browser_manager, fake_playwright):
    renderer = PDFRenderer(browser_manager)
    await renderer.render_to_pdf(HTML)
    fake_playwright.playwright.browsers[0].connected = False

    await renderer.render_to_pdf(HTML)

    assert browser_manager.launch_count == 2
    assert fake_playwright.starts == 1


@pytest.mark.asyncio
async def test_shutdown_closes_browser_and_driver(browser_manager, fake_playwright):
    await PDFRenderer(browser_manager).render_to_pdf(HTML)
    await browser_manager.shutdown()

    assert not browser_manager.is_running
    assert fake_playwright.playwright.stopped
    assert fake_playwright.playwright.browsers[0].connected is False


@pytest.mark.asyncio
async def test_real_chromium_renders_contract(new_cairo_lead, fixed_clock):
    """Smoke test against a real browser; skipped where Chromium is not installed."""
    from contractgen.agents.contract_assembly_agent import ContractAssemblyAgent
    from tools.contract_html import render_contract_html

    manager = BrowserManager()
    try:
        await manager.init()
    except Exception as e:
        await manager.shutdown()
        pytest.skip(f"Chromium unavailable: {e}")

    try:
        contract = ContractAssemblyAgent(clock=fixed_clock).assemble(lead=new_cairo_lead)
        pdf = await PDFRenderer(manager).render_to_pdf(render_contract_html(contract), CONTRACT_PDF_OPTIONS)
    finally:
        await manager.shutdown()

    summary = PDFInspector().inspect(pdf)
    assert summary.page_count >= 1
    assert summary.contains("Property Service Agreement")
    assert summary.contains(contract.contract_id)


@pytest.mark.parametrize("data", [b"", b"<html>not a pdf</html>"])
def test_inspector_rejects_unreadable_documents(data):
    with pytest.raises(RenderError):
        PDFInspector().inspect(data)
