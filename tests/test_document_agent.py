import base64
import time

import pytest

from contractgen.agents.document_agent import DocumentAgent, inline_html_document
from contractgen.error_handling import StorageError
from storage.object_store import LocalObjectStore
from tests.conftest import PUBLIC_BASE_URL
from tests.fakes import FAKE_PDF
from tools.pdf_renderer import PDFRenderer

HTML = "<!DOCTYPE html><html><body><h1>Agreement</h1></body></html>"


class BrokenStore:
    def put(self, path, data, content_type):
        raise StorageError("bucket unavailable")

    def get_public_url(self, path):
        return f"https://example.test/{path}"


class SlowStore(BrokenStore):
    def put(self, path, data, content_type):
        time.sleep(0.5)
        return self.get_public_url(path)


class StubInspector:
    def __init__(self, pages=None, error=None):
        self.pages = pages
        self.error = error

    def count_pages(self, pdf_bytes):
        if self.error is not None:
            raise self.error
        return self.pages


@pytest.fixture
def contract(fixed_clock, new_cairo_lead):
    from contractgen.agents.contract_assembly_agent import ContractAssemblyAgent
    return ContractAssemblyAgent(clock=fixed_clock).assemble(lead=new_cairo_lead)


def decode_inline(url):
    prefix = "data:text/html;base64,"
    assert url.startswith(prefix)
    return base64.b64decode(url[len(prefix):]).decode("utf-8")


@pytest.mark.asyncio
async def test_publishes_pdf(browser_manager, tmp_path, contract):
    store = LocalObjectStore(base_dir=str(tmp_path), public_base_url=PUBLIC_BASE_URL)
    agent = DocumentAgent(PDFRenderer(browser_manager), store)

    document = await agent.publish(contract, HTML, lead_id="lead-new-cairo")

    assert document.kind == "pdf"
    assert document.warning is None
    assert document.url.startswith(f"{PUBLIC_BASE_URL}/contracts/contract_")
    assert document.url.endswith(f"_{contract.contract_id}.pdf")
    [stored] = list((tmp_path / "contracts").glob("*.pdf"))
    assert stored.read_bytes() == FAKE_PDF


@pytest.mark.asyncio
async def test_page_count_is_reported(browser_manager, tmp_path, contract):
    store = LocalObjectStore(base_dir=str(tmp_path))
    agent = DocumentAgent(PDFRenderer(browser_manager), store, inspector=StubInspector(pages=3))

    document = await agent.publish(contract, HTML)

    assert document.kind == "pdf"
    assert document.page_count == 3


@pytest.mark.asyncio
async def test_page_count_failure_keeps_the_pdf(browser_manager, tmp_path, contract):
    inspector = StubInspector(error=RuntimeError("diagnostic parse failed"))
    store = LocalObjectStore(base_dir=str(tmp_path))
    agent = DocumentAgent(PDFRenderer(browser_manager), store, inspector=inspector)

    document = await agent.publish(contract, HTML)

    assert document.kind == "pdf"
    assert document.warning is None
    assert document.page_count is None
    assert len(list((tmp_path / "contracts").glob("*.pdf"))) == 1


@pytest.mark.asyncio
async def test_storage_failure_falls_back_to_inline(browser_manager, contract):
    agent = DocumentAgent(PDFRenderer(browser_manager), BrokenStore())

    document = await agent.publish(contract, HTML)

    assert document.kind == "inline_html"
    assert document.warning == "StorageError: bucket unavailable"
    assert decode_inline(document.url) == HTML


@pytest.mark.asyncio
async def test_storage_timeout_falls_back_to_inline(browser_manager, contract):
    agent = DocumentAgent(PDFRenderer(browser_manager), SlowStore(), storage_timeout_seconds=0.05)

    document = await agent.publish(contract, HTML)

    assert document.kind == "inline_html"
    assert "timed out" in document.warning


@pytest.mark.asyncio
async def test_render_failure_falls_back_to_inline(fake_playwright, browser_manager, tmp_path, contract):
    fake_playwright.playwright.load_timeout = True
    agent = DocumentAgent(PDFRenderer(browser_manager), LocalObjectStore(base_dir=str(tmp_path)))

    document = await agent.publish(contract, HTML)

    assert document.kind == "inline_html"
    assert decode_inline(document.url) == HTML
    assert not (tmp_path / "contracts").exists()


def test_inline_document_round_trips_unicode():
    html = "<p>عقد وساطة عقارية</p>"
    assert decode_inline(inline_html_document(html)) == html


@pytest.mark.parametrize("path", ["../escape.pdf", "/etc/passwd", ""])
def test_object_store_rejects_unsafe_paths(tmp_path, path):
    store = LocalObjectStore(base_dir=str(tmp_path / "docs"))
    with pytest.raises(StorageError):
        store.put(path, b"data", "application/pdf")


def test_object_store_file_urls_without_public_base(tmp_path):
    store = LocalObjectStore(base_dir=str(tmp_path))
    url = store.put("contracts/a.pdf", b"data", "application/pdf")
    assert url.startswith("file://")
    assert (tmp_path / "contracts" / "a.pdf").read_bytes() == b"data"
