from datetime import datetime, timezone

import pytest

from contractgen.agents.contract_assembly_agent import ContractAssemblyAgent
from contractgen.agents.document_agent import DocumentAgent
from contractgen.agents.legal_review_agent import LegalReviewAgent
from contractgen.models import Lead
from contractgen.orchestrator import ContractOrchestrator
from storage.object_store import LocalObjectStore
from storage.record_service import ContractRecordService
from storage.store_manager import StoreManager
from tests.fakes import FakePlaywrightFactory, FakeTextGenerator, review_json
from tools.pdf_renderer import BrowserManager, PDFRenderer

FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
PUBLIC_BASE_URL = "https://docs.virtualestate.test"


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def downtown_land_lead():
    return Lead(
        id="lead-downtown-land",
        name="Omar Hassan",
        email="omar@example.com",
        whatsapp_number="+201000000001",
        location="Downtown",
        price_range="3M EGP",
        property_type="land",
        timeline="3-6 months",
        decision_authority="self",
    )


@pytest.fixture
def new_cairo_lead():
    return Lead(
        id="lead-new-cairo",
        name="Mona Adel",
        email="mona@example.com",
        whatsapp_number="+201000000002",
        location="New Cairo",
        price_range="1,200,000 EGP",
        property_type="apartment",
        timeline="1-3 months",
        property_size_sqm=150.0,
        property_condition="Excellent",
        decision_authority="self",
    )


@pytest.fixture
def fake_playwright():
    return FakePlaywrightFactory()


@pytest.fixture
def browser_manager(fake_playwright):
    return BrowserManager(playwright_factory=fake_playwright)


@pytest.fixture
def store_manager(tmp_path):
    return StoreManager(
        records=ContractRecordService(db_path=str(tmp_path / "contracts.db")),
        documents=LocalObjectStore(base_dir=str(tmp_path / "documents"), public_base_url=PUBLIC_BASE_URL),
    )


@pytest.fixture
def seeded_store(store_manager, downtown_land_lead, new_cairo_lead):
    store_manager.records.upsert_lead(downtown_land_lead)
    store_manager.records.upsert_lead(new_cairo_lead)
    return store_manager


@pytest.fixture
def text_generator():
    return FakeTextGenerator([review_json(95)])


@pytest.fixture
def make_orchestrator(seeded_store, browser_manager, fixed_clock):
    """Build an orchestrator around the seeded store with a chosen text generator."""

    def build(text_generator=None, document_agent=None, **kwargs):
        return ContractOrchestrator(
            store_manager=seeded_store,
            assembly_agent=ContractAssemblyAgent(clock=fixed_clock),
            review_agent=LegalReviewAgent(text_generator or FakeTextGenerator([review_json(95)])),
            document_agent=document_agent or DocumentAgent(
                renderer=PDFRenderer(browser_manager),
                object_store=seeded_store.documents,
            ),
            **kwargs,
        )

    return build


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()
