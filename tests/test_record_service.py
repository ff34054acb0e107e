from datetime import datetime, timedelta, timezone

import pytest

from contractgen.agents.contract_assembly_agent import ContractAssemblyAgent
from contractgen.error_handling import ConfigurationError, PersistenceError
from contractgen.models import ContractRecord, ContractReviewRecord, NotificationRecord
from storage.record_service import ContractRecordService
from storage.store_manager import create_store_manager, sqlite_path_from_url


@pytest.fixture
def records(tmp_path):
    return ContractRecordService(db_path=str(tmp_path / "records.db"))


def make_record(contract_data, lead_id, record_id="contract-1", created_at=None, status="generated"):
    created_at = created_at or datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
    return ContractRecord(
        id=record_id,
        lead_id=lead_id,
        contract_type=contract_data.contract_type,
        template_id="unified-standard",
        generation_time_ms=1234,
        ai_confidence_score=92,
        legal_risk_score=20,
        contract_data=contract_data,
        document_url="https://docs.virtualestate.test/contracts/contract.pdf",
        status=status,
        auto_approved=True,
        created_at=created_at,
        updated_at=created_at,
    )


def make_review(contract_id):
    return ContractReviewRecord(
        contract_id=contract_id,
        confidence_score=92,
        risk_factors=["Verify title"],
        recommendations=["Attach survey"],
        warnings=[],
        compliance_check={"basic_clauses": "present"},
        source="ai",
    )


@pytest.fixture
def contract_data(fixed_clock, new_cairo_lead):
    return ContractAssemblyAgent(clock=fixed_clock).assemble(lead=new_cairo_lead)


def test_lead_upsert_and_lookup(records, new_cairo_lead):
    records.upsert_lead(new_cairo_lead)
    assert records.get_lead(new_cairo_lead.id) == new_cairo_lead

    new_cairo_lead.price_range = "1,500,000 EGP"
    records.upsert_lead(new_cairo_lead)
    assert records.get_lead(new_cairo_lead.id).price_range == "1,500,000 EGP"
    assert records.get_lead("missing") is None


def test_update_lead_contract_status(records, new_cairo_lead):
    records.upsert_lead(new_cairo_lead)
    generated_at = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    assert records.update_lead_contract_status(new_cairo_lead.id, "pending_review", True, generated_at)
    state = records.get_lead_contract_state(new_cairo_lead.id)
    assert state == {
        "contract_status": "pending_review",
        "contract_generated_at": generated_at.isoformat(),
        "manual_contract_review": True,
    }
    assert records.get_lead(new_cairo_lead.id).contract_status == "pending_review"
    assert records.update_lead_contract_status("missing", "approved") is False


def test_contract_and_review_round_trip(records, contract_data, new_cairo_lead):
    record = make_record(contract_data, new_cairo_lead.id)
    records.save_contract(record, make_review(record.id))

    stored = records.get_contract(record.id)
    assert stored == record
    assert stored.contract_data == contract_data

    review = records.get_review(record.id)
    assert review.risk_factors == ["Verify title"]
    assert review.compliance_check == {"basic_clauses": "present"}
    assert review.manual_review_required is False

    events = records.get_events(record.id)
    assert [event["event_type"] for event in events] == ["contract_created"]
    assert events[0]["event_data"]["contract_reference"] == contract_data.contract_id


def test_contract_and_review_are_written_atomically(records, contract_data, new_cairo_lead):
    record = make_record(contract_data, new_cairo_lead.id)
    records.save_contract(record, make_review(record.id))

    second = make_record(contract_data, new_cairo_lead.id, record_id="contract-2")
    broken_review = make_review(second.id)
    broken_review.compliance_check = {"status": object()}
    with pytest.raises(PersistenceError):
        records.save_contract(second, broken_review)

    assert records.get_contract("contract-2") is None
    assert records.get_events("contract-2") == []


def test_final_status_and_approval_event_share_the_insert(records, contract_data, new_cairo_lead):
    record = make_record(contract_data, new_cairo_lead.id, status="pending_review")
    records.save_contract(record, make_review(record.id), {"auto_approved": False})

    assert records.get_contract(record.id).status == "pending_review"
    events = records.get_events(record.id)
    assert [event["event_type"] for event in events] == ["contract_created", "approval_decided"]
    assert events[1]["event_data"] == {"from": "generated", "to": "pending_review", "auto_approved": False}

    second = make_record(contract_data, new_cairo_lead.id, record_id="contract-2", status="approved")
    with pytest.raises(PersistenceError):
        records.save_contract(second, make_review(second.id), {"reasons": object()})

    assert records.get_contract("contract-2") is None
    assert records.get_review("contract-2") is None
    assert records.get_events("contract-2") == []


def test_status_compare_and_set(records, contract_data, new_cairo_lead):
    record = make_record(contract_data, new_cairo_lead.id)
    records.save_contract(record, make_review(record.id))

    assert records.update_contract_status(record.id, "generated", "pending_review", "approval_decided", {"auto_approved": False})
    assert records.update_contract_status(record.id, "generated", "approved") is False
    assert records.get_contract(record.id).status == "pending_review"

    events = records.get_events(record.id)
    assert events[-1]["event_type"] == "approval_decided"
    assert events[-1]["event_data"] == {"from": "generated", "to": "pending_review", "auto_approved": False}


def test_list_contracts_filters_and_orders(records, contract_data, new_cairo_lead, downtown_land_lead):
    base = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
    records.save_contract(make_record(contract_data, new_cairo_lead.id, "older", base), make_review("older"))
    records.save_contract(
        make_record(contract_data, new_cairo_lead.id, "newer", base + timedelta(hours=1)), make_review("newer")
    )
    records.save_contract(
        make_record(contract_data, downtown_land_lead.id, "other", base, status="pending_review"),
        make_review("other"),
    )

    assert [c.id for c in records.list_contracts(lead_id=new_cairo_lead.id)] == ["newer", "older"]
    assert [c.id for c in records.list_contracts(status="pending_review")] == ["other"]
    assert len(records.list_contracts(limit=1)) == 1
    assert records.count_contracts_by_status() == {"generated": 2, "pending_review": 1}


def test_review_decision_fields(records, contract_data, new_cairo_lead):
    record = make_record(contract_data, new_cairo_lead.id)
    records.save_contract(record, make_review(record.id))
    approved_at = datetime(2026, 3, 11, 8, 0, tzinfo=timezone.utc)

    assert records.record_review_decision(record.id, "Title verified", "specialist@virtualestate.test", approved_at, False)

    review = records.get_review(record.id)
    assert review.specialist_notes == "Title verified"
    assert review.approved_by == "specialist@virtualestate.test"
    assert review.approved_at == approved_at


def test_notifications(records):
    notification = NotificationRecord(
        contract_id="contract-1",
        lead_id="lead-1",
        type="contract_generated",
        recipient="+201000000001",
        message="Your property contract has been generated and is under review. We'll update you soon.",
    )
    assert records.insert_notification(notification) >= 1
    assert records.list_notifications("contract-1") == [notification]


def test_sqlite_url_parsing():
    assert sqlite_path_from_url("sqlite:///./contract_generator.db") == "./contract_generator.db"
    assert sqlite_path_from_url("data/contracts.db") == "data/contracts.db"
    with pytest.raises(ConfigurationError):
        sqlite_path_from_url("postgresql://localhost/contracts")


def test_store_manager_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'env.db'}")
    monkeypatch.setenv("DOCUMENT_STORAGE_DIR", str(tmp_path / "docs"))
    monkeypatch.delenv("DOCUMENT_PUBLIC_BASE_URL", raising=False)

    manager = create_store_manager()

    assert manager.records.db_path == str(tmp_path / "env.db")
    assert (tmp_path / "env.db").exists()
    assert manager.documents.get_public_url("contracts/a.pdf").startswith("file://")
