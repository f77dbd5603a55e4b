"""Registry: registration, code format, listings, delete cascade."""
import re
from datetime import date

import pytest

from app.core.exceptions import DrugNotFound, ValidationError
from app.models.alert import Alert
from app.models.enums import DrugStatus
from app.models.scan_event import ScanEvent
from app.services import alert_service, drug_registry, scan_log_service

CODE_PATTERN = re.compile(r"^MED-\d+-[0-9a-z]{9}$")


def test_register_creates_drug_with_single_created_event(db, users):
    drug = drug_registry.register_drug(db, "Amoxicillin 500mg", "BATCH-001", date(2026, 1, 1), users["manufacturer"].id)

    assert drug.status == DrugStatus.CREATED.value
    assert CODE_PATTERN.match(drug.verification_code)
    assert drug.manufacturer_id == users["manufacturer"].id

    events = scan_log_service.list_events(db, drug.id)
    assert len(events) == 1
    assert events[0].result == "created"
    assert events[0].role == "manufacturer"
    assert events[0].user_id == users["manufacturer"].id
    assert events[0].location == "Manufacturing Facility"
    assert events[0].explanation == "Drug registered in the system by manufacturer."


def test_register_accepts_iso_string_and_past_expiry(db, users):
    drug = drug_registry.register_drug(db, "Paracetamol", "B-7", "2020-05-01", users["manufacturer"].id)
    assert drug.expiry_date == date(2020, 5, 1)


@pytest.mark.parametrize("name,batch,expiry,field", [
    ("", "B-1", date(2027, 1, 1), "name"),
    ("   ", "B-1", date(2027, 1, 1), "name"),
    ("Aspirin", "", date(2027, 1, 1), "batch_number"),
    ("Aspirin", "B-1", "31/12/2027", "expiry_date"),
    ("Aspirin", "B-1", None, "expiry_date"),
])
def test_register_rejects_malformed_input(db, users, name, batch, expiry, field):
    with pytest.raises(ValidationError) as exc:
        drug_registry.register_drug(db, name, batch, expiry, users["manufacturer"].id)
    assert exc.value.field == field
    assert db.query(ScanEvent).count() == 0


def test_codes_are_unique_across_registrations(db, users):
    codes = {
        drug_registry.register_drug(db, f"Drug {i}", f"B-{i}", date(2027, 1, 1), users["manufacturer"].id).verification_code
        for i in range(20)
    }
    assert len(codes) == 20


def test_code_collision_regenerates(db, users, monkeypatch):
    first = drug_registry.register_drug(db, "Aspirin", "B-1", date(2027, 1, 1), users["manufacturer"].id)
    codes = iter([first.verification_code, "MED-1700000000000-abcdefghi"])
    monkeypatch.setattr(drug_registry, "generate_verification_code", lambda: next(codes))

    second = drug_registry.register_drug(db, "Ibuprofen", "B-2", date(2027, 1, 1), users["manufacturer"].id)

    assert second.verification_code == "MED-1700000000000-abcdefghi"
    assert scan_log_service.count_by_result(db, second.id, "created") == 1


def test_qr_payload_is_verify_url():
    assert drug_registry.qr_payload("MED-1-abc").endswith("/verify/MED-1-abc")


def test_list_by_manufacturer_newest_first_and_scoped(db, users):
    mfr, other = users["manufacturer"], users["manufacturer2"]
    a = drug_registry.register_drug(db, "A", "B-1", date(2027, 1, 1), mfr.id)
    drug_registry.register_drug(db, "X", "B-9", date(2027, 1, 1), other.id)
    b = drug_registry.register_drug(db, "B", "B-2", date(2027, 1, 1), mfr.id)

    mine = drug_registry.list_by_manufacturer(db, mfr.id)
    assert [d.id for d in mine] == [b.id, a.id]


def test_list_all_with_status_filter(db, users):
    mfr = users["manufacturer"]
    a = drug_registry.register_drug(db, "A", "B-1", date(2027, 1, 1), mfr.id)
    b = drug_registry.register_drug(db, "B", "B-2", date(2027, 1, 1), mfr.id)

    assert [d.id for d in drug_registry.list_all(db)] == [b.id, a.id]
    assert len(drug_registry.list_all(db, status=DrugStatus.CREATED)) == 2
    assert drug_registry.list_all(db, status=DrugStatus.SOLD) == []


def test_find_by_code_unknown_returns_none(db):
    assert drug_registry.find_by_code(db, "UNKNOWN-CODE") is None


def test_get_drug_unknown_raises(db):
    with pytest.raises(DrugNotFound):
        drug_registry.get_drug(db, 999)


def test_delete_cascades_events_and_alerts(db, users):
    drug = drug_registry.register_drug(db, "A", "B-1", date(2027, 1, 1), users["manufacturer"].id)
    alert_service.create_alert(db, drug.id, "expired", "past expiry")
    keep = drug_registry.register_drug(db, "K", "B-2", date(2027, 1, 1), users["manufacturer"].id)

    drug_registry.delete_drug(db, drug.id, user_id=users["admin"].id)

    assert drug_registry.find_by_code(db, drug.verification_code) is None
    assert db.query(ScanEvent).filter(ScanEvent.drug_id == drug.id).count() == 0
    assert db.query(Alert).filter(Alert.drug_id == drug.id).count() == 0
    assert len(scan_log_service.list_events(db, keep.id)) == 1


def test_delete_unknown_raises(db):
    with pytest.raises(DrugNotFound):
        drug_registry.delete_drug(db, 42)
