"""Custody state machine: roles, legality, compare-and-set, explanations."""
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import ConflictError, InvalidTransition, PermissionDenied, ValidationError
from app.db.base import Base
from app.db.session import enable_sqlite_foreign_keys
from app.models.enums import DrugStatus, Role
from app.models.user import User
from app.services import alert_service, custody_service, drug_registry, scan_log_service
from app.services.explanation_service import ExplanationService
from app.services.verification_service import verify_code
from conftest import FakeLLM


@pytest.fixture
def drug(db, users):
    return drug_registry.register_drug(db, "Amoxicillin 500mg", "BATCH-001", date(2026, 12, 31), users["manufacturer"].id)


def test_full_chain_then_verify(db, users, drug):
    custody_service.advance_status(db, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                   location="Warehouse A", user_id=users["distributor"].id)
    assert len(scan_log_service.list_events(db, drug.id)) == 2

    custody_service.advance_status(db, drug.id, DrugStatus.IN_PHARMACY, Role.PHARMACY,
                                   location="City Pharmacy", user_id=users["pharmacy"].id)
    assert len(scan_log_service.list_events(db, drug.id)) == 3

    sold = custody_service.advance_status(db, drug.id, DrugStatus.SOLD, Role.PHARMACY,
                                          location="City Pharmacy", user_id=users["pharmacy"].id)
    assert sold.status == DrugStatus.SOLD.value
    events = scan_log_service.list_events(db, drug.id)
    assert [e.result for e in events] == ["created", "distributed", "in_pharmacy", "sold"]
    assert events[1].role == "distributor"
    assert events[1].location == "Warehouse A"
    assert events[1].user_id == users["distributor"].id

    result = verify_code(db, drug.verification_code)
    assert result.is_authentic is True
    assert len(result.events) == 5
    assert result.events[-1].role == "consumer"
    assert result.events[-1].result == "verified"
    assert result.events[-1].user_id is None


@pytest.mark.parametrize("target,role", [
    (DrugStatus.DISTRIBUTED, Role.PHARMACY),
    (DrugStatus.DISTRIBUTED, Role.MANUFACTURER),
    (DrugStatus.IN_PHARMACY, Role.DISTRIBUTOR),
    (DrugStatus.SOLD, Role.DISTRIBUTOR),
    (DrugStatus.SOLD, Role.CONSUMER),
    (DrugStatus.FLAGGED, Role.DISTRIBUTOR),
])
def test_wrong_role_is_denied_without_writing(db, drug, target, role):
    with pytest.raises(PermissionDenied):
        custody_service.advance_status(db, drug.id, target, role)
    db.expire_all()
    assert drug_registry.get_drug(db, drug.id).status == DrugStatus.CREATED.value
    assert len(scan_log_service.list_events(db, drug.id)) == 1


def test_pending_role_is_denied(db, drug):
    with pytest.raises(PermissionDenied) as exc:
        custody_service.advance_status(db, drug.id, DrugStatus.DISTRIBUTED, None)
    assert exc.value.message == "Role assignment pending"


def test_created_is_not_a_transition_target(db, drug):
    with pytest.raises(ValidationError):
        custody_service.advance_status(db, drug.id, DrugStatus.CREATED, Role.ADMIN)


def test_strict_rejects_skipping_a_step(db, drug):
    with pytest.raises(InvalidTransition) as exc:
        custody_service.advance_status(db, drug.id, DrugStatus.SOLD, Role.PHARMACY, strict=True)
    assert exc.value.current == "created"
    assert exc.value.target == "sold"
    assert len(scan_log_service.list_events(db, drug.id)) == 1


def test_invalid_transition_is_a_conflict():
    assert issubclass(InvalidTransition, ConflictError)


def test_flagged_is_terminal_under_strict_policy(db, users, drug):
    custody_service.flag_drug(db, drug.id, Role.PHARMACY, "suspicious", "Seal broken", strict=True)

    with pytest.raises(InvalidTransition):
        custody_service.advance_status(db, drug.id, DrugStatus.SOLD, Role.PHARMACY, strict=True)
    with pytest.raises(InvalidTransition):
        custody_service.advance_status(db, drug.id, DrugStatus.FLAGGED, Role.ADMIN, strict=True)


def test_reference_policy_overwrites_flagged_and_keeps_alert(db, users, drug):
    _, alert = custody_service.flag_drug(db, drug.id, Role.PHARMACY, "suspicious", "Seal broken", strict=False)

    sold = custody_service.advance_status(db, drug.id, DrugStatus.SOLD, Role.PHARMACY, strict=False)

    assert sold.status == DrugStatus.SOLD.value
    assert alert_service.get_alert(db, alert.id).resolved is False
    assert [e.result for e in scan_log_service.list_events(db, drug.id)] == ["created", "flagged", "sold"]


def test_stale_expected_status_is_rejected(db, drug):
    with pytest.raises(ConflictError) as exc:
        custody_service.advance_status(db, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                       expected_status=DrugStatus.IN_PHARMACY)
    assert exc.value.expected == "in_pharmacy"
    assert exc.value.actual == "created"
    assert len(scan_log_service.list_events(db, drug.id)) == 1


def test_expected_status_is_honoured_under_reference_policy(db, drug):
    with pytest.raises(ConflictError):
        custody_service.advance_status(db, drug.id, DrugStatus.SOLD, Role.PHARMACY,
                                       expected_status=DrugStatus.IN_PHARMACY, strict=False)


def test_concurrent_scanners_only_one_wins(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first, second = factory(), factory()
    try:
        maker = User(email="maker@meditrack.io", hashed_password="x", name="Maker", role="manufacturer")
        first.add(maker)
        first.commit()
        drug = drug_registry.register_drug(first, "Aspirin", "B-1", date(2027, 1, 1), maker.id)
        assert drug.status == DrugStatus.CREATED.value  # loaded in the first session

        custody_service.advance_status(second, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR, strict=True)

        with pytest.raises(ConflictError):
            custody_service.advance_status(first, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR, strict=True)

        second.expire_all()
        assert [e.result for e in scan_log_service.list_events(second, drug.id)] == ["created", "distributed"]
    finally:
        first.close()
        second.close()
        engine.dispose()


def test_transition_uses_fallback_text_when_llm_fails(db, drug):
    llm = FakeLLM(reply=None)
    custody_service.advance_status(db, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                   explainer=ExplanationService(client=llm))

    event = scan_log_service.list_events(db, drug.id)[-1]
    assert len(llm.calls) == 1
    assert event.explanation == "Drug status updated to distributed by distributor."


def test_transition_stores_llm_text(db, drug):
    llm = FakeLLM(reply="Shipped from the manufacturer to the regional distributor.")
    custody_service.advance_status(db, drug.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                   explainer=ExplanationService(client=llm))

    event = scan_log_service.list_events(db, drug.id)[-1]
    assert event.explanation == "Shipped from the manufacturer to the regional distributor."
    assert "Amoxicillin 500mg" in llm.calls[0][-1]["content"]


def test_flag_drug_records_alert_and_status(db, users, drug):
    flagged, alert = custody_service.flag_drug(
        db, drug.id, Role.PHARMACY, "duplicate_scan", "Same code scanned in two cities",
        location="City Pharmacy", user_id=users["pharmacy"].id,
    )
    assert flagged.status == DrugStatus.FLAGGED.value
    assert alert.drug_id == drug.id
    assert alert.resolved is False
    assert scan_log_service.list_events(db, drug.id)[-1].result == "flagged"


def test_stale_flag_writes_no_alert(db, drug):
    with pytest.raises(ConflictError):
        custody_service.flag_drug(db, drug.id, Role.PHARMACY, "suspicious", "Seal broken",
                                  expected_status=DrugStatus.IN_PHARMACY)
    assert alert_service.list_by_drug(db, drug.id) == []
    assert alert_service.list_unresolved(db) == []
    assert drug_registry.get_drug(db, drug.id).status == DrugStatus.CREATED.value


def test_flag_on_flagged_drug_writes_no_alert(db, drug):
    custody_service.flag_drug(db, drug.id, Role.PHARMACY, "suspicious", "Seal broken", strict=True)
    with pytest.raises(InvalidTransition):
        custody_service.flag_drug(db, drug.id, Role.ADMIN, "suspicious", "Again", strict=True)
    assert len(alert_service.list_by_drug(db, drug.id)) == 1


def test_flag_drug_denied_role_writes_no_alert(db, drug):
    with pytest.raises(PermissionDenied):
        custody_service.flag_drug(db, drug.id, Role.DISTRIBUTOR, "suspicious", "looks off")
    assert alert_service.list_by_drug(db, drug.id) == []


def test_next_statuses():
    assert custody_service.next_statuses(DrugStatus.CREATED) == [DrugStatus.DISTRIBUTED, DrugStatus.FLAGGED]
    assert custody_service.next_statuses(DrugStatus.IN_PHARMACY, Role.PHARMACY) == [DrugStatus.SOLD, DrugStatus.FLAGGED]
    assert custody_service.next_statuses(DrugStatus.CREATED, Role.DISTRIBUTOR) == [DrugStatus.DISTRIBUTED]
    assert custody_service.next_statuses(DrugStatus.FLAGGED) == []
