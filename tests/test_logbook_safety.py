# tests/test_logbook_safety.py

from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from cmms_system.domain import (
    ComplianceState,
    LogPriority,
    LogStatus,
    SafetyPriority,
    SafetyStatus,
)
from cmms_system.services import CMMSService, ValidationError


def test_add_log_defaults(service: CMMSService, today) -> None:
    note = service.add_log("Revisar presupuesto", today=today)
    assert note.id.startswith("L-")
    assert note.created_at == today
    assert note.deadline == today + timedelta(days=1)
    assert note.status == LogStatus.PENDING
    assert note.priority == LogPriority.NORMAL

    with pytest.raises(ValidationError):
        service.add_log("  ")


def test_urgent_logs_window(service: CMMSService, today) -> None:
    soon = service.add_log("A", deadline=today + timedelta(days=3), today=today)
    overdue = service.add_log("B", deadline=today - timedelta(days=2), today=today)
    service.add_log("C", deadline=today + timedelta(days=4), today=today)
    done = service.add_log("D", deadline=today, today=today)
    service.toggle_log(done.id)

    assert [n.id for n in service.urgent_logs(today=today)] == [soon.id, overdue.id]


def test_toggle_update_delete_log(service: CMMSService, today) -> None:
    note = service.add_log("A", today=today)
    assert service.toggle_log(note.id).status == LogStatus.DONE
    assert service.toggle_log(note.id).status == LogStatus.PENDING

    service.update_log(note.id, priority=LogPriority.HIGH, description="A2")
    stored = service.logs.get(note.id)
    assert stored.priority == LogPriority.HIGH
    assert stored.description == "A2"

    service.delete_log(note.id)
    assert len(service.logs) == 0


def test_logs_by_created_newest_first(service: CMMSService, today) -> None:
    old = service.add_log("old", today=today - timedelta(days=5))
    new = service.add_log("new", today=today)
    assert [n.id for n in service.logs_by_created()] == [new.id, old.id]


def test_request_part_purchase_adds_high_priority_log(service: CMMSService, today) -> None:
    part = service.register_part(
        "Rodamiento 6204", sap_code="500100", current_stock=2, min_stock=5
    )
    note = service.request_part_purchase(part.id, today=today)

    assert note.description == (
        "SOLICITUD COMPRA: Rodamiento 6204 (SKU: P-500100). Stock actual: 2, Mínimo: 5."
    )
    assert note.priority == LogPriority.HIGH
    assert note.status == LogStatus.PENDING
    assert note.deadline == today + timedelta(days=1)


def test_add_safety_record(service: CMMSService, today) -> None:
    pending = service.add_safety_record("Extintores", today=today)
    assert pending.id.startswith("S-")
    assert pending.scheduled_date == today + timedelta(days=1)
    assert pending.priority == SafetyPriority.MEDIUM
    assert pending.realized_date is None

    done = service.add_safety_record(
        "Charla 5 Min", "Bloqueo", status=SafetyStatus.DONE, today=today
    )
    assert done.realized_date == today

    with pytest.raises(ValidationError):
        service.add_safety_record("")


def test_toggle_and_update_safety_stamp_realized_date(service: CMMSService, today) -> None:
    record = service.add_safety_record("Extintores", today=today)

    toggled = service.toggle_safety_record(record.id, today=today)
    assert toggled.status == SafetyStatus.DONE
    assert toggled.realized_date == today

    reopened = service.toggle_safety_record(record.id, today=today)
    assert reopened.realized_date is None

    later = today + timedelta(days=3)
    updated = service.update_safety_record(record.id, status=SafetyStatus.DONE, today=later)
    assert updated.realized_date == later
    updated = service.update_safety_record(record.id, status=SafetyStatus.PENDING)
    assert updated.realized_date is None


def test_compliance_state(service: CMMSService, today) -> None:
    expired = service.add_safety_record(
        "A", scheduled_date=today - timedelta(days=1), today=today
    )
    expiring = service.add_safety_record(
        "B", scheduled_date=today + timedelta(days=7), today=today
    )
    current = service.add_safety_record(
        "C", scheduled_date=today + timedelta(days=8), today=today
    )
    done = service.add_safety_record(
        "D",
        scheduled_date=today - timedelta(days=30),
        status=SafetyStatus.DONE,
        today=today,
    )

    assert service.compliance_state(expired, today=today) == ComplianceState.EXPIRED
    assert service.compliance_state(expiring, today=today) == ComplianceState.EXPIRING
    assert service.compliance_state(current, today=today) == ComplianceState.CURRENT
    assert service.compliance_state(done, today=today) == ComplianceState.CURRENT


def test_safety_listings(service: CMMSService, today) -> None:
    late_pending = service.add_safety_record(
        "A", scheduled_date=today + timedelta(days=5), today=today
    )
    early_done = service.add_safety_record(
        "B",
        scheduled_date=today - timedelta(days=5),
        status=SafetyStatus.DONE,
        today=today,
    )
    early_pending = service.add_safety_record(
        "C", scheduled_date=today, today=today
    )

    assert [r.id for r in service.safety_report_order()] == [
        early_pending.id,
        late_pending.id,
        early_done.id,
    ]
    assert {r.id for r in service.pending_safety()} == {late_pending.id, early_pending.id}
    assert [r.id for r in service.completed_safety()] == [early_done.id]

    service.delete_safety_record(early_done.id)
    assert service.completed_safety() == []


def test_toggles_and_queries_are_logged(service: CMMSService, today, caplog) -> None:
    note = service.add_log("A", today=today)
    record = service.add_safety_record("Extintores", today=today)
    caplog.clear()

    with caplog.at_level(logging.DEBUG, logger="cmms_system"):
        service.toggle_log(note.id)
        service.toggle_safety_record(record.id, today=today)
        service.search_assets("")
        service.low_stock_parts()
        service.urgent_logs(today=today)

    info = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
    debug = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
    assert info == [
        f"Log note {note.id} is now Done",
        f"Safety activity {record.id} is now Done",
    ]
    assert len(debug) == 3
