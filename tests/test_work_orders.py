# tests/test_work_orders.py

from __future__ import annotations

from datetime import timedelta

import pytest

from cmms_system.domain import PartUsage, WorkOrderStatus, WorkOrderType
from cmms_system.services import CMMSService, ValidationError, merge_part_usage


@pytest.fixture()
def pump(service: CMMSService):
    return service.create_asset("Bomba 01", location="Sala de Bombas")


def test_add_plan_schedules_pending_order(service: CMMSService, pump, today) -> None:
    due = today + timedelta(days=3)
    plan, order = service.add_plan(pump.id, "Cambio de sellos", due, frequency="Trimestral")

    assert plan.id.startswith("MP-")
    assert plan.next_due_date == due
    assert order.id in service.work_orders
    assert order.type == WorkOrderType.PREVENTIVE
    assert order.status == WorkOrderStatus.PENDING
    assert order.date == due
    assert order.technician == "Por Asignar"
    assert order.details == "Mantenimiento Programado: Cambio de sellos (Trimestral)"
    assert order.location == "Sala de Bombas"


@pytest.mark.parametrize(
    "task", ["Inspección de polines", "INSPECCION visual", "Belt inspection"]
)
def test_inspection_tasks_create_inspection_orders(
    service: CMMSService, pump, today, task: str
) -> None:
    _, order = service.add_plan(pump.id, task, today)
    assert order.type == WorkOrderType.INSPECTION


def test_add_plan_validation(service: CMMSService, pump, today) -> None:
    with pytest.raises(ValidationError):
        service.add_plan(pump.id, " ", today)
    assert len(service.plans) == 0
    assert len(service.work_orders) == 0

    plan, _ = service.add_plan(pump.id, "Lubricar", today, frequency="")
    assert plan.frequency == "Mensual"


def test_plans_due_window(service: CMMSService, pump, today) -> None:
    overdue, _ = service.add_plan(pump.id, "A", today - timedelta(days=4))
    edge, _ = service.add_plan(pump.id, "B", today + timedelta(days=7))
    service.add_plan(pump.id, "C", today + timedelta(days=8))

    assert service.plans_due(today=today) == [overdue, edge]
    assert service.plans_due(today=today, window_days=0) == [overdue]


def test_update_and_delete_plan(service: CMMSService, pump, today) -> None:
    plan, _ = service.add_plan(pump.id, "Lubricar", today)
    service.update_plan(plan.id, task="Lubricar rodamientos", frequency="Semanal")
    stored = service.plans.get(plan.id)
    assert stored.task == "Lubricar rodamientos"
    assert stored.frequency == "Semanal"

    with pytest.raises(ValidationError):
        service.update_plan(plan.id, task="")

    service.delete_plan(plan.id)
    assert plan.id not in service.plans


def test_create_work_order_deducts_stock(service: CMMSService, pump, today) -> None:
    bearing = service.register_part("Rodamiento", sap_code="500100", current_stock=10)
    seal = service.register_part("Sello", sap_code="500101", current_stock=2)

    order = service.create_work_order(
        pump.id,
        WorkOrderType.CORRECTIVE,
        "Maria",
        "Cambio de rodamientos",
        parts_used=[(bearing.id, 3), (seal.id, 5), (bearing.id, 1)],
        today=today,
    )

    assert service.parts.get(bearing.id).current_stock == 6
    assert service.parts.get(seal.id).current_stock == 0
    assert order.parts_used == [
        PartUsage(part_id=bearing.id, quantity=4),
        PartUsage(part_id=seal.id, quantity=5),
    ]
    assert order.date == today
    assert order.request_date == today
    assert order.location == "Sala de Bombas"
    assert order.end_date is None


def test_unknown_parts_are_not_deducted(service: CMMSService, pump, today) -> None:
    order = service.create_work_order(
        pump.id,
        WorkOrderType.CORRECTIVE,
        "Maria",
        "Repuesto externo",
        parts_used=[("P-EXTERNO", 2)],
        today=today,
    )
    assert order.parts_used == [PartUsage(part_id="P-EXTERNO", quantity=2)]
    assert len(service.parts) == 0


def test_completed_order_gets_end_date(service: CMMSService, pump, today) -> None:
    order = service.create_work_order(
        pump.id,
        WorkOrderType.PREVENTIVE,
        "Juan",
        "Listo",
        status=WorkOrderStatus.COMPLETED,
        location="Taller",
        today=today,
    )
    assert order.end_date == today
    assert order.location == "Taller"


def test_create_work_order_validation(service: CMMSService, pump) -> None:
    with pytest.raises(ValidationError):
        service.create_work_order(pump.id, WorkOrderType.PREVENTIVE, "", "x")
    with pytest.raises(ValidationError):
        service.create_work_order(pump.id, WorkOrderType.PREVENTIVE, "Juan", " ")
    with pytest.raises(ValidationError):
        service.create_work_order(
            pump.id, WorkOrderType.PREVENTIVE, "Juan", "x", parts_used=[("P-1", 0)]
        )


def test_update_work_order_does_not_move_stock(service: CMMSService, pump, today) -> None:
    bearing = service.register_part("Rodamiento", sap_code="500100", current_stock=10)
    order = service.create_work_order(
        pump.id, WorkOrderType.CORRECTIVE, "Maria", "Revisión", today=today
    )

    service.update_work_order(order.id, parts_used=[(bearing.id, 4)], title="Revisión")

    stored = service.work_orders.get(order.id)
    assert stored.parts_used == [PartUsage(part_id=bearing.id, quantity=4)]
    assert service.parts.get(bearing.id).current_stock == 10


def test_toggle_work_order(service: CMMSService, pump, today) -> None:
    order = service.create_work_order(
        pump.id, WorkOrderType.CORRECTIVE, "Maria", "Revisión", today=today
    )
    later = today + timedelta(days=2)

    toggled = service.toggle_work_order(order.id, today=later)
    assert toggled.status == WorkOrderStatus.COMPLETED
    assert toggled.end_date == later

    reopened = service.toggle_work_order(order.id, today=later)
    assert reopened.status == WorkOrderStatus.PENDING
    assert reopened.end_date is None


def test_active_and_completed_ordering(service: CMMSService, pump, today) -> None:
    def make(offset: int, status: WorkOrderStatus):
        return service.create_work_order(
            pump.id,
            WorkOrderType.PREVENTIVE,
            "Juan",
            f"OT {offset}",
            scheduled_date=today + timedelta(days=offset),
            status=status,
            today=today,
        )

    late = make(5, WorkOrderStatus.PENDING)
    early = make(-2, WorkOrderStatus.IN_PROGRESS)
    old = make(-10, WorkOrderStatus.COMPLETED)
    recent = make(-1, WorkOrderStatus.COMPLETED)

    assert [o.id for o in service.active_work_orders()] == [early.id, late.id]
    assert [o.id for o in service.completed_work_orders()] == [recent.id, old.id]

    service.delete_work_order(late.id)
    assert [o.id for o in service.active_work_orders()] == [early.id]


def test_merge_part_usage_sums_repeated_parts() -> None:
    usages = merge_part_usage([], "P-1", 2)
    merge_part_usage(usages, "P-2", 1)
    merge_part_usage(usages, "P-1", 3)
    assert usages == [PartUsage("P-1", 5), PartUsage("P-2", 1)]
