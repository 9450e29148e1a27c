"""Initial data set loaded into an empty CMMS store."""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Optional

from .domain import (
    AssetStatus,
    Criticality,
    LogPriority,
    LogStatus,
    PartCondition,
    PurchaseType,
    SafetyPriority,
    SafetyStatus,
    WorkOrderStatus,
    WorkOrderType,
)
from .services import CMMSService

logger = logging.getLogger(__name__)


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def ensure_demo_data(service: CMMSService, *, today: Optional[date] = None) -> bool:
    """Seed the store only when every collection is empty. Returns True if seeded."""

    collections = (
        service.assets,
        service.parts,
        service.plans,
        service.work_orders,
        service.logs,
        service.safety,
        service.purchases,
        service.locations,
    )
    if any(len(collection) > 0 for collection in collections):
        logger.debug("Store already holds records, skipping demo data")
        return False
    today = today or date.today()

    def days(offset: int) -> date:
        return today + timedelta(days=offset)

    bearing = service.register_part(
        name="Rodamiento 6204",
        description="Rodamiento rígido de bolas",
        current_stock=2,
        min_stock=5,
        location="Estante A-1",
        cost=15.50,
        brand="SKF",
        model="6204-2RSH",
        supplier="Rodamientos Chile",
        sap_code="500100",
    )
    seal = service.register_part(
        name="Sello Mecánico 50mm",
        description="Para bomba centrífuga",
        current_stock=8,
        min_stock=3,
        location="Estante B-2",
        cost=120.00,
        brand="John Crane",
        supplier="FluidTech",
        sap_code="500101",
    )
    service.register_part(
        name="Aceite Hidráulico ISO 68",
        description="Tambor 200L",
        current_stock=1,
        min_stock=2,
        location="Patio de Aceites",
        cost=450.00,
        brand="Shell",
        model="Tellus S2",
        capacity="200 Litros",
        supplier="Lubricantes Industriales",
        sap_code="500102",
        condition=PartCondition.NEW,
    )
    belt = service.register_part(
        name="Correa V B-52",
        description="Correa de transmisión",
        current_stock=20,
        min_stock=10,
        location="Estante C-1",
        cost=12.00,
        brand="Gates",
        model="B-52",
        supplier="Transmisiones SA",
        sap_code="500103",
    )

    pump = service.create_asset(
        name="Bomba Centrífuga 01",
        brand="Grundfos",
        model="NB 50-125",
        capacity="50 m3/h",
        sap_code="100052",
        serial_number="SN-998877",
        location="Sala de Bombas Norte",
        criticality=Criticality.HIGH,
        linked_parts=[(bearing.id, 2), (seal.id, 1)],
    )
    compressor = service.create_asset(
        name="Compresor de Aire",
        brand="Atlas Copco",
        model="GA 37",
        capacity="37 kW",
        sap_code="100088",
        serial_number="SN-112233",
        location="Taller Central",
        criticality=Criticality.MEDIUM,
        status=AssetStatus.UNDER_MAINTENANCE,
        linked_parts=[(belt.id, 3)],
    )
    conveyor = service.create_asset(
        name="Cinta Transportadora 04",
        brand="Metso",
        model="CV-400",
        capacity="400 TPH",
        sap_code="100150",
        serial_number="SN-445566",
        location="Patio de Carga",
        criticality=Criticality.HIGH,
    )
    for asset in (pump, compressor, conveyor):
        if asset.location not in service.locations:
            service.add_location(asset.location)

    service.add_plan(
        pump.id, "Cambio de sellos y lubricación", days(2), frequency="Trimestral"
    )
    service.add_plan(
        compressor.id, "Limpieza de filtros de admisión", days(15), frequency="Mensual"
    )
    service.add_plan(
        conveyor.id, "Inspección de polines y banda", days(-1), frequency="Semestral"
    )

    # Historical order: its parts were consumed long ago, so no stock movement.
    history = service.create_work_order(
        pump.id,
        WorkOrderType.PREVENTIVE,
        "Juan Pérez",
        "Mantenimiento preventivo estándar realizado sin novedades.",
        scheduled_date=days(-30),
        status=WorkOrderStatus.COMPLETED,
        end_date=days(-30),
        today=today,
    )
    service.update_work_order(history.id, parts_used=[(bearing.id, 2)])
    service.create_work_order(
        conveyor.id,
        WorkOrderType.CORRECTIVE,
        "Maria González",
        "Ruido excesivo en rodillo de retorno.",
        status=WorkOrderStatus.IN_PROGRESS,
        today=today,
    )

    service.add_log(
        "Revisar presupuesto anual de repuestos",
        priority=LogPriority.HIGH,
        deadline=days(1),
        today=days(-10),
    )
    service.add_log(
        "Coordinar visita técnica de Atlas Copco",
        deadline=days(10),
        today=days(-2),
    )
    service.add_log(
        "Renovar EPP de equipo nocturno",
        priority=LogPriority.HIGH,
        deadline=days(-5),
        status=LogStatus.DONE,
        today=days(-15),
    )

    service.add_safety_record(
        "Inspección Extintores",
        "Inspección mensual de extintores en zona de carga.",
        scheduled_date=days(3),
        priority=SafetyPriority.HIGH,
        today=today,
    )
    service.add_safety_record(
        "Charla 5 Min",
        "Riesgos de atrapamiento en cintas y bloqueo de energías.",
        scheduled_date=today,
        status=SafetyStatus.DONE,
        evidence_url="doc.pdf",
        today=today,
    )

    service.add_purchase(
        "Compra anual de rodamientos SKF",
        PurchaseType.MATERIAL,
        1500,
        "Rodamientos Chile",
        tax=285,
        purchase_date=today,
        invoice_number="FAC-9921",
        solped_number="SOL-1020",
        order_number="OC-5050",
        receipt_number="REC-001",
    )
    service.add_purchase(
        "Servicio de rebobinado Motor A-001",
        PurchaseType.SERVICE,
        850,
        "Motores del Sur",
        tax=161.5,
        purchase_date=add_months(today, -1),
        invoice_number="EXT-2023",
        solped_number="SOL-0990",
        order_number="OC-4980",
        receipt_number="HES-220",
        related_asset_id=pump.id,
    )
    service.add_purchase(
        "Lubricantes y Filtros",
        PurchaseType.MATERIAL,
        420,
        "Lubricantes Industriales",
        tax=79.8,
        purchase_date=add_months(today, -2),
        invoice_number="FAC-1102",
        order_number="OC-4800",
        receipt_number="REC-998",
    )
    service.add_purchase(
        "Consultoría externa vibraciones",
        PurchaseType.SERVICE,
        1200,
        "VibraCheck Ltda.",
        tax=228,
        purchase_date=add_months(today, -2),
        invoice_number="HON-55",
        order_number="OC-4810",
        receipt_number="HES-300",
    )
    service.add_purchase(
        "Repuestos Bomba de Agua",
        PurchaseType.MATERIAL,
        300,
        "FluidTech",
        tax=57,
        purchase_date=add_months(today, -5),
        solped_number="SOL-0500",
        order_number="OC-4200",
    )
    logger.info("Seeded demo data")
    return True


__all__ = ["ensure_demo_data", "add_months"]
