"""Maintenance management (CMMS) system for an industrial plant.

This package provides the records for assets, spare parts, maintenance plans,
work orders, the supervisor logbook, HSEQ activities and purchases, SQLite
persistence for them, and a service facade implementing the derived rules
(low stock, due windows, stock deduction and minimum-stock calculation).
"""

from .domain import (
    Asset,
    AssetStatus,
    Criticality,
    LogNote,
    MaintenancePlan,
    Part,
    PurchaseRecord,
    SafetyRecord,
    WorkOrder,
    WorkOrderStatus,
    WorkOrderType,
)
from .services import CMMSService, DashboardSummary, ServiceOptions, ValidationError

__all__ = [
    "Asset",
    "AssetStatus",
    "Criticality",
    "LogNote",
    "MaintenancePlan",
    "Part",
    "PurchaseRecord",
    "SafetyRecord",
    "WorkOrder",
    "WorkOrderStatus",
    "WorkOrderType",
    "CMMSService",
    "DashboardSummary",
    "ServiceOptions",
    "ValidationError",
]
