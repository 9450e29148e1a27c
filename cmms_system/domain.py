"""Core data structures for the maintenance management (CMMS) system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class Criticality(str, Enum):
    """How critical an asset is for operations."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class AssetStatus(str, Enum):
    """Operating state of an asset."""

    OPERATIONAL = "Operational"
    UNDER_MAINTENANCE = "Under Maintenance"
    OUT_OF_SERVICE = "Out of Service"


class WorkOrderType(str, Enum):
    PREVENTIVE = "Preventive"
    CORRECTIVE = "Corrective"
    INSPECTION = "Inspection"
    PREDICTIVE = "Predictive"


class WorkOrderStatus(str, Enum):
    """Lifecycle stages for a work order."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class LogStatus(str, Enum):
    PENDING = "Pending"
    DONE = "Done"


class LogPriority(str, Enum):
    HIGH = "High"
    NORMAL = "Normal"


class SafetyStatus(str, Enum):
    PENDING = "Pending"
    DONE = "Done"


class SafetyPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ComplianceState(str, Enum):
    """Derived due-date state of a safety activity."""

    CURRENT = "Current"
    EXPIRING = "Expiring"
    EXPIRED = "Expired"


class PartCondition(str, Enum):
    NEW = "New"
    USED = "Used"
    REPAIRED = "Repaired"


class PurchaseType(str, Enum):
    MATERIAL = "Material"
    SERVICE = "Service"


class CostView(str, Enum):
    """Whether cost figures are reported before or after tax."""

    NET = "net"
    TOTAL = "total"


@dataclass(slots=True)
class PartLink:
    """A spare part an asset needs, with the quantity it needs."""

    part_id: str
    quantity: int


@dataclass(slots=True)
class Asset:
    """A physical asset under maintenance."""

    id: str
    name: str
    brand: str = ""
    model: str = ""
    capacity: str = ""
    sap_code: str = ""
    serial_number: str = ""
    location: str = ""
    criticality: Criticality = Criticality.MEDIUM
    status: AssetStatus = AssetStatus.OPERATIONAL
    photo_url: str = ""
    linked_parts: List[PartLink] = field(default_factory=list)

    def linked_quantity(self, part_id: str) -> Optional[int]:
        for link in self.linked_parts:
            if link.part_id == part_id:
                return link.quantity
        return None


@dataclass(slots=True)
class Part:
    """Spare part master data together with the stock on hand."""

    id: str
    name: str
    description: str = ""
    current_stock: int = 0
    min_stock: int = 0
    location: str = ""
    cost: float = 0.0
    brand: str = ""
    model: str = ""
    capacity: str = ""
    supplier: str = ""
    sap_code: str = ""
    image_url: str = ""
    condition: PartCondition = PartCondition.NEW

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock

    @property
    def stock_value(self) -> float:
        return self.current_stock * self.cost


@dataclass(slots=True)
class MaintenancePlan:
    """A recurring maintenance task for an asset."""

    id: str
    asset_id: str
    frequency: str
    task: str
    next_due_date: date


@dataclass(slots=True)
class PartUsage:
    """Quantity of a part consumed by a work order."""

    part_id: str
    quantity: int


@dataclass(slots=True)
class WorkOrder:
    """A maintenance job executed on an asset."""

    id: str
    asset_id: str
    type: WorkOrderType
    date: date
    technician: str
    details: str
    status: WorkOrderStatus = WorkOrderStatus.PENDING
    title: str = ""
    parts_used: List[PartUsage] = field(default_factory=list)
    request_date: Optional[date] = None
    end_date: Optional[date] = None
    location: str = ""
    image_url: str = ""


@dataclass(slots=True)
class LogNote:
    """Supervisor logbook entry."""

    id: str
    description: str
    created_at: date
    deadline: date
    status: LogStatus = LogStatus.PENDING
    priority: LogPriority = LogPriority.NORMAL


@dataclass(slots=True)
class SafetyRecord:
    """Scheduled HSEQ activity such as an inspection or a safety talk."""

    id: str
    title: str
    description: str
    scheduled_date: date
    status: SafetyStatus = SafetyStatus.PENDING
    priority: SafetyPriority = SafetyPriority.MEDIUM
    realized_date: Optional[date] = None
    evidence_url: str = ""


@dataclass(slots=True)
class PurchaseRecord:
    """A material or service purchase with its procurement references."""

    id: str
    description: str
    type: PurchaseType
    date: date
    net_cost: float
    tax: float
    supplier: str
    invoice_number: str = ""
    solped_number: str = ""
    order_number: str = ""
    receipt_number: str = ""
    related_asset_id: Optional[str] = None

    @property
    def amount(self) -> float:
        """Gross amount (net cost plus tax)."""

        return self.net_cost + self.tax


__all__ = [
    "Criticality",
    "AssetStatus",
    "WorkOrderType",
    "WorkOrderStatus",
    "LogStatus",
    "LogPriority",
    "SafetyStatus",
    "SafetyPriority",
    "ComplianceState",
    "PartCondition",
    "PurchaseType",
    "CostView",
    "PartLink",
    "Asset",
    "Part",
    "MaintenancePlan",
    "PartUsage",
    "WorkOrder",
    "LogNote",
    "SafetyRecord",
    "PurchaseRecord",
]
