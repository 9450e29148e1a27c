"""Service layer that implements the CMMS use-cases."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import date, timedelta
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)
from uuid import uuid4

from .domain import (
    Asset,
    AssetStatus,
    ComplianceState,
    CostView,
    Criticality,
    LogNote,
    LogPriority,
    LogStatus,
    MaintenancePlan,
    Part,
    PartCondition,
    PartLink,
    PartUsage,
    PurchaseRecord,
    PurchaseType,
    SafetyPriority,
    SafetyRecord,
    SafetyStatus,
    WorkOrder,
    WorkOrderStatus,
    WorkOrderType,
)
from .repository import InMemoryRepository, RecordNotFoundError, Repository

logger = logging.getLogger(__name__)

DEFAULT_TECHNICIAN = "Por Asignar"
DEFAULT_FREQUENCY = "Mensual"
DEFAULT_PART_NAME = "Sin Nombre"
INSPECTION_KEYWORDS = ("inspección", "inspeccion", "inspection")
ASSET_SORT_KEYS = ("name", "location")

PartQuantities = Union[Iterable[Tuple[str, int]], Iterable[PartUsage]]


class ValidationError(ValueError):
    """Raised when input is rejected by a business rule."""


@dataclass(slots=True)
class ServiceOptions:
    """Thresholds used by the derived-state rules."""

    due_window_days: int = 7
    urgent_log_days: int = 3
    safety_expiring_days: int = 7
    tax_rate: float = 0.19
    top_value_count: int = 5


@dataclass(slots=True)
class AssetOverview:
    """Everything the asset detail screen shows for one asset."""

    asset: Asset
    plans: List[MaintenancePlan]
    overdue_plans: int
    work_orders: List[WorkOrder]
    pending_orders: int
    linked_parts: List[Tuple[PartLink, Optional[Part]]]


@dataclass(slots=True)
class MonthlyCost:
    month: int
    material: float = 0.0
    service: float = 0.0

    @property
    def total(self) -> float:
        return self.material + self.service


@dataclass(slots=True)
class CostSummary:
    """Aggregated purchase costs for one calendar year."""

    year: int
    view: CostView
    total_material: float
    total_service: float
    average_monthly: float
    months: List[MonthlyCost] = field(default_factory=list)

    @property
    def total(self) -> float:
        return self.total_material + self.total_service


@dataclass(slots=True)
class DashboardSummary:
    """Traffic-light counters and charts for the landing screen."""

    low_stock: List[Part]
    plans_due: List[MaintenancePlan]
    urgent_logs: List[LogNote]
    pending_safety: List[SafetyRecord]
    criticality_counts: Dict[Criticality, int]
    top_stock_values: List[Tuple[Part, float]]


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:8].upper()}"


def days_until(due: date, today: date) -> int:
    """Whole days from today until the due date; negative when overdue."""

    return (due - today).days


def _apply_changes(record: Any, changes: Mapping[str, Any]) -> None:
    allowed = {f.name for f in fields(record)} - {"id"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(
            f"Unknown field(s) for {type(record).__name__}: {', '.join(sorted(unknown))}"
        )
    for name, value in changes.items():
        setattr(record, name, value)


def _as_usages(items: Optional[PartQuantities]) -> List[PartUsage]:
    usages: List[PartUsage] = []
    for item in items or ():
        if isinstance(item, PartUsage):
            part_id, quantity = item.part_id, item.quantity
        else:
            part_id, quantity = item
        merge_part_usage(usages, part_id, quantity)
    return usages


def merge_part_usage(
    usages: List[PartUsage], part_id: str, quantity: int
) -> List[PartUsage]:
    """Add a part to a usage list, summing quantities for repeated parts."""

    quantity = int(quantity)
    if quantity < 1:
        raise ValidationError("Part quantity must be at least 1")
    for usage in usages:
        if usage.part_id == part_id:
            usage.quantity += quantity
            return usages
    usages.append(PartUsage(part_id=part_id, quantity=quantity))
    return usages


class CMMSService:
    """Facade that exposes the maintenance-management use-cases to clients."""

    def __init__(
        self,
        asset_repo: Optional[Repository[Asset]] = None,
        part_repo: Optional[Repository[Part]] = None,
        plan_repo: Optional[Repository[MaintenancePlan]] = None,
        work_order_repo: Optional[Repository[WorkOrder]] = None,
        log_repo: Optional[Repository[LogNote]] = None,
        safety_repo: Optional[Repository[SafetyRecord]] = None,
        purchase_repo: Optional[Repository[PurchaseRecord]] = None,
        location_repo: Optional[Repository[str]] = None,
        *,
        options: Optional[ServiceOptions] = None,
    ) -> None:
        self.assets = asset_repo if asset_repo is not None else InMemoryRepository()
        self.parts = part_repo if part_repo is not None else InMemoryRepository()
        self.plans = plan_repo if plan_repo is not None else InMemoryRepository()
        self.work_orders = (
            work_order_repo if work_order_repo is not None else InMemoryRepository()
        )
        self.logs = log_repo if log_repo is not None else InMemoryRepository()
        self.safety = safety_repo if safety_repo is not None else InMemoryRepository()
        self.purchases = (
            purchase_repo if purchase_repo is not None else InMemoryRepository()
        )
        self.locations = (
            location_repo if location_repo is not None else InMemoryRepository()
        )
        self.options = options or ServiceOptions()

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------
    def create_asset(
        self,
        name: str,
        *,
        brand: str = "",
        model: str = "",
        capacity: str = "",
        sap_code: str = "",
        serial_number: str = "",
        location: str = "",
        criticality: Criticality = Criticality.MEDIUM,
        status: AssetStatus = AssetStatus.OPERATIONAL,
        photo_url: str = "",
        linked_parts: Optional[Iterable[Tuple[str, int]]] = None,
    ) -> Asset:
        if not name or not name.strip():
            raise ValidationError("An asset must have a name")
        asset = Asset(
            id=_new_id("A"),
            name=name.strip(),
            brand=brand,
            model=model,
            capacity=capacity,
            sap_code=sap_code,
            serial_number=serial_number,
            location=location.strip(),
            criticality=criticality,
            status=status,
            photo_url=photo_url,
        )
        for part_id, quantity in linked_parts or ():
            self._add_link(asset, part_id, quantity, skip_existing=True)
        self.assets.add(asset.id, asset)
        logger.info("Created asset %s (%s)", asset.id, asset.name)
        return asset

    def update_asset(self, asset_id: str, **changes: Any) -> Asset:
        asset = self.assets.get(asset_id)
        if "name" in changes and not str(changes["name"]).strip():
            raise ValidationError("An asset must have a name")
        _apply_changes(asset, changes)
        self.assets.upsert(asset.id, asset)
        logger.info("Updated asset %s", asset.id)
        return asset

    def delete_asset(self, asset_id: str) -> None:
        self.assets.remove(asset_id)
        logger.info("Deleted asset %s", asset_id)

    def search_assets(
        self, term: str = "", *, location: str = "", sort_by: str = "name"
    ) -> List[Asset]:
        if sort_by not in ASSET_SORT_KEYS:
            raise ValidationError(f"Cannot sort assets by {sort_by!r}")
        needle = term.strip()
        lowered = needle.lower()
        result = self.assets.filter(
            lambda asset: (lowered in asset.name.lower() or needle in asset.sap_code)
            and (not location or asset.location == location)
        )
        if sort_by == "name":
            result.sort(key=lambda asset: asset.name.lower())
        else:
            result.sort(key=lambda asset: asset.location.lower())
        logger.debug("Asset search %r/%r matched %d", term, location, len(result))
        return result

    def _add_link(
        self, asset: Asset, part_id: str, quantity: int, *, skip_existing: bool
    ) -> None:
        if part_id not in self.parts:
            raise RecordNotFoundError(f"Part {part_id!r} does not exist")
        quantity = int(quantity)
        if quantity < 1:
            raise ValidationError("Linked quantity must be at least 1")
        if asset.linked_quantity(part_id) is not None:
            if skip_existing:
                return
            raise ValidationError(
                f"Part {part_id!r} is already linked to asset {asset.id!r}"
            )
        asset.linked_parts.append(PartLink(part_id=part_id, quantity=quantity))

    def link_part(self, asset_id: str, part_id: str, quantity: int = 1) -> Asset:
        asset = self.assets.get(asset_id)
        self._add_link(asset, part_id, quantity, skip_existing=False)
        self.assets.upsert(asset.id, asset)
        logger.info("Linked part %s x%s to asset %s", part_id, quantity, asset.id)
        return asset

    def unlink_part(self, asset_id: str, part_id: str) -> Asset:
        asset = self.assets.get(asset_id)
        asset.linked_parts = [
            link for link in asset.linked_parts if link.part_id != part_id
        ]
        self.assets.upsert(asset.id, asset)
        logger.info("Unlinked part %s from asset %s", part_id, asset.id)
        return asset

    def asset_overview(
        self, asset_id: str, *, today: Optional[date] = None
    ) -> AssetOverview:
        today = today or date.today()
        asset = self.assets.get(asset_id)
        plans = self.plans.filter(lambda plan: plan.asset_id == asset_id)
        orders = self.work_orders.filter(lambda order: order.asset_id == asset_id)
        linked: List[Tuple[PartLink, Optional[Part]]] = []
        for link in asset.linked_parts:
            try:
                part: Optional[Part] = self.parts.get(link.part_id)
            except RecordNotFoundError:
                part = None
            linked.append((link, part))
        return AssetOverview(
            asset=asset,
            plans=plans,
            overdue_plans=sum(1 for plan in plans if plan.next_due_date < today),
            work_orders=orders,
            pending_orders=sum(
                1 for order in orders if order.status != WorkOrderStatus.COMPLETED
            ),
            linked_parts=linked,
        )

    # ------------------------------------------------------------------
    # Parts and stock
    # ------------------------------------------------------------------
    @staticmethod
    def calculate_min_stock(linked_assets: Mapping[str, int]) -> int:
        """Minimum stock needed to serve every linked asset once."""

        return sum(max(1, int(quantity)) for quantity in linked_assets.values())

    def register_part(
        self,
        name: str,
        *,
        description: str = "",
        current_stock: int = 0,
        min_stock: int = 0,
        location: str = "",
        cost: float = 0.0,
        brand: str = "",
        model: str = "",
        capacity: str = "",
        supplier: str = "",
        sap_code: str = "",
        image_url: str = "",
        condition: PartCondition = PartCondition.NEW,
        linked_assets: Optional[Mapping[str, int]] = None,
    ) -> Part:
        if current_stock < 0 or min_stock < 0:
            raise ValidationError("Stock quantities cannot be negative")
        sap_code = sap_code.strip()
        part = Part(
            id=f"P-{sap_code}" if sap_code else _new_id("P"),
            name=name.strip() or DEFAULT_PART_NAME,
            description=description,
            current_stock=int(current_stock),
            min_stock=int(min_stock),
            location=location,
            cost=float(cost),
            brand=brand,
            model=model,
            capacity=capacity,
            supplier=supplier,
            sap_code=sap_code,
            image_url=image_url,
            condition=condition,
        )
        if linked_assets is not None:
            self._check_assets_exist(linked_assets)
        self.parts.add(part.id, part)
        if linked_assets is not None:
            self._sync_asset_links(part, linked_assets)
        logger.info("Registered part %s (%s)", part.id, part.name)
        return part

    def update_part(
        self,
        part_id: str,
        *,
        linked_assets: Optional[Mapping[str, int]] = None,
        **changes: Any,
    ) -> Part:
        part = self.parts.get(part_id)
        for name in ("current_stock", "min_stock"):
            if name in changes and int(changes[name]) < 0:
                raise ValidationError("Stock quantities cannot be negative")
        if linked_assets is not None:
            self._check_assets_exist(linked_assets)
        _apply_changes(part, changes)
        if linked_assets is not None:
            self._sync_asset_links(part, linked_assets)
        self.parts.upsert(part.id, part)
        logger.info("Updated part %s", part.id)
        return part

    def delete_part(self, part_id: str) -> None:
        self.parts.remove(part_id)
        logger.info("Deleted part %s", part_id)

    def add_stock(self, part_id: str, quantity: int) -> Part:
        if quantity <= 0:
            raise ValidationError("Quantity to add must be positive")
        part = self.parts.get(part_id)
        part.current_stock += int(quantity)
        self.parts.upsert(part.id, part)
        logger.info(
            "Received %s units of part %s, stock now %s",
            quantity,
            part.id,
            part.current_stock,
        )
        return part

    def linked_assets_for_part(self, part_id: str) -> Dict[str, int]:
        links: Dict[str, int] = {}
        for asset in self.assets:
            quantity = asset.linked_quantity(part_id)
            if quantity is not None:
                links[asset.id] = quantity
        return links

    def _check_assets_exist(self, linked_assets: Mapping[str, int]) -> None:
        for asset_id in linked_assets:
            if asset_id not in self.assets:
                raise RecordNotFoundError(f"Asset {asset_id!r} does not exist")

    def _sync_asset_links(self, part: Part, linked_assets: Mapping[str, int]) -> None:
        """Make asset links for ``part`` match ``linked_assets`` exactly."""

        wanted = {
            asset_id: max(1, int(quantity))
            for asset_id, quantity in linked_assets.items()
        }
        total = self.calculate_min_stock(wanted)
        if total > 0:
            part.min_stock = total
            self.parts.upsert(part.id, part)
        for asset in self.assets:
            current = asset.linked_quantity(part.id)
            if asset.id in wanted:
                if current == wanted[asset.id]:
                    continue
                if current is None:
                    asset.linked_parts.append(
                        PartLink(part_id=part.id, quantity=wanted[asset.id])
                    )
                else:
                    for link in asset.linked_parts:
                        if link.part_id == part.id:
                            link.quantity = wanted[asset.id]
            elif current is not None:
                asset.linked_parts = [
                    link for link in asset.linked_parts if link.part_id != part.id
                ]
            else:
                continue
            self.assets.upsert(asset.id, asset)

    def search_parts(self, term: str = "") -> List[Part]:
        lowered = term.strip().lower()
        result = self.parts.filter(
            lambda part: lowered in part.name.lower() or lowered in part.id.lower()
        )
        logger.debug("Part search %r matched %d", term, len(result))
        return result

    def low_stock_parts(self) -> List[Part]:
        result = self.parts.filter(lambda part: part.is_low_stock)
        logger.debug("%d parts at or below minimum stock", len(result))
        return result

    def inventory_value(self, parts: Optional[Iterable[Part]] = None) -> float:
        source = self.parts if parts is None else parts
        return sum(part.stock_value for part in source)

    def top_stock_values(self, limit: Optional[int] = None) -> List[Tuple[Part, float]]:
        limit = self.options.top_value_count if limit is None else limit
        ranked = sorted(
            ((part, part.stock_value) for part in self.parts),
            key=lambda entry: entry[1],
            reverse=True,
        )
        return ranked[:limit]

    # ------------------------------------------------------------------
    # Maintenance plans
    # ------------------------------------------------------------------
    def add_plan(
        self,
        asset_id: str,
        task: str,
        next_due_date: date,
        *,
        frequency: str = DEFAULT_FREQUENCY,
    ) -> Tuple[MaintenancePlan, WorkOrder]:
        """Register a plan and the pending work order that schedules it."""

        asset = self.assets.get(asset_id)
        if not task or not task.strip():
            raise ValidationError("A maintenance plan needs a task")
        plan = MaintenancePlan(
            id=_new_id("MP"),
            asset_id=asset.id,
            frequency=frequency or DEFAULT_FREQUENCY,
            task=task.strip(),
            next_due_date=next_due_date,
        )
        self.plans.add(plan.id, plan)
        lowered = plan.task.lower()
        is_inspection = any(keyword in lowered for keyword in INSPECTION_KEYWORDS)
        order = WorkOrder(
            id=_new_id("WO"),
            asset_id=asset.id,
            type=WorkOrderType.INSPECTION if is_inspection else WorkOrderType.PREVENTIVE,
            date=plan.next_due_date,
            technician=DEFAULT_TECHNICIAN,
            details=f"Mantenimiento Programado: {plan.task} ({plan.frequency})",
            status=WorkOrderStatus.PENDING,
            location=asset.location,
        )
        self.work_orders.add(order.id, order)
        logger.info(
            "Added plan %s for asset %s and scheduled work order %s",
            plan.id,
            asset.id,
            order.id,
        )
        return plan, order

    def update_plan(self, plan_id: str, **changes: Any) -> MaintenancePlan:
        plan = self.plans.get(plan_id)
        if "task" in changes and not str(changes["task"]).strip():
            raise ValidationError("A maintenance plan needs a task")
        if "asset_id" in changes and changes["asset_id"] not in self.assets:
            raise RecordNotFoundError(f"Asset {changes['asset_id']!r} does not exist")
        _apply_changes(plan, changes)
        self.plans.upsert(plan.id, plan)
        logger.info("Updated plan %s", plan.id)
        return plan

    def delete_plan(self, plan_id: str) -> None:
        self.plans.remove(plan_id)
        logger.info("Deleted plan %s", plan_id)

    def plans_due(
        self, *, today: Optional[date] = None, window_days: Optional[int] = None
    ) -> List[MaintenancePlan]:
        """Plans that are overdue or due within the window."""

        today = today or date.today()
        window = self.options.due_window_days if window_days is None else window_days
        due = self.plans.filter(
            lambda plan: days_until(plan.next_due_date, today) <= window
        )
        due.sort(key=lambda plan: plan.next_due_date)
        logger.debug("%d plans due within %d days of %s", len(due), window, today)
        return due

    # ------------------------------------------------------------------
    # Work orders
    # ------------------------------------------------------------------
    def create_work_order(
        self,
        asset_id: str,
        order_type: WorkOrderType,
        technician: str,
        details: str,
        *,
        title: str = "",
        scheduled_date: Optional[date] = None,
        request_date: Optional[date] = None,
        status: WorkOrderStatus = WorkOrderStatus.PENDING,
        parts_used: Optional[PartQuantities] = None,
        location: Optional[str] = None,
        image_url: str = "",
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> WorkOrder:
        """Record a work order and deduct the parts it used from stock."""

        today = today or date.today()
        asset = self.assets.get(asset_id)
        if not technician or not technician.strip():
            raise ValidationError("A work order needs a technician")
        if not details or not details.strip():
            raise ValidationError("A work order needs details")
        scheduled_date = scheduled_date or today
        if status == WorkOrderStatus.COMPLETED and end_date is None:
            end_date = today
        order = WorkOrder(
            id=_new_id("WO"),
            asset_id=asset.id,
            type=order_type,
            date=scheduled_date,
            technician=technician.strip(),
            details=details.strip(),
            status=status,
            title=title,
            parts_used=_as_usages(parts_used),
            request_date=request_date or scheduled_date,
            end_date=end_date,
            location=asset.location if location is None else location,
            image_url=image_url,
        )
        self.work_orders.add(order.id, order)
        self._deduct_stock(order)
        logger.info("Created work order %s for asset %s", order.id, asset.id)
        return order

    def _deduct_stock(self, order: WorkOrder) -> None:
        for usage in order.parts_used:
            try:
                part = self.parts.get(usage.part_id)
            except RecordNotFoundError:
                logger.warning(
                    "Work order %s used unknown part %s; stock not deducted",
                    order.id,
                    usage.part_id,
                )
                continue
            part.current_stock = max(0, part.current_stock - usage.quantity)
            self.parts.upsert(part.id, part)
            logger.debug(
                "Deducted %s of part %s for %s, stock now %s",
                usage.quantity,
                part.id,
                order.id,
                part.current_stock,
            )

    def update_work_order(self, order_id: str, **changes: Any) -> WorkOrder:
        """Edit a work order. Stock is only moved when an order is created."""

        order = self.work_orders.get(order_id)
        if "parts_used" in changes:
            changes = dict(changes, parts_used=_as_usages(changes["parts_used"]))
        if "asset_id" in changes and changes["asset_id"] not in self.assets:
            raise RecordNotFoundError(f"Asset {changes['asset_id']!r} does not exist")
        _apply_changes(order, changes)
        self.work_orders.upsert(order.id, order)
        logger.info("Updated work order %s", order.id)
        return order

    def delete_work_order(self, order_id: str) -> None:
        self.work_orders.remove(order_id)
        logger.info("Deleted work order %s", order_id)

    def toggle_work_order(
        self, order_id: str, *, today: Optional[date] = None
    ) -> WorkOrder:
        today = today or date.today()
        order = self.work_orders.get(order_id)
        if order.status == WorkOrderStatus.COMPLETED:
            order.status = WorkOrderStatus.PENDING
            order.end_date = None
        else:
            order.status = WorkOrderStatus.COMPLETED
            order.end_date = today
        self.work_orders.upsert(order.id, order)
        logger.info("Work order %s is now %s", order.id, order.status.value)
        return order

    def active_work_orders(self) -> List[WorkOrder]:
        orders = self.work_orders.filter(
            lambda order: order.status != WorkOrderStatus.COMPLETED
        )
        orders.sort(key=lambda order: order.date)
        return orders

    def completed_work_orders(self) -> List[WorkOrder]:
        orders = self.work_orders.filter(
            lambda order: order.status == WorkOrderStatus.COMPLETED
        )
        orders.sort(key=lambda order: order.date, reverse=True)
        return orders

    # ------------------------------------------------------------------
    # Supervisor logbook
    # ------------------------------------------------------------------
    def add_log(
        self,
        description: str,
        *,
        priority: LogPriority = LogPriority.NORMAL,
        deadline: Optional[date] = None,
        status: LogStatus = LogStatus.PENDING,
        today: Optional[date] = None,
    ) -> LogNote:
        today = today or date.today()
        if not description or not description.strip():
            raise ValidationError("A log note needs a description")
        note = LogNote(
            id=_new_id("L"),
            description=description.strip(),
            created_at=today,
            deadline=deadline or today + timedelta(days=1),
            status=status,
            priority=priority,
        )
        self.logs.add(note.id, note)
        logger.info("Added log note %s", note.id)
        return note

    def update_log(self, log_id: str, **changes: Any) -> LogNote:
        note = self.logs.get(log_id)
        if "description" in changes and not str(changes["description"]).strip():
            raise ValidationError("A log note needs a description")
        _apply_changes(note, changes)
        self.logs.upsert(note.id, note)
        logger.info("Updated log note %s", note.id)
        return note

    def delete_log(self, log_id: str) -> None:
        self.logs.remove(log_id)
        logger.info("Deleted log note %s", log_id)

    def toggle_log(self, log_id: str) -> LogNote:
        note = self.logs.get(log_id)
        note.status = (
            LogStatus.DONE if note.status == LogStatus.PENDING else LogStatus.PENDING
        )
        self.logs.upsert(note.id, note)
        logger.info("Log note %s is now %s", note.id, note.status.value)
        return note

    def urgent_logs(
        self, *, today: Optional[date] = None, window_days: Optional[int] = None
    ) -> List[LogNote]:
        today = today or date.today()
        window = self.options.urgent_log_days if window_days is None else window_days
        urgent = self.logs.filter(
            lambda note: note.status == LogStatus.PENDING
            and days_until(note.deadline, today) <= window
        )
        logger.debug("%d urgent log notes on %s", len(urgent), today)
        return urgent

    def logs_by_created(self) -> List[LogNote]:
        return sorted(self.logs, key=lambda note: note.created_at, reverse=True)

    def request_part_purchase(
        self, part_id: str, *, today: Optional[date] = None
    ) -> LogNote:
        """Put a purchase request for a part on the supervisor logbook."""

        part = self.parts.get(part_id)
        description = (
            f"SOLICITUD COMPRA: {part.name} (SKU: {part.id}). "
            f"Stock actual: {part.current_stock}, Mínimo: {part.min_stock}."
        )
        note = self.add_log(description, priority=LogPriority.HIGH, today=today)
        logger.info("Requested purchase of part %s via log %s", part.id, note.id)
        return note

    # ------------------------------------------------------------------
    # Safety / HSEQ
    # ------------------------------------------------------------------
    def add_safety_record(
        self,
        title: str,
        description: str = "",
        *,
        scheduled_date: Optional[date] = None,
        priority: SafetyPriority = SafetyPriority.MEDIUM,
        status: SafetyStatus = SafetyStatus.PENDING,
        evidence_url: str = "",
        today: Optional[date] = None,
    ) -> SafetyRecord:
        today = today or date.today()
        if not title or not title.strip():
            raise ValidationError("A safety activity needs a title")
        record = SafetyRecord(
            id=_new_id("S"),
            title=title.strip(),
            description=description,
            scheduled_date=scheduled_date or today + timedelta(days=1),
            status=status,
            priority=priority,
            realized_date=today if status == SafetyStatus.DONE else None,
            evidence_url=evidence_url,
        )
        self.safety.add(record.id, record)
        logger.info("Added safety activity %s (%s)", record.id, record.title)
        return record

    def update_safety_record(
        self, record_id: str, *, today: Optional[date] = None, **changes: Any
    ) -> SafetyRecord:
        today = today or date.today()
        record = self.safety.get(record_id)
        if "title" in changes and not str(changes["title"]).strip():
            raise ValidationError("A safety activity needs a title")
        _apply_changes(record, changes)
        if "status" in changes:
            self._stamp_realized(record, today)
        self.safety.upsert(record.id, record)
        logger.info("Updated safety activity %s", record.id)
        return record

    @staticmethod
    def _stamp_realized(record: SafetyRecord, today: date) -> None:
        if record.status == SafetyStatus.DONE:
            record.realized_date = record.realized_date or today
        else:
            record.realized_date = None

    def delete_safety_record(self, record_id: str) -> None:
        self.safety.remove(record_id)
        logger.info("Deleted safety activity %s", record_id)

    def toggle_safety_record(
        self, record_id: str, *, today: Optional[date] = None
    ) -> SafetyRecord:
        today = today or date.today()
        record = self.safety.get(record_id)
        if record.status == SafetyStatus.PENDING:
            record.status = SafetyStatus.DONE
            record.realized_date = today
        else:
            record.status = SafetyStatus.PENDING
            record.realized_date = None
        self.safety.upsert(record.id, record)
        logger.info("Safety activity %s is now %s", record.id, record.status.value)
        return record

    def pending_safety(self) -> List[SafetyRecord]:
        return self.safety.filter(lambda r: r.status == SafetyStatus.PENDING)

    def completed_safety(self) -> List[SafetyRecord]:
        return self.safety.filter(lambda r: r.status == SafetyStatus.DONE)

    def safety_report_order(self) -> List[SafetyRecord]:
        """Pending activities first, each group by scheduled date."""

        return sorted(
            self.safety,
            key=lambda r: (r.status != SafetyStatus.PENDING, r.scheduled_date),
        )

    def compliance_state(
        self, record: SafetyRecord, *, today: Optional[date] = None
    ) -> ComplianceState:
        today = today or date.today()
        if record.status == SafetyStatus.DONE:
            return ComplianceState.CURRENT
        remaining = days_until(record.scheduled_date, today)
        if remaining < 0:
            return ComplianceState.EXPIRED
        if remaining <= self.options.safety_expiring_days:
            return ComplianceState.EXPIRING
        return ComplianceState.CURRENT

    # ------------------------------------------------------------------
    # Costs and purchases
    # ------------------------------------------------------------------
    def calculate_tax(self, net_cost: float) -> float:
        return float(round(net_cost * self.options.tax_rate))

    def add_purchase(
        self,
        description: str,
        purchase_type: PurchaseType,
        net_cost: float,
        supplier: str,
        *,
        tax: Optional[float] = None,
        purchase_date: Optional[date] = None,
        invoice_number: str = "",
        solped_number: str = "",
        order_number: str = "",
        receipt_number: str = "",
        related_asset_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> PurchaseRecord:
        if not description or not description.strip():
            raise ValidationError("A purchase needs a description")
        if net_cost < 0:
            raise ValidationError("Net cost cannot be negative")
        if related_asset_id and related_asset_id not in self.assets:
            raise RecordNotFoundError(f"Asset {related_asset_id!r} does not exist")
        record = PurchaseRecord(
            id=_new_id("PUR"),
            description=description.strip(),
            type=purchase_type,
            date=purchase_date or today or date.today(),
            net_cost=float(net_cost),
            tax=self.calculate_tax(net_cost) if tax is None else float(tax),
            supplier=supplier,
            invoice_number=invoice_number,
            solped_number=solped_number,
            order_number=order_number,
            receipt_number=receipt_number,
            related_asset_id=related_asset_id or None,
        )
        self.purchases.add(record.id, record)
        logger.info(
            "Recorded purchase %s (%s, %.2f gross)",
            record.id,
            record.type.value,
            record.amount,
        )
        return record

    def update_purchase(self, purchase_id: str, **changes: Any) -> PurchaseRecord:
        record = self.purchases.get(purchase_id)
        if "description" in changes and not str(changes["description"]).strip():
            raise ValidationError("A purchase needs a description")
        if "net_cost" in changes and float(changes["net_cost"]) < 0:
            raise ValidationError("Net cost cannot be negative")
        if "net_cost" in changes and "tax" not in changes:
            changes = dict(changes, tax=self.calculate_tax(changes["net_cost"]))
        related = changes.get("related_asset_id")
        if related and related not in self.assets:
            raise RecordNotFoundError(f"Asset {related!r} does not exist")
        _apply_changes(record, changes)
        self.purchases.upsert(record.id, record)
        logger.info("Updated purchase %s", record.id)
        return record

    def delete_purchase(self, purchase_id: str) -> None:
        self.purchases.remove(purchase_id)
        logger.info("Deleted purchase %s", purchase_id)

    def search_purchases(
        self, term: str = "", *, year: Optional[int] = None
    ) -> List[PurchaseRecord]:
        year = year or date.today().year
        needle = term.strip()
        lowered = needle.lower()
        result = self.purchases.filter(
            lambda record: record.date.year == year
            and (
                lowered in record.description.lower()
                or lowered in record.supplier.lower()
                or bool(needle and needle in record.order_number)
                or bool(needle and needle in record.invoice_number)
            )
        )
        result.sort(key=lambda record: record.date, reverse=True)
        logger.debug("Purchase search %r in %s matched %d", term, year, len(result))
        return result

    def cost_summary(
        self,
        year: Optional[int] = None,
        *,
        view: CostView = CostView.TOTAL,
        today: Optional[date] = None,
    ) -> CostSummary:
        today = today or date.today()
        year = year or today.year
        months = [MonthlyCost(month=index) for index in range(1, 13)]
        total_material = 0.0
        total_service = 0.0
        for record in self.purchases:
            if record.date.year != year:
                continue
            value = record.net_cost if view == CostView.NET else record.amount
            bucket = months[record.date.month - 1]
            if record.type == PurchaseType.MATERIAL:
                bucket.material += value
                total_material += value
            else:
                bucket.service += value
                total_service += value
        months_elapsed = today.month if year == today.year else 12
        logger.debug(
            "Cost summary %s (%s): material %.2f, service %.2f",
            year,
            view.value,
            total_material,
            total_service,
        )
        return CostSummary(
            year=year,
            view=view,
            total_material=total_material,
            total_service=total_service,
            average_monthly=(total_material + total_service) / (months_elapsed or 1),
            months=months,
        )

    def purchase_years(self) -> List[int]:
        years = {record.date.year for record in self.purchases}
        years.add(date.today().year)
        return sorted(years, reverse=True)

    # ------------------------------------------------------------------
    # Configuration: technical locations
    # ------------------------------------------------------------------
    def add_location(self, name: str) -> str:
        location = (name or "").strip()
        if not location:
            raise ValidationError("Location name cannot be empty")
        if location in self.locations:
            raise ValidationError(f"Location {location!r} already exists")
        self.locations.add(location, location)
        logger.info("Added location %s", location)
        return location

    def remove_location(self, name: str) -> None:
        """Drop a location from the catalogue; assets keep their value."""

        self.locations.remove(name)
        logger.info("Removed location %s", name)

    def location_catalogue(self) -> List[str]:
        return sorted(self.locations.list())

    def available_locations(self) -> List[str]:
        names = set(self.locations.list())
        names.update(asset.location for asset in self.assets if asset.location)
        return sorted(names)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------
    def dashboard(self, *, today: Optional[date] = None) -> DashboardSummary:
        today = today or date.today()
        counts = {criticality: 0 for criticality in Criticality}
        for asset in self.assets:
            counts[asset.criticality] += 1
        summary = DashboardSummary(
            low_stock=self.low_stock_parts(),
            plans_due=self.plans_due(today=today),
            urgent_logs=self.urgent_logs(today=today),
            pending_safety=self.pending_safety(),
            criticality_counts=counts,
            top_stock_values=self.top_stock_values(),
        )
        logger.debug(
            "Dashboard: %d low stock, %d plans due, %d urgent logs, %d safety pending",
            len(summary.low_stock),
            len(summary.plans_due),
            len(summary.urgent_logs),
            len(summary.pending_safety),
        )
        return summary


__all__ = [
    "CMMSService",
    "ServiceOptions",
    "ValidationError",
    "AssetOverview",
    "CostSummary",
    "MonthlyCost",
    "DashboardSummary",
    "merge_part_usage",
    "days_until",
    "DEFAULT_TECHNICIAN",
]
