"""FastAPI-based web interface for the CMMS system."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type, TypeVar, Union
from urllib.parse import urlencode

from fastapi import FastAPI, Form, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from ..config import Settings, get_settings
from ..demo_data import ensure_demo_data
from ..domain import (
    AssetStatus,
    ComplianceState,
    CostView,
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
from ..repository import RepositoryError
from ..services import CMMSService, ServiceOptions, ValidationError
from ..storage import CMMSDatabase

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

E = TypeVar("E", bound=Enum)

SERVICE_ERRORS = (ValidationError, RepositoryError)


def create_app(
    database_path: Optional[Union[str, Path]] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or get_settings()
    database = CMMSDatabase(database_path or settings.database_path)
    service = CMMSService(
        asset_repo=database.assets,
        part_repo=database.parts,
        plan_repo=database.plans,
        work_order_repo=database.work_orders,
        log_repo=database.logs,
        safety_repo=database.safety,
        purchase_repo=database.purchases,
        location_repo=database.locations,
        options=ServiceOptions(
            due_window_days=settings.due_window_days,
            urgent_log_days=settings.urgent_log_days,
            safety_expiring_days=settings.safety_expiring_days,
            tax_rate=settings.tax_rate,
        ),
    )
    if settings.seed_demo_data:
        ensure_demo_data(service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        database.close()
        logger.debug("Closed CMMS database")

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.cmms_service = service
    app.state.database = database
    templates.env.globals["app_name"] = settings.app_name

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------
    @app.get("/")
    async def dashboard(request: Request):
        service: CMMSService = request.app.state.cmms_service
        summary = service.dashboard()
        assets = {asset.id: asset for asset in service.assets}
        return render(
            request,
            "dashboard.html",
            summary=summary,
            assets=assets,
        )

    @app.post("/parts/{part_id}/request-purchase")
    async def request_purchase(part_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            part = service.parts.get(part_id)
            service.request_part_purchase(part_id)
        except SERVICE_ERRORS as exc:
            return fail("/", exc)
        return redirect("/", notice=f"Solicitud de compra para {part.name} agregada a la Bitácora.")

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------
    @app.get("/assets")
    async def asset_list(request: Request):
        service: CMMSService = request.app.state.cmms_service
        query = request.query_params
        term = query.get("q", "")
        location = query.get("location", "")
        sort_by = query.get("sort", "name")
        if sort_by not in ("name", "location"):
            sort_by = "name"
        return render(
            request,
            "assets.html",
            assets=service.search_assets(term, location=location, sort_by=sort_by),
            term=term,
            location=location,
            sort_by=sort_by,
            locations=service.available_locations(),
            parts=service.parts.list(),
            criticalities=Criticality,
            statuses=AssetStatus,
        )

    @app.post("/assets")
    async def create_asset(
        request: Request,
        name: str = Form(...),
        brand: str = Form(""),
        model: str = Form(""),
        capacity: str = Form(""),
        sap_code: str = Form(""),
        serial_number: str = Form(""),
        location: str = Form(""),
        criticality: str = Form(Criticality.MEDIUM.value),
        status: str = Form(AssetStatus.OPERATIONAL.value),
        photo_url: str = Form(""),
        linked_parts: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            asset = service.create_asset(
                name,
                brand=brand,
                model=model,
                capacity=capacity,
                sap_code=sap_code,
                serial_number=serial_number,
                location=location,
                criticality=parse_enum(Criticality, criticality, Criticality.MEDIUM),
                status=parse_enum(AssetStatus, status, AssetStatus.OPERATIONAL),
                photo_url=photo_url,
                linked_parts=parse_part_quantities(linked_parts),
            )
        except SERVICE_ERRORS as exc:
            return fail("/assets", exc)
        return redirect(f"/assets/{asset.id}")

    @app.get("/assets/{asset_id}")
    async def asset_detail(asset_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            overview = service.asset_overview(asset_id)
        except RepositoryError as exc:
            return fail("/assets", exc)
        return render(
            request,
            "asset_detail.html",
            overview=overview,
            today=date.today(),
            parts=service.parts.list(),
            locations=service.available_locations(),
            criticalities=Criticality,
            statuses=AssetStatus,
            order_types=WorkOrderType,
            order_statuses=WorkOrderStatus,
            edit_plan_id=request.query_params.get("edit_plan", ""),
        )

    @app.post("/assets/{asset_id}")
    async def update_asset(
        asset_id: str,
        request: Request,
        name: str = Form(...),
        brand: str = Form(""),
        model: str = Form(""),
        capacity: str = Form(""),
        sap_code: str = Form(""),
        serial_number: str = Form(""),
        location: str = Form(""),
        criticality: str = Form(Criticality.MEDIUM.value),
        status: str = Form(AssetStatus.OPERATIONAL.value),
        photo_url: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.update_asset(
                asset_id,
                name=name,
                brand=brand,
                model=model,
                capacity=capacity,
                sap_code=sap_code,
                serial_number=serial_number,
                location=location.strip(),
                criticality=parse_enum(Criticality, criticality, Criticality.MEDIUM),
                status=parse_enum(AssetStatus, status, AssetStatus.OPERATIONAL),
                photo_url=photo_url,
            )
        except SERVICE_ERRORS as exc:
            return fail(f"/assets/{asset_id}", exc)
        return redirect(f"/assets/{asset_id}")

    @app.post("/assets/{asset_id}/delete")
    async def delete_asset(asset_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.delete_asset(asset_id)
        except SERVICE_ERRORS as exc:
            return fail("/assets", exc)
        return redirect("/assets")

    @app.post("/assets/{asset_id}/parts")
    async def link_asset_part(
        asset_id: str,
        request: Request,
        part_id: str = Form(...),
        quantity: int = Form(1),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.link_part(asset_id, part_id, quantity)
        except SERVICE_ERRORS as exc:
            return fail(f"/assets/{asset_id}", exc)
        return redirect(f"/assets/{asset_id}")

    @app.post("/assets/{asset_id}/parts/{part_id}/unlink")
    async def unlink_asset_part(asset_id: str, part_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.unlink_part(asset_id, part_id)
        except SERVICE_ERRORS as exc:
            return fail(f"/assets/{asset_id}", exc)
        return redirect(f"/assets/{asset_id}")

    @app.post("/assets/{asset_id}/plans")
    async def add_plan(
        asset_id: str,
        request: Request,
        task: str = Form(...),
        next_due_date: str = Form(...),
        frequency: str = Form("Mensual"),
    ):
        service: CMMSService = request.app.state.cmms_service
        due = parse_date(next_due_date)
        if due is None:
            return fail(f"/assets/{asset_id}", ValidationError("Invalid due date"))
        try:
            service.add_plan(asset_id, task, due, frequency=frequency)
        except SERVICE_ERRORS as exc:
            return fail(f"/assets/{asset_id}", exc)
        return redirect(f"/assets/{asset_id}")

    @app.post("/plans/{plan_id}")
    async def update_plan(
        plan_id: str,
        request: Request,
        task: str = Form(...),
        next_due_date: str = Form(...),
        frequency: str = Form("Mensual"),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            plan = service.plans.get(plan_id)
        except RepositoryError as exc:
            return fail("/assets", exc)
        target = f"/assets/{plan.asset_id}"
        due = parse_date(next_due_date)
        if due is None:
            return fail(target, ValidationError("Invalid due date"))
        try:
            service.update_plan(
                plan_id, task=task, next_due_date=due, frequency=frequency
            )
        except SERVICE_ERRORS as exc:
            return fail(target, exc)
        return redirect(target)

    @app.post("/plans/{plan_id}/delete")
    async def delete_plan(plan_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            plan = service.plans.get(plan_id)
            service.delete_plan(plan_id)
        except SERVICE_ERRORS as exc:
            return fail("/assets", exc)
        return redirect(f"/assets/{plan.asset_id}")

    @app.post("/assets/{asset_id}/activities")
    async def add_activity(
        asset_id: str,
        request: Request,
        technician: str = Form(...),
        details: str = Form(...),
        title: str = Form(""),
        order_type: str = Form(WorkOrderType.CORRECTIVE.value),
        activity_date: str = Form(""),
        status: str = Form(WorkOrderStatus.COMPLETED.value),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.create_work_order(
                asset_id,
                parse_enum(WorkOrderType, order_type, WorkOrderType.CORRECTIVE),
                technician,
                details,
                title=title,
                scheduled_date=parse_date(activity_date),
                status=parse_enum(WorkOrderStatus, status, WorkOrderStatus.COMPLETED),
            )
        except SERVICE_ERRORS as exc:
            return fail(f"/assets/{asset_id}", exc)
        return redirect(f"/assets/{asset_id}")

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    @app.get("/inventory")
    async def inventory(request: Request):
        service: CMMSService = request.app.state.cmms_service
        term = request.query_params.get("q", "")
        parts = service.search_parts(term)
        return render(
            request,
            "inventory.html",
            parts=parts,
            term=term,
            total_value=service.inventory_value(parts),
            assets=service.assets.list(),
            links={part.id: service.linked_assets_for_part(part.id) for part in parts},
            conditions=PartCondition,
        )

    @app.post("/inventory")
    async def register_part(request: Request):
        service: CMMSService = request.app.state.cmms_service
        form = await request.form()
        try:
            service.register_part(
                str(form.get("name", "")),
                linked_assets=parse_asset_links(form),
                **part_fields(form),
            )
        except (ValueError, RepositoryError) as exc:
            return fail("/inventory", exc)
        return redirect("/inventory")

    @app.post("/inventory/{part_id}")
    async def update_part(part_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        form = await request.form()
        fields = part_fields(form)
        fields.pop("sap_code", None)
        name = str(form.get("name", "")).strip()
        if name:
            fields["name"] = name
        try:
            service.update_part(
                part_id, linked_assets=parse_asset_links(form), **fields
            )
        except (ValueError, RepositoryError) as exc:
            return fail("/inventory", exc)
        return redirect("/inventory")

    @app.post("/inventory/{part_id}/stock")
    async def add_stock(part_id: str, request: Request, quantity: int = Form(...)):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.add_stock(part_id, quantity)
        except SERVICE_ERRORS as exc:
            return fail("/inventory", exc)
        return redirect("/inventory")

    @app.post("/inventory/{part_id}/delete")
    async def delete_part(part_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.delete_part(part_id)
        except SERVICE_ERRORS as exc:
            return fail("/inventory", exc)
        return redirect("/inventory")

    # ------------------------------------------------------------------
    # Work orders
    # ------------------------------------------------------------------
    @app.get("/work-orders")
    async def work_orders(request: Request):
        service: CMMSService = request.app.state.cmms_service
        return render(
            request,
            "work_orders.html",
            active=service.active_work_orders(),
            completed=service.completed_work_orders(),
            assets={asset.id: asset for asset in service.assets},
            parts={part.id: part for part in service.parts},
            locations=service.available_locations(),
            order_types=WorkOrderType,
            order_statuses=WorkOrderStatus,
            today=date.today(),
        )

    @app.post("/work-orders")
    async def create_work_order(
        request: Request,
        asset_id: str = Form(...),
        technician: str = Form(...),
        details: str = Form(...),
        title: str = Form(""),
        order_type: str = Form(WorkOrderType.PREVENTIVE.value),
        status: str = Form(WorkOrderStatus.PENDING.value),
        request_date: str = Form(""),
        scheduled_date: str = Form(""),
        end_date: str = Form(""),
        location: str = Form(""),
        image_url: str = Form(""),
        parts_used: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.create_work_order(
                asset_id,
                parse_enum(WorkOrderType, order_type, WorkOrderType.PREVENTIVE),
                technician,
                details,
                title=title,
                scheduled_date=parse_date(scheduled_date),
                request_date=parse_date(request_date),
                status=parse_enum(WorkOrderStatus, status, WorkOrderStatus.PENDING),
                parts_used=parse_part_quantities(parts_used),
                location=location or None,
                image_url=image_url,
                end_date=parse_date(end_date),
            )
        except SERVICE_ERRORS as exc:
            return fail("/work-orders", exc)
        return redirect("/work-orders")

    @app.post("/work-orders/{order_id}")
    async def update_work_order(
        order_id: str,
        request: Request,
        technician: str = Form(...),
        details: str = Form(...),
        title: str = Form(""),
        order_type: str = Form(WorkOrderType.PREVENTIVE.value),
        status: str = Form(WorkOrderStatus.PENDING.value),
        scheduled_date: str = Form(""),
        end_date: str = Form(""),
        location: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        changes: Dict[str, object] = {
            "technician": technician,
            "details": details,
            "title": title,
            "type": parse_enum(WorkOrderType, order_type, WorkOrderType.PREVENTIVE),
            "status": parse_enum(WorkOrderStatus, status, WorkOrderStatus.PENDING),
            "end_date": parse_date(end_date),
        }
        scheduled = parse_date(scheduled_date)
        if scheduled is not None:
            changes["date"] = scheduled
        if location.strip():
            changes["location"] = location.strip()
        try:
            service.update_work_order(order_id, **changes)
        except SERVICE_ERRORS as exc:
            return fail("/work-orders", exc)
        return redirect("/work-orders")

    @app.post("/work-orders/{order_id}/toggle")
    async def toggle_work_order(order_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.toggle_work_order(order_id)
        except SERVICE_ERRORS as exc:
            return fail("/work-orders", exc)
        return redirect("/work-orders")

    @app.post("/work-orders/{order_id}/delete")
    async def delete_work_order(order_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.delete_work_order(order_id)
        except SERVICE_ERRORS as exc:
            return fail("/work-orders", exc)
        return redirect("/work-orders")

    # ------------------------------------------------------------------
    # Logbook
    # ------------------------------------------------------------------
    @app.get("/logbook")
    async def logbook(request: Request):
        service: CMMSService = request.app.state.cmms_service
        notes = service.logs_by_created()
        return render(
            request,
            "logbook.html",
            pending=[note for note in notes if note.status == LogStatus.PENDING],
            done=[note for note in notes if note.status == LogStatus.DONE],
            urgent_ids={note.id for note in service.urgent_logs()},
            priorities=LogPriority,
            today=date.today(),
        )

    @app.post("/logbook")
    async def add_log(
        request: Request,
        description: str = Form(...),
        priority: str = Form(LogPriority.NORMAL.value),
        deadline: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.add_log(
                description,
                priority=parse_enum(LogPriority, priority, LogPriority.NORMAL),
                deadline=parse_date(deadline),
            )
        except SERVICE_ERRORS as exc:
            return fail("/logbook", exc)
        return redirect("/logbook")

    @app.post("/logbook/{log_id}")
    async def update_log(
        log_id: str,
        request: Request,
        description: str = Form(...),
        priority: str = Form(LogPriority.NORMAL.value),
        deadline: str = Form(""),
        status: str = Form(LogStatus.PENDING.value),
    ):
        service: CMMSService = request.app.state.cmms_service
        changes: Dict[str, object] = {
            "description": description,
            "priority": parse_enum(LogPriority, priority, LogPriority.NORMAL),
            "status": parse_enum(LogStatus, status, LogStatus.PENDING),
        }
        parsed_deadline = parse_date(deadline)
        if parsed_deadline is not None:
            changes["deadline"] = parsed_deadline
        try:
            service.update_log(log_id, **changes)
        except SERVICE_ERRORS as exc:
            return fail("/logbook", exc)
        return redirect("/logbook")

    @app.post("/logbook/{log_id}/toggle")
    async def toggle_log(log_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.toggle_log(log_id)
        except SERVICE_ERRORS as exc:
            return fail("/logbook", exc)
        return redirect("/logbook")

    @app.post("/logbook/{log_id}/delete")
    async def delete_log(log_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.delete_log(log_id)
        except SERVICE_ERRORS as exc:
            return fail("/logbook", exc)
        return redirect("/logbook")

    # ------------------------------------------------------------------
    # Safety
    # ------------------------------------------------------------------
    @app.get("/safety")
    async def safety(request: Request):
        service: CMMSService = request.app.state.cmms_service
        records = service.safety_report_order()
        return render(
            request,
            "safety.html",
            pending=[r for r in records if r.status == SafetyStatus.PENDING],
            completed=[r for r in records if r.status == SafetyStatus.DONE],
            states={r.id: service.compliance_state(r) for r in records},
            compliance=ComplianceState,
            priorities=SafetyPriority,
            statuses=SafetyStatus,
        )

    @app.post("/safety")
    async def add_safety_record(
        request: Request,
        title: str = Form(...),
        description: str = Form(""),
        scheduled_date: str = Form(""),
        priority: str = Form(SafetyPriority.MEDIUM.value),
        status: str = Form(SafetyStatus.PENDING.value),
        evidence_url: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.add_safety_record(
                title,
                description,
                scheduled_date=parse_date(scheduled_date),
                priority=parse_enum(SafetyPriority, priority, SafetyPriority.MEDIUM),
                status=parse_enum(SafetyStatus, status, SafetyStatus.PENDING),
                evidence_url=evidence_url,
            )
        except SERVICE_ERRORS as exc:
            return fail("/safety", exc)
        return redirect("/safety")

    @app.post("/safety/{record_id}")
    async def update_safety_record(
        record_id: str,
        request: Request,
        title: str = Form(...),
        description: str = Form(""),
        scheduled_date: str = Form(""),
        priority: str = Form(SafetyPriority.MEDIUM.value),
        status: str = Form(SafetyStatus.PENDING.value),
        evidence_url: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        changes: Dict[str, object] = {
            "title": title,
            "description": description,
            "priority": parse_enum(SafetyPriority, priority, SafetyPriority.MEDIUM),
            "status": parse_enum(SafetyStatus, status, SafetyStatus.PENDING),
            "evidence_url": evidence_url,
        }
        scheduled = parse_date(scheduled_date)
        if scheduled is not None:
            changes["scheduled_date"] = scheduled
        try:
            service.update_safety_record(record_id, **changes)
        except SERVICE_ERRORS as exc:
            return fail("/safety", exc)
        return redirect("/safety")

    @app.post("/safety/{record_id}/toggle")
    async def toggle_safety_record(record_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.toggle_safety_record(record_id)
        except SERVICE_ERRORS as exc:
            return fail("/safety", exc)
        return redirect("/safety")

    @app.post("/safety/{record_id}/delete")
    async def delete_safety_record(record_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.delete_safety_record(record_id)
        except SERVICE_ERRORS as exc:
            return fail("/safety", exc)
        return redirect("/safety")

    # ------------------------------------------------------------------
    # Costs and purchases
    # ------------------------------------------------------------------
    @app.get("/costs")
    async def costs(request: Request):
        service: CMMSService = request.app.state.cmms_service
        query = request.query_params
        year = parse_int(query.get("year")) or date.today().year
        view = parse_enum(CostView, query.get("view", ""), CostView.TOTAL)
        term = query.get("q", "")
        return render(
            request,
            "costs.html",
            summary=service.cost_summary(year, view=view),
            purchases=service.search_purchases(term, year=year),
            years=service.purchase_years(),
            year=year,
            view=view,
            term=term,
            views=CostView,
            purchase_types=PurchaseType,
            assets={asset.id: asset for asset in service.assets},
            tax_rate=service.options.tax_rate,
        )

    @app.post("/costs")
    async def add_purchase(
        request: Request,
        description: str = Form(...),
        purchase_type: str = Form(PurchaseType.MATERIAL.value),
        net_cost: float = Form(...),
        tax: str = Form(""),
        supplier: str = Form(""),
        purchase_date: str = Form(""),
        invoice_number: str = Form(""),
        solped_number: str = Form(""),
        order_number: str = Form(""),
        receipt_number: str = Form(""),
        related_asset_id: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        try:
            record = service.add_purchase(
                description,
                parse_enum(PurchaseType, purchase_type, PurchaseType.MATERIAL),
                net_cost,
                supplier,
                tax=parse_float(tax),
                purchase_date=parse_date(purchase_date),
                invoice_number=invoice_number,
                solped_number=solped_number,
                order_number=order_number,
                receipt_number=receipt_number,
                related_asset_id=related_asset_id or None,
            )
        except SERVICE_ERRORS as exc:
            return fail("/costs", exc)
        return redirect("/costs", year=record.date.year)

    @app.post("/costs/{purchase_id}")
    async def update_purchase(
        purchase_id: str,
        request: Request,
        description: str = Form(...),
        purchase_type: str = Form(PurchaseType.MATERIAL.value),
        net_cost: float = Form(...),
        tax: str = Form(""),
        supplier: str = Form(""),
        purchase_date: str = Form(""),
        invoice_number: str = Form(""),
        solped_number: str = Form(""),
        order_number: str = Form(""),
        receipt_number: str = Form(""),
        related_asset_id: str = Form(""),
    ):
        service: CMMSService = request.app.state.cmms_service
        changes: Dict[str, object] = {
            "description": description,
            "type": parse_enum(PurchaseType, purchase_type, PurchaseType.MATERIAL),
            "net_cost": net_cost,
            "supplier": supplier,
            "invoice_number": invoice_number,
            "solped_number": solped_number,
            "order_number": order_number,
            "receipt_number": receipt_number,
            "related_asset_id": related_asset_id or None,
        }
        parsed_tax = parse_float(tax)
        if parsed_tax is not None:
            changes["tax"] = parsed_tax
        parsed_date = parse_date(purchase_date)
        if parsed_date is not None:
            changes["date"] = parsed_date
        try:
            service.update_purchase(purchase_id, **changes)
        except SERVICE_ERRORS as exc:
            return fail("/costs", exc)
        return redirect("/costs")

    @app.post("/costs/{purchase_id}/delete")
    async def delete_purchase(purchase_id: str, request: Request):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.delete_purchase(purchase_id)
        except SERVICE_ERRORS as exc:
            return fail("/costs", exc)
        return redirect("/costs")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @app.get("/configuration")
    async def configuration(request: Request):
        service: CMMSService = request.app.state.cmms_service
        return render(
            request,
            "configuration.html",
            locations=service.location_catalogue(),
        )

    @app.post("/configuration/locations")
    async def add_location(request: Request, name: str = Form("")):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.add_location(name)
        except SERVICE_ERRORS as exc:
            return fail("/configuration", exc)
        return redirect("/configuration")

    @app.post("/configuration/locations/delete")
    async def delete_location(request: Request, name: str = Form(...)):
        service: CMMSService = request.app.state.cmms_service
        try:
            service.remove_location(name)
        except SERVICE_ERRORS as exc:
            return fail("/configuration", exc)
        return redirect("/configuration")

    return app


def render(request: Request, template: str, **context: object):
    query = request.query_params
    context.update(error=query.get("error"), notice=query.get("notice"))
    return templates.TemplateResponse(request, template, context)


def redirect(path: str, **params: object) -> RedirectResponse:
    clean = {key: value for key, value in params.items() if value is not None}
    if clean:
        path += "?" + urlencode(clean)
    return RedirectResponse(path, status_code=303)


def fail(path: str, exc: Exception) -> RedirectResponse:
    logger.warning("Rejected request for %s: %s", path, exc)
    return redirect(path, error=str(exc))


def split_csv(values: str) -> List[str]:
    return [value.strip() for value in values.split(",") if value.strip()]


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or not str(value).strip():
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_float(value: Optional[str]) -> Optional[float]:
    if value is None or not str(value).strip():
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_enum(enum_type: Type[E], value: Optional[str], default: E) -> E:
    if not value:
        return default
    token = value.strip().lower()
    for member in enum_type:
        if token in {str(member.value).lower(), member.name.lower()}:
            return member
    return default


def parse_part_quantities(value: str) -> List[Tuple[str, int]]:
    """Parse ``"P-1:2, P-2"`` into ``[("P-1", 2), ("P-2", 1)]``."""

    entries: List[Tuple[str, int]] = []
    for token in split_csv(value):
        part_id, _, quantity = token.partition(":")
        amount = parse_int(quantity) if quantity else 1
        if not part_id.strip() or amount is None:
            continue
        entries.append((part_id.strip(), amount))
    return entries


def parse_asset_links(form) -> Optional[Dict[str, int]]:
    """Collect ``asset_<id>`` checkboxes with their ``qty_<id>`` demand."""

    if form.get("sync_links") is None:
        return None
    links: Dict[str, int] = {}
    for key in form.keys():
        if not key.startswith("asset_"):
            continue
        asset_id = key[len("asset_"):]
        links[asset_id] = max(1, parse_int(form.get(f"qty_{asset_id}")) or 1)
    return links


def part_fields(form) -> Dict[str, object]:
    fields: Dict[str, object] = {
        "description": str(form.get("description", "")),
        "location": str(form.get("location", "")),
        "brand": str(form.get("brand", "")),
        "model": str(form.get("model", "")),
        "capacity": str(form.get("capacity", "")),
        "supplier": str(form.get("supplier", "")),
        "sap_code": str(form.get("sap_code", "")),
        "image_url": str(form.get("image_url", "")),
        "condition": parse_enum(
            PartCondition, form.get("condition"), PartCondition.NEW
        ),
    }
    for name in ("current_stock", "min_stock"):
        value = parse_int(form.get(name))
        if value is not None:
            fields[name] = value
    cost = parse_float(form.get("cost"))
    if cost is not None:
        fields["cost"] = cost
    return fields
