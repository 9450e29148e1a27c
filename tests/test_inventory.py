# tests/test_inventory.py

from __future__ import annotations

import pytest

from cmms_system.repository import DuplicateRecordError, RecordNotFoundError
from cmms_system.services import CMMSService, ValidationError


def test_register_part_uses_sap_code_for_id(service: CMMSService) -> None:
    part = service.register_part("Rodamiento", sap_code=" 500100 ", current_stock=2)
    assert part.id == "P-500100"
    assert part.sap_code == "500100"

    unnamed = service.register_part("")
    assert unnamed.name == "Sin Nombre"
    assert unnamed.id.startswith("P-")

    with pytest.raises(DuplicateRecordError):
        service.register_part("Otro", sap_code="500100")


def test_register_part_rejects_negative_stock(service: CMMSService) -> None:
    with pytest.raises(ValidationError):
        service.register_part("Sello", current_stock=-1)


def test_low_stock_includes_parts_at_minimum(service: CMMSService) -> None:
    service.register_part("A", sap_code="1", current_stock=5, min_stock=5)
    service.register_part("B", sap_code="2", current_stock=6, min_stock=5)
    service.register_part("C", sap_code="3", current_stock=0, min_stock=1)

    assert [p.id for p in service.low_stock_parts()] == ["P-1", "P-3"]


def test_calculate_min_stock_clamps_each_demand() -> None:
    assert CMMSService.calculate_min_stock({"A-1": 2, "A-2": 0, "A-3": 3}) == 6
    assert CMMSService.calculate_min_stock({}) == 0


def test_register_part_with_linked_assets_sets_min_stock(service: CMMSService) -> None:
    pump = service.create_asset("Bomba")
    compressor = service.create_asset("Compresor")

    part = service.register_part(
        "Sello",
        sap_code="500101",
        min_stock=1,
        linked_assets={pump.id: 2, compressor.id: 3},
    )

    assert service.parts.get(part.id).min_stock == 5
    assert service.assets.get(pump.id).linked_quantity(part.id) == 2
    assert service.assets.get(compressor.id).linked_quantity(part.id) == 3
    assert service.linked_assets_for_part(part.id) == {pump.id: 2, compressor.id: 3}


def test_update_part_resyncs_links(service: CMMSService) -> None:
    pump = service.create_asset("Bomba")
    compressor = service.create_asset("Compresor")
    part = service.register_part(
        "Sello", sap_code="500101", linked_assets={pump.id: 2, compressor.id: 1}
    )

    service.update_part(part.id, linked_assets={pump.id: 4}, cost=12.5)

    stored = service.parts.get(part.id)
    assert stored.min_stock == 4
    assert stored.cost == 12.5
    assert service.linked_assets_for_part(part.id) == {pump.id: 4}
    assert service.assets.get(compressor.id).linked_quantity(part.id) is None


def test_update_part_without_links_keeps_min_stock(service: CMMSService) -> None:
    pump = service.create_asset("Bomba")
    part = service.register_part("Sello", sap_code="9", linked_assets={pump.id: 2})

    service.update_part(part.id, min_stock=7)

    assert service.parts.get(part.id).min_stock == 7
    assert service.linked_assets_for_part(part.id) == {pump.id: 2}


def test_linking_unknown_asset_is_rejected(service: CMMSService) -> None:
    with pytest.raises(RecordNotFoundError):
        service.register_part("Sello", linked_assets={"A-404": 1})
    assert len(service.parts) == 0


def test_add_stock(service: CMMSService) -> None:
    part = service.register_part("Correa", sap_code="500103", current_stock=3)
    service.add_stock(part.id, 4)
    assert service.parts.get(part.id).current_stock == 7

    with pytest.raises(ValidationError):
        service.add_stock(part.id, 0)
    with pytest.raises(RecordNotFoundError):
        service.add_stock("P-404", 1)


def test_search_parts_matches_name_or_id(service: CMMSService) -> None:
    service.register_part("Rodamiento 6204", sap_code="500100")
    service.register_part("Sello Mecánico", sap_code="500101")

    assert [p.id for p in service.search_parts("rodam")] == ["P-500100"]
    assert [p.id for p in service.search_parts("p-500101")] == ["P-500101"]
    assert len(service.search_parts("")) == 2


def test_inventory_value_and_ranking(service: CMMSService) -> None:
    service.register_part("A", sap_code="1", current_stock=2, cost=10.0)
    service.register_part("B", sap_code="2", current_stock=1, cost=100.0)
    service.register_part("C", sap_code="3", current_stock=0, cost=500.0)

    assert service.inventory_value() == pytest.approx(120.0)
    ranking = service.top_stock_values(limit=2)
    assert [(p.id, value) for p, value in ranking] == [("P-2", 100.0), ("P-1", 20.0)]


def test_rejected_update_leaves_part_unchanged(service: CMMSService) -> None:
    part = service.register_part(
        "Rodamiento", sap_code="500100", current_stock=5, min_stock=2
    )

    with pytest.raises(ValidationError):
        service.update_part(part.id, current_stock=-3, name="Cambiado")
    with pytest.raises(ValidationError):
        service.update_part(part.id, min_stock=-1)

    stored = service.parts.get(part.id)
    assert (stored.current_stock, stored.min_stock, stored.name) == (5, 2, "Rodamiento")
