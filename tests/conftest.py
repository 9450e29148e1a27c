# tests/conftest.py

from __future__ import annotations

import dataclasses
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from cmms_system.config import Settings
from cmms_system.demo_data import ensure_demo_data
from cmms_system.services import CMMSService
from cmms_system.web.app import create_app

TODAY = date(2024, 5, 15)


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def service() -> CMMSService:
    """Empty service backed by in-memory repositories."""
    return CMMSService()


@pytest.fixture()
def demo_service(service: CMMSService) -> CMMSService:
    """In-memory service holding the demo data set, seeded on the pinned date."""
    ensure_demo_data(service, today=TODAY)
    return service


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return dataclasses.replace(
        Settings.from_env(),
        data_dir=tmp_path,
        database_path=tmp_path / "cmms.sqlite3",
        seed_demo_data=True,
    )


@pytest.fixture()
def client(settings: Settings):
    app = create_app(settings=settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def app_service(client: TestClient) -> CMMSService:
    return client.app.state.cmms_service
