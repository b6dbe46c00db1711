from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from onsite_redemption.config import Config
from onsite_redemption.database import connection
from onsite_redemption.database.models import (
    Abstract,
    Category,
    CertificateTemplate,
    Event,
    Registration,
    ResourceOption,
)
from onsite_redemption.main import app


@pytest.fixture
def database(tmp_path, monkeypatch):
    monkeypatch.setattr(Config, "TEMPLATE_DIR", tmp_path / "templates")
    monkeypatch.setattr(Config, "OUTPUT_DIR", tmp_path / "certificates")
    connection.configure_database(f"sqlite:///{tmp_path / 'redemption.db'}")
    connection.init_db()
    yield connection.engine
    connection.engine.dispose()


@pytest.fixture
def db(database):
    session = connection.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db):
    """Event E1 with unrestricted and restricted categories, food/kit/certificate options."""
    db.add(
        Event(
            id="evt-1",
            name="Annual Cardiology Summit",
            timezone="UTC",
            venue_name="Convention Centre",
            venue_city="Pune",
            start_date=datetime(2026, 3, 9),
            end_date=datetime(2026, 3, 11),
        )
    )
    db.add_all(
        [
            Category(id="cat-delegate", event_id="evt-1", name="Delegate", color="#2563eb", entitlements={}),
            Category(
                id="cat-faculty",
                event_id="evt-1",
                name="Faculty",
                color="#16a34a",
                entitlements={"food": ["opt-lunch"], "kitBag": []},
            ),
        ]
    )
    db.add_all(
        [
            CertificateTemplate(
                id="tpl-attendance",
                event_id="evt-1",
                name="Attendance",
                background_path="backgrounds/attendance.png",
                unit="mm",
                fields=[
                    {"name": "name", "dataSource": "Registration.personalInfo.fullName", "x": 100, "y": 80,
                     "fontSize": 24, "bold": True, "align": "center", "maxWidth": 120},
                    {"name": "event", "dataSource": {"entity": "Event", "attribute": "name"}, "x": 100, "y": 100},
                    {"name": "footer", "dataSource": "static.Certificate of attendance", "x": 20, "y": 190,
                     "rotation": 90},
                ],
            ),
            CertificateTemplate(
                id="tpl-presenter",
                event_id="evt-1",
                name="Presenter",
                background_path="backgrounds/presenter.png",
                unit="pt",
                fields=[
                    {"name": "name", "dataSource": "Registration.personalInfo.fullName", "x": 300, "y": 200},
                    {"name": "abstract", "dataSource": "Abstract.title", "x": 300, "y": 260, "maxWidth": 400},
                ],
            ),
        ]
    )
    db.add_all(
        [
            ResourceOption(id="opt-lunch", event_id="evt-1", resource_type="food", name="Lunch Day 1"),
            ResourceOption(id="opt-dinner", event_id="evt-1", resource_type="food", name="Gala Dinner"),
            ResourceOption(id="opt-kit", event_id="evt-1", resource_type="kitBag", name="Delegate Kit"),
            ResourceOption(id="opt-closed", event_id="evt-1", resource_type="food", name="Breakfast", is_active=False),
            ResourceOption(
                id="opt-attendance",
                event_id="evt-1",
                resource_type="certificatePrinting",
                name="Attendance certificate",
                template_id="tpl-attendance",
            ),
            ResourceOption(
                id="opt-presenter",
                event_id="evt-1",
                resource_type="certificate",
                name="Presenter certificate",
                template_id="tpl-presenter",
            ),
        ]
    )
    registrations = [
        ("reg-1", "REG-001", "QR-0001", "Asha", "Rao", "cat-delegate", "active"),
        ("reg-2", "REG-002", None, "Vikram", "Iyer", "cat-delegate", "active"),
        ("reg-3", "REG-003", None, "Meera", "Shah", "cat-delegate", "active"),
        ("reg-4", "REG-004", None, "Daniel", "Okafor", "cat-faculty", "active"),
        ("reg-5", "REG-005", None, "Lena", "Voss", "cat-delegate", "cancelled"),
    ]
    for reg_id, code, qr, first, last, category, status in registrations:
        db.add(
            Registration(
                id=reg_id,
                event_id="evt-1",
                registration_code=code,
                qr_code=qr,
                first_name=first,
                last_name=last,
                category_id=category,
                status=status,
                email=f"{first.lower()}@example.org",
                organization="City Hospital",
            )
        )
    db.add_all(
        [
            Abstract(id="abs-1", event_id="evt-1", registration_id="reg-2", status="approved",
                     title="Outcomes of early PCI", authors="V. Iyer, A. Rao", presenting_author="V. Iyer"),
            Abstract(id="abs-2", event_id="evt-1", registration_id="reg-2", status="approved",
                     title="Wearables in heart failure follow-up", authors="V. Iyer"),
            Abstract(id="abs-3", event_id="evt-1", registration_id="reg-2", status="submitted",
                     title="Draft: statin adherence"),
            Abstract(id="abs-4", event_id="evt-1", registration_id="reg-3", status="rejected",
                     title="Rejected work"),
        ]
    )
    db.commit()
    return SimpleNamespace(
        event_id="evt-1",
        lunch="opt-lunch",
        dinner="opt-dinner",
        kit="opt-kit",
        closed="opt-closed",
        attendance="opt-attendance",
        presenter="opt-presenter",
        attendance_template="tpl-attendance",
        presenter_template="tpl-presenter",
    )


@pytest.fixture
def client(seeded):
    with TestClient(app) as test_client:
        yield test_client


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()
