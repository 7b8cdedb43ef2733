import os
import tempfile

# settings are read at import time, so the environment goes first
_TMP = tempfile.mkdtemp(prefix="cabinetry-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP}/test.db"
os.environ["LOCAL_STORAGE_ROOT"] = os.path.join(_TMP, "storage")
os.environ["USE_LOCAL_STORAGE"] = "true"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin-secret"
os.environ["ADMIN_NOTIFY_EMAIL"] = "workshop@example.com"
os.environ["MAPBOX_TOKEN"] = ""
os.environ.pop("SMTP_HOST", None)
os.environ.pop("SENTRY_DSN", None)

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from cabinetry import models
from cabinetry.db import Base, SessionLocal, engine
from cabinetry.main import app
from cabinetry.services import document_renderer

ADMIN = ("admin", "admin-secret")
FAKE_PDF = b"%PDF-1.4\n% test document\n"


@pytest.fixture(autouse=True)
def _fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _no_weasyprint(monkeypatch):
    # no pango/cairo in CI; the template is still rendered
    monkeypatch.setattr(document_renderer, "html_to_pdf", lambda html: FAKE_PDF)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ----------------------------------------------------
# Catalog & shipping seed
# ----------------------------------------------------
@pytest.fixture
def catalog(db):
    base = models.CabinetType(
        name="Base 600",
        category="base",
        base_price=Decimal("50"),
        door_count=1,
        default_width_mm=600,
        default_height_mm=720,
        default_depth_mm=560,
        min_width_mm=150,
        max_width_mm=1200,
        min_height_mm=300,
        max_height_mm=1000,
        price_method="area",
    )
    corner = models.CabinetType(
        name="Corner 900",
        category="base",
        door_count=1,
        default_width_mm=900,
        default_height_mm=720,
        default_depth_mm=560,
        price_method="parts",
        parts=[
            models.CabinetPart(part_name="Carcass", cost_formula="(w/1000)*(h/1000)*mat_rate_per_sqm*2"),
            models.CabinetPart(part_name="Door", cost_formula="(w/1000)*(h/1000)*door_cost", is_door=True),
            models.CabinetPart(part_name="Hinges", quantity=2, is_hardware=True),
        ],
    )
    retired = models.CabinetType(
        name="Retired Wall",
        category="wall",
        default_width_mm=600,
        default_height_mm=720,
        default_depth_mm=300,
        active=False,
    )
    door = models.DoorStyle(name="Shaker", base_rate_per_sqm=Decimal("120"))
    db.add_all([base, corner, retired, door])
    db.flush()

    color = models.Color(name="Polar White", door_style_id=door.id, surcharge_rate_per_sqm=Decimal("10"))
    finish = models.Finish(name="Satin", door_style_id=door.id, rate_per_sqm=Decimal("5"))
    option = models.ProductionOption(cabinet_type_id=base.id, name="Soft-close", additional_cost=Decimal("25"))
    hidden = models.ProductionOption(
        cabinet_type_id=base.id, name="Legacy handle", additional_cost=Decimal("9"), active=False
    )
    db.add_all([color, finish, option, hidden])
    db.commit()
    return {
        "base": base.id,
        "corner": corner.id,
        "retired": retired.id,
        "door": door.id,
        "color": color.id,
        "finish": finish.id,
        "option": option.id,
        "hidden_option": hidden.id,
    }


@pytest.fixture
def delivery(db):
    db.add_all(
        [
            models.PostcodeZone(
                postcode="3000",
                suburb="Melbourne",
                state="VIC",
                zone="MEL_METRO",
                latitude=-37.8136,
                longitude=144.9631,
                lead_time_days=5,
                assembly_eligible=True,
                assignment_method="manual",
            ),
            models.PostcodeZone(
                postcode="3220",
                suburb="Geelong",
                state="VIC",
                zone="VIC_REGIONAL",
                metro=False,
                latitude=-38.1499,
                longitude=144.3617,
            ),
            models.RateCard(
                carrier="Metro Freight",
                service_name="Standard",
                zone_from="MEL_METRO",
                zone_to="MEL_METRO",
                base_price=Decimal("60"),
                per_kg=Decimal("1.50"),
                minimum_charge=Decimal("80"),
                residential_surcharge=Decimal("10"),
                tail_lift_fee=Decimal("30"),
            ),
        ]
    )
    db.commit()


# ----------------------------------------------------
# Customers
# ----------------------------------------------------
def register(client, email, password="correct-horse", full_name="Test Customer"):
    r = client.post("/auth/register", json={"email": email, "password": password, "full_name": full_name})
    assert r.status_code == 201, r.text
    # the cookie would outrank the Authorization header on later calls
    client.cookies.clear()
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def customer(client):
    return register(client, "jo@example.com", full_name="Jo Citizen")


@pytest.fixture
def other_customer(client):
    return register(client, "sam@example.com", full_name="Sam Other")


@pytest.fixture
def shipping_address(client, customer):
    r = client.post(
        "/portal/addresses",
        headers=customer,
        json={
            "name": "Jo Citizen",
            "line1": "1 Collins St",
            "suburb": "Melbourne",
            "state": "VIC",
            "postcode": "3000",
        },
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


@pytest.fixture
def make_customer(client):
    return lambda email, **kw: register(client, email, **kw)


@pytest.fixture
def admin():
    return ADMIN
