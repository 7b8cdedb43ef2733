# scripts/seed_catalog.py
"""Load a small demo catalog, delivery zones and rate card into an empty database."""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from cabinetry.core.logging_config import logger
from cabinetry.db import SessionLocal
from cabinetry.models import (
    CabinetPart,
    CabinetType,
    Color,
    DoorStyle,
    Finish,
    GlobalSetting,
    PostcodeZone,
    ProductionOption,
    RateCard,
)

SETTINGS = {
    "hmr_rate_per_sqm": ("85", "Carcass board (HMR) per m2"),
    "door_rate_per_sqm": ("120", "Default door rate per m2"),
    "wastage_factor": ("0.10", "Material wastage"),
    "gst_rate": ("0.10", "GST"),
}

POSTCODES = [
    # postcode, suburb, zone, metro, lat, lng, lead time
    ("3000", "Melbourne", "MEL_METRO", True, -37.8136, 144.9631, 5),
    ("3121", "Richmond", "MEL_METRO", True, -37.8230, 144.9980, 5),
    ("3220", "Geelong", "VIC_REGIONAL", False, -38.1499, 144.3617, 8),
    ("3550", "Bendigo", "VIC_REGIONAL", False, -36.7570, 144.2794, 10),
]


def seed_cabinets(db) -> None:
    base = CabinetType(
        name="Base 600",
        category="base",
        base_price=Decimal("50"),
        door_count=1,
        default_width_mm=600,
        default_height_mm=720,
        default_depth_mm=560,
        min_width_mm=150,
        max_width_mm=1200,
        display_order=1,
    )
    wall = CabinetType(
        name="Wall 600",
        category="wall",
        base_price=Decimal("40"),
        door_count=2,
        default_width_mm=600,
        default_height_mm=720,
        default_depth_mm=300,
        min_width_mm=300,
        max_width_mm=1200,
        display_order=2,
    )
    corner = CabinetType(
        name="Blind Corner 900",
        category="base",
        door_count=1,
        default_width_mm=900,
        default_height_mm=720,
        default_depth_mm=560,
        price_method="parts",
        display_order=3,
        parts=[
            CabinetPart(part_name="Carcass", cost_formula="(w/1000)*(h/1000)*mat_rate_per_sqm*2"),
            CabinetPart(part_name="Door", cost_formula="(w/1000)*(h/1000)*door_cost", is_door=True),
            CabinetPart(part_name="Hinges", quantity=2, is_hardware=True),
        ],
    )
    db.add_all([base, wall, corner])
    db.flush()
    db.add_all(
        [
            ProductionOption(cabinet_type_id=base.id, name="Soft-close drawers", additional_cost=Decimal("25")),
            ProductionOption(cabinet_type_id=wall.id, name="Lift-up hinge", additional_cost=Decimal("60")),
        ]
    )

    shaker = DoorStyle(name="Shaker", base_rate_per_sqm=Decimal("120"))
    slab = DoorStyle(name="Slab", base_rate_per_sqm=Decimal("95"))
    db.add_all([shaker, slab])
    db.flush()
    db.add_all(
        [
            Color(name="Polar White", hex_code="#F4F5F0"),
            Color(name="Black Oak", hex_code="#2B2623", surcharge_rate_per_sqm=Decimal("15")),
            Finish(name="Satin", rate_per_sqm=Decimal("5")),
            Finish(name="Gloss", door_style_id=slab.id, rate_per_sqm=Decimal("18")),
        ]
    )


def seed_delivery(db) -> None:
    for postcode, suburb, zone, metro, lat, lng, lead in POSTCODES:
        db.add(
            PostcodeZone(
                postcode=postcode,
                suburb=suburb,
                state="VIC",
                zone=zone,
                metro=metro,
                latitude=lat,
                longitude=lng,
                lead_time_days=lead,
                assembly_eligible=metro,
                assembly_carcass_base=Decimal("50") if metro else None,
                assembly_doors_base=Decimal("100") if metro else None,
                assignment_method="manual" if metro else None,
            )
        )
    db.add_all(
        [
            RateCard(
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
            RateCard(
                carrier="Metro Freight",
                service_name="Regional",
                zone_from="MEL_METRO",
                zone_to="VIC_REGIONAL",
                base_price=Decimal("120"),
                per_kg=Decimal("2.20"),
                minimum_charge=Decimal("150"),
                fuel_levy_pct=Decimal("8"),
                tail_lift_fee=Decimal("30"),
            ),
        ]
    )


def main():
    db = SessionLocal()
    try:
        if db.execute(select(CabinetType.id).limit(1)).first():
            print("Catalog already present, nothing to do.")
            return
        for key, (value, description) in SETTINGS.items():
            db.add(GlobalSetting(setting_key=key, setting_value=value, description=description))
        seed_cabinets(db)
        seed_delivery(db)
        db.commit()
        logger.info("demo_catalog_seeded", postcodes=len(POSTCODES))
        print("Seeded demo catalog, postcodes and rate cards.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
