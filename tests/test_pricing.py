from decimal import Decimal

import pytest

from cabinetry.core.errors import BusinessRuleError
from cabinetry.models import CabinetPart, CabinetType, Color, DoorStyle, Finish, GlobalSetting, ProductionOption
from cabinetry.services.pricing import (
    Rates,
    evaluate_formula,
    item_configuration,
    load_rates,
    price_from_ids,
    price_item,
    quote_totals,
)


def _base_cabinet(**kw):
    fields = dict(
        id="ct-base",
        name="Base 600",
        category="base",
        base_price=Decimal("50"),
        door_count=1,
        default_width_mm=600,
        default_height_mm=720,
        default_depth_mm=560,
        min_width_mm=150,
        max_width_mm=1200,
        price_method="area",
    )
    fields.update(kw)
    return CabinetType(**fields)


RATES = Rates(material_rate=Decimal("85"), door_rate=Decimal("120"), gst_rate=Decimal("0.10"))


# -------------------------
# Area method
# -------------------------
def test_area_price_without_door_style():
    bd = price_item(_base_cabinet(), 600, 720, 560, quantity=2, rates=RATES)
    assert bd.method == "area"
    assert bd.area_sqm == Decimal("0.4320")
    assert bd.material == Decimal("36.72")
    assert bd.doors == Decimal("0.00")
    assert bd.unit_price == Decimal("86.72")
    assert bd.total_price == Decimal("173.44")


def test_area_price_with_door_color_finish_and_option():
    cabinet = _base_cabinet()
    door = DoorStyle(id="ds", name="Shaker", base_rate_per_sqm=Decimal("120"))
    color = Color(id="c", name="White", surcharge_rate_per_sqm=Decimal("10"))
    finish = Finish(id="f", name="Satin", rate_per_sqm=Decimal("5"))
    option = ProductionOption(id="o1", cabinet_type_id="ct-base", name="Soft-close",
                              additional_cost=Decimal("25"), active=True)
    foreign = ProductionOption(id="o2", cabinet_type_id="other", name="Other",
                               additional_cost=Decimal("99"), active=True)

    bd = price_item(cabinet, 600, 720, 560, door_style=door, color=color, finish=finish,
                    options=[option, foreign], rates=RATES)

    # 0.432 m2 * (120 + 10 + 5) * 1 door
    assert bd.doors == Decimal("58.32")
    assert bd.options == Decimal("25.00")
    assert bd.option_ids == ["o1"]
    assert bd.unit_price == Decimal("170.04")


def test_inactive_options_are_ignored():
    option = ProductionOption(id="o1", cabinet_type_id="ct-base", name="Old",
                              additional_cost=Decimal("25"), active=False)
    bd = price_item(_base_cabinet(), 600, 720, 560, options=[option], rates=RATES)
    assert bd.options == Decimal("0.00")
    assert bd.option_ids == []


# -------------------------
# Parts method
# -------------------------
def test_parts_price_sums_formulas_and_default_hardware():
    cabinet = CabinetType(
        id="ct-corner",
        name="Corner 900",
        category="base",
        default_width_mm=900,
        default_height_mm=720,
        default_depth_mm=560,
        price_method="parts",
        parts=[
            CabinetPart(part_name="Carcass", quantity=1, cost_formula="(w/1000)*(h/1000)*mat_rate_per_sqm*2"),
            CabinetPart(part_name="Door", quantity=1, cost_formula="(W/1000)*(H/1000)*door_cost", is_door=True),
            CabinetPart(part_name="Hinges", quantity=2, is_hardware=True),
        ],
    )
    bd = price_item(cabinet, 900, 720, 560, rates=RATES)
    assert bd.method == "parts"
    assert bd.material == Decimal("110.16")
    assert bd.doors == Decimal("77.76")
    assert bd.hardware == Decimal("90.00")
    assert bd.unit_price == Decimal("277.92")


def test_parts_method_without_parts_falls_back_to_area():
    bd = price_item(_base_cabinet(price_method="parts"), 600, 720, 560, rates=RATES)
    assert bd.method == "area"
    assert bd.material == Decimal("36.72")


@pytest.mark.parametrize(
    "formula,expected",
    [
        ("2*(3+4)", Decimal("14")),
        ("-width + 1000", Decimal("400")),
        ("", Decimal("0")),
        ("1/0", Decimal("0")),
        ("__import__('os').getcwd()", Decimal("0")),
        ("unknown_var * 2", Decimal("0")),
        ("width ** 2", Decimal("0")),
        ("1e999 * width", Decimal("0")),
        ("1e300 * 1e300 * width", Decimal("0")),
    ],
)
def test_evaluate_formula(formula, expected):
    assert evaluate_formula(formula, {"width": Decimal("600")}) == expected


# -------------------------
# Validation
# -------------------------
@pytest.mark.parametrize(
    "dims,qty",
    [
        ((100, 720, 560), 1),
        ((1300, 720, 560), 1),
        ((600, 0, 560), 1),
        ((600, 720, 560), 0),
    ],
)
def test_dimension_and_quantity_limits(dims, qty):
    with pytest.raises(BusinessRuleError):
        price_item(_base_cabinet(), *dims, quantity=qty, rates=RATES)


# -------------------------
# Rates & helpers
# -------------------------
def test_global_settings_override_rates(db, catalog):
    db.add(GlobalSetting(setting_key="hmr_rate_per_sqm", setting_value="100"))
    db.add(GlobalSetting(setting_key="wastage_factor", setting_value="not-a-number"))
    db.commit()

    rates = load_rates(db)
    assert rates.material_rate == Decimal("100")
    assert rates.wastage_factor == Decimal("0")

    bd = price_from_ids(db, catalog["base"], 600, 720, 560)
    assert bd.material == Decimal("43.20")


def test_item_configuration_shape():
    bd = price_item(_base_cabinet(), 600, 720, 560, rates=RATES)
    config = item_configuration(bd, hardware={"handle": "bar"})
    assert config["assembly"] == "none"
    assert config["hardware"] == {"handle": "bar"}
    assert config["pricing"]["unit_price"] == "86.72"


def test_quote_totals_adds_gst():
    assert quote_totals([Decimal("100"), "50.50"], Decimal("0.10")) == (
        Decimal("150.50"),
        Decimal("15.05"),
        Decimal("165.55"),
    )
