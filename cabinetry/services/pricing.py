# cabinetry/services/pricing.py
from __future__ import annotations

import ast
import operator
import time
from dataclasses import dataclass, field
from decimal import Decimal, DivisionByZero, InvalidOperation, Overflow
from typing import Any, Dict, Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from cabinetry.core.errors import BusinessRuleError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.models import (
    CabinetType,
    Color,
    DoorStyle,
    Finish,
    GlobalSetting,
    ProductionOption,
)
from cabinetry.observability.metrics import pricing_latency_hist
from cabinetry.services.catalog_service import get_cabinet_type
from cabinetry.services.tax import calc_gst, qmoney, to_decimal

MM_PER_M = Decimal("1000")
DEFAULT_SIDE_THICKNESS_MM = 18


@dataclass(frozen=True)
class Rates:
    material_rate: Decimal = settings.DEFAULT_MATERIAL_RATE
    door_rate: Decimal = settings.DEFAULT_DOOR_RATE
    gst_rate: Decimal = settings.GST_RATE
    hardware_base_cost: Decimal = Decimal("45")
    wastage_factor: Decimal = Decimal("0")


# global_settings key -> Rates field
_SETTING_KEYS = {
    "hmr_rate_per_sqm": "material_rate",
    "door_rate_per_sqm": "door_rate",
    "gst_rate": "gst_rate",
    "hardware_base_cost": "hardware_base_cost",
    "wastage_factor": "wastage_factor",
}


def load_rates(db: Session) -> Rates:
    """Pricing defaults from settings, overridden by global_settings rows."""
    overrides: Dict[str, Decimal] = {}
    rows = db.query(GlobalSetting).filter(GlobalSetting.setting_key.in_(_SETTING_KEYS)).all()
    for row in rows:
        try:
            overrides[_SETTING_KEYS[row.setting_key]] = Decimal(row.setting_value)
        except InvalidOperation:
            logger.bind(setting_key=row.setting_key, value=row.setting_value).warning(
                "global_setting_not_numeric"
            )
    return Rates(**overrides)


@dataclass
class PriceBreakdown:
    method: str
    quantity: int
    area_sqm: Decimal
    material: Decimal = Decimal("0.00")
    doors: Decimal = Decimal("0.00")
    hardware: Decimal = Decimal("0.00")
    surcharges: Decimal = Decimal("0.00")
    base: Decimal = Decimal("0.00")
    options: Decimal = Decimal("0.00")
    unit_price: Decimal = Decimal("0.00")
    total_price: Decimal = Decimal("0.00")
    option_ids: list[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "quantity": self.quantity,
            "area_sqm": str(self.area_sqm),
            "material": str(self.material),
            "doors": str(self.doors),
            "hardware": str(self.hardware),
            "surcharges": str(self.surcharges),
            "base": str(self.base),
            "options": str(self.options),
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
            "option_ids": list(self.option_ids),
        }


def validate_dimensions(
    cabinet_type: CabinetType,
    width_mm: int,
    height_mm: int,
    depth_mm: int,
    quantity: int,
) -> None:
    if quantity is None or quantity < 1:
        raise BusinessRuleError("Quantity must be at least 1", meta={"quantity": quantity})

    checks = (
        ("width", width_mm, cabinet_type.min_width_mm, cabinet_type.max_width_mm),
        ("height", height_mm, cabinet_type.min_height_mm, cabinet_type.max_height_mm),
        ("depth", depth_mm, cabinet_type.min_depth_mm, cabinet_type.max_depth_mm),
    )
    for name, value, lo, hi in checks:
        if value is None or value <= 0:
            raise BusinessRuleError(f"{name} must be a positive number of mm", meta={name: value})
        if lo is not None and value < lo:
            raise BusinessRuleError(
                f"{name} {value}mm is below the minimum of {lo}mm", meta={name: value, "min": lo}
            )
        if hi is not None and value > hi:
            raise BusinessRuleError(
                f"{name} {value}mm is above the maximum of {hi}mm", meta={name: value, "max": hi}
            )


# ----------------------------------------------------
# Part cost formulas
# ----------------------------------------------------
_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY_OPS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


class FormulaError(ValueError):
    pass


def _eval_node(node: ast.AST, variables: Dict[str, Decimal]) -> Decimal:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, variables)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(
        node.value, bool
    ):
        value = to_decimal(node.value)
        if not value.is_finite():
            raise FormulaError(f"non-finite constant {node.value!r}")
        return value
    if isinstance(node, ast.Name):
        if node.id not in variables:
            raise FormulaError(f"unknown variable '{node.id}'")
        return variables[node.id]
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left = _eval_node(node.left, variables)
        right = _eval_node(node.right, variables)
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand, variables))
    raise FormulaError(f"unsupported expression: {type(node).__name__}")


def evaluate_formula(formula: Optional[str], variables: Dict[str, Decimal]) -> Decimal:
    """
    Evaluate an arithmetic cost formula such as
    ``(w/1000) * (h/1000) * mat_rate_per_sqm``.

    Only numbers, known variables, + - * / and parentheses are accepted.
    Anything else (or a division by zero) yields 0 and is logged.
    """
    if not formula or not formula.strip():
        return Decimal("0")
    try:
        tree = ast.parse(formula.strip().lower(), mode="eval")
        result = _eval_node(tree, variables)
        # must fit a money amount
        result.quantize(Decimal("0.01"))
        return result
    except (SyntaxError, FormulaError, DivisionByZero, InvalidOperation, Overflow, ZeroDivisionError) as e:
        logger.bind(formula=formula).warning("formula_rejected", error=str(e))
        return Decimal("0")


def formula_variables(
    cabinet_type: CabinetType,
    width_mm: int,
    height_mm: int,
    depth_mm: int,
    quantity: int,
    material_rate: Decimal,
    door_rate: Decimal,
    color_cost: Decimal,
    finish_cost: Decimal,
) -> Dict[str, Decimal]:
    w, h, d = Decimal(width_mm), Decimal(height_mm), Decimal(depth_mm)
    values = {
        "width": w,
        "height": h,
        "depth": d,
        "qty": Decimal(quantity),
        "mat_rate_per_sqm": material_rate,
        "door_cost": door_rate,
        "color_cost": color_cost,
        "finish_cost": finish_cost,
        "left_width": Decimal(cabinet_type.left_side_width_mm or width_mm),
        "right_width": Decimal(cabinet_type.right_side_width_mm or width_mm),
        "left_depth": Decimal(cabinet_type.left_side_depth_mm or depth_mm),
        "right_depth": Decimal(cabinet_type.right_side_depth_mm or depth_mm),
        "left_side": Decimal(DEFAULT_SIDE_THICKNESS_MM),
        "right_side": Decimal(DEFAULT_SIDE_THICKNESS_MM),
    }
    values["w"], values["h"], values["d"] = w, h, d
    return values


# ----------------------------------------------------
# Item pricing
# ----------------------------------------------------
def _selected_options(
    cabinet_type: CabinetType, options: Optional[Iterable[ProductionOption]]
) -> list[ProductionOption]:
    if not options:
        return []
    return [
        o for o in options
        if o is not None and o.active and o.cabinet_type_id == cabinet_type.id
    ]


def price_item(
    cabinet_type: CabinetType,
    width_mm: int,
    height_mm: int,
    depth_mm: int,
    quantity: int = 1,
    door_style: Optional[DoorStyle] = None,
    color: Optional[Color] = None,
    finish: Optional[Finish] = None,
    options: Optional[Sequence[ProductionOption]] = None,
    rates: Optional[Rates] = None,
) -> PriceBreakdown:
    started = time.perf_counter()
    rates = rates or Rates()
    validate_dimensions(cabinet_type, width_mm, height_mm, depth_mm, quantity)

    area = (Decimal(width_mm) / MM_PER_M) * (Decimal(height_mm) / MM_PER_M)
    material_rate = to_decimal(cabinet_type.material_rate_per_sqm or rates.material_rate)
    door_rate = to_decimal(
        (door_style.base_rate_per_sqm if door_style else None)
        or cabinet_type.door_rate_per_sqm
        or rates.door_rate
    )
    color_cost = to_decimal(color.surcharge_rate_per_sqm if color else 0)
    finish_cost = to_decimal(finish.rate_per_sqm if finish else 0)

    selected = _selected_options(cabinet_type, options)
    options_total = sum((to_decimal(o.additional_cost) for o in selected), Decimal("0"))
    base = to_decimal(cabinet_type.base_price)

    bd = PriceBreakdown(
        method=cabinet_type.price_method or "area",
        quantity=quantity,
        area_sqm=area.quantize(Decimal("0.0001")),
        option_ids=[o.id for o in selected],
    )

    if bd.method == "parts" and cabinet_type.parts:
        variables = formula_variables(
            cabinet_type, width_mm, height_mm, depth_mm, quantity,
            material_rate, door_rate, color_cost, finish_cost,
        )
        carcass = doors = hardware = Decimal("0")
        for part in cabinet_type.parts:
            if part.is_hardware and not part.cost_formula:
                part_cost = rates.hardware_base_cost
            else:
                part_cost = evaluate_formula(part.cost_formula, variables)
            part_total = part_cost * (part.quantity or 1)
            if part.is_door:
                doors += part_total
            elif part.is_hardware:
                hardware += part_total
            else:
                carcass += part_total
        carcass = carcass * (Decimal("1") + rates.wastage_factor)
        bd.material = qmoney(carcass)
        bd.doors = qmoney(doors)
        bd.hardware = qmoney(hardware)
        bd.surcharges = qmoney(color_cost + finish_cost)
    else:
        bd.method = "area"
        bd.material = qmoney(area * material_rate)
        door_count = cabinet_type.door_count or 0
        if door_style is not None and door_count > 0:
            bd.doors = qmoney(area * (door_rate + color_cost + finish_cost) * door_count)

    bd.base = qmoney(base)
    bd.options = qmoney(options_total)
    bd.unit_price = qmoney(
        bd.material + bd.doors + bd.hardware + bd.surcharges + bd.base + bd.options
    )
    bd.total_price = qmoney(bd.unit_price * quantity)

    pricing_latency_hist.labels(method=bd.method).observe(time.perf_counter() - started)
    return bd


def price_from_ids(
    db: Session,
    cabinet_type_id: str,
    width_mm: int,
    height_mm: int,
    depth_mm: int,
    quantity: int = 1,
    door_style_id: Optional[str] = None,
    color_id: Optional[str] = None,
    finish_id: Optional[str] = None,
    option_ids: Optional[Sequence[str]] = None,
    rates: Optional[Rates] = None,
) -> PriceBreakdown:
    """Resolve catalog rows and price them. Missing selections contribute zero."""
    cabinet_type = get_cabinet_type(db, cabinet_type_id)
    door_style = db.get(DoorStyle, door_style_id) if door_style_id else None
    color = db.get(Color, color_id) if color_id else None
    finish = db.get(Finish, finish_id) if finish_id else None
    options = []
    if option_ids:
        options = db.query(ProductionOption).filter(ProductionOption.id.in_(list(option_ids))).all()

    return price_item(
        cabinet_type,
        width_mm,
        height_mm,
        depth_mm,
        quantity,
        door_style=door_style,
        color=color,
        finish=finish,
        options=options,
        rates=rates or load_rates(db),
    )


def item_configuration(
    breakdown: PriceBreakdown,
    hardware: Optional[Dict[str, Any]] = None,
    assembly: Optional[str] = None,
) -> Dict[str, Any]:
    """The configuration JSON stored on cart, quote and order items."""
    return {
        "production_option_ids": list(breakdown.option_ids),
        "hardware": dict(hardware or {}),
        "assembly": assembly or "none",
        "pricing": breakdown.as_dict(),
    }


def quote_totals(item_totals: Iterable[Any], gst_rate: Any) -> tuple[Decimal, Decimal, Decimal]:
    subtotal = sum((to_decimal(t) for t in item_totals), Decimal("0"))
    gst = calc_gst(subtotal, gst_rate)
    return gst.subtotal_ex_gst, gst.gst_amount, gst.total_inc_gst
