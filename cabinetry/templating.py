from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment, FileSystemLoader, select_autoescape

# cabinetry/
#   templating.py  (this file)
#   templates/
#     quote.html, invoice.html
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _money(value: Any) -> str:
    if value is None:
        return "$0.00"
    return f"${Decimal(str(value)):,.2f}"


def _au_date(value: Any) -> str:
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    return str(value or "")


_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)
_env.filters["money"] = _money
_env.filters["au_date"] = _au_date


def render_template(name: str, context: Mapping[str, Any]) -> str:
    """
    Render a Jinja2 template to an HTML string.

    Example:
        html = render_template("quote.html", {"quote": quote})
    """
    template = _env.get_template(name)
    return template.render(**context)
