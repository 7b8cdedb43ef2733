# cabinetry/observability/metrics.py
from fastapi import APIRouter
from starlette.responses import Response

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

router = APIRouter(tags=["observability"])

quotes_sent_counter = Counter(
    "cabinetry_quotes_sent_total",
    "Quotes sent to customers",
)

quotes_decided_counter = Counter(
    "cabinetry_quotes_decided_total",
    "Customer decisions on quotes",
    ["decision"],  # accepted|rejected|revision_requested
)

orders_created_counter = Counter(
    "cabinetry_orders_created_total",
    "Orders created",
    ["source"],  # quote|checkout
)

payments_recorded_counter = Counter(
    "cabinetry_payments_recorded_total",
    "Payments recorded against milestones",
    ["schedule_type"],
)

radius_applied_counter = Counter(
    "cabinetry_radius_applications_total",
    "Assembly zone radius applications",
)

geocode_counter = Counter(
    "cabinetry_geocode_requests_total",
    "Geocoding lookups",
    ["result"],  # success|not_found|error
)

http_request_latency_hist = Histogram(
    "cabinetry_http_request_seconds",
    "HTTP request latency",
    ["method", "status"],
)

pricing_latency_hist = Histogram(
    "cabinetry_pricing_seconds",
    "Time spent pricing a single item",
    ["method"],  # area|parts
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
)


@router.get("/metrics", include_in_schema=True)
def metrics() -> Response:
    # Prometheus expects text/plain; version=0.0.4
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
