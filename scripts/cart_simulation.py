# scripts/cart_simulation.py
"""
Smoke harness: seed a catalog, then drive N customers through
cart -> quote -> send -> accept -> deposit payment using the service layer.

    python scripts/cart_simulation.py --customers 25 --max-ms 250

Runs against a throwaway SQLite database unless DATABASE_URL is set.
"""
import argparse
import os
import statistics
import sys
import tempfile
import time
from collections import defaultdict
from decimal import Decimal

_TMP = tempfile.mkdtemp(prefix="cabinetry-sim-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP}/simulation.db")
os.environ.setdefault("LOCAL_STORAGE_ROOT", os.path.join(_TMP, "storage"))
os.environ.setdefault("USE_LOCAL_STORAGE", "true")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

from seed_catalog import seed_cabinets, seed_delivery  # noqa: E402

from cabinetry.core.logging_config import logger  # noqa: E402
from cabinetry.db import Base, SessionLocal, engine  # noqa: E402
from cabinetry.models import CabinetType, Cart, Order, Payment, Quote  # noqa: E402
from cabinetry.services import account_service, cart_service, order_service, quote_service  # noqa: E402

ITEMS = [
    # cabinet name, width, height, depth, qty
    ("Base 600", 600, 720, 560, 2),
    ("Wall 600", 600, 720, 300, 2),
    ("Blind Corner 900", 900, 720, 560, 1),
]


class Timings:
    def __init__(self):
        self.samples = defaultdict(list)

    def run(self, name, fn, *args, **kwargs):
        started = time.perf_counter()
        result = fn(*args, **kwargs)
        self.samples[name].append((time.perf_counter() - started) * 1000)
        return result

    def p95(self, name):
        values = sorted(self.samples[name])
        return values[max(0, int(len(values) * 0.95) - 1)]


def simulate_customer(db, n, cabinets, timings):
    user = timings.run("register", account_service.register, db, f"sim{n}@example.com", "simulation-pw",
                       full_name=f"Sim Customer {n}")
    address = account_service.create_address(
        db, user, {"type": "shipping", "name": user.full_name, "line1": f"{n} Collins St",
                   "suburb": "Melbourne", "state": "VIC", "postcode": "3000", "country": "AU"}
    )
    cart = timings.run("create_cart", cart_service.create_cart, db, user, name="Kitchen")
    for name, w, h, d, qty in ITEMS:
        timings.run("add_item", cart_service.add_item, db, cart, {
            "cabinet_type_id": cabinets[name], "width_mm": w, "height_mm": h, "depth_mm": d, "quantity": qty,
        })

    quote = timings.run("cart_to_quote", cart_service.cart_to_quote, db, user, cart)
    timings.run("send_quote", quote_service.send_quote, db, quote, actor="simulation")
    order = timings.run("accept_quote", quote_service.accept_quote, db, quote, user=user,
                        payment_option="deposit", shipping_address_id=address.id)
    deposit = next(s for s in order.schedules if s.schedule_type == "deposit")
    timings.run("record_payment", order_service.record_payment, db, order, deposit, deposit.amount,
                method="card", reference=f"sim-{n}")
    return cart.total_amount, order.id


def check(results, customers, max_ms, timings):
    failures = []
    with SessionLocal() as db:
        counts = {
            "carts": db.query(Cart).count(),
            "quotes": db.query(Quote).count(),
            "orders": db.query(Order).count(),
            "payments": db.query(Payment).count(),
        }
        for table, count in counts.items():
            if count != customers:
                failures.append(f"{table}: expected {customers} rows, found {count}")

        for cart_total, order_id in results:
            order = db.get(Order, order_id)
            if order.subtotal != cart_total:
                failures.append(f"{order.order_number}: subtotal {order.subtotal} != cart {cart_total}")
            scheduled = sum((s.amount for s in order.schedules), Decimal("0"))
            if scheduled != order.total_amount:
                failures.append(f"{order.order_number}: milestones {scheduled} != total {order.total_amount}")
            if order.status != "confirmed" or order.payment_status != "partial":
                failures.append(f"{order.order_number}: {order.status}/{order.payment_status} after deposit")

    for name in timings.samples:
        if timings.p95(name) > max_ms:
            failures.append(f"{name}: p95 {timings.p95(name):.1f} ms over {max_ms} ms")
    return counts, failures


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--customers", type=int, default=20)
    parser.add_argument("--max-ms", type=float, default=250.0, help="p95 latency limit per operation")
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        if db.query(CabinetType).count() == 0:
            seed_cabinets(db)
            seed_delivery(db)
            db.commit()
        cabinets = {ct.name: ct.id for ct in db.query(CabinetType).all()}

    timings = Timings()
    results = []
    for n in range(args.customers):
        with SessionLocal() as db:
            results.append(simulate_customer(db, n, cabinets, timings))

    counts, failures = check(results, args.customers, args.max_ms, timings)

    print(f"customers: {args.customers}  rows: {counts}")
    print(f"{'operation':<16}{'n':>5}{'mean ms':>10}{'p95 ms':>10}")
    for name, values in timings.samples.items():
        print(f"{name:<16}{len(values):>5}{statistics.mean(values):>10.1f}{timings.p95(name):>10.1f}")

    if failures:
        for line in failures:
            print("FAIL", line)
        logger.bind(failures=len(failures)).error("simulation_failed")
        return 1
    logger.info("simulation_passed", customers=args.customers)
    print("OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
