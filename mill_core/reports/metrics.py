# mill_core/reports/metrics.py
"""
Dashboard metric computations.

Stateless: each function reads through the tenant-scoped selectors and
returns plain dicts of Decimal/int/str/date. Access control has already
happened in DashboardService; nothing here checks roles.

Per-product sums come from the database, everything after that is Decimal
arithmetic in Python so the result does not depend on how the backend
represents numerics.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from rest_framework.exceptions import ValidationError

from mill_core.common.exceptions import ComputationError
from mill_core.iam.scope import TenantScope
from mill_core.inventory import selectors
from mill_core.inventory.models import QUINTAL_PLACES, StockIn, StockOut
from mill_core.reports.periods import DateRange, ResolvedPeriod

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
HUNDRED = Decimal(100)
CENT = Decimal("0.01")

OUT_OF_STOCK = "out_of_stock"
LOW_STOCK = "low_stock"

PRODUCTS_IN = "products_in"
PRODUCTS_OUT = "products_out"
FARMERS = "farmers"
CUSTOMERS = "customers"

TOP_KINDS = {
    PRODUCTS_IN: (StockIn, 5),
    PRODUCTS_OUT: (StockOut, 5),
    FARMERS: (StockIn, 10),
    CUSTOMERS: (StockOut, 10),
}
MAX_TOP_N = 100


def _round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _non_negative(label: str, value: Decimal) -> Decimal:
    if value < 0:
        logger.error("negative %s reached aggregation: %s", label, value)
        raise ComputationError(f"Negative {label} in stored movements.")
    return value


def percentage_change(previous: Decimal, current: Decimal) -> Decimal:
    """
    (current - previous) / previous * 100, to 2 places.
    Both zero is 0%; growth from zero is reported as 100%.
    """
    previous = Decimal(previous)
    current = Decimal(current)
    if previous == 0 and current == 0:
        return _round2(ZERO)
    if previous == 0:
        return _round2(HUNDRED)
    return _round2((current - previous) / previous * HUNDRED)


# -----------------------------
# stock
# -----------------------------

def stock_levels(scope: TenantScope) -> List[dict]:
    products = selectors.products_by_id(scope=scope)
    ins = selectors.totals_by_product(StockIn, scope=scope)
    outs = selectors.totals_by_product(StockOut, scope=scope)

    rows: List[dict] = []
    for pid, p in products.items():
        total_in = _non_negative("stock-in quantity", ins.get(pid, selectors.Totals()).quantity)
        total_out = _non_negative("stock-out quantity", outs.get(pid, selectors.Totals()).quantity)
        available = total_in - total_out
        if available < 0:
            logger.error("product %s has negative stock: in=%s out=%s", pid, total_in, total_out)
            raise ComputationError("Stock-out exceeds stock-in for a product.")
        rows.append(
            {
                "product_id": pid,
                "name": p.name,
                "sku": p.sku,
                "unit": p.unit,
                "price_per_quintal": p.price_per_quintal,
                "total_in": total_in,
                "total_out": total_out,
                "available": available,
            }
        )
    return rows


def inventory_metrics(scope: TenantScope) -> dict:
    total_stock = ZERO
    product_count = 0
    total_value = ZERO

    for row in stock_levels(scope):
        total_stock += row["available"]
        if row["available"] > 0:
            product_count += 1
            # live product price, not the price stored on the movements
            total_value += row["available"] * row["price_per_quintal"]

    return {"total_stock": total_stock, "product_count": product_count, "total_value": total_value}


def stock_alerts(scope: TenantScope, *, threshold: Decimal) -> List[dict]:
    alerts = []
    for row in stock_levels(scope):
        stock = row["available"]
        if stock == 0:
            severity = OUT_OF_STOCK
        elif stock < threshold:
            severity = LOW_STOCK
        else:
            continue
        alerts.append(
            {
                "product_id": row["product_id"],
                "product_name": row["name"],
                "current_stock": stock,
                "threshold": threshold,
                "severity": severity,
            }
        )
    alerts.sort(key=lambda a: (a["current_stock"], a["product_name"], str(a["product_id"])))
    return alerts


# -----------------------------
# period metrics
# -----------------------------

def _sum(totals: Dict, attr: str) -> Decimal:
    return sum((getattr(t, attr) for t in totals.values()), ZERO)


def financial_metrics(scope: TenantScope, date_range: DateRange) -> dict:
    ins = selectors.totals_by_product(StockIn, scope=scope, date_range=date_range)
    outs = selectors.totals_by_product(StockOut, scope=scope, date_range=date_range)

    purchases = _non_negative("purchase total", _sum(ins, "amount"))
    sales = _non_negative("sales total", _sum(outs, "amount"))

    return {
        "total_purchases": purchases,
        "total_sales": sales,
        "gross_margin": sales - purchases,
        "stock_in_count": sum(t.count for t in ins.values()),
        "stock_out_count": sum(t.count for t in outs.values()),
    }


def movement_trend(scope: TenantScope, date_range: DateRange) -> dict:
    """
    Daily stock-in/stock-out quantities for every day in the range, zeros included.
    """
    ins = selectors.daily_quantities(StockIn, scope=scope, date_range=date_range)
    outs = selectors.daily_quantities(StockOut, scope=scope, date_range=date_range)

    dates = list(date_range.iter_days())
    return {
        "dates": dates,
        "stock_in_values": [_non_negative("daily stock-in", ins.get(d, ZERO)) for d in dates],
        "stock_out_values": [_non_negative("daily stock-out", outs.get(d, ZERO)) for d in dates],
    }


def _ranked(rows: List[dict], n: int) -> List[dict]:
    rows.sort(key=lambda r: (-r["quantity"], -r["amount"], str(r["id"])))
    top = rows[:n]

    # share of the displayed rows, not of the tenant total
    shown = sum((r["quantity"] for r in top), ZERO)
    for r in top:
        r["percentage"] = _round2(r["quantity"] / shown * HUNDRED) if shown > 0 else _round2(ZERO)
    return top


def top_entities(scope: TenantScope, date_range: DateRange, *, kind: str, n: Optional[int] = None) -> List[dict]:
    if kind not in TOP_KINDS:
        raise ValidationError({"kind": f"Invalid kind. Allowed: {sorted(TOP_KINDS)}"})
    model, default_n = TOP_KINDS[kind]
    if n is None:
        n = default_n
    if n < 1:
        raise ValidationError({"n": "Must be at least 1."})
    n = min(n, MAX_TOP_N)

    rows: List[dict] = []
    if kind in (PRODUCTS_IN, PRODUCTS_OUT):
        products = selectors.products_by_id(scope=scope)
        for pid, t in selectors.totals_by_product(model, scope=scope, date_range=date_range).items():
            p = products.get(pid)
            rows.append(
                {
                    "id": pid,
                    "name": p.name if p else "",
                    "quantity": _non_negative("ranked quantity", t.quantity),
                    "amount": _non_negative("ranked amount", t.amount),
                }
            )
    else:
        quant = Decimal(1).scaleb(-QUINTAL_PLACES)
        for party, t in selectors.totals_by_party(model, scope=scope, date_range=date_range).items():
            rows.append(
                {
                    "id": party,
                    "name": party,
                    "quantity": _non_negative("ranked quantity", t.quantity),
                    "amount": _non_negative("ranked amount", t.amount),
                    "transaction_count": t.count,
                    "average_transaction_size": (t.quantity / t.count).quantize(quant, rounding=ROUND_HALF_UP)
                    if t.count
                    else ZERO,
                }
            )
    return _ranked(rows, n)


def performance_comparison(scope: TenantScope, period: ResolvedPeriod) -> dict:
    def _quantity(model, date_range):
        totals = selectors.totals_by_product(model, scope=scope, date_range=date_range)
        return _non_negative("period quantity", _sum(totals, "quantity"))

    cur_in = _quantity(StockIn, period.current)
    cur_out = _quantity(StockOut, period.current)
    prev_in = _quantity(StockIn, period.previous)
    prev_out = _quantity(StockOut, period.previous)

    return {
        "current_stock_in": cur_in,
        "current_stock_out": cur_out,
        "previous_stock_in": prev_in,
        "previous_stock_out": prev_out,
        "stock_in_change": percentage_change(prev_in, cur_in),
        "stock_out_change": percentage_change(prev_out, cur_out),
    }


def recent_transactions(scope: TenantScope, *, limit: int = 10) -> List[dict]:
    return selectors.recent_movements(scope=scope, limit=limit)
