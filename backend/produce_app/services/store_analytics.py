"""Store activity scoring: spend, payment behaviour, order trend and a 0-100 rating."""

from datetime import datetime
from typing import Any, Dict, Iterable, List

from produce_app.services.money import money_float, to_decimal

RATINGS = ("excellent", "good", "needs_improvement", "at_risk")


def calculate_store_rating(payment_status: str, credit_count: int, total_orders: int,
                           days_since_last_order: int, order_trend: str) -> Dict[str, Any]:
    """Start at 100 and deduct for late payment, open credit, inactivity and a falling trend."""
    score = 100

    if payment_status == "overdue":
        score -= 40
    elif payment_status == "warning":
        score -= 20

    credit_ratio = credit_count / total_orders if total_orders else 0
    if credit_ratio > 0.5:
        score -= 20
    elif credit_ratio > 0.3:
        score -= 10

    if days_since_last_order > 60:
        score -= 20
    elif days_since_last_order > 30:
        score -= 10

    if order_trend == "down":
        score -= 15
    elif order_trend == "up":
        score += 5

    score = max(0, min(100, score))
    if score >= 80:
        rating = "excellent"
    elif score >= 60:
        rating = "good"
    elif score >= 40:
        rating = "needs_improvement"
    else:
        rating = "at_risk"
    return {"rating": rating, "score": score}


def month_bounds(now: datetime):
    this_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if this_month.month == 1:
        last_month = this_month.replace(year=this_month.year - 1, month=12)
    else:
        last_month = this_month.replace(month=this_month.month - 1)
    return this_month, last_month


def store_order_analytics(orders: Iterable[Any], now: datetime) -> Dict[str, Any]:
    """
    Figures for one store from its live (not deleted) orders.

    Paid orders count in full and partial orders by their payment amount.
    Payment status turns to warning after 14 days and overdue after 30,
    counted from the oldest order not fully paid.
    """
    orders = sorted(orders, key=lambda o: o.created_at, reverse=True)
    this_month, last_month = month_bounds(now)

    total_orders = len(orders)
    total_spent = sum((to_decimal(o.total) for o in orders), to_decimal(0))
    total_paid = sum((to_decimal(o.total) for o in orders if o.payment_status == "paid"), to_decimal(0)) + sum(
        (to_decimal(o.payment_amount) for o in orders if o.payment_status == "partial"), to_decimal(0)
    )
    balance_due = total_spent - total_paid
    credit_count = sum(1 for o in orders if o.payment_status in ("pending", "partial"))

    this_month_orders = sum(1 for o in orders if o.created_at >= this_month)
    last_month_orders = sum(1 for o in orders if last_month <= o.created_at < this_month)
    if this_month_orders > last_month_orders:
        order_trend = "up"
    elif this_month_orders < last_month_orders:
        order_trend = "down"
    else:
        order_trend = "stable"

    last_order_date = orders[0].created_at if orders else None
    days_since_last_order = (now - last_order_date).days if last_order_date else 999
    months_active = max(1, (now - orders[-1].created_at).days // 30) if orders else 1

    paid_orders = sum(1 for o in orders if o.payment_status == "paid")
    payment_rate = paid_orders / total_orders * 100 if total_orders else 100

    payment_status = "good"
    if balance_due > 0:
        unpaid = [o for o in orders if o.payment_status != "paid"]
        if unpaid:
            oldest = min(unpaid, key=lambda o: o.created_at)
            days_open = (now - oldest.created_at).days
            if days_open > 30:
                payment_status = "overdue"
            elif days_open > 14:
                payment_status = "warning"

    rating = calculate_store_rating(payment_status, credit_count, total_orders, days_since_last_order, order_trend)
    return {
        "total_orders": total_orders,
        "total_spent": money_float(total_spent),
        "total_paid": money_float(total_paid),
        "balance_due": money_float(balance_due),
        "credit_count": credit_count,
        "last_order_date": last_order_date,
        "this_month_orders": this_month_orders,
        "last_month_orders": last_month_orders,
        "order_trend": order_trend,
        "days_since_last_order": days_since_last_order,
        "order_frequency": round(total_orders / months_active, 2),
        "payment_rate": round(payment_rate, 2),
        "avg_order_value": money_float(total_spent / total_orders) if total_orders else 0.0,
        "payment_status": payment_status,
        "store_rating": rating["rating"],
        "rating_score": rating["score"],
    }


def analytics_summary(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Totals across stores; active means an order in the last 30 days."""
    summary = {
        "total_stores": len(rows),
        "active_stores": sum(1 for r in rows if r["days_since_last_order"] < 30),
        "total_revenue": round(sum(r["total_spent"] for r in rows), 2),
        "total_outstanding": round(sum(r["balance_due"] for r in rows), 2),
        "overdue_stores": sum(1 for r in rows if r["payment_status"] == "overdue"),
        "warning_stores": sum(1 for r in rows if r["payment_status"] == "warning"),
        "total_orders": sum(r["total_orders"] for r in rows),
        "total_credits": sum(r["credit_count"] for r in rows),
    }
    for rating in RATINGS:
        summary[f"{rating}_stores"] = sum(1 for r in rows if r["store_rating"] == rating)
    return summary
