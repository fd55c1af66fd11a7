# ---------------------------- analytics.py ----------------------------
"""Dashboard and website analytics computed from stored rows.

Counts and sums run in SQL; per-page and per-selector breakdowns of the event
stream are grouped with pandas because their keys live inside the JSON
`event_props` column.
"""
import math
from datetime import datetime, timedelta
from urllib.parse import urlsplit

import pandas as pd
from sqlalchemy import func

from .extensions import db
from .models import (
    AnalyticsEvent, LoyaltyTransaction, Order, OrderStatus, Reservation,
    ReservationStatus, StaffActivity, TransactionType,
)

TOP_N = 10
EVENT_COLUMNS = ["visitor_id", "event_name", "page", "selector", "time_on_page", "created_at"]


def start_of_day(now):
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def scalar_text(value):
    """Scalar event property as text; objects and lists are dropped."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    return str(value) or None


def page_of(url, props):
    page = scalar_text(props.get("page"))
    if page:
        return page
    if not url:
        return None
    return urlsplit(url).path or "/"


def finite_number(value):
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _number(value):
    number = finite_number(value)
    return 0.0 if number is None else number


def load_events(since):
    rows = AnalyticsEvent.query.filter(AnalyticsEvent.created_at >= since).all()
    records = []
    for e in rows:
        props = e.event_props if isinstance(e.event_props, dict) else {}
        records.append({
            "visitor_id": e.visitor_id,
            "event_name": e.event_name,
            "page": page_of(e.url, props),
            "selector": scalar_text(props.get("selector")),
            "time_on_page": _number(props.get("time_on_page", props.get("timeOnPage"))),
            "created_at": e.created_at,
        })
    return pd.DataFrame(records, columns=EVENT_COLUMNS)


def daily_page_views(page_views, days, now):
    counts = {}
    if not page_views.empty:
        counts = pd.to_datetime(page_views["created_at"]).dt.date.value_counts().to_dict()
    today = now.date()
    return [
        {"date": day.isoformat(), "value": int(counts.get(day, 0))}
        for day in (today - timedelta(days=offset) for offset in range(days - 1, -1, -1))
    ]


def top_pages(page_views):
    views = page_views.dropna(subset=["page"])
    if views.empty:
        return []
    grouped = views.groupby("page").agg(views=("time_on_page", "size"), avg_time=("time_on_page", "mean"))
    grouped = grouped.reset_index().sort_values(["views", "page"], ascending=[False, True]).head(TOP_N)
    return [
        {"page": row.page, "views": int(row.views), "avgTimeOnPage": int(round(row.avg_time))}
        for row in grouped.itertuples()
    ]


def top_selectors(events):
    clicks = events[(events["event_name"] == "click") & events["selector"].notna()]
    if clicks.empty:
        return []
    grouped = clicks.fillna({"page": ""}).groupby(["selector", "page"]).size().reset_index(name="clicks")
    grouped = grouped.sort_values(["clicks", "selector", "page"], ascending=[False, True, True]).head(TOP_N)
    return [
        {"selector": row.selector, "clicks": int(row.clicks), "page": row.page or None}
        for row in grouped.itertuples()
    ]


def get_analytics_metrics(days=30, now=None):
    now = now or datetime.utcnow()
    # Window starts at midnight of the first daily bucket
    cutoff = start_of_day(now) - timedelta(days=days - 1)
    events = load_events(cutoff)
    page_views = events[events["event_name"] == "page_view"]

    daily = daily_page_views(page_views, days, now)
    reservation_starts = page_views["page"].fillna("").str.contains("reservation", case=False).sum()
    reservation_submits = Reservation.query.filter(Reservation.created_at >= cutoff).count()
    page_view_count = len(page_views)

    return {
        "uniqueVisitors": int(events["visitor_id"].nunique()),
        "totalPageViews": sum(d["value"] for d in daily),
        "dailyPageViews": daily,
        "conversionFunnel": {
            "pageViews": page_view_count,
            "reservationStarts": int(reservation_starts),
            "reservationSubmits": reservation_submits,
            "conversionRate": round(reservation_submits / page_view_count * 100, 2) if page_view_count else 0,
        },
        "topPages": top_pages(page_views),
        "topSelectors": top_selectors(events),
    }


def customer_satisfaction(total_completed):
    # Proxy score until real feedback is collected
    if total_completed <= 0:
        return 0
    return min(98, max(75, 85 + total_completed // 10))


def dashboard_metrics(now=None):
    now = now or datetime.utcnow()
    today = start_of_day(now)
    thirty_days_ago = now - timedelta(days=30)
    served = OrderStatus.SERVED.value

    today_reservations = Reservation.query.filter(Reservation.created_at >= today).count()
    pending_orders = Order.query.filter(
        Order.status.in_([OrderStatus.PENDING.value, OrderStatus.PREPARING.value])
    ).count()
    served_today = Order.query.filter(Order.status == served, Order.created_at >= today).all()
    total_completed = Order.query.filter(Order.status == served, Order.created_at >= thirty_days_ago).count()
    revenue = db.session.query(func.sum(Order.total_amount)).filter(Order.created_at >= today).scalar() or 0
    active_staff = db.session.query(func.count(func.distinct(StaffActivity.user_id)))\
        .filter(StaffActivity.created_at >= today, StaffActivity.user_id.isnot(None)).scalar() or 0

    durations = [(o.updated_at - o.created_at).total_seconds() / 60 for o in served_today]
    avg_order_time = round(sum(durations) / len(durations), 1) if durations else 0

    return {
        "todayReservations": today_reservations,
        "pendingOrders": pending_orders,
        "totalRevenue": round(float(revenue), 2),
        "activeStaff": int(active_staff),
        "completedOrders": len(served_today),
        "avgOrderTime": avg_order_time,
        "customerSatisfaction": customer_satisfaction(total_completed),
        "totalCompletedOrders": total_completed,
        "period": "30 days",
        "timestamp": now.isoformat(),
    }


def repeat_customer_count(reservations):
    """Customers with more than one booking, counted separately by email and by phone."""
    frame = pd.DataFrame(
        [{"email": r.customer_email, "phone": r.customer_phone} for r in reservations],
        columns=["email", "phone"],
    )
    repeats = 0
    for column in ("email", "phone"):
        counts = frame[column].dropna().value_counts()
        repeats += int((counts > 1).sum())
    return repeats


def value_report_kpis(period=30, avg_booking_value=85, now=None):
    now = now or datetime.utcnow()
    start = now - timedelta(days=period)

    reservations = Reservation.query.filter(
        Reservation.created_at >= start, Reservation.created_at <= now
    ).all()
    breakdown = {s.value: 0 for s in ReservationStatus}
    for r in reservations:
        breakdown[r.status] = breakdown.get(r.status, 0) + 1

    visits = db.session.query(func.count(func.distinct(AnalyticsEvent.visitor_id)))\
        .filter(AnalyticsEvent.created_at >= start, AnalyticsEvent.created_at <= now).scalar() or 0
    total_bookings = len(reservations)
    completed = breakdown[ReservationStatus.COMPLETED.value]
    repeat_count = repeat_customer_count(reservations)

    transactions = LoyaltyTransaction.query.filter(
        LoyaltyTransaction.created_at >= start, LoyaltyTransaction.created_at <= now
    ).all()
    points_earned = sum(t.points for t in transactions if t.transaction_type == TransactionType.EARN.value)
    points_redeemed = sum(abs(t.points) for t in transactions if t.transaction_type == TransactionType.REDEEM.value)

    return {
        "period": period,
        "startDate": start.date().isoformat(),
        "endDate": now.date().isoformat(),
        "visits": int(visits),
        "totalBookings": total_bookings,
        "completedBookings": completed,
        "conversionRate": round(total_bookings / visits * 100, 2) if visits else 0,
        "repeatCustomerCount": repeat_count,
        "repeatRate": round(repeat_count / total_bookings * 100, 2) if total_bookings else 0,
        "avgBookingValue": avg_booking_value,
        "estimatedRevenue": completed * avg_booking_value,
        # Repeat customers are assumed to spend 30% more
        "incrementalRevenue": round(repeat_count * avg_booking_value * 1.3, 2),
        "totalPointsEarned": points_earned,
        "totalPointsRedeemed": points_redeemed,
        "loyaltyEngagement": len(transactions),
        "statusBreakdown": {
            "pending": breakdown[ReservationStatus.PENDING.value],
            "confirmed": breakdown[ReservationStatus.CONFIRMED.value],
            "arrived": breakdown[ReservationStatus.ARRIVED.value],
            "completed": completed,
            "cancelled": breakdown[ReservationStatus.CANCELLED.value],
            "noShow": breakdown[ReservationStatus.NO_SHOW.value],
        },
    }
