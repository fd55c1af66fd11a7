from datetime import datetime, timedelta

from staff_portal.analytics import customer_satisfaction, get_analytics_metrics, value_report_kpis
from staff_portal.extensions import db
from staff_portal.loyalty import adjust_points, award_points
from staff_portal.models import AnalyticsEvent, Order, StaffActivity, Visitor


def _event(visitor, name, url=None, props=None, ago=timedelta(hours=1)):
    db.session.add(AnalyticsEvent(visitor_id=visitor, event_name=name, url=url,
                                  event_props=props or {}, created_at=datetime.utcnow() - ago))


def test_batch_ingests_events_and_keeps_first_seen(client, app):
    payload = {
        "visitorId": "v-1",
        "visitorMeta": {"device": "mobile"},
        "events": [
            {"event_name": "page_view", "url": "https://pa.example/menu", "timestamp": "2026-10-01T12:00:00Z"},
            {"event_name": "click", "event_props": {"selector": "#book"}, "timestamp": 1790000000000},
            {"event_props": {"no": "name"}},
        ],
    }
    res = client.post("/api/analytics/batch", json=payload)
    assert res.status_code == 200
    assert res.get_json() == {"success": True, "eventsProcessed": 2}

    visitor = db.session.get(Visitor, "v-1")
    first_seen = visitor.first_seen
    assert visitor.device_meta == {"device": "mobile"}
    page_view = AnalyticsEvent.query.filter_by(event_name="page_view").one()
    assert page_view.created_at == datetime(2026, 10, 1, 12, 0)

    client.post("/api/analytics/batch", json={"visitorId": "v-1", "events": []})
    db.session.refresh(visitor)
    assert visitor.first_seen == first_seen
    assert visitor.last_seen >= first_seen


def test_batch_rejects_invalid_payload(client, app):
    assert client.post("/api/analytics/batch", json={"visitorId": "v", "events": "x"}).status_code == 400
    assert client.post("/api/analytics/batch", json={"events": []}).status_code == 400


def test_analytics_metrics_from_stored_events(app, make_reservation):
    _event("a", "page_view", "https://pa.example/", {"time_on_page": 30})
    _event("a", "page_view", "https://pa.example/reservations", {"time_on_page": 60})
    _event("b", "page_view", "https://pa.example/", {"time_on_page": 10})
    _event("b", "click", "https://pa.example/", {"selector": "#book-now"})
    _event("c", "click", "https://pa.example/menu", {"selector": "#book-now"})
    _event("c", "page_view", "https://pa.example/old", ago=timedelta(days=40))
    db.session.commit()
    make_reservation()

    metrics = get_analytics_metrics(days=7)
    assert metrics["uniqueVisitors"] == 3
    assert metrics["totalPageViews"] == 3
    assert len(metrics["dailyPageViews"]) == 7
    assert metrics["dailyPageViews"][-1]["date"] == datetime.utcnow().date().isoformat()
    assert metrics["conversionFunnel"] == {
        "pageViews": 3, "reservationStarts": 1, "reservationSubmits": 1, "conversionRate": 33.33,
    }
    assert metrics["topPages"][0] == {"page": "/", "views": 2, "avgTimeOnPage": 20}
    assert metrics["topSelectors"] == [
        {"selector": "#book-now", "clicks": 1, "page": "/"},
        {"selector": "#book-now", "clicks": 1, "page": "/menu"},
    ]


def test_analytics_metrics_empty(app):
    metrics = get_analytics_metrics(days=3)
    assert metrics["uniqueVisitors"] == 0
    assert [d["value"] for d in metrics["dailyPageViews"]] == [0, 0, 0]
    assert metrics["conversionFunnel"]["conversionRate"] == 0
    assert metrics["topPages"] == [] and metrics["topSelectors"] == []


def test_analytics_metrics_endpoint_roles(client, auth):
    assert client.get("/api/analytics/metrics", headers=auth("manager")).status_code == 403
    res = client.get("/api/analytics/metrics?days=14", headers=auth("admin"))
    assert res.status_code == 200
    assert len(res.get_json()["dailyPageViews"]) == 14
    assert client.get("/api/analytics/metrics?days=0", headers=auth("owner")).status_code == 400


def test_customer_satisfaction_bounds():
    assert customer_satisfaction(0) == 0
    assert customer_satisfaction(5) == 85
    assert customer_satisfaction(45) == 89
    assert customer_satisfaction(500) == 98


def test_dashboard_metrics(client, auth, staff_users, make_reservation):
    now = datetime.utcnow()
    make_reservation()
    db.session.add_all([
        Order(order_number="A", customer_name="x", customer_email="x@example.com",
              status="pending", total_amount=10.25),
        Order(order_number="B", customer_name="x", customer_email="x@example.com",
              status="preparing", total_amount=5),
        Order(order_number="C", customer_name="x", customer_email="x@example.com", status="served",
              total_amount=20, created_at=now - timedelta(minutes=3), updated_at=now - timedelta(minutes=1)),
        StaffActivity(user_id=staff_users["worker"].id, user_name="w", action="a", entity_type="e"),
        StaffActivity(user_id=staff_users["worker"].id, user_name="w", action="b", entity_type="e"),
    ])
    db.session.commit()

    body = client.get("/api/metrics", headers=auth()).get_json()
    assert body["todayReservations"] == 1
    assert body["pendingOrders"] == 2
    assert body["completedOrders"] == 1
    assert body["totalCompletedOrders"] == 1
    assert body["totalRevenue"] == 35.25
    assert body["activeStaff"] == 1
    assert body["avgOrderTime"] == 2.0
    assert body["customerSatisfaction"] == 85
    assert body["period"] == "30 days"


def test_value_report_kpis(app, staff_users, make_reservation):
    make_reservation(status="completed")
    make_reservation(status="completed", customer_phone="+15550002")
    make_reservation(customer_email="other@example.com", customer_phone="+15550002", status="no_show")
    make_reservation(customer_email=None, customer_phone=None, status="cancelled")
    for visitor in ("a", "b", "c", "d", "e", "f", "g", "h"):
        _event(visitor, "page_view", "https://pa.example/")
    db.session.commit()
    _, account = award_points(300, "Dinner", email="ada@example.com")
    adjust_points(account, "redeem", 120, "Dessert", staff_users["manager"])
    db.session.commit()

    kpis = value_report_kpis(30, 85)
    assert kpis["visits"] == 8
    assert kpis["totalBookings"] == 4
    assert kpis["completedBookings"] == 2
    assert kpis["conversionRate"] == 50.0
    # ada@example.com twice, +15550002 twice
    assert kpis["repeatCustomerCount"] == 2
    assert kpis["repeatRate"] == 50.0
    assert kpis["estimatedRevenue"] == 170
    assert kpis["incrementalRevenue"] == 221.0
    assert kpis["totalPointsEarned"] == 300
    assert kpis["totalPointsRedeemed"] == 120
    assert kpis["loyaltyEngagement"] == 2
    assert kpis["statusBreakdown"] == {
        "pending": 0, "confirmed": 0, "arrived": 0, "completed": 2, "cancelled": 1, "noShow": 1,
    }


def test_value_report_endpoint(client, auth, make_reservation):
    make_reservation()
    assert client.get("/api/reports/value", headers=auth("admin")).status_code == 403

    res = client.get("/api/reports/value?period=7", headers=auth("owner"))
    assert res.status_code == 200
    report = res.get_json()["report"]
    assert report["period"] == 7
    assert report["avgBookingValue"] == 85

    res = client.get("/api/reports/value?format=xlsx", headers=auth("owner"))
    assert res.status_code == 200
    assert res.data[:2] == b"PK"
    assert client.get("/api/reports/value?format=html", headers=auth("owner")).status_code == 400


def test_activity_log(client, auth, make_reservation):
    r = make_reservation()
    client.post(f"/api/reservations/{r.id}/confirm", headers=auth("worker"))
    assert client.get("/api/activity", headers=auth("worker")).status_code == 403

    rows = client.get("/api/activity?limit=5", headers=auth("owner")).get_json()["activity"]
    assert rows[0]["action"] == "confirm_reservation"
    assert rows[0]["userName"] == "Worker Tester"
    assert rows[0]["entityId"] == str(r.id)


def test_batch_drops_unusable_event_props(client, app):
    payload = {
        "visitorId": "v-2",
        "events": [
            {"event_name": "page_view", "url": "https://pa.example/menu",
             "event_props": {"time_on_page": "NaN", "page": ["/menu"]}},
            {"event_name": "click", "event_props": {"selector": {"id": "book"}, "label": "Book"}},
        ],
    }
    res = client.post("/api/analytics/batch", json=payload)
    assert res.get_json() == {"success": True, "eventsProcessed": 2}
    assert AnalyticsEvent.query.filter_by(event_name="page_view").one().event_props == {}
    assert AnalyticsEvent.query.filter_by(event_name="click").one().event_props == {"label": "Book"}


def test_analytics_metrics_ignore_malformed_stored_props(client, auth):
    _event("a", "page_view", "https://pa.example/", {"time_on_page": "Infinity"})
    _event("a", "page_view", "https://pa.example/", {"time_on_page": 40})
    _event("a", "page_view", "https://pa.example/menu", {"page": {"path": "/x"}, "timeOnPage": "nan"})
    _event("a", "click", "https://pa.example/", {"selector": ["#a", "#b"]})
    _event("a", "click", "https://pa.example/", {"selector": "#book"})
    db.session.commit()

    res = client.get("/api/analytics/metrics?days=7", headers=auth("owner"))
    assert res.status_code == 200
    body = res.get_json()
    assert body["topPages"] == [
        {"page": "/", "views": 2, "avgTimeOnPage": 20},
        {"page": "/menu", "views": 1, "avgTimeOnPage": 0},
    ]
    assert body["topSelectors"] == [{"selector": "#book", "clicks": 1, "page": "/"}]


def test_daily_buckets_and_funnel_share_one_window(app, make_reservation):
    now = datetime(2026, 10, 19, 9, 0)
    first_bucket = datetime(2026, 10, 13)
    for created_at in (first_bucket - timedelta(minutes=30), first_bucket + timedelta(minutes=30), now):
        db.session.add(AnalyticsEvent(visitor_id="w", event_name="page_view",
                                      url="https://pa.example/", created_at=created_at))
    db.session.commit()
    make_reservation(created_at=first_bucket - timedelta(hours=1))
    make_reservation(created_at=first_bucket + timedelta(hours=1))

    metrics = get_analytics_metrics(days=7, now=now)
    assert metrics["dailyPageViews"][0] == {"date": "2026-10-13", "value": 1}
    assert metrics["totalPageViews"] == 2
    assert metrics["conversionFunnel"]["pageViews"] == metrics["totalPageViews"]
    assert metrics["conversionFunnel"]["reservationSubmits"] == 1
