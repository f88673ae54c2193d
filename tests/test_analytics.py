"""
Tests for page-view analytics, site search and the newsletter.
"""

from __future__ import annotations

import hashlib
from datetime import timedelta

import pytest

from portfolio_cms.models import ActivityLog, PageView, Post, Project, Subscriber, utcnow
from portfolio_cms.routes.analytics import parse_user_agent

CHROME_DESKTOP = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0 Safari/537.36")
SAFARI_IPHONE = ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
                 "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1")
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


@pytest.mark.parametrize("ua, expected", [
    (CHROME_DESKTOP, ("desktop", "Chrome", "Windows")),
    (SAFARI_IPHONE, ("mobile", "Safari", "iOS")),
    (FIREFOX_LINUX, ("desktop", "Firefox", "Linux")),
    ("curl/8.0", ("desktop", "unknown", "unknown")),
])
def test_parse_user_agent(ua, expected) -> None:
    assert parse_user_agent(ua) == expected


class TestTracking:
    def test_track_records_visit_and_bumps_views(self, client, db_session) -> None:
        project = Project(title="Shop", category="design")
        db_session.add(project)
        db_session.commit()
        project_id = project.id

        res = client.post("/api/analytics/track", json={
            "path": "/projects/shop", "contentType": "project", "contentId": project_id,
            "referrer": "https://google.com",
        }, headers={"User-Agent": CHROME_DESKTOP})
        assert res.get_json() == {"success": True}

        db_session.expire_all()
        view = PageView.query.one()
        expected_id = hashlib.md5(f"127.0.0.1-{CHROME_DESKTOP}".encode()).hexdigest()[:16]
        assert view.visitor_id == expected_id
        assert (view.device, view.browser, view.os) == ("desktop", "Chrome", "Windows")
        assert view.referrer == "https://google.com"
        assert db_session.get(Project, project_id).views == 1

    def test_path_required(self, client) -> None:
        assert client.post("/api/analytics/track", json={}).status_code == 400


class TestReports:
    @pytest.fixture
    def visits(self, client):
        for path, ua, ref in [
            ("/", CHROME_DESKTOP, "https://google.com"),
            ("/", SAFARI_IPHONE, "https://google.com"),
            ("/blog", CHROME_DESKTOP, "https://news.ycombinator.com"),
        ]:
            client.post("/api/analytics/track", json={"path": path, "referrer": ref},
                        headers={"User-Agent": ua})

    def test_overview(self, client, auth_headers, visits) -> None:
        body = client.get("/api/analytics/overview", headers=auth_headers).get_json()
        assert body["totalViews"] == 3
        assert body["pageViewStats"][0] == {"path": "/", "views": 2}
        assert body["referrerStats"][0] == {"referrer": "https://google.com", "count": 2}
        assert {d["device"]: d["count"] for d in body["deviceStats"]} == {"desktop": 2, "mobile": 1}
        assert body["countryStats"] == []

    def test_daily(self, client, auth_headers, visits) -> None:
        days = client.get("/api/analytics/daily?days=7", headers=auth_headers).get_json()
        assert len(days) == 1
        assert days[0]["views"] == 3
        assert days[0]["visitors"] == 2
        assert days[0]["date"] == utcnow().date().isoformat()

    def test_old_views_outside_window(self, client, auth_headers, db_session) -> None:
        db_session.add(PageView(path="/old", created_at=utcnow() - timedelta(days=60)))
        db_session.commit()
        assert client.get("/api/analytics/daily", headers=auth_headers).get_json() == []
        body = client.get("/api/analytics/overview", headers=auth_headers).get_json()
        assert body["totalViews"] == 0

    def test_browsers_and_devices(self, client, auth_headers, visits) -> None:
        browsers = client.get("/api/analytics/browsers", headers=auth_headers).get_json()
        assert browsers[0] == {"browser": "Chrome", "count": 2}
        devices = client.get("/api/analytics/devices", headers=auth_headers).get_json()
        assert sum(d["count"] for d in devices) == 3

    def test_popular_content(self, client, auth_headers) -> None:
        for content_id in (1, 1, 2):
            client.post("/api/analytics/track", json={
                "path": f"/blog/{content_id}", "contentType": "post", "contentId": content_id,
            })
        popular = client.get("/api/analytics/popular-content?contentType=post",
                             headers=auth_headers).get_json()
        assert popular[0] == {"contentId": 1, "contentType": "post", "views": 2}

    def test_csv_export(self, client, auth_headers, visits) -> None:
        res = client.get("/api/analytics/export?format=csv", headers=auth_headers)
        assert res.mimetype == "text/csv"
        assert "attachment" in res.headers["Content-Disposition"]
        lines = res.get_data(as_text=True).splitlines()
        assert lines[0] == "Page,Views"
        assert lines[1] == '"/",2'

    def test_reports_require_admin(self, client) -> None:
        assert client.get("/api/analytics/overview").status_code == 401


class TestSearch:
    @pytest.fixture
    def content(self, db_session):
        db_session.add_all([
            Post(title="Flask tips", slug="flask-tips", category="tutorial", author="Me",
                 status="Published", content="Blueprints and factories"),
            Post(title="Draft about flask", slug="draft", category="tutorial", author="Me"),
            Post(title="Deploying", slug="deploying", category="tutorial", author="Me",
                 status="Published", content="Gunicorn behind nginx, serving a Flask app"),
            Project(title="Shop", category="design", tech=["Flask", "React"]),
        ])
        db_session.commit()

    def test_short_query(self, client) -> None:
        assert client.get("/api/search?q=f").get_json() == {"results": [], "total": 0}

    def test_title_matches_first(self, client, content) -> None:
        body = client.get("/api/search?q=FLASK").get_json()
        assert body["query"] == "flask"
        assert body["total"] == 3
        titles = [r["title"] for r in body["results"]]
        assert titles == ["Flask tips", "Deploying", "Shop"]
        assert body["results"][2]["type"] == "project"

    def test_limit(self, client, content) -> None:
        body = client.get("/api/search?q=flask&limit=1").get_json()
        assert len(body["results"]) == 1
        assert body["total"] == 3


class TestNewsletter:
    def test_settings_defaults_and_save(self, client, auth_headers) -> None:
        defaults = client.get("/api/newsletter/settings").get_json()
        assert defaults["enabled"] is False
        assert defaults["buttonText"] == "Subscribe"

        client.post("/api/newsletter/settings", json={"enabled": True, "title": "News"},
                    headers=auth_headers)
        assert client.get("/api/newsletter/settings").get_json() == {"enabled": True, "title": "News"}

    def test_subscribe_is_idempotent(self, client, auth_headers, db_session) -> None:
        for _ in range(2):
            res = client.post("/api/newsletter/subscribe", json={"email": "Fan@Example.com"})
            assert res.status_code == 200

        db_session.expire_all()
        subscriber = Subscriber.query.one()
        assert subscriber.email == "fan@example.com"
        assert ActivityLog.query.filter(ActivityLog.action.like("%newsletter%")).count() == 2

        listing = client.get("/api/newsletter/subscribers", headers=auth_headers).get_json()
        assert [s["email"] for s in listing] == ["fan@example.com"]

    def test_resubscribe_reactivates(self, client, db_session) -> None:
        db_session.add(Subscriber(email="gone@example.com", status="unsubscribed"))
        db_session.commit()
        client.post("/api/newsletter/subscribe", json={"email": "gone@example.com"})
        db_session.expire_all()
        assert Subscriber.query.one().status == "active"

    def test_subscribe_validation(self, client) -> None:
        assert client.post("/api/newsletter/subscribe", json={}).status_code == 400
        assert client.post("/api/newsletter/subscribe", json={"email": "nope"}).status_code == 400
