"""
Tests for messages, comments (filters, threading), reviews (ratings),
notifications and the merged notification feed.
"""

from __future__ import annotations

from datetime import datetime

from portfolio_cms.models import Comment, Message, Notification, Review


def new_project(client, headers, title="Site"):
    res = client.post("/api/projects", json={"title": title, "category": "design"}, headers=headers)
    return res.get_json()


def new_post(client, headers, title="Hello", slug="hello"):
    res = client.post("/api/posts", json={"title": title, "slug": slug, "category": "tutorial",
                                          "author": "Admin"}, headers=headers)
    return res.get_json()


def comment(client, **fields):
    payload = {"content": "Nice!", "authorName": "Ann", "authorEmail": "ann@example.com"}
    payload.update(fields)
    return client.post("/api/comments", json=payload)


class TestMessages:
    def test_public_submit_creates_notification(self, client, auth_headers, db_session) -> None:
        res = client.post("/api/messages", json={
            "sender": "Ann", "email": "ann@example.com", "subject": "Hi", "message": "Hello there",
        })
        assert res.status_code == 201
        assert res.get_json()["read"] is False
        db_session.expire_all()
        assert Notification.query.one().message == "New message from Ann"

    def test_invalid_email(self, client) -> None:
        res = client.post("/api/messages", json={"sender": "Ann", "email": "nope", "message": "x"})
        assert res.status_code == 400

    def test_listing_requires_admin(self, client) -> None:
        assert client.get("/api/messages").status_code == 401

    def test_read_archive_and_unread_filter(self, client, auth_headers) -> None:
        first = client.post("/api/messages", json={"sender": "A", "email": "a@example.com",
                                                   "message": "one"}).get_json()
        client.post("/api/messages", json={"sender": "B", "email": "b@example.com",
                                           "message": "two"})
        res = client.put(f"/api/messages/{first['id']}/read", headers=auth_headers)
        assert res.get_json()["read"] is True
        unread = client.get("/api/messages?unread=true", headers=auth_headers).get_json()
        assert [m["sender"] for m in unread] == ["B"]

        res = client.put(f"/api/messages/{first['id']}/archive", headers=auth_headers)
        assert res.get_json()["archived"] is True

        res = client.delete(f"/api/messages/{first['id']}", headers=auth_headers)
        assert res.get_json() == {"message": "Message deleted"}


class TestComments:
    def test_new_comment_is_pending_and_notifies(self, client, auth_headers, db_session) -> None:
        post = new_post(client, auth_headers)
        res = comment(client, postId=post["id"])
        assert res.status_code == 201
        assert res.get_json()["status"] == "Pending"
        db_session.expire_all()
        assert Notification.query.one().message == 'New comment from Ann on "Hello"'

    def test_unknown_target(self, client, db_session) -> None:
        comment(client, postId=999)
        db_session.expire_all()
        assert Notification.query.one().message == 'New comment from Ann on "Unknown"'

    def test_missing_parent_rejected(self, client) -> None:
        res = comment(client, parentId=999)
        assert res.status_code == 400
        assert res.get_json()["message"] == "Parent comment not found"

    def test_filter_precedence(self, client, auth_headers) -> None:
        post = new_post(client, auth_headers)
        project = new_project(client, auth_headers)
        approved = comment(client, postId=post["id"], content="approved").get_json()
        comment(client, postId=post["id"], content="pending")
        comment(client, projectId=project["id"], content="on project")
        client.put(f"/api/comments/{approved['id']}/approve", headers=auth_headers)

        def contents(query):
            return sorted(c["content"] for c in client.get(f"/api/comments?{query}").get_json())

        assert contents("pending=true") == ["on project", "pending"]
        assert contents(f"pending=true&postId={post['id']}&approved=true") == ["on project", "pending"]
        assert contents(f"postId={post['id']}&approved=true") == ["approved"]
        assert contents(f"postId={post['id']}&projectId={project['id']}") == ["approved", "pending"]
        assert contents(f"projectId={project['id']}") == ["on project"]
        assert contents(f"projectId={project['id']}&approved=true") == []
        assert len(contents("")) == 3

    def test_threaded_listing(self, client, auth_headers) -> None:
        post = new_post(client, auth_headers)
        root = comment(client, postId=post["id"], content="root").get_json()
        reply = comment(client, postId=post["id"], parentId=root["id"], content="reply").get_json()
        comment(client, postId=post["id"], parentId=reply["id"], content="nested")
        comment(client, postId=post["id"], content="second root")

        threads = client.get(f"/api/comments?postId={post['id']}&threaded=true").get_json()
        assert [t["content"] for t in threads] == ["root", "second root"]
        assert threads[0]["replies"][0]["content"] == "reply"
        assert threads[0]["replies"][0]["replies"][0]["content"] == "nested"
        assert threads[1]["replies"] == []

    def test_delete_removes_direct_replies(self, client, auth_headers, db_session) -> None:
        root = comment(client, content="root").get_json()
        comment(client, parentId=root["id"], content="reply")
        other = comment(client, content="other").get_json()

        res = client.delete(f"/api/comments/{root['id']}", headers=auth_headers)
        assert res.status_code == 200
        db_session.expire_all()
        assert [c.id for c in Comment.query.all()] == [other["id"]]

    def test_read_archive_and_unread(self, client, auth_headers) -> None:
        first = comment(client, content="first").get_json()
        comment(client, content="second")
        client.put(f"/api/comments/{first['id']}/read", headers=auth_headers)
        unread = client.get("/api/comments/unread", headers=auth_headers).get_json()
        assert [c["content"] for c in unread] == ["second"]

        res = client.put(f"/api/comments/{first['id']}/archive", headers=auth_headers)
        assert res.get_json()["archived"] is True

    def test_moderation_requires_admin(self, client) -> None:
        created = comment(client).get_json()
        assert client.put(f"/api/comments/{created['id']}/approve").status_code == 401


class TestReviews:
    def review(self, client, project_id, rating=5, name="Ann"):
        return client.post("/api/reviews", json={
            "content": "Solid work", "authorName": name, "authorEmail": "ann@example.com",
            "projectId": project_id, "rating": rating,
        })

    def test_review_for_missing_project(self, client) -> None:
        res = self.review(client, 999)
        assert res.status_code == 404
        assert res.get_json()["message"] == "Project not found"

    def test_rating_out_of_range(self, client, auth_headers) -> None:
        project = new_project(client, auth_headers)
        assert self.review(client, project["id"], rating=0).status_code == 400
        assert self.review(client, project["id"], rating=6).status_code == 400

    def test_notification_text(self, client, auth_headers, db_session) -> None:
        project = new_project(client, auth_headers, title="Shop")
        self.review(client, project["id"], rating=4, name="Bob")
        db_session.expire_all()
        assert Notification.query.one().message == 'New 4-star review from Bob on "Shop"'

    def test_rating_counts_only_approved(self, client, auth_headers) -> None:
        project = new_project(client, auth_headers)
        assert client.get(f"/api/projects/{project['id']}/rating").get_json() == {
            "average": 0, "count": 0,
        }
        ids = [self.review(client, project["id"], rating=r).get_json()["id"] for r in (5, 4, 4, 1)]
        for review_id in ids[:3]:
            client.put(f"/api/reviews/{review_id}/approve", headers=auth_headers)

        rating = client.get(f"/api/projects/{project['id']}/rating").get_json()
        assert rating == {"average": 4.3, "count": 3}

    def test_filters(self, client, auth_headers) -> None:
        project = new_project(client, auth_headers)
        other = new_project(client, auth_headers, title="Other")
        first = self.review(client, project["id"]).get_json()
        self.review(client, project["id"])
        self.review(client, other["id"])
        client.put(f"/api/reviews/{first['id']}/approve", headers=auth_headers)

        assert len(client.get("/api/reviews?pending=true").get_json()) == 2
        approved = client.get(f"/api/reviews?projectId={project['id']}&approved=true").get_json()
        assert [r["id"] for r in approved] == [first["id"]]
        assert len(client.get(f"/api/reviews?projectId={project['id']}").get_json()) == 2
        assert len(client.get("/api/reviews").get_json()) == 3


class TestNotifications:
    def test_create_read_and_read_all(self, client, auth_headers, admin_user) -> None:
        created = client.post("/api/notifications", json={
            "message": "Backup done", "userId": admin_user["id"],
        }, headers=auth_headers).get_json()
        client.post("/api/notifications", json={"message": "Other"}, headers=auth_headers)

        mine = client.get(f"/api/notifications?userId={admin_user['id']}", headers=auth_headers)
        assert [n["message"] for n in mine.get_json()] == ["Backup done"]

        res = client.put(f"/api/notifications/{created['id']}/read", headers=auth_headers)
        assert res.get_json()["read"] is True

        res = client.put("/api/notifications/read-all", headers=auth_headers)
        assert res.get_json()["updated"] == 1
        listing = client.get("/api/notifications", headers=auth_headers).get_json()
        assert all(n["read"] for n in listing)


class TestNotificationFeed:
    def test_feed_merges_sorts_and_truncates(self, client, auth_headers, db_session) -> None:
        db_session.add_all([
            Message(sender="Ann", email="ann@example.com", message="Hello",
                    created_at=datetime(2024, 1, 1)),
            Message(sender="Old", email="old@example.com", message="Read already", read=True,
                    created_at=datetime(2024, 1, 5)),
            Comment(content="Nice post", author_name="Bob", author_email="bob@example.com",
                    created_at=datetime(2024, 1, 3)),
            Comment(content="Archived", author_name="Eve", author_email="eve@example.com",
                    archived=True, created_at=datetime(2024, 1, 6)),
            Review(content="Great", author_name="Cy", author_email="cy@example.com",
                   project_id=1, rating=5, created_at=datetime(2024, 1, 2)),
        ])
        db_session.commit()

        body = client.get("/api/notifications/feed", headers=auth_headers).get_json()
        assert body["unreadCount"] == 3
        assert [item["type"] for item in body["items"]] == ["comment", "review", "message"]
        assert body["items"][0]["createdAt"] == "2024-01-03T00:00:00"
        assert body["items"][2]["preview"] == "Hello"

        body = client.get("/api/notifications/feed?limit=2", headers=auth_headers).get_json()
        assert len(body["items"]) == 2
        assert body["unreadCount"] == 3

    def test_feed_preview_is_truncated(self, client, auth_headers, db_session) -> None:
        db_session.add(Message(sender="Ann", email="ann@example.com", message="x" * 200))
        db_session.commit()
        item = client.get("/api/notifications/feed", headers=auth_headers).get_json()["items"][0]
        assert item["preview"].endswith("...")
        assert len(item["preview"]) <= 83
