"""Shared pytest fixtures for the API test suite.

Fixture overview
----------------
app           : application built from TestConfig, in-memory SQLite and a
                per-test upload folder under tmp_path
client        : Flask test client for ``app``
db_session    : SQLAlchemy session inside a pushed app context, for
                arranging rows and asserting on persisted state
admin_user    : a "Super Admin" account (as a dict; password ``admin-pass``)
auth_headers  : Bearer headers for ``admin_user``
make_user     : factory for extra accounts with any role
headers_for   : factory returning Bearer headers for any user id
"""

from __future__ import annotations

import pytest

from portfolio_cms import create_app, db
from portfolio_cms.config import TestConfig
from portfolio_cms.models import User
from portfolio_cms.security import generate_token, hash_password

ADMIN_PASSWORD = "admin-pass"


@pytest.fixture
def app(tmp_path):
    class Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(Config)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    with app.app_context():
        yield db.session
        db.session.rollback()


@pytest.fixture
def make_user(app):
    def _make_user(username, role="Subscriber", password="secret-pass", **fields):
        with app.app_context():
            user = User(
                username=username,
                password=hash_password(password),
                name=fields.pop("name", username.title()),
                email=fields.pop("email", f"{username}@example.com"),
                role=role,
                **fields,
            )
            db.session.add(user)
            db.session.commit()
            return user.to_dict()

    return _make_user


@pytest.fixture
def admin_user(make_user) -> dict:
    return make_user("admin", role="Super Admin", password=ADMIN_PASSWORD, name="Site Admin")


@pytest.fixture
def headers_for(app):
    def _headers_for(user_id) -> dict:
        with app.app_context():
            token = generate_token(db.session.get(User, user_id))
        return {"Authorization": f"Bearer {token}"}

    return _headers_for


@pytest.fixture
def auth_headers(admin_user, headers_for) -> dict:
    return headers_for(admin_user["id"])
