"""
Tests for configuration, logging setup and JSON error rendering.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from portfolio_cms.config import Config, TestConfig
from portfolio_cms.errors import APIError
from portfolio_cms.logging_setup import setup_logging


class TestConfigClasses:
    def test_defaults(self) -> None:
        assert Config.MAX_CONTENT_LENGTH == 50 * 1024 * 1024
        assert Config.AUTH_COOKIE_NAME == "portfolio_session"
        assert Config.PASSWORD_MAX_AGE_DAYS == 90

    def test_test_config(self, app) -> None:
        assert TestConfig.SQLALCHEMY_DATABASE_URI == "sqlite://"
        assert app.testing
        assert app.config["UPLOAD_FOLDER"].endswith("uploads")


class TestLogging:
    def test_rich_console_and_file_handlers(self, tmp_path) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "logs" / "cms.log"
        try:
            setup_logging("debug", log_file)
            assert root.level == logging.DEBUG
            assert any(isinstance(h, RichHandler) for h in root.handlers)
            assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
            assert logging.getLogger("werkzeug").level == logging.WARNING

            logging.getLogger("portfolio_cms.test").info("hello file")
            for handler in root.handlers:
                handler.flush()
            assert "hello file" in log_file.read_text()
        finally:
            for handler in root.handlers:
                if handler not in saved_handlers:
                    handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_unknown_level_name_falls_back_to_info(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("chatty")
            assert root.level == logging.INFO
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestErrorRendering:
    def test_unknown_route_is_json(self, client) -> None:
        res = client.get("/api/does-not-exist")
        assert res.status_code == 404
        assert "message" in res.get_json()

    def test_method_not_allowed_is_json(self, client) -> None:
        res = client.patch("/api/projects")
        assert res.status_code == 405
        assert "message" in res.get_json()

    def test_non_object_body(self, client, auth_headers) -> None:
        res = client.post("/api/projects", json=["not", "an", "object"], headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["message"] == "Expected a JSON object"

    def test_api_error_payload(self) -> None:
        err = APIError("Nope", 409, errors=[{"field": "slug", "message": "taken"}])
        assert err.to_dict() == {"message": "Nope", "errors": [{"field": "slug", "message": "taken"}]}
        assert APIError("Plain").to_dict() == {"message": "Plain"}
