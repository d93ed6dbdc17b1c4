from __future__ import annotations

import httpx
import pytest

import main
from main import _parse_args


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("USERS_DB_PATH", str(tmp_path / "users.sqlite3"))
    monkeypatch.setenv("USERS_SERVICE_CONFIG", str(tmp_path / "missing.yaml"))
    return tmp_path


def test_bare_options_route_to_serve_with_config() -> None:
    args = _parse_args(["--port", "8081", "--config", "/etc/users/service.yaml"])

    assert args.command == "serve"
    assert args.port == 8081
    assert args.host is None
    assert args.config == "/etc/users/service.yaml"


def test_serve_applies_cli_overrides_to_config(isolated_env, monkeypatch) -> None:
    served = []
    monkeypatch.setattr(main, "_serve", served.append)

    assert main.main(["--host", "127.0.0.1", "--port", "9090"]) == 0

    (config,) = served
    assert (config.host, config.port) == ("127.0.0.1", 9090)
    assert config.database_path == (isolated_env / "users.sqlite3").resolve()


def test_list_users_options_are_kept_raw() -> None:
    args = _parse_args(["list-users", "-q", "jane", "--limit", "500", "--order", "DESC"])
    assert args.command == "list-users"
    assert args.query == "jane"
    assert args.limit == "500"
    assert args.order == "DESC"


def test_create_and_list_users(isolated_env, capsys) -> None:
    assert main.main(["create-user", "Jane Smith", "Jane@X.com"]) == 0
    assert main.main(["create-user", "John Doe", "john@y.com"]) == 0

    assert main.main(["list-users", "-q", "jane", "--limit", "500"]) == 0
    output = capsys.readouterr().out
    assert "Created user #1: Jane Smith <jane@x.com>" in output
    assert "limit=10" in output
    assert "jane@x.com" in output
    assert "john@y.com" not in output.split("limit=10")[-1]


def test_create_user_duplicate_email_fails(isolated_env, capsys) -> None:
    assert main.main(["create-user", "Jane Smith", "jane@x.com"]) == 0
    assert main.main(["create-user", "Jane Again", "jane@x.com"]) == 1
    assert "already exists" in capsys.readouterr().err


def test_init_db_creates_database(isolated_env, capsys) -> None:
    assert main.main(["init-db"]) == 0
    assert (isolated_env / "users.sqlite3").exists()
    assert "Database initialisation complete." in capsys.readouterr().out


def test_status_reports_health(isolated_env, monkeypatch, capsys) -> None:
    captured = {}

    def fake_get(url, timeout=None):
        captured["url"] = url
        return httpx.Response(200, json={"status": "ok"})

    monkeypatch.setattr(httpx, "get", fake_get)

    assert main.main(["status", "--service-url", "http://users.internal:8080/"]) == 0
    assert captured["url"] == "http://users.internal:8080/health"
    assert "reports status: ok" in capsys.readouterr().out


def test_status_handles_connection_errors(isolated_env, monkeypatch) -> None:
    def fake_get(url, timeout=None):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx, "get", fake_get)

    assert main.main(["status"]) == 1
