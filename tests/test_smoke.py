import pytest

from app.crm import create_app


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SQLITE_FILE", str(tmp_path / "test.db"))
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    app = create_app()
    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["store"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_route_is_json_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json["success"] is False


def test_store_file_created(tmp_path, monkeypatch):
    db_file = tmp_path / "nested" / "dir" / "customers.db"
    monkeypatch.setenv("SQLITE_FILE", str(db_file))
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    assert db_file.exists()
    assert app.extensions["storage_gateway"].path == db_file.resolve()
