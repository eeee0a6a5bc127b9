import pytest
from sqlalchemy import create_engine, inspect, text

from app.crm.db import StorageGateway
from app.crm.modules.customers.repository import CustomerRepository
from scripts.release import database_url, run_release
from scripts.start import gunicorn_argv, validated_port


@pytest.fixture()
def migrated(tmp_path, monkeypatch):
    monkeypatch.delenv("SQLITE_FILE", raising=False)
    db_file = tmp_path / "release" / "customers.db"
    run_release(str(db_file))
    return db_file


def test_database_url_creates_parent(tmp_path):
    url = database_url(str(tmp_path / "x" / "y.db"))
    assert url == f"sqlite:///{(tmp_path / 'x' / 'y.db').resolve()}"
    assert (tmp_path / "x").is_dir()


def test_release_builds_schema(migrated):
    engine = create_engine(f"sqlite:///{migrated}")
    try:
        insp = inspect(engine)
        assert {"customers", "addresses", "alembic_version"} <= set(insp.get_table_names())
        assert "idx_addresses_pincode" in {ix["name"] for ix in insp.get_indexes("addresses")}
        with engine.connect() as conn:
            assert conn.execute(text("SELECT version_num FROM alembic_version")).scalar() == "4a7c2e91d0b3"
    finally:
        engine.dispose()


def test_release_is_rerunnable(migrated):
    run_release(str(migrated))


def test_migrated_store_serves_repository(migrated):
    gateway = StorageGateway()
    gateway.initialize(migrated)
    try:
        repo = CustomerRepository(gateway)
        c = repo.create_customer({"firstName": "Asha", "lastName": "Rao", "phone": "9000000001"})
        c = repo.add_address(c.id, {"line1": "1 MG Road", "city": "Pune", "state": "MH", "pincode": "411001"})
        assert c.has_only_one_address is True
        assert repo.delete_customer(c.id) is True
        with gateway.session() as s:
            assert s.execute(text("SELECT COUNT(*) FROM addresses")).scalar() == 0
    finally:
        gateway.dispose()


@pytest.mark.parametrize("raw,expected", [(None, "8080"), ("", "8080"), (" 5000 ", "5000"), ("65535", "65535")])
def test_validated_port(raw, expected):
    assert validated_port(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "0", "70000", "-1"])
def test_validated_port_rejects(raw):
    with pytest.raises(ValueError, match="Invalid PORT value"):
        validated_port(raw)


def test_gunicorn_argv():
    argv = gunicorn_argv("5000")
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert "0.0.0.0:5000" in argv
    assert argv[argv.index("--workers") + 1] == "1"
