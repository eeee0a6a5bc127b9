import pytest

from app.crm import create_app


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SQLITE_FILE", str(tmp_path / "test.db"))
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    app = create_app()
    yield app.test_client()
    app.extensions["storage_gateway"].dispose()


def _customer(phone="9000000001", **kw):
    data = {"firstName": "Asha", "lastName": "Rao", "phone": phone}
    data.update(kw)
    return data


def _address(line1="1 MG Road", **kw):
    data = {"line1": line1, "city": "Pune", "state": "MH", "pincode": "411001"}
    data.update(kw)
    return data


def _create(client, **kw):
    r = client.post("/api/customers", json=_customer(**kw))
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_create_customer(client):
    r = client.post("/api/customers", json=_customer(email="asha@example.com", addresses=[_address()]))
    assert r.status_code == 201
    body = r.json
    assert body["success"] is True
    assert body["message"] == "Customer created"
    data = body["data"]
    assert data["firstName"] == "Asha"
    assert data["accountType"] == "standard"
    assert data["hasOnlyOneAddress"] is True
    assert data["addresses"][0]["customerId"] == data["id"]
    assert data["addresses"][0]["country"] == "India"
    assert data["createdAt"]


def test_create_validation_error(client):
    r = client.post("/api/customers", json={})
    assert r.status_code == 400
    assert r.json["success"] is False
    assert r.json["message"] == "Validation failed"
    assert '"phone" is required' in r.json["details"]
    assert "stack" in r.json


def test_create_non_object_body(client):
    r = client.post("/api/customers", json=[1, 2])
    assert r.status_code == 400
    assert r.json["details"] == ['"value" must be of type object']


def test_create_duplicate_phone(client):
    _create(client)
    r = client.post("/api/customers", json=_customer())
    assert r.status_code == 409
    assert r.json["message"] == "Phone already exists"


def test_create_two_primaries(client):
    r = client.post(
        "/api/customers",
        json=_customer(addresses=[_address(isPrimary=True), _address("B", isPrimary=True)]),
    )
    assert r.status_code == 400
    assert r.json["message"] == "Only one address can be primary"
    assert client.get("/api/customers").json["meta"]["total"] == 0


def test_list_customers(client):
    for i in range(3):
        _create(client, phone=f"900000000{i}", firstName=f"N{i}")
    r = client.get("/api/customers?page=1&limit=2&sortBy=firstName&sortDir=asc")
    assert r.status_code == 200
    assert r.json["success"] is True
    assert [c["firstName"] for c in r.json["data"]] == ["N0", "N1"]
    assert r.json["meta"] == {"total": 3, "page": 1, "limit": 2, "pages": 2}


def test_list_search(client):
    _create(client, phone="9000000001", firstName="Meera", addresses=[_address(city="Chennai")])
    _create(client, phone="9000000002", firstName="Ravi")
    assert [c["firstName"] for c in client.get("/api/customers?q=chENN").json["data"]] == ["Meera"]
    assert client.get("/api/customers?city=Chennai").json["meta"]["total"] == 1
    assert client.get("/api/customers?onlyOneAddress=false").json["meta"]["total"] == 1


def test_get_customer(client):
    created = _create(client)
    r = client.get(f"/api/customers/{created['id']}")
    assert r.status_code == 200
    assert r.json["data"]["id"] == created["id"]


def test_get_customer_errors(client):
    r = client.get("/api/customers/999")
    assert r.status_code == 404
    assert r.json == {"success": False, "message": "Customer not found", "stack": r.json["stack"]}

    r = client.get("/api/customers/abc")
    assert r.status_code == 400
    assert r.json["details"] == ["id must be a number."]


def test_update_customer(client):
    created = _create(client)
    r = client.patch(f"/api/customers/{created['id']}", json={"accountType": "premium"})
    assert r.status_code == 200
    assert r.json["message"] == "Customer updated"
    assert r.json["data"]["accountType"] == "premium"


def test_update_customer_conflict(client):
    _create(client, phone="9000000001")
    other = _create(client, phone="9000000002")
    r = client.patch(f"/api/customers/{other['id']}", json={"phone": "9000000001"})
    assert r.status_code == 409
    assert r.json["message"] == "Phone already used"


def test_update_customer_empty_body(client):
    created = _create(client)
    r = client.patch(f"/api/customers/{created['id']}", json={})
    assert r.status_code == 400


def test_delete_customer(client):
    created = _create(client, addresses=[_address()])
    r = client.delete(f"/api/customers/{created['id']}")
    assert r.status_code == 200
    assert r.json["data"] == {"deletedId": created["id"]}
    assert r.json["message"] == "Customer deleted"
    assert client.get(f"/api/customers/{created['id']}").status_code == 404
    assert client.delete(f"/api/customers/{created['id']}").status_code == 404


def test_address_lifecycle(client):
    cid = _create(client)["id"]

    r = client.post(f"/api/customers/{cid}/addresses", json=_address("A", isPrimary=True))
    assert r.status_code == 201
    assert r.json["message"] == "Address added"
    assert r.json["data"]["hasOnlyOneAddress"] is True

    r = client.post(f"/api/customers/{cid}/addresses", json=_address("B", isPrimary=True))
    data = r.json["data"]
    assert data["hasOnlyOneAddress"] is False
    assert [a["line1"] for a in data["addresses"]] == ["B", "A"]
    assert [a["isPrimary"] for a in data["addresses"]] == [True, False]

    a_id = data["addresses"][1]["id"]
    r = client.patch(f"/api/customers/{cid}/addresses/{a_id}", json={"city": "Mumbai"})
    assert r.status_code == 200
    assert r.json["message"] == "Address updated"
    assert r.json["data"]["addresses"][1]["city"] == "Mumbai"

    r = client.delete(f"/api/customers/{cid}/addresses/{a_id}")
    assert r.status_code == 200
    assert r.json["message"] == "Address deleted"
    assert r.json["data"]["hasOnlyOneAddress"] is True

    assert client.delete(f"/api/customers/{cid}/addresses/{a_id}").status_code == 404


def test_address_on_unknown_customer(client):
    r = client.post("/api/customers/999/addresses", json=_address())
    assert r.status_code == 404


def test_address_missing_required_field_is_conflict(client):
    cid = _create(client)["id"]
    r = client.post(f"/api/customers/{cid}/addresses", json={"city": "Pune"})
    assert r.status_code == 409
    assert r.json["message"].startswith("Constraint violation")


def test_only_one_address_flag(client):
    cid = _create(client)["id"]

    r = client.post(f"/api/customers/{cid}/only-one-address", json={"value": True})
    assert r.status_code == 400
    assert r.json["message"] == "Cannot mark as Only One Address unless exactly one exists"

    client.post(f"/api/customers/{cid}/addresses", json=_address())
    r = client.post(f"/api/customers/{cid}/only-one-address", json={"value": True})
    assert r.status_code == 200
    assert r.json["message"] == "Flag updated"
    assert r.json["data"]["hasOnlyOneAddress"] is True

    # anything but a literal true means "unmark"
    r = client.post(f"/api/customers/{cid}/only-one-address", json={"value": "true"})
    assert r.status_code == 400
    assert r.json["message"] == "Cannot unmark when there are not multiple addresses"


def test_stack_hidden_in_production(tmp_path, monkeypatch):
    monkeypatch.setenv("SQLITE_FILE", str(tmp_path / "prod.db"))
    monkeypatch.setenv("ENV", "production")
    app = create_app()
    r = app.test_client().get("/api/customers/999")
    assert r.status_code == 404
    assert "stack" not in r.json
    app.extensions["storage_gateway"].dispose()
