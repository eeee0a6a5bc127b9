from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

from app.crm.errors import ValidationFailed
from app.crm.modules.customers.service import CustomerService

bp = Blueprint("customers", __name__)


def _service() -> CustomerService:
    return current_app.extensions["customer_service"]


def _json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationFailed(details=['"value" must be of type object'])
    return body


def _ok(data: Any, message: str | None = None, status: int = 200, **extra: Any):
    payload: dict[str, Any] = {"success": True}
    if message:
        payload["message"] = message
    payload["data"] = data
    payload.update(extra)
    return jsonify(payload), status


# ---------- Customers ----------
@bp.post("")
def customers_create():
    c = _service().create_customer(_json_body())
    return _ok(c.to_dict(), "Customer created", 201)


@bp.get("")
def customers_list():
    result = _service().get_customers(request.args.to_dict())
    meta = {k: result[k] for k in ("total", "page", "limit", "pages")}
    return _ok([c.to_dict() for c in result["items"]], meta=meta)


@bp.get("/<customer_id>")
def customer_detail(customer_id: str):
    return _ok(_service().get_customer_by_id(customer_id).to_dict())


@bp.patch("/<customer_id>")
def customer_update(customer_id: str):
    c = _service().update_customer(customer_id, _json_body())
    return _ok(c.to_dict(), "Customer updated")


@bp.delete("/<customer_id>")
def customer_delete(customer_id: str):
    return _ok(_service().delete_customer(customer_id), "Customer deleted")


# ---------- Addresses ----------
@bp.post("/<customer_id>/addresses")
def address_add(customer_id: str):
    c = _service().add_address(customer_id, _json_body())
    return _ok(c.to_dict(), "Address added", 201)


@bp.patch("/<customer_id>/addresses/<address_id>")
def address_update(customer_id: str, address_id: str):
    c = _service().update_address(customer_id, address_id, _json_body())
    return _ok(c.to_dict(), "Address updated")


@bp.delete("/<customer_id>/addresses/<address_id>")
def address_delete(customer_id: str, address_id: str):
    c = _service().delete_address(customer_id, address_id)
    return _ok(c.to_dict(), "Address deleted")


@bp.post("/<customer_id>/only-one-address")
def only_one_address_mark(customer_id: str):
    # Only a literal JSON true sets the flag.
    value = _json_body().get("value") is True
    c = _service().mark_only_one_address(customer_id, value)
    return _ok(c.to_dict(), "Flag updated")
