"""
Customer business rules.

Ownership of invariants:
- phone/email uniqueness: checked here before any write
- at most one primary address on create: checked here before any write
- primary exclusivity on add/update and the hasOnlyOneAddress recompute:
  enforced atomically by CustomerRepository
- a customer and its nested addresses are written in one transaction
  (CustomerRepository.create_customer_with_addresses)
- explicit "only one address" flag: CustomerRepository.mark_only_one_address
  (stricter than the automatic recompute; both paths are kept)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from app.crm.errors import Conflict, InvalidInput, NotFound, ValidationFailed
from app.crm.modules.customers.filters import build_customer_filter
from app.crm.modules.customers.models import Customer
from app.crm.modules.customers.repository import DEFAULT_SORT, CustomerRepository
from app.crm.modules.customers.validation import messages, validate_create_payload, validate_update_payload
from app.crm.utils import page_count, parse_id, parse_pagination

logger = logging.getLogger(__name__)


def _coerce_id(value: Any, name: str = "id") -> int:
    try:
        return parse_id(value, name)
    except ValueError as e:
        raise ValidationFailed(details=[str(e)]) from e


class CustomerService:
    def __init__(self, repo: CustomerRepository) -> None:
        self.repo = repo

    # ---------- Customer CRUD ----------

    def create_customer(self, payload: Mapping[str, Any]) -> Customer:
        value, errs = validate_create_payload(payload)
        if errs:
            logger.info("Customer create rejected: %d validation error(s)", len(errs))
            raise ValidationFailed(details=messages(errs))

        if self.repo.exists_by_phone(value["phone"]):
            raise Conflict("Phone already exists")
        if value.get("email") and self.repo.exists_by_email(value["email"]):
            raise Conflict("Email already exists")

        addresses = value.get("addresses") or []
        if sum(1 for a in addresses if a.get("isPrimary")) > 1:
            raise InvalidInput("Only one address can be primary")

        customer = self.repo.create_customer_with_addresses(value, addresses)

        logger.info("Created customer id=%s with %d address(es)", customer.id, len(addresses))
        return customer

    def get_customer_by_id(self, customer_id: Any) -> Customer:
        c = self.repo.get_customer_by_id(_coerce_id(customer_id))
        if c is None:
            raise NotFound("Customer not found")
        return c

    def get_customers(self, query: Mapping[str, Any] | None = None) -> dict[str, Any]:
        query = query or {}
        pagination = parse_pagination(query)
        sort_by = query.get("sortBy") or DEFAULT_SORT
        sort_dir = "ASC" if str(query.get("sortDir") or "desc").upper() == "ASC" else "DESC"

        search = build_customer_filter(query)
        total = self.repo.count_customers(search)
        items = self.repo.find_customers(
            search,
            sort_by=sort_by,
            sort_dir=sort_dir,
            limit=pagination.limit,
            offset=pagination.offset,
        )
        return {
            "items": items,
            "total": total,
            "page": pagination.page,
            "limit": pagination.limit,
            "pages": page_count(total, pagination.limit),
        }

    def update_customer(self, customer_id: Any, payload: Mapping[str, Any]) -> Customer:
        cid = _coerce_id(customer_id)
        value, errs = validate_update_payload(payload)
        if errs:
            raise ValidationFailed(details=messages(errs))

        if value.get("phone"):
            holder = self.repo.get_customer_id_by_phone(value["phone"])
            if holder is not None and holder != cid:
                raise Conflict("Phone already used")
        if value.get("email"):
            holder = self.repo.get_customer_id_by_email(value["email"])
            if holder is not None and holder != cid:
                raise Conflict("Email already used")

        updated = self.repo.update_customer(cid, value)
        if updated is None:
            raise NotFound("Customer not found")
        return updated

    def delete_customer(self, customer_id: Any) -> dict[str, int]:
        cid = _coerce_id(customer_id)
        if not self.repo.delete_customer(cid):
            raise NotFound("Customer not found")
        logger.info("Deleted customer id=%s", cid)
        return {"deletedId": cid}

    # ---------- Address delegations ----------

    def add_address(self, customer_id: Any, address: Mapping[str, Any]) -> Customer:
        return self.repo.add_address(_coerce_id(customer_id), address)

    def update_address(self, customer_id: Any, address_id: Any, patch: Mapping[str, Any]) -> Customer:
        return self.repo.update_address(_coerce_id(customer_id), _coerce_id(address_id, "addressId"), patch)

    def delete_address(self, customer_id: Any, address_id: Any) -> Customer:
        return self.repo.delete_address(_coerce_id(customer_id), _coerce_id(address_id, "addressId"))

    def mark_only_one_address(self, customer_id: Any, value: Any) -> Customer:
        return self.repo.mark_only_one_address(_coerce_id(customer_id), bool(value))
