from __future__ import annotations

import logging
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import asc, delete, desc, distinct, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql.elements import ColumnElement

from app.crm.db import StorageGateway
from app.crm.errors import Conflict, InvalidState, NotFound
from app.crm.modules.customers.filters import CustomerFilter
from app.crm.modules.customers.models import DEFAULT_COUNTRY, Address, Customer, utcnow

logger = logging.getLogger(__name__)


# wire name -> column attribute
CUSTOMER_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "email": "email",
    "accountType": "account_type",
}

ADDRESS_FIELDS = {
    "line1": "line1",
    "line2": "line2",
    "city": "city",
    "state": "state",
    "country": "country",
    "pincode": "pincode",
    "isPrimary": "is_primary",
    "status": "status",
}

SORT_COLUMNS = {
    "id": Customer.id,
    "firstName": Customer.first_name,
    "lastName": Customer.last_name,
    "phone": Customer.phone,
    "email": Customer.email,
    "accountType": Customer.account_type,
    "createdAt": Customer.created_at,
    "updatedAt": Customer.updated_at,
}
DEFAULT_SORT = "createdAt"

FilterArg = CustomerFilter | ColumnElement[bool] | None


def _where(filter_expr: FilterArg) -> ColumnElement[bool] | None:
    if isinstance(filter_expr, CustomerFilter):
        return filter_expr.compile()
    return filter_expr


class CustomerRepository:
    """
    Parameterized reads/writes against the customers/addresses tables.

    No business validation here. Returned customers are detached but fully
    hydrated (addresses loaded, primary first, then id ascending).
    """

    def __init__(self, gateway: StorageGateway) -> None:
        self.gateway = gateway

    @contextmanager
    def _atomic(self) -> Generator[Session, None, None]:
        try:
            with self.gateway.transaction() as s:
                yield s
        except IntegrityError as e:
            logger.warning("Storage constraint violation: %s", e.orig)
            raise Conflict(f"Constraint violation: {e.orig}") from e

    # ---------- helpers (must run inside a session) ----------

    def _hydrate(self, s: Session, customer_id: int) -> Customer | None:
        stmt = (
            select(Customer)
            .where(Customer.id == customer_id)
            .options(selectinload(Customer.addresses))
            .execution_options(populate_existing=True)
        )
        return s.execute(stmt).scalar_one_or_none()

    def _require_customer(self, s: Session, customer_id: int) -> None:
        found = s.execute(select(Customer.id).where(Customer.id == customer_id)).first()
        if found is None:
            raise NotFound("Customer not found")

    def _count_addresses(self, s: Session, customer_id: int) -> int:
        stmt = select(func.count(Address.id)).where(Address.customer_id == customer_id)
        return int(s.execute(stmt).scalar_one())

    def _clear_primary(self, s: Session, customer_id: int) -> None:
        s.execute(
            update(Address)
            .where(Address.customer_id == customer_id)
            .values(is_primary=False)
            .execution_options(synchronize_session=False)
        )

    def _set_only_one_address(self, s: Session, customer_id: int, value: bool) -> None:
        s.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(has_only_one_address=value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    def _recompute_only_one_address(self, s: Session, customer_id: int) -> None:
        self._set_only_one_address(s, customer_id, self._count_addresses(s, customer_id) == 1)

    # ---------- Customer CRUD ----------

    def create_customer(self, fields: Mapping[str, Any]) -> Customer:
        now = utcnow()
        with self._atomic() as s:
            c = Customer(
                first_name=fields.get("firstName"),
                last_name=fields.get("lastName"),
                phone=fields.get("phone"),
                email=fields.get("email") or None,
                account_type=fields.get("accountType") or "standard",
                has_only_one_address=bool(fields.get("hasOnlyOneAddress")),
                created_at=now,
                updated_at=now,
            )
            s.add(c)
            s.flush()
            logger.debug("Inserted customer id=%s", c.id)
            return self._hydrate(s, c.id)

    def get_customer_by_id(self, customer_id: int) -> Customer | None:
        with self.gateway.session() as s:
            return self._hydrate(s, customer_id)

    def update_customer(self, customer_id: int, patch: Mapping[str, Any]) -> Customer | None:
        values = {attr: patch[key] for key, attr in CUSTOMER_FIELDS.items() if key in patch}
        with self._atomic() as s:
            if not values:
                return self._hydrate(s, customer_id)
            values["updated_at"] = utcnow()
            result = s.execute(
                update(Customer)
                .where(Customer.id == customer_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return self._hydrate(s, customer_id)

    def delete_customer(self, customer_id: int) -> bool:
        with self._atomic() as s:
            result = s.execute(
                delete(Customer)
                .where(Customer.id == customer_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def count_customers(self, filter_expr: FilterArg = None) -> int:
        stmt = (
            select(func.count(distinct(Customer.id)))
            .select_from(Customer)
            .outerjoin(Address, Address.customer_id == Customer.id)
        )
        where = _where(filter_expr)
        if where is not None:
            stmt = stmt.where(where)
        with self.gateway.session() as s:
            return int(s.execute(stmt).scalar_one())

    def find_customers(
        self,
        filter_expr: FilterArg = None,
        *,
        sort_by: str = DEFAULT_SORT,
        sort_dir: str = "DESC",
        limit: int = 10,
        offset: int = 0,
    ) -> list[Customer]:
        stmt = select(Customer)
        where = _where(filter_expr)
        if where is not None:
            # Filter over the joined relation, then select each customer once.
            matching_ids = (
                select(Customer.id)
                .outerjoin(Address, Address.customer_id == Customer.id)
                .where(where)
            )
            stmt = stmt.where(Customer.id.in_(matching_ids))

        column = SORT_COLUMNS.get(sort_by, SORT_COLUMNS[DEFAULT_SORT])
        direction = asc if (sort_dir or "").upper() == "ASC" else desc
        stmt = (
            stmt.order_by(direction(column), direction(Customer.id))
            .limit(limit)
            .offset(offset)
            .options(selectinload(Customer.addresses))
        )
        with self.gateway.session() as s:
            return list(s.execute(stmt).scalars().all())

    # ---------- Address operations ----------

    def _insert_address(self, s: Session, customer_id: int, address: Mapping[str, Any]) -> None:
        now = utcnow()
        is_primary = bool(address.get("isPrimary"))
        if is_primary:
            self._clear_primary(s, customer_id)
        s.add(
            Address(
                customer_id=customer_id,
                line1=address.get("line1"),
                line2=address.get("line2") or None,
                city=address.get("city"),
                state=address.get("state"),
                country=address.get("country") or DEFAULT_COUNTRY,
                pincode=address.get("pincode"),
                is_primary=is_primary,
                status=address.get("status") or "active",
                created_at=now,
                updated_at=now,
            )
        )
        s.flush()
        logger.debug("Added address to customer id=%s (primary=%s)", customer_id, is_primary)

    def create_customer_with_addresses(
        self, fields: Mapping[str, Any], addresses: list[Mapping[str, Any]]
    ) -> Customer:
        """Insert a customer and its nested addresses as one unit of work."""
        now = utcnow()
        with self._atomic() as s:
            c = Customer(
                first_name=fields.get("firstName"),
                last_name=fields.get("lastName"),
                phone=fields.get("phone"),
                email=fields.get("email") or None,
                account_type=fields.get("accountType") or "standard",
                has_only_one_address=False,
                created_at=now,
                updated_at=now,
            )
            s.add(c)
            s.flush()
            for addr in addresses:
                self._insert_address(s, c.id, addr)
            self._recompute_only_one_address(s, c.id)
            logger.debug("Inserted customer id=%s with %d address(es)", c.id, len(addresses))
            return self._hydrate(s, c.id)

    def add_address(self, customer_id: int, address: Mapping[str, Any]) -> Customer:
        with self._atomic() as s:
            self._require_customer(s, customer_id)
            self._insert_address(s, customer_id, address)
            self._recompute_only_one_address(s, customer_id)
            return self._hydrate(s, customer_id)

    def update_address(self, customer_id: int, address_id: int, patch: Mapping[str, Any]) -> Customer:
        values = {attr: patch[key] for key, attr in ADDRESS_FIELDS.items() if key in patch}
        if "is_primary" in values:
            values["is_primary"] = bool(values["is_primary"])
        with self._atomic() as s:
            self._require_customer(s, customer_id)
            owned = s.execute(
                select(Address.id).where(Address.id == address_id, Address.customer_id == customer_id)
            ).first()
            if owned is None:
                raise NotFound("Address not found")
            # Same test as the value written below.
            if values.get("is_primary"):
                self._clear_primary(s, customer_id)
            if values:
                values["updated_at"] = utcnow()
                s.execute(
                    update(Address)
                    .where(Address.id == address_id, Address.customer_id == customer_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
            self._recompute_only_one_address(s, customer_id)
            return self._hydrate(s, customer_id)

    def delete_address(self, customer_id: int, address_id: int) -> Customer:
        with self._atomic() as s:
            self._require_customer(s, customer_id)
            result = s.execute(
                delete(Address)
                .where(Address.id == address_id, Address.customer_id == customer_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound("Address not found")
            self._recompute_only_one_address(s, customer_id)
            return self._hydrate(s, customer_id)

    def mark_only_one_address(self, customer_id: int, value: bool) -> Customer:
        with self._atomic() as s:
            self._require_customer(s, customer_id)
            cnt = self._count_addresses(s, customer_id)
            if value and cnt != 1:
                raise InvalidState("Cannot mark as Only One Address unless exactly one exists")
            if not value and cnt <= 1:
                raise InvalidState("Cannot unmark when there are not multiple addresses")
            # Explicit set; bypasses the automatic recompute.
            self._set_only_one_address(s, customer_id, bool(value))
            return self._hydrate(s, customer_id)

    # ---------- Duplicate checks ----------

    def get_customer_id_by_phone(self, phone: str) -> int | None:
        with self.gateway.session() as s:
            return s.execute(select(Customer.id).where(Customer.phone == phone).limit(1)).scalar_one_or_none()

    def get_customer_id_by_email(self, email: str | None) -> int | None:
        if not email:
            return None
        with self.gateway.session() as s:
            return s.execute(select(Customer.id).where(Customer.email == email).limit(1)).scalar_one_or_none()

    def exists_by_phone(self, phone: str) -> bool:
        return self.get_customer_id_by_phone(phone) is not None

    def exists_by_email(self, email: str | None) -> bool:
        return self.get_customer_id_by_email(email) is not None
