"""
Search filter construction for the customer listing.

Predicates are SQLAlchemy clauses with bound parameters; user input never
reaches the SQL text. The listing query joins customers LEFT JOIN addresses,
so address columns are valid filter targets.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from app.crm.modules.customers.models import Address, Customer


LIKE_ESCAPE = "\\"

TEXT_SEARCH_COLUMNS = (
    Customer.first_name,
    Customer.last_name,
    Customer.phone,
    Customer.email,
    Address.line1,
    Address.city,
    Address.state,
    Address.pincode,
)


def escape_like(s: str) -> str:
    """
    Escape LIKE wildcards so they match literally.

        >>> escape_like("100% real_value")
        '100\\\\% real\\\\_value'
    """
    s = str(s or "")
    return (
        s.replace(LIKE_ESCAPE, LIKE_ESCAPE + LIKE_ESCAPE)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class CustomerFilter:
    """Ordered list of predicates, AND-combined on compile()."""

    def __init__(self) -> None:
        self._clauses: list[ColumnElement[bool]] = []

    def __len__(self) -> int:
        return len(self._clauses)

    def __bool__(self) -> bool:
        return bool(self._clauses)

    @property
    def clauses(self) -> list[ColumnElement[bool]]:
        return list(self._clauses)

    def add(self, clause: ColumnElement[bool]) -> "CustomerFilter":
        self._clauses.append(clause)
        return self

    def text_search(self, q: str) -> "CustomerFilter":
        pattern = f"%{escape_like(q)}%"
        return self.add(or_(*(col.ilike(pattern, escape=LIKE_ESCAPE) for col in TEXT_SEARCH_COLUMNS)))

    def equals(self, column: Any, value: Any) -> "CustomerFilter":
        return self.add(column == value)

    def only_one_address(self, flag: bool) -> "CustomerFilter":
        return self.add(Customer.has_only_one_address == bool(flag))

    def compile(self) -> ColumnElement[bool] | None:
        if not self._clauses:
            return None
        if len(self._clauses) == 1:
            return self._clauses[0]
        return and_(*self._clauses)


def build_customer_filter(query: Mapping[str, Any]) -> CustomerFilter:
    f = CustomerFilter()

    q = query.get("q")
    if q:
        f.text_search(str(q))

    for key, column in (("city", Address.city), ("state", Address.state), ("pincode", Address.pincode)):
        value = query.get(key)
        if value:
            f.equals(column, str(value))

    only_one = query.get("onlyOneAddress")
    if isinstance(only_one, bool):
        only_one = "true" if only_one else "false"
    if only_one == "true":
        f.only_one_address(True)
    elif only_one == "false":
        f.only_one_address(False)

    return f
