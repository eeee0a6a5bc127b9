"""
Payload validation for customer create/update.

Validators never stop at the first problem: every violation is collected so the
caller can report them all at once. Each validator returns the normalized
payload (trimmed strings, defaults applied) together with the error list.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from email_validator import EmailNotValidError, validate_email

from app.crm.modules.customers.models import ACCOUNT_TYPES, ADDRESS_STATUSES, DEFAULT_COUNTRY


UPDATABLE_FIELDS = ("firstName", "lastName", "phone", "email", "accountType")
CREATE_FIELDS = UPDATABLE_FIELDS + ("addresses",)
ADDRESS_KEYS = ("line1", "line2", "city", "state", "country", "pincode", "isPrimary", "status")
PHONE_MIN_LENGTH = 6


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


def messages(errors: list[ValidationError]) -> list[str]:
    return [e.message for e in errors]


def is_valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _unknown_keys(payload: Mapping[str, Any], allowed: tuple[str, ...], prefix: str = "") -> list[ValidationError]:
    return [
        ValidationError(f"{prefix}{k}", f'"{prefix}{k}" is not allowed')
        for k in payload
        if k not in allowed
    ]


def _string(
    payload: Mapping[str, Any],
    key: str,
    errs: list[ValidationError],
    *,
    label: str | None = None,
    required: bool = False,
    allow_empty: bool = False,
    min_length: int | None = None,
) -> str | None:
    label = label or key
    if key not in payload or (payload[key] is None and not required and allow_empty):
        if required:
            errs.append(ValidationError(label, f'"{label}" is required'))
        return None
    value = payload[key]
    if not isinstance(value, str):
        errs.append(ValidationError(label, f'"{label}" must be a string'))
        return None
    value = value.strip()
    if not value:
        if allow_empty:
            return ""
        errs.append(ValidationError(label, f'"{label}" is not allowed to be empty'))
        return None
    if min_length is not None and len(value) < min_length:
        errs.append(ValidationError(label, f'"{label}" length must be at least {min_length} characters long'))
        return None
    return value


def _choice(
    payload: Mapping[str, Any],
    key: str,
    choices: tuple[str, ...],
    errs: list[ValidationError],
    *,
    label: str | None = None,
) -> str | None:
    label = label or key
    if key not in payload:
        return None
    value = payload[key]
    if value not in choices:
        errs.append(ValidationError(label, f'"{label}" must be one of [{", ".join(choices)}]'))
        return None
    return value


def _email(payload: Mapping[str, Any], errs: list[ValidationError], *, allow_empty: bool) -> str | None:
    value = _string(payload, "email", errs, allow_empty=allow_empty)
    if value and not is_valid_email(value):
        errs.append(ValidationError("email", '"email" must be a valid email'))
        return None
    return value


def _boolean(payload: Mapping[str, Any], key: str, errs: list[ValidationError], *, label: str) -> bool | None:
    if key not in payload or payload[key] is None:
        return None
    value = payload[key]
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    errs.append(ValidationError(label, f'"{label}" must be a boolean'))
    return None


def validate_address_payload(payload: Any, index: int) -> tuple[dict[str, Any], list[ValidationError]]:
    prefix = f"addresses[{index}]"
    errs: list[ValidationError] = []
    if not isinstance(payload, Mapping):
        return {}, [ValidationError(prefix, f'"{prefix}" must be of type object')]

    value: dict[str, Any] = {}
    for key in ("line1", "city", "state", "pincode"):
        value[key] = _string(payload, key, errs, label=f"{prefix}.{key}", required=True)
    value["line2"] = _string(payload, "line2", errs, label=f"{prefix}.line2", allow_empty=True) or None
    value["country"] = _string(payload, "country", errs, label=f"{prefix}.country") or DEFAULT_COUNTRY
    is_primary = _boolean(payload, "isPrimary", errs, label=f"{prefix}.isPrimary")
    if is_primary is not None:
        value["isPrimary"] = is_primary
    value["status"] = _choice(payload, "status", ADDRESS_STATUSES, errs, label=f"{prefix}.status") or "active"
    errs.extend(_unknown_keys(payload, ADDRESS_KEYS, prefix=f"{prefix}."))
    return value, errs


def validate_create_payload(payload: Any) -> tuple[dict[str, Any], list[ValidationError]]:
    """Validate a new-customer payload (optionally with nested addresses)."""
    if not isinstance(payload, Mapping):
        return {}, [ValidationError("value", '"value" must be of type object')]

    errs: list[ValidationError] = []
    value: dict[str, Any] = {
        "firstName": _string(payload, "firstName", errs, required=True),
        "lastName": _string(payload, "lastName", errs, required=True),
        "phone": _string(payload, "phone", errs, required=True, min_length=PHONE_MIN_LENGTH),
        "email": _email(payload, errs, allow_empty=True) or None,
        "accountType": _choice(payload, "accountType", ACCOUNT_TYPES, errs) or "standard",
    }

    addresses = payload.get("addresses")
    if addresses is not None:
        if not isinstance(addresses, list):
            errs.append(ValidationError("addresses", '"addresses" must be an array'))
        else:
            value["addresses"] = []
            for i, raw in enumerate(addresses):
                addr, addr_errs = validate_address_payload(raw, i)
                value["addresses"].append(addr)
                errs.extend(addr_errs)

    errs.extend(_unknown_keys(payload, CREATE_FIELDS))
    return value, errs


def validate_update_payload(payload: Any) -> tuple[dict[str, Any], list[ValidationError]]:
    """Validate a partial customer patch; only supplied keys are returned."""
    if not isinstance(payload, Mapping):
        return {}, [ValidationError("value", '"value" must be of type object')]

    errs: list[ValidationError] = []
    value: dict[str, Any] = {}
    for key in ("firstName", "lastName"):
        if key in payload:
            value[key] = _string(payload, key, errs)
    if "phone" in payload:
        value["phone"] = _string(payload, "phone", errs, min_length=PHONE_MIN_LENGTH)
    if "email" in payload:
        value["email"] = _email(payload, errs, allow_empty=False)
    if "accountType" in payload:
        value["accountType"] = _choice(payload, "accountType", ACCOUNT_TYPES, errs)

    if not any(k in payload for k in UPDATABLE_FIELDS):
        errs.append(
            ValidationError("value", f'"value" must contain at least one of [{", ".join(UPDATABLE_FIELDS)}]')
        )
    errs.extend(_unknown_keys(payload, UPDATABLE_FIELDS))
    return value, errs
