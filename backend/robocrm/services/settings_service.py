# Overview: Service-layer operations for company settings; typed load, validation and audited writes.

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from typing import Any

from flask import g, has_app_context

from ..extensions import db
from ..models import SystemSetting, SettingAudit
from ..settings_catalog import SETTINGS_CATALOG


logger = logging.getLogger(__name__)

CATALOG_BY_KEY = {row["key"]: row for row in SETTINGS_CATALOG}


class SettingsError(ValueError):
    pass


class SettingsValidationError(SettingsError):
    pass


class SettingsNotFoundError(SettingsError):
    pass


@dataclass(frozen=True)
class CompanySettings:
    """
    Typed view over system_settings. Loaded once per request; call sites read
    attributes instead of issuing per-key lookups.
    """
    contract_number_mask: str
    lease_billing_schedule: str
    default_payment_model: str
    default_billing_schedule: str
    default_terms: str
    default_contract_duration: int
    auto_renewal_enabled: bool
    auto_renewal_days_notice: int
    require_signature: bool
    notification_days_before_expiry: int
    default_currency: str
    default_vat_rate: float
    km_rate: float

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce_value(entry: dict, raw_value: Any) -> Any:
    t = entry["type"]
    key = entry["key"]
    v = raw_value
    if t == "bool":
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            s = v.strip().lower()
            if s in {"true", "1", "yes", "on"}:
                return True
            if s in {"false", "0", "no", "off"}:
                return False
        raise SettingsValidationError(f"{key}: expected boolean")
    if t == "int":
        if isinstance(v, bool):
            raise SettingsValidationError(f"{key}: expected integer")
        if isinstance(v, int):
            return v
        if isinstance(v, float) and int(v) == v:
            return int(v)
        if isinstance(v, str):
            try:
                return int(v.strip())
            except ValueError:
                pass
        raise SettingsValidationError(f"{key}: expected integer")
    if t == "decimal":
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return float(v)
        if isinstance(v, str):
            try:
                return float(v.strip())
            except ValueError:
                pass
        raise SettingsValidationError(f"{key}: expected decimal")
    if t in {"string", "enum"}:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)
    return v


def _validate_constraints(entry: dict, value: Any):
    validation = entry.get("validation") or {}
    key = entry["key"]
    if entry["type"] == "enum":
        options = validation.get("enum", [])
        if options and value not in options:
            raise SettingsValidationError(f"{key}: expected one of {options}")
    if entry["type"] in {"int", "decimal"}:
        if "min" in validation and value < validation["min"]:
            raise SettingsValidationError(f"{key}: must be >= {validation['min']}")
        if "max" in validation and value > validation["max"]:
            raise SettingsValidationError(f"{key}: must be <= {validation['max']}")
    if entry["type"] == "string" and "regex" in validation:
        if not re.match(validation["regex"], str(value)):
            raise SettingsValidationError(f"{key}: format is invalid")


def normalize_value(key: str, value: Any) -> Any:
    entry = CATALOG_BY_KEY.get(key)
    if entry is None:
        raise SettingsNotFoundError(f"Unknown setting key: {key}")
    coerced = _coerce_value(entry, value)
    _validate_constraints(entry, coerced)
    return coerced


def _serialize(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _stored_values() -> dict[str, str | None]:
    rows = db.session.query(SystemSetting).all()
    return {r.key: r.value for r in rows}


def _effective(entry: dict, stored: dict[str, str | None]) -> Any:
    key = entry["key"]
    if key not in stored or stored[key] is None:
        return entry["default"]
    try:
        return normalize_value(key, stored[key])
    except SettingsValidationError:
        logger.warning("Stored value for %s is invalid (%r); using default", key, stored[key])
        return entry["default"]


def load_company_settings() -> CompanySettings:
    stored = _stored_values()
    values = {entry["key"]: _effective(entry, stored) for entry in SETTINGS_CATALOG}
    return CompanySettings(**values)


def get_company_settings() -> CompanySettings:
    """Request-scoped CompanySettings (cached on flask.g)."""
    if not has_app_context():
        return load_company_settings()
    cached = g.get("company_settings")
    if cached is None:
        cached = load_company_settings()
        g.company_settings = cached
    return cached


def invalidate_request_cache() -> None:
    if has_app_context():
        g.pop("company_settings", None)


def list_settings() -> list[dict]:
    stored = _stored_values()
    items = []
    for entry in SETTINGS_CATALOG:
        key = entry["key"]
        items.append(
            {
                "key": key,
                "type": entry["type"],
                "category": entry["category"],
                "description": entry.get("description"),
                "validation": entry.get("validation") or {},
                "default": entry["default"],
                "stored_value": stored.get(key),
                "value": _effective(entry, stored),
                "inherited": key not in stored,
            }
        )
    return items


def bulk_update_settings(
    *,
    updates: list[dict[str, Any]],
    user_id: int | None,
    change_reason: str | None = None,
) -> dict[str, Any]:
    """
    Apply {"key", "value", "unset"} updates atomically. Any invalid item
    rejects the whole batch.
    """
    if not updates:
        return {"updated": [], "errors": []}

    updated: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []

    for item in updates:
        key = item.get("key")
        if not key or key not in CATALOG_BY_KEY:
            errors.append({"key": key, "error": "Unknown setting key"})
            continue
        try:
            row = db.session.query(SystemSetting).filter_by(key=key).first()
            old_value = row.value if row else None
            if item.get("unset"):
                if row:
                    db.session.delete(row)
                new_text = None
                value = CATALOG_BY_KEY[key]["default"]
            else:
                value = normalize_value(key, item.get("value"))
                new_text = _serialize(value)
                if row:
                    row.value = new_text
                    row.updated_by_user_id = user_id
                else:
                    db.session.add(SystemSetting(key=key, value=new_text, updated_by_user_id=user_id))
            db.session.add(
                SettingAudit(
                    key=key,
                    old_value=old_value,
                    new_value=new_text,
                    changed_by_user_id=user_id,
                    change_reason=change_reason,
                )
            )
            updated.append({"key": key, "value": value, "unset": bool(item.get("unset"))})
        except SettingsError as exc:
            errors.append({"key": key, "error": str(exc)})

    if errors:
        db.session.rollback()
        return {"updated": [], "errors": errors}

    db.session.commit()
    invalidate_request_cache()
    return {"updated": updated, "errors": []}


def list_audit(limit: int = 100) -> list[dict]:
    rows = (
        db.session.query(SettingAudit)
        .order_by(SettingAudit.changed_at.desc(), SettingAudit.id.desc())
        .limit(limit)
        .all()
    )
    return [r.to_dict() for r in rows]


def ensure_defaults_seeded(user_id: int | None = None) -> list[str]:
    """Persist catalog defaults for keys that have no stored row. Returns the keys written."""
    stored = _stored_values()
    written = []
    for entry in SETTINGS_CATALOG:
        if entry["key"] in stored:
            continue
        db.session.add(
            SystemSetting(key=entry["key"], value=_serialize(entry["default"]), updated_by_user_id=user_id)
        )
        written.append(entry["key"])
    if written:
        db.session.commit()
        invalidate_request_cache()
    return written
